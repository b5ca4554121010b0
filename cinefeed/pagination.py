"""
Page-range calculation for the pagination control.
"""

from dataclasses import dataclass
from typing import List, Union

ELLIPSIS = "..."

# Pages shown on each side of the current page
WINDOW_DELTA = 1

PageMarker = Union[int, str]


def visible_pages(current_page: int, total_pages: int, delta: int = WINDOW_DELTA) -> List[PageMarker]:
    """
    Page markers to display for ``current_page`` out of ``total_pages``.

    Page 1 and the last page are always present, plus the pages within
    ``delta`` of the current page. A gap between the first/last page and that
    window is collapsed into a single ELLIPSIS. No page appears twice.
    Returns an empty list when there is at most one page.

    >>> visible_pages(5, 10)
    [1, '...', 4, 5, 6, '...', 10]
    >>> visible_pages(2, 3)
    [1, 2, 3]
    """
    if total_pages <= 1:
        return []

    current_page = min(max(current_page, 1), total_pages)
    window = list(range(max(2, current_page - delta), min(total_pages - 1, current_page + delta) + 1))

    pages: List[PageMarker] = [1]
    if window:
        if window[0] > 2:
            pages.append(ELLIPSIS)
        pages.extend(window)
        if window[-1] < total_pages - 1:
            pages.append(ELLIPSIS)
    pages.append(total_pages)
    return pages


@dataclass(frozen=True)
class Pagination:
    """
    View model for the Prev / page numbers / Next control.

    ``current_page`` is clamped into [1, total_pages] so the highlighted page
    always matches one of ``pages``.
    """
    current_page: int
    total_pages: int

    def __post_init__(self):
        clamped = min(max(self.current_page, 1), max(self.total_pages, 1))
        object.__setattr__(self, "current_page", clamped)

    @property
    def visible(self) -> bool:
        return self.total_pages > 1

    @property
    def pages(self) -> List[PageMarker]:
        return visible_pages(self.current_page, self.total_pages)

    @property
    def has_previous(self) -> bool:
        return self.current_page > 1

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def previous_page(self) -> int:
        return max(self.current_page - 1, 1)

    @property
    def next_page(self) -> int:
        return min(self.current_page + 1, self.total_pages)
