"""
Data schemas for TMDB movie records.

Read-only Pydantic models for the payloads the proxy relays: movie listings,
movie details and credits. Unknown upstream fields are ignored so that new
TMDB fields do not break decoding.
"""

from datetime import date, timedelta
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from cinefeed.config import MAX_UPSTREAM_PAGES


class TMDBRecord(BaseModel):
    """Base for all upstream records: immutable, extra fields ignored."""
    model_config = ConfigDict(frozen=True, extra="ignore")


class Movie(TMDBRecord):
    """
    A movie as it appears in listing and search results.
    """
    id: int = Field(..., description="TMDB movie id")
    title: str = Field("", description="Localized title")
    overview: str = Field("", description="Plot summary")
    poster_path: Optional[str] = Field(None, description="Relative poster image path")
    backdrop_path: Optional[str] = Field(None, description="Relative backdrop image path")
    release_date: Optional[str] = Field(None, description="Release date (YYYY-MM-DD), may be empty")
    vote_average: float = Field(0.0, ge=0, le=10)
    vote_count: int = Field(0, ge=0)
    genre_ids: List[int] = Field(default_factory=list)
    adult: bool = False
    original_language: str = ""
    original_title: str = ""
    popularity: float = 0.0
    video: bool = False

    @property
    def released_on(self) -> Optional[date]:
        if not self.release_date:
            return None
        try:
            return date.fromisoformat(self.release_date)
        except ValueError:
            return None

    @property
    def release_year(self) -> Optional[int]:
        released = self.released_on
        return released.year if released else None

    def is_new(self, today: Optional[date] = None) -> bool:
        """True when the movie was released within the last 30 days."""
        released = self.released_on
        if released is None:
            return False
        today = today or date.today()
        return released >= today - timedelta(days=30)

    @property
    def rating_label(self) -> str:
        return f"{self.vote_average:.1f}"

    @property
    def rating_tier(self) -> str:
        if self.vote_average >= 8:
            return "high"
        if self.vote_average >= 6:
            return "medium"
        return "low"


class Genre(TMDBRecord):
    id: int
    name: str


class ProductionCompany(TMDBRecord):
    id: int
    name: str
    logo_path: Optional[str] = None


class ProductionCountry(TMDBRecord):
    iso_3166_1: str
    name: str


class SpokenLanguage(TMDBRecord):
    english_name: str = ""
    iso_639_1: str
    name: str = ""


class MovieDetails(Movie):
    """
    Full movie record returned by /movie/{id}.
    """
    genres: List[Genre] = Field(default_factory=list)
    runtime: Optional[int] = Field(None, ge=0, description="Runtime in minutes")
    budget: int = 0
    revenue: int = 0
    production_companies: List[ProductionCompany] = Field(default_factory=list)
    production_countries: List[ProductionCountry] = Field(default_factory=list)
    spoken_languages: List[SpokenLanguage] = Field(default_factory=list)
    status: str = ""
    tagline: str = ""

    @property
    def runtime_label(self) -> Optional[str]:
        """Runtime as "<h>h <m>m", e.g. 148 -> "2h 28m"."""
        if self.runtime is None:
            return None
        hours, minutes = divmod(self.runtime, 60)
        return f"{hours}h {minutes}m"


class CastMember(TMDBRecord):
    id: int
    name: str
    character: str = ""
    profile_path: Optional[str] = None
    order: int = 0


class CrewMember(TMDBRecord):
    id: int
    name: str
    job: str = ""
    department: str = ""
    profile_path: Optional[str] = None


class Credits(TMDBRecord):
    """Cast and crew for one movie (/movie/{id}/credits)."""
    id: Optional[int] = None
    cast: List[CastMember] = Field(default_factory=list)
    crew: List[CrewMember] = Field(default_factory=list)

    @property
    def director(self) -> Optional[CrewMember]:
        return next((person for person in self.crew if person.job == "Director"), None)

    def writers(self, limit: int = 2) -> List[CrewMember]:
        return [person for person in self.crew if person.department == "Writing"][:limit]

    def main_cast(self, limit: int = 6) -> List[CastMember]:
        return list(self.cast[:limit])


class MoviesResponse(TMDBRecord):
    """
    One page of a movie listing or search.
    """
    page: int = Field(1, ge=1)
    results: List[Movie] = Field(default_factory=list)
    total_pages: int = Field(0, ge=0)
    total_results: int = Field(0, ge=0)

    @property
    def capped_total_pages(self) -> int:
        """Upstream never serves pages past 500, whatever total_pages claims."""
        return min(self.total_pages, MAX_UPSTREAM_PAGES)
