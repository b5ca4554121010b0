"""
MovieApi: typed client for the TMDB proxy endpoint.

Each purpose-named operation (popular, top rated, now playing, upcoming,
search, details, credits) turns into exactly one call to ``/api/tmdb`` and
returns a validated record from ``cinefeed.schemas``.

Two transports are available:
- HttpProxyTransport: talks to a running CineFeed server over HTTP
- LocalProxyTransport: calls a TMDBProxy in-process (used by the page views)

Every failure surfaces as ``MovieApiError`` with a message of the form
"TMDB request failed: <reason>". No retries are attempted.
"""

import json
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Dict, Optional, Type
from urllib.parse import urlencode, quote

import requests
from pydantic import BaseModel, ValidationError

from cinefeed.config import TMDB_IMAGE_BASE_URL
from cinefeed.logging_config import get_logger
from cinefeed.proxy import TMDBProxy
from cinefeed.schemas import Credits, MovieDetails, MoviesResponse

logger = get_logger(__name__)

API_NAME = "TMDB"
POSTER_PLACEHOLDER = "/placeholder.svg?height=750&width=500"
BACKDROP_PLACEHOLDER = "/placeholder.svg?height=720&width=1280"


class MovieApiError(Exception):
    """Uniform error raised by every MovieApi operation."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 payload: Optional[Any] = None, original_error: Optional[Exception] = None):
        self.message = message
        self.status_code = status_code
        self.payload = payload
        self.original_error = original_error
        super().__init__(message)


@dataclass(frozen=True)
class UpstreamRequest:
    """Upstream path plus ordered query parameters."""
    path: str
    params: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not self.path.startswith("/"):
            raise ValueError(f"Upstream path must start with '/': {self.path!r}")

    def to_endpoint(self) -> str:
        if not self.params:
            return self.path
        return f"{self.path}?{urlencode(self.params, quote_via=quote)}"


@dataclass
class TransportResponse:
    status_code: int
    reason: str
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class HttpProxyTransport:
    """Calls the proxy endpoint of a CineFeed server over HTTP."""

    def __init__(self, base_url: str, session: Optional[requests.Session] = None,
                 timeout: Optional[float] = 20.0):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch(self, endpoint: str) -> TransportResponse:
        response = self.session.get(
            f"{self.base_url}/api/tmdb",
            params={"endpoint": endpoint},
            headers={"Accept": "application/json", "Content-Type": "application/json"},
            timeout=self.timeout,
        )
        return TransportResponse(response.status_code, response.reason or "", response.text)

    def close(self):
        self.session.close()


class LocalProxyTransport:
    """Calls a TMDBProxy directly, skipping the HTTP hop."""

    def __init__(self, proxy: TMDBProxy):
        self.proxy = proxy

    def fetch(self, endpoint: str) -> TransportResponse:
        result = self.proxy.forward(endpoint)
        try:
            reason = HTTPStatus(result.status_code).phrase
        except ValueError:
            reason = ""
        text = "" if result.body is None else json.dumps(result.body)
        return TransportResponse(result.status_code, reason, text)

    def close(self):
        pass


def get_image_url(path: Optional[str], size: str = "w500",
                  base_url: str = TMDB_IMAGE_BASE_URL) -> str:
    """
    Full poster URL for a TMDB image path.

    >>> get_image_url("/abc.jpg", "w500")
    'https://image.tmdb.org/t/p/w500/abc.jpg'
    >>> get_image_url(None)
    '/placeholder.svg?height=750&width=500'
    """
    if not path:
        return POSTER_PLACEHOLDER
    return f"{base_url}/{size}{path}"


def get_backdrop_url(path: Optional[str], size: str = "w1280",
                     base_url: str = TMDB_IMAGE_BASE_URL) -> str:
    """Full backdrop URL for a TMDB image path, or the wide placeholder."""
    if not path:
        return BACKDROP_PLACEHOLDER
    return f"{base_url}/{size}{path}"


def extract_error_message(response: TransportResponse) -> str:
    """
    Best-effort human-readable message from a proxy error response.

    Order: envelope "error", then upstream "status_message", then "HTTP <status>".
    An unparseable body yields "<status> <reason>".
    """
    try:
        error_data = json.loads(response.text)
    except ValueError:
        return f"{response.status_code} {response.reason}".strip()

    if isinstance(error_data, dict):
        message = error_data.get("error") or error_data.get("status_message")
        if message:
            return str(message)
    return f"HTTP {response.status_code}"


class MovieApi:
    """
    Typed operations over the TMDB proxy.

    Constructed explicitly with a transport; there is no module-level instance.
    """

    CATEGORIES = ("popular", "top-rated", "now-playing", "upcoming")

    def __init__(self, transport, image_base_url: str = TMDB_IMAGE_BASE_URL):
        self.transport = transport
        self.image_base_url = image_base_url

    def _fetch(self, upstream: UpstreamRequest, model: Type[BaseModel]):
        endpoint = upstream.to_endpoint()
        logger.debug("tmdb_api_request", endpoint=endpoint)

        try:
            response = self.transport.fetch(endpoint)
        except requests.exceptions.RequestException as e:
            logger.error("tmdb_api_transport_failed", endpoint=endpoint, error=str(e))
            raise MovieApiError(f"{API_NAME} request failed: {e}", original_error=e) from e

        if not response.ok:
            message = extract_error_message(response)
            logger.warning("tmdb_api_error", endpoint=endpoint, status_code=response.status_code, message=message)
            try:
                payload = json.loads(response.text)
            except ValueError:
                payload = None
            raise MovieApiError(
                f"{API_NAME} request failed: {message}",
                status_code=response.status_code,
                payload=payload,
            )

        try:
            data = json.loads(response.text)
        except ValueError as e:
            raise MovieApiError(
                f"{API_NAME} request failed: invalid JSON in response",
                status_code=response.status_code,
                original_error=e,
            ) from e

        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.warning("tmdb_api_malformed_response", endpoint=endpoint, errors=e.error_count())
            raise MovieApiError(
                f"{API_NAME} request failed: malformed {model.__name__} response",
                status_code=response.status_code,
                payload=data,
                original_error=e,
            ) from e

    @staticmethod
    def _page_params(page: int) -> Dict[str, str]:
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        return {"page": str(page)}

    def get_popular_movies(self, page: int = 1) -> MoviesResponse:
        return self._fetch(UpstreamRequest("/movie/popular", self._page_params(page)), MoviesResponse)

    def get_top_rated_movies(self, page: int = 1) -> MoviesResponse:
        return self._fetch(UpstreamRequest("/movie/top_rated", self._page_params(page)), MoviesResponse)

    def get_now_playing_movies(self, page: int = 1) -> MoviesResponse:
        return self._fetch(UpstreamRequest("/movie/now_playing", self._page_params(page)), MoviesResponse)

    def get_upcoming_movies(self, page: int = 1) -> MoviesResponse:
        return self._fetch(UpstreamRequest("/movie/upcoming", self._page_params(page)), MoviesResponse)

    def search_movies(self, query: str, page: int = 1) -> MoviesResponse:
        params = {"query": query}
        params.update(self._page_params(page))
        return self._fetch(UpstreamRequest("/search/movie", params), MoviesResponse)

    def get_movie_details(self, movie_id: int) -> MovieDetails:
        return self._fetch(UpstreamRequest(f"/movie/{int(movie_id)}"), MovieDetails)

    def get_movie_credits(self, movie_id: int) -> Credits:
        return self._fetch(UpstreamRequest(f"/movie/{int(movie_id)}/credits"), Credits)

    def get_movie_list(self, category: str, page: int = 1) -> MoviesResponse:
        """Fetch a listing by category slug; unknown slugs fall back to popular."""
        if category == "top-rated":
            return self.get_top_rated_movies(page)
        elif category == "now-playing":
            return self.get_now_playing_movies(page)
        elif category == "upcoming":
            return self.get_upcoming_movies(page)
        return self.get_popular_movies(page)

    def get_image_url(self, path: Optional[str], size: str = "w500") -> str:
        return get_image_url(path, size, self.image_base_url)

    def get_backdrop_url(self, path: Optional[str], size: str = "w1280") -> str:
        return get_backdrop_url(path, size, self.image_base_url)

    def close(self):
        self.transport.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
