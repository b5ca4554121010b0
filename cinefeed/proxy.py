"""
TMDBProxy: same-origin forwarding layer for the TMDB API.

The browser (or the in-process page views) ask for an upstream endpoint such
as ``movie/popular?page=2``. The proxy injects the TMDB credential, forwards
the request with a bounded timeout, and maps every outcome to a JSON envelope
and HTTP status. It never raises past ``forward``.

Outcome mapping:
- missing endpoint                  -> 400 {"error": "Missing endpoint parameter"}
- endpoint not on the allow-list    -> 403 {"error": "Endpoint not permitted", ...}
- upstream 2xx                      -> 200, upstream JSON unchanged, CORS headers
- upstream non-2xx, JSON body       -> upstream status, upstream JSON unchanged
- upstream non-2xx, non-JSON body   -> upstream status, {"error": "HTTP <s>: <reason>", "raw_error": ...}
- network failure                   -> 503
- timeout                           -> 408
- anything else                     -> 500
"""

import contextvars
import json
import re
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Pattern, Tuple

import requests

from cinefeed.config import Settings
from cinefeed.logging_config import get_logger
from cinefeed.metrics import track_upstream_call, track_proxy_rejection

logger = get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET",
    "Access-Control-Allow-Headers": "Content-Type",
}

PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

# Route templates the proxy is willing to forward. "{id}" matches a numeric TMDB id.
ALLOWED_ROUTE_TEMPLATES: Tuple[str, ...] = (
    "/movie/popular",
    "/movie/top_rated",
    "/movie/now_playing",
    "/movie/upcoming",
    "/search/movie",
    "/movie/{id}",
    "/movie/{id}/credits",
)


def _compile_template(template: str) -> Pattern:
    parts = [re.escape(part) for part in template.split("{id}")]
    return re.compile("^" + r"\d+".join(parts) + "/?$")


ALLOWED_ROUTES = tuple(_compile_template(t) for t in ALLOWED_ROUTE_TEMPLATES)


@dataclass
class ProxyResponse:
    """Status, JSON body and headers produced by the proxy for one request."""
    status_code: int
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def normalize_endpoint(endpoint: str) -> str:
    """Ensure the endpoint starts with "/"."""
    return endpoint if endpoint.startswith("/") else f"/{endpoint}"


def build_upstream_url(base_url: str, endpoint: str, api_key: str) -> str:
    """
    Join the upstream base URL, the endpoint and the credential.

    The credential is appended with "&" when the endpoint already carries a
    query string and with "?" otherwise.

    >>> build_upstream_url("https://api.themoviedb.org/3", "movie/popular?page=2", "K")
    'https://api.themoviedb.org/3/movie/popular?page=2&api_key=K'
    """
    clean = normalize_endpoint(endpoint)
    separator = "&" if "?" in clean else "?"
    return f"{base_url.rstrip('/')}{clean}{separator}api_key={api_key}"


def endpoint_path(endpoint: str) -> str:
    """
    Path part of an endpoint, without query string or fragment.

    Split by hand: urlsplit would read a leading "//host" as a netloc.
    """
    path = normalize_endpoint(endpoint).split("?", 1)[0]
    return path.split("#", 1)[0]


def is_endpoint_allowed(endpoint: str) -> bool:
    path = endpoint_path(endpoint)
    return any(pattern.match(path) for pattern in ALLOWED_ROUTES)


UPSTREAM_WORKERS = 8


def _error(status_code: int, error: str, **extra) -> ProxyResponse:
    body = {"error": error}
    body.update(extra)
    return ProxyResponse(status_code=status_code, body=body)


class TMDBProxy:
    """
    Forwards client-specified endpoints to the TMDB API.

    One instance is created per application by ``create_app`` and holds a
    ``requests.Session`` for connection pooling. Requests share no other state.

    ``proxy_timeout`` bounds the whole upstream call, body included. The call
    runs on a worker thread and is abandoned (its response closed) once the
    deadline passes; requests' own timeout only bounds connect and each read.
    """

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None,
                 max_workers: int = UPSTREAM_WORKERS):
        self.settings = settings
        self.base_url = settings.tmdb_base_url
        self.timeout = settings.proxy_timeout
        self.session = session or requests.Session()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="tmdb-upstream")
        self.headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": settings.user_agent,
        }

    def forward(self, endpoint: Optional[str]) -> ProxyResponse:
        """
        Forward ``endpoint`` to the upstream API.

        Args:
            endpoint: Upstream path with optional query string, e.g. "movie/550/credits"

        Returns:
            ProxyResponse; never raises.
        """
        if not endpoint:
            track_proxy_rejection("missing_endpoint")
            return _error(400, "Missing endpoint parameter")

        clean_endpoint = normalize_endpoint(endpoint)

        if self.settings.enforce_allowlist and not is_endpoint_allowed(clean_endpoint):
            track_proxy_rejection("not_allowed")
            logger.warning("tmdb_proxy_rejected", endpoint=endpoint_path(clean_endpoint))
            return _error(403, "Endpoint not permitted", endpoint=endpoint_path(clean_endpoint))

        if not self.settings.tmdb_api_key:
            track_proxy_rejection("no_credential")
            logger.error("tmdb_proxy_misconfigured", reason="TMDB API key not configured")
            return _error(500, "Internal server error", debug="TMDB API key not configured")

        url = build_upstream_url(self.base_url, clean_endpoint, self.settings.tmdb_api_key)
        logger.info("tmdb_proxy_request", endpoint=clean_endpoint, timeout=self.timeout)

        start_time = time.time()
        try:
            response = self._get_within_deadline(url)
            logger.info("tmdb_proxy_response", endpoint=clean_endpoint, upstream_status=response.status_code)

            if not response.ok:
                track_upstream_call("upstream_error", time.time() - start_time)
                return self._relay_error(response)

            data = response.json()
            track_upstream_call("success", time.time() - start_time)
            return ProxyResponse(status_code=200, body=data, headers=dict(CORS_HEADERS))

        except requests.exceptions.Timeout:
            # Checked before ConnectionError: ConnectTimeout is both.
            track_upstream_call("timeout", time.time() - start_time)
            logger.warning("tmdb_proxy_timeout", endpoint=clean_endpoint, timeout=self.timeout)
            return _error(
                408,
                "Request timeout",
                debug=f"Request took longer than {self.timeout:g} seconds",
            )
        except requests.exceptions.ConnectionError as e:
            track_upstream_call("network_error", time.time() - start_time)
            logger.error("tmdb_proxy_network_error", endpoint=clean_endpoint, error=str(e))
            return _error(503, "Network error - unable to reach upstream", debug=str(e))
        except Exception as e:
            track_upstream_call("internal_error", time.time() - start_time)
            logger.error("tmdb_proxy_internal_error", endpoint=clean_endpoint, error=str(e), exc_info=True)
            return _error(500, "Internal server error", debug=str(e) or "Unknown error")

    def _get(self, url: str, in_flight: list) -> requests.Response:
        response = self.session.get(url, headers=self.headers, timeout=self.timeout, stream=True)
        in_flight.append(response)
        response.content  # read the whole body inside the deadline
        return response

    def _get_within_deadline(self, url: str) -> requests.Response:
        """
        GET ``url`` with the body fully read, or raise requests' Timeout once
        ``self.timeout`` seconds have passed in total.
        """
        in_flight: list = []
        future = self._executor.submit(contextvars.copy_context().run, self._get, url, in_flight)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeout:
            future.cancel()
            for response in in_flight:
                response.close()
            raise requests.exceptions.Timeout(f"Upstream call exceeded {self.timeout:g} seconds")

    def _relay_error(self, response: requests.Response) -> ProxyResponse:
        """Relay an upstream non-2xx response, keeping its status code."""
        error_text = response.text
        logger.warning(
            "tmdb_proxy_upstream_error",
            upstream_status=response.status_code,
            body=error_text[:200],
        )
        try:
            error_data = json.loads(error_text)
        except ValueError:
            error_data = {
                "error": f"HTTP {response.status_code}: {response.reason}",
                "raw_error": error_text,
            }
        return ProxyResponse(status_code=response.status_code, body=error_data)

    def preflight(self) -> ProxyResponse:
        """Answer a CORS preflight request."""
        return ProxyResponse(status_code=200, body=None, headers=dict(PREFLIGHT_HEADERS))

    def close(self):
        self._executor.shutdown(wait=False, cancel_futures=True)
        self.session.close()
