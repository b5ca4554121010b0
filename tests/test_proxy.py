"""
Tests for the TMDB proxy core.

Covers URL building, the endpoint allow-list and the mapping of every
upstream outcome to a status code and JSON envelope.
"""

import json
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
import requests

from cinefeed.config import Settings
from cinefeed.proxy import (
    TMDBProxy,
    build_upstream_url,
    endpoint_path,
    is_endpoint_allowed,
    normalize_endpoint,
)
from helpers import make_upstream_response


class TestBuildUpstreamUrl:
    """Credential injection into the upstream URL."""

    def test_question_mark_when_no_query(self):
        url = build_upstream_url("https://api.themoviedb.org/3", "movie/popular", "KEY")
        assert url == "https://api.themoviedb.org/3/movie/popular?api_key=KEY"

    def test_ampersand_when_query_present(self):
        url = build_upstream_url("https://api.themoviedb.org/3", "movie/popular?page=2", "KEY")
        assert url == "https://api.themoviedb.org/3/movie/popular?page=2&api_key=KEY"

    def test_leading_slash_kept(self):
        url = build_upstream_url("https://api.themoviedb.org/3", "/movie/550/credits", "KEY")
        assert url == "https://api.themoviedb.org/3/movie/550/credits?api_key=KEY"

    def test_trailing_slash_on_base_url(self):
        url = build_upstream_url("https://api.themoviedb.org/3/", "movie/550", "KEY")
        assert url == "https://api.themoviedb.org/3/movie/550?api_key=KEY"


class TestEndpointHelpers:

    def test_normalize_adds_slash(self):
        assert normalize_endpoint("movie/popular") == "/movie/popular"
        assert normalize_endpoint("/movie/popular") == "/movie/popular"

    def test_endpoint_path_strips_query(self):
        assert endpoint_path("search/movie?query=alien&page=3") == "/search/movie"

    def test_endpoint_path_keeps_double_slash(self):
        assert endpoint_path("//evil.example/movie/popular") == "//evil.example/movie/popular"
        assert endpoint_path("movie/550#credits") == "/movie/550"

    @pytest.mark.parametrize("endpoint", [
        "movie/popular?page=1",
        "/movie/top_rated?page=10",
        "/movie/now_playing",
        "/movie/upcoming?page=2",
        "/search/movie?query=star%20wars&page=1",
        "/movie/27205",
        "/movie/27205/credits",
    ])
    def test_allowed_routes(self, endpoint):
        assert is_endpoint_allowed(endpoint)

    @pytest.mark.parametrize("endpoint", [
        "/account",
        "/movie/abc",
        "/movie/27205/account_states",
        "/authentication/token/new",
        "/tv/popular",
        "/../movie/popular",
        "//evil.example/movie/popular",
        "//evil.example/movie/550/credits?page=1",
    ])
    def test_rejected_routes(self, endpoint):
        assert not is_endpoint_allowed(endpoint)


class TestProxyForward:
    """TMDBProxy.forward outcome mapping."""

    def test_success_relays_body_with_cors(self, proxy, upstream_session, popular_page):
        upstream_session.get.return_value = make_upstream_response(200, popular_page)

        result = proxy.forward("movie/popular?page=2")

        assert result.status_code == 200
        assert result.body == popular_page
        assert result.headers["Access-Control-Allow-Origin"] == "*"
        assert result.headers["Access-Control-Allow-Methods"] == "GET"
        assert result.headers["Access-Control-Allow-Headers"] == "Content-Type"

    def test_upstream_request_shape(self, proxy, upstream_session, popular_page):
        upstream_session.get.return_value = make_upstream_response(200, popular_page)

        proxy.forward("movie/popular?page=2")

        args, kwargs = upstream_session.get.call_args
        assert args[0] == "https://api.themoviedb.org/3/movie/popular?page=2&api_key=test-api-key"
        assert kwargs["timeout"] == 15.0
        assert kwargs["headers"]["Accept"] == "application/json"
        assert kwargs["headers"]["Content-Type"] == "application/json"
        assert kwargs["headers"]["User-Agent"] == "CineFeed/1.0"

    def test_missing_endpoint(self, proxy, upstream_session):
        for endpoint in (None, ""):
            result = proxy.forward(endpoint)
            assert result.status_code == 400
            assert result.body == {"error": "Missing endpoint parameter"}
        upstream_session.get.assert_not_called()

    def test_upstream_json_error_relayed_verbatim(self, proxy, upstream_session):
        body = {"status_message": "not found"}
        upstream_session.get.return_value = make_upstream_response(404, body, reason="Not Found")

        result = proxy.forward("movie/999999999")

        assert result.status_code == 404
        assert result.body == {"status_message": "not found"}

    def test_upstream_text_error_wrapped(self, proxy, upstream_session):
        upstream_session.get.return_value = make_upstream_response(502, text="Bad Gateway", reason="Bad Gateway")

        result = proxy.forward("movie/popular")

        assert result.status_code == 502
        assert result.body == {"error": "HTTP 502: Bad Gateway", "raw_error": "Bad Gateway"}

    def test_timeout(self, proxy, upstream_session):
        upstream_session.get.side_effect = requests.exceptions.ReadTimeout("read timed out")

        result = proxy.forward("movie/popular")

        assert result.status_code == 408
        assert result.body == {"error": "Request timeout", "debug": "Request took longer than 15 seconds"}

    def test_connect_timeout_is_a_timeout(self, proxy, upstream_session):
        upstream_session.get.side_effect = requests.exceptions.ConnectTimeout("connect timed out")

        result = proxy.forward("movie/popular")

        assert result.status_code == 408

    def test_network_error(self, proxy, upstream_session):
        upstream_session.get.side_effect = requests.exceptions.ConnectionError("Name or service not known")

        result = proxy.forward("movie/popular")

        assert result.status_code == 503
        assert result.body["error"] == "Network error - unable to reach upstream"
        assert "Name or service not known" in result.body["debug"]

    def test_unexpected_error(self, proxy, upstream_session):
        upstream_session.get.side_effect = RuntimeError("boom")

        result = proxy.forward("movie/popular")

        assert result.status_code == 500
        assert result.body == {"error": "Internal server error", "debug": "boom"}

    def test_unexpected_error_without_message(self, proxy, upstream_session):
        upstream_session.get.side_effect = RuntimeError()

        result = proxy.forward("movie/popular")

        assert result.status_code == 500
        assert result.body["debug"] == "Unknown error"

    def test_non_json_success_body_is_internal_error(self, proxy, upstream_session):
        upstream_session.get.return_value = make_upstream_response(200, text="<html>oops</html>")

        result = proxy.forward("movie/popular")

        assert result.status_code == 500
        assert result.body["error"] == "Internal server error"

    def test_endpoint_not_permitted(self, proxy, upstream_session):
        result = proxy.forward("account/12345/favorite/movies")

        assert result.status_code == 403
        assert result.body == {"error": "Endpoint not permitted", "endpoint": "/account/12345/favorite/movies"}
        upstream_session.get.assert_not_called()

    def test_protocol_relative_endpoint_not_permitted(self, proxy, upstream_session):
        result = proxy.forward("//evil.example/movie/popular")

        assert result.status_code == 403
        assert result.body["endpoint"] == "//evil.example/movie/popular"
        upstream_session.get.assert_not_called()

    def test_allowlist_can_be_disabled(self, settings, upstream_session):
        open_proxy = TMDBProxy(settings.with_overrides(enforce_allowlist=False), session=upstream_session)
        upstream_session.get.return_value = make_upstream_response(200, {"genres": []})

        result = open_proxy.forward("genre/movie/list")

        assert result.status_code == 200
        assert upstream_session.get.call_args[0][0].endswith("/genre/movie/list?api_key=test-api-key")

    def test_missing_api_key(self, settings, upstream_session):
        keyless = TMDBProxy(settings.with_overrides(tmdb_api_key=None), session=upstream_session)

        result = keyless.forward("movie/popular")

        assert result.status_code == 500
        assert result.body["debug"] == "TMDB API key not configured"
        upstream_session.get.assert_not_called()

    def test_custom_timeout_in_message(self, settings, upstream_session):
        quick = TMDBProxy(settings.with_overrides(proxy_timeout=2.5), session=upstream_session)
        upstream_session.get.side_effect = requests.exceptions.Timeout()

        result = quick.forward("movie/popular")

        assert result.body["debug"] == "Request took longer than 2.5 seconds"
        assert upstream_session.get.call_args[1]["timeout"] == 2.5


class TestProxyPreflight:

    def test_preflight(self, proxy):
        result = proxy.preflight()

        assert result.status_code == 200
        assert result.body is None
        assert result.headers["Access-Control-Allow-Methods"] == "GET, OPTIONS"
        assert result.headers["Access-Control-Allow-Origin"] == "*"


LISTING_BODY = json.dumps({"page": 1, "results": [], "total_pages": 1, "total_results": 0}).encode("utf-8")


def make_handler(chunk_size, delay):
    """Request handler that sends LISTING_BODY in chunks, pausing between them."""

    class TrickleHandler(BaseHTTPRequestHandler):

        def do_GET(self):
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(LISTING_BODY)))
            self.end_headers()
            try:
                for start in range(0, len(LISTING_BODY), chunk_size):
                    self.wfile.write(LISTING_BODY[start:start + chunk_size])
                    self.wfile.flush()
                    time.sleep(delay)
            except (BrokenPipeError, ConnectionResetError):
                pass

        def log_message(self, format, *args):
            pass

    return TrickleHandler


@pytest.fixture
def local_upstream():
    """Start a local HTTP server; yields a factory returning its base URL."""
    servers = []

    def start(chunk_size, delay):
        server = ThreadingHTTPServer(("127.0.0.1", 0), make_handler(chunk_size, delay))
        threading.Thread(target=server.serve_forever, daemon=True).start()
        servers.append(server)
        return f"http://127.0.0.1:{server.server_address[1]}/3"

    yield start
    for server in servers:
        server.shutdown()
        server.server_close()


class TestUpstreamDeadline:
    """proxy_timeout bounds the whole upstream call against a real socket."""

    def test_slow_body_times_out(self, local_upstream):
        base_url = local_upstream(chunk_size=8, delay=0.4)
        proxy = TMDBProxy(Settings(tmdb_api_key="k", tmdb_base_url=base_url, proxy_timeout=1.0))

        started = time.monotonic()
        result = proxy.forward("movie/popular")
        elapsed = time.monotonic() - started
        proxy.close()

        assert result.status_code == 408
        assert result.body == {"error": "Request timeout", "debug": "Request took longer than 1 seconds"}
        assert elapsed < 2.5

    def test_fast_body_succeeds(self, local_upstream):
        base_url = local_upstream(chunk_size=len(LISTING_BODY), delay=0)
        proxy = TMDBProxy(Settings(tmdb_api_key="k", tmdb_base_url=base_url, proxy_timeout=5.0))

        result = proxy.forward("movie/popular")
        proxy.close()

        assert result.status_code == 200
        assert result.body == json.loads(LISTING_BODY)



if __name__ == "__main__":
    pytest.main([__file__, "-v"])
