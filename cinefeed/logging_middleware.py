"""
Request lifecycle hooks: request ids, access logging and HTTP metrics.

An incoming X-Request-ID header is reused so traces can span the browser,
the proxy and upstream logs; otherwise a fresh id is generated. The id is
echoed back on every response.
"""

import time
from flask import Flask, g, request

from cinefeed.logging_config import get_logger
from cinefeed.logging_context import clear_context, set_request_id
from cinefeed.metrics import track_http_request

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _elapsed() -> float | None:
    started = g.get("request_start_time")
    return None if started is None else time.time() - started


def init_logging_middleware(app: Flask):
    """Register the before/after/teardown hooks on ``app``."""

    @app.before_request
    def start_request():
        g.request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
        g.request_start_time = time.time()
        logger.info(
            "request_started",
            method=request.method,
            path=request.path,
            remote_addr=request.remote_addr,
            user_agent=request.headers.get("User-Agent", "Unknown"),
        )

    @app.after_request
    def finish_request(response):
        duration = _elapsed()
        logger.info(
            "request_completed",
            method=request.method,
            path=request.path,
            status_code=response.status_code,
            duration_ms=None if duration is None else round(duration * 1000, 2),
        )
        # label by route name so /movie/<id> does not explode cardinality
        track_http_request(request.method, request.endpoint or "unmatched", response.status_code, duration)

        request_id = g.get("request_id")
        if request_id:
            response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.teardown_request
    def end_request(exception=None):
        if exception is not None:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.path,
                error=str(exception),
                exc_info=True,
            )
        clear_context()
