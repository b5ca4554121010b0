"""
Prometheus metrics for CineFeed.

Covers inbound HTTP traffic, upstream TMDB calls made by the proxy, and
sign-in activity.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST


# HTTP Request Metrics
http_requests_total = Counter(
    'cinefeed_http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration_seconds = Histogram(
    'cinefeed_http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

# Upstream (TMDB) Call Metrics
upstream_calls_total = Counter(
    'cinefeed_upstream_calls_total',
    'Total number of upstream API calls made by the proxy',
    ['outcome']  # success, upstream_error, network_error, timeout, internal_error
)

upstream_call_duration_seconds = Histogram(
    'cinefeed_upstream_call_duration_seconds',
    'Upstream API call duration in seconds'
)

proxy_rejections_total = Counter(
    'cinefeed_proxy_rejections_total',
    'Proxy requests rejected before reaching upstream',
    ['reason']  # missing_endpoint, not_allowed, no_credential
)

# Auth / Session Metrics
sign_ins_total = Counter(
    'cinefeed_sign_ins_total',
    'Sign-in attempts',
    ['method', 'status']
)

active_sessions = Gauge(
    'cinefeed_active_sessions',
    'Number of active user sessions'
)


def track_http_request(method, endpoint, status, duration=None):
    """Record one inbound HTTP request."""
    http_requests_total.labels(method=method, endpoint=endpoint, status=status).inc()
    if duration is not None:
        http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)


def track_upstream_call(outcome, duration=None):
    """
    Record an upstream API call.

    Args:
        outcome: One of 'success', 'upstream_error', 'network_error', 'timeout', 'internal_error'
        duration: Duration in seconds (optional)
    """
    upstream_calls_total.labels(outcome=outcome).inc()
    if duration is not None:
        upstream_call_duration_seconds.observe(duration)


def track_proxy_rejection(reason):
    proxy_rejections_total.labels(reason=reason).inc()


def track_sign_in(method, success=True):
    """
    Record a sign-in attempt.

    Args:
        method: 'password', 'signup' or 'google'
        success: Whether the attempt produced a session
    """
    sign_ins_total.labels(method=method, status='success' if success else 'error').inc()


def update_active_sessions(count):
    active_sessions.set(count)


def get_metrics():
    """
    Generate Prometheus metrics in text format.

    Returns:
        Tuple of (metrics_text, content_type)
    """
    return generate_latest(), CONTENT_TYPE_LATEST
