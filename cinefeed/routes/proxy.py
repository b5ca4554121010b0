from flask import Blueprint, Response, current_app, jsonify, request

from cinefeed.metrics import get_metrics

bp = Blueprint("api", __name__)


def _to_flask(proxy_response):
    if proxy_response.body is None:
        response = Response(status=proxy_response.status_code)
    else:
        response = jsonify(proxy_response.body)
        response.status_code = proxy_response.status_code
    for name, value in proxy_response.headers.items():
        response.headers[name] = value
    return response


@bp.route("/tmdb", methods=["GET", "OPTIONS"])
def tmdb_proxy():
    """
    GET /api/tmdb?endpoint=movie/popular%3Fpage%3D2
    Forward the endpoint to TMDB with the server-side credential.

    OPTIONS /api/tmdb
    Preflight: 200, empty body, permissive CORS headers.
    """
    proxy = current_app.extensions["tmdb_proxy"]
    if request.method == "OPTIONS":
        return _to_flask(proxy.preflight())
    return _to_flask(proxy.forward(request.args.get("endpoint")))


@bp.route("/metrics", methods=["GET"])
def metrics():
    """
    GET /api/metrics
    Expose Prometheus metrics (request counts, upstream outcomes, sign-ins).
    """
    metrics_text, content_type = get_metrics()
    return Response(metrics_text, mimetype=content_type)
