import os
from typing import Optional

from flask import Flask, jsonify, send_from_directory

import cinefeed.secret_helper as secret_helper
from cinefeed.api_client import LocalProxyTransport, MovieApi
from cinefeed.auth import build_authenticator
from cinefeed.config import Settings
from cinefeed.logging_config import configure_structlog, get_logger
from cinefeed.logging_middleware import init_logging_middleware
from cinefeed.proxy import TMDBProxy
from cinefeed.routes.pages import bp as pages_bp
from cinefeed.routes.proxy import bp as api_bp
from cinefeed.session_manager import SessionManager

logger = get_logger(__name__)

PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
TEMPLATE_DIR = os.path.join(PACKAGE_DIR, 'templates')
STATIC_DIR = os.path.join(PACKAGE_DIR, 'static')


def create_app(settings: Optional[Settings] = None, proxy: Optional[TMDBProxy] = None) -> Flask:
    """
    Build the CineFeed Flask application.

    Args:
        settings: Explicit settings (defaults to Settings.from_env())
        proxy: Pre-built TMDBProxy (tests inject one with a mocked session)
    """
    if settings is None:
        settings = secret_helper.resolve_tmdb_key(Settings.from_env())

    configure_structlog(settings.log_level)

    app = Flask(__name__, template_folder=TEMPLATE_DIR, static_folder=STATIC_DIR)
    app.config['SECRET_KEY'] = settings.secret_key
    app.config['PERMANENT_SESSION_LIFETIME'] = settings.session_timeout_minutes * 60
    app.config['CINEFEED_SETTINGS'] = settings

    init_logging_middleware(app)

    proxy = proxy or TMDBProxy(settings)
    movie_api = MovieApi(LocalProxyTransport(proxy), image_base_url=settings.tmdb_image_base_url)

    app.extensions['tmdb_proxy'] = proxy
    app.extensions['movie_api'] = movie_api
    app.extensions['authenticator'] = build_authenticator(settings)
    app.extensions['session_manager'] = SessionManager(settings.session_timeout_minutes)

    app.jinja_env.globals.update(
        image_url=movie_api.get_image_url,
        backdrop_url=movie_api.get_backdrop_url,
    )

    app.register_blueprint(api_bp, url_prefix="/api")
    app.register_blueprint(pages_bp)

    # --- Health Check Endpoint ---
    @app.route('/health')
    def health():
        return jsonify({"status": "healthy", "service": "cinefeed"}), 200

    # Image placeholder used when TMDB has no poster/backdrop path
    @app.route('/placeholder.svg')
    def placeholder():
        return send_from_directory(STATIC_DIR, 'placeholder.svg', mimetype='image/svg+xml')

    if not settings.tmdb_api_key:
        logger.warning(
            "tmdb_key_missing",
            message="TMDB_API_KEY is not set; the proxy will answer 500 until it is configured",
        )
    logger.info(
        "app_initialized",
        auth_backend=app.extensions['authenticator'].name,
        enforce_allowlist=settings.enforce_allowlist,
        proxy_timeout=settings.proxy_timeout,
    )
    return app
