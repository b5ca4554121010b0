import contextvars
from concurrent.futures import ThreadPoolExecutor
from functools import wraps

from flask import (
    Blueprint, current_app, flash, g, redirect, render_template, request, session, url_for,
)

from cinefeed.api_client import MovieApi, MovieApiError
from cinefeed.auth import AuthenticationError
from cinefeed.logging_config import get_logger
from cinefeed.logging_context import set_user_id
from cinefeed.metrics import track_sign_in, update_active_sessions
from cinefeed.pagination import Pagination

logger = get_logger(__name__)

bp = Blueprint("pages", __name__)

CATEGORY_LABELS = {
    "popular": "Popular",
    "top-rated": "Top Rated",
    "now-playing": "Now Playing",
    "upcoming": "Upcoming",
}


def _movie_api() -> MovieApi:
    return current_app.extensions["movie_api"]


def _session_manager():
    return current_app.extensions["session_manager"]


def _authenticator():
    return current_app.extensions["authenticator"]


def load_current_user():
    """Resolve the signed-in user from the session cookie, if any."""
    user_session = _session_manager().get_session(session.get("session_id"))
    if user_session is None:
        session.pop("session_id", None)
        return None
    set_user_id(user_session.user.id)
    return user_session.user


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        g.user = load_current_user()
        if g.user is None:
            return redirect(url_for("pages.auth_page"))
        return view(*args, **kwargs)
    return wrapper


def _page_arg() -> int:
    return max(request.args.get("page", 1, type=int) or 1, 1)


@bp.route("/")
@login_required
def home():
    """
    GET /?category=popular&page=1
    Home feed: one category listing with pagination.
    """
    category = request.args.get("category", "popular")
    if category not in CATEGORY_LABELS:
        category = "popular"
    page = _page_arg()

    movies, pagination, error = [], None, None
    try:
        listing = _movie_api().get_movie_list(category, page)
        movies = listing.results
        pagination = Pagination(listing.page, listing.capped_total_pages)
        if page == 1 and movies:
            flash(f"Loaded {len(movies)} movies", "success")
    except MovieApiError as e:
        logger.error("home_feed_failed", category=category, page=page, error=e.message)
        error = e.message
        flash("Failed to fetch movies. Please try again later.", "error")

    return render_template(
        "index.html",
        user=g.user,
        categories=CATEGORY_LABELS,
        category=category,
        movies=movies,
        pagination=pagination,
        page_endpoint="pages.home",
        page_args={"category": category},
        page=page,
        error=error,
    )


@bp.route("/search")
@login_required
def search():
    """
    GET /search?q=inception&page=1
    """
    query = request.args.get("q", "").strip()
    page = _page_arg()

    movies, pagination, total_results, error = [], None, 0, None
    if query:
        try:
            listing = _movie_api().search_movies(query, page)
            movies = listing.results
            total_results = listing.total_results
            pagination = Pagination(listing.page, listing.capped_total_pages)
        except MovieApiError as e:
            logger.error("search_failed", page=page, error=e.message)
            error = "Failed to search movies. Please try again later."

    return render_template(
        "search.html",
        user=g.user,
        query=query,
        movies=movies,
        pagination=pagination,
        page_endpoint="pages.search",
        page_args={"q": query},
        total_results=total_results,
        page=page,
        error=error,
    )


@bp.route("/movie/<int:movie_id>")
@login_required
def movie_detail(movie_id):
    """
    GET /movie/<id>
    Details and credits are fetched concurrently; either failing fails the page.
    """
    api = _movie_api()
    movie, credits, error = None, None, None

    with ThreadPoolExecutor(max_workers=2) as executor:
        # workers run in a copy of the request contextvars (request_id, user_id)
        details_future = executor.submit(contextvars.copy_context().run, api.get_movie_details, movie_id)
        credits_future = executor.submit(contextvars.copy_context().run, api.get_movie_credits, movie_id)
        try:
            movie = details_future.result()
            credits = credits_future.result()
        except MovieApiError as e:
            logger.error("movie_detail_failed", movie_id=movie_id, error=e.message)
            movie, credits = None, None
            error = "Failed to load movie details. Please try again later."

    status = 200
    if error is not None:
        status = 404 if _is_not_found(details_future) else 502

    return render_template(
        "movie.html",
        user=g.user,
        movie=movie,
        credits=credits,
        error=error,
        movie_id=movie_id,
    ), status


def _is_not_found(future) -> bool:
    exc = future.exception() if future.done() else None
    return isinstance(exc, MovieApiError) and exc.status_code == 404


@bp.route("/auth", methods=["GET"])
def auth_page():
    if load_current_user() is not None:
        return redirect(url_for("pages.home"))
    return render_template("auth.html", mode=request.args.get("mode", "signin"), error=None, email="",
                           supports_google=_authenticator().supports_google)


def _start_session(user, method: str):
    manager = _session_manager()
    manager.delete_session(session.get("session_id"))
    manager.cleanup_expired_sessions()
    user_session = manager.create_session(user)
    session.clear()
    session["session_id"] = user_session.session_id
    set_user_id(user.id)
    track_sign_in(method, success=True)
    update_active_sessions(manager.get_active_session_count())
    logger.info("user_signed_in", method=method, backend=_authenticator().name)


def _auth_error(mode: str, method: str, email: str, error: AuthenticationError):
    track_sign_in(method, success=False)
    logger.info("sign_in_rejected", method=method, reason=error.message)
    return render_template("auth.html", mode=mode, error=error.message, email=email,
                           supports_google=_authenticator().supports_google), 400


@bp.route("/auth/signin", methods=["POST"])
def sign_in():
    email = request.form.get("email", "").strip()
    password = request.form.get("password", "")
    try:
        user = _authenticator().sign_in(email, password)
    except AuthenticationError as e:
        return _auth_error("signin", "password", email, e)
    _start_session(user, "password")
    flash("You have been signed in successfully", "success")
    return redirect(url_for("pages.home"))


@bp.route("/auth/signup", methods=["POST"])
def sign_up():
    email = request.form.get("email", "").strip()
    password = request.form.get("password", "")
    try:
        user = _authenticator().sign_up(email, password)
    except AuthenticationError as e:
        return _auth_error("signup", "signup", email, e)
    _start_session(user, "signup")
    flash("Your account has been created successfully", "success")
    return redirect(url_for("pages.home"))


@bp.route("/auth/google", methods=["POST"])
def sign_in_with_google():
    try:
        user = _authenticator().sign_in_with_google()
    except AuthenticationError as e:
        return _auth_error("signin", "google", "", e)
    _start_session(user, "google")
    return redirect(url_for("pages.home"))


@bp.route("/auth/signout", methods=["POST"])
def sign_out():
    manager = _session_manager()
    session_id = session.get("session_id")
    user_session = manager.get_session(session_id)
    if user_session is not None:
        try:
            _authenticator().sign_out(user_session.user)
        except AuthenticationError as e:
            flash(e.message, "error")
            return redirect(url_for("pages.home"))
        logger.info("user_signed_out", user_id=user_session.user.id)
    manager.delete_session(session_id)
    update_active_sessions(manager.get_active_session_count())
    session.clear()
    return redirect(url_for("pages.auth_page"))
