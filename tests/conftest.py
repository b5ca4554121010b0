import pytest
from unittest.mock import MagicMock

from cinefeed.app import create_app
from cinefeed.config import Settings
from cinefeed.proxy import TMDBProxy


@pytest.fixture
def settings():
    return Settings(
        tmdb_api_key="test-api-key",
        secret_key="test-secret-key",
        log_level="WARNING",
    )


@pytest.fixture
def upstream_session():
    """Stands in for the requests.Session the proxy talks to TMDB with."""
    return MagicMock()


@pytest.fixture
def proxy(settings, upstream_session):
    return TMDBProxy(settings, session=upstream_session)


@pytest.fixture
def app(settings, proxy):
    flask_app = create_app(settings, proxy=proxy)
    flask_app.config["TESTING"] = True
    yield flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def signed_in_client(client):
    response = client.post("/auth/signin", data={"email": "viewer@example.com", "password": "secret123"})
    assert response.status_code == 302
    return client


@pytest.fixture
def popular_page():
    return {
        "page": 1,
        "results": [
            {
                "id": 27205,
                "title": "Inception",
                "overview": "A thief who steals corporate secrets...",
                "poster_path": "/inception.jpg",
                "backdrop_path": "/inception_bg.jpg",
                "release_date": "2010-07-15",
                "vote_average": 8.4,
                "vote_count": 35000,
                "genre_ids": [28, 878],
                "adult": False,
                "original_language": "en",
                "original_title": "Inception",
                "popularity": 95.3,
                "video": False,
            },
            {
                "id": 157336,
                "title": "Interstellar",
                "overview": "A team of explorers travel through a wormhole...",
                "poster_path": None,
                "backdrop_path": None,
                "release_date": "2014-11-05",
                "vote_average": 8.4,
                "vote_count": 34000,
                "genre_ids": [12, 18, 878],
                "adult": False,
                "original_language": "en",
                "original_title": "Interstellar",
                "popularity": 120.1,
                "video": False,
            },
        ],
        "total_pages": 45231,
        "total_results": 904620,
    }


@pytest.fixture
def movie_details():
    return {
        "id": 27205,
        "title": "Inception",
        "overview": "A thief who steals corporate secrets...",
        "poster_path": "/inception.jpg",
        "backdrop_path": "/inception_bg.jpg",
        "release_date": "2010-07-15",
        "vote_average": 8.4,
        "vote_count": 35000,
        "adult": False,
        "original_language": "en",
        "original_title": "Inception",
        "popularity": 95.3,
        "video": False,
        "genres": [{"id": 28, "name": "Action"}, {"id": 878, "name": "Science Fiction"}],
        "runtime": 148,
        "budget": 160000000,
        "revenue": 836836967,
        "production_companies": [{"id": 923, "name": "Legendary Pictures", "logo_path": "/legendary.png"}],
        "production_countries": [{"iso_3166_1": "US", "name": "United States of America"}],
        "spoken_languages": [{"english_name": "English", "iso_639_1": "en", "name": "English"}],
        "status": "Released",
        "tagline": "Your mind is the scene of the crime.",
        "imdb_id": "tt1375666",
    }


@pytest.fixture
def movie_credits():
    return {
        "id": 27205,
        "cast": [
            {"id": 6193, "name": "Leonardo DiCaprio", "character": "Cobb", "profile_path": "/leo.jpg", "order": 0},
            {"id": 24045, "name": "Joseph Gordon-Levitt", "character": "Arthur", "profile_path": None, "order": 1},
        ],
        "crew": [
            {"id": 525, "name": "Christopher Nolan", "job": "Director", "department": "Directing", "profile_path": None},
            {"id": 525, "name": "Christopher Nolan", "job": "Screenplay", "department": "Writing", "profile_path": None},
            {"id": 556, "name": "Emma Thomas", "job": "Producer", "department": "Production", "profile_path": None},
        ],
    }
