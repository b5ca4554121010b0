"""
CineFeed - Movie discovery web app

A Flask-based application that browses and searches TMDB movie listings
through a same-origin proxy that keeps the TMDB credential server-side.
"""

__version__ = "1.0.0"

# Export API client for external use
from .api_client import (
    MovieApi,
    MovieApiError,
    HttpProxyTransport,
    LocalProxyTransport,
    get_image_url,
    get_backdrop_url,
)
from .pagination import visible_pages

__all__ = [
    "MovieApi",
    "MovieApiError",
    "HttpProxyTransport",
    "LocalProxyTransport",
    "get_image_url",
    "get_backdrop_url",
    "visible_pages",
]
