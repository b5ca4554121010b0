"""
TMDB credential lookup in Google Secret Manager.

Used by ``create_app`` when ``TMDB_API_KEY`` is absent from the environment:
the key found here is folded into the ``Settings`` object, never written back
to ``os.environ``. Outside GCP the lookup is skipped unless
ENABLE_GCP_SECRETS is set, so local runs do not stall on missing credentials.
"""

import os
from typing import Optional

from cinefeed.config import Settings
from cinefeed.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_SECRET_NAME = "tmdb-api-key"
GCP_MARKERS = ("GAE_ENV", "CLOUD_RUN_SERVICE", "GOOGLE_CLOUD_PROJECT")


def secret_version_name(project_id: str, secret_name: str, version: str = "latest") -> str:
    return f"projects/{project_id}/secrets/{secret_name}/versions/{version}"


def get_secret_from_manager(project_id: str, secret_name: str, client=None) -> str:
    """Read the latest version of a secret as text."""
    if client is None:
        from google.cloud import secretmanager

        client = secretmanager.SecretManagerServiceClient()
    response = client.access_secret_version(request={"name": secret_version_name(project_id, secret_name)})
    return response.payload.data.decode("utf-8")


def secrets_lookup_enabled() -> bool:
    return any(os.getenv(marker) for marker in GCP_MARKERS) or bool(os.getenv("ENABLE_GCP_SECRETS"))


def load_tmdb_key(project_id: Optional[str] = None, secret_name: Optional[str] = None) -> Optional[str]:
    """
    Fetch the TMDB key from Secret Manager.

    Args:
        project_id: GCP project (defaults to GCP_PROJECT)
        secret_name: Secret id (defaults to TMDB_SECRET_NAME, then "tmdb-api-key")

    Returns:
        The key, or None when the lookup is disabled, unconfigured or fails.
    """
    project_id = project_id or os.getenv("GCP_PROJECT")
    secret_name = secret_name or os.getenv("TMDB_SECRET_NAME") or DEFAULT_SECRET_NAME

    if not project_id:
        logger.warning("tmdb_secret_skipped", reason="GCP_PROJECT not set")
        return None
    if not secrets_lookup_enabled():
        logger.warning("tmdb_secret_skipped", reason="not running on GCP and ENABLE_GCP_SECRETS not set")
        return None

    try:
        key = get_secret_from_manager(project_id, secret_name)
    except Exception as e:
        logger.error("tmdb_secret_failed", project=project_id, secret=secret_name, error=str(e))
        return None
    logger.info("tmdb_secret_loaded", project=project_id, secret=secret_name)
    return key


def resolve_tmdb_key(settings: Settings) -> Settings:
    """Return ``settings`` with the TMDB key filled in from Secret Manager if it was missing."""
    if settings.tmdb_api_key:
        return settings
    key = load_tmdb_key()
    if not key:
        return settings
    return settings.with_overrides(tmdb_api_key=key)
