"""
structlog setup for CineFeed.

Every log line is a JSON object (console output when FLASK_ENV=development or
DEBUG=1) carrying the service name, deployment environment and the
request/user ids bound in ``cinefeed.logging_context``.

The TMDB credential travels in upstream URLs as ``api_key=...``, so every
event passes through ``add_scrubbing`` before rendering.
"""

import logging
import os
import re
from typing import Any, Dict, List, Optional

import structlog

DEFAULT_LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SERVICE_NAME = "cinefeed"
REDACTED = "[REDACTED]"

# ...?page=2&api_key=abc123 -> ...?page=2&api_key=[REDACTED]
QUERY_KEY_PATTERN = re.compile(r'([?&](?:api_key|apikey|access_token)=)[^&\s"\']+', re.IGNORECASE)

# Credentials embedded in free text, e.g. error messages
INLINE_SECRET_PATTERNS = (
    re.compile(r'(tmdb[_\-]?api[_\-]?key["\s:=]+)([a-zA-Z0-9_\-]{16,})', re.IGNORECASE),
    re.compile(r'(api[_\-]?key["\s:=]+)([a-zA-Z0-9_\-]{16,})', re.IGNORECASE),
    re.compile(r'(bearer\s+)([a-zA-Z0-9_\-\.]{20,})', re.IGNORECASE),
)

EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')

# Values under these keys are dropped wholesale
SENSITIVE_FIELD_NAMES = frozenset({
    "api_key", "apikey", "api-key", "tmdb_api_key", "tmdb_key",
    "supabase_anon_key", "secret_key", "secret",
    "password", "passwd", "token", "access_token", "refresh_token",
    "authorization",
})

# Values under these keys are trusted as-is
SAFE_FIELD_NAMES = frozenset({
    "event", "level", "timestamp", "service", "environment",
    "request_id", "session_id", "status_code", "upstream_status", "duration_ms",
})


def _scrub_text(text: str) -> str:
    text = QUERY_KEY_PATTERN.sub(r'\1' + REDACTED, text)
    for pattern in INLINE_SECRET_PATTERNS:
        text = pattern.sub(r'\1' + REDACTED, text)
    # email addresses count as PII
    return EMAIL_PATTERN.sub('[EMAIL_REDACTED]', text)


def scrub_sensitive_data(value: Any, parent_key: Optional[str] = None) -> Any:
    """
    Return ``value`` with credentials and email addresses redacted.

    Dicts and lists are walked recursively; ``parent_key`` is the key the
    value was found under and decides field-level redaction.
    """
    if isinstance(value, dict):
        return {key: scrub_sensitive_data(item, key) for key, item in value.items()}
    if isinstance(value, list):
        return [scrub_sensitive_data(item, parent_key) for item in value]

    key = parent_key.lower() if parent_key else None
    if key in SAFE_FIELD_NAMES:
        return value
    if key in SENSITIVE_FIELD_NAMES:
        return REDACTED
    if isinstance(value, str):
        return _scrub_text(value)
    return value


def _environment() -> str:
    if os.getenv("GAE_ENV"):
        return "gcp-app-engine"
    if os.getenv("CLOUD_RUN_SERVICE"):
        return "gcp-cloud-run"
    return "local"


def add_app_context(logger: Any, method_name: str, event_dict: Dict) -> Dict:
    """structlog processor: tag the event with service and environment."""
    event_dict["service"] = SERVICE_NAME
    event_dict["environment"] = _environment()
    return event_dict


def add_scrubbing(logger: Any, method_name: str, event_dict: Dict) -> Dict:
    """structlog processor: redact secrets before rendering."""
    return scrub_sensitive_data(event_dict)


def _processors(dev_mode: bool) -> List[Any]:
    renderer = structlog.dev.ConsoleRenderer() if dev_mode else structlog.processors.JSONRenderer()
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_app_context,
        add_scrubbing,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]


def configure_structlog(level: Optional[str] = None):
    """
    (Re)configure structlog.

    Args:
        level: Minimum level name; defaults to the LOG_LEVEL environment variable
    """
    dev_mode = os.getenv("FLASK_ENV") == "development" or os.getenv("DEBUG") == "1"
    min_level = logging.getLevelName((level or DEFAULT_LOG_LEVEL).upper())

    structlog.configure(
        processors=_processors(dev_mode),
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    return structlog.get_logger(name)


configure_structlog()
