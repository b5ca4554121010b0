"""
Authentication for CineFeed.

Callers depend only on the ``Authenticator`` interface. Two implementations:
- DemoAuthenticator: accepts any well-formed email/password and fabricates a
  user record (no identity provider involved)
- SupabaseAuthenticator: delegates to Supabase Auth
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from cinefeed.config import Settings
from cinefeed.logging_config import get_logger

logger = get_logger(__name__)

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6
DEFAULT_AVATAR = "/placeholder.svg"


class AuthenticationError(Exception):
    """Sign-in, sign-up or sign-out failed; ``message`` is safe to show to the user."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


@dataclass(frozen=True)
class User:
    id: str
    email: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


def validate_credentials(email: str, password: str):
    """
    Check the sign-in form fields.

    Raises:
        AuthenticationError: with the message to display
    """
    if not email or not password:
        raise AuthenticationError("Please fill in all fields")
    if not EMAIL_REGEX.match(email):
        raise AuthenticationError("Please enter a valid email address")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise AuthenticationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )


class Authenticator(ABC):
    """Capability interface for identity backends."""

    name = "abstract"
    supports_google = False

    @abstractmethod
    def sign_in(self, email: str, password: str) -> User:
        ...

    @abstractmethod
    def sign_up(self, email: str, password: str) -> User:
        ...

    def sign_in_with_google(self) -> User:
        raise AuthenticationError("Google sign-in is not available")

    def sign_out(self, user: User):
        pass


class DemoAuthenticator(Authenticator):
    """Accepts any well-formed credentials. Nothing is verified."""

    name = "demo"
    supports_google = True

    def sign_in(self, email: str, password: str) -> User:
        validate_credentials(email, password)
        logger.info("demo_sign_in", email=email)
        return User(
            id="demo-user-123",
            email=email,
            full_name="Demo User",
            avatar_url=DEFAULT_AVATAR,
        )

    def sign_up(self, email: str, password: str) -> User:
        # Same as sign in for demo
        return self.sign_in(email, password)

    def sign_in_with_google(self) -> User:
        logger.info("demo_google_sign_in")
        return User(
            id="demo-google-user-123",
            email="demo@google.com",
            full_name="Google Demo User",
            avatar_url=DEFAULT_AVATAR,
        )


class SupabaseAuthenticator(Authenticator):
    """
    Email/password authentication through Supabase Auth.

    Args:
        url: Supabase project URL
        anon_key: Supabase anon (public) key
        client: Pre-built supabase Client (tests inject a mock)
    """

    name = "supabase"

    def __init__(self, url: Optional[str] = None, anon_key: Optional[str] = None, client=None):
        if client is None:
            from supabase import create_client

            if not url or not anon_key:
                raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY are required for the supabase backend")
            client = create_client(url, anon_key)
        self.client = client

    @staticmethod
    def _to_user(supabase_user) -> User:
        metadata = getattr(supabase_user, "user_metadata", None) or {}
        return User(
            id=str(supabase_user.id),
            email=supabase_user.email,
            full_name=metadata.get("full_name"),
            avatar_url=metadata.get("avatar_url") or DEFAULT_AVATAR,
        )

    def _authenticate(self, action: str, email: str, password: str) -> User:
        validate_credentials(email, password)
        credentials = {"email": email, "password": password}
        try:
            if action == "sign_up":
                response = self.client.auth.sign_up(credentials)
            else:
                response = self.client.auth.sign_in_with_password(credentials)
        except Exception as e:
            logger.warning("supabase_auth_failed", action=action, error=str(e))
            raise AuthenticationError(getattr(e, "message", None) or str(e)) from e

        if not response or not response.user:
            raise AuthenticationError("Invalid email or password")
        return self._to_user(response.user)

    def sign_in(self, email: str, password: str) -> User:
        return self._authenticate("sign_in", email, password)

    def sign_up(self, email: str, password: str) -> User:
        return self._authenticate("sign_up", email, password)

    def sign_out(self, user: User):
        try:
            self.client.auth.sign_out()
        except Exception as e:
            logger.warning("supabase_sign_out_failed", user_id=user.id, error=str(e))
            raise AuthenticationError("Failed to sign out. Please try again.") from e


def build_authenticator(settings: Settings) -> Authenticator:
    """Pick the identity backend named by ``settings.auth_backend``."""
    if settings.auth_backend == "supabase":
        if settings.supabase_url and settings.supabase_anon_key:
            return SupabaseAuthenticator(settings.supabase_url, settings.supabase_anon_key)
        logger.warning(
            "supabase_not_configured",
            message="AUTH_BACKEND=supabase but SUPABASE_URL/SUPABASE_ANON_KEY missing; using demo authenticator",
        )
    return DemoAuthenticator()
