"""
Session Manager for CineFeed.
Holds the signed-in user for each browser session. The browser only keeps the
session id (in the signed Flask cookie); sessions are created on sign-in and
destroyed on sign-out.
"""
import uuid
from datetime import datetime, timedelta
from typing import Dict, Optional
import threading

from cinefeed.auth import User


class UserSession:
    """Data structure to hold session information."""

    def __init__(self, session_id: str, user: User):
        self.session_id = session_id
        self.user = user
        self.created_at = datetime.now()
        self.last_accessed = datetime.now()

    def touch(self):
        self.last_accessed = datetime.now()


class SessionManager:
    """Manages signed-in user sessions."""

    def __init__(self, session_timeout_minutes: int = 60):
        self._sessions: Dict[str, UserSession] = {}
        self._lock = threading.Lock()
        self.session_timeout = timedelta(minutes=session_timeout_minutes)

    def create_session(self, user: User) -> UserSession:
        """Create a session for a freshly signed-in user."""
        session_id = str(uuid.uuid4())
        user_session = UserSession(session_id, user)
        with self._lock:
            self._sessions[session_id] = user_session
        return user_session

    def get_session(self, session_id: Optional[str]) -> Optional[UserSession]:
        """Get session by id; expired sessions are dropped and None is returned."""
        if not session_id:
            return None
        with self._lock:
            user_session = self._sessions.get(session_id)
            if user_session:
                if datetime.now() - user_session.last_accessed > self.session_timeout:
                    del self._sessions[session_id]
                    return None
                user_session.touch()
            return user_session

    def delete_session(self, session_id: Optional[str]) -> bool:
        with self._lock:
            if session_id in self._sessions:
                del self._sessions[session_id]
                return True
            return False

    def cleanup_expired_sessions(self) -> int:
        """Remove expired sessions. Returns how many were removed."""
        with self._lock:
            now = datetime.now()
            expired = [
                sid for sid, user_session in self._sessions.items()
                if now - user_session.last_accessed > self.session_timeout
            ]
            for sid in expired:
                del self._sessions[sid]
            return len(expired)

    def get_active_session_count(self) -> int:
        with self._lock:
            return len(self._sessions)
