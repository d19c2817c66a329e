"""Session management for in-memory storage."""

from datetime import timedelta

from cuid2 import cuid_wrapper

from clinic.models.session import Session
from clinic.models.user import User
from clinic.utils.logging import get_logger
from clinic.utils.time import utc_now

logger = get_logger(__name__)

cuid = cuid_wrapper()


class InMemorySessionManager:
    """Keeps login sessions in process memory."""

    def __init__(self, session_timeout_minutes: int = 60):
        """Initialize session manager.

        Args:
            session_timeout_minutes: Minutes of inactivity before a session expires
        """
        self.sessions: dict[str, Session] = {}
        self.session_timeout = timedelta(minutes=session_timeout_minutes)

    def create_session(self, user: User) -> Session:
        """Start a session for an authenticated user."""
        self._cleanup_expired_sessions()

        session = Session(session_id=cuid(), user=user)
        self.sessions[session.session_id] = session
        logger.info(f"Created session {session.session_id} for user {user.id}")
        return session

    def get_session(self, session_id: str) -> Session | None:
        """Get existing session by ID.

        Args:
            session_id: Session identifier

        Returns:
            Session if found and not expired, None otherwise
        """
        self._cleanup_expired_sessions()

        session = self.sessions.get(session_id)
        if session:
            session.update_activity()
        return session

    def delete_session(self, session_id: str) -> bool:
        """Delete a session (logout).

        Args:
            session_id: Session identifier

        Returns:
            True if session was deleted, False if not found
        """
        if session_id in self.sessions:
            del self.sessions[session_id]
            return True
        return False

    def _cleanup_expired_sessions(self) -> None:
        """Remove expired sessions from memory."""
        current_time = utc_now()
        expired_sessions = [
            session_id
            for session_id, session in self.sessions.items()
            if current_time - session.last_activity > self.session_timeout
        ]

        for session_id in expired_sessions:
            del self.sessions[session_id]

    def get_session_count(self) -> int:
        """Get current number of active sessions."""
        self._cleanup_expired_sessions()
        return len(self.sessions)
