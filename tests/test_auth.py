"""Tests for login and session management."""

from datetime import timedelta

import pytest

from clinic.exceptions import AuthenticationError, RateLimitExceededError
from clinic.models.user import Role
from clinic.services.auth import USERS_KEY, AuthService, LoginRateLimiter
from clinic.services.seed import DEMO_ADMIN_EMAIL, DEMO_ADMIN_PASSWORD, DEMO_PATIENT_EMAIL, DEMO_PATIENT_PASSWORD
from clinic.services.session_manager import InMemorySessionManager


@pytest.fixture
def auth_service(adapter) -> AuthService:
    """Auth service over seeded in-memory storage."""
    service = AuthService(adapter, rate_limiter=LoginRateLimiter(attempts_per_minute=3))
    service.initialize()
    return service


class TestAuthService:
    """Tests for credential checks."""

    def test_initialize_seeds_demo_users(self, adapter, auth_service):
        """Test that demo accounts are written on first run."""
        assert [d["email"] for d in adapter.load(USERS_KEY)] == [DEMO_ADMIN_EMAIL, DEMO_PATIENT_EMAIL]
        assert "password" not in adapter.load(USERS_KEY)[0]

    def test_initialize_keeps_existing_users(self, adapter):
        """Test that stored accounts are not overwritten."""
        adapter.save(USERS_KEY, [])
        service = AuthService(adapter)
        service.initialize()
        assert service.users == []

    def test_admin_login(self, auth_service):
        """Test logging in as the administrator."""
        user = auth_service.login(DEMO_ADMIN_EMAIL, DEMO_ADMIN_PASSWORD)
        assert user.role == Role.ADMIN
        assert user.patient_id is None

    def test_patient_login_is_linked(self, auth_service):
        """Test that the patient account carries its patient id."""
        user = auth_service.login(DEMO_PATIENT_EMAIL.upper(), DEMO_PATIENT_PASSWORD)
        assert user.role == Role.PATIENT
        assert user.patient_id == "p1"

    def test_wrong_password(self, auth_service):
        """Test rejected credentials."""
        with pytest.raises(AuthenticationError, match="Invalid email or password"):
            auth_service.login(DEMO_ADMIN_EMAIL, "wrong")

    def test_unknown_email(self, auth_service):
        """Test an email with no account."""
        with pytest.raises(AuthenticationError):
            auth_service.login("nobody@entnt.in", "admin123")

    def test_failed_attempts_are_throttled(self, auth_service):
        """Test that repeated failures lock the email out."""
        for _ in range(3):
            with pytest.raises(AuthenticationError):
                auth_service.login(DEMO_ADMIN_EMAIL, "wrong")

        with pytest.raises(RateLimitExceededError):
            auth_service.login(DEMO_ADMIN_EMAIL, DEMO_ADMIN_PASSWORD)

        # Other accounts are unaffected
        assert auth_service.login(DEMO_PATIENT_EMAIL, DEMO_PATIENT_PASSWORD).id == "2"

    def test_successful_login_resets_failures(self, auth_service):
        """Test that a good login clears earlier failures."""
        for _ in range(2):
            with pytest.raises(AuthenticationError):
                auth_service.login(DEMO_ADMIN_EMAIL, "wrong")
        auth_service.login(DEMO_ADMIN_EMAIL, DEMO_ADMIN_PASSWORD)

        for _ in range(2):
            with pytest.raises(AuthenticationError):
                auth_service.login(DEMO_ADMIN_EMAIL, "wrong")
        assert auth_service.login(DEMO_ADMIN_EMAIL, DEMO_ADMIN_PASSWORD).role == Role.ADMIN


class TestSessionManager:
    """Tests for in-memory sessions."""

    def test_create_and_get(self, auth_service):
        """Test starting a session and reading it back."""
        manager = InMemorySessionManager()
        user = auth_service.login(DEMO_PATIENT_EMAIL, DEMO_PATIENT_PASSWORD)

        session = manager.create_session(user)

        assert manager.get_session(session.session_id) is session
        assert session.principal.role == Role.PATIENT
        assert session.principal.linked_patient_id == "p1"
        assert session.as_dict()["patient_id"] == "p1"

    def test_logout(self, auth_service):
        """Test deleting a session."""
        manager = InMemorySessionManager()
        session = manager.create_session(auth_service.login(DEMO_ADMIN_EMAIL, DEMO_ADMIN_PASSWORD))

        assert manager.delete_session(session.session_id) is True
        assert manager.delete_session(session.session_id) is False
        assert manager.get_session(session.session_id) is None

    def test_expired_sessions_are_dropped(self, auth_service):
        """Test session expiry."""
        manager = InMemorySessionManager(session_timeout_minutes=30)
        session = manager.create_session(auth_service.login(DEMO_ADMIN_EMAIL, DEMO_ADMIN_PASSWORD))
        session.last_activity -= timedelta(minutes=31)

        assert manager.get_session(session.session_id) is None
        assert manager.get_session_count() == 0
