"""Service wiring and request dependencies for the HTTP surface."""

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Request, status

from clinic.config import Settings
from clinic.models.session import Session
from clinic.services.auth import AuthService, LoginRateLimiter
from clinic.services.persistence import FileStorage, PersistenceAdapter
from clinic.services.record_store import RecordStore
from clinic.services.seed import DEFAULT_SEED
from clinic.services.session_manager import InMemorySessionManager
from clinic.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ClinicServices:
    """Everything the endpoints need, constructed once per application."""

    store: RecordStore
    auth: AuthService
    sessions: InMemorySessionManager

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClinicServices":
        """Build file-backed services, seeding and loading the stored data."""
        adapter = PersistenceAdapter(FileStorage(settings.storage_dir))
        seed = DEFAULT_SEED if settings.seed_demo_data else None

        store = RecordStore(adapter, seed=seed)
        store.initialize()
        store.hydrate()

        auth = AuthService(adapter, seed=seed, rate_limiter=LoginRateLimiter(settings.login_attempts_per_minute))
        auth.initialize()

        logger.info(f"Clinic services ready with storage at {settings.storage_dir}")
        return cls(store=store, auth=auth, sessions=InMemorySessionManager(settings.session_timeout_minutes))


def get_services(request: Request) -> ClinicServices:
    return request.app.state.services


def get_store(services: ClinicServices = Depends(get_services)) -> RecordStore:
    return services.store


def get_current_session(
    x_session_id: str | None = Header(default=None),
    services: ClinicServices = Depends(get_services),
) -> Session:
    """Resolve the caller's session from the ``X-Session-Id`` header."""
    if not x_session_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    session = services.sessions.get_session(x_session_id)
    if session is None:
        logger.warning(f"Invalid session ID provided: {x_session_id}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired session")
    return session
