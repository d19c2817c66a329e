"""Session state for authenticated users."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from clinic.models.user import User
from clinic.services.authorization import Principal
from clinic.utils.logging import get_logger
from clinic.utils.time import utc_now

logger = get_logger(__name__)


@dataclass
class Session:
    """Login session bound to one user."""

    session_id: str
    user: User
    created_at: datetime = field(default_factory=utc_now)
    last_activity: datetime = field(default_factory=utc_now)

    @property
    def principal(self) -> Principal:
        """Identity handed to the authorization gate."""
        return Principal(role=self.user.role, linked_patient_id=self.user.patient_id)

    def as_dict(self) -> dict[str, Any]:
        """Return the session as a dictionary."""
        return {
            "session_id": self.session_id,
            "user_id": self.user.id,
            "role": self.user.role.value,
            "patient_id": self.user.patient_id,
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
        }

    def update_activity(self) -> None:
        """Update the last activity timestamp."""
        self.last_activity = utc_now()
