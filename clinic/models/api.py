"""Request and response models for the HTTP surface."""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from clinic.models.user import Role


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str


class LoginRequest(BaseModel):
    """Credentials submitted to the login endpoint."""

    email: str
    password: str


class CurrentUser(BaseModel):
    """Authenticated identity as exposed to clients."""

    id: str
    name: str
    email: str
    role: Role
    patient_id: str | None = None


class LoginResponse(BaseModel):
    """Response model for a successful login."""

    session_id: str
    user: CurrentUser


class RecordFields(BaseModel):
    """Free-form record fields for create and update requests.

    Keys may be document keys (``dob``) or attribute names
    (``date_of_birth``); values are validated by the record models.
    """

    model_config = ConfigDict(extra="allow")

    def as_fields(self) -> dict[str, Any]:
        """Return the keys the client sent."""
        return dict(self.model_extra or {})


class IncidentView(BaseModel):
    """Incident joined with the name of its patient."""

    incident: dict[str, Any]
    patient_name: str
    cost_display: str


class CalendarDay(BaseModel):
    """One cell of a month grid; ``day`` is None for leading padding cells."""

    day: date | None
    is_today: bool = False
    appointments: list[IncidentView] = Field(default_factory=list)


class CalendarResponse(BaseModel):
    """Month grid for the calendar view."""

    year: int
    month: int
    month_name: str
    days: list[CalendarDay]


class WriteResponse(BaseModel):
    """Outcome of a create, update or delete request.

    ``applied`` is False when the target did not exist. ``persisted`` is False
    when the change is visible but could not be saved.
    """

    applied: bool
    persisted: bool
    record: dict[str, Any] | None = None
    error: str | None = None
