"""User accounts for the login flow."""

from enum import StrEnum

from pydantic import Field

from clinic.models.base import StoredRecord
from clinic.models.patient import PatientId


class Role(StrEnum):
    """Role of an authenticated user."""

    ADMIN = "Admin"
    PATIENT = "Patient"


class User(StoredRecord):
    """User account stored under the ``users`` key."""

    id: str
    role: Role
    email: str
    password_hash: str = Field(alias="passwordHash")
    name: str = ""
    patient_id: PatientId | None = Field(default=None, alias="patientId")
