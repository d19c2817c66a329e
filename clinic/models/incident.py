"""Incident (appointment and treatment) data models."""

from datetime import datetime
from enum import StrEnum
from typing import NewType

from pydantic import Field, field_validator

from clinic.models.base import StoredRecord, blank_to_none
from clinic.models.patient import PatientId
from clinic.utils.time import as_utc

IncidentId = NewType("IncidentId", str)


class IncidentStatus(StrEnum):
    """Lifecycle status of an incident."""

    SCHEDULED = "Scheduled"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class Attachment(StoredRecord):
    """File attached to an incident.

    The content reference is produced by whoever ingested the file (usually a
    data URL) and is stored untouched.
    """

    name: str = ""
    size: int | None = None
    mime_type: str | None = Field(default=None, alias="type")
    content_ref: str | None = Field(default=None, alias="url")


class Incident(StoredRecord):
    """Incident record stored under the ``incidents`` key."""

    id: IncidentId
    patient_id: PatientId = Field(default=PatientId(""), alias="patientId")
    title: str = ""
    description: str = ""
    comments: str | None = None
    treatment_notes: str | None = Field(default=None, alias="treatment")
    appointment_date_time: datetime | None = Field(default=None, alias="appointmentDate")
    next_appointment_date_time: datetime | None = Field(default=None, alias="nextDate")
    cost: float | None = Field(default=None, ge=0)
    status: IncidentStatus = IncidentStatus.SCHEDULED
    attachments: tuple[Attachment, ...] = Field(default=(), alias="files")

    @field_validator("appointment_date_time", "next_appointment_date_time", "cost", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        return blank_to_none(value)

    @field_validator("appointment_date_time", "next_appointment_date_time")
    @classmethod
    def _normalize_datetime(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None

    @field_validator("attachments", mode="before")
    @classmethod
    def _missing_attachments(cls, value):
        return () if value is None else value
