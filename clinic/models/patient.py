"""Patient data models."""

from datetime import date, datetime
from typing import NewType

from pydantic import Field, field_validator

from clinic.models.base import StoredRecord, blank_to_none
from clinic.utils.time import as_utc

PatientId = NewType("PatientId", str)


class Patient(StoredRecord):
    """Patient record stored under the ``patients`` key."""

    id: PatientId
    name: str = ""
    date_of_birth: date | None = Field(default=None, alias="dob")
    contact_number: str = Field(default="", alias="contact")
    email: str = ""
    health_info: str | None = Field(default=None, alias="healthInfo")
    created_at: datetime | None = Field(default=None, alias="createdAt")

    @field_validator("date_of_birth", mode="before")
    @classmethod
    def _blank_date_of_birth(cls, value):
        return blank_to_none(value)

    @field_validator("created_at")
    @classmethod
    def _normalize_created_at(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None
