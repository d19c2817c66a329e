"""Built-in demo dataset written on first run."""

from dataclasses import dataclass, field
from typing import Any

from clinic.utils.security import hash_password


@dataclass(frozen=True)
class SeedData:
    """Documents written to empty storage keys by ``initialize``."""

    patients: list[dict[str, Any]] = field(default_factory=list)
    incidents: list[dict[str, Any]] = field(default_factory=list)
    users: list[dict[str, Any]] = field(default_factory=list)


DEMO_ADMIN_EMAIL = "admin@entnt.in"
DEMO_ADMIN_PASSWORD = "admin123"
DEMO_PATIENT_EMAIL = "john@entnt.in"
DEMO_PATIENT_PASSWORD = "patient123"


def create_demo_seed() -> SeedData:
    """Create the demo clinic: one administrator and one patient with a checkup."""
    return SeedData(
        users=[
            {
                "id": "1",
                "role": "Admin",
                "email": DEMO_ADMIN_EMAIL,
                "passwordHash": hash_password(DEMO_ADMIN_PASSWORD),
                "name": "Dr. Smith",
            },
            {
                "id": "2",
                "role": "Patient",
                "email": DEMO_PATIENT_EMAIL,
                "passwordHash": hash_password(DEMO_PATIENT_PASSWORD),
                "patientId": "p1",
                "name": "John Doe",
            },
        ],
        patients=[
            {
                "id": "p1",
                "name": "John Doe",
                "dob": "1990-05-10",
                "contact": "1234567890",
                "email": DEMO_PATIENT_EMAIL,
                "healthInfo": "No allergies",
                "createdAt": "2024-01-01T00:00:00Z",
            },
        ],
        incidents=[
            {
                "id": "i1",
                "patientId": "p1",
                "title": "General Checkup",
                "description": "Annual medical checkup",
                "comments": "All tests completed",
                "appointmentDate": "2025-01-15T10:00:00Z",
                "cost": 100,
                "treatment": "General examination and blood work",
                "status": "Scheduled",
                "nextDate": "2025-01-22T10:00:00Z",
                "files": [],
            },
        ],
    )


DEFAULT_SEED = create_demo_seed()
