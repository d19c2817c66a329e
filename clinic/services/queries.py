"""Read-only queries over a snapshot of patients and incidents.

Every function here is pure: it takes the collections it needs as arguments
and never mutates them. Results preserve the order of the input collections
unless the function sorts.
"""

import calendar
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal

from clinic.models.incident import Incident, IncidentStatus
from clinic.models.patient import Patient
from clinic.utils.time import as_utc, day_of

UNKNOWN_PATIENT = "Unknown Patient"
ALL_STATUSES = "All"
NO_COST = "—"

UPCOMING_LIMIT = 10
TOP_PATIENTS_LIMIT = 5

SortDirection = Literal["asc", "desc"]


@dataclass(frozen=True)
class PatientAppointmentCount:
    """A patient with the number of incidents referencing it."""

    patient: Patient
    appointment_count: int


@dataclass(frozen=True)
class DashboardStats:
    """Administrator dashboard figures."""

    total_patients: int
    total_incidents: int
    completed_count: int
    scheduled_count: int
    total_revenue: float
    upcoming: list[Incident] = field(default_factory=list)
    top_patients: list[PatientAppointmentCount] = field(default_factory=list)


@dataclass(frozen=True)
class PatientView:
    """Everything one patient may see about themselves."""

    patient: Patient | None
    incidents: list[Incident] = field(default_factory=list)
    upcoming: list[Incident] = field(default_factory=list)
    past: list[Incident] = field(default_factory=list)

    @property
    def completed_count(self) -> int:
        return sum(1 for incident in self.incidents if incident.status == IncidentStatus.COMPLETED)


# Joins


def resolve_patient(patient_id: str | None, patients: Iterable[Patient]) -> Patient | None:
    """Find the patient an incident points at, or None for a dangling reference."""
    if not patient_id:
        return None
    return next((patient for patient in patients if patient.id == patient_id), None)


def resolve_patient_name(incident_or_id: Incident | str | None, patients: Iterable[Patient]) -> str:
    """Name of the referenced patient, or ``UNKNOWN_PATIENT`` when it is gone."""
    patient_id = incident_or_id.patient_id if isinstance(incident_or_id, Incident) else incident_or_id
    patient = resolve_patient(patient_id, patients)
    return patient.name if patient else UNKNOWN_PATIENT


# Filtering and sorting


def filter_incidents(
    incidents: Iterable[Incident],
    patients: Sequence[Patient],
    *,
    text_query: str = "",
    status_filter: str = ALL_STATUSES,
) -> list[Incident]:
    """Filter incidents by free text and status.

    The text matches case-insensitively against title, description and the
    resolved patient name; any one match is enough. An empty query matches
    everything. ``status_filter`` is either "All" or an exact status value.
    """
    needle = text_query.lower()
    names = {patient.id: patient.name.lower() for patient in patients}

    def matches_text(incident: Incident) -> bool:
        if not needle:
            return True
        return (
            needle in incident.title.lower()
            or needle in incident.description.lower()
            or needle in names.get(incident.patient_id, "")
        )

    def matches_status(incident: Incident) -> bool:
        return status_filter == ALL_STATUSES or incident.status == status_filter

    return [incident for incident in incidents if matches_text(incident) and matches_status(incident)]


def filter_patients(patients: Iterable[Patient], text_query: str = "") -> list[Patient]:
    """Filter patients by name or email (case-insensitive) or contact number."""
    needle = text_query.lower()
    return [
        patient
        for patient in patients
        if needle in patient.name.lower() or needle in patient.email.lower() or text_query in patient.contact_number
    ]


def sort_by_appointment_date(incidents: Iterable[Incident], direction: SortDirection = "asc") -> list[Incident]:
    """Stable sort by appointment time.

    Incidents sharing a time keep their input order in both directions;
    incidents without a time go last.
    """
    if direction not in ("asc", "desc"):
        raise ValueError(f"Unknown sort direction: {direction!r}")

    incidents = list(incidents)
    dated = [incident for incident in incidents if incident.appointment_date_time is not None]
    undated = [incident for incident in incidents if incident.appointment_date_time is None]
    # sorted() is stable, and reverse=True keeps equal keys in input order
    dated = sorted(dated, key=lambda incident: incident.appointment_date_time, reverse=direction == "desc")
    return dated + undated


# Date bucketing


def upcoming(incidents: Iterable[Incident], now: datetime) -> list[Incident]:
    """Incidents at or after ``now``, in input order."""
    now = as_utc(now)
    return [i for i in incidents if i.appointment_date_time is not None and i.appointment_date_time >= now]


def past(incidents: Iterable[Incident], now: datetime) -> list[Incident]:
    """Incidents strictly before ``now``, in input order."""
    now = as_utc(now)
    return [i for i in incidents if i.appointment_date_time is not None and i.appointment_date_time < now]


def appointments_on_date(incidents: Iterable[Incident], calendar_date: date | None) -> list[Incident]:
    """Incidents whose appointment falls on ``calendar_date``."""
    if calendar_date is None:
        return []
    if isinstance(calendar_date, datetime):
        calendar_date = day_of(calendar_date)
    return [
        incident
        for incident in incidents
        if incident.appointment_date_time is not None and day_of(incident.appointment_date_time) == calendar_date
    ]


def calendar_month(year: int, month: int) -> list[date | None]:
    """Cells of a Sunday-first month grid.

    Days before the 1st are padded with None so the first real day lands in
    its weekday column.
    """
    first_weekday, days_in_month = calendar.monthrange(year, month)
    # monthrange counts Monday as 0; the grid starts on Sunday
    padding = (first_weekday + 1) % 7
    return [None] * padding + [date(year, month, day) for day in range(1, days_in_month + 1)]


# Aggregation


def completed_treatments(incidents: Iterable[Incident]) -> list[Incident]:
    """Incidents with status Completed."""
    return [incident for incident in incidents if incident.status == IncidentStatus.COMPLETED]


def total_revenue(incidents: Iterable[Incident]) -> float:
    """Sum of recorded costs of completed incidents; a missing cost adds nothing."""
    return sum((i.cost for i in completed_treatments(incidents) if i.cost is not None), 0.0)


def patient_appointment_counts(
    patients: Iterable[Patient], incidents: Iterable[Incident]
) -> list[PatientAppointmentCount]:
    """Number of incidents per patient, in patient order."""
    counts: dict[str, int] = {}
    for incident in incidents:
        counts[incident.patient_id] = counts.get(incident.patient_id, 0) + 1
    return [PatientAppointmentCount(patient, counts.get(patient.id, 0)) for patient in patients]


def aggregate_dashboard(patients: Sequence[Patient], incidents: Sequence[Incident], now: datetime) -> DashboardStats:
    """Compute the administrator dashboard figures."""
    top_patients = sorted(
        patient_appointment_counts(patients, incidents),
        key=lambda entry: entry.appointment_count,
        reverse=True,
    )[:TOP_PATIENTS_LIMIT]

    return DashboardStats(
        total_patients=len(patients),
        total_incidents=len(incidents),
        completed_count=sum(1 for i in incidents if i.status == IncidentStatus.COMPLETED),
        scheduled_count=sum(1 for i in incidents if i.status == IncidentStatus.SCHEDULED),
        total_revenue=total_revenue(incidents),
        upcoming=sort_by_appointment_date(upcoming(incidents, now), "asc")[:UPCOMING_LIMIT],
        top_patients=top_patients,
    )


def patient_scoped_view(
    patients: Iterable[Patient],
    incidents: Iterable[Incident],
    patient_id: str | None,
    now: datetime,
) -> PatientView:
    """Collect one patient's record and incidents.

    Upcoming incidents are soonest first, past incidents most recent first.
    """
    own = [incident for incident in incidents if patient_id and incident.patient_id == patient_id]
    return PatientView(
        patient=resolve_patient(patient_id, patients),
        incidents=own,
        upcoming=sort_by_appointment_date(upcoming(own, now), "asc"),
        past=sort_by_appointment_date(past(own, now), "desc"),
    )


# Formatting


def format_cost(cost: float | None) -> str:
    """Render a single cost; an absent cost is shown as a dash, not as zero."""
    if cost is None:
        return NO_COST
    return f"${cost:,.2f}"
