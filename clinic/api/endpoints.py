"""API endpoints for the clinic record store.

Endpoints are consumers of the core: each mutation is checked against the
authorization gate before the record store is called.
"""

import calendar
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from clinic import __version__
from clinic.api.deps import ClinicServices, get_current_session, get_services, get_store
from clinic.exceptions import AuthenticationError, AuthorizationError, RateLimitExceededError
from clinic.models.api import (
    CalendarDay,
    CalendarResponse,
    CurrentUser,
    HealthResponse,
    IncidentView,
    LoginRequest,
    LoginResponse,
    RecordFields,
    WriteResponse,
)
from clinic.models.incident import Incident
from clinic.models.patient import Patient
from clinic.models.session import Session
from clinic.models.user import User
from clinic.services import queries
from clinic.services.authorization import Action, Resource, authorize, scope_incidents, scope_patients
from clinic.services.record_store import RecordStore, WriteResult
from clinic.utils.logging import audit, get_logger
from clinic.utils.time import utc_now

logger = get_logger(__name__)

router = APIRouter()


def _require(session: Session, action: Action, resource: Resource, target_patient_id: str | None) -> None:
    try:
        authorize(session.principal, action, resource, target_patient_id)
    except AuthorizationError as e:
        audit(session.user.id, "denied", target_patient_id, action=action.value, resource=resource.value)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e)) from e


def _write_response(
    session: Session, event: str, result: WriteResult, success_status: int = status.HTTP_200_OK
) -> JSONResponse:
    if result.applied:
        target = getattr(result.record, "id", None)
        audit(session.user.id, event, target, persisted=result.persisted)

    record = result.record.to_document() if result.record is not None else None
    if result.error is not None:
        logger.warning(f"{event} by user {session.user.id} is visible but not saved: {result.error}")
        body = WriteResponse(
            applied=result.applied,
            persisted=False,
            record=record,
            error=f"Your change is shown but could not be saved: {result.error}. Free up storage and retry.",
        )
        return JSONResponse(status_code=status.HTTP_507_INSUFFICIENT_STORAGE, content=body.model_dump())

    body = WriteResponse(applied=result.applied, persisted=result.persisted, record=record)
    return JSONResponse(status_code=success_status, content=body.model_dump())


def _invalid_fields(e: ValidationError) -> HTTPException:
    errors = e.errors(include_url=False, include_context=False, include_input=False)
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=jsonable_encoder(errors))


def _current_user(user: User) -> CurrentUser:
    return CurrentUser(id=user.id, name=user.name, email=user.email, role=user.role, patient_id=user.patient_id)


def _incident_view(incident: Incident, patients: tuple[Patient, ...]) -> IncidentView:
    return IncidentView(
        incident=incident.to_document(),
        patient_name=queries.resolve_patient_name(incident, patients),
        cost_display=queries.format_cost(incident.cost),
    )


# Health


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy", timestamp=utc_now(), version=__version__)


# Auth


@router.post("/auth/login", response_model=LoginResponse, tags=["Auth"])
def login(request: LoginRequest, services: ClinicServices = Depends(get_services)) -> LoginResponse:
    """Authenticate and start a session."""
    try:
        user = services.auth.login(request.email, request.password)
    except RateLimitExceededError as e:
        audit(request.email.strip().lower(), "login_throttled")
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=str(e)) from e
    except AuthenticationError as e:
        audit(request.email.strip().lower(), "login_failed")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e)) from e

    session = services.sessions.create_session(user)
    audit(user.id, "login", role=user.role.value)
    return LoginResponse(session_id=session.session_id, user=_current_user(user))


@router.post("/auth/logout", tags=["Auth"])
def logout(
    session: Session = Depends(get_current_session),
    services: ClinicServices = Depends(get_services),
) -> dict[str, bool]:
    """End the current session."""
    audit(session.user.id, "logout")
    return {"success": services.sessions.delete_session(session.session_id)}


@router.get("/auth/me", response_model=CurrentUser, tags=["Auth"])
def current_user(session: Session = Depends(get_current_session)) -> CurrentUser:
    """Return the authenticated user."""
    return _current_user(session.user)


# Patients


@router.get("/patients", tags=["Patients"])
def list_patients(
    q: str = "",
    session: Session = Depends(get_current_session),
    store: RecordStore = Depends(get_store),
) -> list[dict[str, Any]]:
    """List visible patients with their appointment counts."""
    snapshot = store.snapshot()
    visible = queries.filter_patients(scope_patients(session.principal, snapshot.patients), q)
    counts = queries.patient_appointment_counts(visible, snapshot.incidents)
    return [{**entry.patient.to_document(), "appointmentCount": entry.appointment_count} for entry in counts]


@router.post("/patients", tags=["Patients"])
def create_patient(
    fields: RecordFields,
    session: Session = Depends(get_current_session),
    store: RecordStore = Depends(get_store),
) -> JSONResponse:
    """Create a patient."""
    _require(session, Action.CREATE, Resource.PATIENT, None)
    try:
        result = store.add_patient(fields.as_fields())
    except ValidationError as e:
        raise _invalid_fields(e) from e
    return _write_response(session, "patient_created", result, status.HTTP_201_CREATED)


@router.get("/patients/{patient_id}", tags=["Patients"])
def get_patient(
    patient_id: str,
    session: Session = Depends(get_current_session),
    store: RecordStore = Depends(get_store),
) -> dict[str, Any]:
    """Return one patient."""
    _require(session, Action.READ, Resource.PATIENT, patient_id)
    patient = store.get_patient(patient_id)
    if patient is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    return patient.to_document()


@router.patch("/patients/{patient_id}", tags=["Patients"])
def update_patient(
    patient_id: str,
    fields: RecordFields,
    session: Session = Depends(get_current_session),
    store: RecordStore = Depends(get_store),
) -> JSONResponse:
    """Update a patient; unknown ids are reported as not applied."""
    _require(session, Action.UPDATE, Resource.PATIENT, patient_id)
    try:
        result = store.update_patient(patient_id, fields.as_fields())
    except ValidationError as e:
        raise _invalid_fields(e) from e
    return _write_response(session, "patient_updated", result)


@router.delete("/patients/{patient_id}", tags=["Patients"])
def delete_patient(
    patient_id: str,
    session: Session = Depends(get_current_session),
    store: RecordStore = Depends(get_store),
) -> JSONResponse:
    """Delete a patient and all of its incidents."""
    _require(session, Action.DELETE, Resource.PATIENT, patient_id)
    return _write_response(session, "patient_deleted", store.delete_patient(patient_id))


# Incidents


@router.get("/incidents", response_model=list[IncidentView], tags=["Incidents"])
def list_incidents(
    q: str = "",
    status_filter: str = Query(default=queries.ALL_STATUSES, alias="status"),
    direction: queries.SortDirection = "desc",
    session: Session = Depends(get_current_session),
    store: RecordStore = Depends(get_store),
) -> list[IncidentView]:
    """Search visible incidents, newest appointment first by default."""
    snapshot = store.snapshot()
    visible = scope_incidents(session.principal, snapshot.incidents)
    matched = queries.filter_incidents(visible, snapshot.patients, text_query=q, status_filter=status_filter)
    return [_incident_view(i, snapshot.patients) for i in queries.sort_by_appointment_date(matched, direction)]


@router.post("/incidents", tags=["Incidents"])
def create_incident(
    fields: RecordFields,
    session: Session = Depends(get_current_session),
    store: RecordStore = Depends(get_store),
) -> JSONResponse:
    """Create an incident; patients may only book for themselves."""
    data = Incident.normalize_fields(fields.as_fields())
    if not data.get("patient_id") and not session.principal.is_admin:
        data["patient_id"] = session.principal.linked_patient_id

    _require(session, Action.CREATE, Resource.INCIDENT, data.get("patient_id"))
    try:
        result = store.add_incident(data)
    except ValidationError as e:
        raise _invalid_fields(e) from e
    return _write_response(session, "incident_created", result, status.HTTP_201_CREATED)


@router.get("/incidents/{incident_id}", response_model=IncidentView, tags=["Incidents"])
def get_incident(
    incident_id: str,
    session: Session = Depends(get_current_session),
    store: RecordStore = Depends(get_store),
) -> IncidentView:
    """Return one incident with its patient name."""
    incident = store.get_incident(incident_id)
    _require(session, Action.READ, Resource.INCIDENT, incident.patient_id if incident else None)
    if incident is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Incident not found")
    return _incident_view(incident, store.patients)


@router.patch("/incidents/{incident_id}", tags=["Incidents"])
def update_incident(
    incident_id: str,
    fields: RecordFields,
    session: Session = Depends(get_current_session),
    store: RecordStore = Depends(get_store),
) -> JSONResponse:
    """Update an incident; unknown ids are reported as not applied."""
    incident = store.get_incident(incident_id)
    _require(session, Action.UPDATE, Resource.INCIDENT, incident.patient_id if incident else None)
    try:
        result = store.update_incident(incident_id, fields.as_fields())
    except ValidationError as e:
        raise _invalid_fields(e) from e
    return _write_response(session, "incident_updated", result)


@router.delete("/incidents/{incident_id}", tags=["Incidents"])
def delete_incident(
    incident_id: str,
    session: Session = Depends(get_current_session),
    store: RecordStore = Depends(get_store),
) -> JSONResponse:
    """Delete an incident."""
    incident = store.get_incident(incident_id)
    _require(session, Action.DELETE, Resource.INCIDENT, incident.patient_id if incident else None)
    return _write_response(session, "incident_deleted", store.delete_incident(incident_id))


# Views


@router.get("/dashboard", tags=["Views"])
def dashboard(
    session: Session = Depends(get_current_session),
    store: RecordStore = Depends(get_store),
) -> dict[str, Any]:
    """Administrator KPIs, or the patient's own summary for patient users."""
    snapshot = store.snapshot()
    now = utc_now()

    if not session.principal.is_admin:
        return _patient_view_payload(session, snapshot.patients, snapshot.incidents)

    stats = queries.aggregate_dashboard(snapshot.patients, snapshot.incidents, now)
    return {
        "role": session.user.role.value,
        "totalPatients": stats.total_patients,
        "totalIncidents": stats.total_incidents,
        "completedTreatments": stats.completed_count,
        "pendingTreatments": stats.scheduled_count,
        "totalRevenue": stats.total_revenue,
        "upcomingAppointments": [
            _incident_view(i, snapshot.patients).model_dump() for i in stats.upcoming
        ],
        "topPatients": [
            {**entry.patient.to_document(), "appointmentCount": entry.appointment_count}
            for entry in stats.top_patients
        ],
    }


@router.get("/calendar/{year}/{month}", response_model=CalendarResponse, tags=["Views"])
def calendar_view(
    year: int,
    month: int,
    session: Session = Depends(get_current_session),
    store: RecordStore = Depends(get_store),
) -> CalendarResponse:
    """Month grid with the visible appointments of each day."""
    if not 1 <= month <= 12:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Month must be 1-12")

    snapshot = store.snapshot()
    visible = scope_incidents(session.principal, snapshot.incidents)
    today = utc_now().date()

    days = []
    for day in queries.calendar_month(year, month):
        appointments = queries.sort_by_appointment_date(queries.appointments_on_date(visible, day))
        days.append(
            CalendarDay(
                day=day,
                is_today=day == today,
                appointments=[_incident_view(i, snapshot.patients) for i in appointments],
            )
        )
    return CalendarResponse(year=year, month=month, month_name=calendar.month_name[month], days=days)


@router.get("/me/appointments", tags=["Views"])
def my_appointments(
    session: Session = Depends(get_current_session),
    store: RecordStore = Depends(get_store),
) -> dict[str, Any]:
    """Patient portal: own record, upcoming and past appointments."""
    if not session.principal.linked_patient_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No patient record linked to this account")
    snapshot = store.snapshot()
    return _patient_view_payload(session, snapshot.patients, snapshot.incidents)


def _patient_view_payload(
    session: Session, patients: tuple[Patient, ...], incidents: tuple[Incident, ...]
) -> dict[str, Any]:
    view = queries.patient_scoped_view(patients, incidents, session.principal.linked_patient_id, utc_now())
    return {
        "role": session.user.role.value,
        "patient": view.patient.to_document() if view.patient else None,
        "totalAppointments": len(view.incidents),
        "completedTreatments": view.completed_count,
        "upcomingAppointments": [_incident_view(i, patients).model_dump() for i in view.upcoming],
        "pastAppointments": [_incident_view(i, patients).model_dump() for i in view.past],
    }
