"""Role-based access rules for patient and incident operations.

The gate holds no state. Consumers ask it before calling a record store
mutation; the store itself performs whatever it is asked to do.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum

from clinic.exceptions import AuthorizationError
from clinic.models.incident import Incident
from clinic.models.patient import Patient
from clinic.models.user import Role


class Action(StrEnum):
    """Operation a caller wants to perform."""

    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Resource(StrEnum):
    """Kind of record an operation targets."""

    PATIENT = "patient"
    INCIDENT = "incident"


@dataclass(frozen=True)
class Principal:
    """Authenticated identity: a role and, for patients, the linked record."""

    role: Role
    linked_patient_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def is_allowed(principal: Principal, action: Action, resource: Resource, target_patient_id: str | None) -> bool:
    """Decide whether ``principal`` may perform ``action`` on a record.

    Args:
        principal: Caller identity
        action: Requested operation
        resource: Kind of record targeted
        target_patient_id: Patient the record belongs to (the patient's own id
            for patient records, ``patient_id`` for incidents)

    Returns:
        True if the operation is permitted
    """
    if principal.is_admin:
        return True

    if principal.role != Role.PATIENT or not principal.linked_patient_id:
        return False

    owns_target = target_patient_id == principal.linked_patient_id
    if action == Action.READ:
        return owns_target
    if action == Action.CREATE and resource == Resource.INCIDENT:
        return owns_target
    return False


def authorize(principal: Principal, action: Action, resource: Resource, target_patient_id: str | None) -> None:
    """Raise ``AuthorizationError`` unless the operation is permitted."""
    if not is_allowed(principal, action, resource, target_patient_id):
        raise AuthorizationError(f"{principal.role.value} may not {action.value} this {resource.value}")


def scope_patients(principal: Principal, patients: Iterable[Patient]) -> list[Patient]:
    """Patients the principal may read."""
    return [p for p in patients if is_allowed(principal, Action.READ, Resource.PATIENT, p.id)]


def scope_incidents(principal: Principal, incidents: Iterable[Incident]) -> list[Incident]:
    """Incidents the principal may read."""
    return [i for i in incidents if is_allowed(principal, Action.READ, Resource.INCIDENT, i.patient_id)]
