"""Authoritative in-memory store for patient and incident records."""

import threading
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any, Self

from cuid2 import cuid_wrapper
from pydantic import ValidationError

from clinic.exceptions import PersistenceError
from clinic.models.incident import Incident, IncidentId
from clinic.models.patient import Patient, PatientId
from clinic.services.persistence import PersistenceAdapter
from clinic.services.seed import DEFAULT_SEED, SeedData
from clinic.utils.logging import get_logger
from clinic.utils.time import utc_now

logger = get_logger(__name__)

cuid = cuid_wrapper()

PATIENTS_KEY = "patients"
INCIDENTS_KEY = "incidents"


@dataclass(frozen=True)
class Snapshot:
    """Both collections as they were at one instant."""

    patients: tuple[Patient, ...] = ()
    incidents: tuple[Incident, ...] = ()


@dataclass
class WriteResult[T]:
    """Outcome of a store mutation.

    ``applied`` tells whether the in-memory collections changed and
    ``persisted`` whether the change reached storage. A failed save leaves the
    change applied in memory with the error attached, so the caller can show
    it and retry with ``RecordStore.flush``.
    """

    record: T | None = None
    applied: bool = False
    persisted: bool = False
    error: PersistenceError | None = None

    @property
    def ok(self) -> bool:
        """True unless persisting the change failed."""
        return self.error is None

    def raise_for_error(self) -> Self:
        """Raise the persistence error, if any; otherwise return self."""
        if self.error is not None:
            raise self.error
        return self


class RecordStore:
    """Owns the patient and incident collections.

    Records are mutated only through this class. Every mutation replaces the
    snapshot in a single assignment and saves the affected collections right
    away. The store is mechanism only: it does not check who is asking, callers
    consult ``clinic.services.authorization`` first.

    Only one writer per storage location is supported. Two stores sharing a
    directory overwrite each other's last save.
    """

    def __init__(self, adapter: PersistenceAdapter, *, seed: SeedData | None = DEFAULT_SEED):
        """Initialize an empty store over a persistence adapter.

        Args:
            adapter: Adapter used for every read and write
            seed: Dataset written to never-saved keys by ``initialize``; None starts empty
        """
        self.adapter = adapter
        self.seed = seed
        self._snapshot = Snapshot()
        self._unsynced: set[str] = set()
        self._lock = threading.RLock()

    # Lifecycle

    def initialize(self) -> None:
        """Write the seed collections to keys that were never saved."""
        seed = self.seed or SeedData()
        with self._lock:
            if not self.adapter.exists(PATIENTS_KEY):
                logger.info(f"Seeding '{PATIENTS_KEY}' with {len(seed.patients)} records")
                self.adapter.save(PATIENTS_KEY, [Patient.from_document(d).to_document() for d in seed.patients])
            if not self.adapter.exists(INCIDENTS_KEY):
                logger.info(f"Seeding '{INCIDENTS_KEY}' with {len(seed.incidents)} records")
                self.adapter.save(INCIDENTS_KEY, [Incident.from_document(d).to_document() for d in seed.incidents])

    def hydrate(self) -> Snapshot:
        """Replace the in-memory collections with what storage holds.

        Raises:
            PersistenceError: If a stored collection or one of its documents is
                unreadable; memory is left as it was
        """
        with self._lock:
            patients = self._load(Patient, PATIENTS_KEY)
            incidents = self._load(Incident, INCIDENTS_KEY)
            self._snapshot = Snapshot(patients=patients, incidents=incidents)
            self._unsynced.clear()
            logger.info(f"Hydrated {len(patients)} patients and {len(incidents)} incidents")
            return self._snapshot

    def close(self) -> None:
        """Drop the in-memory collections."""
        with self._lock:
            if self._unsynced:
                logger.warning(f"Closing store with unsaved collections: {sorted(self._unsynced)}")
            self._snapshot = Snapshot()
            self._unsynced.clear()

    # Reads

    def snapshot(self) -> Snapshot:
        """Current collections; safe to hand to the query engine."""
        return self._snapshot

    @property
    def patients(self) -> tuple[Patient, ...]:
        return self._snapshot.patients

    @property
    def incidents(self) -> tuple[Incident, ...]:
        return self._snapshot.incidents

    @property
    def unsynced_keys(self) -> frozenset[str]:
        """Storage keys whose last save failed."""
        return frozenset(self._unsynced)

    def get_patient(self, patient_id: str) -> Patient | None:
        return next((p for p in self._snapshot.patients if p.id == patient_id), None)

    def get_incident(self, incident_id: str) -> Incident | None:
        return next((i for i in self._snapshot.incidents if i.id == incident_id), None)

    # Patients

    def add_patient(self, fields: Mapping[str, Any]) -> WriteResult[Patient]:
        """Create a patient with a fresh id and creation time."""
        with self._lock:
            data = Patient.normalize_fields(fields)
            data["id"] = PatientId(self._new_id("p", {p.id for p in self._snapshot.patients}))
            data["created_at"] = utc_now()
            patient = Patient.model_validate(data)

            snapshot = replace(self._snapshot, patients=(*self._snapshot.patients, patient))
            logger.info(f"Added patient {patient.id}")
            return self._commit(snapshot, patient, PATIENTS_KEY)

    def update_patient(self, patient_id: str, partial: Mapping[str, Any]) -> WriteResult[Patient]:
        """Merge ``partial`` into a patient; unknown ids are ignored."""
        with self._lock:
            patients = self._snapshot.patients
            index = _index_of(patients, patient_id)
            if index is None:
                logger.debug(f"Ignoring update of unknown patient {patient_id}")
                return WriteResult()

            updated = patients[index].merged(partial, protected=("id", "created_at"))
            snapshot = replace(self._snapshot, patients=(*patients[:index], updated, *patients[index + 1 :]))
            logger.info(f"Updated patient {patient_id}")
            return self._commit(snapshot, updated, PATIENTS_KEY)

    def delete_patient(self, patient_id: str) -> WriteResult[Patient]:
        """Delete a patient together with every incident referencing it."""
        with self._lock:
            removed = self.get_patient(patient_id)
            patients = tuple(p for p in self._snapshot.patients if p.id != patient_id)
            incidents = tuple(i for i in self._snapshot.incidents if i.patient_id != patient_id)
            cascaded = len(self._snapshot.incidents) - len(incidents)

            if removed is None and cascaded == 0:
                logger.debug(f"Ignoring delete of unknown patient {patient_id}")
                return WriteResult()

            logger.info(f"Deleted patient {patient_id} and {cascaded} of its incidents")
            return self._commit(Snapshot(patients=patients, incidents=incidents), removed, PATIENTS_KEY, INCIDENTS_KEY)

    # Incidents

    def add_incident(self, fields: Mapping[str, Any]) -> WriteResult[Incident]:
        """Create an incident; status defaults to Scheduled and attachments to empty."""
        with self._lock:
            data = Incident.normalize_fields(fields)
            if data.get("status") is None:
                data.pop("status", None)
            data["id"] = IncidentId(self._new_id("i", {i.id for i in self._snapshot.incidents}))
            incident = Incident.model_validate(data)

            snapshot = replace(self._snapshot, incidents=(*self._snapshot.incidents, incident))
            logger.info(f"Added incident {incident.id} for patient {incident.patient_id}")
            return self._commit(snapshot, incident, INCIDENTS_KEY)

    def update_incident(self, incident_id: str, partial: Mapping[str, Any]) -> WriteResult[Incident]:
        """Merge ``partial`` into an incident; unknown ids are ignored."""
        with self._lock:
            incidents = self._snapshot.incidents
            index = _index_of(incidents, incident_id)
            if index is None:
                logger.debug(f"Ignoring update of unknown incident {incident_id}")
                return WriteResult()

            updated = incidents[index].merged(partial)
            snapshot = replace(self._snapshot, incidents=(*incidents[:index], updated, *incidents[index + 1 :]))
            logger.info(f"Updated incident {incident_id}")
            return self._commit(snapshot, updated, INCIDENTS_KEY)

    def delete_incident(self, incident_id: str) -> WriteResult[Incident]:
        """Delete an incident; unknown ids are ignored."""
        with self._lock:
            removed = self.get_incident(incident_id)
            if removed is None:
                logger.debug(f"Ignoring delete of unknown incident {incident_id}")
                return WriteResult()

            incidents = tuple(i for i in self._snapshot.incidents if i.id != incident_id)
            logger.info(f"Deleted incident {incident_id}")
            return self._commit(replace(self._snapshot, incidents=incidents), removed, INCIDENTS_KEY)

    # Persistence

    def flush(self) -> WriteResult[None]:
        """Save both collections from memory, e.g. after a failed write."""
        with self._lock:
            error = self._save(self._snapshot, PATIENTS_KEY, INCIDENTS_KEY)
            return WriteResult(persisted=error is None, error=error)

    def _commit[T](self, snapshot: Snapshot, record: T | None, *keys: str) -> WriteResult[T]:
        """Save the affected collections, then install the new snapshot.

        The snapshot is installed even when saving fails.
        """
        error = self._save(snapshot, *keys)
        self._snapshot = snapshot
        return WriteResult(record=record, applied=True, persisted=error is None, error=error)

    def _save(self, snapshot: Snapshot, *keys: str) -> PersistenceError | None:
        first_error: PersistenceError | None = None
        for key in keys:
            records = snapshot.patients if key == PATIENTS_KEY else snapshot.incidents
            try:
                self.adapter.save(key, [record.to_document() for record in records])
            except PersistenceError as e:
                logger.error(f"Change to '{key}' kept in memory but not saved: {e}")
                self._unsynced.add(key)
                first_error = first_error or e
            else:
                self._unsynced.discard(key)
        return first_error

    def _load(self, model: type[Patient] | type[Incident], key: str) -> tuple:
        records = []
        for position, document in enumerate(self.adapter.load(key)):
            try:
                records.append(model.from_document(document))
            except ValidationError as e:
                raise PersistenceError(key, f"document {position} is not a valid record: {e}") from e
        return tuple(records)

    def _new_id(self, prefix: str, taken: set[str]) -> str:
        while True:
            candidate = f"{prefix}_{cuid()}"
            if candidate not in taken:
                return candidate


def _index_of(records: tuple[Patient, ...] | tuple[Incident, ...], record_id: str) -> int | None:
    for index, record in enumerate(records):
        if record.id == record_id:
            return index
    return None
