"""Tests for the HTTP API."""

import logging

import pytest
from fastapi.testclient import TestClient

from clinic.api.deps import ClinicServices
from clinic.main import create_app
from clinic.services.auth import AuthService
from clinic.services.persistence import InMemoryStorage, PersistenceAdapter
from clinic.services.record_store import RecordStore
from clinic.services.seed import DEMO_ADMIN_EMAIL, DEMO_ADMIN_PASSWORD, DEMO_PATIENT_EMAIL, DEMO_PATIENT_PASSWORD
from clinic.services.session_manager import InMemorySessionManager
from clinic.utils.logging import AUDIT_LOGGER_NAME


@pytest.fixture
def services(storage: InMemoryStorage) -> ClinicServices:
    """Demo-seeded services over in-memory storage."""
    adapter = PersistenceAdapter(storage)
    store = RecordStore(adapter)
    store.initialize()
    store.hydrate()
    auth = AuthService(adapter)
    auth.initialize()
    return ClinicServices(store=store, auth=auth, sessions=InMemorySessionManager())


@pytest.fixture
def client(services: ClinicServices) -> TestClient:
    """Test client for the app."""
    return TestClient(create_app(services))


def login(client: TestClient, email: str, password: str) -> dict[str, str]:
    """Log in and return the session header."""
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200
    return {"X-Session-Id": response.json()["session_id"]}


@pytest.fixture
def admin(client: TestClient) -> dict[str, str]:
    return login(client, DEMO_ADMIN_EMAIL, DEMO_ADMIN_PASSWORD)


@pytest.fixture
def patient(client: TestClient) -> dict[str, str]:
    return login(client, DEMO_PATIENT_EMAIL, DEMO_PATIENT_PASSWORD)


class TestHealthAndAuth:
    """Tests for health and session endpoints."""

    def test_health_check(self, client):
        """Test health check endpoint."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data
        assert "version" in data

    def test_login_returns_user(self, client):
        """Test a successful login."""
        response = client.post("/auth/login", json={"email": DEMO_PATIENT_EMAIL, "password": DEMO_PATIENT_PASSWORD})
        assert response.status_code == 200
        data = response.json()
        assert data["session_id"]
        assert data["user"]["role"] == "Patient"
        assert data["user"]["patient_id"] == "p1"

    def test_login_with_wrong_password(self, client):
        """Test rejected credentials."""
        response = client.post("/auth/login", json={"email": DEMO_ADMIN_EMAIL, "password": "nope"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    def test_requests_without_session_are_rejected(self, client):
        """Test that record endpoints require a session."""
        assert client.get("/patients").status_code == 401
        assert client.get("/patients", headers={"X-Session-Id": "bogus"}).status_code == 401

    def test_me_and_logout(self, client, admin):
        """Test reading the current user and ending the session."""
        assert client.get("/auth/me", headers=admin).json()["role"] == "Admin"

        response = client.post("/auth/logout", headers=admin)
        assert response.json() == {"success": True}
        assert client.get("/auth/me", headers=admin).status_code == 401


class TestAdminRecords:
    """Tests for administrator record management."""

    def test_list_patients_with_counts(self, client, admin):
        """Test the patient list."""
        patients = client.get("/patients", headers=admin).json()
        assert [p["id"] for p in patients] == ["p1"]
        assert patients[0]["appointmentCount"] == 1

    def test_create_patient(self, client, admin):
        """Test creating a patient."""
        response = client.post(
            "/patients", headers=admin, json={"name": "Jane Roe", "dob": "1985-05-15", "contact": "555"}
        )
        assert response.status_code == 201
        data = response.json()
        assert data["applied"] is True
        assert data["persisted"] is True
        assert data["record"]["id"].startswith("p_")
        assert data["record"]["dob"] == "1985-05-15"

        assert len(client.get("/patients", headers=admin).json()) == 2

    def test_delete_patient_cascades(self, client, admin):
        """Test that deleting a patient removes its incidents."""
        response = client.delete("/patients/p1", headers=admin)
        assert response.status_code == 200
        assert response.json()["applied"] is True

        assert client.get("/patients", headers=admin).json() == []
        assert client.get("/incidents", headers=admin).json() == []

    def test_update_incident(self, client, admin):
        """Test completing an incident."""
        response = client.patch("/incidents/i1", headers=admin, json={"status": "Completed", "cost": 150})
        assert response.status_code == 200
        assert response.json()["record"]["status"] == "Completed"

        view = client.get("/incidents/i1", headers=admin).json()
        assert view["patient_name"] == "John Doe"
        assert view["cost_display"] == "$150.00"

    def test_invalid_status_is_rejected(self, client, admin):
        """Test that unknown statuses are refused without changing anything."""
        response = client.patch("/incidents/i1", headers=admin, json={"status": "Pending"})
        assert response.status_code == 422
        assert client.get("/incidents/i1", headers=admin).json()["incident"]["status"] == "Scheduled"

        response = client.post("/incidents", headers=admin, json={"patientId": "p1", "status": "Pending"})
        assert response.status_code == 422
        assert len(client.get("/incidents", headers=admin).json()) == 1

    def test_update_unknown_id_is_not_applied(self, client, admin):
        """Test that updating a missing record is a no-op."""
        response = client.patch("/patients/missing", headers=admin, json={"name": "Ghost"})
        assert response.status_code == 200
        assert response.json()["applied"] is False
        assert response.json()["record"] is None

    def test_incident_filters(self, client, admin):
        """Test text and status filters."""
        client.post("/incidents", headers=admin, json={"patientId": "p1", "title": "Root canal", "status": "Completed"})

        assert [v["incident"]["title"] for v in client.get("/incidents?q=root", headers=admin).json()] == [
            "Root canal"
        ]
        assert len(client.get("/incidents?q=john", headers=admin).json()) == 2
        assert len(client.get("/incidents?status=Scheduled", headers=admin).json()) == 1

    def test_storage_failure_keeps_change_visible(self, client, admin, storage):
        """Test that a failed save is reported while the change stays in memory."""
        storage.quota_bytes = sum(len(value.encode("utf-8")) for value in storage.items.values())

        response = client.post("/patients", headers=admin, json={"name": "Jane Roe"})
        assert response.status_code == 507
        data = response.json()
        assert data["applied"] is True
        assert data["persisted"] is False
        assert "could not be saved" in data["error"]

        names = [p["name"] for p in client.get("/patients", headers=admin).json()]
        assert "Jane Roe" in names


class TestPatientRole:
    """Tests for what a patient account may do."""

    def test_sees_only_own_records(self, client, admin, patient):
        """Test read scoping."""
        client.post("/patients", headers=admin, json={"name": "Jane Roe"})

        assert [p["id"] for p in client.get("/patients", headers=patient).json()] == ["p1"]
        assert client.get("/patients/p2", headers=patient).status_code == 403

    def test_cannot_manage_records(self, client, patient):
        """Test that patients cannot create patients or edit incidents."""
        assert client.post("/patients", headers=patient, json={"name": "X"}).status_code == 403
        assert client.patch("/incidents/i1", headers=patient, json={"title": "X"}).status_code == 403
        assert client.delete("/incidents/i1", headers=patient).status_code == 403
        assert client.delete("/patients/p1", headers=patient).status_code == 403

    def test_books_for_self(self, client, patient):
        """Test self-service booking."""
        response = client.post("/incidents", headers=patient, json={"title": "Cleaning"})
        assert response.status_code == 201
        assert response.json()["record"]["patientId"] == "p1"

        response = client.post("/incidents", headers=patient, json={"patientId": "p2", "title": "Cleaning"})
        assert response.status_code == 403


class TestViews:
    """Tests for dashboard, calendar and portal views."""

    def test_admin_dashboard(self, client, admin):
        """Test administrator KPIs."""
        client.patch("/incidents/i1", headers=admin, json={"status": "Completed"})

        data = client.get("/dashboard", headers=admin).json()
        assert data["role"] == "Admin"
        assert data["totalPatients"] == 1
        assert data["totalIncidents"] == 1
        assert data["completedTreatments"] == 1
        assert data["pendingTreatments"] == 0
        assert data["totalRevenue"] == 100
        assert data["topPatients"][0]["appointmentCount"] == 1

    def test_patient_dashboard(self, client, patient):
        """Test that patients get their own summary."""
        data = client.get("/dashboard", headers=patient).json()
        assert data["role"] == "Patient"
        assert data["patient"]["id"] == "p1"
        assert data["totalAppointments"] == 1
        assert "totalRevenue" not in data

    def test_calendar_month(self, client, admin):
        """Test the January 2025 grid."""
        data = client.get("/calendar/2025/1", headers=admin).json()
        assert data["month_name"] == "January"
        assert len(data["days"]) == 34
        assert [cell["day"] for cell in data["days"][:4]] == [None, None, None, "2025-01-01"]

        day = next(cell for cell in data["days"] if cell["day"] == "2025-01-15")
        assert [view["incident"]["id"] for view in day["appointments"]] == ["i1"]

    def test_calendar_rejects_bad_month(self, client, admin):
        """Test month validation."""
        assert client.get("/calendar/2025/13", headers=admin).status_code == 422

    def test_my_appointments(self, client, admin, patient):
        """Test the patient portal."""
        data = client.get("/me/appointments", headers=patient).json()
        assert [view["incident"]["id"] for view in data["pastAppointments"] + data["upcomingAppointments"]] == ["i1"]
        assert client.get("/me/appointments", headers=admin).status_code == 404


class TestAuditTrail:
    """Tests for the audit log written by the HTTP surface."""

    @pytest.fixture
    def audit_lines(self, caplog):
        """Messages logged to the audit channel during the test."""
        with caplog.at_level(logging.INFO, logger=AUDIT_LOGGER_NAME):
            yield lambda: [r.getMessage() for r in caplog.records if r.name == AUDIT_LOGGER_NAME]

    def test_login_and_failed_login(self, client, audit_lines):
        """Test that logins are recorded by user id and failures by email."""
        client.post("/auth/login", json={"email": DEMO_ADMIN_EMAIL, "password": DEMO_ADMIN_PASSWORD})
        client.post("/auth/login", json={"email": "Admin@entnt.in", "password": "nope"})

        assert audit_lines() == [
            "actor=1 event=login role=Admin",
            "actor=admin@entnt.in event=login_failed",
        ]

    def test_denied_request(self, client, patient, audit_lines):
        """Test that authorization denials are recorded."""
        client.delete("/incidents/i1", headers=patient)
        assert "actor=2 event=denied target=p1 action=delete resource=incident" in audit_lines()

    def test_applied_writes_only(self, client, admin, audit_lines):
        """Test that applied writes are recorded and no-ops are not."""
        client.patch("/incidents/i1", headers=admin, json={"status": "Completed"})
        client.patch("/incidents/missing", headers=admin, json={"status": "Completed"})
        client.delete("/patients/p1", headers=admin)

        assert audit_lines() == [
            "actor=1 event=incident_updated target=i1 persisted=True",
            "actor=1 event=patient_deleted target=p1 persisted=True",
        ]
