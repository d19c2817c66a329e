"""Main FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clinic import __version__
from clinic.api.deps import ClinicServices
from clinic.api.endpoints import router
from clinic.config import get_settings
from clinic.utils.logging import LogConfig, setup_logging


def create_app(services: ClinicServices | None = None) -> FastAPI:
    """Create the application.

    Args:
        services: Pre-built services; when omitted they are built from the
            environment settings at startup
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if services is None:
            settings = get_settings()
            setup_logging(LogConfig(level=settings.log_level, audit_level=settings.audit_log_level))
            app.state.services = ClinicServices.from_settings(settings)
        yield
        app.state.services.store.close()

    app = FastAPI(
        title="DentalCare Clinic",
        description="Patient and appointment records with role-scoped views for administrators and patients.",
        version=__version__,
        lifespan=lifespan,
        tags_metadata=[
            {"name": "Auth", "description": "Login, logout and the current user."},
            {"name": "Patients", "description": "Patient records. Deleting a patient deletes its appointments."},
            {"name": "Incidents", "description": "Appointments and treatments."},
            {"name": "Views", "description": "Dashboard, calendar and patient portal."},
            {"name": "Health", "description": "Service health monitoring and status checks."},
        ],
    )
    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("clinic.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
