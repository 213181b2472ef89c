"""Main FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from maintenance_engine.config import LOG_LEVEL
from maintenance_engine.core.exceptions import (
    InvalidStatusError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from maintenance_engine.database import engine, Base
from maintenance_engine.logging_config import configure_logging
from maintenance_engine.api.routes import router
# Import models to register them with SQLAlchemy Base
from maintenance_engine.models.domain import User, MaintenanceRequest  # noqa: F401
from maintenance_engine.models.audit import StatusHistoryEntry, WorkLogEntry  # noqa: F401

configure_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)


def create_app(bind=engine) -> FastAPI:
    """Build the app; tests pass their own engine."""
    Base.metadata.create_all(bind=bind)

    app = FastAPI(
        title="Maintenance Request Engine",
        description="Request numbers, filtered listings, status audit trail and work logs for maintenance requests.",
        version="0.1.0"
    )

    # Enable CORS for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # For MVP - restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(router, prefix="/api", tags=["Maintenance"])

    # Health check
    @app.get("/health")
    def health_check():
        return {"status": "healthy", "service": "Maintenance Request Engine"}

    return app


def register_error_handlers(app: FastAPI) -> None:
    """Map engine exceptions onto HTTP responses."""

    @app.exception_handler(NotFoundError)
    def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": "Not Found", "message": f"{exc.resource} not found", "details": {}},
        )

    @app.exception_handler(InvalidStatusError)
    def handle_invalid_status(request: Request, exc: InvalidStatusError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Validation Error", "message": "Invalid status value", "details": {"status": str(exc.value)}},
        )

    @app.exception_handler(ValidationError)
    def handle_validation(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Validation Error", "message": exc.message, "details": exc.details},
        )

    @app.exception_handler(StoreError)
    def handle_store_error(request: Request, exc: StoreError):
        # Already logged with context by the unit of work; never echo the cause
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal Server Error", "message": f"Failed to {exc.operation.replace('_', ' ')}", "details": {}},
        )


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
