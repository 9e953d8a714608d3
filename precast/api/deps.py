from fastapi import HTTPException, Request, status
from sqlalchemy.orm import Session

from precast.db.database import SessionLocal
from precast.maintenance.orchestrator import MaintenanceOrchestrator


def get_db():
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_orchestrator(request: Request) -> MaintenanceOrchestrator:
    """
    The orchestrator created at application startup.
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Maintenance orchestrator is not initialised"
        )
    return orchestrator
