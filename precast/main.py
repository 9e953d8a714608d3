from fastapi import FastAPI
import logging

from precast.api.v1.api import api_router
from precast.core.config import settings
from precast.core.logging import setup_logging

logger = logging.getLogger(__name__)

app = FastAPI(title="Precast maintenance")

# Include API router
app.include_router(api_router, prefix=settings.API_V1_STR)

@app.on_event("startup")
def startup_event():
    """Make sure the ledger exists, then start the nightly maintenance scheduler"""
    setup_logging(settings)

    from precast.db.auto_migrate import ensure_invoice_history_ledger
    from precast.db.database import engine, SessionLocal
    from precast.maintenance.orchestrator import MaintenanceOrchestrator
    from precast.maintenance.scheduler import DailyScheduler

    ensure_invoice_history_ledger(engine)

    orchestrator = MaintenanceOrchestrator(SessionLocal, settings)
    app.state.orchestrator = orchestrator
    app.state.scheduler = None

    if settings.MAINTENANCE_ENABLED:
        scheduler = DailyScheduler(
            run_at=settings.MAINTENANCE_SCHEDULE_TIME,
            trigger=orchestrator.run_cycle,
            on_abort=orchestrator.cancel_current,
        )
        scheduler.start()
        app.state.scheduler = scheduler
    else:
        logger.warning("Maintenance scheduler disabled (MAINTENANCE_ENABLED=false)")

@app.on_event("shutdown")
def shutdown_event():
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        scheduler.stop(grace=settings.MAINTENANCE_SHUTDOWN_GRACE)

@app.get("/")
async def root():
    return {"message": "Precast maintenance service"}
