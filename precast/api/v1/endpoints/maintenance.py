from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
import logging

from precast.schemas.maintenance import CycleReport, CycleStarted, InvoiceOutcome, MaintenanceStatus
from precast.maintenance.exceptions import ReferenceNotFound, WorkOrderExpired
from precast.maintenance.orchestrator import MaintenanceOrchestrator
from precast.api.deps import get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/status", response_model=MaintenanceStatus)
def get_maintenance_status(
    request: Request,
    orchestrator: MaintenanceOrchestrator = Depends(get_orchestrator)
):
    """
    Scheduler state and the report of the last finished cycle.
    """
    scheduler = getattr(request.app.state, "scheduler", None)
    last_report = orchestrator.last_report
    return MaintenanceStatus(
        enabled=scheduler is not None and scheduler.running,
        running=orchestrator.running,
        schedule_time=orchestrator.settings.MAINTENANCE_SCHEDULE_TIME,
        next_run_at=scheduler.next_fire() if scheduler is not None and scheduler.running else None,
        last_report=CycleReport.model_validate(last_report) if last_report is not None else None,
    )


@router.post("/run", response_model=CycleStarted, status_code=status.HTTP_202_ACCEPTED)
def run_maintenance_cycle(
    background_tasks: BackgroundTasks,
    orchestrator: MaintenanceOrchestrator = Depends(get_orchestrator)
):
    """
    Start a maintenance cycle outside the daily schedule.
    """
    if orchestrator.running:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A maintenance cycle is already running"
        )
    background_tasks.add_task(orchestrator.run_cycle)
    return CycleStarted(message="Maintenance cycle started", started=True)


@router.post("/work-orders/{work_order_id}/invoice", response_model=InvoiceOutcome)
def generate_work_order_invoice(
    work_order_id: int,
    orchestrator: MaintenanceOrchestrator = Depends(get_orchestrator)
):
    """
    Bill a work order now for everything staged yesterday and today.
    A work order past its validity date is refused with 409.
    """
    try:
        return orchestrator.run_work_order_invoice(work_order_id)
    except ReferenceNotFound as e:
        if e.entity == "work_order":
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Work order {work_order_id} not found"
            )
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )
    except WorkOrderExpired as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Work order {work_order_id} is no longer valid (expired {e.wo_validate})"
        )
    except IntegrityError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Invoice history changed concurrently, try again"
        )
    except SQLAlchemyError as e:
        logger.error(f"Manual invoice run failed for wo={work_order_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to generate invoice: {str(e)}"
        )
