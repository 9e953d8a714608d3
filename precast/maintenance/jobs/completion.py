import logging

from sqlalchemy.exc import SQLAlchemyError

from precast.core.config import Settings
from precast.db.models.production import Activity, CompleteProduction, Element, ElementType
from precast.db.models.stock import PrecastStock
from precast.maintenance.context import CycleContext
from precast.maintenance.exceptions import CycleCancelled
from precast.maintenance.jobs.tasks import daily_target
from precast.services.stock_state import StockState, promote

logger = logging.getLogger(__name__)

JOB_NAME = "CompleteActivityToStockyard"

COMPLETED = "completed"
COMPLETION_USER_ID = 60
STORAGE_LOCATION = "default_location"

ACTIVITY_STATUS_COLUMNS = (
    "status",
    "qc_status",
    "reinforcement_status",
    "reinforcement_qc_status",
    "mesh_mold_status",
    "meshmold_qc_status",
)


def build_stock(element: Element, element_type: ElementType, stockyard_id: int, now) -> PrecastStock:
    """New stockyard row for a freshly produced element; dimensions are in millimetres"""
    thickness = element_type.thickness or 0.0
    length = element_type.length or 0.0
    height = element_type.height or 0.0
    volume = (thickness * length * height) / 1_000_000_000.0
    stock = PrecastStock(
        element_id=element.id,
        element_type=element_type.element_type,
        element_type_id=element_type.element_type_id,
        stockyard_id=stockyard_id,
        project_id=element.project_id,
        target_location=element.target_location,
        dimensions=f"Thickness: {thickness:.2f}mm, Length: {length:.2f}mm, Height: {height:.2f}mm",
        weight=volume * (element_type.density or 0.0),
        storage_location=STORAGE_LOCATION,
        production_date=now,
        created_at=now,
        dispatch_status=False,
        erected=False,
        recieve_in_erection=False,
        order_by_erection=False,
    )
    promote(stock, StockState.STOCKYARD, now)
    return stock


def _complete_activity(db, activity: Activity, settings: Settings, now) -> bool:
    element = (
        db.query(Element)
        .filter(Element.id == activity.element_id, Element.project_id == activity.project_id)
        .first()
    )
    if element is None:
        logger.warning(f"[{JOB_NAME}] activity={activity.id} element={activity.element_id} not found, skipping")
        return False
    element_type = (
        db.query(ElementType)
        .filter(
            ElementType.element_type_id == element.element_type_id,
            ElementType.project_id == activity.project_id,
        )
        .first()
    )
    if element_type is None:
        logger.warning(f"[{JOB_NAME}] activity={activity.id} element_type={element.element_type_id} not found, skipping")
        return False

    for column in ACTIVITY_STATUS_COLUMNS:
        setattr(activity, column, COMPLETED)

    stockyard_id = activity.stockyard_id or settings.DEFAULT_STOCKYARD_ID
    db.add(build_stock(element, element_type, stockyard_id, now))

    activity.completed = True
    db.add(CompleteProduction(
        task_id=activity.task_id,
        activity_id=activity.id,
        project_id=activity.project_id,
        element_id=element.id,
        element_type_id=element.element_type_id,
        floor_id=element.target_location,
        stage_id=activity.stage_id,
        user_id=COMPLETION_USER_ID,
        started_at=now,
        updated_at=now,
        status=COMPLETED,
    ))
    logger.info(f"[{JOB_NAME}] activity={activity.id} element={element.id} completed and moved to stockyard {stockyard_id}")
    return True


def complete_activities_to_stockyard(ctx: CycleContext, session_factory, settings: Settings, rng) -> dict:
    """
    Force-complete the newest open activities of each progression project and
    put their elements into the stockyard.

    QC outcomes are overwritten, so the job only runs when FORCE_COMPLETE_ACTIVITIES is set.
    """
    if not settings.FORCE_COMPLETE_ACTIVITIES:
        logger.warning(f"[{JOB_NAME}] skipped: FORCE_COMPLETE_ACTIVITIES is disabled")
        return {"skipped": "FORCE_COMPLETE_ACTIVITIES is disabled"}

    db = session_factory()
    try:
        projects = {}
        for project_id in settings.PROGRESSION_PROJECT_IDS:
            ctx.check()
            quantity = daily_target(rng)
            activities = (
                db.query(Activity)
                .filter(Activity.project_id == project_id, Activity.completed.is_(False))
                .order_by(Activity.id.desc())
                .limit(quantity)
                .all()
            )
            logger.info(f"[{JOB_NAME}] project={project_id} fetched {len(activities)} open activities, limit {quantity}")

            completed = 0
            for activity in activities:
                ctx.check()
                if _complete_activity(db, activity, settings, ctx.now):
                    completed += 1
            projects[project_id] = {"fetched": len(activities), "completed": completed}

        ctx.check()
        db.commit()
        logger.info(f"[{JOB_NAME}] finished: {projects}")
        return {"projects": projects}
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[{JOB_NAME}] error completing activities, rolled back: {e}")
        raise
    except CycleCancelled:
        db.rollback()
        raise
    finally:
        db.close()
