from datetime import timedelta
import logging

from sqlalchemy.exc import SQLAlchemyError

from precast.core.config import Settings
from precast.db.models.production import (
    Precast, ElementType, ElementTypePath, ProjectStage, Element, Task, Activity, CompleteProduction
)
from precast.maintenance.context import CycleContext
from precast.maintenance.exceptions import CycleCancelled

logger = logging.getLogger(__name__)

JOB_NAME = "AutoCreateTasks"

DAILY_TARGET_RANGE = (15, 20)
TASK_DESCRIPTION = "Auto-generated task"
TASK_EFFORT_HOURS = 8
TASK_DURATION = timedelta(days=7)


def daily_target(rng) -> int:
    return rng.randint(*DAILY_TARGET_RANGE)


def _first_stage(db, element_type_id):
    path = (
        db.query(ElementTypePath)
        .filter(ElementTypePath.element_type_id == element_type_id)
        .order_by(ElementTypePath.id)
        .first()
    )
    if path is None or not path.stage_path:
        return None
    return db.query(ProjectStage).filter(ProjectStage.id == int(path.stage_path[0])).first()


def _create_tasks_for_project(ctx: CycleContext, db, project_id: int, settings: Settings, rng) -> dict:
    target = daily_target(rng)
    logger.info(f"[{JOB_NAME}] project={project_id} daily target {target} element(s)")

    element_type_ids = [
        row[0] for row in db.query(ElementType.element_type_id)
        .filter(ElementType.project_id == project_id)
        .order_by(ElementType.element_type_id)
        .all()
    ]

    count = 0
    task_counter = 0
    for element_type_id in element_type_ids:
        if count >= target:
            break

        floor_ids = [
            row[0] for row in db.query(Element.target_location)
            .filter(
                Element.project_id == project_id,
                Element.element_type_id == element_type_id,
                Element.instage.is_(False),
                Element.target_location.isnot(None),
            )
            .distinct()
            .order_by(Element.target_location)
            .all()
        ]
        if not floor_ids:
            logger.debug(f"[{JOB_NAME}] project={project_id} element_type={element_type_id} has no elements waiting")
            continue

        for floor_id in floor_ids:
            if count >= target:
                break
            ctx.check()

            floor = db.query(Precast).filter(Precast.id == floor_id).first()
            if floor is None:
                logger.warning(f"[{JOB_NAME}] project={project_id} floor={floor_id} not found in precast, skipping")
                continue
            stage = _first_stage(db, element_type_id)
            if stage is None:
                logger.warning(f"[{JOB_NAME}] project={project_id} element_type={element_type_id} has no stage path or stage assignment, skipping")
                continue

            elements = (
                db.query(Element)
                .filter(
                    Element.project_id == project_id,
                    Element.element_type_id == element_type_id,
                    Element.target_location == floor_id,
                    Element.instage.is_(False),
                )
                .order_by(Element.id)
                .limit(target - count)
                .all()
            )
            if not elements:
                continue

            task_counter += 1
            start_date = ctx.now
            end_date = start_date + TASK_DURATION
            task = Task(
                project_id=project_id,
                task_type_id=settings.AUTO_TASK_TYPE_ID,
                name=f"Auto Task {task_counter} - {floor.name}",
                stage_id=stage.id,
                description=TASK_DESCRIPTION,
                priority=settings.AUTO_TASK_PRIORITY,
                assigned_to=stage.assigned_to,
                estimated_effort_in_hrs=TASK_EFFORT_HOURS,
                start_date=start_date,
                end_date=end_date,
                status=settings.AUTO_TASK_STATUS,
                color_code=settings.AUTO_TASK_COLOR_CODE,
                element_type_id=element_type_id,
                floor_id=floor_id,
            )
            db.add(task)
            db.flush()

            for element in elements:
                element.instage = True
                activity = Activity(
                    task_id=task.task_id,
                    project_id=project_id,
                    name=element.element_name,
                    stage_id=stage.id,
                    status="Inprogress",
                    element_id=element.id,
                    assigned_to=stage.assigned_to,
                    start_date=start_date,
                    end_date=end_date,
                    priority=settings.AUTO_TASK_PRIORITY,
                    qc_id=stage.qc_id,
                    paper_id=stage.paper_id,
                    stockyard_id=settings.DEFAULT_STOCKYARD_ID,
                    completed=False,
                )
                db.add(activity)
                db.flush()
                db.add(CompleteProduction(
                    task_id=task.task_id,
                    activity_id=activity.id,
                    project_id=project_id,
                    element_id=element.id,
                    element_type_id=element_type_id,
                    floor_id=floor_id,
                    stage_id=stage.id,
                    user_id=stage.assigned_to,
                    started_at=ctx.now,
                ))

            count += len(elements)
            logger.info(
                f"[{JOB_NAME}] project={project_id} created task {task.task_id} for element_type={element_type_id} "
                f"floor={floor_id} ({floor.name}) with {len(elements)} element(s)"
            )

    if count >= target:
        logger.info(f"[{JOB_NAME}] project={project_id} daily target of {target} reached")
    return {"target": target, "tasks": task_counter, "elements": count}


def auto_create_tasks(ctx: CycleContext, session_factory, settings: Settings, rng) -> dict:
    """
    Pull waiting elements into production, up to a random daily target per project.
    Everything is written in one transaction: a cancelled run leaves nothing behind.
    """
    project_ids = list(settings.PROGRESSION_PROJECT_IDS)
    if not project_ids:
        logger.info(f"[{JOB_NAME}] no progression projects configured")
        return {"projects": {}}

    db = session_factory()
    try:
        projects = {}
        for project_id in project_ids:
            ctx.check()
            projects[project_id] = _create_tasks_for_project(ctx, db, project_id, settings, rng)
        ctx.check()
        db.commit()
        logger.info(f"[{JOB_NAME}] finished: {projects}")
        return {"projects": projects}
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[{JOB_NAME}] error creating tasks, rolled back: {e}")
        raise
    except CycleCancelled:
        db.rollback()
        logger.warning(f"[{JOB_NAME}] cancelled, rolled back all tasks of this run")
        raise
    finally:
        db.close()
