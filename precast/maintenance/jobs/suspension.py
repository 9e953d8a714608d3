import logging

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from precast.db.models.project import Project
from precast.maintenance.context import CycleContext
from precast.maintenance.exceptions import CycleCancelled

logger = logging.getLogger(__name__)

JOB_NAME = "ProjectSuspensionJob"

SUSPENDED_STATUS = "Onhold"


def suspend_expired_projects(ctx: CycleContext, session_factory) -> dict:
    """
    Put projects whose subscription and redemption window have both ended on hold.
    Already suspended projects are left alone, so a second run changes nothing.
    """
    today = ctx.today
    db = session_factory()
    try:
        ctx.check()
        projects = (
            db.query(Project)
            .filter(
                Project.subscription_end_date < today,
                or_(Project.redemption_end_date.is_(None), Project.redemption_end_date < today),
                or_(Project.suspend.is_(None), Project.suspend.is_(False)),
            )
            .order_by(Project.project_id)
            .all()
        )
        for project in projects:
            project.suspend = True
            project.project_status = SUSPENDED_STATUS
            logger.info(
                f"[{JOB_NAME}] project={project.project_id} suspended "
                f"(subscription ended {project.subscription_end_date}, redemption ended {project.redemption_end_date})"
            )
        ctx.check()
        db.commit()
        logger.info(f"[{JOB_NAME}] {len(projects)} project(s) suspended")
        return {"suspended": len(projects), "project_ids": [project.project_id for project in projects]}
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[{JOB_NAME}] error suspending projects: {e}")
        raise
    except CycleCancelled:
        db.rollback()
        raise
    finally:
        db.close()
