import logging

from sqlalchemy.exc import SQLAlchemyError

from precast.core.config import Settings
from precast.db.models.production import Element
from precast.db.models.stock import PrecastStock
from precast.maintenance.context import CycleContext
from precast.maintenance.exceptions import CycleCancelled
from precast.maintenance.jobs.tasks import daily_target
from precast.services.stock_state import InvalidStockState, StockState, promote

logger = logging.getLogger(__name__)

JOB_NAME = "ErectedHandler"

ERECTED_STATUS = "Erected"


def _erect_project(ctx: CycleContext, db, project_id: int, rng) -> dict:
    quantity = daily_target(rng)
    candidates = (
        db.query(PrecastStock)
        .filter(PrecastStock.project_id == project_id, PrecastStock.erected.is_(False))
        .order_by(PrecastStock.id)
        .all()
    )
    if not candidates:
        logger.info(f"[{JOB_NAME}] project={project_id} nothing to erect")
        return {"target": quantity, "erected": 0, "skipped": 0}

    selected = rng.sample(candidates, min(quantity, len(candidates)))
    erected = 0
    skipped = 0
    element_ids = []
    for stock in sorted(selected, key=lambda s: s.id):
        ctx.check()
        try:
            promote(stock, StockState.ERECTED, ctx.now)
        except InvalidStockState as e:
            skipped += 1
            logger.warning(f"[{JOB_NAME}] project={project_id} element={stock.element_id} skipped: {e}")
            continue
        stock.order_by_erection = True
        element_ids.append(stock.element_id)
        erected += 1

    if element_ids:
        db.query(Element).filter(Element.id.in_(element_ids)).update(
            {Element.status: ERECTED_STATUS}, synchronize_session=False
        )
    logger.info(f"[{JOB_NAME}] project={project_id} target={quantity} erected={erected} skipped={skipped}")
    return {"target": quantity, "erected": erected, "skipped": skipped}


def mark_stock_erected(ctx: CycleContext, session_factory, settings: Settings, rng) -> dict:
    """Erect a random sample of stock per progression project in one transaction"""
    db = session_factory()
    try:
        projects = {}
        for project_id in settings.PROGRESSION_PROJECT_IDS:
            ctx.check()
            projects[project_id] = _erect_project(ctx, db, project_id, rng)
        ctx.check()
        db.commit()
        return {"projects": projects}
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[{JOB_NAME}] error erecting stock, rolled back: {e}")
        raise
    except CycleCancelled:
        db.rollback()
        raise
    finally:
        db.close()
