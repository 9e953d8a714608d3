"""
Recurring invoice generation for work orders.

For every work order whose recurrence pattern fires today, elements that reached
a billing stage inside the billing window are priced against the work order's
materials and turned into one invoice. The element_invoice_history ledger makes
sure an element is billed at most once per stage per work order.
"""
from datetime import datetime
from typing import Dict, List, Optional
import json
import logging

from sqlalchemy import and_, exists, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from precast.db.models.billing import (
    EndClient, WorkOrder, WorkOrderMaterial, Invoice, InvoiceItem, ElementInvoiceHistory
)
from precast.db.models.production import Element, ElementType
from precast.db.models.project import Project
from precast.db.models.stock import PrecastStock
from precast.maintenance.context import CycleContext
from precast.maintenance.exceptions import (
    CycleCancelled, MaintenanceError, PatternError, ReferenceNotFound, WorkOrderExpired
)
from precast.schemas.maintenance import InvoiceOutcome
from precast.schemas.recurrence import billing_window, parse_recurrence_patterns
from precast.services.billing import STAGES, StagedElement, aggregate_lines, invoice_total

logger = logging.getLogger(__name__)

JOB_NAME = "WorkOrderInvoiceJob"


def _stage_filter(stage: str):
    """Flag conditions and timestamp column that qualify a stock row for `stage`"""
    stockyard = PrecastStock.stockyard
    dispatched = [
        stockyard.is_(True),
        or_(PrecastStock.dispatch_status.is_(None), PrecastStock.dispatch_status.is_(True)),
    ]
    if stage == "casted":
        return [or_(stockyard.is_(None), stockyard.is_(False))], PrecastStock.production_date
    if stage == "dispatched":
        return dispatched, PrecastStock.dispatch_end
    if stage == "erection":
        return dispatched + [PrecastStock.erected.is_(True)], PrecastStock.updated_at
    if stage == "handover":
        return dispatched + [PrecastStock.erected.is_(True), PrecastStock.recieve_in_erection.is_(True)], PrecastStock.updated_at
    raise ValueError(f"unknown billing stage {stage!r}")


def stage_elements(db, work_order_id: int, project_id: int, start: datetime, end: datetime) -> List[StagedElement]:
    """
    Elements of the project that reached a stage inside [start, end] and have not
    been billed for that stage on this work order yet.
    """
    staged = []
    for stage in STAGES:
        conditions, timestamp = _stage_filter(stage)
        already_billed = exists().where(
            ElementInvoiceHistory.work_order_id == work_order_id,
            ElementInvoiceHistory.element_id == PrecastStock.element_id,
            ElementInvoiceHistory.stage == stage,
        )
        rows = (
            db.query(PrecastStock, Element, ElementType)
            .join(Element, Element.id == PrecastStock.element_id)
            .outerjoin(ElementType, and_(
                ElementType.element_type_id == Element.element_type_id,
                ElementType.project_id == project_id,
            ))
            .filter(
                PrecastStock.project_id == project_id,
                Element.billable.is_(True),
                timestamp >= start,
                timestamp <= end,
                ~already_billed,
                *conditions,
            )
            .order_by(PrecastStock.id)
            .all()
        )

        seen = set()
        for stock, element, element_type in rows:
            if element.id in seen:
                continue
            if element_type is None:
                raise ReferenceNotFound("element_type", element.element_type_id)
            seen.add(element.id)
            staged.append(StagedElement(
                element_id=element.id,
                stage=stage,
                floor_id=stock.target_location,
                type_code=element_type.element_type,
                volume=element_type.volume or 0.0,
            ))
        logger.debug(f"[{JOB_NAME}] wo={work_order_id} stage={stage} staged {len(seen)} element(s)")
    return staged


def load_payment_terms(work_order: WorkOrder) -> Dict[str, float]:
    raw = work_order.payment_term
    if raw is None:
        return {}
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            logger.warning(f"[{JOB_NAME}] wo={work_order.id} payment_term JSON invalid, billing full amounts: {e}")
            return {}
    if not isinstance(raw, dict):
        logger.warning(f"[{JOB_NAME}] wo={work_order.id} payment_term is not an object, billing full amounts")
        return {}
    return raw


def generate_invoice(db, work_order: WorkOrder, start: datetime, end: datetime, now: datetime) -> InvoiceOutcome:
    """
    Build the invoice for one work order and window inside the caller's transaction.
    Nothing is written when no staged element matches a material.
    """
    outcome = InvoiceOutcome(work_order_id=work_order.id, period_start=start, period_end=end)

    end_client = db.query(EndClient).filter(EndClient.id == work_order.endclient_id).first()
    if end_client is None:
        raise ReferenceNotFound("end_client", work_order.endclient_id)
    project = db.query(Project).filter(Project.project_id == work_order.project_id).first()
    if project is None:
        raise ReferenceNotFound("project", work_order.project_id)

    last_revision = (
        db.query(func.max(Invoice.revision_no))
        .filter(Invoice.work_order_id == work_order.id)
        .scalar()
    )
    revision_no = 0 if last_revision is None else last_revision + 1

    staged = stage_elements(db, work_order.id, work_order.project_id, start, end)
    materials = (
        db.query(WorkOrderMaterial)
        .filter(WorkOrderMaterial.work_order_id == work_order.id)
        .order_by(WorkOrderMaterial.id)
        .all()
    )
    lines = aggregate_lines(materials, staged, load_payment_terms(work_order))
    if not lines:
        logger.info(f"[{JOB_NAME}] wo={work_order.id} nothing to bill between {start} and {end} ({len(staged)} staged element(s))")
        return outcome

    for line in lines:
        logger.info(
            f"[{JOB_NAME}] wo={work_order.id} stage={line.stage} material={line.material_id} item={line.item_name} "
            f"volume={line.volume:.3f} rate={line.unit_rate:.3f} tax={line.tax:.3f} "
            f"multiplier={line.multiplier:.2f} line_total={line.value:.3f}"
        )
    total = invoice_total(lines)

    invoice = Invoice(
        work_order_id=work_order.id,
        created_by=work_order.created_by or 0,
        revision_no=revision_no,
        billing_address=work_order.billed_address,
        shipping_address=work_order.shipped_address,
        name=f"{end_client.abbreviation}-{project.abbreviation}-{revision_no}",
        total_amount=total,
        created_at=now,
    )
    db.add(invoice)
    db.flush()

    materials_by_id = {material.id: material for material in materials}
    for line in lines:
        db.add(InvoiceItem(invoice_id=invoice.id, item_id=line.material_id, volume=line.volume))
        material = materials_by_id[line.material_id]
        material.volume_used = (material.volume_used or 0.0) + line.volume

    # The ledger covers the whole staging set, matched or not
    for element in staged:
        db.add(ElementInvoiceHistory(
            work_order_id=work_order.id,
            element_id=element.element_id,
            stage=element.stage,
            volume=element.volume,
            period_start=start,
            period_end=end,
            invoice_id=invoice.id,
            created_at=now,
        ))

    # A manual window ends at 23:59:59 today; never mark time that has not happened yet as billed
    billed_through = min(end, now)
    previous = work_order.last_invoice_generated_at
    work_order.last_invoice_id = invoice.id
    work_order.last_invoice_generated_at = billed_through if previous is None else max(previous, billed_through)
    db.flush()

    logger.info(f"[{JOB_NAME}] wo={work_order.id} created invoice {invoice.id} {invoice.name} total={total:.3f}")
    outcome.invoice_id = invoice.id
    outcome.invoice_name = invoice.name
    outcome.revision_no = revision_no
    outcome.total_amount = total
    outcome.lines = len(lines)
    outcome.history_rows = len(staged)
    return outcome


def run_invoice_attempt(session_factory, work_order_id: int, pattern, now: datetime,
                        ctx: Optional[CycleContext] = None) -> InvoiceOutcome:
    """One work order, one transaction. `pattern` None selects the manual-run window."""
    db = session_factory()
    try:
        work_order = db.query(WorkOrder).filter(WorkOrder.id == work_order_id).first()
        if work_order is None:
            raise ReferenceNotFound("work_order", work_order_id)
        if work_order.wo_validate is not None and now.date() > work_order.wo_validate:
            raise WorkOrderExpired(work_order_id, work_order.wo_validate)
        start, end = billing_window(pattern, now, work_order.last_invoice_generated_at)
        logger.info(f"[{JOB_NAME}] wo={work_order_id} billing window {start} -> {end}")

        outcome = generate_invoice(db, work_order, start, end, now)
        if ctx is not None:
            ctx.check()
        db.commit()
        return outcome
    except IntegrityError as e:
        db.rollback()
        logger.error(f"[{JOB_NAME}] wo={work_order_id} ledger conflict, rolled back; next cycle retries: {e}")
        raise
    except (SQLAlchemyError, MaintenanceError) as e:
        db.rollback()
        if not isinstance(e, CycleCancelled):
            logger.error(f"[{JOB_NAME}] wo={work_order_id} rolled back: {e}")
        raise
    finally:
        db.close()


def generate_recurring_invoices(ctx: CycleContext, session_factory) -> dict:
    summary = {"work_orders": 0, "expired": 0, "invalid_patterns": 0, "fired": 0, "invoices": 0, "failed": 0}

    db = session_factory()
    try:
        work_orders = (
            db.query(WorkOrder.id, WorkOrder.recurrence_patterns, WorkOrder.wo_validate)
            .filter(WorkOrder.recurrence_patterns.isnot(None))
            .order_by(WorkOrder.id)
            .all()
        )
    finally:
        db.close()

    for work_order_id, raw_patterns, wo_validate in work_orders:
        ctx.check()
        summary["work_orders"] += 1
        if wo_validate is not None and ctx.today > wo_validate:
            summary["expired"] += 1
            logger.debug(f"[{JOB_NAME}] wo={work_order_id} validity ended {wo_validate}, skipping")
            continue

        try:
            patterns = parse_recurrence_patterns(raw_patterns)
        except PatternError as e:
            summary["invalid_patterns"] += 1
            logger.error(f"[{JOB_NAME}] wo={work_order_id} skipped: {e}")
            continue

        for pattern in patterns:
            if not pattern.fires_on(ctx.today):
                continue
            summary["fired"] += 1
            logger.info(f"[{JOB_NAME}] wo={work_order_id} pattern fired: {pattern.model_dump(exclude_none=True)}")
            try:
                outcome = run_invoice_attempt(session_factory, work_order_id, pattern, ctx.now, ctx)
            except CycleCancelled:
                raise
            except (SQLAlchemyError, MaintenanceError):
                # Already rolled back and logged by the attempt
                summary["failed"] += 1
                continue
            if outcome.invoice_id is not None:
                summary["invoices"] += 1

    logger.info(f"[{JOB_NAME}] finished: {summary}")
    return summary
