from sqlalchemy import text, inspect
from sqlalchemy.exc import SQLAlchemyError
import logging

from precast.db.models.billing import ElementInvoiceHistory

logger = logging.getLogger(__name__)

LEDGER_TABLE = ElementInvoiceHistory.__tablename__


def ensure_invoice_history_ledger(engine):
    """
    Create the invoice history ledger if the CRUD schema does not have it yet.
    Safe to run on every startup.
    """
    try:
        inspector = inspect(engine)
        if LEDGER_TABLE not in inspector.get_table_names():
            logger.info(f"Creating missing table {LEDGER_TABLE}")
            ElementInvoiceHistory.__table__.create(bind=engine, checkfirst=True)

        # Older deployments created the table without the uniqueness guard
        with engine.connect() as conn:
            conn.execute(text(
                "CREATE UNIQUE INDEX IF NOT EXISTS uq_element_invoice_history "
                f"ON {LEDGER_TABLE} (work_order_id, element_id, stage)"
            ))
            conn.commit()
        logger.info("Invoice history ledger schema check completed")
    except SQLAlchemyError as e:
        logger.error(f"Error checking/creating invoice history ledger: {e}", exc_info=True)
        raise
