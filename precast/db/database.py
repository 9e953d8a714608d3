from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.exc import SQLAlchemyError
from precast.db.base import Base
from precast.core.config import settings
import logging

logger = logging.getLogger(__name__)


def build_engine(database_url: str):
    connect_args = {"check_same_thread": False} if "sqlite" in database_url else {}
    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def init_db(bind=None):
    """
    Initialize database by creating all tables.
    The CRUD system owns every table except the invoice history ledger, so this is
    meant for local databases and tests; production only needs ensure_invoice_history_ledger().
    """
    bind = bind if bind is not None else engine
    try:
        # Import all models here to ensure they are registered with SQLAlchemy
        from precast.db.models.project import Project, UserSession
        from precast.db.models.production import (
            Precast, ElementType, ElementTypePath, ProjectStage,
            Element, Task, Activity, CompleteProduction
        )
        from precast.db.models.stock import PrecastStock
        from precast.db.models.billing import (
            EndClient, WorkOrder, WorkOrderMaterial, Invoice, InvoiceItem, ElementInvoiceHistory
        )

        # Create all tables
        Base.metadata.create_all(bind=bind)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        logger.error(f"Database error during initialization: {str(e)}")
        raise
    except Exception as e:
        logger.error(f"Unexpected error during database initialization: {str(e)}", exc_info=True)
        raise
