from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context
from precast.core.config import settings
from precast.db.base import Base
# Import all models to ensure they are registered with SQLAlchemy
from precast.db.models.project import Project, UserSession
from precast.db.models.production import (
    Precast, ElementType, ElementTypePath, ProjectStage,
    Element, Task, Activity, CompleteProduction
)
from precast.db.models.stock import PrecastStock
from precast.db.models.billing import (
    EndClient, WorkOrder, WorkOrderMaterial, Invoice, InvoiceItem, ElementInvoiceHistory
)

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)
target_metadata = Base.metadata

# Only the ledger belongs to this service; the CRUD system migrates everything else
OWNED_TABLES = {ElementInvoiceHistory.__tablename__}


def include_object(object, name, type_, reflected, compare_to):
    if type_ == "table":
        return name in OWNED_TABLES
    table = getattr(object, "table", None)
    if table is not None:
        return table.name in OWNED_TABLES
    return True


def run_migrations_offline():
    context.configure(
        url=settings.DATABASE_URL,
        target_metadata=target_metadata,
        include_object=include_object,
        literal_binds=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = engine_from_config(
        {"sqlalchemy.url": settings.DATABASE_URL},
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, include_object=include_object)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
