from precast.db.models.project import Project, UserSession
from precast.db.models.production import (
    Precast, ElementType, ElementTypePath, ProjectStage,
    Element, Task, Activity, CompleteProduction
)
from precast.db.models.stock import PrecastStock
from precast.db.models.billing import (
    EndClient, WorkOrder, WorkOrderMaterial, Invoice, InvoiceItem, ElementInvoiceHistory
)

__all__ = [
    "Project", "UserSession",
    "Precast", "ElementType", "ElementTypePath", "ProjectStage",
    "Element", "Task", "Activity", "CompleteProduction",
    "PrecastStock",
    "EndClient", "WorkOrder", "WorkOrderMaterial", "Invoice", "InvoiceItem", "ElementInvoiceHistory",
]
