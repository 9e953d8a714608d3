class MaintenanceError(Exception):
    """Base class for errors raised by maintenance jobs"""


class CycleCancelled(MaintenanceError):
    """The cycle deadline passed or the cycle was aborted"""


class PatternError(MaintenanceError):
    """A work order's recurrence patterns could not be parsed"""


class ReferenceNotFound(MaintenanceError):
    """A row the job depends on is missing"""

    def __init__(self, entity: str, key):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key} not found")


class WorkOrderExpired(MaintenanceError):
    """The work order's validity ended before the billing day"""

    def __init__(self, work_order_id: int, wo_validate):
        self.work_order_id = work_order_id
        self.wo_validate = wo_validate
        super().__init__(f"work_order {work_order_id} expired on {wo_validate}")
