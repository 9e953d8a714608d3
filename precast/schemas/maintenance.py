from pydantic import BaseModel
from typing import Optional, List, Dict, Any
from datetime import datetime, date, time


# Maintenance cycle schemas
class JobResult(BaseModel):
    name: str
    status: str  # succeeded, failed, cancelled, timed_out
    error: Optional[str] = None
    summary: Optional[Dict[str, Any]] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None

    class Config:
        from_attributes = True


class CycleReport(BaseModel):
    started_at: datetime
    finished_at: Optional[datetime] = None
    timed_out: bool = False
    jobs: List[JobResult] = []

    class Config:
        from_attributes = True


class MaintenanceStatus(BaseModel):
    enabled: bool
    running: bool
    schedule_time: time
    next_run_at: Optional[datetime] = None
    last_report: Optional[CycleReport] = None


class CycleStarted(BaseModel):
    message: str
    started: bool


# Manual invoice run
class InvoiceOutcome(BaseModel):
    work_order_id: int
    period_start: datetime
    period_end: datetime
    invoice_id: Optional[int] = None
    invoice_name: Optional[str] = None
    revision_no: Optional[int] = None
    total_amount: float = 0.0
    lines: int = 0
    history_rows: int = 0


# Project status
class ProjectStatus(BaseModel):
    project_id: int
    name: str
    project_status: Optional[str] = None
    suspend: Optional[bool] = None
    subscription_start_date: Optional[date] = None
    subscription_end_date: Optional[date] = None
    redemption_end_date: Optional[date] = None
    work_order: Optional[bool] = None
    invoice: Optional[bool] = None

    class Config:
        from_attributes = True
