from datetime import datetime
from functools import partial
from typing import Callable, List, Optional
import logging
import random
import threading

from precast.core.config import Settings
from precast.maintenance.context import CycleContext
from precast.maintenance.jobs.completion import complete_activities_to_stockyard
from precast.maintenance.jobs.erection import mark_stock_erected
from precast.maintenance.jobs.invoicing import run_invoice_attempt, generate_recurring_invoices
from precast.maintenance.jobs.sessions import cleanup_expired_sessions
from precast.maintenance.jobs.suspension import suspend_expired_projects
from precast.maintenance.jobs.tasks import auto_create_tasks
from precast.maintenance.runner import CycleReport, Job, JobRunner
from precast.maintenance.scheduler import CycleGuard
from precast.schemas.maintenance import InvoiceOutcome

logger = logging.getLogger(__name__)


class MaintenanceOrchestrator:
    """
    Owns the nightly maintenance cycle: which jobs run, in which lane, and the
    guard that keeps two cycles from overlapping.
    """

    def __init__(self, session_factory, settings: Settings,
                 clock: Callable[[], datetime] = datetime.now,
                 rng: Optional[random.Random] = None):
        self.session_factory = session_factory
        self.settings = settings
        self.clock = clock
        self.rng = rng if rng is not None else random.Random()
        self.guard = CycleGuard()
        self.runner = JobRunner(
            max_workers=settings.MAINTENANCE_MAX_WORKERS,
            cancel_grace=min(settings.MAINTENANCE_SHUTDOWN_GRACE, settings.MAINTENANCE_CYCLE_TIMEOUT),
            clock=clock,
        )
        self._current: Optional[CycleContext] = None
        self._last_report: Optional[CycleReport] = None
        self._state_lock = threading.Lock()

    def parallel_jobs(self) -> List[Job]:
        return [
            Job("CleanupExpiredSessions", partial(cleanup_expired_sessions, session_factory=self.session_factory)),
            Job("ProjectSuspensionJob", partial(suspend_expired_projects, session_factory=self.session_factory)),
            Job("WorkOrderInvoiceJob", partial(generate_recurring_invoices, session_factory=self.session_factory)),
        ]

    def production_line_jobs(self) -> List[Job]:
        """Each job reads what the previous one wrote, so they run in this order"""
        common = dict(session_factory=self.session_factory, settings=self.settings, rng=self.rng)
        return [
            Job("AutoCreateTasks", partial(auto_create_tasks, **common)),
            Job("CompleteActivityToStockyard", partial(complete_activities_to_stockyard, **common)),
            Job("ErectedHandler", partial(mark_stock_erected, **common)),
        ]

    @property
    def running(self) -> bool:
        return self.guard.busy

    @property
    def last_report(self) -> Optional[CycleReport]:
        return self._last_report

    def run_cycle(self) -> Optional[CycleReport]:
        """
        Run every job once. Returns None without doing anything when a cycle is
        already in progress.
        """
        with self.guard.entered() as acquired:
            if not acquired:
                logger.warning("Maintenance cycle already running, skipping this trigger")
                return None

            ctx = CycleContext(now=self.clock(), timeout=self.settings.MAINTENANCE_CYCLE_TIMEOUT)
            with self._state_lock:
                self._current = ctx
            logger.info(f"Maintenance cycle started at {ctx.now}, deadline in {ctx.timeout}")
            try:
                report = self.runner.run(ctx, self.parallel_jobs(), self.production_line_jobs())
            finally:
                with self._state_lock:
                    self._current = None

            self._last_report = report
            failed = [job.name for job in report.jobs if job.status != "succeeded"]
            if failed:
                logger.error(f"Maintenance cycle finished with unsuccessful jobs: {', '.join(failed)}")
            else:
                logger.info("Maintenance cycle finished, all jobs succeeded")
            return report

    def cancel_current(self) -> bool:
        with self._state_lock:
            ctx = self._current
        if ctx is None:
            return False
        logger.warning("Cancelling the running maintenance cycle")
        ctx.cancel()
        return True

    def run_work_order_invoice(self, work_order_id: int) -> InvoiceOutcome:
        """Bill one work order now over the default window (yesterday and today)"""
        logger.info(f"Manual invoice run requested for wo={work_order_id}")
        return run_invoice_attempt(self.session_factory, work_order_id, None, self.clock())
