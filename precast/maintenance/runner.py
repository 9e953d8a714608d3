from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
import logging
import time

from sqlalchemy.exc import SQLAlchemyError

from precast.maintenance.context import CycleContext
from precast.maintenance.exceptions import CycleCancelled, MaintenanceError

logger = logging.getLogger(__name__)

PENDING = "pending"
RUNNING = "running"
SUCCEEDED = "succeeded"
FAILED = "failed"
CANCELLED = "cancelled"
TIMED_OUT = "timed_out"


@dataclass
class Job:
    name: str
    fn: Callable[[CycleContext], Any]


@dataclass
class JobResult:
    name: str
    status: str = PENDING
    error: Optional[str] = None
    summary: Optional[Dict[str, Any]] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None


@dataclass
class CycleReport:
    started_at: datetime
    finished_at: Optional[datetime] = None
    timed_out: bool = False
    jobs: List[JobResult] = field(default_factory=list)

    def job(self, name: str) -> Optional[JobResult]:
        return next((result for result in self.jobs if result.name == name), None)


class JobRunner:
    """
    Runs one cycle worth of jobs on a thread pool.

    Parallel jobs each get a worker; the sequential jobs share one worker and run
    in order. A job's exception never escapes the runner.
    """

    def __init__(self, max_workers: int = 4, cancel_grace: timedelta = timedelta(seconds=30),
                 clock: Callable[[], datetime] = datetime.now):
        self.max_workers = max(1, max_workers)
        self.cancel_grace = cancel_grace
        self.clock = clock

    def run_job(self, job: Job, ctx: CycleContext, result: Optional[JobResult] = None) -> JobResult:
        result = result if result is not None else JobResult(name=job.name)
        result.status = RUNNING
        result.started_at = self.clock()
        started = time.monotonic()
        logger.info(f"[{job.name}] started")
        try:
            ctx.check()
            summary = job.fn(ctx)
            result.summary = summary if isinstance(summary, dict) else None
            result.status = SUCCEEDED
        except CycleCancelled as e:
            result.status = CANCELLED
            result.error = str(e)
            logger.warning(f"[{job.name}] cancelled: {e}")
        except (MaintenanceError, SQLAlchemyError) as e:
            result.status = FAILED
            result.error = str(e)
            logger.error(f"[{job.name}] failed: {e}")
        except Exception as e:
            # Programming errors stay isolated to the job that raised them
            result.status = FAILED
            result.error = f"{type(e).__name__}: {e}"
            logger.error(f"[{job.name}] crashed: {e}", exc_info=True)
        finally:
            result.finished_at = self.clock()
            result.duration_seconds = round(time.monotonic() - started, 3)

        if result.status == SUCCEEDED:
            logger.info(f"[{job.name}] completed successfully in {result.duration_seconds:.2f}s: {result.summary}")
        else:
            logger.info(f"[{job.name}] finished with status {result.status} in {result.duration_seconds:.2f}s")
        return result

    def _run_lane(self, jobs: List[Job], ctx: CycleContext, results: Dict[str, JobResult]):
        for job in jobs:
            if ctx.cancelled:
                results[job.name].status = CANCELLED
                results[job.name].error = "cycle cancelled before the job started"
                logger.warning(f"[{job.name}] not started, cycle cancelled")
                continue
            # A failed job does not stop the rest of the lane
            self.run_job(job, ctx, results[job.name])

    def run(self, ctx: CycleContext, parallel: List[Job], sequential: List[Job]) -> CycleReport:
        report = CycleReport(started_at=self.clock())
        results = {job.name: JobResult(name=job.name) for job in list(parallel) + list(sequential)}

        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="maintenance")
        try:
            futures = [executor.submit(self.run_job, job, ctx, results[job.name]) for job in parallel]
            if sequential:
                futures.append(executor.submit(self._run_lane, list(sequential), ctx, results))

            _, pending = wait(futures, timeout=ctx.remaining())
            if pending:
                report.timed_out = True
                logger.error(f"Maintenance cycle deadline of {ctx.timeout} passed with {len(pending)} job group(s) still running, cancelling")
                ctx.cancel()
                # Give stragglers a chance to roll back before reporting them
                _, pending = wait(pending, timeout=self.cancel_grace.total_seconds())
                for result in results.values():
                    if result.status in (PENDING, RUNNING):
                        result.status = TIMED_OUT
                        result.error = "cycle deadline passed"
                if pending:
                    logger.error(f"{len(pending)} job group(s) did not stop within {self.cancel_grace}")
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        # Snapshot so late finishers cannot change a published report
        report.jobs = [replace(result) for result in results.values()]
        report.finished_at = self.clock()
        return report
