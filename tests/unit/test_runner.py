"""Tests for the job runner: isolation, lanes and the cycle deadline."""

import threading
import time
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from precast.maintenance.context import CycleContext
from precast.maintenance.exceptions import CycleCancelled, ReferenceNotFound
from precast.maintenance.runner import Job, JobRunner

NOW = datetime(2026, 3, 1, 11, 50)


def ctx(timeout=timedelta(minutes=25)):
    return CycleContext(now=NOW, timeout=timeout)


def ok(ctx):
    return {"done": True}


def crash(ctx):
    raise RuntimeError("boom")


class TestCycleContext:
    def test_check_passes_before_deadline(self):
        context = ctx()
        context.check()
        assert not context.cancelled
        assert context.remaining() > 0
        assert context.today == NOW.date()

    def test_cancel(self):
        context = ctx()
        context.cancel()
        assert context.cancelled
        with pytest.raises(CycleCancelled):
            context.check()

    def test_deadline(self):
        context = ctx(timeout=timedelta(0))
        assert context.cancelled
        assert context.remaining() == 0.0
        with pytest.raises(CycleCancelled):
            context.check()


class TestRunJob:
    def test_success_records_summary(self):
        result = JobRunner().run_job(Job("Ok", ok), ctx())
        assert result.status == "succeeded"
        assert result.summary == {"done": True}
        assert result.started_at is not None and result.finished_at is not None

    def test_programming_error_is_contained(self):
        result = JobRunner().run_job(Job("Crash", crash), ctx())
        assert result.status == "failed"
        assert "RuntimeError: boom" in result.error

    def test_known_errors_fail_the_job(self):
        def missing(ctx):
            raise ReferenceNotFound("project", 1)

        def storage(ctx):
            raise OperationalError("SELECT 1", {}, Exception("connection lost"))

        runner = JobRunner()
        assert runner.run_job(Job("Missing", missing), ctx()).status == "failed"
        assert runner.run_job(Job("Storage", storage), ctx()).status == "failed"

    def test_cancellation(self):
        context = ctx()
        context.cancel()
        result = JobRunner().run_job(Job("Ok", ok), context)
        assert result.status == "cancelled"


class TestRun:
    def test_failure_does_not_stop_siblings_or_lane(self):
        order = []

        def record(name):
            def fn(ctx):
                order.append(name)
                return {}
            return fn

        report = JobRunner(max_workers=2).run(
            ctx(),
            parallel=[Job("Crash", crash), Job("Ok", ok)],
            sequential=[Job("First", record("first")), Job("Broken", crash), Job("Third", record("third"))],
        )
        statuses = {job.name: job.status for job in report.jobs}
        assert statuses == {
            "Crash": "failed", "Ok": "succeeded",
            "First": "succeeded", "Broken": "failed", "Third": "succeeded",
        }
        assert order == ["first", "third"]
        assert not report.timed_out
        assert report.finished_at is not None

    def test_deadline_cancels_cooperative_jobs(self):
        def cooperative(ctx):
            while True:
                ctx.check()
                time.sleep(0.01)

        report = JobRunner(max_workers=2, cancel_grace=timedelta(seconds=2)).run(
            ctx(timeout=timedelta(seconds=0.2)),
            parallel=[Job("Ok", ok)],
            sequential=[Job("Loop", cooperative), Job("After", ok)],
        )
        assert report.timed_out
        assert report.job("Ok").status == "succeeded"
        assert report.job("Loop").status == "cancelled"
        assert report.job("After").status == "cancelled"

    def test_job_still_running_after_grace_is_timed_out(self):
        release = threading.Event()

        def stubborn(ctx):
            release.wait(5)

        try:
            report = JobRunner(max_workers=2, cancel_grace=timedelta(seconds=0.1)).run(
                ctx(timeout=timedelta(seconds=0.1)),
                parallel=[Job("Stubborn", stubborn)],
                sequential=[],
            )
        finally:
            release.set()
        assert report.timed_out
        assert report.job("Stubborn").status == "timed_out"
