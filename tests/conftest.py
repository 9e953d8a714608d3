"""Pytest configuration and fixtures for the maintenance tests.

Every test gets its own file-backed SQLite database with the full schema.
"""

import random
from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from precast.core.config import Settings
from precast.db.database import init_db
from precast.db.models.billing import EndClient, WorkOrder, WorkOrderMaterial
from precast.db.models.production import (
    Precast, ElementType, ElementTypePath, ProjectStage, Element
)
from precast.db.models.project import Project
from precast.db.models.stock import PrecastStock
from precast.maintenance.context import CycleContext

CYCLE_NOW = datetime(2026, 3, 1, 11, 50)


class FixedRandom(random.Random):
    """Random generator whose randint always returns `value`; sampling stays seeded."""

    def __init__(self, value: int, seed: int = 7):
        super().__init__(seed)
        self.value = value

    def randint(self, a, b):
        return self.value


class CancelAfterChecks(CycleContext):
    """Context that reports cancellation on the n-th call to check()."""

    def __init__(self, now: datetime, checks: int):
        super().__init__(now, timedelta(minutes=25))
        self.allowed = checks
        self.calls = 0

    def check(self):
        self.calls += 1
        if self.calls >= self.allowed:
            self.cancel()
        super().check()


class Seeder:
    """Small helpers that write the CRUD-owned rows the jobs read."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def _save(self, *rows):
        db = self.session_factory()
        try:
            db.add_all(rows)
            db.commit()
            for row in rows:
                db.refresh(row)
            db.expunge_all()
        finally:
            db.close()
        return rows[0] if len(rows) == 1 else rows

    def project(self, project_id=1, abbreviation="PRJ", **kwargs):
        values = dict(
            project_id=project_id, name=f"Project {project_id}", abbreviation=abbreviation,
            project_status="Active", suspend=False, work_order=True, invoice=True,
        )
        values.update(kwargs)
        return self._save(Project(**values))

    def floor(self, floor_id, project_id=1, name=None, tower_id=None):
        return self._save(Precast(id=floor_id, project_id=project_id, name=name or f"F{floor_id}", parent_id=tower_id))

    def stage(self, stage_id, project_id=1, assigned_to=500, qc_id=None, paper_id=None, name="Casting"):
        return self._save(ProjectStage(
            id=stage_id, project_id=project_id, name=name, order=1,
            assigned_to=assigned_to, qc_id=qc_id, paper_id=paper_id,
        ))

    def element_type(self, element_type_id, code, project_id=1, stage_path=None,
                     thickness=200.0, length=3000.0, height=300.0, volume=0.18, density=2500.0):
        element_type = ElementType(
            element_type_id=element_type_id, project_id=project_id, element_type=code,
            element_type_name=f"{code} beam", thickness=thickness, length=length, height=height,
            volume=volume, density=density,
        )
        rows = [element_type]
        if stage_path is not None:
            rows.append(ElementTypePath(element_type_id=element_type_id, stage_path=list(stage_path)))
        self._save(*rows)
        return element_type

    def elements(self, element_type_id, floor_id, count, project_id=1, code="E", **kwargs):
        rows = [
            Element(
                element_type_id=element_type_id, project_id=project_id, target_location=floor_id,
                element_id=f"{code}-{floor_id}-{index:03d}", element_name=f"{code}-{floor_id}-{index:03d}",
                status="Planned", instage=False, billable=True, disable=False, **kwargs,
            )
            for index in range(count)
        ]
        saved = self._save(*rows)
        return list(saved) if isinstance(saved, tuple) else [saved]

    def stock(self, element, **kwargs):
        values = dict(
            element_id=element.id, element_type_id=element.element_type_id, project_id=element.project_id,
            target_location=element.target_location, stockyard=False, dispatch_status=False,
            erected=False, recieve_in_erection=False, order_by_erection=False,
        )
        values.update(kwargs)
        return self._save(PrecastStock(**values))

    def end_client(self, client_id=1, abbreviation="EC"):
        return self._save(EndClient(id=client_id, name="End Client", abbreviation=abbreviation))

    def work_order(self, work_order_id=1, project_id=1, endclient_id=1, patterns=None, payment_term=None,
                   wo_validate=date(2026, 12, 31), **kwargs):
        values = dict(
            id=work_order_id, wo_number=f"WO-{work_order_id}", endclient_id=endclient_id, project_id=project_id,
            created_by=7, billed_address="Billing street 1", shipped_address="Site road 2",
            payment_term=payment_term, recurrence_patterns=patterns, wo_validate=wo_validate,
        )
        values.update(kwargs)
        return self._save(WorkOrder(**values))

    def material(self, work_order_id=1, item_name="b1", unit_rate=5000.0, tax=18.0, floor_id=None, **kwargs):
        return self._save(WorkOrderMaterial(
            work_order_id=work_order_id, item_name=item_name, unit_rate=unit_rate, tax=tax,
            floor_id=floor_id, volume=100.0, volume_used=0.0, **kwargs,
        ))


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'maintenance.db'}",
        connect_args={"check_same_thread": False},
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seed(session_factory) -> Seeder:
    return Seeder(session_factory)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        ERROR_LOG_FILE="",
        PROGRESSION_PROJECT_IDS=[1],
        MAINTENANCE_MAX_WORKERS=1,
    )


@pytest.fixture
def make_ctx():
    def _make(now: datetime = CYCLE_NOW, timeout: timedelta = timedelta(minutes=25)) -> CycleContext:
        return CycleContext(now=now, timeout=timeout)
    return _make


@pytest.fixture
def invoice_setup(seed):
    """Project, end client, element type B1 (0.180 m3) and one billable element on floor 10."""
    seed.project(project_id=1, abbreviation="PRJ")
    seed.end_client(client_id=1, abbreviation="EC")
    seed.floor(10, name="F1")
    seed.element_type(1, "B1", volume=0.18)
    (element,) = seed.elements(1, 10, 1, code="B1")
    return element


@pytest.fixture
def fixed_random():
    """Factory for generators whose daily target is pinned: fixed_random(17)."""
    return FixedRandom


@pytest.fixture
def cancel_after():
    """Factory for contexts that cancel on the n-th check: cancel_after(now, checks=7)."""
    return CancelAfterChecks
