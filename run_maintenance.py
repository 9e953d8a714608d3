"""
Run one maintenance cycle now, outside the daily schedule.

    python run_maintenance.py
    python run_maintenance.py --invoice-work-order 12
"""
import argparse
import sys

from precast.core.config import settings
from precast.core.logging import setup_logging
from precast.db.auto_migrate import ensure_invoice_history_ledger
from precast.db.database import engine, SessionLocal
from precast.maintenance.orchestrator import MaintenanceOrchestrator

def main():
    parser = argparse.ArgumentParser(description="Run the precast maintenance cycle once")
    parser.add_argument("--invoice-work-order", type=int, default=None,
                        help="only bill this work order over yesterday and today")
    args = parser.parse_args()

    setup_logging(settings)
    ensure_invoice_history_ledger(engine)
    orchestrator = MaintenanceOrchestrator(SessionLocal, settings)

    if args.invoice_work_order is not None:
        outcome = orchestrator.run_work_order_invoice(args.invoice_work_order)
        print(outcome.model_dump_json(indent=2))
        return 0

    report = orchestrator.run_cycle()
    if report is None:
        print("A maintenance cycle is already running")
        return 1
    for job in report.jobs:
        print(f"{job.name:<30} {job.status:<10} {job.duration_seconds or 0:.2f}s {job.error or job.summary}")
    return 0 if all(job.status == "succeeded" for job in report.jobs) else 1

if __name__ == "__main__":
    sys.exit(main())
