#!/usr/bin/env python3
"""
Remittance Compliance Run Script
Runs the daily compliance pass directly against the database, for hosts
whose scheduler invokes a shell command instead of the HTTP endpoint.

Usage:
    python -m scripts.run_compliance_check [--notifier log|smtp]

Exit status is 1 only when the overdue set could not be fetched.
"""
import argparse
import json
import logging
import sys
import os

# Add the parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.orm import Session
from app.database import SessionLocal, init_db
from app.services.remittance import (
    ObligationFetchError,
    RemittanceComplianceScheduler,
    get_notifier,
)


def run(notifier_backend: str = None) -> int:
    """Run one compliance pass and print the run report as JSON."""
    init_db()

    db: Session = SessionLocal()
    try:
        scheduler = RemittanceComplianceScheduler(db, notifier=get_notifier(notifier_backend))
        try:
            report = scheduler.run_daily_compliance_check()
        except ObligationFetchError as e:
            print(json.dumps({"error": "Internal server error", "details": str(e)}))
            return 1

        print(json.dumps(report, indent=2, default=str))
        return 0
    finally:
        db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run the remittance compliance pass")
    parser.add_argument(
        "--notifier",
        choices=["log", "smtp"],
        default=None,
        help="Reminder delivery backend (default: REMITTANCE_NOTIFIER or 'log')",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return run(args.notifier)


if __name__ == "__main__":
    sys.exit(main())
