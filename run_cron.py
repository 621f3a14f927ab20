#!/usr/bin/env python3
"""
Run a lifecycle batch job without going through HTTP.

Usage:
    python3 run_cron.py <job>

Jobs: grace-period, payment-expiry, renewal-reminder, meeting-reminder,
subscription-expiry, activate, daily
"""

import argparse
import sys

from academy.core.database import db_manager
from academy.core.logging import setup_logging
from academy.services import cron
from academy.services.gateway import get_payment_gateway

JOBS = {
    "grace-period": lambda db, gateway: [cron.run_grace_period(db)],
    "payment-expiry": lambda db, gateway: [cron.run_payment_expiry(db)],
    "renewal-reminder": lambda db, gateway: [cron.run_renewal_reminder(db, gateway)],
    "meeting-reminder": lambda db, gateway: [cron.run_meeting_reminder(db)],
    "subscription-expiry": lambda db, gateway: [cron.run_subscription_expiry(db)],
    "activate": lambda db, gateway: [cron.activate_paid_enrollments(db)],
    "daily": cron.run_daily,
}


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run an enrollment lifecycle job")
    parser.add_argument("job", choices=sorted(JOBS))
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    db_manager.init()
    db = db_manager.session()
    try:
        results = JOBS[args.job](db, get_payment_gateway())
    finally:
        db.close()
        db_manager.close()

    failed = False
    for result in results:
        print(f"[{result.task}] {result.message}")
        print(f"  total={result.total} processed={result.processed} skipped={result.skipped}")
        if result.errors:
            print(f"  errors: {', '.join(result.errors)}")
        failed = failed or not result.success or bool(result.errors)

    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
