"""
Run billing operations by hand, outside Celery.

Usage:
    python -m recurbill.workers.run_sweep sweep
    python -m recurbill.workers.run_sweep sweep --date 2024-01-15
    python -m recurbill.workers.run_sweep retry
    python -m recurbill.workers.run_sweep retry --date 2024-01-16
    python -m recurbill.workers.run_sweep client 42
    python -m recurbill.workers.run_sweep client 42 --date 2024-02-15
    python -m recurbill.workers.run_sweep create-charge 42 2024-03-15
"""
from __future__ import annotations

import argparse
import datetime as dt
import json
import logging
import sys

from recurbill.core.exceptions import BillingException
from recurbill.core.logger import init_logging
from recurbill.db.session import SessionLocal
from recurbill.services.billing import build_billing_engine

logger = logging.getLogger(__name__)


def _date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not a YYYY-MM-DD date: {value}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="run_sweep", description="Manual billing operations")
    sub = parser.add_subparsers(dest="command", required=True)

    sweep = sub.add_parser("sweep", help="process charges due on a day (default: today)")
    sweep.add_argument("--date", type=_date, default=None)

    retry = sub.add_parser("retry", help="send reminders still owed, including charges stalled on earlier days")
    retry.add_argument("--date", type=_date, default=None)

    client = sub.add_parser("client", help="process one client's charge")
    client.add_argument("client_id", type=int)
    client.add_argument("--date", type=_date, default=None, help="due date (default: today)")

    create = sub.add_parser("create-charge", help="create a charge without notifying")
    create.add_argument("client_id", type=int)
    create.add_argument("due_date", type=_date)
    return parser


def main(argv: list[str] | None = None) -> int:
    init_logging()
    args = build_parser().parse_args(argv)
    db = SessionLocal()
    try:
        engine = build_billing_engine(db)
        if args.command == "sweep":
            result = engine.run_sweep(day=args.date, trigger="manual").as_dict()
        elif args.command == "retry":
            result = engine.retry_failed_reminders(day=args.date).as_dict()
        elif args.command == "client":
            if args.date is None:
                outcome = engine.process_client_today(args.client_id)
            else:
                outcome = engine.send_reminder_for_date(args.client_id, args.date)
            result = {"client_id": args.client_id, "outcome": outcome.value}
        else:
            charge = engine.create_charge_for_date(args.client_id, args.due_date)
            result = {"charge_id": charge.id, "reference": charge.reference, "due_date": charge.due_date.isoformat()}
    except BillingException as exc:
        print(json.dumps(exc.to_dict()), file=sys.stderr)
        return 1
    finally:
        db.close()
    print(json.dumps(result, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
