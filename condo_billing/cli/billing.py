"""CLI for offline billing maintenance.

One parameterised command per operation, for any tenant and billing month.

Usage:
    python -m condo_billing.cli.billing init-db
    python -m condo_billing.cli.billing preview --tenant 1 --month 2025-11
    python -m condo_billing.cli.billing generate --tenant 1 --month 2025-11
    python -m condo_billing.cli.billing delete --tenant 1 --month 2025-11
    python -m condo_billing.cli.billing mark-overdue --tenant 1 [--as-of 2025-12-10]
    python -m condo_billing.cli.billing advances --tenant 1

Exit Codes:
    0 - Success
    1 - Failure: error logged; database state unchanged
"""

import argparse
import logging
import sys
from datetime import date

from sqlalchemy.orm import Session

from condo_billing.services.errors import BillingError

logger = logging.getLogger("condo_billing.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="condo-billing", description="Condominium billing maintenance")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create database tables")

    for name, help_text in (
        ("preview", "Show the bills a month would produce"),
        ("generate", "Generate the bills of a month"),
        ("delete", "Delete the unpaid bills of a month"),
    ):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("--tenant", type=int, required=True, help="Tenant id")
        sub.add_argument("--month", required=True, help="Billing month, YYYY-MM")
        if name != "preview":
            sub.add_argument("--actor", type=int, default=None, help="Operator id for the audit log")

    overdue = commands.add_parser("mark-overdue", help="Flag unpaid bills past their due date")
    overdue.add_argument("--tenant", type=int, required=True, help="Tenant id")
    overdue.add_argument(
        "--as-of",
        type=date.fromisoformat,
        default=None,
        help="Reference date, YYYY-MM-DD (default: today)",
    )
    overdue.add_argument("--actor", type=int, default=None, help="Operator id for the audit log")

    advances = commands.add_parser("advances", help="List units holding an advance balance")
    advances.add_argument("--tenant", type=int, required=True, help="Tenant id")

    return parser


def _print_preview(preview) -> None:
    print(f"Billing month {preview.billing_month}: {len(preview.bills)} unit(s)")
    print(
        f"  period {preview.schedule.period_from} to {preview.schedule.period_to}, "
        f"statement {preview.schedule.statement_date}, due {preview.schedule.due_date}"
    )
    if preview.existing_bill_count:
        print(f"  {preview.existing_bill_count} bill(s) already exist for this month")
    for message in preview.validation.messages:
        print(f"  ! {message}")

    for bill in preview.bills:
        c = bill.computation
        print(
            f"{bill.unit_number:<14} elec {c.electric_amount:>10} water {c.water_amount:>9} "
            f"dues {c.association_dues:>9} park {c.parking_fee:>8} prev {c.previous_balance:>10} "
            f"pen {c.penalty_amount:>9} adv -{c.advance_dues_applied + c.advance_util_applied:>8} "
            f"total {c.total_amount:>11}"
        )
        for warning in bill.warnings:
            print(f"    ! {warning}")
    print(f"Total: {preview.total_amount}")


def run_command(args: argparse.Namespace, db: Session) -> int:
    from condo_billing.services.bills_service import BillsService
    from condo_billing.services.ledger import AdvanceBalanceLedger

    if args.command == "preview":
        _print_preview(BillsService(db).preview_period(args.tenant, args.month))
        return 0

    if args.command == "generate":
        result = BillsService(db).generate_period(args.tenant, args.month, actor_id=args.actor)
        for warning in result.warnings:
            logger.warning(warning)
        print(f"Generated {len(result.bills)} bill(s) for {result.billing_month}, total {result.total_amount}")
        return 0

    if args.command == "delete":
        deleted = BillsService(db).delete_period_bills(args.tenant, args.month, actor_id=args.actor)
        print(f"Deleted {deleted} bill(s)")
        return 0

    if args.command == "mark-overdue":
        as_of = args.as_of or date.today()
        updated = BillsService(db).mark_overdue(args.tenant, as_of, actor_id=args.actor)
        print(f"Marked {updated} bill(s) overdue")
        return 0

    if args.command == "advances":
        summary = AdvanceBalanceLedger(db).summary(args.tenant)
        for row in summary.units:
            print(f"{row.unit_number:<14} dues {row.advance_dues:>10} utilities {row.advance_utilities:>10}")
        print(f"Total: dues {summary.total_dues}, utilities {summary.total_utilities}, all {summary.total}")
        return 0

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None, db: Session | None = None) -> int:
    """
    Main entry point for the billing CLI.

    Args:
        argv: Command-line arguments (default: sys.argv[1:])
        db: Session to use instead of opening one (tests)

    Returns:
        Exit code: 0 for success, 1 for failure
    """
    args = build_parser().parse_args(argv)

    from condo_billing.services.config import get_settings
    from condo_billing.services.logging import LOG_LEVEL_MAP, setup_logging

    settings = get_settings()
    setup_logging(
        args.log_file or settings.log_file,
        level=LOG_LEVEL_MAP.get(settings.log_level, logging.INFO),
    )

    try:
        if args.command == "init-db":
            from condo_billing.models import Base
            from condo_billing.services import engine

            Base.metadata.create_all(engine)
            logger.info("Database tables created")
            return 0

        if db is not None:
            return run_command(args, db)

        from condo_billing.services import SessionLocal

        session = SessionLocal()
        try:
            return run_command(args, session)
        finally:
            session.close()

    except BillingError as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 1
    except Exception as e:
        logger.error("Command %s failed: %s", args.command, e, exc_info=True)
        return 1


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
