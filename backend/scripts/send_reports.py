"""
FSM Reports — Manual report run.

Daily (gated, same as the cron endpoint) or period (ungated) reports for
all tenants or a subset, optionally routed to test numbers.

Run:
  cd backend && python3 scripts/send_reports.py --dry-run
  cd backend && python3 scripts/send_reports.py --name acme --to "+91 95376 53927"
  cd backend && python3 scripts/send_reports.py --start 2025-12-01 --end 2025-12-07 --tenant t-1
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config import client, db
from services.clock import parse_date
from services.report_runner import ReportRunner, TenantEnumerationError
from services.report_store import MongoReportStore
from services.whatsapp_dispatcher import WhatsAppDispatcher


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Send FSM WhatsApp reports")
    parser.add_argument("--tenant", action="append", dest="tenant_ids", help="tenant id (repeatable)")
    parser.add_argument("--name", dest="name_like", help="company name contains (period mode only)")
    parser.add_argument("--tz", help="only tenants on this IANA timezone (daily mode only)")
    parser.add_argument("--to", action="append", dest="recipients",
                        help="send every message to this number instead (repeatable)")
    parser.add_argument("--dry-run", action="store_true", help="render and print, send nothing")
    parser.add_argument("--force", action="store_true", help="bypass the send lock (daily mode only)")
    parser.add_argument("--start", help="period start date YYYY-MM-DD")
    parser.add_argument("--end", help="period end date YYYY-MM-DD (defaults to --start)")
    return parser


async def run(args) -> int:
    store = MongoReportStore(db)
    dispatcher = WhatsAppDispatcher.from_config()
    runner = ReportRunner(store, dispatcher)

    try:
        if args.start:
            start = parse_date(args.start)
            end = parse_date(args.end) if args.end else start
            result = await runner.run_period(
                start, end,
                tenant_ids=args.tenant_ids,
                name_like=args.name_like,
                recipients=args.recipients,
                dry_run=args.dry_run,
            )
        else:
            result = await runner.run_daily(
                tz=args.tz,
                force=args.force,
                dry_run=args.dry_run,
                tenant_ids=args.tenant_ids,
                recipients=args.recipients,
            )
    except TenantEnumerationError as e:
        print(f"❌ Could not list tenants: {e}")
        return 2
    finally:
        await dispatcher.aclose()
        client.close()

    print("\n════════════════════════════════════")
    print(f"  REPORT RUN ({result.mode})")
    print("════════════════════════════════════")
    print(f"  Date:      {result.date}")
    print(f"  Tenants:   {result.tenants}")
    print(f"  {'Previews:' if args.dry_run else 'Sent:    '} {result.sent}")
    print(f"  Failed:    {result.failed}")
    for reason, names in result.skipped_by_reason().items():
        if names:
            print(f"  Skipped ({reason}): {', '.join(names)}")
    for error in result.tenant_errors:
        print(f"  ❌ {error['tenant']}: {error['error']}")

    if args.dry_run:
        for outcome in result.outcomes:
            for recipient in outcome.recipients:
                print(f"\n── {outcome.company_name} → {recipient.role} {recipient.name} ({recipient.phone}) ──")
                print(recipient.message)
    print("════════════════════════════════════")

    return 1 if result.failed or result.tenant_errors else 0


def main():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    args = build_parser().parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
