"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  FSM Reports - Send Gate                                                     ║
║                                                                              ║
║  Decides, per tenant per TENANT-LOCAL day, whether a report run proceeds.    ║
║                                                                              ║
║  ORDER (strict):                                                             ║
║  1. tenant-local date                                                        ║
║  2. send lock insert (skipped by force / dry run)                            ║
║     duplicate key        → already_sent                                      ║
║     database failure     → log_unavailable   (FAIL CLOSED)                   ║
║     anything else        → lock_error        (FAIL CLOSED)                   ║
║  3. weekend day          → weekend                                           ║
║  4. zero visits today    → no_visits                                         ║
║  5. proceed                                                                  ║
║                                                                              ║
║  The unique index on report_send_log is the ONLY mutual exclusion:           ║
║  two parallel runners can never both proceed for the same tenant-day.        ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import Optional

from pymongo.errors import DuplicateKeyError, PyMongoError

from models.report import GateDecision, ReportType, SendLogEntry, SkipReason
from models.tenant import Tenant
from services import clock

logger = logging.getLogger("send_gate")


class SendGate:

    def __init__(self, store, report_type: ReportType = ReportType.DAILY):
        self.store = store
        self.report_type = report_type

    async def should_send(
        self,
        tenant: Tenant,
        force: bool = False,
        dry_run: bool = False,
        meta: Optional[dict] = None,
    ) -> GateDecision:
        now_local = clock.local_now(tenant.timezone)
        report_date = now_local.date().isoformat()

        if dry_run:
            reason = await self._peek_lock(tenant, report_date)
        elif force:
            logger.warning(f"[SEND_GATE] {tenant.company_name}: force send, lock not taken")
            reason = None
        else:
            reason = await self._acquire_lock(tenant, report_date, meta)
        if reason is not None:
            return GateDecision.skip(report_date, reason)

        if clock.weekday_index(now_local) in tenant.weekend_days:
            logger.info(f"[SEND_GATE] {tenant.company_name}: weekend day ({report_date})")
            return GateDecision.skip(report_date, SkipReason.WEEKEND)

        start, end = clock.local_day_bounds(tenant.timezone, now_local.date())
        visits = await self.store.count_visits(tenant.id, start, end)
        if visits == 0:
            logger.info(f"[SEND_GATE] {tenant.company_name}: no visits on {report_date}")
            return GateDecision.skip(report_date, SkipReason.NO_VISITS)

        logger.info(f"[SEND_GATE] {tenant.company_name}: {visits} visit(s) on {report_date}, proceeding")
        return GateDecision.go(report_date)

    async def _acquire_lock(self, tenant: Tenant, report_date: str,
                            meta: Optional[dict]) -> Optional[SkipReason]:
        entry = SendLogEntry(
            tenant_id=tenant.id,
            report_date=report_date,
            report_type=self.report_type,
            meta=meta,
        )
        try:
            await self.store.insert_send_log(entry)
        except DuplicateKeyError:
            logger.info(f"[SEND_GATE] {tenant.company_name}: already sent for {report_date}")
            return SkipReason.ALREADY_SENT
        except PyMongoError as e:
            logger.error(
                f"[SEND_GATE] {tenant.company_name}: report_send_log unavailable, "
                f"skipping to avoid duplicates: {e}"
            )
            return SkipReason.LOG_UNAVAILABLE
        except Exception as e:
            logger.exception(f"[SEND_GATE] {tenant.company_name}: failed to acquire send lock: {e}")
            return SkipReason.LOCK_ERROR
        return None

    async def _peek_lock(self, tenant: Tenant, report_date: str) -> Optional[SkipReason]:
        """Read-only lock check for dry runs: nothing is written"""
        try:
            existing = await self.store.find_send_log(tenant.id, report_date, self.report_type)
        except Exception as e:
            logger.error(f"[SEND_GATE] {tenant.company_name}: send log lookup failed: {e}")
            return SkipReason.LOCK_ERROR
        if existing:
            return SkipReason.ALREADY_SENT
        return None
