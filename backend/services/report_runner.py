"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  FSM Reports - Report Runner                                                 ║
║                                                                              ║
║  Idle → EnumeratingTenants                                                   ║
║       → per tenant: Gating → Aggregating → Rendering → Dispatching           ║
║       → Summarizing → Idle                                                   ║
║                                                                              ║
║  ISOLATION:                                                                  ║
║  - gate rejection        → tallied, next tenant                              ║
║  - aggregation error     → tenant error, next tenant                         ║
║  - one recipient fails   → failed += 1, next recipient                       ║
║  - tenant listing fails  → TenantEnumerationError (fatal, nothing attempted) ║
║                                                                              ║
║  The send lock is never rolled back: a day that was attempted is not         ║
║  retried automatically, even if some sends failed.                           ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from datetime import date
from typing import Iterable, List, Optional, Sequence

import config
from models.report import ReportPeriod, RecipientOutcome, RunResult, TenantOutcome
from models.tenant import Salesman, Tenant
from services import clock
from services.activity_aggregator import aggregate
from services.message_renderer import DEFAULT_COACHING_RULES, render_admin, render_salesman
from services.send_gate import SendGate
from services.team_summary import build_team_summary
from services.whatsapp_dispatcher import SendFailure, mask_phone

logger = logging.getLogger("report_runner")


class TenantEnumerationError(Exception):
    """Tenant listing failed: the run cannot start"""


class ReportRunner:

    def __init__(
        self,
        store,
        dispatcher,
        gate: Optional[SendGate] = None,
        top_limit: int = config.TOP_PERFORMERS_LIMIT,
        alert_limit: int = config.ALERTS_LIMIT,
        coaching_rules=DEFAULT_COACHING_RULES,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.gate = gate or SendGate(store)
        self.top_limit = top_limit
        self.alert_limit = alert_limit
        self.coaching_rules = coaching_rules

    # ==================== ENTRY POINTS ====================

    async def run_daily(
        self,
        tz: Optional[str] = None,
        force: bool = False,
        dry_run: bool = False,
        tenant_ids: Optional[Iterable[str]] = None,
        notification_time: Optional[str] = None,
        recipients: Optional[Sequence[str]] = None,
    ) -> RunResult:
        """
        Daily summaries for every eligible tenant.

        Args:
            tz: only tenants on exactly this IANA timezone
            force: skip the send lock (weekend / no-visit checks still apply)
            dry_run: render only, no lock insert, no outbound message
            tenant_ids: restrict to these tenants
            notification_time: only tenants scheduled at this local "HH:MM"
            recipients: override phone numbers, every message goes there instead
        """
        trigger_date = clock.utcnow().date().isoformat()
        tenants = await self._enumerate(
            timezone_name=tz, tenant_ids=tenant_ids, notification_time=notification_time
        )
        logger.info(
            f"[RUN] daily summaries {trigger_date} (UTC): {len(tenants)} tenant(s), "
            f"tz={tz or '*'} force={force} dry_run={dry_run}"
        )

        result = RunResult(mode="dry-run" if dry_run else "live", date=trigger_date, tenants=len(tenants))
        meta = {"tz": tz, "trigger_date_utc": trigger_date, "force": force}
        for tenant in tenants:
            result.add(await self._run_daily_tenant(tenant, force, dry_run, meta, recipients))

        self._log_summary(result)
        return result

    async def run_period(
        self,
        start: date,
        end: date,
        tenant_ids: Optional[Iterable[str]] = None,
        name_like: Optional[str] = None,
        recipients: Optional[Sequence[str]] = None,
        dry_run: bool = False,
    ) -> RunResult:
        """Manual period report (no send lock, no weekend / no-visit gating)"""
        if start > end:
            raise ValueError(f"start date {start} is after end date {end}")
        period = ReportPeriod(start=start, end=end)
        tenants = await self._enumerate(tenant_ids=tenant_ids, name_like=name_like)
        logger.info(f"[RUN] period report {start}..{end}: {len(tenants)} tenant(s), dry_run={dry_run}")

        result = RunResult(
            mode="dry-run" if dry_run else "period",
            date=clock.utcnow().date().isoformat(),
            tenants=len(tenants),
        )
        for tenant in tenants:
            outcome = TenantOutcome(
                tenant_id=tenant.id,
                company_name=tenant.company_name,
                report_date=f"{start.isoformat()}..{end.isoformat()}",
            )
            await self._deliver_isolated(tenant, period, outcome, dry_run, recipients)
            result.add(outcome)

        self._log_summary(result)
        return result

    # ==================== PER TENANT ====================

    async def _enumerate(self, **filters) -> List[Tenant]:
        try:
            return await self.store.list_active_tenants(**filters)
        except Exception as e:
            logger.exception(f"[RUN] tenant enumeration failed: {e}")
            raise TenantEnumerationError(str(e)) from e

    async def _run_daily_tenant(self, tenant: Tenant, force: bool, dry_run: bool,
                                meta: dict, recipients) -> TenantOutcome:
        outcome = TenantOutcome(tenant_id=tenant.id, company_name=tenant.company_name)
        try:
            decision = await self.gate.should_send(tenant, force=force, dry_run=dry_run, meta=meta)
        except Exception as e:
            logger.exception(f"[RUN] {tenant.company_name}: gate check failed: {e}")
            outcome.error = f"gate: {e}"
            return outcome

        outcome.report_date = decision.report_date
        if not decision.proceed:
            outcome.reason = decision.reason
            logger.info(f"[RUN] {tenant.company_name}: skipped ({decision.reason.value})")
            return outcome

        period = ReportPeriod.single_day(date.fromisoformat(decision.report_date))
        await self._deliver_isolated(tenant, period, outcome, dry_run, recipients)
        return outcome

    async def _deliver_isolated(self, tenant, period, outcome, dry_run, recipients):
        try:
            await self._deliver(tenant, period, outcome, dry_run, recipients)
        except Exception as e:
            logger.exception(f"[RUN] {tenant.company_name}: report failed: {e}")
            outcome.error = str(e)

    async def _deliver(self, tenant: Tenant, period: ReportPeriod, outcome: TenantOutcome,
                       dry_run: bool, recipients: Optional[Sequence[str]]):
        # Aggregating
        salesmen = await self.store.list_salesmen(tenant.id, is_admin=False)
        admins = await self.store.list_salesmen(tenant.id, is_admin=True)
        plant_names = await self.store.plant_names(tenant.id)
        start, end = clock.period_bounds(tenant.timezone, period.start, period.end)
        visits = await self.store.list_visits(tenant.id, start, end)

        stats = aggregate(visits, roster=salesmen, plant_names=plant_names)
        summary = build_team_summary(stats, salesmen, top_limit=self.top_limit)
        logger.info(
            f"[RUN] {tenant.company_name}: {len(visits)} visit(s), "
            f"{summary.active_salesmen}/{summary.roster_size} active, {len(admins)} admin(s)"
        )

        # Rendering + dispatching, salesmen first
        for salesman in salesmen:
            row = stats.get(salesman.id)
            if row is None or row.total_activities == 0:
                outcome.idle_salesmen += 1
                continue
            text = render_salesman(row, tenant, period, self.coaching_rules)
            await self._dispatch(outcome, salesman, "salesman", text, dry_run, recipients)

        for admin in admins:
            text = render_admin(summary, tenant, period, admin_name=admin.name,
                                alert_limit=self.alert_limit)
            await self._dispatch(outcome, admin, "admin", text, dry_run, recipients)

    async def _dispatch(self, outcome: TenantOutcome, person: Salesman, role: str, text: str,
                        dry_run: bool, recipients: Optional[Sequence[str]]):
        targets = list(recipients) if recipients else [person.phone or ""]
        for phone in targets:
            record = RecipientOutcome(name=person.name, role=role, phone=mask_phone(phone), status="sent")
            if dry_run:
                logger.info(f"[DRY_RUN] would send to {role} {person.name} ({record.phone}):\n{text}")
                record.status = "preview"
                record.message = text
                outcome.sent += 1
            else:
                try:
                    record.message_id = await self.dispatcher.send(phone, text)
                    outcome.sent += 1
                except SendFailure as e:
                    logger.error(f"[RUN] {outcome.company_name}: failed for {role} {person.name}: {e}")
                    record.status = "failed"
                    record.error = str(e)
                    outcome.failed += 1
            outcome.recipients.append(record)

    # ==================== SUMMARY ====================

    def _log_summary(self, result: RunResult):
        label = "would send" if result.mode == "dry-run" else "sent"
        logger.info(f"[RUN] completed ({result.mode}): {label}={result.sent} failed={result.failed}")
        for reason, names in result.skipped_by_reason().items():
            if names:
                logger.info(f"[RUN]   skipped ({reason}): {', '.join(names)}")
        for error in result.tenant_errors:
            logger.warning(f"[RUN]   error ({error['tenant']}): {error['error']}")
