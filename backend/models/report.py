"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  FSM Reports - Send log, gate decisions & run results                        ║
║                                                                              ║
║  RULE: (tenant_id, report_date, report_type) is UNIQUE in report_send_log.  ║
║  Duplicate key = "already sent today", never an error for the caller.       ║
║  report_date is the TENANT-LOCAL calendar date, never the UTC date.         ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import uuid
from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from config import now_iso
from models.visit import DailyStats


class ReportType(str, Enum):
    DAILY = "daily"


class SkipReason(str, Enum):
    """Gating rejections - expected, recorded in run tallies"""
    WEEKEND = "weekend"
    NO_VISITS = "no_visits"
    ALREADY_SENT = "already_sent"
    LOG_UNAVAILABLE = "log_unavailable"   # fail closed on infrastructure error
    LOCK_ERROR = "lock_error"             # fail closed on anything unexpected


class SendLogEntry(BaseModel):
    """At-most-once-per-day dispatch guard. Never updated, never deleted."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    tenant_id: str
    report_date: str
    report_type: ReportType = ReportType.DAILY
    meta: Optional[Dict[str, Any]] = None
    created_at: str = Field(default_factory=now_iso)

    def to_document(self) -> dict:
        doc = self.model_dump()
        doc["report_type"] = self.report_type.value
        return doc


class GateDecision(BaseModel):
    proceed: bool
    report_date: str
    reason: Optional[SkipReason] = None

    @classmethod
    def go(cls, report_date: str) -> "GateDecision":
        return cls(proceed=True, report_date=report_date)

    @classmethod
    def skip(cls, report_date: str, reason: SkipReason) -> "GateDecision":
        return cls(proceed=False, report_date=report_date, reason=reason)


class ReportPeriod(BaseModel):
    """Inclusive window of tenant-local dates. start == end for a daily report."""
    start: date
    end: date

    @classmethod
    def single_day(cls, day: date) -> "ReportPeriod":
        return cls(start=day, end=day)

    @property
    def is_single_day(self) -> bool:
        return self.start == self.end

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def iter_days(self):
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)


class TeamSummary(BaseModel):
    """Team roll-up consumed by the admin report"""
    roster_size: int = 0
    active_salesmen: int = 0
    personal_visits: int = 0
    telephone_calls: int = 0
    personal_revenue: float = 0.0
    telephone_revenue: float = 0.0
    new_customers: int = 0
    repeat_customers: int = 0
    top_performers: List[DailyStats] = Field(default_factory=list)
    alerts: List[str] = Field(default_factory=list)

    @property
    def total_activities(self) -> int:
        return self.personal_visits + self.telephone_calls

    @property
    def total_revenue(self) -> float:
        return self.personal_revenue + self.telephone_revenue


# ==================== RUN RESULTS ====================

class RecipientOutcome(BaseModel):
    name: str
    role: str                  # salesman | admin
    phone: str = ""
    status: str                # sent | failed | preview
    message_id: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None  # only kept for dry runs


class TenantOutcome(BaseModel):
    tenant_id: str
    company_name: str
    report_date: str = ""
    reason: Optional[SkipReason] = None
    error: Optional[str] = None
    sent: int = 0
    failed: int = 0
    idle_salesmen: int = 0
    recipients: List[RecipientOutcome] = Field(default_factory=list)


class RunResult(BaseModel):
    """Structured tally of one run - one JSON response, one operator log line"""
    mode: str = "live"         # live | dry-run | period
    date: str
    tenants: int = 0
    sent: int = 0
    failed: int = 0
    outcomes: List[TenantOutcome] = Field(default_factory=list)

    def add(self, outcome: TenantOutcome) -> None:
        self.outcomes.append(outcome)
        self.sent += outcome.sent
        self.failed += outcome.failed

    def skipped_by_reason(self) -> Dict[str, List[str]]:
        skipped: Dict[str, List[str]] = {reason.value: [] for reason in SkipReason}
        for outcome in self.outcomes:
            if outcome.reason is not None:
                skipped[outcome.reason.value].append(outcome.company_name)
        return skipped

    @property
    def tenant_errors(self) -> List[Dict[str, str]]:
        return [
            {"tenant": o.company_name, "error": o.error}
            for o in self.outcomes if o.error
        ]

    def to_response(self) -> dict:
        """Shape of GET /cron/send-daily-summaries"""
        return {
            "success": True,
            "date": self.date,
            "tenants": self.tenants,
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped_by_reason(),
            "tenant_errors": self.tenant_errors,
        }

    def to_dry_run_response(self) -> dict:
        """Shape of POST /test/dry-run"""
        skipped = self.skipped_by_reason()
        lock_related = (
            skipped[SkipReason.LOCK_ERROR.value]
            + skipped[SkipReason.ALREADY_SENT.value]
            + skipped[SkipReason.LOG_UNAVAILABLE.value]
        )
        previews = [
            {
                "tenant": o.company_name,
                "report_date": o.report_date,
                "recipient": r.name,
                "role": r.role,
                "phone": r.phone,
                "message": r.message,
            }
            for o in self.outcomes for r in o.recipients if r.status == "preview"
        ]
        return {
            "success": True,
            "mode": "dry-run",
            "date": self.date,
            "tenants": self.tenants,
            "would_send": self.sent,
            "skipped": sum(1 for o in self.outcomes if o.reason is not None),
            "skip_reasons": {
                "weekend": skipped[SkipReason.WEEKEND.value],
                "no_visits": skipped[SkipReason.NO_VISITS.value],
                "lock_error": lock_related,
            },
            "tenant_errors": self.tenant_errors,
            "previews": previews,
            "note": "No actual messages were sent - this was a test",
        }
