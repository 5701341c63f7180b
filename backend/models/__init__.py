"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  FSM Reports - Models Package                                                ║
║                                                                              ║
║  from models import Tenant, Salesman, Visit, DailyStats, GateDecision, etc.  ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from .tenant import (
    NumberGrouping,
    Tenant,
    Salesman,
)

from .visit import (
    VisitChannel,
    Visit,
    DailyStats,
)

from .report import (
    ReportType,
    SkipReason,
    SendLogEntry,
    GateDecision,
    ReportPeriod,
    TeamSummary,
    RecipientOutcome,
    TenantOutcome,
    RunResult,
)

__all__ = [
    "NumberGrouping",
    "Tenant",
    "Salesman",
    "VisitChannel",
    "Visit",
    "DailyStats",
    "ReportType",
    "SkipReason",
    "SendLogEntry",
    "GateDecision",
    "ReportPeriod",
    "TeamSummary",
    "RecipientOutcome",
    "TenantOutcome",
    "RunResult",
]
