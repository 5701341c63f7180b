"""
FSM Reports - Team summary for the admin report

Built by the caller on top of the aggregator output: totals, the inactive
complement against the active roster, and "attention required" lines.
"""

from typing import Iterable, List, Mapping

from models.report import TeamSummary
from models.tenant import Salesman
from models.visit import DailyStats
from services.activity_aggregator import top_performers


def find_inactive_salesmen(stats: Mapping[str, DailyStats],
                           roster: Iterable[Salesman]) -> List[Salesman]:
    """Active field salesmen with no activity in the window"""
    active_ids = {s.salesman_id for s in stats.values() if s.total_activities > 0}
    inactive = [
        s for s in roster
        if s.is_active and not s.is_admin and not s.deleted_at and s.id not in active_ids
    ]
    return sorted(inactive, key=lambda s: s.name.lower())


def build_alerts(stats: Mapping[str, DailyStats], roster: Iterable[Salesman]) -> List[str]:
    alerts = [f"{s.name}: no activity recorded" for s in find_inactive_salesmen(stats, roster)]
    for row in stats.values():
        if row.total_activities > 0 and row.total_revenue <= 0:
            alerts.append(f"{row.name}: {row.total_activities} activities but no orders")
    return alerts


def build_team_summary(stats: Mapping[str, DailyStats], roster: List[Salesman],
                       top_limit: int = 5) -> TeamSummary:
    field_roster = [s for s in roster if not s.is_admin]
    active = [s for s in stats.values() if s.total_activities > 0]
    if field_roster:
        # numerator and denominator both count the field roster only
        field_ids = {s.id for s in field_roster}
        active_count = sum(1 for s in active if s.salesman_id in field_ids)
    else:
        active_count = len(active)
    return TeamSummary(
        roster_size=len(field_roster) or len(stats),
        active_salesmen=active_count,
        personal_visits=sum(s.personal_visits for s in active),
        telephone_calls=sum(s.telephone_calls for s in active),
        personal_revenue=sum(s.personal_revenue for s in active),
        telephone_revenue=sum(s.telephone_revenue for s in active),
        new_customers=sum(s.new_customers for s in active),
        repeat_customers=sum(s.repeat_customers for s in active),
        top_performers=top_performers(active, limit=top_limit),
        alerts=build_alerts(stats, field_roster),
    )
