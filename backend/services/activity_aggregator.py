"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  FSM Reports - Activity Aggregator                                           ║
║                                                                              ║
║  Visits → DailyStats per salesman                                            ║
║                                                                              ║
║  1. CHANNEL: personal | telephone, each with its own count + revenue         ║
║     Unknown channel or soft-deleted visit → ignored                          ║
║  2. REVENUE: missing order_value = 0                                         ║
║  3. BRANCH: majority vote over visit.plant                                   ║
║     Tie → smallest branch id (deterministic, input order never matters)      ║
║     No branch at all → "HQ", unknown branch id → "Branch"                    ║
║  4. ZERO ROWS: only when a roster is passed                                  ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from collections import Counter, defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Union

from models.tenant import Salesman
from models.visit import DailyStats, Visit, VisitChannel

logger = logging.getLogger("activity_aggregator")

HQ_LABEL = "HQ"
UNKNOWN_BRANCH_LABEL = "Branch"
UNKNOWN_SALESMAN = "Unknown"

NEW_CUSTOMER_STATUSES = {"new"}
REPEAT_CUSTOMER_STATUSES = {"repeat", "existing", "followup"}


def salesman_key(visit: Visit) -> str:
    """Group by salesman_id, fall back to the denormalized name"""
    if visit.salesman_id:
        return str(visit.salesman_id)
    name = (visit.salesman_name or "").strip() or UNKNOWN_SALESMAN
    return f"name:{name}"


def majority_branch(branch_counts: Mapping[str, int],
                    plant_names: Optional[Mapping[str, str]] = None) -> str:
    if not branch_counts:
        return HQ_LABEL
    best_id, _ = min(branch_counts.items(), key=lambda item: (-item[1], item[0]))
    return (plant_names or {}).get(best_id) or UNKNOWN_BRANCH_LABEL


def _as_visit(raw: Union[Visit, dict]) -> Visit:
    return raw if isinstance(raw, Visit) else Visit.model_validate(raw)


def aggregate(
    visits: Iterable[Union[Visit, dict]],
    roster: Optional[Iterable[Salesman]] = None,
    plant_names: Optional[Mapping[str, str]] = None,
) -> Dict[str, DailyStats]:
    """
    Reduce visits into per-salesman statistics.

    Args:
        visits: Visit models or raw documents
        roster: when given, salesmen without visits get zero-filled rows and
                roster names take precedence over denormalized visit names
        plant_names: branch id → display name

    Returns:
        {salesman_key: DailyStats}, ordered by salesman name
    """
    roster = list(roster or [])
    roster_by_id = {s.id: s for s in roster}
    roster_by_name = {s.name.strip().lower(): s for s in roster}
    stats: Dict[str, DailyStats] = {}
    branches: Dict[str, Counter] = defaultdict(Counter)
    ignored = 0

    for raw in visits:
        visit = _as_visit(raw)
        channel = visit.channel
        if visit.is_deleted or channel is None:
            ignored += 1
            continue

        known = roster_by_id.get(visit.salesman_id or "")
        if known is None and not visit.salesman_id:
            known = roster_by_name.get((visit.salesman_name or "").strip().lower())
        key = known.id if known else salesman_key(visit)

        row = stats.get(key)
        if row is None:
            if known:
                row = DailyStats(salesman_id=known.id, name=known.name)
            else:
                name = (visit.salesman_name or "").strip() or UNKNOWN_SALESMAN
                row = DailyStats(salesman_id=visit.salesman_id, name=name)
            stats[key] = row

        if channel == VisitChannel.PERSONAL:
            row.personal_visits += 1
            row.personal_revenue += visit.order_value
        else:
            row.telephone_calls += 1
            row.telephone_revenue += visit.order_value

        status = (visit.customer_status or "").strip().lower()
        if status in NEW_CUSTOMER_STATUSES:
            row.new_customers += 1
        elif status in REPEAT_CUSTOMER_STATUSES:
            row.repeat_customers += 1

        if (visit.potential or "").strip().lower() == "high":
            row.high_potential_visits += 1

        if visit.plant:
            branches[key][str(visit.plant)] += 1

    for key, row in stats.items():
        row.plant = majority_branch(branches.get(key, {}), plant_names)

    for salesman in roster_by_id.values():
        if salesman.id not in stats:
            stats[salesman.id] = DailyStats(salesman_id=salesman.id, name=salesman.name)

    if ignored:
        logger.debug(f"[AGGREGATE] {ignored} visit(s) ignored (deleted or unknown channel)")

    return dict(sorted(stats.items(), key=lambda item: (item[1].name.lower(), item[0])))


def top_performers(stats: Iterable[DailyStats], limit: int = 5) -> List[DailyStats]:
    """
    Rank by total revenue desc, then activity count desc, then name.
    Salesmen without any activity are never ranked.
    """
    ranked = sorted(
        (s for s in stats if s.total_activities > 0),
        key=lambda s: (-s.total_revenue, -s.total_activities, s.name.lower()),
    )
    return ranked[:max(limit, 0)]
