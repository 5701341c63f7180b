"""
FSM Reports - WhatsApp message bodies

Pure formatting: the same (stats, tenant, period) always renders the same
string, which is what the dry-run preview relies on.

Rules:
- every amount goes through the tenant's CurrencyFormatter
- per-channel averages only when that channel has at least one activity
- coaching lines come from a swappable rule list
- admin report: medals for ranks 1-3, generic marker after that,
  personal / telephone revenue split per performer, alerts capped (default 3) with an "...and N more" line
- date labels are tenant-local report dates, never the UTC trigger date
"""

from typing import Callable, List, Optional, Sequence

from models.report import ReportPeriod, TeamSummary
from models.tenant import Tenant
from models.visit import DailyStats
from services.clock import format_period_label
from services.currency import CurrencyFormatter

DIVIDER = "─" * 35
MEDALS = ["🥇", "🥈", "🥉"]
GENERIC_RANK_MARKER = "🔹"
DEFAULT_ALERT_LIMIT = 3

ENCOURAGEMENT = "Keep up the excellent work! 💪"
BALANCE_TIP = "Consider balancing with more personal visits for better engagement! 🚶"

CoachingRule = Callable[[DailyStats], Optional[str]]


def telephone_heavy_tip(stats: DailyStats) -> Optional[str]:
    """Heuristic: more than twice as many calls as personal visits"""
    if stats.telephone_calls > stats.personal_visits * 2:
        return BALANCE_TIP
    return None


DEFAULT_COACHING_RULES: Sequence[CoachingRule] = (telephone_heavy_tip,)


def _period_lines(period: ReportPeriod) -> List[str]:
    lines = [format_period_label(period.start, period.end)]
    if not period.is_single_day:
        lines.append(f"*Period Report ({period.days} days)*")
    return lines


def _footer(tenant: Tenant) -> str:
    return f"_{tenant.company_name} FSM Report_"


def rank_marker(index: int) -> str:
    return MEDALS[index] if index < len(MEDALS) else GENERIC_RANK_MARKER


def render_salesman(
    stats: DailyStats,
    tenant: Tenant,
    period: ReportPeriod,
    coaching_rules: Sequence[CoachingRule] = DEFAULT_COACHING_RULES,
) -> str:
    money = CurrencyFormatter.for_tenant(tenant)

    lines = ["📈 *Your Activity Report*", tenant.company_name]
    lines += _period_lines(period)
    lines += ["", f"Hello *{stats.name}*,", f"📍 Branch: *{stats.plant}*", ""]

    lines += ["*Your Performance Summary*", DIVIDER, ""]
    lines += [f"🎯 Total Activities: {stats.total_activities}", ""]

    lines += [
        "🚶 *Personal Visits*",
        f"   Count: {stats.personal_visits}",
        f"   Revenue: {money(stats.personal_revenue)}",
    ]
    if stats.personal_average is not None:
        lines.append(f"   Avg per visit: {money(stats.personal_average)}")
    lines.append("")

    lines += [
        "📞 *Telephone Calls*",
        f"   Count: {stats.telephone_calls}",
        f"   Revenue: {money(stats.telephone_revenue)}",
    ]
    if stats.telephone_average is not None:
        lines.append(f"   Avg per call: {money(stats.telephone_average)}")
    lines.append("")

    if stats.new_customers or stats.repeat_customers:
        lines += [f"✨ New Customers: {stats.new_customers} | 🔄 Repeat: {stats.repeat_customers}", ""]
    if stats.high_potential_visits:
        lines += [f"⭐ High Potential Leads: {stats.high_potential_visits}", ""]

    lines += [DIVIDER, f"💰 *Total Revenue: {money(stats.total_revenue)}*", ""]

    tips = []
    for rule in coaching_rules:
        tip = rule(stats)
        if tip:
            tips.append(tip)
    lines += tips or [ENCOURAGEMENT]
    lines += ["", _footer(tenant)]
    return "\n".join(lines)


def render_admin(
    summary: TeamSummary,
    tenant: Tenant,
    period: ReportPeriod,
    admin_name: Optional[str] = None,
    alert_limit: int = DEFAULT_ALERT_LIMIT,
) -> str:
    money = CurrencyFormatter.for_tenant(tenant)

    lines = ["📊 *Revenue & Activity Report*", tenant.company_name]
    lines += _period_lines(period)
    lines.append("")
    if admin_name:
        greeting = "Good Evening" if period.is_single_day else "Dear"
        lines += [f"{greeting} *{admin_name}*,", ""]

    lines += [
        "*Team Summary*",
        DIVIDER,
        f"👥 Active Salesmen: {summary.active_salesmen}/{summary.roster_size}",
        f"🎯 Total Activities: {summary.total_activities}",
        f"   🚶 Personal Visits: {summary.personal_visits}",
        f"   📞 Telephone Calls: {summary.telephone_calls}",
        f"💰 Total Revenue: {money(summary.total_revenue)}",
        f"   • Personal: {money(summary.personal_revenue)}",
        f"   • Telephone: {money(summary.telephone_revenue)}",
    ]
    if summary.new_customers or summary.repeat_customers:
        lines.append(f"✨ New: {summary.new_customers} | 🔄 Repeat: {summary.repeat_customers}")
    lines.append("")

    if summary.top_performers:
        lines.append("🏆 *Top Performers*")
        for index, performer in enumerate(summary.top_performers):
            lines.append(
                f"{rank_marker(index)} *{performer.name}* [{performer.plant}] - "
                f"{performer.total_activities} "
                f"(🚶{performer.personal_visits} + 📞{performer.telephone_calls}), "
                f"{money(performer.total_revenue)}"
            )
            lines.append(
                f"   • Personal: {money(performer.personal_revenue)} | "
                f"Telephone: {money(performer.telephone_revenue)}"
            )
    else:
        window = "day" if period.is_single_day else "period"
        lines.append(f"_No activities recorded for this {window}_")
    lines.append("")

    if summary.alerts:
        lines.append("⚠️ *Attention Required*")
        shown = summary.alerts[:max(alert_limit, 0)]
        lines += [f"• {alert}" for alert in shown]
        hidden = len(summary.alerts) - len(shown)
        if hidden > 0:
            lines.append(f"• ...and {hidden} more")
        lines.append("")

    lines.append(_footer(tenant))
    return "\n".join(lines)
