"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  FSM Reports - Activity Aggregation Tests                                     ║
║                                                                              ║
║  1. Channel split and revenue sums                                           ║
║  2. Branch majority vote (deterministic tie-break)                           ║
║  3. Roster zero rows, name fallback                                          ║
║  4. Top performers ranking                                                   ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import random

from models.visit import DailyStats
from services.activity_aggregator import (
    HQ_LABEL,
    UNKNOWN_BRANCH_LABEL,
    aggregate,
    majority_branch,
    top_performers,
)
from tests.fakes import make_salesman, make_visit


class TestChannelSplit:

    def test_counts_and_revenue_per_channel(self):
        visits = [
            make_visit("s-1", "personal", 200000),
            make_visit("s-1", "personal", 260000),
            make_visit("s-1", "telephone", 1000),
            make_visit("s-1", "Telephone", None),
        ]
        row = aggregate(visits)["s-1"]
        assert row.personal_visits == 2
        assert row.telephone_calls == 2
        assert row.personal_revenue == 460000
        assert row.telephone_revenue == 1000
        assert row.total_activities == 4

    def test_total_revenue_is_sum_of_channels(self):
        visits = [make_visit(f"s-{i % 3}", random.choice(["personal", "telephone"]), i * 17.5)
                  for i in range(60)]
        for row in aggregate(visits).values():
            assert row.total_revenue == row.personal_revenue + row.telephone_revenue

    def test_missing_or_invalid_order_value_counts_as_zero(self):
        visits = [
            make_visit("s-1", "personal", None),
            make_visit("s-1", "personal", ""),
            make_visit("s-1", "personal", "abc"),
        ]
        row = aggregate(visits)["s-1"]
        assert row.personal_visits == 3
        assert row.personal_revenue == 0

    def test_deleted_and_unknown_channel_ignored(self):
        visits = [
            make_visit("s-1", "personal", 100),
            make_visit("s-1", "personal", 999, deleted_at="2025-12-05T08:00:00+00:00"),
            make_visit("s-1", "email", 999),
            make_visit("s-1", None, 999),
        ]
        row = aggregate(visits)["s-1"]
        assert row.total_activities == 1
        assert row.total_revenue == 100

    def test_customer_status_and_potential(self):
        visits = [
            make_visit("s-1", customer_status="new", potential="high"),
            make_visit("s-1", customer_status="Repeat"),
            make_visit("s-1", customer_status="existing", potential="low"),
        ]
        row = aggregate(visits)["s-1"]
        assert row.new_customers == 1
        assert row.repeat_customers == 2
        assert row.high_potential_visits == 1


class TestBranchVote:

    def test_majority_wins(self):
        visits = [
            make_visit("s-1", plant="p-2"),
            make_visit("s-1", plant="p-1"),
            make_visit("s-1", plant="p-2"),
        ]
        row = aggregate(visits, plant_names={"p-1": "Surat", "p-2": "Vapi"})["s-1"]
        assert row.plant == "Vapi"

    def test_tie_is_independent_of_input_order(self):
        visits = [make_visit("s-1", plant="p-2"), make_visit("s-1", plant="p-1")]
        names = {"p-1": "Surat", "p-2": "Vapi"}
        forward = aggregate(visits, plant_names=names)["s-1"].plant
        backward = aggregate(list(reversed(visits)), plant_names=names)["s-1"].plant
        assert forward == backward == "Surat"

    def test_no_branch_is_hq(self):
        assert aggregate([make_visit("s-1")])["s-1"].plant == HQ_LABEL
        assert majority_branch({}) == HQ_LABEL

    def test_unknown_branch_id(self):
        row = aggregate([make_visit("s-1", plant="p-404")], plant_names={"p-1": "Surat"})["s-1"]
        assert row.plant == UNKNOWN_BRANCH_LABEL


class TestRoster:

    def test_zero_rows_only_with_roster(self):
        roster = [make_salesman("s-1", "Asha"), make_salesman("s-2", "Bhavin")]
        visits = [make_visit("s-1")]
        assert set(aggregate(visits)) == {"s-1"}

        stats = aggregate(visits, roster=roster)
        assert set(stats) == {"s-1", "s-2"}
        assert stats["s-2"].total_activities == 0
        assert stats["s-2"].name == "Bhavin"

    def test_roster_name_takes_precedence(self):
        roster = [make_salesman("s-1", "Asha Patel")]
        stats = aggregate([make_visit("s-1", salesman_name="asha")], roster=roster)
        assert stats["s-1"].name == "Asha Patel"

    def test_visit_without_id_matched_by_name(self):
        roster = [make_salesman("s-1", "Asha Patel")]
        stats = aggregate([make_visit(None, salesman_name=" asha patel ")], roster=roster)
        assert stats["s-1"].personal_visits == 1

    def test_unmatched_visit_grouped_by_name(self):
        stats = aggregate([make_visit(None, salesman_name="Walk-in"), make_visit(None)])
        assert stats["name:Walk-in"].name == "Walk-in"
        assert stats["name:Unknown"].total_activities == 1

    def test_rows_ordered_by_name(self):
        roster = [make_salesman("s-9", "zoya"), make_salesman("s-1", "Bhavin"), make_salesman("s-5", "asha")]
        assert [row.name for row in aggregate([], roster=roster).values()] == ["asha", "Bhavin", "zoya"]


class TestTopPerformers:

    def test_revenue_then_activities_then_name(self):
        stats = [
            DailyStats(name="C", personal_visits=1, personal_revenue=500),
            DailyStats(name="B", personal_visits=3, personal_revenue=500),
            DailyStats(name="A", personal_visits=3, personal_revenue=500),
            DailyStats(name="D", telephone_calls=1, telephone_revenue=900),
        ]
        assert [s.name for s in top_performers(stats)] == ["D", "A", "B", "C"]

    def test_idle_salesmen_never_ranked_and_limit(self):
        stats = [DailyStats(name=f"S{i}", personal_visits=1, personal_revenue=i) for i in range(8)]
        stats.append(DailyStats(name="Idle"))
        ranked = top_performers(stats, limit=5)
        assert len(ranked) == 5
        assert ranked[0].name == "S7"
        assert all(s.name != "Idle" for s in ranked)
