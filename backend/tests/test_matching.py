"""
Tests for the award/valuation Match Engine.

Covers plan matching with inclusive interval containment, the company
fallback strategy, ordering, and malformed inputs.

Run with: pytest tests/test_matching.py -v
"""

import pytest
from datetime import date

from conftest import make_award, make_valuation
from app.modules.profit_sharing.matching import (
    CompanyFallbackMatcher,
    MatchEngine,
    MatchOrder,
    match,
    order_valuations,
)


# =============================================================================
# TEST FIXTURES - Known scenarios with expected outcomes
# =============================================================================

CONTAINMENT_SCENARIOS = [
    # (name, valuation_date, expected_matched)
    ("Day before start", date(2023, 12, 31), False),
    ("Start date inclusive", date(2024, 1, 1), True),
    ("Mid interval", date(2024, 6, 30), True),
    ("End date inclusive", date(2024, 12, 31), True),
    ("Day after end", date(2025, 1, 1), False),
]

MISSING_INTERVAL_SCENARIOS = [
    # (name, start, end)
    ("No start", None, date(2024, 12, 31)),
    ("No end", date(2024, 1, 1), None),
    ("No interval", None, None),
]

FALLBACK_ACTIVATION_SCENARIOS = [
    # (name, award_plan_id, valuation_plan_ids, valuation_company_ids, expected)
    ("Stale plan id, same company", "P_new", ["P_old"], ["C1"], True),
    ("Plan id present", "P1", ["P1", "P_old"], ["C1", "C1"], False),
    ("Stale plan id, other company only", "P_new", ["P_old"], ["C2"], False),
    ("Award without plan", None, ["P_old"], ["C1"], False),
    ("No valuations at all", "P_new", [], [], False),
]


# =============================================================================
# TESTS - Primary rule
# =============================================================================

class TestPlanMatching:
    """Valuations in the award's plan, inside its interval."""

    @pytest.mark.parametrize("name,valuation_date,expected", CONTAINMENT_SCENARIOS)
    def test_interval_containment(self, name, valuation_date, expected):
        award = make_award()
        valuation = make_valuation("V1", valuation_date, profit="1000")

        result = match(award, [valuation])

        assert (valuation in result) == expected, f"{name}: containment mismatch"
        assert result.using_company_fallback is False

    @pytest.mark.parametrize("name,start,end", MISSING_INTERVAL_SCENARIOS)
    def test_missing_interval_matches_nothing(self, name, start, end):
        award = make_award(start=start, end=end)
        valuations = [make_valuation("V1", date(2024, 3, 31), profit="1000")]

        result = match(award, valuations)

        assert len(result) == 0, f"{name}: expected empty result"

    def test_other_plan_excluded_when_own_plan_has_entries(self):
        award = make_award(plan_id="P1")
        own = make_valuation("V1", date(2024, 3, 31), plan_id="P1")
        other = make_valuation("V2", date(2024, 6, 30), plan_id="P2")

        result = match(award, [own, other])

        assert result.ids == frozenset({"V1"})

    def test_plan_match_outside_interval_does_not_trigger_fallback(self):
        award = make_award(plan_id="P1")
        outside = make_valuation("V1", date(2025, 3, 31), plan_id="P1")
        same_company = make_valuation("V2", date(2024, 3, 31), plan_id="P2")

        result = match(award, [outside, same_company])

        assert len(result) == 0
        assert result.using_company_fallback is False

    def test_undated_valuation_is_excluded(self):
        award = make_award()
        undated = make_valuation("V1", None)
        dated = make_valuation("V2", date(2024, 3, 31))

        result = match(award, [undated, dated])

        assert result.ids == frozenset({"V2"})


# =============================================================================
# TESTS - Company fallback
# =============================================================================

class TestCompanyFallback:
    """Plan ids re-issued while old profit entries kept the old id."""

    @pytest.mark.parametrize(
        "name,award_plan_id,plan_ids,company_ids,expected",
        FALLBACK_ACTIVATION_SCENARIOS
    )
    def test_activation_condition(self, name, award_plan_id, plan_ids, company_ids, expected):
        award = make_award(plan_id=award_plan_id)
        valuations = [
            make_valuation(f"V{i}", date(2024, 3, 31), plan_id=p, company_id=c)
            for i, (p, c) in enumerate(zip(plan_ids, company_ids))
        ]
        fallback = CompanyFallbackMatcher()
        plan_matches = [v for v in valuations if award_plan_id and v.plan_id == award_plan_id]
        company_matches = fallback.company_valuations(award, valuations, None)

        assert fallback.should_activate(award, plan_matches, company_matches) == expected, name

    def test_stale_plan_id_matches_by_company_and_interval(self):
        award = make_award(plan_id="P_new", company_id="C")
        inside = make_valuation("V1", date(2024, 6, 30), plan_id="P_old", company_id="C")
        outside = make_valuation("V2", date(2023, 6, 30), plan_id="P_old", company_id="C")
        elsewhere = make_valuation("V3", date(2024, 6, 30), plan_id="P_x", company_id="D")

        result = match(award, [inside, outside, elsewhere])

        assert result.using_company_fallback is True
        assert result.ids == frozenset({"V1"})

    def test_source_company_wins_over_award_company(self):
        award = make_award(plan_id="P_new", company_id="C").tagged(company_id="D", stakeholder_id="S9")
        valuations = [
            make_valuation("V1", date(2024, 6, 30), plan_id="P_old", company_id="C"),
            make_valuation("V2", date(2024, 6, 30), plan_id="P_old", company_id="D"),
        ]

        result = match(award, valuations)

        assert result.ids == frozenset({"V2"})

    def test_context_company_used_when_award_has_none(self):
        award = make_award(plan_id="P_new", company_id=None)
        valuations = [make_valuation("V1", date(2024, 6, 30), plan_id="P_old", company_id="C")]

        assert len(match(award, valuations)) == 0
        result = match(award, valuations, context_company_id="C")
        assert result.using_company_fallback is True
        assert result.ids == frozenset({"V1"})

    def test_custom_strategy_is_used(self):
        class NeverFallback(CompanyFallbackMatcher):
            def should_activate(self, award, plan_matches, company_matches):
                return False

        engine = MatchEngine(fallback=NeverFallback())
        award = make_award(plan_id="P_new")
        valuations = [make_valuation("V1", date(2024, 6, 30), plan_id="P_old")]

        assert len(engine.match(award, valuations)) == 0


# =============================================================================
# TESTS - Ordering
# =============================================================================

class TestOrdering:

    def test_history_is_most_recent_first(self):
        award = make_award()
        valuations = [
            make_valuation("V1", date(2024, 3, 31)),
            make_valuation("V3", date(2024, 9, 30)),
            make_valuation("V2", date(2024, 6, 30)),
        ]

        result = match(award, valuations)

        assert [v.id for v in result] == ["V3", "V2", "V1"]

    def test_upcoming_is_soonest_first_after_now(self):
        award = make_award()
        valuations = [
            make_valuation("V1", date(2024, 3, 31)),
            make_valuation("V3", date(2024, 12, 31)),
            make_valuation("V2", date(2024, 9, 30)),
        ]

        result = MatchEngine().upcoming(award, valuations, now=date(2024, 6, 30))

        assert [v.id for v in result] == ["V2", "V3"]

    def test_same_day_ties_break_on_id(self):
        valuations = [make_valuation("b", date(2024, 3, 31)), make_valuation("a", date(2024, 3, 31))]

        assert [v.id for v in order_valuations(valuations)] == ["b", "a"]
        upcoming = order_valuations(valuations, MatchOrder.UPCOMING, now=date(2024, 1, 1))
        assert [v.id for v in upcoming] == ["a", "b"]

    def test_upcoming_needs_reference_date(self):
        with pytest.raises(ValueError):
            order_valuations([], MatchOrder.UPCOMING)
