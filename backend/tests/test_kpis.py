"""
Tests for the stakeholder KPI aggregation.

Includes the two end-to-end reconciliation scenarios, a brute-force check of
total payout to date on randomized small datasets, and idempotence.

Run with: pytest tests/test_kpis.py -v
"""

import random
import pytest
from datetime import date, timedelta
from decimal import Decimal

from conftest import make_award, make_valuation
from app.modules.profit_sharing.kpis import KpiAggregator, compute_kpis
from app.modules.profit_sharing.payouts import payout_for


NOW = date(2024, 12, 1)


# =============================================================================
# TESTS - End-to-end scenarios
# =============================================================================

class TestEndToEndScenarios:

    def test_single_award_actual_and_estimate(self):
        """
        Award P1, 100 shares, 2024. Actual $10,000 / 1,000 shares at Mar 31
        2024 pays $1,000; the 2025 estimate is only a forecast.
        """
        award = make_award(plan_id="P1", shares=100)
        v1 = make_valuation("V1", date(2024, 3, 31), profit="10000", total_shares="1000")
        v2 = make_valuation("V2", date(2025, 3, 31), profit="12000", profit_type="estimated")

        kpis = compute_kpis([award], [v1, v2], now=date(2024, 12, 31))

        assert kpis.last_period_payout.amount == Decimal("1000")
        assert kpis.last_period_payout.valuation_date == date(2024, 3, 31)
        assert kpis.total_payout_to_date == Decimal("1000")
        assert kpis.next_estimated_profit.profit_amount == Decimal("12000")
        assert kpis.next_estimated_profit.valuation_date == date(2025, 3, 31)
        assert kpis.next_estimated_profit.has_estimate is True
        assert kpis.using_company_fallback is False

        history = kpis.payout_history
        assert [(p.valuation_id, p.payout) for p in history] == [("V1", Decimal("1000"))]

    def test_stale_plan_id_uses_company_fallback(self):
        award = make_award(plan_id="P_new", company_id="C", shares=100)
        valuation = make_valuation(
            "V1", date(2024, 3, 31), profit="10000", total_shares="1000",
            plan_id="P_old", company_id="C",
        )

        kpis = compute_kpis([award], [valuation], now=NOW)

        assert kpis.using_company_fallback is True
        assert kpis.last_period_payout.amount == Decimal("1000")
        assert kpis.total_payout_to_date == Decimal("1000")
        assert kpis.next_estimated_payout.amount == Decimal("1000")


# =============================================================================
# TESTS - Individual KPIs
# =============================================================================

class TestNextEstimatedProfit:

    def test_soonest_future_estimate(self):
        award = make_award()
        valuations = [
            make_valuation("E1", date(2025, 6, 30), profit="9000", profit_type="estimated"),
            make_valuation("E2", date(2025, 3, 31), profit="8000", profit_type="estimated"),
            make_valuation("E0", date(2024, 9, 30), profit="7000", profit_type="estimated"),
            make_valuation("A1", date(2025, 1, 31), profit="6000", profit_type="actual"),
        ]

        estimate = compute_kpis([award], valuations, now=NOW).next_estimated_profit

        assert estimate.valuation_id == "E2"
        assert estimate.profit_amount == Decimal("8000")

    def test_no_estimate(self):
        award = make_award()
        valuations = [make_valuation("A1", date(2024, 3, 31), profit="6000")]

        estimate = compute_kpis([award], valuations, now=NOW).next_estimated_profit

        assert estimate.has_estimate is False
        assert estimate.profit_amount == Decimal("0")
        assert estimate.valuation_date is None


class TestNextEstimatedPayout:

    def test_latest_entry_priced_for_awards_in_scope(self):
        a1 = make_award("A1", plan_id="P1", shares=100)
        a2 = make_award("A2", plan_id="P1", shares=50, start=date(2025, 1, 1), end=date(2025, 12, 31))
        a3 = make_award("A3", plan_id="P2", shares=10)
        valuations = [
            make_valuation("V1", date(2024, 3, 31), profit="1000", total_shares="100", plan_id="P1"),
            make_valuation("V2", date(2025, 3, 31), profit="2000", total_shares="100",
                           profit_type="estimated", plan_id="P1"),
            make_valuation("W1", date(2024, 3, 31), profit="500", total_shares="100", plan_id="P2"),
        ]

        payout = compute_kpis([a1, a2, a3], valuations, now=NOW).next_estimated_payout

        # Plan scope, not interval: both P1 awards are priced at V2 ($20)
        assert payout.valuation_id == "V2"
        assert payout.amount == Decimal("3000")
        assert set(payout.award_ids) == {"A1", "A2"}

    def test_no_candidates(self):
        payout = compute_kpis([make_award()], [], now=NOW).next_estimated_payout

        assert payout.has_payout is False
        assert payout.amount == Decimal("0")


class TestLastPeriodPayout:

    def test_latest_realized_entry_inside_some_award(self):
        award = make_award(start=date(2024, 1, 1), end=date(2024, 6, 30), shares=10)
        valuations = [
            make_valuation("V1", date(2024, 3, 31), profit="1000", total_shares="100"),
            make_valuation("V2", date(2024, 6, 30), profit="3000", total_shares="100"),
            make_valuation("V3", date(2024, 9, 30), profit="5000", total_shares="100"),
        ]

        last = compute_kpis([award], valuations, now=NOW).last_period_payout

        assert last.valuation_id == "V2"
        assert last.amount == Decimal("300")

    def test_future_actuals_are_not_realized(self):
        award = make_award(shares=10)
        valuations = [
            make_valuation("V1", date(2024, 3, 31), profit="1000", total_shares="100"),
            make_valuation("V2", date(2024, 12, 15), profit="3000", total_shares="100"),
        ]

        kpis = compute_kpis([award], valuations, now=NOW)

        assert kpis.last_period_payout.valuation_id == "V1"
        assert kpis.total_payout_to_date == Decimal("100")

    def test_overlapping_awards_each_receive_a_payout(self):
        a1 = make_award("A1", shares=10)
        a2 = make_award("A2", shares=5, start=date(2024, 3, 1), end=date(2024, 12, 31))
        valuation = make_valuation("V1", date(2024, 3, 31), profit="1000", total_shares="100")

        kpis = compute_kpis([a1, a2], [valuation], now=NOW)

        assert kpis.last_period_payout.amount == Decimal("150")
        assert set(kpis.last_period_payout.award_ids) == {"A1", "A2"}
        assert kpis.total_payout_to_date == Decimal("150")

    def test_estimates_never_pay(self):
        award = make_award(shares=10)
        valuation = make_valuation("V1", date(2024, 3, 31), profit="1000", total_shares="100",
                                   profit_type="estimated")

        kpis = compute_kpis([award], [valuation], now=NOW)

        assert kpis.last_period_payout.has_payout is False
        assert kpis.total_payout_to_date == Decimal("0")


class TestFiltersAndSkips:

    def test_selected_plan_filters_awards(self):
        a1 = make_award("A1", plan_id="P1", shares=10)
        a2 = make_award("A2", plan_id="P2", shares=10)
        valuations = [
            make_valuation("V1", date(2024, 3, 31), profit="1000", total_shares="100", plan_id="P1"),
            make_valuation("V2", date(2024, 3, 31), profit="2000", total_shares="100", plan_id="P2"),
        ]

        kpis = compute_kpis([a1, a2], valuations, now=NOW, selected_plan_id="P2")

        assert kpis.total_payout_to_date == Decimal("200")
        assert {p.award_id for p in kpis.payout_history} == {"A2"}

    def test_award_without_interval_is_skipped(self):
        good = make_award("A1", shares=10)
        broken = make_award("A2", start=None, shares=10)
        valuation = make_valuation("V1", date(2024, 3, 31), profit="1000", total_shares="100")

        kpis = compute_kpis([good, broken], [valuation], now=NOW)

        assert kpis.skipped_award_ids == ("A2",)
        assert kpis.total_payout_to_date == Decimal("100")

    def test_inverted_interval_is_skipped(self):
        broken = make_award("A1", start=date(2024, 12, 31), end=date(2024, 1, 1))

        kpis = compute_kpis([broken], [], now=NOW)

        assert kpis.skipped_award_ids == ("A1",)


# =============================================================================
# TESTS - Properties
# =============================================================================

def _random_dataset(rng):
    base = date(2023, 1, 1)
    awards = []
    for i in range(rng.randint(0, 4)):
        start = base + timedelta(days=rng.randint(0, 700))
        end = start + timedelta(days=rng.randint(0, 400))
        awards.append(make_award(
            f"A{i}",
            plan_id=rng.choice(["P1", "P2"]),
            start=start,
            end=end,
            shares=rng.choice([0, 1, 10, 75, None]),
        ))
    valuations = []
    for i in range(rng.randint(0, 8)):
        valuations.append(make_valuation(
            f"V{i}",
            base + timedelta(days=rng.randint(0, 900)),
            profit=str(rng.randint(-5000, 50000)),
            profit_type=rng.choice(["actual", "actual", "estimated"]),
            plan_id=rng.choice(["P1", "P2", "P3"]),
            total_shares=rng.choice([None, "0", "100", "1000"]),
            price_per_share=rng.choice([None, None, "0", "2.5"]),
        ))
    return awards, valuations


def _brute_force_total(awards, valuations, now):
    """Double sum over (award, actual valuation in its plan scope and interval)."""
    total = Decimal("0")
    plan_ids = {v.plan_id for v in valuations}
    for award in awards:
        for v in valuations:
            if award.plan_id in plan_ids:
                in_scope = v.plan_id == award.plan_id
            else:
                in_scope = v.company_id == award.company_id
            if not in_scope or not v.is_actual or v.valuation_date > now:
                continue
            if award.award_start_date <= v.valuation_date <= award.award_end_date:
                payout = payout_for(award, v)
                if payout.contributes:
                    total += payout.payout
    return total


class TestProperties:

    @pytest.mark.parametrize("seed", range(40))
    def test_total_matches_brute_force(self, seed):
        rng = random.Random(seed)
        awards, valuations = _random_dataset(rng)
        now = date(2024, 6, 30)

        kpis = compute_kpis(awards, valuations, now=now)

        assert kpis.total_payout_to_date == _brute_force_total(awards, valuations, now)

    @pytest.mark.parametrize("seed", range(10))
    def test_aggregation_is_idempotent(self, seed):
        rng = random.Random(1000 + seed)
        awards, valuations = _random_dataset(rng)
        aggregator = KpiAggregator()

        first = aggregator.compute(awards, valuations, now=date(2024, 6, 30))
        second = aggregator.compute(awards, valuations, now=date(2024, 6, 30))

        assert first == second
