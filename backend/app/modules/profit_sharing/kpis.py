"""
KPI Aggregator - headline profit sharing numbers for one stakeholder.

Four KPIs, each computed independently from the same snapshot:
1. Next-period estimated profit: soonest future estimated profit entry.
2. Next-period estimated payout: latest entry's price applied to the awards
   whose scope contains it.
3. Last-period payout: latest realized actual entry that some award was
   active for, paid to every award active on that date.
4. Total payout to date: every realized actual entry paid to every award
   active on its date (a sum of sums).

The aggregator is a pure function of (awards, valuations, now, filters).
It keeps no state between calls, so re-running it on an unchanged snapshot
gives identical results.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from app.modules.profit_sharing.domain import ZERO, Award, Payout, Valuation
from app.modules.profit_sharing.exceptions import InputError
from app.modules.profit_sharing.matching import MatchEngine, MatchResult
from app.modules.profit_sharing.payouts import payout_for, sum_payouts

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NextEstimate:
    profit_amount: Decimal = ZERO
    valuation_date: Optional[date] = None
    valuation_id: Optional[str] = None
    has_estimate: bool = False


@dataclass(frozen=True)
class PeriodPayout:
    amount: Decimal = ZERO
    valuation_date: Optional[date] = None
    valuation_id: Optional[str] = None
    award_ids: Tuple[str, ...] = ()
    has_payout: bool = False


@dataclass(frozen=True)
class StakeholderKpis:
    next_estimated_profit: NextEstimate
    next_estimated_payout: PeriodPayout
    last_period_payout: PeriodPayout
    total_payout_to_date: Decimal
    payout_history: Tuple[Payout, ...] = ()
    using_company_fallback: bool = False
    skipped_award_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AwardMatch:
    """One award with its plan-scope candidates and its interval matches."""
    award: Award
    candidates: MatchResult
    matched: MatchResult


@dataclass
class _Selection:
    awards: List[Award] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def _latest(valuations: Sequence[Valuation]) -> Optional[Valuation]:
    if not valuations:
        return None
    return max(valuations, key=lambda v: (v.valuation_date, v.id))


def _soonest(valuations: Sequence[Valuation]) -> Optional[Valuation]:
    if not valuations:
        return None
    return min(valuations, key=lambda v: (v.valuation_date, v.id))


def _union(results: Sequence[MatchResult]) -> List[Valuation]:
    seen: Dict[str, Valuation] = {}
    for result in results:
        for v in result:
            seen.setdefault(v.id, v)
    return list(seen.values())


class KpiAggregator:
    """Reduces awards x valuations into the stakeholder KPIs."""

    def __init__(self, engine: Optional[MatchEngine] = None):
        self.engine = engine or MatchEngine()

    def select_awards(self, awards: Sequence[Award], selected_plan_id: Optional[str] = None) -> _Selection:
        """Awards that take part: in the selected plan (if any) and well formed."""
        selection = _Selection()
        for award in awards:
            if selected_plan_id and award.plan_id != selected_plan_id:
                continue
            try:
                award.validate()
            except InputError as e:
                logger.warning(f"Skipping award in KPI aggregation: {e}")
                selection.skipped.append(award.id)
                continue
            selection.awards.append(award)
        return selection

    def pair(
        self,
        awards: Sequence[Award],
        valuations: Sequence[Valuation],
        context_company_id: Optional[str] = None,
    ) -> List[AwardMatch]:
        pairs = []
        for award in awards:
            pairs.append(AwardMatch(
                award=award,
                candidates=self.engine.plan_candidates(award, valuations, context_company_id),
                matched=self.engine.match(award, valuations, context_company_id),
            ))
        return pairs

    # ------------------------------------------------------------------
    # Individual KPIs
    # ------------------------------------------------------------------

    def next_estimated_profit(self, pairs: Sequence[AwardMatch], now: date) -> NextEstimate:
        future = [
            v for v in _union([p.candidates for p in pairs])
            if v.is_estimated and v.valuation_date > now
        ]
        soonest = _soonest(future)
        if soonest is None:
            return NextEstimate()
        return NextEstimate(
            profit_amount=soonest.profit_amount,
            valuation_date=soonest.valuation_date,
            valuation_id=soonest.id,
            has_estimate=True,
        )

    def next_estimated_payout(self, pairs: Sequence[AwardMatch]) -> PeriodPayout:
        latest = _latest(_union([p.candidates for p in pairs]))
        if latest is None:
            return PeriodPayout()

        # Plan scope containing the valuation means the plan matches, or the
        # award runs in company-fallback mode for that company.
        payouts = [
            payout_for(p.award, latest)
            for p in pairs
            if latest.id in p.candidates.ids
        ]
        return PeriodPayout(
            amount=sum_payouts(payouts),
            valuation_date=latest.valuation_date,
            valuation_id=latest.id,
            award_ids=tuple(p.award_id for p in payouts if p.contributes),
            has_payout=True,
        )

    def _realized(self, pairs: Sequence[AwardMatch], now: date) -> List[Valuation]:
        return [
            v for v in _union([p.matched for p in pairs])
            if v.is_actual and v.valuation_date <= now
        ]

    def _payouts_at(self, pairs: Sequence[AwardMatch], valuation: Valuation) -> List[Payout]:
        """Payouts of every award whose interval match contains the valuation."""
        return [payout_for(p.award, valuation) for p in pairs if valuation.id in p.matched.ids]

    def last_period_payout(self, pairs: Sequence[AwardMatch], now: date) -> PeriodPayout:
        latest = _latest(self._realized(pairs, now))
        if latest is None:
            return PeriodPayout()

        payouts = self._payouts_at(pairs, latest)
        return PeriodPayout(
            amount=sum_payouts(payouts),
            valuation_date=latest.valuation_date,
            valuation_id=latest.id,
            award_ids=tuple(p.award_id for p in payouts if p.contributes),
            has_payout=True,
        )

    def total_payout_to_date(self, pairs: Sequence[AwardMatch], now: date) -> Decimal:
        total = ZERO
        for valuation in self._realized(pairs, now):
            total += sum_payouts(self._payouts_at(pairs, valuation))
        return total

    def payout_history(self, pairs: Sequence[AwardMatch]) -> Tuple[Payout, ...]:
        """One row per award x matched valuation, most recent first."""
        rows = [payout_for(p.award, v) for p in pairs for v in p.matched]
        rows.sort(key=lambda r: (r.award_id, r.valuation_id))
        rows.sort(key=lambda r: r.profit_date, reverse=True)
        return tuple(rows)

    # ------------------------------------------------------------------

    def compute(
        self,
        awards: Sequence[Award],
        valuations: Sequence[Valuation],
        now: date,
        selected_plan_id: Optional[str] = None,
        context_company_id: Optional[str] = None,
    ) -> StakeholderKpis:
        selection = self.select_awards(awards, selected_plan_id)
        pairs = self.pair(selection.awards, valuations, context_company_id)

        return StakeholderKpis(
            next_estimated_profit=self.next_estimated_profit(pairs, now),
            next_estimated_payout=self.next_estimated_payout(pairs),
            last_period_payout=self.last_period_payout(pairs, now),
            total_payout_to_date=self.total_payout_to_date(pairs, now),
            payout_history=self.payout_history(pairs),
            using_company_fallback=any(p.candidates.using_company_fallback for p in pairs),
            skipped_award_ids=tuple(selection.skipped),
        )


def compute_kpis(
    awards: Sequence[Award],
    valuations: Sequence[Valuation],
    now: date,
    selected_plan_id: Optional[str] = None,
    context_company_id: Optional[str] = None,
) -> StakeholderKpis:
    """Compute the stakeholder KPIs with the default match engine."""
    return KpiAggregator().compute(awards, valuations, now, selected_plan_id, context_company_id)
