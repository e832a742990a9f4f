"""
Match Engine - pairs an award with the valuations that apply to it.

Two stages:
1. Plan scope: valuations carrying the award's plan id. When no valuation
   carries it (plan ids were re-issued while old profit entries kept the
   previous id), the scope widens to every valuation of the award's company.
   That widening is the "company fallback" and is reported explicitly so
   downstream aggregation knows to skip plan-equality checks.
2. Interval containment: keep valuations dated inside
   [award_start_date, award_end_date], inclusive.

Usage:
    engine = MatchEngine()
    result = engine.match(award, valuations, context_company_id="c1")
    result.valuations              # most recent first
    result.using_company_fallback  # True when matched by company + interval only
"""

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from app.modules.profit_sharing.domain import Award, Valuation

logger = logging.getLogger(__name__)


class MatchOrder(str, Enum):
    """Result ordering."""
    HISTORY = "history"    # valuation_date descending
    UPCOMING = "upcoming"  # valuation_date ascending, only dates after `now`


@dataclass(frozen=True)
class MatchResult:
    valuations: Tuple[Valuation, ...]
    using_company_fallback: bool = False

    def __iter__(self):
        return iter(self.valuations)

    def __len__(self) -> int:
        return len(self.valuations)

    def __contains__(self, valuation: Valuation) -> bool:
        return any(v.id == valuation.id for v in self.valuations)

    @property
    def ids(self) -> frozenset:
        return frozenset(v.id for v in self.valuations)


EMPTY_MATCH = MatchResult(valuations=())


def _dated(valuations: Iterable[Valuation]) -> List[Valuation]:
    """Drop valuations whose date could not be resolved."""
    kept = []
    for v in valuations:
        if v.valuation_date is None:
            logger.warning(f"Skipping valuation {v.id}: no usable valuation date")
            continue
        kept.append(v)
    return kept


def order_valuations(
    valuations: Iterable[Valuation],
    order: MatchOrder = MatchOrder.HISTORY,
    now: Optional[date] = None,
) -> Tuple[Valuation, ...]:
    """
    Sort valuations for display or for "next" lookups.

    Ties on date are broken by id so results are deterministic.
    """
    if order == MatchOrder.UPCOMING:
        if now is None:
            raise ValueError("UPCOMING order needs a reference date")
        upcoming = [v for v in valuations if v.valuation_date > now]
        return tuple(sorted(upcoming, key=lambda v: (v.valuation_date, v.id)))

    return tuple(sorted(valuations, key=lambda v: (v.valuation_date, v.id), reverse=True))


class CompanyFallbackMatcher:
    """
    Strategy deciding when plan matching gives way to company matching.

    Activates when the award has a plan id, no valuation carries that plan
    id, and at least one valuation belongs to the resolved company.
    """

    def resolve_company(self, award: Award, context_company_id: Optional[str]) -> Optional[str]:
        """Source company (merged view) > award company > caller's context company."""
        return award.effective_company_id or context_company_id

    def company_valuations(
        self,
        award: Award,
        valuations: Sequence[Valuation],
        context_company_id: Optional[str],
    ) -> List[Valuation]:
        company_id = self.resolve_company(award, context_company_id)
        if company_id is None:
            return []
        return [v for v in valuations if v.company_id == company_id]

    def should_activate(
        self,
        award: Award,
        plan_matches: Sequence[Valuation],
        company_matches: Sequence[Valuation],
    ) -> bool:
        return bool(award.plan_id) and not plan_matches and bool(company_matches)


class MatchEngine:
    """Pairs awards with valuations."""

    def __init__(self, fallback: Optional[CompanyFallbackMatcher] = None):
        self.fallback = fallback or CompanyFallbackMatcher()

    def plan_candidates(
        self,
        award: Award,
        valuations: Sequence[Valuation],
        context_company_id: Optional[str] = None,
    ) -> MatchResult:
        """
        Stage 1 only: the valuations in the award's plan (or company) scope,
        before interval containment. Most recent first.
        """
        dated = _dated(valuations)
        plan_matches = [v for v in dated if award.plan_id and v.plan_id == award.plan_id]
        if plan_matches:
            return MatchResult(order_valuations(plan_matches), using_company_fallback=False)

        company_matches = self.fallback.company_valuations(award, dated, context_company_id)
        if self.fallback.should_activate(award, plan_matches, company_matches):
            logger.info(
                f"Award {award.id}: no valuations for plan {award.plan_id}, "
                f"matching {len(company_matches)} company valuations instead"
            )
            return MatchResult(order_valuations(company_matches), using_company_fallback=True)

        return EMPTY_MATCH

    def match(
        self,
        award: Award,
        valuations: Sequence[Valuation],
        context_company_id: Optional[str] = None,
        order: MatchOrder = MatchOrder.HISTORY,
        now: Optional[date] = None,
    ) -> MatchResult:
        """
        Valuations that apply to the award.

        An award with a missing start or end date matches nothing.
        """
        if not award.has_interval:
            return EMPTY_MATCH

        candidates = self.plan_candidates(award, valuations, context_company_id)
        contained = [v for v in candidates if award.is_active_on(v.valuation_date)]
        return MatchResult(
            order_valuations(contained, order, now),
            using_company_fallback=candidates.using_company_fallback,
        )

    def upcoming(
        self,
        award: Award,
        valuations: Sequence[Valuation],
        now: date,
        context_company_id: Optional[str] = None,
    ) -> MatchResult:
        """Matched valuations dated after `now`, soonest first."""
        return self.match(award, valuations, context_company_id, order=MatchOrder.UPCOMING, now=now)


_default_engine = MatchEngine()


def match(
    award: Award,
    valuations: Sequence[Valuation],
    context_company_id: Optional[str] = None,
) -> MatchResult:
    """Module-level shortcut using the default engine (history order)."""
    return _default_engine.match(award, valuations, context_company_id)
