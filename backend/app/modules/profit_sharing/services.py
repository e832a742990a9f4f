"""
Profit sharing services.

Glue between the API and the engine:
- dashboards (KPIs + payout history) for a stakeholder record or for the
  merged view of an authenticated user
- plan maintenance rules
- serialization of snapshots for the API (money is rounded to cents here
  and nowhere else)
"""

import logging
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from app.core.timezone import business_today, format_datetime_for_api
from app.modules.profit_sharing.documents import AwardDocumentGenerator
from app.modules.profit_sharing.domain import (
    Award,
    Company,
    Payout,
    Plan,
    PlanStatus,
    Stakeholder,
    Valuation,
)
from app.modules.profit_sharing.exceptions import InvalidTransitionError, NotFoundError
from app.modules.profit_sharing.kpis import PeriodPayout, StakeholderKpis, compute_kpis
from app.modules.profit_sharing.lifecycle import AwardLifecycle, TransitionResult
from app.modules.profit_sharing.store import ProfitSharingStore
from app.shared.services.notifications import get_notification_service

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def money(value: Optional[Decimal]) -> float:
    """Round to cents (half up) for display."""
    if value is None:
        return 0.0
    return float(Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP))


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def serialize_company(company: Company) -> Dict[str, Any]:
    return {'id': company.id, 'name': company.name}


def serialize_plan(plan: Plan) -> Dict[str, Any]:
    return {
        'id': plan.id,
        'company_id': plan.company_id,
        'name': plan.name,
        'description': plan.description,
        'trigger_amount': money(plan.trigger_amount),
        'total_shares': plan.total_shares,
        'schedule': plan.schedule,
        'status': plan.status,
        'start_date': _iso(plan.start_date),
        'profit_description': plan.profit_description,
        'payment_terms': plan.payment_terms,
        'payment_schedule_dates': [d.isoformat() for d in plan.payment_schedule_dates],
    }


def serialize_stakeholder(stakeholder: Stakeholder) -> Dict[str, Any]:
    return {
        'id': stakeholder.id,
        'company_id': stakeholder.company_id,
        'name': stakeholder.name,
        'title': stakeholder.title,
        'email': stakeholder.email,
        'linked_user_id': stakeholder.linked_user_id,
        'version': stakeholder.version,
    }


def serialize_award(award: Award) -> Dict[str, Any]:
    return {
        'id': award.id,
        'plan_id': award.plan_id,
        'stakeholder_id': award.stakeholder_id,
        'company_id': award.effective_company_id,
        'award_date': _iso(award.award_date),
        'award_start_date': _iso(award.award_start_date),
        'award_end_date': _iso(award.award_end_date),
        'shares_issued': award.shares_issued,
        'status': award.status,
        'issued_at': format_datetime_for_api(award.issued_at),
        'issued_by': award.issued_by,
        'accepted_at': format_datetime_for_api(award.accepted_at),
        'accepted_by': award.accepted_by,
        'document_ref': award.document_ref,
        'version': award.version,
        'source_company_id': award.source_company_id,
        'source_stakeholder_id': award.source_stakeholder_id,
    }


def serialize_valuation(valuation: Valuation) -> Dict[str, Any]:
    return {
        'id': valuation.id,
        'company_id': valuation.company_id,
        'plan_id': valuation.plan_id,
        'valuation_date': _iso(valuation.valuation_date),
        'profit_amount': money(valuation.profit_amount),
        'profit_type': valuation.profit_type,
        'price_per_share': float(valuation.price_per_share) if valuation.price_per_share is not None else None,
        'total_shares': float(valuation.total_shares) if valuation.total_shares is not None else None,
        'notes': valuation.notes,
        'version': valuation.version,
    }


def serialize_payout(payout: Payout) -> Dict[str, Any]:
    return {
        'valuation_id': payout.valuation_id,
        'award_id': payout.award_id,
        'plan_id': payout.plan_id,
        'profit_date': _iso(payout.profit_date),
        'profit_amount': money(payout.profit_amount),
        'profit_type': payout.profit_type,
        'price_per_share': float(payout.price_per_share),
        'shares_issued': payout.shares_issued,
        'payout': money(payout.payout),
    }


def _serialize_period(period: PeriodPayout) -> Dict[str, Any]:
    return {
        'amount': money(period.amount),
        'valuation_date': _iso(period.valuation_date),
        'valuation_id': period.valuation_id,
        'award_ids': list(period.award_ids),
        'has_payout': period.has_payout,
    }


def serialize_kpis(kpis: StakeholderKpis) -> Dict[str, Any]:
    estimate = kpis.next_estimated_profit
    return {
        'next_estimated_profit': {
            'amount': money(estimate.profit_amount),
            'valuation_date': _iso(estimate.valuation_date),
            'valuation_id': estimate.valuation_id,
            'has_estimate': estimate.has_estimate,
        },
        'next_estimated_payout': _serialize_period(kpis.next_estimated_payout),
        'last_period_payout': _serialize_period(kpis.last_period_payout),
        'total_payout_to_date': money(kpis.total_payout_to_date),
        'using_company_fallback': kpis.using_company_fallback,
        'skipped_award_ids': list(kpis.skipped_award_ids),
    }


def serialize_transition(result: TransitionResult) -> Dict[str, Any]:
    return {
        'success': True,
        'award': serialize_award(result.award),
        'warnings': [
            {'collaborator': w.collaborator, 'award_id': w.award_id, 'message': w.message}
            for w in result.warnings
        ],
    }


# ---------------------------------------------------------------------------
# Dashboards
# ---------------------------------------------------------------------------

def _dashboard(
    store: ProfitSharingStore,
    awards: Sequence[Award],
    company_ids: set,
    now: date,
    plan_id: Optional[str],
    context_company_id: Optional[str],
) -> Dict[str, Any]:
    company_ids = {c for c in company_ids | {a.effective_company_id for a in awards} if c}
    valuations = store.list_valuations(company_ids=company_ids) if company_ids else []

    kpis = compute_kpis(
        awards,
        valuations,
        now,
        selected_plan_id=plan_id,
        context_company_id=context_company_id,
    )

    if kpis.using_company_fallback:
        logger.info(f"Dashboard used company fallback for companies {sorted(company_ids)}")

    return {
        'as_of': now.isoformat(),
        'kpis': serialize_kpis(kpis),
        'payout_history': [serialize_payout(p) for p in kpis.payout_history],
        'awards': [serialize_award(a) for a in awards if not plan_id or a.plan_id == plan_id],
    }


def get_stakeholder_dashboard(
    db: Session,
    stakeholder_id: str,
    plan_id: Optional[str] = None,
    company_id: Optional[str] = None,
    now: Optional[date] = None,
) -> Dict[str, Any]:
    """KPIs and payout history of one stakeholder record."""
    store = ProfitSharingStore(db)
    stakeholder = store.get_stakeholder(stakeholder_id)
    if stakeholder is None:
        raise NotFoundError(f"Stakeholder {stakeholder_id} not found")

    context_company_id = company_id or stakeholder.company_id
    awards = store.list_awards(stakeholder_id=stakeholder_id)

    result = _dashboard(
        store,
        awards,
        {context_company_id},
        now or business_today(),
        plan_id,
        context_company_id,
    )
    result['stakeholder'] = serialize_stakeholder(stakeholder)
    return result


def get_user_dashboard(
    db: Session,
    user_id: str,
    plan_id: Optional[str] = None,
    now: Optional[date] = None,
) -> Dict[str, Any]:
    """KPIs across every stakeholder record linked to the user."""
    store = ProfitSharingStore(db)
    holders = store.list_stakeholders(linked_user_id=user_id)
    awards = store.merged_awards_for_user(user_id)

    result = _dashboard(
        store,
        awards,
        {h.company_id for h in holders},
        now or business_today(),
        plan_id,
        None,
    )
    result['stakeholders'] = [serialize_stakeholder(h) for h in holders]
    return result


def list_user_awards(db: Session, user_id: str) -> List[Dict[str, Any]]:
    """Merged awards of the user, tagged with their source records."""
    return [serialize_award(a) for a in ProfitSharingStore(db).merged_awards_for_user(user_id)]


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------

def update_plan(db: Session, plan_id: str, data: Dict[str, Any]) -> Plan:
    """Update a plan unless a finalized award already references it."""
    store = ProfitSharingStore(db)
    if store.get_plan(plan_id) is None:
        raise NotFoundError(f"Plan {plan_id} not found")
    if store.plan_has_finalized_awards(plan_id):
        raise InvalidTransitionError(f"Plan {plan_id} is referenced by finalized awards and cannot change")
    return store.update_plan(plan_id, data)


def finalize_plan(db: Session, plan_id: str) -> Plan:
    store = ProfitSharingStore(db)
    plan = store.get_plan(plan_id)
    if plan is None:
        raise NotFoundError(f"Plan {plan_id} not found")
    if plan.status == PlanStatus.FINALIZED.value:
        raise InvalidTransitionError(f"Plan {plan_id} is already finalized")
    return store.update_plan(plan_id, {'status': PlanStatus.FINALIZED.value})


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------

def build_lifecycle(db: Session) -> AwardLifecycle:
    """Lifecycle with the configured notification channels and PDF agreements."""
    return AwardLifecycle(
        store=ProfitSharingStore(db),
        notifier=get_notification_service(),
        documents=AwardDocumentGenerator(),
    )
