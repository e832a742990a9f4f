"""
Profit Sharing API routes.

Stakeholder dashboards (KPIs + payout history), the merged award view of the
signed-in user, award lifecycle actions, and admin maintenance of companies,
plans, valuations, stakeholders and draft awards.
"""

from datetime import date
from decimal import Decimal
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.orm import Session

from app.core.auth import Actor, get_current_actor, require_admin
from app.core.database import get_db
from app.modules.profit_sharing.exceptions import (
    AccessDeniedError,
    ConflictError,
    InputError,
    InvalidTransitionError,
    NotFoundError,
    ProfitSharingError,
)
from app.modules.profit_sharing.services import (
    build_lifecycle,
    finalize_plan,
    get_stakeholder_dashboard,
    get_user_dashboard,
    list_user_awards,
    serialize_award,
    serialize_company,
    serialize_plan,
    serialize_stakeholder,
    serialize_transition,
    serialize_valuation,
    update_plan,
)
from app.modules.profit_sharing.store import ProfitSharingStore

router = APIRouter()


ScheduleName = Literal['quarterly', 'bi-annually', 'annually']
PaymentTermsName = Literal['within-30-days', 'within-60-days', 'installment-payments']


# Pydantic models for request/response
class CompanyCreate(BaseModel):
    name: str


class PlanCreate(BaseModel):
    company_id: str
    name: str = 'Profit Plan'
    description: Optional[str] = None
    trigger_amount: Optional[Decimal] = None
    total_shares: Optional[int] = Field(default=None, ge=0)
    schedule: Optional[ScheduleName] = None
    start_date: Optional[date] = None
    profit_description: Optional[str] = None
    payment_terms: Optional[PaymentTermsName] = None
    payment_schedule_dates: List[date] = []


class PlanUpdate(BaseModel):
    """Partial update model for plan - all fields optional."""
    name: Optional[str] = None
    description: Optional[str] = None
    trigger_amount: Optional[Decimal] = None
    total_shares: Optional[int] = Field(default=None, ge=0)
    schedule: Optional[ScheduleName] = None
    start_date: Optional[date] = None
    profit_description: Optional[str] = None
    payment_terms: Optional[PaymentTermsName] = None
    payment_schedule_dates: Optional[List[date]] = None


class ValuationCreate(BaseModel):
    company_id: str
    plan_id: Optional[str] = None
    valuation_date: date
    profit_amount: Decimal
    profit_type: Literal['actual', 'estimated'] = 'actual'
    price_per_share: Optional[Decimal] = None
    total_shares: Optional[Decimal] = None
    notes: Optional[str] = None


class ValuationUpdate(BaseModel):
    """Administrative correction of a profit entry - all fields optional."""
    plan_id: Optional[str] = None
    valuation_date: Optional[date] = None
    profit_amount: Optional[Decimal] = None
    profit_type: Optional[Literal['actual', 'estimated']] = None
    price_per_share: Optional[Decimal] = None
    total_shares: Optional[Decimal] = None
    notes: Optional[str] = None


class StakeholderCreate(BaseModel):
    company_id: str
    name: str
    title: Optional[str] = None
    email: Optional[str] = None
    linked_user_id: Optional[str] = None


class StakeholderUpdate(BaseModel):
    """Partial update model for a stakeholder record."""
    name: Optional[str] = None
    title: Optional[str] = None
    email: Optional[str] = None
    linked_user_id: Optional[str] = None


class AwardCreate(BaseModel):
    plan_id: Optional[str] = None
    award_date: Optional[date] = None
    award_start_date: Optional[date] = None
    award_end_date: Optional[date] = None
    shares_issued: int = Field(default=0, ge=0)

    @model_validator(mode='after')
    def check_interval(self):
        if self.award_start_date and self.award_end_date and self.award_start_date > self.award_end_date:
            raise ValueError('award_start_date must not be after award_end_date')
        return self


class AwardUpdate(BaseModel):
    """Partial update of a draft award."""
    plan_id: Optional[str] = None
    award_date: Optional[date] = None
    award_start_date: Optional[date] = None
    award_end_date: Optional[date] = None
    shares_issued: Optional[int] = None


def _http_error(e: ProfitSharingError) -> HTTPException:
    """Translate a profit sharing error into an HTTP response."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, AccessDeniedError):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, InvalidTransitionError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, ConflictError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, InputError):
        return HTTPException(status_code=422, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


# ---------------------------------------------------------------------------
# Dashboards
# ---------------------------------------------------------------------------

@router.get("/stakeholders/{stakeholder_id}/dashboard")
async def stakeholder_dashboard(
    stakeholder_id: str,
    plan_id: Optional[str] = None,
    company_id: Optional[str] = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """
    KPIs and payout history for one stakeholder record.

    Admins may view any record (optionally scoped by plan or company);
    everyone else only records linked to them.
    """
    stakeholder = ProfitSharingStore(db).get_stakeholder(stakeholder_id)
    if stakeholder is None:
        raise HTTPException(status_code=404, detail="Stakeholder not found")
    if not actor.is_admin and stakeholder.linked_user_id != actor.user_id:
        raise HTTPException(status_code=403, detail="Not your stakeholder record")

    try:
        return get_stakeholder_dashboard(db, stakeholder_id, plan_id=plan_id, company_id=company_id)
    except ProfitSharingError as e:
        raise _http_error(e)


@router.get("/me/awards")
async def my_awards(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    """All awards of the signed-in user across their stakeholder records."""
    return {"awards": list_user_awards(db, actor.user_id)}


@router.get("/me/dashboard")
async def my_dashboard(
    plan_id: Optional[str] = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """KPIs over the merged awards of the signed-in user."""
    return get_user_dashboard(db, actor.user_id, plan_id=plan_id)


# ---------------------------------------------------------------------------
# Award lifecycle
# ---------------------------------------------------------------------------

@router.post("/awards/{award_id}/issue")
async def issue_award(
    award_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Issue a draft award to its stakeholder."""
    try:
        result = build_lifecycle(db).issue(award_id, actor)
    except ProfitSharingError as e:
        raise _http_error(e)
    return serialize_transition(result)


@router.post("/awards/{award_id}/accept")
async def accept_award(
    award_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Accept an issued award. Only the stakeholder it was issued to may accept."""
    try:
        result = build_lifecycle(db).accept(award_id, actor)
    except ProfitSharingError as e:
        raise _http_error(e)
    return serialize_transition(result)


@router.patch("/awards/{award_id}")
async def edit_award(
    award_id: str,
    data: AwardUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Edit a draft award (partial update supported)."""
    try:
        award = build_lifecycle(db).edit(award_id, data.model_dump(exclude_unset=True), actor)
    except ProfitSharingError as e:
        raise _http_error(e)
    return {"success": True, "award": serialize_award(award)}


@router.delete("/awards/{award_id}")
async def delete_award(
    award_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Delete a draft award."""
    try:
        build_lifecycle(db).delete(award_id, actor)
    except ProfitSharingError as e:
        raise _http_error(e)
    return {"success": True, "message": f"Award {award_id} deleted"}


# ---------------------------------------------------------------------------
# Companies & plans
# ---------------------------------------------------------------------------

@router.get("/companies")
async def list_companies(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    """List companies running profit sharing plans."""
    return {"companies": [serialize_company(c) for c in ProfitSharingStore(db).list_companies()]}


@router.post("/companies")
async def add_company(company: CompanyCreate, actor: Actor = Depends(require_admin), db: Session = Depends(get_db)):
    """Add a new company."""
    try:
        new_company = ProfitSharingStore(db).create_company(company.model_dump())
        db.commit()
        return {"success": True, "company": serialize_company(new_company)}
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/plans")
async def list_plans(
    company_id: Optional[str] = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """List profit sharing plans."""
    return {"plans": [serialize_plan(p) for p in ProfitSharingStore(db).list_plans(company_id)]}


@router.post("/plans")
async def add_plan(plan: PlanCreate, actor: Actor = Depends(require_admin), db: Session = Depends(get_db)):
    """Create a plan in draft."""
    store = ProfitSharingStore(db)
    if store.get_company(plan.company_id) is None:
        raise HTTPException(status_code=404, detail="Company not found")

    try:
        new_plan = store.create_plan(plan.model_dump())
        db.commit()
        return {"success": True, "plan": serialize_plan(new_plan)}
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/plans/{plan_id}")
async def edit_plan(
    plan_id: str,
    data: PlanUpdate,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Update a plan. Rejected once a finalized award references it."""
    try:
        plan = update_plan(db, plan_id, data.model_dump(exclude_unset=True))
    except ProfitSharingError as e:
        db.rollback()
        raise _http_error(e)
    db.commit()
    return {"success": True, "plan": serialize_plan(plan)}


@router.post("/plans/{plan_id}/finalize")
async def finalize(plan_id: str, actor: Actor = Depends(require_admin), db: Session = Depends(get_db)):
    """Finalize a plan."""
    try:
        plan = finalize_plan(db, plan_id)
    except ProfitSharingError as e:
        db.rollback()
        raise _http_error(e)
    db.commit()
    return {"success": True, "plan": serialize_plan(plan)}


# ---------------------------------------------------------------------------
# Valuations
# ---------------------------------------------------------------------------

@router.get("/valuations")
async def list_valuations(
    company_id: Optional[str] = None,
    plan_id: Optional[str] = None,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """List profit entries, most recent first."""
    valuations = ProfitSharingStore(db).list_valuations(company_id=company_id, plan_id=plan_id)
    return {"valuations": [serialize_valuation(v) for v in valuations]}


@router.post("/valuations")
async def add_valuation(
    valuation: ValuationCreate,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Record an actual or estimated profit entry."""
    store = ProfitSharingStore(db)
    if store.get_company(valuation.company_id) is None:
        raise HTTPException(status_code=404, detail="Company not found")

    try:
        new_valuation = store.create_valuation(valuation.model_dump())
        db.commit()
        return {"success": True, "valuation": serialize_valuation(new_valuation)}
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/valuations/{valuation_id}")
async def edit_valuation(
    valuation_id: str,
    data: ValuationUpdate,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Correct a profit entry (partial update supported)."""
    try:
        valuation = ProfitSharingStore(db).update_valuation(valuation_id, data.model_dump(exclude_unset=True))
    except ProfitSharingError as e:
        db.rollback()
        raise _http_error(e)
    if valuation is None:
        raise HTTPException(status_code=404, detail="Valuation not found")
    db.commit()
    return {"success": True, "valuation": serialize_valuation(valuation)}


# ---------------------------------------------------------------------------
# Stakeholders & draft awards
# ---------------------------------------------------------------------------

@router.get("/stakeholders")
async def list_stakeholders(
    company_id: Optional[str] = None,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """List stakeholder records."""
    return {"stakeholders": [serialize_stakeholder(s) for s in ProfitSharingStore(db).list_stakeholders(company_id)]}


@router.post("/stakeholders")
async def add_stakeholder(
    stakeholder: StakeholderCreate,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Add a stakeholder record to a company."""
    store = ProfitSharingStore(db)
    if store.get_company(stakeholder.company_id) is None:
        raise HTTPException(status_code=404, detail="Company not found")

    try:
        new_stakeholder = store.create_stakeholder(stakeholder.model_dump())
        db.commit()
        return {"success": True, "stakeholder": serialize_stakeholder(new_stakeholder)}
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/stakeholders/{stakeholder_id}")
async def edit_stakeholder(
    stakeholder_id: str,
    data: StakeholderUpdate,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Update a stakeholder record.

    Returns the record as written so the caller never re-reads a stale copy.
    """
    try:
        stakeholder = ProfitSharingStore(db).update_stakeholder(stakeholder_id, data.model_dump(exclude_unset=True))
    except ProfitSharingError as e:
        db.rollback()
        raise _http_error(e)
    if stakeholder is None:
        raise HTTPException(status_code=404, detail="Stakeholder not found")
    db.commit()
    return {"success": True, "stakeholder": serialize_stakeholder(stakeholder)}


@router.post("/stakeholders/{stakeholder_id}/awards")
async def add_award(
    stakeholder_id: str,
    award: AwardCreate,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Create a draft award for a stakeholder."""
    store = ProfitSharingStore(db)
    if store.get_stakeholder(stakeholder_id) is None:
        raise HTTPException(status_code=404, detail="Stakeholder not found")

    try:
        new_award = store.create_award({**award.model_dump(), 'stakeholder_id': stakeholder_id})
        db.commit()
        return {"success": True, "award": serialize_award(new_award)}
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
