"""
Profit sharing store - the document-store boundary over SQLAlchemy.

Reads return frozen snapshots from `domain`, never ORM rows, so the engine
can run on them without a session.

Lifecycle writes (`update_award_status`, `update_award_fields`,
`delete_award`) are conditional on the award's current status and commit
their own transaction. They return the authoritative post-write record, or
None/False when the expected status no longer holds. Plain creates and the
admin edits of plans, stakeholders and valuations only flush; the caller
commits.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import update, delete
from sqlalchemy.orm import Session

from app.core.timezone import utc_timestamp
from app.modules.profit_sharing import domain
from app.modules.profit_sharing.exceptions import InputError
from app.modules.profit_sharing.models import (
    ProfitSharingCompany,
    ProfitSharingPlan,
    Stakeholder,
    ProfitAward,
    ValuationEntry,
)

logger = logging.getLogger(__name__)

# Fields an admin may change on a draft award
EDITABLE_AWARD_FIELDS = {
    'plan_id',
    'award_date',
    'award_start_date',
    'award_end_date',
    'shares_issued',
}

EDITABLE_STAKEHOLDER_FIELDS = {'name', 'title', 'email', 'linked_user_id'}

# Administrative corrections of a profit entry
EDITABLE_VALUATION_FIELDS = {
    'plan_id',
    'valuation_date',
    'profit_amount',
    'profit_type',
    'price_per_share',
    'total_shares',
    'notes',
}


def _iso_dates(values: Optional[Iterable[Any]]) -> List[str]:
    result = []
    for value in values or []:
        parsed = domain.parse_business_date(value)
        if parsed is not None:
            result.append(parsed.isoformat())
    return result


# ---------------------------------------------------------------------------
# Row -> snapshot conversion
# ---------------------------------------------------------------------------

def company_snapshot(row: ProfitSharingCompany) -> domain.Company:
    return domain.Company(id=row.id, name=row.name)


def plan_snapshot(row: ProfitSharingPlan) -> domain.Plan:
    return domain.Plan(
        id=row.id,
        company_id=row.company_id,
        name=row.name,
        trigger_amount=domain.to_decimal(row.trigger_amount) or domain.ZERO,
        total_shares=row.total_shares or 0,
        schedule=row.schedule,
        status=row.status,
        description=row.description,
        start_date=row.start_date,
        profit_description=row.profit_description,
        payment_terms=row.payment_terms,
        payment_schedule_dates=tuple(
            d for d in (domain.parse_business_date(v) for v in (row.payment_schedule_dates or [])) if d
        ),
    )


def stakeholder_snapshot(row: Stakeholder) -> domain.Stakeholder:
    return domain.Stakeholder(
        id=row.id,
        company_id=row.company_id,
        name=row.name,
        linked_user_id=row.linked_user_id,
        title=row.title,
        email=row.email,
        version=row.version or 1,
    )


def award_snapshot(row: ProfitAward, company_id: Optional[str] = None) -> domain.Award:
    return domain.Award(
        id=row.id,
        plan_id=row.plan_id,
        stakeholder_id=row.stakeholder_id,
        company_id=company_id,
        award_start_date=row.award_start_date,
        award_end_date=row.award_end_date,
        shares_issued=row.shares_issued,
        status=row.status,
        award_date=row.award_date,
        issued_at=row.issued_at,
        issued_by=row.issued_by,
        accepted_at=row.accepted_at,
        accepted_by=row.accepted_by,
        document_ref=row.document_ref,
        version=row.version or 1,
    )


def valuation_record(row: ValuationEntry) -> Dict[str, Any]:
    return {
        'id': row.id,
        'company_id': row.company_id,
        'plan_id': row.plan_id,
        'valuation_date': row.valuation_date,
        'profit_amount': row.profit_amount,
        'profit_type': row.profit_type,
        'price_per_share': row.price_per_share,
        'total_shares': row.total_shares,
        'notes': row.notes,
        'version': row.version,
    }


def valuation_snapshot(row: ValuationEntry) -> domain.Valuation:
    return domain.Valuation.from_raw(valuation_record(row))


class ProfitSharingStore:
    """Repository for plans, stakeholders, awards and valuations."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Companies & plans
    # ------------------------------------------------------------------

    def get_company(self, company_id: str) -> Optional[domain.Company]:
        row = self.db.get(ProfitSharingCompany, company_id)
        return company_snapshot(row) if row else None

    def list_companies(self) -> List[domain.Company]:
        rows = self.db.query(ProfitSharingCompany).order_by(ProfitSharingCompany.name).all()
        return [company_snapshot(r) for r in rows]

    def create_company(self, data: Dict[str, Any]) -> domain.Company:
        row = ProfitSharingCompany(**data)
        self.db.add(row)
        self.db.flush()
        return company_snapshot(row)

    def get_plan(self, plan_id: Optional[str]) -> Optional[domain.Plan]:
        if not plan_id:
            return None
        row = self.db.get(ProfitSharingPlan, plan_id)
        return plan_snapshot(row) if row else None

    def list_plans(self, company_id: Optional[str] = None) -> List[domain.Plan]:
        query = self.db.query(ProfitSharingPlan)
        if company_id:
            query = query.filter(ProfitSharingPlan.company_id == company_id)
        return [plan_snapshot(r) for r in query.order_by(ProfitSharingPlan.created_at).all()]

    def create_plan(self, data: Dict[str, Any]) -> domain.Plan:
        data = dict(data)
        if 'payment_schedule_dates' in data:
            data['payment_schedule_dates'] = _iso_dates(data['payment_schedule_dates'])
        row = ProfitSharingPlan(**data)
        self.db.add(row)
        self.db.flush()
        return plan_snapshot(row)

    def update_plan(self, plan_id: str, data: Dict[str, Any]) -> Optional[domain.Plan]:
        row = self.db.get(ProfitSharingPlan, plan_id)
        if row is None:
            return None
        for key, value in data.items():
            if key == 'payment_schedule_dates':
                value = _iso_dates(value)
            setattr(row, key, value)
        row.version = (row.version or 1) + 1
        self.db.flush()
        return plan_snapshot(row)

    def plan_has_finalized_awards(self, plan_id: str) -> bool:
        return self.db.query(ProfitAward.id).filter(
            ProfitAward.plan_id == plan_id,
            ProfitAward.status == domain.AwardStatus.FINALIZED.value,
        ).first() is not None

    # ------------------------------------------------------------------
    # Stakeholders
    # ------------------------------------------------------------------

    def get_stakeholder(self, stakeholder_id: str) -> Optional[domain.Stakeholder]:
        row = self.db.get(Stakeholder, stakeholder_id)
        return stakeholder_snapshot(row) if row else None

    def list_stakeholders(
        self,
        company_id: Optional[str] = None,
        linked_user_id: Optional[str] = None,
    ) -> List[domain.Stakeholder]:
        query = self.db.query(Stakeholder)
        if company_id:
            query = query.filter(Stakeholder.company_id == company_id)
        if linked_user_id:
            query = query.filter(Stakeholder.linked_user_id == linked_user_id)
        return [stakeholder_snapshot(r) for r in query.order_by(Stakeholder.name).all()]

    def create_stakeholder(self, data: Dict[str, Any]) -> domain.Stakeholder:
        row = Stakeholder(**data)
        self.db.add(row)
        self.db.flush()
        return stakeholder_snapshot(row)

    def update_stakeholder(self, stakeholder_id: str, data: Dict[str, Any]) -> Optional[domain.Stakeholder]:
        """Apply `data` to a stakeholder record and return the record as written."""
        unknown = set(data) - EDITABLE_STAKEHOLDER_FIELDS
        if unknown:
            raise InputError(f"Stakeholder fields not editable: {', '.join(sorted(unknown))}")
        if 'name' in data and not (data['name'] or '').strip():
            raise InputError("Stakeholder name must not be empty")

        row = self.db.get(Stakeholder, stakeholder_id)
        if row is None:
            return None
        for key, value in data.items():
            setattr(row, key, value)
        row.version = (row.version or 1) + 1
        self.db.flush()
        return stakeholder_snapshot(row)

    # ------------------------------------------------------------------
    # Awards
    # ------------------------------------------------------------------

    def _award_company_ids(self, rows: List[ProfitAward]) -> Dict[str, Optional[str]]:
        """Company of each award: via its plan when the plan exists, else its stakeholder."""
        plan_ids = {r.plan_id for r in rows if r.plan_id}
        plan_companies = {}
        if plan_ids:
            plan_companies = dict(
                self.db.query(ProfitSharingPlan.id, ProfitSharingPlan.company_id)
                .filter(ProfitSharingPlan.id.in_(plan_ids))
                .all()
            )
        stakeholder_ids = {r.stakeholder_id for r in rows}
        stakeholder_companies = dict(
            self.db.query(Stakeholder.id, Stakeholder.company_id)
            .filter(Stakeholder.id.in_(stakeholder_ids))
            .all()
        ) if stakeholder_ids else {}

        return {
            r.id: plan_companies.get(r.plan_id) or stakeholder_companies.get(r.stakeholder_id)
            for r in rows
        }

    def _snapshots(self, rows: List[ProfitAward]) -> List[domain.Award]:
        companies = self._award_company_ids(rows)
        return [award_snapshot(r, companies.get(r.id)) for r in rows]

    def get_award(self, award_id: str) -> Optional[domain.Award]:
        row = self.db.query(ProfitAward).populate_existing().filter(ProfitAward.id == award_id).first()
        if row is None:
            return None
        return self._snapshots([row])[0]

    def list_awards(
        self,
        stakeholder_id: Optional[str] = None,
        linked_user_id: Optional[str] = None,
    ) -> List[domain.Award]:
        """
        Awards of one stakeholder record, or the merged union for a user.

        In the merged form each award is tagged with the company and
        stakeholder record it came from.
        """
        if linked_user_id:
            return self.merged_awards_for_user(linked_user_id)

        query = self.db.query(ProfitAward)
        if stakeholder_id:
            query = query.filter(ProfitAward.stakeholder_id == stakeholder_id)
        rows = query.order_by(ProfitAward.award_start_date, ProfitAward.id).all()
        return self._snapshots(rows)

    def merged_awards_for_user(self, linked_user_id: str) -> List[domain.Award]:
        merged = []
        for holder in self.list_stakeholders(linked_user_id=linked_user_id):
            for award in self.list_awards(stakeholder_id=holder.id):
                merged.append(award.tagged(company_id=holder.company_id, stakeholder_id=holder.id))
        return merged

    def create_award(self, data: Dict[str, Any]) -> domain.Award:
        data = dict(data)
        data['status'] = domain.AwardStatus.DRAFT.value
        row = ProfitAward(**data)
        self.db.add(row)
        self.db.flush()
        return self._snapshots([row])[0]

    def _conditional_update(
        self,
        stakeholder_record_id: str,
        award_id: str,
        expected_status: str,
        values: Dict[str, Any],
    ) -> Optional[domain.Award]:
        stmt = (
            update(ProfitAward)
            .where(
                ProfitAward.id == award_id,
                ProfitAward.stakeholder_id == stakeholder_record_id,
                ProfitAward.status == expected_status,
            )
            .values(version=ProfitAward.version + 1, updated_at=utc_timestamp(), **values)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        if result.rowcount != 1:
            self.db.rollback()
            logger.warning(
                f"Conditional update of award {award_id} on {stakeholder_record_id} "
                f"found no row in status '{expected_status}'"
            )
            return None
        self.db.commit()
        return self.get_award(award_id)

    def update_award_status(
        self,
        stakeholder_record_id: str,
        award_id: str,
        expected_status: str,
        new_status: str,
        actor_id: str,
        timestamp: datetime,
    ) -> Optional[domain.Award]:
        """
        Move an award from `expected_status` to `new_status`.

        Returns the updated award, or None when the award is no longer in
        `expected_status` (conflict).
        """
        values: Dict[str, Any] = {'status': new_status}
        if new_status == domain.AwardStatus.ISSUED.value:
            values.update(issued_by=actor_id, issued_at=timestamp)
        elif new_status == domain.AwardStatus.FINALIZED.value:
            values.update(accepted_by=actor_id, accepted_at=timestamp)
        return self._conditional_update(stakeholder_record_id, award_id, expected_status, values)

    def update_award_fields(
        self,
        stakeholder_record_id: str,
        award_id: str,
        expected_status: str,
        fields: Dict[str, Any],
    ) -> Optional[domain.Award]:
        unknown = set(fields) - EDITABLE_AWARD_FIELDS
        if unknown:
            raise InputError(f"Award fields not editable: {', '.join(sorted(unknown))}", award_id)
        return self._conditional_update(stakeholder_record_id, award_id, expected_status, dict(fields))

    def delete_award(self, stakeholder_record_id: str, award_id: str, expected_status: str) -> bool:
        stmt = (
            delete(ProfitAward)
            .where(
                ProfitAward.id == award_id,
                ProfitAward.stakeholder_id == stakeholder_record_id,
                ProfitAward.status == expected_status,
            )
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        if result.rowcount != 1:
            self.db.rollback()
            return False
        self.db.commit()
        return True

    def set_award_document(self, stakeholder_record_id: str, award_id: str, document_ref: str) -> Optional[domain.Award]:
        """Record the latest generated agreement. Not status-conditional."""
        stmt = (
            update(ProfitAward)
            .where(ProfitAward.id == award_id, ProfitAward.stakeholder_id == stakeholder_record_id)
            .values(document_ref=document_ref, version=ProfitAward.version + 1, updated_at=utc_timestamp())
            .execution_options(synchronize_session=False)
        )
        self.db.execute(stmt)
        self.db.commit()
        return self.get_award(award_id)

    # ------------------------------------------------------------------
    # Valuations
    # ------------------------------------------------------------------

    def list_valuations(
        self,
        company_id: Optional[str] = None,
        plan_id: Optional[str] = None,
        company_ids: Optional[Iterable[str]] = None,
    ) -> List[domain.Valuation]:
        """
        Profit entries, most recent first. Unreadable rows are skipped.
        """
        query = self.db.query(ValuationEntry)
        if company_id:
            query = query.filter(ValuationEntry.company_id == company_id)
        if company_ids is not None:
            query = query.filter(ValuationEntry.company_id.in_(list(company_ids)))
        if plan_id:
            query = query.filter(ValuationEntry.plan_id == plan_id)
        rows = query.order_by(ValuationEntry.valuation_date.desc(), ValuationEntry.id).all()
        return domain.read_valuations(valuation_record(r) for r in rows)

    def create_valuation(self, data: Dict[str, Any]) -> domain.Valuation:
        row = ValuationEntry(**data)
        self.db.add(row)
        self.db.flush()
        return valuation_snapshot(row)

    def update_valuation(self, valuation_id: str, data: Dict[str, Any]) -> Optional[domain.Valuation]:
        """
        Correct a profit entry in place.

        The corrected row is read back through the same parser the engine
        uses, so a change that would make the entry unreadable raises
        InputError instead of being written.
        """
        unknown = set(data) - EDITABLE_VALUATION_FIELDS
        if unknown:
            raise InputError(f"Valuation fields not editable: {', '.join(sorted(unknown))}", valuation_id)
        if 'valuation_date' in data and data['valuation_date'] is None:
            raise InputError("Valuation date is required", valuation_id)
        if 'profit_amount' in data and data['profit_amount'] is None:
            raise InputError("Profit amount is required", valuation_id)

        row = self.db.get(ValuationEntry, valuation_id)
        if row is None:
            return None
        for key, value in data.items():
            setattr(row, key, value)
        corrected = valuation_snapshot(row)
        row.version = (row.version or 1) + 1
        self.db.flush()
        return replace(corrected, version=row.version)
