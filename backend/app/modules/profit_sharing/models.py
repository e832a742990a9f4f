"""
Profit sharing database models.

Records use string document keys. Awards belong to exactly one stakeholder
record; a user holding stakeholder records in several companies is tied
together through `linked_user_id`.
"""

from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, Text, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship

from app.shared.models.base import BaseModel, VersionMixin


class ProfitSharingCompany(BaseModel):
    """Company running one or more profit sharing plans."""

    __tablename__ = "ps_companies"

    name = Column(String(200), nullable=False)


class ProfitSharingPlan(BaseModel, VersionMixin):
    """A profit sharing scheme."""

    __tablename__ = "ps_plans"

    company_id = Column(String(32), ForeignKey('ps_companies.id'), nullable=False)

    name = Column(String(200), nullable=False, default='Profit Plan')
    description = Column(Text, nullable=True)

    trigger_amount = Column(Numeric(18, 2), nullable=True)  # profit threshold
    total_shares = Column(Integer, nullable=True)
    schedule = Column(String(20), nullable=True)  # 'quarterly', 'bi-annually', 'annually'
    status = Column(String(20), nullable=False, default='draft')  # 'draft', 'finalized'

    start_date = Column(Date, nullable=True)
    profit_description = Column(Text, nullable=True)
    payment_terms = Column(String(50), nullable=True)  # 'within-30-days', 'within-60-days', 'installment-payments'
    payment_schedule_dates = Column(JSON, nullable=True)  # list of ISO dates

    __table_args__ = (
        Index('idx_ps_plans_company', 'company_id'),
    )


class Stakeholder(BaseModel, VersionMixin):
    """Stakeholder record of one person in one company."""

    __tablename__ = "ps_stakeholders"

    company_id = Column(String(32), ForeignKey('ps_companies.id'), nullable=False)

    name = Column(String(200), nullable=False)
    title = Column(String(200), nullable=True)
    email = Column(String(200), nullable=True)

    # Authenticated user this record belongs to (may span companies)
    linked_user_id = Column(String(128), nullable=True)

    awards = relationship("ProfitAward", back_populates="stakeholder", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_ps_stakeholders_company', 'company_id'),
        Index('idx_ps_stakeholders_user', 'linked_user_id'),
    )


class ProfitAward(BaseModel, VersionMixin):
    """Profit shares granted to a stakeholder under a plan."""

    __tablename__ = "ps_awards"

    stakeholder_id = Column(String(32), ForeignKey('ps_stakeholders.id'), nullable=False)
    plan_id = Column(String(32), nullable=True)  # kept as a plain key: plans get re-issued

    award_date = Column(Date, nullable=True)
    award_start_date = Column(Date, nullable=True)
    award_end_date = Column(Date, nullable=True)
    shares_issued = Column(Integer, nullable=True)

    # Lifecycle
    status = Column(String(20), nullable=False, default='draft')  # 'draft', 'issued', 'finalized'
    issued_at = Column(DateTime, nullable=True)
    issued_by = Column(String(128), nullable=True)
    accepted_at = Column(DateTime, nullable=True)
    accepted_by = Column(String(128), nullable=True)

    document_ref = Column(String(500), nullable=True)

    stakeholder = relationship("Stakeholder", back_populates="awards")

    __table_args__ = (
        Index('idx_ps_awards_stakeholder', 'stakeholder_id'),
        Index('idx_ps_awards_plan', 'plan_id'),
    )


class ValuationEntry(BaseModel, VersionMixin):
    """Dated company profit entry, actual or estimated."""

    __tablename__ = "ps_valuations"

    company_id = Column(String(32), ForeignKey('ps_companies.id'), nullable=False)
    plan_id = Column(String(32), nullable=True)  # may reference a superseded plan id

    valuation_date = Column(Date, nullable=False)
    profit_amount = Column(Numeric(18, 2), nullable=False)
    profit_type = Column(String(20), nullable=False, default='actual')  # 'actual', 'estimated'

    price_per_share = Column(Numeric(18, 6), nullable=True)  # explicit override
    total_shares = Column(Numeric(18, 4), nullable=True)  # denominator when no override

    notes = Column(Text, nullable=True)

    __table_args__ = (
        Index('idx_ps_valuations_company_date', 'company_id', 'valuation_date'),
        Index('idx_ps_valuations_plan', 'plan_id'),
    )
