"""
In-memory snapshots used by the payout engine.

The engine never touches the database session. The store converts rows into
these frozen dataclasses, and everything downstream (matching, payouts, KPIs,
lifecycle checks) works on them.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable, List, Optional

from dateutil import parser as date_parser

from app.modules.profit_sharing.exceptions import InputError

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class AwardStatus(str, Enum):
    DRAFT = "draft"
    ISSUED = "issued"
    FINALIZED = "finalized"


class ProfitType(str, Enum):
    ACTUAL = "actual"
    ESTIMATED = "estimated"


class PlanStatus(str, Enum):
    DRAFT = "draft"
    FINALIZED = "finalized"


class PlanSchedule(str, Enum):
    QUARTERLY = "quarterly"
    BI_ANNUALLY = "bi-annually"
    ANNUALLY = "annually"


class PaymentTerms(str, Enum):
    WITHIN_30_DAYS = "within-30-days"
    WITHIN_60_DAYS = "within-60-days"
    INSTALLMENT_PAYMENTS = "installment-payments"


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

def parse_business_date(value: Any) -> Optional[date]:
    """
    Coerce a stored date value into a date.

    Accepts date, datetime and ISO-8601 strings. Returns None for empty
    values; raises InputError for anything unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date_parser.isoparse(value.strip()).date()
        except (ValueError, OverflowError) as e:
            raise InputError(f"Unparseable date {value!r}: {e}")
    raise InputError(f"Unsupported date value {value!r}")


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert a stored numeric value to Decimal, keeping None as None."""
    if value is None or value == "":
        return None
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).replace(",", ""))
    except InvalidOperation:
        raise InputError(f"Not a number: {value!r}")


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Company:
    id: str
    name: str


@dataclass(frozen=True)
class Plan:
    id: str
    company_id: str
    name: str
    trigger_amount: Decimal = ZERO
    total_shares: int = 0
    schedule: Optional[str] = None
    status: str = PlanStatus.DRAFT.value
    description: Optional[str] = None
    start_date: Optional[date] = None
    profit_description: Optional[str] = None
    payment_terms: Optional[str] = None
    payment_schedule_dates: tuple = ()


@dataclass(frozen=True)
class Stakeholder:
    id: str
    company_id: str
    name: str
    linked_user_id: Optional[str] = None
    title: Optional[str] = None
    email: Optional[str] = None
    version: int = 1


@dataclass(frozen=True)
class Award:
    """
    A share grant to one stakeholder under one plan.

    `source_company_id` / `source_stakeholder_id` are only set on awards
    produced by the cross-record merge; they point at the system-of-record.
    """
    id: str
    plan_id: Optional[str]
    stakeholder_id: str
    company_id: Optional[str] = None
    award_start_date: Optional[date] = None
    award_end_date: Optional[date] = None
    shares_issued: Optional[int] = None
    status: str = AwardStatus.DRAFT.value
    award_date: Optional[date] = None
    issued_at: Optional[datetime] = None
    issued_by: Optional[str] = None
    accepted_at: Optional[datetime] = None
    accepted_by: Optional[str] = None
    document_ref: Optional[str] = None
    version: int = 1
    source_company_id: Optional[str] = None
    source_stakeholder_id: Optional[str] = None

    @property
    def owner_stakeholder_id(self) -> str:
        """Stakeholder record that owns this award; writes go here."""
        return self.source_stakeholder_id or self.stakeholder_id

    @property
    def effective_company_id(self) -> Optional[str]:
        return self.source_company_id or self.company_id

    @property
    def has_interval(self) -> bool:
        return self.award_start_date is not None and self.award_end_date is not None

    def is_active_on(self, day: date) -> bool:
        """Inclusive interval containment. No interval means never active."""
        if not self.has_interval or day is None:
            return False
        return self.award_start_date <= day <= self.award_end_date

    def validate(self) -> None:
        """Raise InputError when the award cannot take part in payout math."""
        if not self.has_interval:
            raise InputError(f"Award {self.id} has no award interval", self.id)
        if self.award_start_date > self.award_end_date:
            raise InputError(
                f"Award {self.id} starts {self.award_start_date} after it ends {self.award_end_date}",
                self.id,
            )

    def tagged(self, company_id: Optional[str], stakeholder_id: str) -> "Award":
        """Copy carrying its originating company/stakeholder for merged views."""
        return replace(self, source_company_id=company_id, source_stakeholder_id=stakeholder_id)


@dataclass(frozen=True)
class Valuation:
    """A dated profit entry ("valuation") for a company/plan."""
    id: str
    company_id: Optional[str]
    plan_id: Optional[str]
    valuation_date: Optional[date]
    profit_amount: Decimal = ZERO
    profit_type: str = ProfitType.ACTUAL.value
    price_per_share: Optional[Decimal] = None
    total_shares: Optional[Decimal] = None
    notes: Optional[str] = None
    version: int = 1

    @property
    def is_actual(self) -> bool:
        return self.profit_type == ProfitType.ACTUAL.value

    @property
    def is_estimated(self) -> bool:
        return self.profit_type == ProfitType.ESTIMATED.value

    @classmethod
    def from_raw(cls, raw: dict) -> "Valuation":
        """
        Build a valuation from a loosely typed record (API payload, export row).

        Raises InputError when the date or amounts cannot be parsed.
        """
        profit_type = (raw.get("profit_type") or ProfitType.ACTUAL.value).lower()
        if profit_type not in (ProfitType.ACTUAL.value, ProfitType.ESTIMATED.value):
            raise InputError(f"Unknown profit type {profit_type!r}", raw.get("id"))
        return cls(
            id=str(raw["id"]),
            company_id=raw.get("company_id"),
            plan_id=raw.get("plan_id"),
            valuation_date=parse_business_date(raw.get("valuation_date")),
            profit_amount=to_decimal(raw.get("profit_amount")) or ZERO,
            profit_type=profit_type,
            price_per_share=to_decimal(raw.get("price_per_share")),
            total_shares=to_decimal(raw.get("total_shares")),
            notes=raw.get("notes"),
            version=raw.get("version") or 1,
        )


def read_valuations(records: Iterable[dict]) -> List[Valuation]:
    """Parse raw profit entries in order, skipping the unreadable ones."""
    valuations = []
    for raw in records:
        try:
            valuations.append(Valuation.from_raw(raw))
        except InputError as e:
            logger.warning(f"Skipping valuation {raw.get('id')}: {e}")
    return valuations


@dataclass(frozen=True)
class Payout:
    """Derived payout for one award/valuation pairing. Never persisted."""
    valuation_id: str
    award_id: str
    plan_id: Optional[str]
    profit_date: date
    profit_amount: Decimal
    profit_type: str
    price_per_share: Decimal
    shares_issued: int
    payout: Decimal

    @property
    def contributes(self) -> bool:
        """Zero-share awards are excluded from sums."""
        return self.shares_issued > 0
