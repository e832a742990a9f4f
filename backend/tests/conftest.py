"""
Shared fixtures for the profit sharing tests.

The database tests run against in-memory SQLite; DATABASE_URL is pointed at
it before anything under `app` is imported so the module-level engine never
needs a PostgreSQL driver.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from app.core.database import Base, create_db_engine
from app.modules.profit_sharing import models  # noqa: F401  (registers tables)
from app.modules.profit_sharing.domain import Award, Valuation
from app.modules.profit_sharing.store import ProfitSharingStore


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db):
    return ProfitSharingStore(db)


@pytest.fixture
def seeded(store, db):
    """
    Company C with plan P, a stakeholder linked to user-1 holding one draft
    2024 award of 100 shares, one actual and one estimated profit entry.
    """
    company = store.create_company({"name": "Summit Roofing"})
    plan = store.create_plan({
        "company_id": company.id,
        "name": "2024 Plan",
        "trigger_amount": Decimal("5000"),
        "total_shares": 1000,
        "schedule": "quarterly",
    })
    holder = store.create_stakeholder({
        "company_id": company.id,
        "name": "Dana Ortiz",
        "email": "dana@example.com",
        "linked_user_id": "user-1",
    })
    award = store.create_award({
        "stakeholder_id": holder.id,
        "plan_id": plan.id,
        "award_start_date": date(2024, 1, 1),
        "award_end_date": date(2024, 12, 31),
        "shares_issued": 100,
    })
    actual = store.create_valuation({
        "company_id": company.id,
        "plan_id": plan.id,
        "valuation_date": date(2024, 3, 31),
        "profit_amount": Decimal("10000"),
        "profit_type": "actual",
        "total_shares": Decimal("1000"),
    })
    estimate = store.create_valuation({
        "company_id": company.id,
        "plan_id": plan.id,
        "valuation_date": date(2025, 3, 31),
        "profit_amount": Decimal("12000"),
        "profit_type": "estimated",
    })
    db.commit()
    return {
        "company": company,
        "plan": plan,
        "stakeholder": holder,
        "award": award,
        "actual": actual,
        "estimate": estimate,
    }


def make_award(award_id="A1", plan_id="P1", start=date(2024, 1, 1), end=date(2024, 12, 31), shares=100, **kwargs):
    kwargs.setdefault("company_id", "C1")
    return Award(
        id=award_id,
        plan_id=plan_id,
        stakeholder_id=kwargs.pop("stakeholder_id", "S1"),
        award_start_date=start,
        award_end_date=end,
        shares_issued=shares,
        **kwargs,
    )


def make_valuation(valuation_id, valuation_date, profit="0", profit_type="actual", plan_id="P1",
                   company_id="C1", total_shares=None, price_per_share=None):
    return Valuation(
        id=valuation_id,
        company_id=company_id,
        plan_id=plan_id,
        valuation_date=valuation_date,
        profit_amount=Decimal(profit),
        profit_type=profit_type,
        total_shares=Decimal(total_shares) if total_shares is not None else None,
        price_per_share=Decimal(price_per_share) if price_per_share is not None else None,
    )
