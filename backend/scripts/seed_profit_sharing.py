"""
Seed script for profit sharing demo data.

One company, one quarterly plan, a stakeholder linked to a user, a 2024
award, and a mix of actual and estimated profit entries.

Run with: python -m scripts.seed_profit_sharing
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import date
from decimal import Decimal

from app.core.database import SessionLocal
from app.modules.profit_sharing.models import (
    ProfitSharingCompany,
    ProfitSharingPlan,
    Stakeholder,
    ProfitAward,
    ValuationEntry,
)
from app.modules.profit_sharing.services import get_stakeholder_dashboard


def seed_profit_sharing_data():
    """Seed a company with one plan, one award and a year of profit entries."""
    db = SessionLocal()

    try:
        # Check if data already exists
        existing = db.query(ProfitSharingCompany).first()
        if existing:
            print("Profit sharing data already exists. Skipping seed.")
            print("To re-seed, delete existing data first.")
            return

        print("Seeding profit sharing data...")

        company = ProfitSharingCompany(name="Summit Roofing LLC")
        db.add(company)
        db.flush()

        plan = ProfitSharingPlan(
            company_id=company.id,
            name="2024 Crew Profit Plan",
            trigger_amount=Decimal("5000"),
            total_shares=1000,
            schedule="quarterly",
            status="finalized",
            start_date=date(2024, 1, 1),
            profit_description="Net operating profit after owner draws",
            payment_terms="within-30-days",
            payment_schedule_dates=["2024-04-30", "2024-07-31", "2024-10-31", "2025-01-31"],
        )
        db.add(plan)
        db.flush()
        print(f"  Added plan {plan.name} ({plan.total_shares:,} shares)")

        foreman = Stakeholder(
            company_id=company.id,
            name="Dana Ortiz",
            title="Crew Foreman",
            email="dana@example.com",
            linked_user_id="user-dana",
        )
        db.add(foreman)
        db.flush()

        award = ProfitAward(
            stakeholder_id=foreman.id,
            plan_id=plan.id,
            award_date=date(2023, 12, 15),
            award_start_date=date(2024, 1, 1),
            award_end_date=date(2024, 12, 31),
            shares_issued=100,
            status="draft",
        )
        db.add(award)
        print(f"  Added award for {foreman.name}: 100 shares, 2024")

        entries = [
            (date(2024, 3, 31), Decimal("10000"), "actual"),
            (date(2024, 6, 30), Decimal("8500"), "actual"),
            (date(2024, 9, 30), Decimal("12250"), "actual"),
            (date(2025, 3, 31), Decimal("12000"), "estimated"),
        ]
        for valuation_date, profit, profit_type in entries:
            db.add(ValuationEntry(
                company_id=company.id,
                plan_id=plan.id,
                valuation_date=valuation_date,
                profit_amount=profit,
                profit_type=profit_type,
                total_shares=Decimal("1000"),
            ))
        print(f"  Added {len(entries)} profit entries")

        db.commit()
        print("\nProfit sharing data seeded successfully!")

        # Print summary
        dashboard = get_stakeholder_dashboard(db, foreman.id)
        kpis = dashboard["kpis"]
        print(f"\n{foreman.name} as of {dashboard['as_of']}:")
        print(f"  - Last period payout: ${kpis['last_period_payout']['amount']:,.2f}")
        print(f"  - Total payout to date: ${kpis['total_payout_to_date']:,.2f}")
        print(f"  - Next estimated profit: ${kpis['next_estimated_profit']['amount']:,.2f}")

    except Exception as e:
        db.rollback()
        print(f"Error seeding data: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_profit_sharing_data()
