"""
Tests for award agreement template fields and PDF generation.

Run with: pytest tests/test_documents.py -v
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

from conftest import make_award
from app.modules.profit_sharing.documents import (
    AGREEMENT_FIELDS,
    AwardDocumentGenerator,
    award_template_fields,
    format_long_date,
    format_whole_dollars,
)
from app.modules.profit_sharing.domain import Company, Plan, Stakeholder


PLAN = Plan(
    id="P1",
    company_id="C1",
    name="2024 Crew Profit Plan",
    trigger_amount=Decimal("25000.40"),
    total_shares=10000,
    schedule="bi-annually",
    payment_terms="within-60-days",
    profit_description="Net operating profit",
    payment_schedule_dates=(date(2024, 7, 31), date(2025, 1, 31)),
)
HOLDER = Stakeholder(id="S1", company_id="C1", name="Dana Ortiz", linked_user_id="user-1")
COMPANY = Company(id="C1", name="Summit Roofing LLC")


class TestTemplateFields:

    def test_draft_award_fields(self):
        award = make_award(shares=1500, award_date=date(2023, 12, 15))

        fields = award_template_fields(award, PLAN, HOLDER, COMPANY)

        assert list(fields) == AGREEMENT_FIELDS
        assert fields["COMPANY NAME"] == "Summit Roofing LLC"
        assert fields["EMPLOYEE NAME"] == "Dana Ortiz"
        assert fields["AWARD DATE"] == "December 15, 2023"
        assert fields["START DATE"] == "January 1, 2024"
        assert fields["END DATE"] == "December 31, 2024"
        assert fields["NUMBER OF PROFIT SHARES ISSUED"] == "1,500"
        assert fields["SCHEDULE"] == "Bi-Annually"
        assert fields["PAYMENT DATES"] == "July 31, 2024, January 31, 2025"
        assert fields["PAYMENT TERMS"] == "Within 60 days"
        assert fields["TRIGGER AMOUNT"] == "$25,000"
        assert fields["TOTAL PROFIT SHARES"] == "10,000"
        assert fields["SIGNATURE"] == ""

    def test_finalized_award_is_signed(self):
        award = make_award(status="finalized", accepted_by="user-1", accepted_at=datetime(2024, 2, 3, 9, 0))

        fields = award_template_fields(award, PLAN, HOLDER, COMPANY)

        assert fields["SIGNATURE"] == "Accepted by Dana Ortiz on February 3, 2024"

    def test_missing_context_uses_defaults(self):
        fields = award_template_fields(make_award(shares=None), None, None, None)

        assert fields["EMPLOYEE NAME"] == "Employee"
        assert fields["PROFIT PLAN NAME"] == "Profit Plan"
        assert fields["NUMBER OF PROFIT SHARES ISSUED"] == "0"
        assert fields["TRIGGER AMOUNT"] == "$0"

    def test_formatters(self):
        assert format_long_date(None) == ""
        assert format_long_date(datetime(2024, 3, 31, 23, 59)) == "March 31, 2024"
        assert format_whole_dollars(Decimal("1234.5")) == "$1,235"
        assert format_whole_dollars(Decimal("-10")) == "-$10"


class TestAwardDocumentGenerator:

    def test_writes_pdf_and_returns_path(self, tmp_path):
        generator = AwardDocumentGenerator(documents_dir=tmp_path)
        award = make_award(award_id="award-9", status="issued")

        ref = generator.regenerate_award_document(award, PLAN, HOLDER, COMPANY)

        path = tmp_path / "awards" / "award-9"
        written = list(path.glob("profit-award-agreement-issued-*.pdf"))
        assert [str(p) for p in written] == [ref]
        assert written[0].read_bytes().startswith(b"%PDF")

    @pytest.mark.parametrize("company_name,holder_name", [
        ("A <B> Co", "Dana Ortiz"),
        ("Smith & Sons", "Lee <Crew> Park"),
        ("</para><b>Summit", "R&D <i>Team"),
    ])
    def test_names_with_markup_characters(self, tmp_path, company_name, holder_name):
        generator = AwardDocumentGenerator(documents_dir=tmp_path)
        award = make_award(
            award_id="award-10",
            status="finalized",
            accepted_by="user-1",
            accepted_at=datetime(2024, 2, 1, 15, 0),
        )
        holder = Stakeholder(id="S1", company_id="C1", name=holder_name)

        ref = generator.regenerate_award_document(award, PLAN, holder, Company(id="C1", name=company_name))

        assert Path(ref).read_bytes().startswith(b"%PDF")
