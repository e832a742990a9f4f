"""
Profit Award Agreement documents.

`award_template_fields` maps an award and its context to the placeholders of
the Profit Award Agreement template. `AwardDocumentGenerator` renders those
fields into a PDF and stores it under DOCUMENTS_DIR, returning the stored
path as the document reference.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from io import BytesIO
from pathlib import Path
from typing import Dict, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app.core.config import settings
from app.core.timezone import utc_timestamp
from app.modules.profit_sharing.domain import Award, AwardStatus, Company, Plan, Stakeholder

logger = logging.getLogger(__name__)


SCHEDULE_LABELS = {
    'quarterly': 'Quarterly',
    'bi-annually': 'Bi-Annually',
    'annually': 'Annually',
}

PAYMENT_TERMS_LABELS = {
    'within-30-days': 'Within 30 days',
    'within-60-days': 'Within 60 days',
    'installment-payments': 'Installment payments',
}

# Placeholder order as it appears in the agreement
AGREEMENT_FIELDS = [
    'COMPANY NAME',
    'EMPLOYEE NAME',
    'AWARD DATE',
    'START DATE',
    'END DATE',
    'NUMBER OF PROFIT SHARES ISSUED',
    'PROFIT PLAN NAME',
    'SCHEDULE',
    'PAYMENT DATES',
    'PAYMENT TERMS',
    'PROFIT DEFINITION',
    'TRIGGER AMOUNT',
    'TOTAL PROFIT SHARES',
    'SIGNATURE',
]


def format_long_date(value) -> str:
    """'March 31, 2024' style, empty for missing dates."""
    if not value:
        return ''
    if isinstance(value, datetime):
        value = value.date()
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def format_whole_dollars(value) -> str:
    if value is None:
        return '$0'
    amount = Decimal(str(value)).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    sign = '-' if amount < 0 else ''
    return f"{sign}${abs(amount):,}"


def award_template_fields(
    award: Award,
    plan: Optional[Plan],
    stakeholder: Optional[Stakeholder],
    company: Optional[Company],
) -> Dict[str, str]:
    """Map award data to the agreement template placeholders."""
    signature = ''
    if award.status == AwardStatus.FINALIZED.value and award.accepted_by:
        signature = f"Accepted by {stakeholder.name if stakeholder else award.accepted_by} on {format_long_date(award.accepted_at)}"

    payment_dates = ', '.join(format_long_date(d) for d in (plan.payment_schedule_dates if plan else ()))

    return {
        'COMPANY NAME': company.name if company else '',
        'EMPLOYEE NAME': (stakeholder.name if stakeholder else '') or 'Employee',
        'AWARD DATE': format_long_date(award.award_date),
        'START DATE': format_long_date(award.award_start_date),
        'END DATE': format_long_date(award.award_end_date),
        'NUMBER OF PROFIT SHARES ISSUED': f"{award.shares_issued or 0:,}",
        'PROFIT PLAN NAME': (plan.name if plan else '') or 'Profit Plan',
        'SCHEDULE': SCHEDULE_LABELS.get(plan.schedule, plan.schedule or '') if plan else '',
        'PAYMENT DATES': payment_dates,
        'PAYMENT TERMS': PAYMENT_TERMS_LABELS.get(plan.payment_terms, plan.payment_terms or '') if plan else '',
        'PROFIT DEFINITION': (plan.profit_description if plan else '') or '',
        'TRIGGER AMOUNT': format_whole_dollars(plan.trigger_amount if plan else 0),
        'TOTAL PROFIT SHARES': f"{plan.total_shares if plan else 0:,}",
        'SIGNATURE': signature,
    }


class DocumentRegenerator(ABC):
    """Produces the agreement for an award and returns a document reference."""

    @abstractmethod
    def regenerate_award_document(
        self,
        award: Award,
        plan: Optional[Plan],
        stakeholder: Optional[Stakeholder],
        company: Optional[Company],
    ) -> str:
        pass


def render_award_agreement(fields: Dict[str, str], buffer: BytesIO) -> None:
    """
    Render agreement fields as a PDF into `buffer`.

    Field values are plain text; anything placed in a Paragraph is escaped
    because reportlab parses Paragraph text as markup.
    """
    doc = SimpleDocTemplate(buffer, pagesize=letter, topMargin=0.75*inch, bottomMargin=0.75*inch)
    styles = getSampleStyleSheet()
    story = []

    title_style = ParagraphStyle(
        'AgreementTitle',
        parent=styles['Heading1'],
        fontSize=16,
        textColor=colors.HexColor('#000000'),
        spaceAfter=12,
        alignment=TA_CENTER,
        fontName='Helvetica-Bold'
    )

    story.append(Paragraph("Profit Award Agreement", title_style))
    story.append(Paragraph(escape(fields['COMPANY NAME']), styles['Normal']))
    story.append(Spacer(1, 0.3*inch))

    rows = [[label.title() + ':', fields[label] or '-'] for label in AGREEMENT_FIELDS if label != 'SIGNATURE']
    table = Table(rows, colWidths=[2.6*inch, 4*inch])
    table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('LINEBELOW', (0, 0), (-1, -1), 0.25, colors.HexColor('#CCCCCC')),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
    ]))
    story.append(table)
    story.append(Spacer(1, 0.5*inch))

    signature = fields['SIGNATURE'] or 'Signature: ______________________________'
    story.append(Paragraph(escape(signature), styles['Normal']))

    doc.build(story)


class AwardDocumentGenerator(DocumentRegenerator):
    """Writes agreement PDFs below `<documents_dir>/awards/<award_id>/`."""

    def __init__(self, documents_dir: Optional[Path] = None):
        self.documents_dir = Path(documents_dir or settings.DOCUMENTS_DIR)

    def regenerate_award_document(
        self,
        award: Award,
        plan: Optional[Plan],
        stakeholder: Optional[Stakeholder],
        company: Optional[Company],
    ) -> str:
        fields = award_template_fields(award, plan, stakeholder, company)

        buffer = BytesIO()
        render_award_agreement(fields, buffer)

        target_dir = self.documents_dir / "awards" / award.id
        target_dir.mkdir(parents=True, exist_ok=True)
        stamp = utc_timestamp().strftime('%Y%m%dT%H%M%S%f')
        target = target_dir / f"profit-award-agreement-{award.status}-{stamp}.pdf"
        target.write_bytes(buffer.getvalue())

        logger.info(f"Generated award agreement for {award.id}: {target}")
        return str(target)
