"""
Payout Calculator - price per share and payout amounts.

All math stays in Decimal with no rounding; the API layer quantizes to cents
when it renders a value.
"""

from decimal import Decimal
from typing import Iterable

from app.modules.profit_sharing.domain import ZERO, Award, Payout, Valuation


def price_for_valuation(valuation: Valuation) -> Decimal:
    """
    Resolve the price per share of a valuation.

    Order:
    1. explicit price_per_share when present and non-zero
    2. profit_amount / total_shares when total_shares > 0
    3. zero
    """
    if valuation.price_per_share is not None and valuation.price_per_share != 0:
        return valuation.price_per_share

    total_shares = valuation.total_shares
    if total_shares is not None and total_shares > 0:
        return valuation.profit_amount / total_shares

    return ZERO


def shares_for_award(award: Award) -> int:
    """Shares issued, with absent or negative counts treated as zero."""
    shares = award.shares_issued or 0
    return shares if shares > 0 else 0


def payout_for(award: Award, valuation: Valuation) -> Payout:
    """Payout for one award priced at one valuation."""
    shares = shares_for_award(award)
    price = price_for_valuation(valuation)
    amount = Decimal(shares) * price if shares else ZERO

    return Payout(
        valuation_id=valuation.id,
        award_id=award.id,
        plan_id=valuation.plan_id,
        profit_date=valuation.valuation_date,
        profit_amount=valuation.profit_amount,
        profit_type=valuation.profit_type,
        price_per_share=price,
        shares_issued=shares,
        payout=amount,
    )


def sum_payouts(payouts: Iterable[Payout]) -> Decimal:
    """Total of the payouts that contribute (awards with shares)."""
    total = ZERO
    for p in payouts:
        if p.contributes:
            total += p.payout
    return total
