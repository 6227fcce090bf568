"""
Cart pricing summary

Computes the estimate shown on the cart and review screens. All arithmetic
is exact ``Decimal``; values are rounded only when displayed.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from storefront.models import CartLine
from storefront.utils.constants import PricingRules

ZERO = Decimal("0")


def round_money(amount: Decimal) -> Decimal:
    """Round to cents, half-up"""
    return amount.quantize(PricingRules.CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricingSummary:
    subtotal: Decimal
    shipping_fee: Decimal
    tax_amount: Decimal
    total: Decimal
    amount_to_free_shipping: Optional[Decimal]
    item_count: int = 0

    @property
    def free_shipping(self) -> bool:
        return self.shipping_fee == ZERO and self.subtotal > ZERO

    def rounded(self) -> "PricingSummary":
        """Copy with every money field rounded for display"""
        return PricingSummary(
            subtotal=round_money(self.subtotal),
            shipping_fee=round_money(self.shipping_fee),
            tax_amount=round_money(self.tax_amount),
            total=round_money(self.total),
            amount_to_free_shipping=(
                round_money(self.amount_to_free_shipping)
                if self.amount_to_free_shipping is not None
                else None
            ),
            item_count=self.item_count,
        )


EMPTY_SUMMARY = PricingSummary(
    subtotal=ZERO,
    shipping_fee=ZERO,
    tax_amount=ZERO,
    total=ZERO,
    amount_to_free_shipping=None,
)


def compute_summary(lines: Iterable[CartLine]) -> PricingSummary:
    """
    Price a list of cart lines.

    Shipping is free only when the subtotal is strictly above the threshold.
    An empty cart has nothing to ship, so every field is zero.
    """
    lines = list(lines)
    if not lines:
        # zero shipping and no free-shipping hint, not a "$100.00 to go" nudge
        return EMPTY_SUMMARY

    subtotal = sum((line.unit_price * line.quantity for line in lines), ZERO)
    shipping_fee = ZERO if subtotal > PricingRules.FREE_SHIPPING_THRESHOLD else PricingRules.FLAT_SHIPPING_FEE
    tax_amount = subtotal * PricingRules.TAX_RATE
    amount_to_free_shipping = (
        PricingRules.FREE_SHIPPING_THRESHOLD - subtotal
        if subtotal < PricingRules.FREE_SHIPPING_THRESHOLD
        else None
    )

    return PricingSummary(
        subtotal=subtotal,
        shipping_fee=shipping_fee,
        tax_amount=tax_amount,
        total=subtotal + shipping_fee + tax_amount,
        amount_to_free_shipping=amount_to_free_shipping,
        item_count=sum(line.quantity for line in lines),
    )
