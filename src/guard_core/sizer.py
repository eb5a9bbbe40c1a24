"""
Position sizer: buying power x risk fraction / price, floored to whole shares.

Computed in Decimal so that exact ratios (200 / 40) never floor to one less
than intended.
"""

from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal

from guard_core.contracts import Quote
from guard_core.errors import PricingFault

INVALID_PRICE = "Invalid price data"
INSUFFICIENT_BUYING_POWER = "Not enough buying power"


def _to_decimal(value: Decimal | float | int | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def resolve_price(quote: Quote) -> Decimal:
    """Pick ask, then bid, then last. No usable field is an error, not zero."""
    price = quote.usable_price()
    if price is None:
        raise PricingFault(INVALID_PRICE, 400)
    return price


def size_order(
    buying_power: Decimal | float,
    risk_fraction: Decimal | float,
    price: Decimal | float,
) -> int:
    """Compute order quantity.

    quantity = floor(buying_power * risk_fraction / price)

    Raises PricingFault for a non-positive or non-finite price, and for a
    quantity below one share.
    """
    px = _to_decimal(price)
    if not px.is_finite() or px <= 0:
        raise PricingFault(INVALID_PRICE, 400)

    max_spend = _to_decimal(buying_power) * _to_decimal(risk_fraction)
    if not max_spend.is_finite():
        raise PricingFault(INSUFFICIENT_BUYING_POWER, 400)
    quantity = int((max_spend / px).to_integral_value(rounding=ROUND_FLOOR))
    if quantity < 1:
        raise PricingFault(INSUFFICIENT_BUYING_POWER, 400)
    return quantity
