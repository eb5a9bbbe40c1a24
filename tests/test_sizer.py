"""Tests for price resolution and position sizing."""

from decimal import Decimal

import pytest

from guard_core.contracts import Quote
from guard_core.errors import PricingFault
from guard_core.sizer import (
    INSUFFICIENT_BUYING_POWER,
    INVALID_PRICE,
    resolve_price,
    size_order,
)


class TestResolvePrice:
    def test_prefers_ask(self) -> None:
        assert resolve_price(Quote(ask=Decimal("40"), bid=Decimal("39"), last=Decimal("38"))) == Decimal("40")

    def test_falls_back_to_bid(self) -> None:
        assert resolve_price(Quote(ask=Decimal("0"), bid=Decimal("39"))) == Decimal("39")

    def test_falls_back_to_last(self) -> None:
        assert resolve_price(Quote(ask=None, bid=Decimal("-1"), last=Decimal("38.5"))) == Decimal("38.5")

    def test_skips_non_finite(self) -> None:
        assert resolve_price(Quote(ask=Decimal("NaN"), bid=Decimal("Infinity"), last=Decimal("12"))) == Decimal("12")

    def test_nothing_usable(self) -> None:
        with pytest.raises(PricingFault) as exc:
            resolve_price(Quote())
        assert exc.value.reason == INVALID_PRICE
        assert exc.value.status_code == 400


class TestSizeOrder:
    def test_exact_ratio(self) -> None:
        # 10000 * 0.02 / 40 = 5
        assert size_order(Decimal("10000"), 0.02, Decimal("40")) == 5

    def test_floors(self) -> None:
        assert size_order(Decimal("10000"), 0.02, Decimal("41")) == 4

    def test_float_inputs(self) -> None:
        assert size_order(10000.0, 0.02, 40.0) == 5

    def test_below_one_share(self) -> None:
        # 100 * 0.02 / 50 = 0.04
        with pytest.raises(PricingFault) as exc:
            size_order(Decimal("100"), 0.02, Decimal("50"))
        assert exc.value.reason == INSUFFICIENT_BUYING_POWER
        assert exc.value.status_code == 400

    def test_zero_buying_power(self) -> None:
        with pytest.raises(PricingFault) as exc:
            size_order(Decimal("0"), 0.02, Decimal("10"))
        assert exc.value.reason == INSUFFICIENT_BUYING_POWER

    @pytest.mark.parametrize("price", [Decimal("0"), Decimal("-5"), Decimal("NaN"), float("inf")])
    def test_invalid_price(self, price) -> None:
        with pytest.raises(PricingFault) as exc:
            size_order(Decimal("10000"), 0.02, price)
        assert exc.value.reason == INVALID_PRICE

    def test_non_finite_buying_power(self) -> None:
        with pytest.raises(PricingFault) as exc:
            size_order(Decimal("Infinity"), 0.02, Decimal("10"))
        assert exc.value.reason == INSUFFICIENT_BUYING_POWER
