from decimal import Decimal

import pytest

from storefront.domain import pricing
from storefront.utils import settings


@pytest.mark.parametrize(
    "subtotal, shipping",
    [
        ("0", "5000"),
        ("49999.99", "5000"),
        ("50000", "0"),
        ("125000", "0"),
    ],
)
def test_shipping_threshold(subtotal, shipping):
    assert pricing.calculate_shipping(Decimal(subtotal)) == Decimal(shipping)


def test_tax_rounds_half_up_to_whole_units():
    # 2.5 * 0.19 = 0.475 -> 0, 50 * 0.19 = 9.5 -> 10
    assert pricing.calculate_tax(Decimal("2.5")) == Decimal("0")
    assert pricing.calculate_tax(Decimal("50")) == Decimal("10")


def test_totals_identity():
    totals = pricing.calculate_totals([Decimal("10000"), Decimal("5000") * 2])

    assert totals.subtotal == Decimal("20000")
    assert totals.discount == Decimal("0")
    assert totals.shipping == Decimal("5000")
    assert totals.tax == Decimal("3800")
    assert totals.total == totals.subtotal - totals.discount + totals.shipping + totals.tax


def test_discount_reduces_taxable_amount():
    totals = pricing.calculate_totals([Decimal("60000")], discount=Decimal("10000"))

    assert totals.tax == Decimal("9500")
    assert totals.total == Decimal("59500")


def test_settings_are_read_at_call_time(monkeypatch):
    monkeypatch.setattr(settings, "FLAT_SHIPPING_FEE", Decimal("1234"))

    assert pricing.calculate_shipping(Decimal("1")) == Decimal("1234")
