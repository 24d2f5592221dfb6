# storefront/domain/pricing.py
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from storefront.utils import settings

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    discount: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal


def calculate_shipping(subtotal: Decimal) -> Decimal:
    if subtotal >= settings.FREE_SHIPPING_THRESHOLD:
        return ZERO
    return settings.FLAT_SHIPPING_FEE


def calculate_tax(taxable: Decimal) -> Decimal:
    #zaokraglenie do pelnej jednostki, polowki w gore
    return (taxable * settings.TAX_RATE).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def calculate_totals(line_subtotals: Iterable[Decimal], discount: Decimal = ZERO) -> OrderTotals:
    """
    Liczy pola pieniezne zamowienia po stronie serwera.
    total = subtotal - discount + shipping + tax
    """
    subtotal = sum(line_subtotals, ZERO)
    discount = discount or ZERO
    shipping = calculate_shipping(subtotal)
    tax = calculate_tax(subtotal - discount)
    total = subtotal - discount + shipping + tax

    return OrderTotals(
        subtotal=subtotal,
        discount=discount,
        shipping=shipping,
        tax=tax,
        total=total,
    )
