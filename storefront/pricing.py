"""Money rounding and order totals.

Every amount is rounded to cents (ROUND_HALF_UP) whenever it is derived or
stored, so recomputing a total never drifts from the persisted value.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable

from .config import TAX_RATE
from .schemas import OrderTotals

CENT = Decimal("0.01")
# largest amount a Numeric(10, 2) column holds
MAX_AMOUNT = Decimal("99999999.99")


def round_money(value: Any) -> Decimal:
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _line_value(line: Any, *names: str) -> Any:
    for name in names:
        if isinstance(line, dict):
            if name in line:
                return line[name]
        elif hasattr(line, name):
            return getattr(line, name)
    raise KeyError(names[0])


def calculate_totals(lines: Iterable[Any]) -> OrderTotals:
    """Forward calculation used at checkout.

    ``lines`` are mappings or objects with a ``price`` (or ``unit_price``)
    and a ``quantity``.
    """
    subtotal = sum(
        (
            Decimal(str(_line_value(line, "price", "unit_price"))) * int(_line_value(line, "quantity"))
            for line in lines
        ),
        Decimal("0"),
    )
    subtotal = round_money(subtotal)
    tax_amount = round_money(subtotal * TAX_RATE)
    total = round_money(subtotal + tax_amount)
    return OrderTotals(subtotal=subtotal, tax_amount=tax_amount, total=total)


def totals_from_total(total: Any) -> OrderTotals:
    """Inverse calculation used when an admin edits an order total.

    Rounds after each derived step, not only at the end.
    """
    total = round_money(total)
    subtotal = round_money(total / (1 + TAX_RATE))
    tax_amount = round_money(total - subtotal)
    if subtotal < 0:
        subtotal = Decimal("0.00")
    if tax_amount < 0:
        tax_amount = Decimal("0.00")
    return OrderTotals(subtotal=subtotal, tax_amount=tax_amount, total=total)
