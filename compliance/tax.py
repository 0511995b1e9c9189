from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Final, Iterable

from schemas.invoice_schema import LineItem

MONEY_QUANTUM: Final[Decimal] = Decimal("0.01")
RATE_QUANTUM: Final[Decimal] = Decimal("0.000001")
DEFAULT_SST_RATE: Final[Decimal] = Decimal("6")
DEFAULT_TOLERANCE: Final[Decimal] = Decimal("0.01")
_HUNDRED: Final[Decimal] = Decimal("100")
_ZERO: Final[Decimal] = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Not a decimal amount: {value!r}")
    if isinstance(value, float):
        # Go through str so 0.1 stays 0.1 instead of its binary expansion.
        value = str(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Not a decimal amount: {value!r}") from exc


def round_money(value: Any) -> Decimal:
    return to_decimal(value).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def round_rate(value: Any) -> Decimal:
    return to_decimal(value).quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)


def calculate_line_total(quantity: Any, unit_price: Any, discount: Any = _ZERO) -> Decimal:
    return round_money(to_decimal(quantity) * to_decimal(unit_price) - to_decimal(discount))


def calculate_sst_amount(amount: Any, rate: Any = DEFAULT_SST_RATE, *, exempt: bool = False) -> Decimal:
    if exempt:
        return _ZERO.quantize(MONEY_QUANTUM)
    return round_money(to_decimal(amount) * to_decimal(rate) / _HUNDRED)


def calculate_grand_total(subtotal: Any, discount: Any, sst_amount: Any) -> Decimal:
    return round_money(to_decimal(subtotal) - to_decimal(discount) + to_decimal(sst_amount))


def line_amount(line: LineItem) -> Decimal:
    """Stored line total, or the computed one when the caller left it out."""
    if line.line_total is not None:
        return line.line_total
    return calculate_line_total(line.quantity, line.unit_price, line.discount_amount)


def expected_line_sst(line: LineItem) -> Decimal:
    return calculate_sst_amount(
        line_amount(line),
        line.sst_rate,
        exempt=bool(line.tax_exemption_code and line.tax_exemption_code.strip()),
    )


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    sst_amount: Decimal
    grand_total: Decimal


def calculate_invoice_totals(lines: Iterable[LineItem], total_discount: Any = _ZERO) -> InvoiceTotals:
    """Expected header totals: stored line amounts, recomputed line SST."""
    subtotal = _ZERO
    sst = _ZERO
    for line in lines:
        subtotal += line_amount(line)
        sst += expected_line_sst(line)
    subtotal = round_money(subtotal)
    sst = round_money(sst)
    return InvoiceTotals(
        subtotal=subtotal,
        sst_amount=sst,
        grand_total=calculate_grand_total(subtotal, total_discount, sst),
    )


def within_tolerance(actual: Any, expected: Any, tolerance: Any = DEFAULT_TOLERANCE) -> bool:
    """True when the amounts differ by strictly less than ``tolerance``.

    Expected amounts are already rounded to the cent, so a stored amount a full
    cent away is a real mismatch. A zero tolerance means exact equality.
    """
    diff = abs(to_decimal(actual) - to_decimal(expected))
    return diff == _ZERO or diff < to_decimal(tolerance)
