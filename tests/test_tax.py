from __future__ import annotations

from decimal import Decimal

import pytest

from compliance.tax import (
    calculate_grand_total,
    calculate_invoice_totals,
    calculate_line_total,
    calculate_sst_amount,
    expected_line_sst,
    line_amount,
    round_money,
    round_rate,
    to_decimal,
    within_tolerance,
)
from schemas.invoice_schema import LineItem


@pytest.mark.parametrize(
    ("amount", "expected"),
    [
        ("1000.00", Decimal("60.00")),
        ("333.33", Decimal("20.00")),
        ("0.01", Decimal("0.00")),
        ("0.25", Decimal("0.02")),
    ],
)
def test_sst_at_default_rate_rounds_half_up(amount: str, expected: Decimal) -> None:
    assert calculate_sst_amount(Decimal(amount)) == expected


def test_sst_exempt_is_zero() -> None:
    assert calculate_sst_amount(Decimal("500.00"), Decimal("6"), exempt=True) == Decimal("0.00")


def test_round_money_is_half_up_not_bankers() -> None:
    assert round_money(Decimal("2.345")) == Decimal("2.35")
    assert round_money(Decimal("2.355")) == Decimal("2.36")


def test_to_decimal_goes_through_str_for_floats() -> None:
    assert to_decimal(0.1) == Decimal("0.1")
    with pytest.raises(ValueError):
        to_decimal("not-a-number")
    with pytest.raises(ValueError):
        to_decimal(True)


def test_line_total_subtracts_discount() -> None:
    assert calculate_line_total(Decimal("3"), Decimal("19.9900"), Decimal("5.00")) == Decimal("54.97")


def test_grand_total_formula() -> None:
    assert calculate_grand_total(Decimal("1000.00"), Decimal("50.00"), Decimal("60.00")) == Decimal("1010.00")


def test_line_amount_falls_back_to_computed_total() -> None:
    line = LineItem(quantity=Decimal("2"), unit_price=Decimal("10.5000"))
    assert line_amount(line) == Decimal("21.00")


def test_expected_line_sst_honors_exemption_code() -> None:
    line = LineItem(
        quantity=Decimal("1"),
        unit_price=Decimal("100"),
        line_total=Decimal("100.00"),
        sst_rate=Decimal("6"),
        tax_exemption_code="E01",
    )
    assert expected_line_sst(line) == Decimal("0.00")


def test_invoice_totals_use_recomputed_line_sst() -> None:
    lines = [
        LineItem(quantity=Decimal("1"), unit_price=Decimal("333.33"), line_total=Decimal("333.33"), sst_rate=Decimal("6")),
        LineItem(quantity=Decimal("1"), unit_price=Decimal("1000"), line_total=Decimal("1000.00"), sst_rate=Decimal("6")),
    ]
    totals = calculate_invoice_totals(lines, Decimal("0"))
    assert totals.subtotal == Decimal("1333.33")
    assert totals.sst_amount == Decimal("80.00")
    assert totals.grand_total == Decimal("1413.33")


def test_within_tolerance_boundary() -> None:
    assert within_tolerance(Decimal("60.00"), Decimal("60.00"))
    assert within_tolerance(Decimal("60.005"), Decimal("60.00"))
    assert not within_tolerance(Decimal("60.01"), Decimal("60.00"))
    assert not within_tolerance(Decimal("59.99"), Decimal("60.00"))


def test_zero_tolerance_means_exact_match() -> None:
    assert within_tolerance(Decimal("60.00"), Decimal("60.0"), Decimal("0"))
    assert not within_tolerance(Decimal("60.001"), Decimal("60.00"), Decimal("0"))


def test_round_rate_keeps_six_decimals() -> None:
    assert round_rate(Decimal("4.71234567")) == Decimal("4.712346")
    assert round_rate("1") == Decimal("1.000000")
