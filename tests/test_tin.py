from __future__ import annotations

import pytest

from compliance.tin import (
    EXPECTED_TIN_FORMATS,
    TIN_EXAMPLES,
    TinKind,
    classify_tin,
    describe_tin_kind,
    format_tin_for_display,
    is_valid_tin,
)


@pytest.mark.parametrize(
    ("value", "kind"),
    [
        ("C1234567890", TinKind.CORPORATE),
        ("123456789012", TinKind.INDIVIDUAL),
        ("G1234567890", TinKind.GOVERNMENT),
        ("N1234567890", TinKind.NON_RESIDENT),
    ],
)
def test_classify_tin_recognizes_each_shape(value: str, kind: TinKind) -> None:
    result = classify_tin(value)
    assert result.valid is True
    assert result.kind is kind


@pytest.mark.parametrize(
    "value",
    [
        "c1234567890",
        "g1234567890",
        "C123456789",
        "C12345678901",
        "12345678901",
        "1234567890123",
        "C 1234567890",
        " C1234567890",
        "C1234567890 ",
        "C1234567890\n",
        "D1234567890",
        "C123456789A",
        "A23456789012",
        "C١٢٣٤٥٦٧٨٩٠",
        "",
    ],
)
def test_classify_tin_rejects_malformed_values(value: str) -> None:
    result = classify_tin(value)
    assert result.valid is False
    assert result.kind is None


@pytest.mark.parametrize("value", [None, 1234567890123, ["C1234567890"]])
def test_classify_tin_never_raises_on_non_strings(value: object) -> None:
    assert classify_tin(value).valid is False
    assert not is_valid_tin(value)


def test_format_tin_for_display_groups_digits() -> None:
    assert format_tin_for_display("C1234567890") == "C 1234 567 890"
    assert format_tin_for_display("123456789012") == "1234 5678 9012"
    assert format_tin_for_display("bogus") == "bogus"


def test_describe_tin_kind() -> None:
    assert describe_tin_kind(TinKind.NON_RESIDENT) == "Non-resident taxpayer"
    assert describe_tin_kind(None) == "Unknown"


def test_examples_match_their_kind_and_appear_in_fix_text() -> None:
    for kind, example in TIN_EXAMPLES.items():
        assert classify_tin(example).kind is kind
        assert example in EXPECTED_TIN_FORMATS
    assert "C + 10 digits (corporate, e.g. C1234567890)" in EXPECTED_TIN_FORMATS
