from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Final


class TinKind(str, Enum):
    CORPORATE = "corporate"
    INDIVIDUAL = "individual"
    GOVERNMENT = "government"
    NON_RESIDENT = "non_resident"


# ASCII digits only; \d would also accept other Unicode digit classes.
TIN_PATTERNS: Final[dict[TinKind, re.Pattern[str]]] = {
    TinKind.CORPORATE: re.compile(r"C[0-9]{10}"),
    TinKind.INDIVIDUAL: re.compile(r"[0-9]{12}"),
    TinKind.GOVERNMENT: re.compile(r"G[0-9]{10}"),
    TinKind.NON_RESIDENT: re.compile(r"N[0-9]{10}"),
}

TIN_EXAMPLES: Final[dict[TinKind, str]] = {
    TinKind.CORPORATE: "C1234567890",
    TinKind.INDIVIDUAL: "123456789012",
    TinKind.GOVERNMENT: "G1234567890",
    TinKind.NON_RESIDENT: "N1234567890",
}

_DESCRIPTIONS: Final[dict[TinKind, str]] = {
    TinKind.CORPORATE: "Company/Corporate entity",
    TinKind.INDIVIDUAL: "Individual taxpayer",
    TinKind.GOVERNMENT: "Government entity",
    TinKind.NON_RESIDENT: "Non-resident taxpayer",
}

_SHAPES: Final[dict[TinKind, str]] = {
    TinKind.CORPORATE: "C + 10 digits",
    TinKind.INDIVIDUAL: "12 digits",
    TinKind.GOVERNMENT: "G + 10 digits",
    TinKind.NON_RESIDENT: "N + 10 digits",
}

EXPECTED_TIN_FORMATS: Final[str] = "Use " + "; ".join(
    f"{_SHAPES[kind]} ({kind.value.replace('_', '-')}, e.g. {TIN_EXAMPLES[kind]})" for kind in TinKind
)


@dataclass(frozen=True)
class TinResult:
    valid: bool
    kind: TinKind | None = None


_INVALID: Final[TinResult] = TinResult(valid=False)


def classify_tin(value: Any) -> TinResult:
    """Match a candidate against the four LHDN identifier shapes.

    Matching is exact and case-sensitive: no surrounding or embedded whitespace,
    no lowercase prefixes. Anything that is not a string is simply invalid.
    """
    if not isinstance(value, str):
        return _INVALID
    for kind, pattern in TIN_PATTERNS.items():
        if pattern.fullmatch(value):
            return TinResult(valid=True, kind=kind)
    return _INVALID


def is_valid_tin(value: Any) -> bool:
    return classify_tin(value).valid


def describe_tin_kind(kind: TinKind | None) -> str:
    if kind is None:
        return "Unknown"
    return _DESCRIPTIONS[kind]


def format_tin_for_display(value: str) -> str:
    result = classify_tin(value)
    if not result.valid:
        return value
    if result.kind is TinKind.INDIVIDUAL:
        return f"{value[0:4]} {value[4:8]} {value[8:]}"
    return f"{value[0]} {value[1:5]} {value[5:8]} {value[8:]}"
