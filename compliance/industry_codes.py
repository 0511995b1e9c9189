"""Malaysian Standard Industrial Classification (MSIC 2008) codes relevant to e-Invoicing.

Only the codes that matter for B2C consolidation and SST decisions are listed.
An industry absent from this table is treated as eligible for consolidation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True)
class IndustryCode:
    code: str
    description: str
    category: str
    section: str
    allows_b2c_consolidation: bool
    sst_applicable: bool
    notes: str | None = None


@dataclass(frozen=True)
class ConsolidationCheck:
    allowed: bool
    reason: str | None = None
    restrictions: tuple[str, ...] = ()


INDUSTRY_SECTIONS: Final[dict[str, str]] = {
    "A": "Agriculture, Forestry and Fishing",
    "B": "Mining and Quarrying",
    "C": "Manufacturing",
    "D": "Electricity, Gas, Steam and Air Conditioning Supply",
    "E": "Water Supply; Sewerage, Waste Management",
    "F": "Construction",
    "G": "Wholesale and Retail Trade",
    "H": "Transportation and Storage",
    "I": "Accommodation and Food Service Activities",
    "J": "Information and Communication",
    "K": "Financial and Insurance Activities",
    "L": "Real Estate Activities",
    "M": "Professional, Scientific and Technical Activities",
    "N": "Administrative and Support Service Activities",
    "O": "Public Administration and Defence",
    "P": "Education",
    "Q": "Human Health and Social Work Activities",
    "R": "Arts, Entertainment and Recreation",
    "S": "Other Service Activities",
    "T": "Household Activities",
    "U": "International Organizations",
}

_NOT_ALLOWED = "B2C consolidation not allowed"

COMMON_INDUSTRY_CODES: Final[tuple[IndustryCode, ...]] = (
    IndustryCode("69100", "Legal activities", "Professional Services", "M", True, True),
    IndustryCode("69200", "Accounting, bookkeeping and auditing activities", "Professional Services", "M", True, True),
    IndustryCode("70100", "Activities of head offices", "Professional Services", "M", True, True),
    IndustryCode("71100", "Architectural activities", "Professional Services", "M", True, True),
    IndustryCode("71200", "Engineering activities and related technical consultancy", "Professional Services", "M", True, True),
    IndustryCode("62010", "Computer programming activities", "Information Technology", "J", True, True),
    IndustryCode("62020", "Computer consultancy activities", "Information Technology", "J", True, True),
    IndustryCode("47190", "Other retail sale in non-specialized stores", "Retail Trade", "G", True, False),
    IndustryCode("46690", "Wholesale of other machinery and equipment", "Wholesale Trade", "G", True, False),
    IndustryCode(
        "56101", "Restaurant activities", "Food & Beverage", "I", True, False,
        "Consider transaction volume limits for consolidation",
    ),
    IndustryCode("56102", "Fast food activities", "Food & Beverage", "I", True, False),
    IndustryCode("10790", "Manufacture of other food products", "Manufacturing", "C", True, False),
    IndustryCode("41000", "Development of building projects", "Construction", "F", True, True),
    IndustryCode("42100", "Construction of roads and railways", "Construction", "F", True, True),
    IndustryCode("35101", "Electric power generation", "Utilities", "D", False, False, _NOT_ALLOWED),
    IndustryCode("35102", "Electric power transmission", "Utilities", "D", False, False, _NOT_ALLOWED),
    IndustryCode("35103", "Electric power distribution", "Utilities", "D", False, False, _NOT_ALLOWED),
    IndustryCode("36000", "Water collection, treatment and supply", "Utilities", "E", False, False, _NOT_ALLOWED),
    IndustryCode("37000", "Sewerage", "Utilities", "E", False, False, _NOT_ALLOWED),
    IndustryCode("61", "Telecommunications", "Telecommunications", "J", False, True, _NOT_ALLOWED),
    IndustryCode("52211", "Parking services", "Transportation", "H", False, False, _NOT_ALLOWED),
    IndustryCode("52212", "Toll road operations", "Transportation", "H", False, False, _NOT_ALLOWED),
    IndustryCode("84", "Public administration and defence services", "Government", "O", False, False, _NOT_ALLOWED),
)

_BY_CODE: Final[dict[str, IndustryCode]] = {ic.code: ic for ic in COMMON_INDUSTRY_CODES}

PROHIBITED_EXACT_CODES: Final[frozenset[str]] = frozenset(
    {"35101", "35102", "35103", "36000", "37000", "52211", "52212"}
)

# Whole MSIC groups: electric power (351xx), water (36xxx), telecoms (61xxx),
# public administration (84xxx).
PROHIBITED_CODE_PREFIXES: Final[dict[str, str]] = {
    "351": "Electric power",
    "36": "Water supply",
    "61": "Telecommunications",
    "84": "Public administration and defence",
}

RETAIL_PREFIX: Final[str] = "47"
FOOD_AND_BEVERAGE_PREFIX: Final[str] = "56"


def get_industry_code(code: str) -> IndustryCode | None:
    return _BY_CODE.get(code)


def search_industry_codes(query: str) -> list[IndustryCode]:
    """Match code, description, category or MSIC section name, case-insensitively."""
    term = query.strip().lower()
    return [
        ic
        for ic in COMMON_INDUSTRY_CODES
        if term in ic.code.lower()
        or term in ic.description.lower()
        or term in ic.category.lower()
        or term in INDUSTRY_SECTIONS.get(ic.section, "").lower()
    ]


def industry_label(code: str) -> str:
    known = get_industry_code(code)
    if known is not None:
        return known.description
    for prefix, label in PROHIBITED_CODE_PREFIXES.items():
        if code.startswith(prefix):
            return label
    return code


def is_prohibited_for_consolidation(code: str | None) -> bool:
    if not code:
        return False
    normalized = code.strip()
    if normalized in PROHIBITED_EXACT_CODES:
        return True
    return any(normalized.startswith(prefix) for prefix in PROHIBITED_CODE_PREFIXES)


def check_b2c_consolidation(code: str | None) -> ConsolidationCheck:
    if is_prohibited_for_consolidation(code):
        assert code is not None
        return ConsolidationCheck(
            allowed=False,
            reason=f"{industry_label(code.strip())} (MSIC {code.strip()}) is excluded from B2C consolidation",
            restrictions=("Issue individual invoices for each transaction",),
        )

    known = get_industry_code(code.strip()) if code else None
    if known is None:
        return ConsolidationCheck(
            allowed=True,
            reason="Industry code not in catalog; verify eligibility with LHDN",
        )

    restrictions: list[str] = []
    if known.category == "Food & Beverage":
        restrictions.append("Maximum recommended: RM50,000 per consolidated invoice")
    if known.category == "Retail Trade":
        restrictions.append("Maximum recommended: 200 transactions per consolidated invoice")
    return ConsolidationCheck(allowed=True, restrictions=tuple(restrictions))


def is_sst_applicable(code: str | None) -> bool:
    known = get_industry_code(code) if code else None
    return known.sst_applicable if known is not None else False
