"""LHDN e-Invoice compliance rules.

Every rule is a pure function ``(invoice, lines, seller, buyer) -> list[Finding]``.
Rules never look at each other's output, so each can be tested on its own
against literal fixtures. ``build_default_catalog`` fixes the evaluation order,
which is what keeps report ordering reproducible.

Rule codes are published identifiers: callers persist findings and track
dismissals by code, so a code is never reassigned to a different check.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal
from functools import partial
from typing import Callable, Final, Iterable, Iterator, Optional, Sequence

from compliance.errors import ConfigurationError
from compliance.industry_codes import (
    FOOD_AND_BEVERAGE_PREFIX,
    RETAIL_PREFIX,
    check_b2c_consolidation,
)
from compliance.tax import (
    calculate_grand_total,
    calculate_invoice_totals,
    calculate_line_total,
    expected_line_sst,
    line_amount,
    round_money,
    round_rate,
    within_tolerance,
)
from compliance.tin import EXPECTED_TIN_FORMATS, classify_tin
from schemas.invoice_schema import Buyer, Invoice, LineItem, Organization
from schemas.report_schema import Finding, Severity

RuleCheck = Callable[[Invoice, Sequence[LineItem], Organization, Optional[Buyer]], list[Finding]]

# MyInvois amounts are always reported in ringgit, whatever the organization books in.
BASE_CURRENCY: Final[str] = "MYR"

SUPPORTED_CURRENCIES: Final[tuple[str, ...]] = (
    "MYR", "USD", "EUR", "GBP", "SGD", "JPY", "CNY", "AUD", "CAD", "CHF",
)

_INVOICE_NUMBER_PATTERN: Final[re.Pattern[str]] = re.compile(r"[A-Z0-9\-/]{1,100}")
_PERIOD_PATTERN: Final[re.Pattern[str]] = re.compile(r"[0-9]{4}-(0[1-9]|1[0-2])")
_ONE: Final[Decimal] = Decimal("1")
_ZERO: Final[Decimal] = Decimal("0")

FIX_SUGGESTIONS: Final[dict[str, str]] = {
    "MF-001": "Assign a unique invoice number before issuing",
    "MF-002": "Set the issue date (YYYY-MM-DD)",
    "MF-003": "Add the organization's TIN to its profile",
    "MF-004": "Add the organization's registered name to its profile",
    "MF-005": "Capture the buyer's TIN",
    "MF-006": "Add at least one line item",
    "MF-007": "Set the invoice currency (ISO 4217 code, e.g. MYR)",
    "MF-008": "Grand total must be present and zero or more",
    "TIN-001": EXPECTED_TIN_FORMATS,
    "TIN-002": EXPECTED_TIN_FORMATS,
    "PTY-001": "Provide buyer details or mark the invoice as consolidated for B2C",
    "NUM-001": "Use only uppercase letters, digits, '-' and '/' (max 100 characters)",
    "NUM-002": "Start invoice numbers with the organization's configured prefix",
    "LIN-001": "Give every line a distinct line number",
    "LIN-002": "Quantity must be above zero; unit price and discount zero or more; SST rate between 0 and 100",
    "LIN-003": "Verify the quantity is correct for bulk transactions",
    "SST-001": "SST amount = line total x SST rate / 100, rounded half-up to 2 decimals (0 when exempt)",
    "SST-002": "Invoice SST must equal the sum of the recomputed line SST amounts",
    "SST-003": "Register for SST or remove SST charges",
    "TOT-001": "Invoice subtotal must equal the sum of line totals",
    "TOT-002": "Invoice SST must equal the sum of line SST amounts",
    "TOT-003": "Grand total = subtotal - total discount + SST",
    "TOT-004": "Line total = quantity x unit price - discount",
    "FX-001": "Provide the Bank Negara Malaysia reference rate (6 decimal places)",
    "FX-002": "Exchange rate must be 1.000000 for MYR invoices",
    "FX-003": "Exchange rate must be a positive number",
    "FX-004": "Use one of: " + ", ".join(SUPPORTED_CURRENCIES),
    "FX-005": "Ensure the exchange rate is the Bank Negara Malaysia rate on the issue date",
    "CON-001": "Issue individual invoices for each transaction",
    "CON-002": "Set the consolidation period to the issue date's month (YYYY-MM)",
    "CON-003": "Split into several consolidated invoices",
    "CON-004": "Split into several consolidated invoices",
    "REF-001": "Reference the original invoice for credit and debit notes",
    "REF-002": "State the reason for the credit or debit note",
    "DAT-001": "Due date must be on or after the issue date",
    "DAT-002": "Set the due date within 90 days of the issue date",
}


def fix_suggestion_for(rule_code: str) -> str | None:
    return FIX_SUGGESTIONS.get(rule_code)


@dataclass(frozen=True)
class RulePolicy:
    amount_tolerance: Decimal = Decimal("0.01")
    individual_buyer_tin_threshold: Decimal = Decimal("10000.00")
    high_quantity_threshold: Decimal = Decimal("10000")
    max_payment_term_days: int = 90
    retail_consolidation_max_lines: int = 200
    fnb_consolidation_max_amount: Decimal = Decimal("50000.00")
    supported_currencies: tuple[str, ...] = SUPPORTED_CURRENCIES


DEFAULT_RULE_POLICY: Final[RulePolicy] = RulePolicy()


def _finding(
    code: str,
    severity: Severity,
    message: str,
    field_path: str | None = None,
) -> Finding:
    return Finding(
        rule_code=code,
        severity=severity,
        message=message,
        field_path=field_path,
        fix_suggestion=fix_suggestion_for(code),
    )


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _line_path(index: int, attr: str) -> str:
    return f"lines[{index}].{attr}"


def _buyer_tin_required(invoice: Invoice, buyer: Buyer, policy: RulePolicy) -> bool:
    if invoice.is_consolidated:
        return False
    if buyer.is_individual and invoice.grand_total is not None:
        return invoice.grand_total > policy.individual_buyer_tin_threshold
    return True


def check_mandatory_fields(
    invoice: Invoice,
    lines: Sequence[LineItem],
    seller: Organization,
    buyer: Buyer | None = None,
    *,
    policy: RulePolicy = DEFAULT_RULE_POLICY,
) -> list[Finding]:
    findings: list[Finding] = []
    if _blank(invoice.invoice_number):
        findings.append(_finding("MF-001", Severity.ERROR, "Invoice number is required", "invoice.invoice_number"))
    if invoice.issue_date is None:
        findings.append(_finding("MF-002", Severity.ERROR, "Issue date is required", "invoice.issue_date"))
    if _blank(seller.tin):
        findings.append(_finding("MF-003", Severity.ERROR, "Seller TIN is required", "seller.tin"))
    if _blank(seller.name):
        findings.append(_finding("MF-004", Severity.ERROR, "Seller name is required", "seller.name"))
    if buyer is not None and _blank(buyer.tin) and _buyer_tin_required(invoice, buyer, policy):
        findings.append(_finding("MF-005", Severity.ERROR, "Buyer TIN is required", "buyer.tin"))
    if not lines:
        findings.append(_finding("MF-006", Severity.ERROR, "Invoice must have at least one line item", "lines"))
    if _blank(invoice.currency):
        findings.append(_finding("MF-007", Severity.ERROR, "Currency code is required", "invoice.currency"))
    if invoice.grand_total is None:
        findings.append(_finding("MF-008", Severity.ERROR, "Grand total is required", "invoice.grand_total"))
    elif invoice.grand_total < _ZERO:
        findings.append(
            _finding("MF-008", Severity.ERROR, "Grand total cannot be negative", "invoice.grand_total")
        )
    return findings


def check_tin_format(
    invoice: Invoice,
    lines: Sequence[LineItem],
    seller: Organization,
    buyer: Buyer | None = None,
) -> list[Finding]:
    # Absent TINs belong to mandatory_fields; only present values are checked here.
    findings: list[Finding] = []
    if not _blank(seller.tin) and not classify_tin(seller.tin).valid:
        findings.append(
            _finding("TIN-001", Severity.ERROR, f"Seller TIN {seller.tin!r} has an invalid format", "seller.tin")
        )
    if buyer is not None and not _blank(buyer.tin) and not classify_tin(buyer.tin).valid:
        findings.append(
            _finding("TIN-002", Severity.ERROR, f"Buyer TIN {buyer.tin!r} has an invalid format", "buyer.tin")
        )
    return findings


def check_buyer_presence(
    invoice: Invoice,
    lines: Sequence[LineItem],
    seller: Organization,
    buyer: Buyer | None = None,
) -> list[Finding]:
    if invoice.is_consolidated or buyer is not None:
        return []
    return [
        _finding(
            "PTY-001",
            Severity.ERROR,
            "Buyer information is required for non-consolidated invoices",
            "buyer",
        )
    ]


def check_invoice_numbering(
    invoice: Invoice,
    lines: Sequence[LineItem],
    seller: Organization,
    buyer: Buyer | None = None,
) -> list[Finding]:
    """Soft signal only; uniqueness is enforced by whoever stores invoices."""
    number = invoice.invoice_number
    if _blank(number):
        return []
    assert number is not None
    findings: list[Finding] = []
    if not _INVOICE_NUMBER_PATTERN.fullmatch(number):
        findings.append(
            _finding(
                "NUM-001",
                Severity.WARNING,
                f"Invoice number {number!r} contains unexpected characters",
                "invoice.invoice_number",
            )
        )
    prefix = seller.invoice_prefix
    if prefix and not number.startswith(prefix):
        findings.append(
            _finding(
                "NUM-002",
                Severity.WARNING,
                f"Invoice number {number!r} does not start with prefix {prefix!r}",
                "invoice.invoice_number",
            )
        )
    return findings


def check_line_items(
    invoice: Invoice,
    lines: Sequence[LineItem],
    seller: Organization,
    buyer: Buyer | None = None,
    *,
    policy: RulePolicy = DEFAULT_RULE_POLICY,
) -> list[Finding]:
    findings: list[Finding] = []
    seen: Counter[int] = Counter()
    for idx, line in enumerate(lines):
        if line.line_number is not None:
            seen[line.line_number] += 1
            if seen[line.line_number] == 2:
                findings.append(
                    _finding(
                        "LIN-001",
                        Severity.ERROR,
                        f"Line number {line.line_number} is used more than once",
                        _line_path(idx, "line_number"),
                    )
                )
        if line.quantity <= _ZERO:
            findings.append(
                _finding("LIN-002", Severity.ERROR, "Quantity must be greater than zero", _line_path(idx, "quantity"))
            )
        if line.unit_price < _ZERO:
            findings.append(
                _finding("LIN-002", Severity.ERROR, "Unit price cannot be negative", _line_path(idx, "unit_price"))
            )
        if line.discount_amount < _ZERO:
            findings.append(
                _finding(
                    "LIN-002", Severity.ERROR, "Discount cannot be negative", _line_path(idx, "discount_amount")
                )
            )
        if not (_ZERO <= line.sst_rate <= Decimal("100")):
            findings.append(
                _finding("LIN-002", Severity.ERROR, "SST rate must be between 0 and 100", _line_path(idx, "sst_rate"))
            )
        if line.quantity > policy.high_quantity_threshold:
            findings.append(
                _finding(
                    "LIN-003",
                    Severity.INFO,
                    f"High quantity detected ({line.quantity})",
                    _line_path(idx, "quantity"),
                )
            )
    return findings


def check_sst_calculation(
    invoice: Invoice,
    lines: Sequence[LineItem],
    seller: Organization,
    buyer: Buyer | None = None,
    *,
    policy: RulePolicy = DEFAULT_RULE_POLICY,
) -> list[Finding]:
    findings: list[Finding] = []
    for idx, line in enumerate(lines):
        expected = expected_line_sst(line)
        if not within_tolerance(line.sst_amount, expected, policy.amount_tolerance):
            findings.append(
                _finding(
                    "SST-001",
                    Severity.ERROR,
                    f"Line SST {line.sst_amount} does not match expected {expected}",
                    _line_path(idx, "sst_amount"),
                )
            )

    if lines:
        expected_total = calculate_invoice_totals(lines, invoice.total_discount).sst_amount
        if not within_tolerance(invoice.sst_amount, expected_total, policy.amount_tolerance):
            findings.append(
                _finding(
                    "SST-002",
                    Severity.ERROR,
                    f"Invoice SST {invoice.sst_amount} does not match expected {expected_total}",
                    "invoice.sst_amount",
                )
            )

    charges_sst = any(line.sst_rate > _ZERO or line.sst_amount > _ZERO for line in lines)
    # None means the organization profile does not say; only an explicit False is flagged.
    if charges_sst and seller.is_sst_registered is False:
        findings.append(
            _finding(
                "SST-003",
                Severity.WARNING,
                "SST charged but the organization is not SST registered",
                "seller.is_sst_registered",
            )
        )
    return findings


def check_totals_consistency(
    invoice: Invoice,
    lines: Sequence[LineItem],
    seller: Organization,
    buyer: Buyer | None = None,
    *,
    policy: RulePolicy = DEFAULT_RULE_POLICY,
) -> list[Finding]:
    tolerance = policy.amount_tolerance
    findings: list[Finding] = []

    for idx, line in enumerate(lines):
        if line.line_total is None:
            continue
        expected_line = calculate_line_total(line.quantity, line.unit_price, line.discount_amount)
        if not within_tolerance(line.line_total, expected_line, tolerance):
            findings.append(
                _finding(
                    "TOT-004",
                    Severity.ERROR,
                    f"Line total {line.line_total} does not match expected {expected_line}",
                    _line_path(idx, "line_total"),
                )
            )

    if lines:
        line_subtotal = round_money(sum((line_amount(line) for line in lines), _ZERO))
        if not within_tolerance(invoice.subtotal, line_subtotal, tolerance):
            findings.append(
                _finding(
                    "TOT-001",
                    Severity.ERROR,
                    f"Subtotal {invoice.subtotal} does not match sum of line totals {line_subtotal}",
                    "invoice.subtotal",
                )
            )
        line_sst = round_money(sum((line.sst_amount for line in lines), _ZERO))
        if not within_tolerance(invoice.sst_amount, line_sst, tolerance):
            findings.append(
                _finding(
                    "TOT-002",
                    Severity.ERROR,
                    f"Invoice SST {invoice.sst_amount} does not match sum of line SST {line_sst}",
                    "invoice.sst_amount",
                )
            )

    if invoice.grand_total is not None:
        expected_grand = calculate_grand_total(invoice.subtotal, invoice.total_discount, invoice.sst_amount)
        if not within_tolerance(invoice.grand_total, expected_grand, tolerance):
            findings.append(
                _finding(
                    "TOT-003",
                    Severity.ERROR,
                    f"Grand total {invoice.grand_total} does not match expected {expected_grand}",
                    "invoice.grand_total",
                )
            )
    return findings


def check_exchange_rate(
    invoice: Invoice,
    lines: Sequence[LineItem],
    seller: Organization,
    buyer: Buyer | None = None,
    *,
    policy: RulePolicy = DEFAULT_RULE_POLICY,
) -> list[Finding]:
    currency = invoice.currency
    if _blank(currency):
        return []
    assert currency is not None
    rate = invoice.exchange_rate

    if rate <= _ZERO:
        return [_finding("FX-003", Severity.ERROR, f"Exchange rate {rate} is not positive", "invoice.exchange_rate")]

    # Rates are quoted to six decimals.
    at_parity = round_rate(rate) == _ONE
    findings: list[Finding] = []
    if currency != BASE_CURRENCY and at_parity:
        findings.append(
            _finding(
                "FX-001",
                Severity.ERROR,
                f"Exchange rate required for {currency} invoices (found 1.000000)",
                "invoice.exchange_rate",
            )
        )
    elif currency == BASE_CURRENCY and not at_parity:
        findings.append(
            _finding(
                "FX-002",
                Severity.ERROR,
                f"Exchange rate must be 1.000000 for {BASE_CURRENCY} invoices (found {rate})",
                "invoice.exchange_rate",
            )
        )
    if currency not in policy.supported_currencies:
        findings.append(
            _finding("FX-004", Severity.WARNING, f"Currency {currency!r} is not supported", "invoice.currency")
        )
    if currency != BASE_CURRENCY:
        findings.append(
            _finding("FX-005", Severity.INFO, f"Foreign currency invoice ({currency})", "invoice.currency")
        )
    return findings


def check_b2c_consolidation_rules(
    invoice: Invoice,
    lines: Sequence[LineItem],
    seller: Organization,
    buyer: Buyer | None = None,
    *,
    policy: RulePolicy = DEFAULT_RULE_POLICY,
) -> list[Finding]:
    findings: list[Finding] = []
    industry = (seller.industry_code or "").strip()

    if invoice.is_consolidated:
        eligibility = check_b2c_consolidation(industry or None)
        if not eligibility.allowed:
            findings.append(
                _finding(
                    "CON-001",
                    Severity.ERROR,
                    f"Industry not eligible for B2C consolidation: {eligibility.reason}",
                    "invoice.is_consolidated",
                )
            )
        if industry.startswith(RETAIL_PREFIX) and len(lines) > policy.retail_consolidation_max_lines:
            findings.append(
                _finding(
                    "CON-003",
                    Severity.WARNING,
                    f"Retail consolidation recommended max {policy.retail_consolidation_max_lines} transactions "
                    f"(found {len(lines)})",
                    "lines",
                )
            )
        if (
            industry.startswith(FOOD_AND_BEVERAGE_PREFIX)
            and invoice.grand_total is not None
            and invoice.grand_total > policy.fnb_consolidation_max_amount
        ):
            findings.append(
                _finding(
                    "CON-004",
                    Severity.WARNING,
                    f"F&B consolidation recommended max RM{policy.fnb_consolidation_max_amount}",
                    "invoice.grand_total",
                )
            )

    period = invoice.consolidation_period
    if period is not None:
        if not _PERIOD_PATTERN.fullmatch(period):
            findings.append(
                _finding(
                    "CON-002",
                    Severity.WARNING,
                    f"Consolidation period {period!r} is not in YYYY-MM format",
                    "invoice.consolidation_period",
                )
            )
        elif invoice.issue_date is not None and period != invoice.issue_date.strftime("%Y-%m"):
            findings.append(
                _finding(
                    "CON-002",
                    Severity.WARNING,
                    f"Consolidation period {period} does not match issue month "
                    f"{invoice.issue_date.strftime('%Y-%m')}",
                    "invoice.consolidation_period",
                )
            )
    return findings


def check_credit_debit_reference(
    invoice: Invoice,
    lines: Sequence[LineItem],
    seller: Organization,
    buyer: Buyer | None = None,
) -> list[Finding]:
    """Presence only; whether the reference resolves is the caller's lookup."""
    if not invoice.e_invoice_type.requires_reference:
        return []
    findings: list[Finding] = []
    if _blank(invoice.reference_invoice_id):
        findings.append(
            _finding(
                "REF-001",
                Severity.ERROR,
                "Credit/Debit note must reference the original invoice",
                "invoice.reference_invoice_id",
            )
        )
    if _blank(invoice.reason) and _blank(invoice.notes):
        findings.append(
            _finding("REF-002", Severity.ERROR, "Credit/Debit note must state a reason", "invoice.reason")
        )
    return findings


def check_payment_terms(
    invoice: Invoice,
    lines: Sequence[LineItem],
    seller: Organization,
    buyer: Buyer | None = None,
    *,
    policy: RulePolicy = DEFAULT_RULE_POLICY,
) -> list[Finding]:
    if invoice.due_date is None or invoice.issue_date is None:
        return []
    days = (invoice.due_date - invoice.issue_date).days
    if days < 0:
        return [_finding("DAT-001", Severity.ERROR, "Due date is before the issue date", "invoice.due_date")]
    if days > policy.max_payment_term_days:
        return [
            _finding(
                "DAT-002",
                Severity.WARNING,
                f"Due date is {days} days after issue (more than {policy.max_payment_term_days})",
                "invoice.due_date",
            )
        ]
    return []


@dataclass(frozen=True)
class Rule:
    name: str
    check: RuleCheck
    codes: tuple[str, ...] = ()
    description: str = ""

    def evaluate(
        self,
        invoice: Invoice,
        lines: Sequence[LineItem],
        seller: Organization,
        buyer: Buyer | None,
    ) -> list[Finding]:
        return list(self.check(invoice, lines, seller, buyer))


@dataclass(frozen=True)
class RuleCatalog:
    """Ordered, immutable set of rules. Build a new catalog to change it."""

    rules: tuple[Rule, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "rules", tuple(self.rules))
        names: Counter[str] = Counter(rule.name for rule in self.rules)
        duplicates = sorted(name for name, count in names.items() if count > 1)
        if duplicates:
            raise ConfigurationError(f"Duplicate rule names in catalog: {', '.join(duplicates)}")
        owners: dict[str, str] = {}
        for rule in self.rules:
            for code in rule.codes:
                if code in owners:
                    raise ConfigurationError(f"Rule code {code} claimed by {owners[code]} and {rule.name}")
                owners[code] = rule.name

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def names(self) -> list[str]:
        return [rule.name for rule in self.rules]

    def get(self, name: str) -> Rule:
        for rule in self.rules:
            if rule.name == name:
                return rule
        raise KeyError(name)

    def without(self, *names: str) -> "RuleCatalog":
        unknown = set(names) - set(self.names())
        if unknown:
            raise ConfigurationError(f"Unknown rule(s): {', '.join(sorted(unknown))}")
        return RuleCatalog(tuple(rule for rule in self.rules if rule.name not in names))

    def with_rule(self, rule: Rule) -> "RuleCatalog":
        return RuleCatalog(self.rules + (rule,))


def build_default_catalog(policy: RulePolicy | None = None) -> RuleCatalog:
    active = policy or DEFAULT_RULE_POLICY
    entries: Iterable[tuple[str, RuleCheck, tuple[str, ...], str]] = (
        (
            "mandatory_fields",
            partial(check_mandatory_fields, policy=active),
            ("MF-001", "MF-002", "MF-003", "MF-004", "MF-005", "MF-006", "MF-007", "MF-008"),
            "Required header, party and line data",
        ),
        ("tin_format", check_tin_format, ("TIN-001", "TIN-002"), "Seller and buyer TIN shapes"),
        ("buyer_presence", check_buyer_presence, ("PTY-001",), "Buyer required unless consolidated"),
        ("invoice_numbering", check_invoice_numbering, ("NUM-001", "NUM-002"), "Invoice number format"),
        (
            "line_items",
            partial(check_line_items, policy=active),
            ("LIN-001", "LIN-002", "LIN-003"),
            "Line numbering and value ranges",
        ),
        (
            "sst_calculation",
            partial(check_sst_calculation, policy=active),
            ("SST-001", "SST-002", "SST-003"),
            "Line and invoice SST amounts",
        ),
        (
            "totals_consistency",
            partial(check_totals_consistency, policy=active),
            ("TOT-001", "TOT-002", "TOT-003", "TOT-004"),
            "Header totals against lines",
        ),
        (
            "exchange_rate",
            partial(check_exchange_rate, policy=active),
            ("FX-001", "FX-002", "FX-003", "FX-004", "FX-005"),
            "Currency and exchange rate",
        ),
        (
            "b2c_consolidation",
            partial(check_b2c_consolidation_rules, policy=active),
            ("CON-001", "CON-002", "CON-003", "CON-004"),
            "B2C consolidation eligibility",
        ),
        (
            "credit_debit_reference",
            check_credit_debit_reference,
            ("REF-001", "REF-002"),
            "Credit/debit note references",
        ),
        (
            "payment_terms",
            partial(check_payment_terms, policy=active),
            ("DAT-001", "DAT-002"),
            "Due date against issue date",
        ),
    )
    return RuleCatalog(tuple(Rule(name=n, check=c, codes=codes, description=d) for n, c, codes, d in entries))
