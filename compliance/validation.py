from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Iterable, TypeVar

from pydantic import BaseModel, ValidationError

from compliance.errors import ConfigurationError, InputShapeError, RuleExecutionError
from compliance.logger import log_validation_event
from compliance.rules import RuleCatalog, build_default_catalog
from compliance.state_machine import COMPLETED, FAILED, NOT_STARTED, RUNNING, transition_state
from schemas.invoice_schema import Buyer, Invoice, LineItem, Organization
from schemas.report_schema import Finding, Severity, ValidationReport

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

MAX_SCORE = 100


@dataclass(frozen=True)
class ScoringPolicy:
    error_weight: int = 20
    warning_weight: int = 5
    info_weight: int = 0

    def __post_init__(self) -> None:
        for name in ("error_weight", "warning_weight", "info_weight"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must not be negative")

    def weight(self, severity: Severity) -> int:
        if severity is Severity.ERROR:
            return self.error_weight
        if severity is Severity.WARNING:
            return self.warning_weight
        return self.info_weight


DEFAULT_SCORING_POLICY = ScoringPolicy()


def compute_score(findings: Iterable[Finding], policy: ScoringPolicy = DEFAULT_SCORING_POLICY) -> int:
    penalty = sum(policy.weight(f.severity) for f in findings)
    return max(0, min(MAX_SCORE, MAX_SCORE - penalty))


def _coerce(model_cls: type[ModelT], value: Any, label: str) -> ModelT:
    if isinstance(value, model_cls):
        return value
    if not isinstance(value, Mapping):
        raise InputShapeError(
            f"{label} must be a mapping or {model_cls.__name__}, got {type(value).__name__}"
        )
    try:
        return model_cls.model_validate(dict(value))
    except ValidationError as exc:
        raise InputShapeError(
            f"{label} is malformed ({exc.error_count()} error(s))",
            errors=[
                {**err, "loc": [label, *err["loc"]]}
                for err in exc.errors(include_url=False, include_context=False, include_input=False)
            ],
        ) from exc


def coerce_inputs(
    invoice: Any,
    lines: Any,
    organization: Any,
    buyer: Any = None,
) -> tuple[Invoice, tuple[LineItem, ...], Organization, Buyer | None]:
    """Check the input shape once, at the engine boundary.

    Accepts model instances or plain mappings (snake_case or camelCase keys).
    An empty ``lines`` list is valid input and becomes a finding later; a missing
    or non-list ``lines`` is not.
    """
    if lines is None or not isinstance(lines, (list, tuple)):
        raise InputShapeError(f"lines must be a list of line items, got {type(lines).__name__}")
    inv = _coerce(Invoice, invoice, "invoice")
    items = tuple(_coerce(LineItem, line, f"lines[{idx}]") for idx, line in enumerate(lines))
    seller = _coerce(Organization, organization, "organization")
    party = None if buyer is None else _coerce(Buyer, buyer, "buyer")
    return inv, items, seller, party


class ComplianceEngine:
    """Runs a rule catalog over one invoice and scores the result.

    Holds only immutable configuration, so a single instance can be shared by
    any number of threads.
    """

    def __init__(
        self,
        catalog: RuleCatalog | None = None,
        *,
        scoring: ScoringPolicy | None = None,
    ) -> None:
        self.catalog = catalog if catalog is not None else build_default_catalog()
        self.scoring = scoring or DEFAULT_SCORING_POLICY

    def validate(
        self,
        invoice: Any,
        lines: Any,
        organization: Any,
        buyer: Any = None,
    ) -> ValidationReport:
        inv, items, seller, party = coerce_inputs(invoice, lines, organization, buyer)

        state = NOT_STARTED
        started = time.perf_counter()
        state = transition_state(state, RUNNING, invoice_number=inv.invoice_number)

        findings: list[Finding] = []
        for rule in self.catalog:
            try:
                produced = rule.evaluate(inv, items, seller, party)
            except Exception as exc:  # noqa: BLE001
                state = transition_state(state, FAILED, invoice_number=inv.invoice_number)
                log_validation_event(
                    logger,
                    logging.ERROR,
                    "Compliance rule raised",
                    invoice_number=inv.invoice_number,
                    rule_name=rule.name,
                    state=state,
                    outcome="rule_error",
                )
                raise RuleExecutionError(rule.name, str(exc) or type(exc).__name__) from exc
            for item in produced:
                if not isinstance(item, Finding):
                    state = transition_state(state, FAILED, invoice_number=inv.invoice_number)
                    raise RuleExecutionError(
                        rule.name, f"returned {type(item).__name__} instead of Finding"
                    )
            findings.extend(produced)

        score = compute_score(findings, self.scoring)
        is_valid = not any(f.severity is Severity.ERROR for f in findings)
        report = ValidationReport(score=score, is_valid=is_valid, findings=tuple(findings))
        state = transition_state(state, COMPLETED, invoice_number=inv.invoice_number)

        log_validation_event(
            logger,
            logging.DEBUG,
            "Invoice validated",
            invoice_number=inv.invoice_number,
            state=state,
            score=score,
            finding_count=len(findings),
            latency_ms=int((time.perf_counter() - started) * 1000),
            outcome="valid" if is_valid else "invalid",
        )
        return report


_DEFAULT_ENGINE = ComplianceEngine()


def validate(
    invoice: Any,
    lines: Any,
    organization: Any,
    buyer: Any = None,
) -> ValidationReport:
    return _DEFAULT_ENGINE.validate(invoice, lines, organization, buyer)
