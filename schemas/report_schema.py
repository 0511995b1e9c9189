from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class _ReportModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Finding(_ReportModel):
    rule_code: str = Field(min_length=1)
    severity: Severity
    message: str = Field(min_length=1)
    field_path: str | None = None
    fix_suggestion: str | None = None


class ValidationReport(_ReportModel):
    """Outcome of one validation call.

    Built once by the engine and never changed afterwards; persisting it is the
    caller's business.
    """

    score: int = Field(ge=0, le=100)
    is_valid: bool
    findings: tuple[Finding, ...] = ()

    def errors(self) -> tuple[Finding, ...]:
        return tuple(f for f in self.findings if f.severity is Severity.ERROR)

    def warnings(self) -> tuple[Finding, ...]:
        return tuple(f for f in self.findings if f.severity is Severity.WARNING)

    def codes(self) -> list[str]:
        return [f.rule_code for f in self.findings]

    def by_code(self, rule_code: str) -> tuple[Finding, ...]:
        return tuple(f for f in self.findings if f.rule_code == rule_code)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
