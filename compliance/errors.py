from __future__ import annotations

from typing import Any


class InputShapeError(ValueError):
    """Raised when invoice, lines or parties cannot be read as engine input.

    This is an integration bug on the caller's side, never a compliance finding.
    """

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class ConfigurationError(ValueError):
    pass


class RuleExecutionError(RuntimeError):
    def __init__(self, rule_name: str, message: str) -> None:
        super().__init__(f"Rule {rule_name} failed: {message}")
        self.rule_name = rule_name
