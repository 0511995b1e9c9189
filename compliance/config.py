from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path

from compliance.rules import RulePolicy
from compliance.validation import ScoringPolicy


def _parse_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _parse_decimal(name: str, default: str) -> Decimal:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return Decimal(default)
    try:
        value = Decimal(raw.strip())
    except InvalidOperation as exc:
        raise ValueError(f"{name} must be a decimal number, got {raw!r}") from exc
    if not value.is_finite() or value < 0:
        raise ValueError(f"{name} must be a non-negative number, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    log_level: str = "INFO"
    error_weight: int = 20
    warning_weight: int = 5
    info_weight: int = 0
    amount_tolerance: Decimal = Decimal("0.01")
    individual_buyer_tin_threshold: Decimal = Decimal("10000.00")
    high_quantity_threshold: Decimal = Decimal("10000")
    batch_max_workers: int = 4
    metrics_path: str = "logs/compliance_metrics.jsonl"

    def scoring_policy(self) -> ScoringPolicy:
        return ScoringPolicy(
            error_weight=self.error_weight,
            warning_weight=self.warning_weight,
            info_weight=self.info_weight,
        )

    def rule_policy(self) -> RulePolicy:
        return RulePolicy(
            amount_tolerance=self.amount_tolerance,
            individual_buyer_tin_threshold=self.individual_buyer_tin_threshold,
            high_quantity_threshold=self.high_quantity_threshold,
        )

    @classmethod
    def from_env(cls) -> "Settings":
        log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
        if log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError("LOG_LEVEL must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")

        return cls(
            log_level=log_level,
            error_weight=_parse_int("COMPLIANCE_ERROR_WEIGHT", 20),
            warning_weight=_parse_int("COMPLIANCE_WARNING_WEIGHT", 5),
            info_weight=_parse_int("COMPLIANCE_INFO_WEIGHT", 0),
            amount_tolerance=_parse_decimal("AMOUNT_TOLERANCE", "0.01"),
            individual_buyer_tin_threshold=_parse_decimal("INDIVIDUAL_BUYER_TIN_THRESHOLD", "10000.00"),
            high_quantity_threshold=_parse_decimal("HIGH_QUANTITY_THRESHOLD", "10000"),
            batch_max_workers=_parse_int("BATCH_MAX_WORKERS", 4, minimum=1),
            metrics_path=os.getenv("METRICS_PATH", "logs/compliance_metrics.jsonl"),
        )


def load_dotenv(path: str | Path = ".env") -> list[str]:
    """Fill unset variables from ``path``; returns the names actually applied.

    Accepts ``KEY=value`` and ``export KEY=value`` lines. Variables already in
    the environment win over the file.
    """
    env_path = Path(path)
    if not env_path.is_file():
        return []
    applied: list[str] = []
    for line in env_path.read_text(encoding="utf-8").splitlines():
        entry = line.strip()
        if entry.startswith("export "):
            entry = entry[len("export "):].lstrip()
        if not entry or entry.startswith("#") or "=" not in entry:
            continue
        key, value = (part.strip() for part in entry.split("=", 1))
        if not key or key in os.environ:
            continue
        os.environ[key] = value.strip('"').strip("'")
        applied.append(key)
    return applied
