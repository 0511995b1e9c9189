from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import IO, Any

_EXTRA_FIELDS = (
    "invoice_number",
    "rule_name",
    "state",
    "score",
    "finding_count",
    "latency_ms",
    "outcome",
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in _EXTRA_FIELDS:
            if hasattr(record, name):
                payload[name] = getattr(record, name)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def configure_logging(level: str = "INFO", *, stream: IO[str] | None = None) -> None:
    """Install JSON output on the root logger.

    The CLI prints reports on stdout, so log records go to ``stream``
    (stderr when omitted) and never mix with them.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    if not root.handlers:
        root.addHandler(logging.StreamHandler(stream))
    formatter = JsonFormatter()
    for handler in root.handlers:
        handler.setFormatter(formatter)


def log_validation_event(
    logger: logging.Logger,
    level: int,
    message: str,
    *,
    invoice_number: str | None,
    rule_name: str | None = None,
    state: str | None = None,
    score: int | None = None,
    finding_count: int | None = None,
    latency_ms: int | None = None,
    outcome: str | None = None,
) -> None:
    if not logger.isEnabledFor(level):
        return
    extra: dict[str, Any] = {"invoice_number": invoice_number}
    if rule_name is not None:
        extra["rule_name"] = rule_name
    if state is not None:
        extra["state"] = state
    if score is not None:
        extra["score"] = score
    if finding_count is not None:
        extra["finding_count"] = finding_count
    if latency_ms is not None:
        extra["latency_ms"] = latency_ms
    if outcome is not None:
        extra["outcome"] = outcome
    logger.log(level, message, extra=extra)
