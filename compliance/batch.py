from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Sequence

from compliance.errors import InputShapeError
from compliance.logger import log_validation_event
from compliance.metrics import MetricsCollector
from compliance.validation import ComplianceEngine
from schemas.report_schema import ValidationReport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchResult:
    key: str
    report: ValidationReport | None = None
    error: str | None = None

    @property
    def rejected(self) -> bool:
        return self.report is None

    def to_dict(self) -> dict[str, Any]:
        if self.report is None:
            return {"key": self.key, "status": "rejected", "error": self.error}
        return {"key": self.key, "status": "validated", **self.report.to_dict()}


def _item_key(item: Any, index: int) -> str:
    if isinstance(item, Mapping):
        key = item.get("key")
        if key:
            return str(key)
        invoice = item.get("invoice")
        if isinstance(invoice, Mapping):
            number = invoice.get("invoice_number") or invoice.get("invoiceNumber")
            if number:
                return str(number)
    return f"item-{index}"


def _run_one(
    engine: ComplianceEngine,
    item: Any,
    index: int,
    metrics: MetricsCollector | None,
) -> BatchResult:
    key = _item_key(item, index)
    started = time.perf_counter()
    try:
        if not isinstance(item, Mapping):
            raise InputShapeError(f"batch item must be a mapping, got {type(item).__name__}")
        report = engine.validate(
            item.get("invoice"),
            item.get("lines"),
            item.get("organization"),
            item.get("buyer"),
        )
    except InputShapeError as exc:
        if metrics is not None:
            metrics.record_rejection()
        log_validation_event(logger, logging.WARNING, f"Rejected batch item: {exc}", invoice_number=key, outcome="rejected")
        return BatchResult(key=key, error=str(exc))

    latency_ms = int((time.perf_counter() - started) * 1000)
    if metrics is not None:
        metrics.record_report(report, latency_ms=latency_ms)
    return BatchResult(key=key, report=report)


def validate_many(
    items: Sequence[Any],
    engine: ComplianceEngine | None = None,
    *,
    max_workers: int = 4,
    metrics: MetricsCollector | None = None,
) -> list[BatchResult]:
    """Validate many invoices concurrently; results keep the input order.

    Input-shape problems reject only the offending item. Anything else (a rule
    that crashes) propagates and stops the batch.
    """
    active = engine or ComplianceEngine()
    if max_workers < 1:
        raise ValueError("max_workers must be >= 1")
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        results = list(
            pool.map(lambda pair: _run_one(active, pair[1], pair[0], metrics), enumerate(items))
        )
    rejected = sum(1 for r in results if r.rejected)
    logger.info("Batch validated total=%d rejected=%d", len(results), rejected)
    return results
