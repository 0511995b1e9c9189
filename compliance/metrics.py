from __future__ import annotations

import json
import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from schemas.report_schema import ValidationReport


@dataclass
class MetricsCollector:
    counters: Counter[str] = field(default_factory=Counter)
    latencies_ms: list[int] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def increment(self, name: str, value: int = 1) -> None:
        with self._lock:
            self.counters[name] += value

    def observe_latency(self, value_ms: int) -> None:
        with self._lock:
            self.latencies_ms.append(value_ms)

    def record_report(self, report: ValidationReport, latency_ms: int | None = None) -> None:
        with self._lock:
            self.counters["invoices_validated_total"] += 1
            self.counters["invoices_valid_total" if report.is_valid else "invoices_invalid_total"] += 1
            for finding in report.findings:
                self.counters[f"findings_{finding.severity.value}_total"] += 1
            if latency_ms is not None:
                self.latencies_ms.append(latency_ms)

    def record_rejection(self) -> None:
        self.increment("invoices_rejected_total")

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            counters = dict(self.counters)
            ordered = sorted(self.latencies_ms)
        p95 = 0
        if ordered:
            idx = int(0.95 * (len(ordered) - 1))
            p95 = ordered[idx]
        return {
            "validated_total": counters.get("invoices_validated_total", 0),
            "valid_total": counters.get("invoices_valid_total", 0),
            "invalid_total": counters.get("invoices_invalid_total", 0),
            "rejected_total": counters.get("invoices_rejected_total", 0),
            "error_findings_total": counters.get("findings_error_total", 0),
            "warning_findings_total": counters.get("findings_warning_total", 0),
            "info_findings_total": counters.get("findings_info_total", 0),
            "latency_p95_ms": p95,
        }


class JsonlMetricsSink:
    def __init__(self, path: str | Path = "logs/compliance_metrics.jsonl") -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, event: dict[str, Any]) -> None:
        self._append([event])

    def emit_snapshot(self, snapshot: dict[str, Any], *, stage: str) -> int:
        """Write one event per numeric metric of ``snapshot``; returns the count."""
        events = [
            {"metric": name, "value": value, "stage": stage}
            for name, value in snapshot.items()
            if isinstance(value, int) and not isinstance(value, bool)
        ]
        self._append(events)
        return len(events)

    def _append(self, events: list[dict[str, Any]]) -> None:
        if not events:
            return
        recorded_at = datetime.now(timezone.utc).isoformat()
        with self._path.open("a", encoding="utf-8") as fh:
            for event in events:
                fh.write(json.dumps({"recorded_at_utc": recorded_at, **event}, ensure_ascii=True) + "\n")
