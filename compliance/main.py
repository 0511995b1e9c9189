from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from compliance.batch import validate_many
from compliance.config import Settings, load_dotenv
from compliance.errors import InputShapeError
from compliance.logger import configure_logging
from compliance.metrics import JsonlMetricsSink, MetricsCollector
from compliance.rules import build_default_catalog
from compliance.validation import ComplianceEngine

EXIT_VALID = 0
EXIT_INVALID = 1
EXIT_INPUT_SHAPE = 2


def _build_engine(settings: Settings) -> ComplianceEngine:
    return ComplianceEngine(
        build_default_catalog(settings.rule_policy()),
        scoring=settings.scoring_policy(),
    )


def _read_items(path: Path) -> list[Any]:
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".jsonl":
        return [json.loads(line) for line in text.splitlines() if line.strip()]
    payload = json.loads(text)
    if not isinstance(payload, list):
        raise ValueError(f"{path} must contain a JSON array of invoices")
    return payload


def run_validate(path: Path, settings: Settings) -> int:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        print(json.dumps({"error": "input must be a JSON object"}), file=sys.stderr)
        return EXIT_INPUT_SHAPE
    engine = _build_engine(settings)
    try:
        report = engine.validate(
            payload.get("invoice"),
            payload.get("lines"),
            payload.get("organization"),
            payload.get("buyer"),
        )
    except InputShapeError as exc:
        print(json.dumps({"error": str(exc), "details": exc.errors}, default=str), file=sys.stderr)
        return EXIT_INPUT_SHAPE
    print(json.dumps(report.to_dict(), indent=2))
    return EXIT_VALID if report.is_valid else EXIT_INVALID


def run_batch(path: Path, settings: Settings, *, workers: int | None = None) -> int:
    logger = logging.getLogger(__name__)
    items = _read_items(path)
    metrics = MetricsCollector()
    results = validate_many(
        items,
        _build_engine(settings),
        max_workers=workers or settings.batch_max_workers,
        metrics=metrics,
    )
    for result in results:
        print(json.dumps(result.to_dict()))

    snapshot = metrics.snapshot()
    JsonlMetricsSink(settings.metrics_path).emit_snapshot(snapshot, stage="batch")
    logger.info("Batch summary: %s", snapshot)

    all_valid = all(r.report is not None and r.report.is_valid for r in results)
    return EXIT_VALID if all_valid else EXIT_INVALID


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="MyInvois e-Invoice compliance checker")
    subparsers = parser.add_subparsers(dest="command", required=True)

    single = subparsers.add_parser("validate", help="Validate one invoice JSON document")
    single.add_argument("path", type=Path)

    batch = subparsers.add_parser("batch", help="Validate a JSON array or JSONL file of invoices")
    batch.add_argument("path", type=Path)
    batch.add_argument("--workers", type=int, default=None)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    load_dotenv()
    settings = Settings.from_env()
    configure_logging(settings.log_level, stream=sys.stderr)
    if args.command == "validate":
        return run_validate(args.path, settings)
    if args.command == "batch":
        return run_batch(args.path, settings, workers=args.workers)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
