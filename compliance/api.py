from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from compliance.errors import InputShapeError
from compliance.metrics import MetricsCollector
from compliance.validation import ComplianceEngine


class ValidateRequest(BaseModel):
    # Left as raw mappings; the engine owns input-shape checking.
    invoice: Any = None
    lines: Any = None
    organization: Any = None
    buyer: Any = None


def create_app(
    *,
    engine: ComplianceEngine | None = None,
    metrics: MetricsCollector | None = None,
) -> FastAPI:
    active_engine = engine or ComplianceEngine()
    collector = metrics or MetricsCollector()
    app = FastAPI(title="MyInvois Compliance API", version="0.1.0")

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/validate")
    def validate(request: ValidateRequest) -> dict[str, Any]:
        try:
            report = active_engine.validate(
                request.invoice, request.lines, request.organization, request.buyer
            )
        except InputShapeError as exc:
            collector.record_rejection()
            raise HTTPException(status_code=400, detail={"message": str(exc), "errors": exc.errors}) from exc
        collector.record_report(report)
        return report.to_dict()

    @app.get("/stats")
    def stats() -> dict[str, Any]:
        return collector.snapshot()

    return app
