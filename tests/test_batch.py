from __future__ import annotations

import pytest

from compliance.batch import validate_many
from compliance.errors import RuleExecutionError
from compliance.metrics import MetricsCollector
from compliance.rules import Rule, build_default_catalog
from compliance.validation import ComplianceEngine


def _item(invoice, lines, seller, buyer=None, **extra):
    return {"invoice": invoice, "lines": lines, "organization": seller, "buyer": buyer, **extra}


def test_validate_many_keeps_input_order(invoice_payload, line_payloads, seller_payload, buyer_payload) -> None:
    items = []
    for idx in range(12):
        invoice = {**invoice_payload, "invoiceNumber": f"INV-{idx:04d}"}
        if idx % 3 == 0:
            invoice["exchangeRate"] = "4.200000"
        items.append(_item(invoice, line_payloads, seller_payload, buyer_payload))

    results = validate_many(items, max_workers=4)

    assert [r.key for r in results] == [f"INV-{idx:04d}" for idx in range(12)]
    assert [r.report.is_valid for r in results] == [idx % 3 != 0 for idx in range(12)]


def test_validate_many_rejects_only_bad_items(invoice_payload, line_payloads, seller_payload) -> None:
    metrics = MetricsCollector()
    items = [
        _item(invoice_payload, line_payloads, seller_payload, key="good"),
        _item(invoice_payload, None, seller_payload, key="no-lines"),
        "not an invoice",
    ]

    results = validate_many(items, max_workers=2, metrics=metrics)

    assert [r.key for r in results] == ["good", "no-lines", "item-2"]
    assert [r.rejected for r in results] == [False, True, True]
    assert "lines must be a list" in (results[1].error or "")
    assert results[1].to_dict()["status"] == "rejected"
    assert results[0].to_dict()["status"] == "validated"
    snapshot = metrics.snapshot()
    assert snapshot["validated_total"] == 1
    assert snapshot["rejected_total"] == 2


def test_validate_many_propagates_rule_crashes(invoice_payload, line_payloads, seller_payload) -> None:
    def _boom(*_args):
        raise RuntimeError("boom")

    engine = ComplianceEngine(build_default_catalog().with_rule(Rule(name="broken", check=_boom)))
    with pytest.raises(RuleExecutionError):
        validate_many([_item(invoice_payload, line_payloads, seller_payload)], engine)


def test_validate_many_requires_a_worker() -> None:
    with pytest.raises(ValueError, match="max_workers"):
        validate_many([], max_workers=0)
