from __future__ import annotations

import json
from pathlib import Path

import pytest

from compliance.main import EXIT_INPUT_SHAPE, EXIT_INVALID, EXIT_VALID, main


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    metrics_path = tmp_path / "logs" / "metrics.jsonl"
    monkeypatch.setenv("METRICS_PATH", str(metrics_path))
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    return metrics_path


def _write(path: Path, payload) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_validate_command_prints_report(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], invoice_payload, line_payloads, seller_payload, buyer_payload
) -> None:
    doc = _write(
        tmp_path / "invoice.json",
        {"invoice": invoice_payload, "lines": line_payloads, "organization": seller_payload, "buyer": buyer_payload},
    )

    code = main(["validate", str(doc)])

    assert code == EXIT_VALID
    report = json.loads(capsys.readouterr().out)
    assert report == {"score": 100, "isValid": True, "findings": []}


def test_validate_command_exit_codes(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], invoice_payload, line_payloads, seller_payload
) -> None:
    invoice_payload["currency"] = "USD"
    invalid = _write(
        tmp_path / "invalid.json",
        {"invoice": invoice_payload, "lines": line_payloads, "organization": seller_payload},
    )
    malformed = _write(tmp_path / "malformed.json", {"invoice": invoice_payload, "organization": seller_payload})

    assert main(["validate", str(invalid)]) == EXIT_INVALID
    capsys.readouterr()
    assert main(["validate", str(malformed)]) == EXIT_INPUT_SHAPE
    assert "lines must be a list" in capsys.readouterr().err


def test_batch_command_writes_lines_and_metrics(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
    isolated_env: Path,
    invoice_payload,
    line_payloads,
    seller_payload,
) -> None:
    rows = [
        {"key": "a", "invoice": invoice_payload, "lines": line_payloads, "organization": seller_payload},
        {"key": "b", "invoice": invoice_payload, "lines": "oops", "organization": seller_payload},
    ]
    source = tmp_path / "batch.jsonl"
    source.write_text("\n".join(json.dumps(row) for row in rows) + "\n", encoding="utf-8")

    code = main(["batch", str(source), "--workers", "2"])

    assert code == EXIT_INVALID
    out = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [row["key"] for row in out] == ["a", "b"]
    assert out[0]["status"] == "validated"
    assert out[1]["status"] == "rejected"

    events = [json.loads(line) for line in isolated_env.read_text(encoding="utf-8").splitlines()]
    by_metric = {e["metric"]: e["value"] for e in events}
    assert by_metric["validated_total"] == 1
    assert by_metric["rejected_total"] == 1


def test_batch_command_accepts_json_array(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], invoice_payload, line_payloads, seller_payload, buyer_payload
) -> None:
    source = _write(
        tmp_path / "batch.json",
        [{"invoice": invoice_payload, "lines": line_payloads, "organization": seller_payload, "buyer": buyer_payload}],
    )

    assert main(["batch", str(source)]) == EXIT_VALID
    out = capsys.readouterr().out.splitlines()
    assert json.loads(out[0])["key"] == "INV-2025-0001"
