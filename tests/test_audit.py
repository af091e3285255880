import json
import logging
from pathlib import Path

from case_bundles import LOAN_ID, scenario_bundle
from fastapi.testclient import TestClient

from lendcase.api.app import app
from lendcase.core.audit import (
    JsonlAuditSink,
    LogAuditSink,
    clear_audit_sink_cache,
    get_audit_sink,
)
from lendcase.core.settings import clear_settings_cache


def _reset_runtime_state() -> None:
    clear_settings_cache()
    clear_audit_sink_cache()


def test_evaluation_writes_jsonl_audit_event(monkeypatch, tmp_path: Path) -> None:
    sink_path = tmp_path / "case_decisions.jsonl"

    monkeypatch.setenv("AUDIT_SINK", "jsonl")
    monkeypatch.setenv("AUDIT_JSONL_PATH", str(sink_path))
    _reset_runtime_state()

    response = TestClient(app).post(
        f"/underwriting/{LOAN_ID}/evaluate",
        json={**scenario_bundle(), "as_of": "2026-03-02"},
    )

    assert response.status_code == 200
    assert sink_path.is_file()

    lines = sink_path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 1

    payload = json.loads(lines[0])
    body = response.json()
    assert payload["request_id"] == body["request_id"]
    assert payload["loan_id"] == LOAN_ID
    assert payload["recommendation"] == body["quick_decision"]["recommendation"]
    assert payload["confidence"] == body["quick_decision"]["confidence"]
    assert payload["policy_version"] == "underwriting_v1"
    assert payload["as_of"] == "2026-03-02"
    assert isinstance(payload["conditions"], list)
    assert isinstance(payload["timestamp"], str)


def test_evaluation_audit_failure_does_not_break_response(monkeypatch) -> None:
    class _FailingSink:
        def emit_decision_event(self, event: dict) -> None:
            raise RuntimeError("sink failed")

    monkeypatch.setattr(
        "lendcase.agents.case_graph.get_audit_sink",
        lambda: _FailingSink(),
    )

    response = TestClient(app).post(
        f"/underwriting/{LOAN_ID}/evaluate",
        json={**scenario_bundle(), "as_of": "2026-03-02"},
    )

    assert response.status_code == 200
    body = response.json()
    assert "quick_decision" in body
    assert "request_id" in body


def test_get_audit_sink_follows_settings(monkeypatch, tmp_path: Path) -> None:
    assert isinstance(get_audit_sink(), LogAuditSink)

    monkeypatch.setenv("AUDIT_SINK", "jsonl")
    monkeypatch.setenv("AUDIT_JSONL_PATH", str(tmp_path / "events.jsonl"))
    _reset_runtime_state()

    sink = get_audit_sink()
    assert isinstance(sink, JsonlAuditSink)
    assert sink is get_audit_sink()


def test_log_audit_sink_emits_structured_record(caplog) -> None:
    caplog.set_level(logging.INFO)

    LogAuditSink().emit_decision_event(
        {
            "request_id": "req-1",
            "loan_id": LOAN_ID,
            "recommendation": "Approve",
            "confidence": 90,
            "basis": "computed",
            "policy_version": "underwriting_v1",
        }
    )

    record = next(
        item for item in caplog.records if item.getMessage() == "case_decision_event"
    )
    assert record.loan_id == LOAN_ID
    assert record.recommendation == "Approve"
    assert record.confidence == 90
