from __future__ import annotations

import json
import logging
import re
from datetime import date, datetime, timezone
from pathlib import Path
from time import perf_counter
from typing import TypedDict

from langgraph.graph import END, START, StateGraph

from lendcase.core.audit import get_audit_sink
from lendcase.core.metrics import increment_metric, observe_ms_metric
from lendcase.core.settings import get_settings
from lendcase.domain.underwriting.decision import with_quick_decision
from lendcase.domain.underwriting.policy import PolicyConfig
from lendcase.domain.underwriting.reconciler import reconcile_case
from lendcase.domain.underwriting.snapshot import CaseSnapshot
from lendcase.domain.underwriting.submissions import CaseInputs

logger = logging.getLogger(__name__)

_SAFE_PATH_COMPONENT = re.compile(r"[A-Za-z0-9_.-]+")


class CaseGraphState(TypedDict, total=False):
    loan_id: str
    request_id: str
    as_of: date
    inputs: CaseInputs
    policy: PolicyConfig
    snapshot: CaseSnapshot
    trace_events: list[dict[str, object]]


def _append_trace_event(
    state: CaseGraphState,
    node_name: str,
    *,
    started_at: float,
    outputs: dict[str, object],
) -> list[dict[str, object]]:
    duration_ms = (perf_counter() - started_at) * 1000
    events = list(state.get("trace_events", []))
    events.append(
        {
            "node_name": node_name,
            "duration_ms": round(duration_ms, 3),
            "outputs": outputs,
        }
    )
    return events


def node_reconcile(state: CaseGraphState) -> CaseGraphState:
    started = perf_counter()
    snapshot = reconcile_case(state["inputs"], state["policy"], as_of=state["as_of"])
    return {
        **state,
        "snapshot": snapshot,
        "trace_events": _append_trace_event(
            state,
            "reconcile",
            started_at=started,
            outputs={
                "ltv": snapshot.qualification.ltv,
                "ltc": snapshot.qualification.ltc,
                "credit_score": snapshot.qualification.credit_score,
                "coverage_ratio": (
                    snapshot.qualification.liquidity_coverage.coverage_ratio
                ),
                "flag_ids": [flag.id for flag in snapshot.risk_flags],
            },
        ),
    }


def node_decide(state: CaseGraphState) -> CaseGraphState:
    started = perf_counter()
    snapshot = with_quick_decision(state["snapshot"], state["policy"])
    decision = snapshot.quick_decision
    return {
        **state,
        "snapshot": snapshot,
        "trace_events": _append_trace_event(
            state,
            "decide",
            started_at=started,
            outputs={
                "recommendation": decision.recommendation,
                "confidence": decision.confidence,
                "basis": decision.basis,
            },
        ),
    }


def node_audit_metrics(state: CaseGraphState) -> CaseGraphState:
    started = perf_counter()
    snapshot = state["snapshot"]
    decision = snapshot.quick_decision
    increment_metric(
        "underwriting_evaluations_total",
        labels={"recommendation": decision.recommendation, "basis": decision.basis},
    )
    if snapshot.risk_counts.high_risk > 0:
        increment_metric("underwriting_high_risk_cases_total")

    audit_event = {
        "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "event": "case_decision",
        "request_id": state["request_id"],
        "loan_id": snapshot.loan_id,
        "recommendation": decision.recommendation,
        "confidence": decision.confidence,
        "basis": decision.basis,
        "policy_version": snapshot.policy_version,
        "as_of": snapshot.as_of.isoformat(),
        "conditions": list(decision.conditions),
    }
    try:
        get_audit_sink().emit_decision_event(audit_event)
    except Exception as exc:  # pragma: no cover - defensive
        logger.error(
            "case_graph_audit_emit_failed",
            extra={
                "event": "case_graph_audit_emit_failed",
                "request_id": state["request_id"],
                "loan_id": snapshot.loan_id,
                "error_type": exc.__class__.__name__,
                "error_message": str(exc),
            },
        )
    return {
        **state,
        "trace_events": _append_trace_event(
            state,
            "audit_metrics",
            started_at=started,
            outputs={"recommendation": decision.recommendation},
        ),
    }


def _trace_path(loan_id: str, request_id: str) -> Path:
    settings = get_settings()
    safe_request_id = request_id.strip() or "no-request-id"
    for component in (loan_id, safe_request_id):
        if not _SAFE_PATH_COMPONENT.fullmatch(component) or ".." in component:
            raise ValueError(f"Unsafe trace path component: {component!r}")
    return Path(settings.trace_dir) / loan_id / f"{safe_request_id}.json"


def _write_trace(state: CaseGraphState) -> None:
    if not get_settings().trace_enabled:
        return

    snapshot = state["snapshot"]
    decision = snapshot.quick_decision
    trace_payload = {
        "loan_id": snapshot.loan_id,
        "request_id": state["request_id"],
        "as_of": snapshot.as_of.isoformat(),
        "policy_version": snapshot.policy_version,
        "recommendation": decision.recommendation,
        "confidence": decision.confidence,
        "trace": state.get("trace_events", []),
    }
    try:
        destination = _trace_path(snapshot.loan_id, state["request_id"])
    except ValueError as exc:
        logger.warning(
            "case_graph_trace_skipped",
            extra={
                "event": "case_graph_trace_skipped",
                "request_id": state["request_id"],
                "loan_id": snapshot.loan_id,
                "error_message": str(exc),
            },
        )
        return
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(
        json.dumps(trace_payload, separators=(",", ":"), sort_keys=True),
        encoding="utf-8",
    )


def load_case_trace(loan_id: str, request_id: str) -> dict[str, object]:
    path = _trace_path(loan_id, request_id)
    if not path.is_file():
        raise FileNotFoundError(
            f"No trace found for loan_id='{loan_id}' and request_id='{request_id}'."
        )
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid trace JSON at {path}") from exc

    if not isinstance(payload, dict):
        raise ValueError("Trace payload must be a JSON object")
    return payload


def build_case_graph():
    graph = StateGraph(CaseGraphState)
    graph.add_node("reconcile", node_reconcile)
    graph.add_node("decide", node_decide)
    graph.add_node("audit_metrics", node_audit_metrics)

    graph.add_edge(START, "reconcile")
    graph.add_edge("reconcile", "decide")
    graph.add_edge("decide", "audit_metrics")
    graph.add_edge("audit_metrics", END)
    return graph.compile()


_case_graph = build_case_graph()


def run_case_graph(
    inputs: CaseInputs,
    policy: PolicyConfig,
    *,
    as_of: date,
    request_id: str = "",
) -> CaseSnapshot:
    started = perf_counter()
    final_state = _case_graph.invoke(
        {
            "loan_id": inputs.loan_id,
            "request_id": request_id,
            "as_of": as_of,
            "inputs": inputs,
            "policy": policy,
            "trace_events": [],
        }
    )
    observe_ms_metric(
        "underwriting_evaluation_ms", (perf_counter() - started) * 1000
    )
    _write_trace(final_state)
    return final_state["snapshot"]
