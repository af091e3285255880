from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request

from lendcase.agents.case_graph import load_case_trace, run_case_graph
from lendcase.core.request_id import request_id_from
from lendcase.domain.underwriting.policy import load_policy
from lendcase.domain.underwriting.reconciler import CaseNotFoundError
from lendcase.domain.underwriting.submissions import (
    SUBMISSION_SOURCES,
    read_case_inputs,
)
from lendcase.domain.underwriting.summary_result import build_case_summary_response
from lendcase.repo.submission_store import get_submission_store

router = APIRouter(prefix="/underwriting")
logger = logging.getLogger(__name__)

_OBJECT_KEYS = ("submissions", "compliance", "evaluator", "upstream")


async def _json_object(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except Exception as exc:
        raise HTTPException(status_code=400, detail="Invalid JSON body") from exc

    if not isinstance(body, dict):
        raise HTTPException(
            status_code=400,
            detail="Request body must be a JSON object",
        )
    return body


def _normalized_loan_id(loan_id: str) -> str:
    normalized = loan_id.strip()
    if not normalized:
        raise HTTPException(
            status_code=422,
            detail="'loan_id' must be a non-empty string",
        )
    return normalized


def _parse_as_of(value: object) -> date:
    if value is None:
        return datetime.now(timezone.utc).date()
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError as exc:
            raise HTTPException(
                status_code=422,
                detail="'as_of' must be an ISO date (YYYY-MM-DD)",
            ) from exc
    raise HTTPException(
        status_code=422,
        detail="'as_of' must be an ISO date (YYYY-MM-DD)",
    )


def _validate_bundle(body: dict[str, Any]) -> dict[str, Any]:
    for key in _OBJECT_KEYS:
        value = body.get(key)
        if value is not None and not isinstance(value, dict):
            raise HTTPException(
                status_code=422, detail=f"'{key}' must be an object"
            )

    portfolio = body.get("portfolio")
    if portfolio is not None and not isinstance(portfolio, list):
        raise HTTPException(status_code=422, detail="'portfolio' must be a list")

    submissions = body.get("submissions") or {}
    unknown = sorted(set(submissions) - set(SUBMISSION_SOURCES))
    if unknown:
        raise HTTPException(
            status_code=422,
            detail="Unknown submission sources: " + ", ".join(unknown),
        )

    for source, value in submissions.items():
        if not isinstance(value, (dict, list)):
            raise HTTPException(
                status_code=422,
                detail=f"'submissions.{source}' must be an object or a list",
            )

    return {key: body.get(key) for key in (*_OBJECT_KEYS, "portfolio")}


def _evaluate(
    loan_id: str, bundle: dict[str, Any], *, as_of: date, request_id: str
) -> dict[str, Any]:
    policy = load_policy()
    inputs = read_case_inputs(loan_id, bundle)
    snapshot = run_case_graph(inputs, policy, as_of=as_of, request_id=request_id)
    response = build_case_summary_response(snapshot, request_id=request_id)

    logger.info(
        "underwriting_evaluation_completed",
        extra={
            "event": "underwriting_evaluation_completed",
            "loan_id": loan_id,
            "recommendation": response.quick_decision.recommendation,
            "confidence": response.quick_decision.confidence,
            "basis": response.quick_decision.basis,
            "policy_version": response.policy_version,
            "request_id": request_id,
        },
    )
    return response.model_dump()


@router.get("/policy")
def underwriting_policy_endpoint() -> dict[str, object]:
    policy = load_policy()
    return {
        "policy_version": policy.policy_version,
        "thresholds": policy.thresholds(),
    }


@router.post("/{loan_id}/evaluate")
async def underwriting_evaluate_endpoint(
    loan_id: str, request: Request
) -> dict[str, Any]:
    body = await _json_object(request)
    normalized_loan_id = _normalized_loan_id(loan_id)
    as_of = _parse_as_of(body.get("as_of"))
    bundle = _validate_bundle(body)

    return _evaluate(
        normalized_loan_id,
        bundle,
        as_of=as_of,
        request_id=request_id_from(request),
    )


@router.post("/{loan_id}/submissions/{source}")
async def underwriting_submission_endpoint(
    loan_id: str, source: str, request: Request
) -> dict[str, object]:
    body = await _json_object(request)
    normalized_loan_id = _normalized_loan_id(loan_id)

    try:
        version = get_submission_store().append_submission(
            normalized_loan_id, source, body
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    request_id = request_id_from(request)
    logger.info(
        "underwriting_submission_recorded",
        extra={
            "event": "underwriting_submission_recorded",
            "loan_id": normalized_loan_id,
            "source": source,
            "version": version,
            "request_id": request_id,
        },
    )
    return {
        "loan_id": normalized_loan_id,
        "source": source,
        "version": version,
        "request_id": request_id,
    }


@router.put("/{loan_id}/portfolio")
async def underwriting_portfolio_endpoint(
    loan_id: str, request: Request
) -> dict[str, object]:
    body = await _json_object(request)
    normalized_loan_id = _normalized_loan_id(loan_id)

    loans = body.get("loans")
    if not isinstance(loans, list) or not all(
        isinstance(item, dict) for item in loans
    ):
        raise HTTPException(
            status_code=422, detail="'loans' must be a list of objects"
        )

    get_submission_store().set_portfolio(normalized_loan_id, loans)
    return {
        "loan_id": normalized_loan_id,
        "loan_count": len(loans),
        "request_id": request_id_from(request),
    }


@router.put("/{loan_id}/compliance")
async def underwriting_compliance_endpoint(
    loan_id: str, request: Request
) -> dict[str, object]:
    body = await _json_object(request)
    normalized_loan_id = _normalized_loan_id(loan_id)

    get_submission_store().set_compliance(normalized_loan_id, body)
    return {
        "loan_id": normalized_loan_id,
        "checks": sorted(body),
        "request_id": request_id_from(request),
    }


@router.put("/{loan_id}/evaluator")
async def underwriting_evaluator_endpoint(
    loan_id: str, request: Request
) -> dict[str, object]:
    body = await _json_object(request)
    normalized_loan_id = _normalized_loan_id(loan_id)

    get_submission_store().set_evaluator(normalized_loan_id, body)
    return {
        "loan_id": normalized_loan_id,
        "fields": sorted(body),
        "request_id": request_id_from(request),
    }


@router.put("/{loan_id}/upstream")
async def underwriting_upstream_endpoint(
    loan_id: str, request: Request
) -> dict[str, object]:
    body = await _json_object(request)
    normalized_loan_id = _normalized_loan_id(loan_id)

    get_submission_store().set_upstream(normalized_loan_id, body)
    return {
        "loan_id": normalized_loan_id,
        "fields": sorted(body),
        "request_id": request_id_from(request),
    }


@router.get("/{loan_id}/summary")
async def underwriting_summary_endpoint(
    loan_id: str,
    request: Request,
    as_of: str | None = Query(default=None),
) -> dict[str, Any]:
    normalized_loan_id = _normalized_loan_id(loan_id)
    evaluation_date = _parse_as_of(as_of)

    bundle = get_submission_store().bundle_for(normalized_loan_id)
    if bundle is None:
        raise CaseNotFoundError(f"No data on file for loan '{normalized_loan_id}'")

    return _evaluate(
        normalized_loan_id,
        bundle,
        as_of=evaluation_date,
        request_id=request_id_from(request),
    )


@router.get("/{loan_id}/trace")
async def underwriting_trace_endpoint(
    loan_id: str,
    request: Request,
    request_id: str = Query(..., min_length=1),
) -> dict[str, object]:
    normalized_loan_id = _normalized_loan_id(loan_id)
    normalized_request_id = request_id.strip()
    if not normalized_request_id:
        raise HTTPException(
            status_code=422,
            detail="'request_id' must be a non-empty string",
        )

    try:
        trace = load_case_trace(normalized_loan_id, normalized_request_id)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    return {
        "loan_id": normalized_loan_id,
        "request_id": request_id_from(request),
        "trace": trace,
    }
