from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from lendcase.domain.underwriting.readers import (
    read_bool,
    read_date,
    read_int,
    read_list,
    read_mapping,
    read_mapping_list,
    read_number,
    read_percent_ratio,
    read_positive_number,
    read_string,
    read_string_list,
    read_timestamp,
    read_years,
)

NEW_LOAN_REQUEST = "new_loan_request"
CONTINUATION = "continuation"
CONDITIONS = "conditions"
TITLE_AGENT_FORM = "title_agent_form"
SUBMISSION_SOURCES = (NEW_LOAN_REQUEST, CONTINUATION, CONDITIONS, TITLE_AGENT_FORM)

COMPLIANCE_CHECKS = ("bankruptcy", "foreclosure", "fraud", "internal_watchlist")

_TIMESTAMP_KEYS = ("updatedAt", "submittedAt", "updated_at", "submitted_at")
_CREDIT_KEYS = ("creditScore", "credit_score", "ficoScore", "fico")
_LIQUIDITY_KEYS = (
    "proofOfLiquidityAmount",
    "liquidityAmount",
    "liquidity_amount",
    "liquidity",
)
_OTHER_COUNT_KEYS = (
    "otherMortgageLoansCount",
    "otherMortgageLoanCount",
    "other_mortgage_loans_count",
)
_PAST_PROJECT_KEYS = ("pastProjects", "past_projects")
_FUNDED_STAGE_INDEX = 4
_FUNDED_STATUSES = {"funded", "active", "closed_funded"}
_UPSTREAM_LABELS = {
    "approve": "Approve",
    "approved": "Approve",
    "pre_approve": "Approve",
    "conditional": "Conditional",
    "review": "Conditional",
    "decline": "Decline",
    "declined": "Decline",
}


@dataclass(frozen=True)
class NewLoanRequest:
    loan_id: str | None = None
    borrower_name: str | None = None
    borrower_entity: str | None = None
    borrower_email: str | None = None
    property_address: str | None = None
    requested_amount: float | None = None
    purpose: str | None = None
    exit_strategy: str | None = None
    exit_timeline: str | None = None
    purchase_price: float | None = None
    rehab_budget: float | None = None
    arv: float | None = None
    target_closing_date: date | None = None
    stage: str | None = None
    stage_index: int | None = None
    workflow_status: str | None = None
    pre_approval_decision: str | None = None
    submitted_at: int | None = None


@dataclass(frozen=True)
class ActiveLoanDisclosure:
    loan_id: str
    monthly_payment: float | None = None


@dataclass(frozen=True)
class Continuation:
    credit_score: int | None = None
    use_credit_score_on_file: bool = False
    liquidity_amount: float | None = None
    use_liquidity_on_file: bool = False
    entity_name: str | None = None
    other_mortgage_loan_count: int | None = None
    other_mortgage_monthly_total: float | None = None
    other_mortgage_lenders: tuple[str, ...] = ()
    active_loans: tuple[ActiveLoanDisclosure, ...] = ()
    flips_completed: int | None = None
    rentals_owned: int | None = None
    years_investing: float | None = None
    dti: float | None = None
    dscr: float | None = None
    submitted_at: int | None = None


@dataclass(frozen=True)
class Conditions:
    credit_score: int | None = None
    liquidity_amount: float | None = None
    other_mortgage_loan_count: int | None = None
    other_mortgage_monthly_total: float | None = None
    flips_completed: int | None = None
    submitted_at: int | None = None


@dataclass(frozen=True)
class PartyIdentity:
    party_type: str | None = None
    name: str | None = None
    members: tuple[str, ...] = ()


@dataclass(frozen=True)
class TitleAgentForm:
    seller: PartyIdentity | None = None
    assignor: PartyIdentity | None = None
    assignment_fees: float | None = None
    submitted_at: int | None = None


@dataclass(frozen=True)
class PortfolioLoan:
    loan_id: str
    amount: float | None = None
    monthly_payment: float | None = None
    status: str | None = None
    borrower_email: str | None = None
    funded: bool = False


@dataclass(frozen=True)
class ComplianceCheck:
    name: str
    status: bool | None = None
    detail: str | None = None


@dataclass(frozen=True)
class EvaluatorValues:
    as_is_value: float | None = None
    arv: float | None = None
    recommendation: str | None = None
    confidence: float | None = None


@dataclass(frozen=True)
class UpstreamDecision:
    recommendation: str
    confidence: int | None = None
    source: str = "upstream"


@dataclass(frozen=True)
class CaseInputs:
    loan_id: str
    new_loan_request: NewLoanRequest | None = None
    continuation: Continuation | None = None
    conditions: Conditions | None = None
    title_agent_form: TitleAgentForm | None = None
    portfolio: tuple[PortfolioLoan, ...] = ()
    compliance: dict[str, ComplianceCheck] = field(default_factory=dict)
    evaluator: EvaluatorValues | None = None
    upstream: UpstreamDecision | None = None

    def has_submission(self) -> bool:
        return any(
            record is not None
            for record in (
                self.new_loan_request,
                self.continuation,
                self.conditions,
                self.title_agent_form,
            )
        )


def latest_version(raw: object) -> Mapping[str, Any] | None:
    """Pick the newest version of a submission.

    Versions carrying a timestamp outrank those without one; among equal
    timestamps (or none at all) the last supplied version wins.
    """
    if isinstance(raw, Mapping):
        return raw
    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
        return None

    best: Mapping[str, Any] | None = None
    best_stamp = -1
    for version in raw:
        if not isinstance(version, Mapping):
            continue
        stamp = read_timestamp(version, _TIMESTAMP_KEYS)
        rank = stamp if stamp is not None else -1
        if best is None or rank >= best_stamp:
            best = version
            best_stamp = rank
    return best


def _flip_count(record: Mapping[str, Any]) -> int | None:
    projects = read_list(record, _PAST_PROJECT_KEYS)
    if projects is not None:
        return len(projects)
    return read_int(record, ("flipsCompleted", "flips_completed"))


def read_new_loan_request(raw: object) -> NewLoanRequest | None:
    record = latest_version(raw)
    if record is None:
        return None
    details = read_mapping(record, ("purchaseDetails", "purchase_details")) or {}
    merged = {**record, **details}

    return NewLoanRequest(
        loan_id=read_string(record, ("loanId", "id", "loan_id")),
        borrower_name=read_string(record, ("borrowerName", "borrower_name", "name")),
        borrower_entity=read_string(
            record, ("borrowerEntity", "entityName", "llcName", "borrower_entity")
        ),
        borrower_email=read_string(
            record, ("borrowerEmail", "email", "borrower_email")
        ),
        property_address=read_string(
            record, ("propertyAddress", "property", "address", "property_address")
        ),
        requested_amount=read_positive_number(
            record, ("amount", "requestedAmount", "loanAmount", "requested_amount")
        ),
        purpose=read_string(record, ("purpose", "type", "loanType")),
        exit_strategy=read_string(merged, ("exitStrategy", "exit_strategy")),
        exit_timeline=read_string(merged, ("exitTimeline", "exit_timeline")),
        purchase_price=read_number(merged, ("purchasePrice", "purchase_price")),
        rehab_budget=read_number(merged, ("rehabBudget", "rehab_budget")),
        arv=read_positive_number(merged, ("arv", "afterRepairValue", "borrowerArv")),
        target_closing_date=read_date(
            merged, ("targetClosingDate", "target_closing_date", "closingDate")
        ),
        stage=read_string(record, ("stage", "currentStage")),
        stage_index=read_int(record, ("currentStageIndex", "stage_index")),
        workflow_status=read_string(
            record, ("workflowStatus", "workflow_status", "status")
        ),
        pre_approval_decision=read_string(
            record, ("preApprovalDecision", "pre_approval_decision")
        ),
        submitted_at=read_timestamp(record, _TIMESTAMP_KEYS),
    )


def _active_loans(record: Mapping[str, Any]) -> tuple[ActiveLoanDisclosure, ...]:
    loans: list[ActiveLoanDisclosure] = []
    for item in read_mapping_list(record, ("activeLoans", "active_loans")):
        loan_id = read_string(item, ("loanId", "loan_id", "id"))
        if loan_id is None:
            continue
        loans.append(
            ActiveLoanDisclosure(
                loan_id=loan_id,
                monthly_payment=read_positive_number(
                    item, ("monthlyPayment", "monthly_payment")
                ),
            )
        )
    return tuple(loans)


def read_continuation(raw: object) -> Continuation | None:
    record = latest_version(raw)
    if record is None:
        return None
    form = read_mapping(record, ("formData", "form_data")) or record
    count = read_int(form, _OTHER_COUNT_KEYS)

    lenders = read_string_list(form, ("otherMortgageLenders", "other_mortgage_lenders"))
    lenders += read_string_list(form, ("newMortgageLenders", "new_mortgage_lenders"))

    return Continuation(
        credit_score=read_int(form, _CREDIT_KEYS),
        use_credit_score_on_file=bool(read_bool(form, "useCreditScoreOnFile")),
        liquidity_amount=read_number(form, _LIQUIDITY_KEYS),
        use_liquidity_on_file=bool(read_bool(form, "useLiquidityOnFile")),
        entity_name=read_string(form, ("llcName", "entityName", "borrowerEntity")),
        other_mortgage_loan_count=max(count, 0) if count is not None else None,
        other_mortgage_monthly_total=read_positive_number(
            form,
            ("otherMortgageTotalMonthlyInterest", "otherMortgageMonthlyTotal"),
        ),
        other_mortgage_lenders=tuple(lenders),
        active_loans=_active_loans(form),
        flips_completed=_flip_count(form),
        rentals_owned=read_int(form, ("rentalsOwned", "rentalPropertiesOwned")),
        years_investing=read_years(
            form, ("yearsInvesting", "investingExperience", "experienceYears")
        ),
        dti=read_percent_ratio(form, ("dti", "debtToIncome")),
        dscr=read_number(form, ("dscr", "debtServiceCoverageRatio")),
        submitted_at=read_timestamp(record, _TIMESTAMP_KEYS),
    )


def read_conditions(raw: object) -> Conditions | None:
    record = latest_version(raw)
    if record is None:
        return None
    count = read_int(record, _OTHER_COUNT_KEYS)

    return Conditions(
        credit_score=read_int(record, _CREDIT_KEYS),
        liquidity_amount=read_number(record, _LIQUIDITY_KEYS),
        other_mortgage_loan_count=max(count, 0) if count is not None else None,
        other_mortgage_monthly_total=read_positive_number(
            record, ("otherMortgageTotalAmount", "otherMortgageMonthlyTotal")
        ),
        flips_completed=_flip_count(record),
        submitted_at=read_timestamp(record, _TIMESTAMP_KEYS),
    )


def _party(record: Mapping[str, Any], prefix: str) -> PartyIdentity | None:
    party_type = read_string(record, f"{prefix}Type")
    if party_type is not None:
        party_type = party_type.upper()
    individual = read_string(record, f"{prefix}Name")
    entity = read_string(record, f"{prefix}LlcName")
    name = entity if party_type == "LLC" and entity else individual or entity
    members = tuple(read_string_list(record, f"{prefix}Members"))
    if name is None and not members:
        return None
    return PartyIdentity(party_type=party_type, name=name, members=members)


def read_title_agent_form(raw: object) -> TitleAgentForm | None:
    record = latest_version(raw)
    if record is None:
        return None
    has_assignor = read_bool(record, "hasAssignor")

    return TitleAgentForm(
        seller=_party(record, "seller"),
        assignor=_party(record, "assignor") if has_assignor is not False else None,
        assignment_fees=read_number(record, ("assignmentFees", "assignment_fees")),
        submitted_at=read_timestamp(record, _TIMESTAMP_KEYS),
    )


def read_portfolio(raw: object) -> tuple[PortfolioLoan, ...]:
    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
        return ()

    loans: list[PortfolioLoan] = []
    for item in raw:
        loan_id = read_string(item, ("loanId", "loan_id", "id"))
        if loan_id is None:
            continue
        status = read_string(item, "status")
        stage_index = read_int(item, ("currentStageIndex", "stage_index"))
        funded = (
            bool(read_bool(item, "funded"))
            or (stage_index is not None and stage_index >= _FUNDED_STAGE_INDEX)
            or (status is not None and status.lower() in _FUNDED_STATUSES)
        )
        email = read_string(item, ("borrowerEmail", "borrower_email", "email"))
        loans.append(
            PortfolioLoan(
                loan_id=loan_id,
                amount=read_positive_number(item, "amount"),
                monthly_payment=read_positive_number(
                    item, ("monthlyPayment", "monthly_payment")
                ),
                status=status,
                borrower_email=email.lower() if email else None,
                funded=funded,
            )
        )
    return tuple(loans)


def read_compliance(raw: object) -> dict[str, ComplianceCheck]:
    checks: dict[str, ComplianceCheck] = {}
    source = raw if isinstance(raw, Mapping) else {}
    for name in COMPLIANCE_CHECKS:
        value = source.get(name)
        if isinstance(value, Mapping):
            status = read_bool(value, ("status", "hit", "found"))
            detail = read_string(value, ("detail", "note"))
        elif isinstance(value, bool):
            status, detail = value, None
        else:
            status, detail = None, None
        checks[name] = ComplianceCheck(name=name, status=status, detail=detail)
    return checks


def normalize_recommendation(value: str | None) -> str | None:
    if value is None:
        return None
    key = value.strip().lower().replace("-", "_").replace(" ", "_")
    return _UPSTREAM_LABELS.get(key)


def read_evaluator(raw: object) -> EvaluatorValues | None:
    if not isinstance(raw, Mapping):
        return None
    return EvaluatorValues(
        as_is_value=read_positive_number(
            raw, ("asIsValue", "desktopAppraisalValue", "as_is_value")
        ),
        arv=read_positive_number(raw, ("arv", "evaluatorArv")),
        recommendation=normalize_recommendation(read_string(raw, "recommendation")),
        confidence=read_number(raw, "confidence"),
    )


def read_upstream(
    raw: object, evaluator: EvaluatorValues | None = None
) -> UpstreamDecision | None:
    """Explicit upstream decision, else the evaluator's recommendation."""
    recommendation = normalize_recommendation(read_string(raw, "recommendation"))
    if recommendation is not None:
        confidence = read_int(raw, "confidence")
        return UpstreamDecision(recommendation=recommendation, confidence=confidence)

    if evaluator is not None and evaluator.recommendation is not None:
        confidence = (
            int(round(evaluator.confidence))
            if evaluator.confidence is not None
            else None
        )
        return UpstreamDecision(
            recommendation=evaluator.recommendation,
            confidence=confidence,
            source="evaluator",
        )
    return None


def read_case_inputs(loan_id: str, bundle: Mapping[str, Any]) -> CaseInputs:
    submissions = read_mapping(bundle, "submissions") or {}
    evaluator = read_evaluator(bundle.get("evaluator"))

    return CaseInputs(
        loan_id=loan_id.strip(),
        new_loan_request=read_new_loan_request(submissions.get(NEW_LOAN_REQUEST)),
        continuation=read_continuation(submissions.get(CONTINUATION)),
        conditions=read_conditions(submissions.get(CONDITIONS)),
        title_agent_form=read_title_agent_form(submissions.get(TITLE_AGENT_FORM)),
        portfolio=read_portfolio(bundle.get("portfolio")),
        compliance=read_compliance(bundle.get("compliance")),
        evaluator=evaluator,
        upstream=read_upstream(bundle.get("upstream"), evaluator),
    )
