from __future__ import annotations

from datetime import date

from lendcase.domain.underwriting import formulas
from lendcase.domain.underwriting.flags import (
    FlagInputs,
    resolve_risk_flags,
    tally_flags,
)
from lendcase.domain.underwriting.policy import PolicyConfig
from lendcase.domain.underwriting.snapshot import (
    CaseSnapshot,
    ExecutiveSummary,
    ExistingLoan,
    Parties,
    Qualification,
)
from lendcase.domain.underwriting.submissions import (
    CONDITIONS,
    CONTINUATION,
    NEW_LOAN_REQUEST,
    TITLE_AGENT_FORM,
    CaseInputs,
)

STAGES = (
    "Application Submitted",
    "Document Verification",
    "Processing",
    "Underwriting Review",
    "Final Approval",
    "Funding",
)

# field -> sources in order of precedence
FIELD_PRECEDENCE: dict[str, tuple[str, ...]] = {
    "credit_score": (CONDITIONS, CONTINUATION),
    "liquidity_amount": (CONDITIONS, CONTINUATION),
    "other_mortgage_loan_count": (CONDITIONS, CONTINUATION),
    "other_mortgage_monthly_total": (CONDITIONS, CONTINUATION),
    "flips_completed": (CONTINUATION, CONDITIONS),
    "entity_name": (CONTINUATION, NEW_LOAN_REQUEST),
    "seller": (TITLE_AGENT_FORM,),
    "assignor": (TITLE_AGENT_FORM,),
}

# record attribute per source where it differs from the canonical field name
_FIELD_ALIASES: dict[tuple[str, str], str] = {
    (NEW_LOAN_REQUEST, "entity_name"): "borrower_entity",
}

_SOURCE_LABELS = {
    CONDITIONS: "Conditions form",
    CONTINUATION: "Continuation form",
    NEW_LOAN_REQUEST: "New loan request",
    TITLE_AGENT_FORM: "Title agent form",
}
PRIOR_APPLICATION_LABEL = "Prior application (<30 days)"
NOT_SUBMITTED_LABEL = "Not submitted"

_DSCR_PURPOSES = {"refinance", "cash-out refinance"}


class CaseNotFoundError(LookupError):
    pass


def resolve_field(inputs: CaseInputs, name: str) -> tuple[object | None, str | None]:
    """First non-missing value for a field, with the source it came from."""
    for source in FIELD_PRECEDENCE[name]:
        record = getattr(inputs, source)
        if record is None:
            continue
        value = getattr(record, _FIELD_ALIASES.get((source, name), name), None)
        if value is not None:
            return value, source
    return None, None


def _source_label(source: str | None, *, reused_on_file: bool) -> str:
    if source is None:
        return NOT_SUBMITTED_LABEL
    if source == CONTINUATION and reused_on_file:
        return PRIOR_APPLICATION_LABEL
    return _SOURCE_LABELS[source]


def product_label(exit_strategy: str | None, purpose: str | None) -> str:
    if exit_strategy and "flip" in exit_strategy.lower():
        return "Fix & Flip"
    if purpose and purpose.strip().lower() in _DSCR_PURPOSES:
        return "DSCR"
    return "Bridge"


def _executive_status(inputs: CaseInputs) -> str:
    request = inputs.new_loan_request
    stage_index = request.stage_index if request else None
    decision = (request.pre_approval_decision or "").upper() if request else ""
    if decision == "DECLINE":
        return "Declined"
    late_stage = stage_index is not None and stage_index >= len(STAGES) - 2
    if decision == "PRE_APPROVE" and late_stage:
        return "Approved"
    in_underwriting = stage_index is not None and stage_index >= 3
    if inputs.continuation is not None or in_underwriting:
        return "In Review"
    return "Draft"


def _stage(inputs: CaseInputs) -> str | None:
    request = inputs.new_loan_request
    if request is None:
        return None
    if request.stage:
        return request.stage
    if request.stage_index is not None and 0 <= request.stage_index < len(STAGES):
        return STAGES[request.stage_index]
    return None


def _workflow_status(inputs: CaseInputs) -> str:
    request = inputs.new_loan_request
    if request is not None and request.workflow_status:
        return request.workflow_status
    stage_index = request.stage_index if request else None
    if stage_index is not None and stage_index >= len(STAGES) - 2:
        return "Approved"
    if inputs.continuation is not None:
        return "UW for Review"
    if not stage_index:
        return "New Loan Request"
    return "In Progress"


def resolve_existing_loans(inputs: CaseInputs) -> tuple[ExistingLoan, ...]:
    """Funded loans this borrower already holds with the lender.

    Loan ids listed in the continuation win; otherwise funded portfolio loans
    sharing the borrower email are used.
    """
    active_loans = inputs.continuation.active_loans if inputs.continuation else ()
    disclosures = {item.loan_id: item for item in active_loans}
    request = inputs.new_loan_request
    email = (request.borrower_email or "").lower() if request else ""

    if disclosures:
        candidates = [loan for loan in inputs.portfolio if loan.loan_id in disclosures]
    elif email:
        candidates = [
            loan
            for loan in inputs.portfolio
            if loan.funded and loan.borrower_email == email
        ]
    else:
        candidates = []

    seen: set[str] = set()
    loans: list[ExistingLoan] = []
    for loan in candidates:
        if loan.loan_id == inputs.loan_id or loan.loan_id in seen:
            continue
        seen.add(loan.loan_id)
        disclosure = disclosures.get(loan.loan_id)
        payment = disclosure.monthly_payment if disclosure else None
        loans.append(
            ExistingLoan(
                loan_id=loan.loan_id,
                amount=loan.amount,
                monthly_payment=(
                    payment if payment is not None else loan.monthly_payment
                ),
            )
        )
    return tuple(loans)


def _entity_mismatch(inputs: CaseInputs) -> bool:
    request = inputs.new_loan_request
    request_entity = request.borrower_entity if request else None
    continuation = inputs.continuation
    continuation_entity = continuation.entity_name if continuation else None
    if not request_entity or not continuation_entity:
        return False
    return request_entity.strip().lower() != continuation_entity.strip().lower()


def reconcile_case(
    inputs: CaseInputs, policy: PolicyConfig, *, as_of: date
) -> CaseSnapshot:
    """Build the canonical case view; missing sources stay None, never zero."""
    if not inputs.loan_id.strip() or not inputs.has_submission():
        raise CaseNotFoundError(f"No submissions found for loan '{inputs.loan_id}'")

    request = inputs.new_loan_request
    continuation = inputs.continuation
    evaluator = inputs.evaluator
    title = inputs.title_agent_form

    amount = request.requested_amount if request else None
    purchase_price = request.purchase_price if request else None
    rehab_budget = request.rehab_budget if request else None
    borrower_arv = request.arv if request else None
    closing_date = request.target_closing_date if request else None
    evaluator_arv = evaluator.arv if evaluator else None
    desktop_value = evaluator.as_is_value if evaluator else None

    credit_score, credit_from = resolve_field(inputs, "credit_score")
    liquidity_amount, liquidity_from = resolve_field(inputs, "liquidity_amount")
    other_count, _ = resolve_field(inputs, "other_mortgage_loan_count")
    other_monthly, _ = resolve_field(inputs, "other_mortgage_monthly_total")
    flips_completed, _ = resolve_field(inputs, "flips_completed")
    entity_name, _ = resolve_field(inputs, "entity_name")
    seller, _ = resolve_field(inputs, "seller")
    assignor, _ = resolve_field(inputs, "assignor")

    existing_loans = resolve_existing_loans(inputs)
    disclosed_payments = [
        loan.monthly_payment
        for loan in existing_loans
        if loan.monthly_payment is not None
    ]
    listed_lenders = continuation.other_mortgage_lenders if continuation else ()
    coverage = formulas.liquidity_coverage(
        policy,
        available=liquidity_amount,
        requested_amount=amount,
        closing_date=closing_date,
        existing_monthly_payments=disclosed_payments,
        other_lender_monthly_total=other_monthly,
        other_lender_loan_count=other_count,
        listed_other_lender_count=len(listed_lenders),
    )

    ltv = formulas.loan_to_value(
        amount,
        formulas.select_reference_value(
            evaluator_arv or desktop_value, borrower_arv, purchase_price
        ),
    )
    ltc = formulas.loan_to_cost(amount, purchase_price, rehab_budget)
    project_cost = formulas.total_project_cost(purchase_price, rehab_budget)
    reserves_ratio = formulas.liquidity_to_loan_ratio(liquidity_amount, amount)
    days_to_closing = formulas.days_until(closing_date, as_of)
    timeline = formulas.closing_timeline_status(days_to_closing, policy)

    if continuation is not None and continuation.active_loans:
        open_loan_count: int | None = len(continuation.active_loans)
    else:
        open_loan_count = other_count

    qualification = Qualification(
        credit_score=credit_score,
        credit_source=_source_label(
            credit_from,
            reused_on_file=bool(continuation and continuation.use_credit_score_on_file),
        ),
        flips_completed=flips_completed,
        rentals_owned=continuation.rentals_owned if continuation else None,
        years_investing=continuation.years_investing if continuation else None,
        liquidity_amount=liquidity_amount,
        liquidity_source=_source_label(
            liquidity_from,
            reused_on_file=bool(continuation and continuation.use_liquidity_on_file),
        ),
        liquidity_coverage=coverage,
        liquidity_to_loan_ratio=reserves_ratio,
        dti=continuation.dti if continuation else None,
        dscr=continuation.dscr if continuation else None,
        ltv=ltv,
        ltv_desktop=formulas.loan_to_value(amount, desktop_value),
        ltv_evaluator=formulas.loan_to_value(amount, evaluator_arv),
        ltv_borrower=formulas.loan_to_value(amount, borrower_arv),
        ltc=ltc,
        purchase_price=purchase_price,
        rehab_budget=rehab_budget,
        total_project_cost=project_cost,
        borrower_cash_to_close=formulas.borrower_cash_to_close(project_cost, amount),
        exit_strategy=request.exit_strategy if request else None,
        exit_timeline=request.exit_timeline if request else None,
        target_closing_date=closing_date,
        days_to_closing=days_to_closing,
        closing_timeline=timeline,
        open_loan_count=open_loan_count,
        other_lender_loan_count=coverage.other_lender_loan_count,
        existing_loans=existing_loans,
    )

    flags = resolve_risk_flags(
        FlagInputs(
            continuation_submitted=continuation is not None,
            credit_score=credit_score,
            liquidity_amount=liquidity_amount,
            entity_mismatch=_entity_mismatch(inputs),
            ltv=ltv,
            coverage_ratio=coverage.coverage_ratio,
            available_liquidity=coverage.available_liquidity,
            required_liquidity=coverage.required_liquidity,
            liquidity_to_loan_ratio=reserves_ratio,
            other_lender_loan_count=coverage.other_lender_loan_count,
            days_to_closing=days_to_closing,
            timeline_status=timeline,
            compliance=inputs.compliance,
        ),
        policy,
    )

    return CaseSnapshot(
        loan_id=inputs.loan_id.strip(),
        stage=_stage(inputs),
        workflow_status=_workflow_status(inputs),
        executive=ExecutiveSummary(
            borrower_name=request.borrower_name if request else None,
            borrower_entity=entity_name,
            borrower_email=request.borrower_email if request else None,
            property_address=request.property_address if request else None,
            requested_amount=amount,
            purpose=request.purpose if request else None,
            product=product_label(
                request.exit_strategy if request else None,
                request.purpose if request else None,
            ),
            status=_executive_status(inputs),
        ),
        qualification=qualification,
        parties=Parties(
            seller=seller,
            assignor=assignor,
            assignment_fees=title.assignment_fees if title else None,
        ),
        risk_flags=tuple(flags),
        risk_counts=tally_flags(flags),
        policy_version=policy.policy_version,
        as_of=as_of,
        upstream=inputs.upstream,
    )
