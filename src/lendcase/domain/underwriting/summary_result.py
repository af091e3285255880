from __future__ import annotations

from pydantic import BaseModel

from lendcase.domain.underwriting.snapshot import CaseSnapshot
from lendcase.domain.underwriting.submissions import PartyIdentity


class ExecutiveResponse(BaseModel):
    borrower_name: str | None
    borrower_entity: str | None
    borrower_email: str | None
    property_address: str | None
    requested_amount: float | None
    purpose: str | None
    product: str
    status: str


class LiquidityComponentsResponse(BaseModel):
    projected_interest: float
    existing_loan_exposure: float
    other_lender_exposure: float
    closing_cost_estimate: float
    service_fee: float
    document_preparation_fee: float
    origination_fee: float
    prepaid_interest: float
    prepaid_interest_per_diem: float
    prepaid_interest_days: int


class LiquidityCoverageResponse(BaseModel):
    available_liquidity: float | None
    required_liquidity: float | None
    components: LiquidityComponentsResponse
    coverage_ratio: float | None
    remaining_liquidity: float | None
    is_enough: bool | None
    other_lender_loan_count: float
    other_lender_estimated: bool
    formula: str
    assumption_note: str


class ExistingLoanResponse(BaseModel):
    loan_id: str
    amount: float | None
    monthly_payment: float | None


class QualificationResponse(BaseModel):
    credit_score: int | None
    credit_source: str
    flips_completed: int | None
    rentals_owned: int | None
    years_investing: float | None
    liquidity_amount: float | None
    liquidity_source: str
    liquidity_coverage: LiquidityCoverageResponse
    liquidity_to_loan_ratio: float | None
    dti: float | None
    dscr: float | None
    ltv: float | None
    ltv_desktop: float | None
    ltv_evaluator: float | None
    ltv_borrower: float | None
    ltc: float | None
    purchase_price: float | None
    rehab_budget: float | None
    total_project_cost: float | None
    borrower_cash_to_close: float | None
    exit_strategy: str | None
    exit_timeline: str | None
    target_closing_date: str | None
    days_to_closing: int | None
    closing_timeline: str | None
    open_loan_count: int | None
    other_lender_loan_count: float
    existing_loans: list[ExistingLoanResponse]


class PartyResponse(BaseModel):
    party_type: str | None
    name: str | None
    members: list[str]


class PartiesResponse(BaseModel):
    seller: PartyResponse | None
    assignor: PartyResponse | None
    assignment_fees: float | None


class RiskFlagResponse(BaseModel):
    id: str
    label: str
    detail: str
    severity: str
    state: str
    source: str


class RiskCountsResponse(BaseModel):
    issues: int
    pending: int
    high_risk: int


class UpstreamResponse(BaseModel):
    recommendation: str
    confidence: int | None
    source: str


class QuickDecisionResponse(BaseModel):
    recommendation: str
    confidence: int
    reasons: list[str]
    conditions: list[str]
    basis: str
    critical_signals: int
    warning_signals: int
    positive_signals: int


class CaseSummaryResponse(BaseModel):
    schema_version: str = "v1"
    loan_id: str
    stage: str | None
    workflow_status: str
    policy_version: str
    as_of: str
    executive: ExecutiveResponse
    qualification: QualificationResponse
    parties: PartiesResponse
    risk_flags: list[RiskFlagResponse]
    risk_counts: RiskCountsResponse
    upstream: UpstreamResponse | None
    quick_decision: QuickDecisionResponse
    request_id: str = ""


def _party(party: PartyIdentity | None) -> PartyResponse | None:
    if party is None:
        return None
    return PartyResponse(
        party_type=party.party_type, name=party.name, members=list(party.members)
    )


def build_case_summary_response(
    snapshot: CaseSnapshot, *, request_id: str = ""
) -> CaseSummaryResponse:
    if snapshot.quick_decision is None:
        raise ValueError("Snapshot has no quick decision attached")

    qualification = snapshot.qualification
    coverage = qualification.liquidity_coverage
    components = coverage.components
    decision = snapshot.quick_decision
    closing_date = qualification.target_closing_date

    return CaseSummaryResponse(
        loan_id=snapshot.loan_id,
        stage=snapshot.stage,
        workflow_status=snapshot.workflow_status,
        policy_version=snapshot.policy_version,
        as_of=snapshot.as_of.isoformat(),
        executive=ExecutiveResponse(
            borrower_name=snapshot.executive.borrower_name,
            borrower_entity=snapshot.executive.borrower_entity,
            borrower_email=snapshot.executive.borrower_email,
            property_address=snapshot.executive.property_address,
            requested_amount=snapshot.executive.requested_amount,
            purpose=snapshot.executive.purpose,
            product=snapshot.executive.product,
            status=snapshot.executive.status,
        ),
        qualification=QualificationResponse(
            credit_score=qualification.credit_score,
            credit_source=qualification.credit_source,
            flips_completed=qualification.flips_completed,
            rentals_owned=qualification.rentals_owned,
            years_investing=qualification.years_investing,
            liquidity_amount=qualification.liquidity_amount,
            liquidity_source=qualification.liquidity_source,
            liquidity_coverage=LiquidityCoverageResponse(
                available_liquidity=coverage.available_liquidity,
                required_liquidity=coverage.required_liquidity,
                components=LiquidityComponentsResponse(
                    projected_interest=components.projected_interest,
                    existing_loan_exposure=components.existing_loan_exposure,
                    other_lender_exposure=components.other_lender_exposure,
                    closing_cost_estimate=components.closing_cost_estimate,
                    service_fee=components.service_fee,
                    document_preparation_fee=components.document_preparation_fee,
                    origination_fee=components.origination_fee,
                    prepaid_interest=components.prepaid_interest,
                    prepaid_interest_per_diem=components.prepaid_interest_per_diem,
                    prepaid_interest_days=components.prepaid_interest_days,
                ),
                coverage_ratio=coverage.coverage_ratio,
                remaining_liquidity=coverage.remaining_liquidity,
                is_enough=coverage.is_enough,
                other_lender_loan_count=coverage.other_lender_loan_count,
                other_lender_estimated=coverage.other_lender_estimated,
                formula=coverage.formula,
                assumption_note=coverage.assumption_note,
            ),
            liquidity_to_loan_ratio=qualification.liquidity_to_loan_ratio,
            dti=qualification.dti,
            dscr=qualification.dscr,
            ltv=qualification.ltv,
            ltv_desktop=qualification.ltv_desktop,
            ltv_evaluator=qualification.ltv_evaluator,
            ltv_borrower=qualification.ltv_borrower,
            ltc=qualification.ltc,
            purchase_price=qualification.purchase_price,
            rehab_budget=qualification.rehab_budget,
            total_project_cost=qualification.total_project_cost,
            borrower_cash_to_close=qualification.borrower_cash_to_close,
            exit_strategy=qualification.exit_strategy,
            exit_timeline=qualification.exit_timeline,
            target_closing_date=closing_date.isoformat() if closing_date else None,
            days_to_closing=qualification.days_to_closing,
            closing_timeline=qualification.closing_timeline,
            open_loan_count=qualification.open_loan_count,
            other_lender_loan_count=qualification.other_lender_loan_count,
            existing_loans=[
                ExistingLoanResponse(
                    loan_id=loan.loan_id,
                    amount=loan.amount,
                    monthly_payment=loan.monthly_payment,
                )
                for loan in qualification.existing_loans
            ],
        ),
        parties=PartiesResponse(
            seller=_party(snapshot.parties.seller),
            assignor=_party(snapshot.parties.assignor),
            assignment_fees=snapshot.parties.assignment_fees,
        ),
        risk_flags=[
            RiskFlagResponse(
                id=flag.id,
                label=flag.label,
                detail=flag.detail,
                severity=flag.severity,
                state=flag.state,
                source=flag.source,
            )
            for flag in snapshot.risk_flags
        ],
        risk_counts=RiskCountsResponse(
            issues=snapshot.risk_counts.issues,
            pending=snapshot.risk_counts.pending,
            high_risk=snapshot.risk_counts.high_risk,
        ),
        upstream=(
            UpstreamResponse(
                recommendation=snapshot.upstream.recommendation,
                confidence=snapshot.upstream.confidence,
                source=snapshot.upstream.source,
            )
            if snapshot.upstream is not None
            else None
        ),
        quick_decision=QuickDecisionResponse(
            recommendation=decision.recommendation,
            confidence=decision.confidence,
            reasons=list(decision.reasons),
            conditions=list(decision.conditions),
            basis=decision.basis,
            critical_signals=decision.critical_signals,
            warning_signals=decision.warning_signals,
            positive_signals=decision.positive_signals,
        ),
        request_id=request_id,
    )
