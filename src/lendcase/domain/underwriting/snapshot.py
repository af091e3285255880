from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from lendcase.domain.underwriting.flags import RiskCounts, RiskFlag
from lendcase.domain.underwriting.formulas import LiquidityCoverage
from lendcase.domain.underwriting.submissions import PartyIdentity, UpstreamDecision


@dataclass(frozen=True)
class ExecutiveSummary:
    borrower_name: str | None
    borrower_entity: str | None
    borrower_email: str | None
    property_address: str | None
    requested_amount: float | None
    purpose: str | None
    product: str
    status: str


@dataclass(frozen=True)
class ExistingLoan:
    loan_id: str
    amount: float | None
    monthly_payment: float | None


@dataclass(frozen=True)
class Qualification:
    credit_score: int | None
    credit_source: str
    flips_completed: int | None
    rentals_owned: int | None
    years_investing: float | None
    liquidity_amount: float | None
    liquidity_source: str
    liquidity_coverage: LiquidityCoverage
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
    target_closing_date: date | None
    days_to_closing: int | None
    closing_timeline: str | None
    open_loan_count: int | None
    other_lender_loan_count: float
    existing_loans: tuple[ExistingLoan, ...] = ()


@dataclass(frozen=True)
class Parties:
    seller: PartyIdentity | None = None
    assignor: PartyIdentity | None = None
    assignment_fees: float | None = None


@dataclass(frozen=True)
class QuickDecision:
    recommendation: str
    confidence: int
    reasons: tuple[str, ...]
    conditions: tuple[str, ...]
    basis: str = "computed"
    critical_signals: int = 0
    warning_signals: int = 0
    positive_signals: int = 0


@dataclass(frozen=True)
class CaseSnapshot:
    loan_id: str
    stage: str | None
    workflow_status: str
    executive: ExecutiveSummary
    qualification: Qualification
    parties: Parties
    risk_flags: tuple[RiskFlag, ...]
    risk_counts: RiskCounts
    policy_version: str
    as_of: date
    upstream: UpstreamDecision | None = None
    quick_decision: QuickDecision | None = None
