from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from lendcase.domain.underwriting.formulas import format_currency, format_percent
from lendcase.domain.underwriting.policy import PolicyConfig
from lendcase.domain.underwriting.submissions import COMPLIANCE_CHECKS, ComplianceCheck


_COMPLIANCE_LABELS = {
    "bankruptcy": "Bankruptcy",
    "foreclosure": "Foreclosure",
    "fraud": "Fraud",
    "internal_watchlist": "Internal watchlist",
}


@dataclass(frozen=True)
class RiskFlag:
    id: str
    label: str
    detail: str
    severity: str
    state: str
    source: str


@dataclass(frozen=True)
class RiskCounts:
    issues: int = 0
    pending: int = 0
    high_risk: int = 0


@dataclass(frozen=True)
class FlagInputs:
    continuation_submitted: bool = False
    credit_score: int | None = None
    liquidity_amount: float | None = None
    entity_mismatch: bool = False
    ltv: float | None = None
    coverage_ratio: float | None = None
    available_liquidity: float | None = None
    required_liquidity: float | None = None
    liquidity_to_loan_ratio: float | None = None
    other_lender_loan_count: float | None = None
    days_to_closing: int | None = None
    timeline_status: str | None = None
    compliance: Mapping[str, ComplianceCheck] | None = None


def _intake_flags(inputs: FlagInputs) -> list[RiskFlag]:
    flags: list[RiskFlag] = []
    if not inputs.continuation_submitted:
        flags.append(
            RiskFlag(
                id="continuation-not-submitted",
                label="Continuation not submitted",
                detail=(
                    "Borrower continuation form is required before final "
                    "underwriting decision."
                ),
                severity="medium",
                state="pending",
                source="intake",
            )
        )
    elif inputs.credit_score is None:
        flags.append(
            RiskFlag(
                id="missing-credit",
                label="Credit score missing",
                detail=(
                    "No credit score available from continuation or conditions form."
                ),
                severity="medium",
                state="issue",
                source="intake",
            )
        )

    if inputs.liquidity_amount is None:
        flags.append(
            RiskFlag(
                id="missing-liquidity",
                label="Liquidity proof missing",
                detail=(
                    "Updated liquidity details are required for underwriting review."
                ),
                severity="medium",
                state="pending",
                source="intake",
            )
        )

    if inputs.entity_mismatch:
        flags.append(
            RiskFlag(
                id="entity-mismatch",
                label="Entity ownership mismatch",
                detail="Loan request entity and continuation LLC name do not match.",
                severity="medium",
                state="pending",
                source="intake",
            )
        )
    return flags


def _ratio_flags(inputs: FlagInputs, policy: PolicyConfig) -> list[RiskFlag]:
    flags: list[RiskFlag] = []
    if inputs.ltv is not None and inputs.ltv >= policy.high_ltv_flag_threshold:
        flags.append(
            RiskFlag(
                id="high-ltv",
                label="High leverage (LTV)",
                detail=(
                    f"LTV {format_percent(inputs.ltv)} is at or above the "
                    f"{format_percent(policy.high_ltv_flag_threshold)} flag threshold."
                ),
                severity="medium",
                state="issue",
                source="ratio",
            )
        )

    if (
        inputs.coverage_ratio is not None
        and inputs.coverage_ratio < policy.min_liquidity_coverage_ratio
    ):
        shortfall = None
        available = inputs.available_liquidity
        required = inputs.required_liquidity
        if available is not None and required is not None:
            shortfall = abs(required - available)
        flags.append(
            RiskFlag(
                id="liquidity-coverage-shortfall",
                label="Liquidity does not cover combined exposure",
                detail=(
                    f"Available liquidity {format_currency(available)} vs "
                    f"modeled requirement {format_currency(required)} "
                    f"(shortfall {format_currency(shortfall)})."
                ),
                severity="medium",
                state="issue",
                source="ratio",
            )
        )

    if (
        inputs.liquidity_to_loan_ratio is not None
        and inputs.liquidity_to_loan_ratio < policy.min_liquidity_to_loan_ratio
    ):
        flags.append(
            RiskFlag(
                id="low-reserves",
                label="Low reserves",
                detail=(
                    f"Liquidity is {format_percent(inputs.liquidity_to_loan_ratio)} "
                    "of requested loan amount."
                ),
                severity="medium",
                state="issue",
                source="ratio",
            )
        )

    count = inputs.other_lender_loan_count
    if count is not None and count > policy.max_other_mortgage_loans:
        flags.append(
            RiskFlag(
                id="high-other-loan-count",
                label="High number of other mortgage loans",
                detail=(
                    f"Other mortgage loans ({count:g}) exceed threshold "
                    f"{policy.max_other_mortgage_loans}."
                ),
                severity="medium",
                state="pending",
                source="intake",
            )
        )
    return flags


def _timeline_flags(inputs: FlagInputs) -> list[RiskFlag]:
    days = inputs.days_to_closing
    if inputs.timeline_status == "short" and days is not None:
        return [
            RiskFlag(
                id="short-closing",
                label="Short closing timeline",
                detail=f"Target closing is in {days} day{'' if days == 1 else 's'}.",
                severity="low",
                state="pending",
                source="timeline",
            )
        ]
    if inputs.timeline_status == "overdue":
        return [
            RiskFlag(
                id="closing-date-past",
                label="Closing timeline expired",
                detail="Target closing date is in the past and must be updated.",
                severity="medium",
                state="issue",
                source="timeline",
            )
        ]
    return []


def _compliance_flag(check: ComplianceCheck) -> RiskFlag:
    title = _COMPLIANCE_LABELS.get(
        check.name, check.name.replace("_", " ").capitalize()
    )
    flag_id = f"{check.name.replace('_', '-')}-record"
    if check.status is True:
        return RiskFlag(
            id=flag_id,
            label=f"{title} record found",
            detail=check.detail or f"Record search reported a {title.lower()} hit.",
            severity="high",
            state="issue",
            source="compliance",
        )
    if check.status is False:
        return RiskFlag(
            id=flag_id,
            label=f"{title} record clear",
            detail=check.detail or f"No {title.lower()} record found.",
            severity="low",
            state="info",
            source="compliance",
        )
    return RiskFlag(
        id=flag_id,
        label=f"{title} record search pending",
        detail=check.detail or "Record search has not reported a result yet.",
        severity="low",
        state="pending",
        source="compliance",
    )


def resolve_risk_flags(inputs: FlagInputs, policy: PolicyConfig) -> list[RiskFlag]:
    """Intake, ratio, timeline and compliance flags, in that order.

    Compliance flags are kept as separate entries even when a ratio flag
    covers the same concern.
    """
    compliance = inputs.compliance or {}
    flags = _intake_flags(inputs)
    flags.extend(_ratio_flags(inputs, policy))
    flags.extend(_timeline_flags(inputs))
    for name in COMPLIANCE_CHECKS:
        check = compliance.get(name) or ComplianceCheck(name=name)
        flags.append(_compliance_flag(check))
    return flags


def tally_flags(flags: Iterable[RiskFlag]) -> RiskCounts:
    issues = pending = high_risk = 0
    for flag in flags:
        if flag.state == "issue":
            issues += 1
        elif flag.state == "pending":
            pending += 1
        if flag.severity == "high":
            high_risk += 1
    return RiskCounts(issues=issues, pending=pending, high_risk=high_risk)
