from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from lendcase.domain.underwriting.policy import PolicyConfig


def _known(value: float | None) -> bool:
    return value is not None and math.isfinite(value)


def _positive(value: float | None) -> bool:
    return _known(value) and value > 0


def _finite_or_none(value: float) -> float | None:
    return value if math.isfinite(value) else None


def format_currency(value: float | None) -> str:
    if not _known(value):
        return "N/A"
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.0f}"


def format_percent(value: float | None) -> str:
    if not _known(value):
        return "N/A"
    return f"{value * 100:.1f}%"


def _format_rate(value: float) -> str:
    return f"{value:g}"


def loan_to_value(amount: float | None, reference: float | None) -> float | None:
    """None when either side is unknown or the reference value is not positive."""
    if not _known(amount) or not _positive(reference):
        return None
    return _finite_or_none(amount / reference)


def select_reference_value(
    evaluator_value: float | None,
    borrower_arv: float | None,
    purchase_price: float | None,
) -> float | None:
    for candidate in (evaluator_value, borrower_arv, purchase_price):
        if _positive(candidate):
            return candidate
    return None


def total_project_cost(
    purchase_price: float | None, rehab_budget: float | None
) -> float | None:
    if not _known(purchase_price) or not _known(rehab_budget):
        return None
    return _finite_or_none(purchase_price + rehab_budget)


def loan_to_cost(
    amount: float | None,
    purchase_price: float | None,
    rehab_budget: float | None,
) -> float | None:
    cost = total_project_cost(purchase_price, rehab_budget)
    if not _known(amount) or not _positive(cost):
        return None
    return _finite_or_none(amount / cost)


def borrower_cash_to_close(
    project_cost: float | None, amount: float | None
) -> float | None:
    if not _known(project_cost):
        return None
    cash = project_cost - (amount if _known(amount) else 0.0)
    return _finite_or_none(max(cash, 0.0))


def prepaid_interest_days(closing_date: date | None) -> int:
    """Days from the closing date, inclusive, to the first of the following month."""
    if closing_date is None:
        return 0
    if closing_date.month == 12:
        first_of_next = date(closing_date.year + 1, 1, 1)
    else:
        first_of_next = date(closing_date.year, closing_date.month + 1, 1)
    return max(0, (first_of_next - closing_date).days)


def days_until(target: date | None, as_of: date) -> int | None:
    if target is None:
        return None
    return (target - as_of).days


def closing_timeline_status(days: int | None, policy: PolicyConfig) -> str | None:
    if days is None:
        return None
    if days < 0:
        return "overdue"
    if days <= policy.short_closing_timeline_days:
        return "short"
    return "ok"


def liquidity_ratio(available: float | None, required: float | None) -> float | None:
    if not _known(available) or not _positive(required):
        return None
    return _finite_or_none(available / required)


def liquidity_to_loan_ratio(
    available: float | None, amount: float | None
) -> float | None:
    if not _known(available) or not _positive(amount):
        return None
    return _finite_or_none(available / amount)


@dataclass(frozen=True)
class LiquidityComponents:
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


@dataclass(frozen=True)
class LiquidityCoverage:
    available_liquidity: float | None
    required_liquidity: float | None
    components: LiquidityComponents
    coverage_ratio: float | None
    remaining_liquidity: float | None
    is_enough: bool | None
    other_lender_loan_count: float
    other_lender_estimated: bool
    formula: str
    assumption_note: str


def liquidity_required(components: LiquidityComponents) -> float:
    return (
        components.projected_interest
        + components.closing_cost_estimate
        + components.service_fee
        + components.document_preparation_fee
        + components.existing_loan_exposure
        + components.other_lender_exposure
        + components.origination_fee
        + components.prepaid_interest
    )


def _other_lender_exposure(
    amount: float,
    policy: PolicyConfig,
    *,
    monthly_total: float | None,
    disclosed_count: int | None,
    listed_lender_count: int,
) -> tuple[float, float, float, bool]:
    """Return (exposure, monthly payment, loan count, estimated)."""
    horizon = policy.liquidity_months
    if disclosed_count is not None:
        loan_count = float(max(disclosed_count, 0))
    else:
        loan_count = max(listed_lender_count, 0) * policy.other_lender_loan_factor

    if _positive(monthly_total):
        return monthly_total * horizon, monthly_total, loan_count, False

    monthly_rate = policy.assumed_annual_interest_rate / 12
    per_loan_payment = amount * monthly_rate * policy.other_lender_payment_factor
    monthly_payment = loan_count * per_loan_payment
    return monthly_payment * horizon, monthly_payment, loan_count, True


def _assumption_note(
    policy: PolicyConfig,
    *,
    monthly_total_disclosed: bool,
    count_disclosed: bool,
) -> str:
    annual_pct = _format_rate(round(policy.assumed_annual_interest_rate * 100, 4))
    prepaid_pct = _format_rate(round(policy.prepaid_interest_annual_rate * 100, 4))
    origination_pct = _format_rate(policy.origination_fee_percent)
    sentences = [
        (
            f"Uses a fixed {annual_pct}% annual interest assumption for "
            "monthly-interest estimates."
        ),
        f"Origination fee is modeled as ((loan amount / 100) x {origination_pct}).",
        (
            f"Prepaid interest uses per diem (((loan amount / 100) x {prepaid_pct}) / "
            f"{policy.day_count_basis}) multiplied by days from target closing date "
            "to the first day of the following month."
        ),
        (
            "Existing loans with this lender count only borrower-disclosed "
            "monthly payments."
        ),
    ]
    if monthly_total_disclosed:
        sentences.append(
            "External-loan exposure uses the borrower-provided other mortgage monthly "
            f"amount and applies a {policy.liquidity_months}-month multiplier."
        )
    else:
        payment_pct = round(policy.other_lender_payment_factor * 100)
        sentences.append(
            f"External-loan monthly payments are estimated at {payment_pct}% of the "
            "current-loan monthly-interest estimate per loan; this is not a "
            "borrower-verified figure."
        )
        if not count_disclosed:
            loan_pct = round(policy.other_lender_loan_factor * 100)
            sentences.append(
                "No other-mortgage loan count was disclosed; the count is estimated "
                f"at {loan_pct}% of the listed other lenders."
            )
    return " ".join(sentences)


def _formula_text(
    amount: float | None,
    policy: PolicyConfig,
    components: LiquidityComponents,
    *,
    required: float | None,
    existing_monthly: float,
    other_monthly: float,
    other_estimated: bool,
) -> str:
    horizon = policy.liquidity_months
    annual_pct = _format_rate(round(policy.assumed_annual_interest_rate * 100, 4))
    prepaid_pct = _format_rate(round(policy.prepaid_interest_annual_rate * 100, 4))
    days = components.prepaid_interest_days
    external_label = "estimated" if other_estimated else "borrower-provided monthly"
    return (
        f"Required Liquidity = {horizon}-Month Interest ({format_currency(amount)} x "
        f"{annual_pct}% / 12 x {horizon} = "
        f"{format_currency(components.projected_interest)}) + "
        f"Service Fee ({format_currency(components.service_fee)}) + "
        "Document Preparation Fee "
        f"({format_currency(components.document_preparation_fee)}) + "
        "Closing Cost Estimate "
        f"({format_currency(components.closing_cost_estimate)}) + "
        f"Existing Loan Payments ({format_currency(existing_monthly)} x {horizon} = "
        f"{format_currency(components.existing_loan_exposure)}) + "
        f"Other Mortgage Exposure (External ({external_label}): "
        f"{format_currency(other_monthly)} x {horizon} = "
        f"{format_currency(components.other_lender_exposure)}) + "
        f"Origination Fee (((Loan Amount / 100) x "
        f"{_format_rate(policy.origination_fee_percent)}) = "
        f"{format_currency(components.origination_fee)}) + "
        f"Prepaid Interest (Per Diem (((Loan Amount / 100) x {prepaid_pct}) / "
        f"{policy.day_count_basis}) = "
        f"{format_currency(components.prepaid_interest_per_diem)}; "
        f"{days} day{'' if days == 1 else 's'} = "
        f"{format_currency(components.prepaid_interest)}) = {format_currency(required)}"
    )


def liquidity_coverage(
    policy: PolicyConfig,
    *,
    available: float | None,
    requested_amount: float | None,
    closing_date: date | None = None,
    existing_monthly_payments: Iterable[float] = (),
    other_lender_monthly_total: float | None = None,
    other_lender_loan_count: int | None = None,
    listed_other_lender_count: int = 0,
) -> LiquidityCoverage:
    """Forward-looking liquidity requirement over the policy horizon.

    The requirement is None when the requested amount is unknown; the ratio and
    ``is_enough`` are None whenever available liquidity or the requirement is
    unknown, never coerced to False.
    """
    amount = requested_amount if _positive(requested_amount) else None
    base = amount or 0.0
    horizon = policy.liquidity_months
    monthly_rate = policy.assumed_annual_interest_rate / 12

    existing_monthly = sum(
        payment for payment in existing_monthly_payments if _positive(payment)
    )
    other_exposure, other_monthly, loan_count, other_estimated = _other_lender_exposure(
        base,
        policy,
        monthly_total=other_lender_monthly_total,
        disclosed_count=other_lender_loan_count,
        listed_lender_count=listed_other_lender_count,
    )
    days = prepaid_interest_days(closing_date)
    per_diem = base * policy.prepaid_interest_annual_rate / policy.day_count_basis

    components = LiquidityComponents(
        projected_interest=base * monthly_rate * horizon,
        existing_loan_exposure=existing_monthly * horizon,
        other_lender_exposure=other_exposure,
        closing_cost_estimate=policy.closing_cost_estimate,
        service_fee=policy.monthly_service_fee,
        document_preparation_fee=policy.document_preparation_fee,
        origination_fee=base * policy.origination_fee_percent / 100,
        prepaid_interest=per_diem * days,
        prepaid_interest_per_diem=per_diem,
        prepaid_interest_days=days,
    )

    required = (
        _finite_or_none(liquidity_required(components)) if amount is not None else None
    )
    ratio = liquidity_ratio(available, required)
    remaining = _finite_or_none(available - required) if ratio is not None else None

    return LiquidityCoverage(
        available_liquidity=available if _known(available) else None,
        required_liquidity=required,
        components=components,
        coverage_ratio=ratio,
        remaining_liquidity=remaining,
        is_enough=(remaining >= 0) if remaining is not None else None,
        other_lender_loan_count=loan_count,
        other_lender_estimated=other_estimated,
        formula=_formula_text(
            amount,
            policy,
            components,
            required=required,
            existing_monthly=existing_monthly,
            other_monthly=other_monthly,
            other_estimated=other_estimated,
        ),
        assumption_note=_assumption_note(
            policy,
            monthly_total_disclosed=not other_estimated,
            count_disclosed=other_lender_loan_count is not None,
        ),
    )
