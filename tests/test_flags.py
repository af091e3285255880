from lendcase.domain.underwriting.flags import (
    FlagInputs,
    RiskCounts,
    resolve_risk_flags,
    tally_flags,
)
from lendcase.domain.underwriting.policy import PolicyConfig
from lendcase.domain.underwriting.submissions import ComplianceCheck

POLICY = PolicyConfig()

_CLEAR = {
    name: ComplianceCheck(name=name, status=False)
    for name in ("bankruptcy", "foreclosure", "fraud", "internal_watchlist")
}


def _ids(inputs: FlagInputs) -> list[str]:
    return [flag.id for flag in resolve_risk_flags(inputs, POLICY)]


def test_clean_case_only_reports_clear_compliance() -> None:
    flags = resolve_risk_flags(
        FlagInputs(
            continuation_submitted=True,
            credit_score=720,
            liquidity_amount=150000.0,
            ltv=0.7,
            coverage_ratio=2.5,
            liquidity_to_loan_ratio=0.5,
            other_lender_loan_count=1.0,
            days_to_closing=40,
            timeline_status="ok",
            compliance=_CLEAR,
        ),
        POLICY,
    )

    assert [flag.id for flag in flags] == [
        "bankruptcy-record",
        "foreclosure-record",
        "fraud-record",
        "internal-watchlist-record",
    ]
    assert {flag.state for flag in flags} == {"info"}
    assert tally_flags(flags) == RiskCounts(issues=0, pending=0, high_risk=0)


def test_flag_order_is_intake_ratio_timeline_compliance() -> None:
    ids = _ids(
        FlagInputs(
            continuation_submitted=True,
            credit_score=None,
            liquidity_amount=None,
            entity_mismatch=True,
            ltv=0.8,
            coverage_ratio=0.5,
            available_liquidity=20000.0,
            required_liquidity=40000.0,
            liquidity_to_loan_ratio=0.05,
            other_lender_loan_count=6.0,
            days_to_closing=-3,
            timeline_status="overdue",
            compliance=_CLEAR,
        )
    )

    assert ids[:9] == [
        "missing-credit",
        "missing-liquidity",
        "entity-mismatch",
        "high-ltv",
        "liquidity-coverage-shortfall",
        "low-reserves",
        "high-other-loan-count",
        "closing-date-past",
        "bankruptcy-record",
    ]


def test_missing_continuation_suppresses_missing_credit_flag() -> None:
    ids = _ids(FlagInputs(continuation_submitted=False, compliance=_CLEAR))

    assert ids[0] == "continuation-not-submitted"
    assert "missing-credit" not in ids


def test_high_ltv_threshold_is_inclusive() -> None:
    at_threshold = _ids(
        FlagInputs(continuation_submitted=True, credit_score=700, ltv=0.76)
    )
    below = _ids(
        FlagInputs(continuation_submitted=True, credit_score=700, ltv=0.759)
    )

    assert "high-ltv" in at_threshold
    assert "high-ltv" not in below


def test_shortfall_detail_reports_gap() -> None:
    flags = resolve_risk_flags(
        FlagInputs(
            continuation_submitted=True,
            credit_score=700,
            liquidity_amount=20000.0,
            coverage_ratio=0.5,
            available_liquidity=20000.0,
            required_liquidity=40000.0,
        ),
        POLICY,
    )
    shortfall = next(
        flag for flag in flags if flag.id == "liquidity-coverage-shortfall"
    )

    assert shortfall.detail == (
        "Available liquidity $20,000 vs modeled requirement $40,000 "
        "(shortfall $20,000)."
    )
    assert shortfall.severity == "medium"
    assert shortfall.state == "issue"


def test_short_closing_is_low_severity_pending() -> None:
    flags = resolve_risk_flags(
        FlagInputs(
            continuation_submitted=True,
            credit_score=700,
            liquidity_amount=50000.0,
            days_to_closing=1,
            timeline_status="short",
        ),
        POLICY,
    )
    short = next(flag for flag in flags if flag.id == "short-closing")

    assert short.detail == "Target closing is in 1 day."
    assert (short.severity, short.state, short.source) == ("low", "pending", "timeline")


def test_compliance_hit_is_high_risk_and_unknown_is_pending() -> None:
    compliance = {
        "fraud": ComplianceCheck(name="fraud", status=True, detail="Match on SSN"),
        "bankruptcy": ComplianceCheck(name="bankruptcy", status=False),
    }
    flags = resolve_risk_flags(
        FlagInputs(
            continuation_submitted=True,
            credit_score=700,
            liquidity_amount=50000.0,
            compliance=compliance,
        ),
        POLICY,
    )
    by_id = {flag.id: flag for flag in flags}

    assert by_id["fraud-record"].label == "Fraud record found"
    assert by_id["fraud-record"].detail == "Match on SSN"
    assert by_id["fraud-record"].severity == "high"
    assert by_id["bankruptcy-record"].state == "info"
    assert by_id["foreclosure-record"].state == "pending"
    assert by_id["internal-watchlist-record"].label == (
        "Internal watchlist record search pending"
    )
    assert tally_flags(flags) == RiskCounts(issues=1, pending=2, high_risk=1)
