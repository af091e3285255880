from __future__ import annotations

from dataclasses import dataclass, field, replace

from lendcase.domain.underwriting.formulas import format_currency
from lendcase.domain.underwriting.policy import PolicyConfig
from lendcase.domain.underwriting.snapshot import CaseSnapshot, QuickDecision

BASE_CONFIDENCE = 70
POSITIVE_WEIGHT = 6
WARNING_WEIGHT = 5
CRITICAL_WEIGHT = 14
APPROVE_FLOOR = 78
DECLINE_CAP = 60
MIN_CONFIDENCE = 35
MAX_CONFIDENCE = 98


@dataclass
class _Signals:
    critical: int = 0
    warning: int = 0
    positive: int = 0
    reasons: list[str] = field(default_factory=list)

    def add(self, kind: str, reason: str) -> None:
        setattr(self, kind, getattr(self, kind) + 1)
        self.reasons.append(reason)


def _pct(value: float) -> str:
    return f"{value * 100:.1f}%"


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def _credit_signal(
    signals: _Signals, snapshot: CaseSnapshot, policy: PolicyConfig
) -> None:
    score = snapshot.qualification.credit_score
    if score is None:
        return
    if score < policy.decline_credit_score:
        signals.add(
            "critical",
            f"Credit score {score} is below decline threshold "
            f"({policy.decline_credit_score})",
        )
    elif score < policy.min_credit_score:
        signals.add(
            "warning",
            f"Credit score {score} is below minimum threshold "
            f"({policy.min_credit_score})",
        )
    else:
        signals.add(
            "positive",
            f"Credit score {score} meets minimum threshold ({policy.min_credit_score})",
        )


def _ltv_signal(
    signals: _Signals, snapshot: CaseSnapshot, policy: PolicyConfig
) -> None:
    ltv = snapshot.qualification.ltv
    if ltv is None:
        return
    if ltv > policy.decline_ltv:
        signals.add(
            "critical",
            f"LTV {_pct(ltv)} exceeds decline threshold ({_pct(policy.decline_ltv)})",
        )
    elif ltv > policy.max_ltv:
        signals.add(
            "warning", f"LTV {_pct(ltv)} exceeds policy limit ({_pct(policy.max_ltv)})"
        )
    else:
        signals.add(
            "positive",
            f"LTV {_pct(ltv)} is within policy limit ({_pct(policy.max_ltv)})",
        )


def _ltc_signal(
    signals: _Signals, snapshot: CaseSnapshot, policy: PolicyConfig
) -> None:
    ltc = snapshot.qualification.ltc
    if ltc is None:
        return
    if ltc > policy.max_ltc:
        signals.add(
            "warning", f"LTC {_pct(ltc)} exceeds policy limit ({_pct(policy.max_ltc)})"
        )
    else:
        signals.add(
            "positive",
            f"LTC {_pct(ltc)} is within policy limit ({_pct(policy.max_ltc)})",
        )


def _liquidity_signal(
    signals: _Signals, snapshot: CaseSnapshot, policy: PolicyConfig
) -> None:
    coverage = snapshot.qualification.liquidity_coverage
    ratio = coverage.coverage_ratio
    if ratio is None:
        return
    if ratio >= policy.acceptable_liquidity_ratio:
        signals.add("positive", f"Liquidity ratio {ratio:.2f}x meets policy")
        return
    required = coverage.required_liquidity or 0.0
    gap = max(required - (coverage.available_liquidity or 0.0), 0.0)
    signals.add(
        "warning",
        f"Liquidity coverage is {ratio:.2f}x; short {format_currency(gap)} "
        "versus required reserves",
    )


def _flag_signals(signals: _Signals, snapshot: CaseSnapshot) -> None:
    counts = snapshot.risk_counts
    if counts.high_risk > 0:
        signals.add(
            "critical",
            f"{_plural(counts.high_risk, 'high-risk flag')} require review",
        )
    else:
        signals.add("positive", "No high-risk flags")

    open_issues = sum(
        1
        for flag in snapshot.risk_flags
        if flag.state == "issue" and flag.severity != "high"
    )
    if open_issues:
        signals.add("warning", f"{_plural(open_issues, 'open issue')} to resolve")
    if counts.pending:
        signals.add("warning", f"{_plural(counts.pending, 'pending item')} outstanding")


def _timeline_signal(signals: _Signals, snapshot: CaseSnapshot) -> None:
    days = snapshot.qualification.days_to_closing
    status = snapshot.qualification.closing_timeline
    if days is None or status is None:
        return
    if status == "overdue":
        signals.add("warning", f"Target closing date passed {abs(days)} day(s) ago")
    elif status == "short":
        signals.add(
            "warning", f"Short closing timeline ({days} day(s) to target close)"
        )
    else:
        signals.add("positive", f"Closing timeline has {days} day(s) to target close")


def _has_computed_signal(snapshot: CaseSnapshot) -> bool:
    qualification = snapshot.qualification
    return (
        qualification.credit_score is not None
        or qualification.ltv is not None
        or qualification.ltc is not None
        or qualification.liquidity_coverage.coverage_ratio is not None
        or qualification.days_to_closing is not None
        or snapshot.risk_counts.issues > 0
        or snapshot.risk_counts.pending > 0
    )


def _conditions(snapshot: CaseSnapshot) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for flag in snapshot.risk_flags:
        if flag.state in {"issue", "pending"}:
            seen.setdefault(flag.label, None)
    return tuple(seen)


def _clamp_confidence(value: float) -> int:
    return int(max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, round(value))))


def _upstream_decision(snapshot: CaseSnapshot) -> QuickDecision:
    upstream = snapshot.upstream
    if upstream is None:
        return QuickDecision(
            recommendation="Conditional",
            confidence=MIN_CONFIDENCE,
            reasons=("No underwriting signal could be evaluated",),
            conditions=_conditions(snapshot),
        )

    confidence = upstream.confidence
    if confidence is None:
        confidence = MIN_CONFIDENCE
    return QuickDecision(
        recommendation=upstream.recommendation,
        confidence=_clamp_confidence(confidence),
        reasons=(
            f"No underwriting signal could be evaluated; using {upstream.source} "
            "recommendation",
        ),
        conditions=_conditions(snapshot),
        basis="upstream",
    )


def build_quick_decision(snapshot: CaseSnapshot, policy: PolicyConfig) -> QuickDecision:
    """Recommendation from the canonical snapshot alone.

    Critical signals decline, warnings make the case conditional, anything
    else approves.
    """
    if not _has_computed_signal(snapshot):
        return _upstream_decision(snapshot)

    signals = _Signals()
    _credit_signal(signals, snapshot, policy)
    _ltv_signal(signals, snapshot, policy)
    _ltc_signal(signals, snapshot, policy)
    _liquidity_signal(signals, snapshot, policy)
    _flag_signals(signals, snapshot)
    _timeline_signal(signals, snapshot)

    if signals.critical:
        recommendation = "Decline"
    elif signals.warning or snapshot.risk_counts.issues:
        recommendation = "Conditional"
    else:
        recommendation = "Approve"

    confidence = (
        BASE_CONFIDENCE
        + POSITIVE_WEIGHT * signals.positive
        - WARNING_WEIGHT * signals.warning
        - CRITICAL_WEIGHT * signals.critical
    )
    if recommendation == "Approve":
        confidence = max(confidence, APPROVE_FLOOR)
    elif recommendation == "Decline":
        confidence = min(confidence, DECLINE_CAP)

    return QuickDecision(
        recommendation=recommendation,
        confidence=_clamp_confidence(confidence),
        reasons=tuple(signals.reasons),
        conditions=_conditions(snapshot),
        critical_signals=signals.critical,
        warning_signals=signals.warning,
        positive_signals=signals.positive,
    )


def with_quick_decision(snapshot: CaseSnapshot, policy: PolicyConfig) -> CaseSnapshot:
    return replace(snapshot, quick_decision=build_quick_decision(snapshot, policy))
