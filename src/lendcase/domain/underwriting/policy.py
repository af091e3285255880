from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields
from pathlib import Path

import yaml

from lendcase.core.settings import get_settings
from lendcase.domain.underwriting.readers import to_number


@dataclass(frozen=True)
class PolicyConfig:
    policy_version: str = "underwriting_v1"
    max_ltv: float = 0.75
    max_ltc: float = 0.9
    min_credit_score: int = 680
    min_liquidity_to_loan_ratio: float = 0.1
    acceptable_liquidity_ratio: float = 2.0
    excellent_liquidity_ratio: float = 4.0
    max_other_mortgage_loans: int = 5
    liquidity_months: int = 6
    assumed_annual_interest_rate: float = 0.12
    prepaid_interest_annual_rate: float = 0.13
    day_count_basis: int = 360
    monthly_service_fee: float = 950.0
    document_preparation_fee: float = 250.0
    closing_cost_estimate: float = 6000.0
    origination_fee_percent: float = 5.0
    other_lender_payment_factor: float = 0.75
    other_lender_loan_factor: float = 0.75
    short_closing_timeline_days: int = 14
    decline_credit_score: int = 620
    decline_ltv: float = 0.82
    high_ltv_flag_threshold: float = 0.76
    min_liquidity_coverage_ratio: float = 1.0

    def thresholds(self) -> dict[str, float | int]:
        payload = asdict(self)
        payload.pop("policy_version")
        return payload


_DEFAULTS = PolicyConfig()

_RATIO_KEYS = {
    "max_ltv",
    "max_ltc",
    "assumed_annual_interest_rate",
    "prepaid_interest_annual_rate",
    "other_lender_payment_factor",
    "other_lender_loan_factor",
    "decline_ltv",
    "high_ltv_flag_threshold",
}
_CREDIT_SCORE_KEYS = {"min_credit_score", "decline_credit_score"}
# key -> minimum allowed value
_INTEGER_KEYS = {
    "max_other_mortgage_loans": 0,
    "liquidity_months": 1,
    "day_count_basis": 1,
    "short_closing_timeline_days": 0,
}
_NUMBER_KEYS = {
    "min_liquidity_to_loan_ratio": 0.0,
    "acceptable_liquidity_ratio": 0.1,
    "excellent_liquidity_ratio": 0.1,
    "monthly_service_fee": 0.0,
    "document_preparation_fee": 0.0,
    "closing_cost_estimate": 0.0,
    "origination_fee_percent": 0.0,
    "min_liquidity_coverage_ratio": 0.0,
}

_cached_policies: dict[str, PolicyConfig] = {}


def _ratio_setting(value: object, fallback: float) -> float:
    parsed = to_number(value)
    if parsed is None:
        return fallback
    ratio = parsed / 100 if 1 < parsed <= 100 else parsed
    return min(1.0, max(0.0, ratio))


def _number_setting(value: object, fallback: float, minimum: float) -> float:
    parsed = to_number(value)
    if parsed is None:
        return fallback
    return max(minimum, parsed)


def _integer_setting(
    value: object, fallback: int, minimum: int, maximum: float = math.inf
) -> int:
    parsed = to_number(value)
    if parsed is None:
        return fallback
    return int(round(min(maximum, max(minimum, parsed))))


def normalize_policy(
    candidate: Mapping[str, object], policy_version: str
) -> PolicyConfig:
    values: dict[str, object] = {"policy_version": policy_version}
    for item in fields(PolicyConfig):
        key = item.name
        if key == "policy_version":
            continue
        default = getattr(_DEFAULTS, key)
        raw = candidate.get(key)
        if key in _RATIO_KEYS:
            values[key] = _ratio_setting(raw, default)
        elif key in _CREDIT_SCORE_KEYS:
            values[key] = _integer_setting(raw, default, 300, 900)
        elif key in _INTEGER_KEYS:
            values[key] = _integer_setting(raw, default, _INTEGER_KEYS[key])
        else:
            values[key] = _number_setting(raw, default, _NUMBER_KEYS[key])
    return PolicyConfig(**values)


def load_policy(path: str | Path | None = None) -> PolicyConfig:
    policy_path = Path(path) if path is not None else Path(get_settings().policy_path)
    cache_key = str(policy_path)
    cached = _cached_policies.get(cache_key)
    if cached is not None:
        return cached

    if not policy_path.is_file():
        raise ValueError(f"Policy config not found: {policy_path}")

    payload = yaml.safe_load(policy_path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("Policy config root must be a mapping")

    policy_version = payload.get("policy_version")
    if not isinstance(policy_version, str) or not policy_version.strip():
        raise ValueError("policy_version must be a non-empty string")

    thresholds = payload.get("thresholds", {})
    if not isinstance(thresholds, dict):
        raise ValueError("thresholds must be an object")

    unknown = sorted(set(thresholds) - {item.name for item in fields(PolicyConfig)})
    if unknown:
        raise ValueError("Unknown policy thresholds: " + ", ".join(unknown))

    policy = normalize_policy(thresholds, policy_version.strip())
    _cached_policies[cache_key] = policy
    return policy


def clear_policy_cache() -> None:
    _cached_policies.clear()
