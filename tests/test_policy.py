from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from lendcase.api.app import app
from lendcase.domain.underwriting.policy import (
    PolicyConfig,
    clear_policy_cache,
    load_policy,
    normalize_policy,
)


def test_load_policy_reads_configured_yaml() -> None:
    policy = load_policy()

    assert policy.policy_version == "underwriting_v1"
    assert policy.max_ltv == 0.75
    assert policy.decline_credit_score == 620
    assert policy.liquidity_months == 6


def test_load_policy_is_cached_per_path(tmp_path: Path) -> None:
    path = tmp_path / "policy.yaml"
    path.write_text(
        "policy_version: tight_v2\nthresholds:\n  max_ltv: 0.7\n", encoding="utf-8"
    )

    first = load_policy(path)
    path.write_text(
        "policy_version: tight_v3\nthresholds:\n  max_ltv: 0.6\n", encoding="utf-8"
    )
    second = load_policy(path)
    clear_policy_cache()
    third = load_policy(path)

    assert first is second
    assert first.max_ltv == 0.7
    assert third.policy_version == "tight_v3"
    assert third.max_ltv == 0.6
    assert third.max_ltc == PolicyConfig().max_ltc


def test_load_policy_rejects_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Policy config not found"):
        load_policy(tmp_path / "absent.yaml")


def test_load_policy_rejects_unknown_threshold(tmp_path: Path) -> None:
    path = tmp_path / "policy.yaml"
    path.write_text(
        "policy_version: v1\nthresholds:\n  max_dti: 0.4\n", encoding="utf-8"
    )

    with pytest.raises(ValueError, match="Unknown policy thresholds: max_dti"):
        load_policy(path)


def test_load_policy_rejects_blank_version(tmp_path: Path) -> None:
    path = tmp_path / "policy.yaml"
    path.write_text("policy_version: '  '\nthresholds: {}\n", encoding="utf-8")

    with pytest.raises(ValueError, match="policy_version must be a non-empty string"):
        load_policy(path)


def test_normalize_policy_parses_and_clamps_values() -> None:
    policy = normalize_policy(
        {
            "max_ltv": "80",
            "decline_ltv": -0.2,
            "min_credit_score": "not-a-number",
            "liquidity_months": 0,
            "monthly_service_fee": "1,200",
        },
        "custom_v1",
    )
    defaults = PolicyConfig()

    assert policy.policy_version == "custom_v1"
    assert policy.max_ltv == 0.8
    assert policy.decline_ltv == 0.0
    assert policy.min_credit_score == defaults.min_credit_score
    assert policy.liquidity_months == 1
    assert policy.monthly_service_fee == 1200.0


def test_policy_endpoint_exposes_version_and_thresholds() -> None:
    response = TestClient(app).get("/underwriting/policy")

    assert response.status_code == 200
    body = response.json()
    assert body["policy_version"] == "underwriting_v1"
    assert body["thresholds"]["max_ltc"] == 0.9
    assert body["thresholds"]["short_closing_timeline_days"] == 14
    assert "policy_version" not in body["thresholds"]
