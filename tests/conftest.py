from pathlib import Path

import pytest

from lendcase.core.audit import clear_audit_sink_cache
from lendcase.core.metrics import clear_metrics
from lendcase.core.settings import clear_settings_cache
from lendcase.domain.underwriting.policy import clear_policy_cache
from lendcase.repo.submission_store import clear_submission_store

POLICY_PATH = Path(__file__).resolve().parents[1] / "configs" / "policy.yaml"


def _reset_runtime_state() -> None:
    clear_settings_cache()
    clear_policy_cache()
    clear_audit_sink_cache()
    clear_metrics()
    clear_submission_store()


@pytest.fixture(autouse=True)
def default_safe_test_env(monkeypatch):
    _reset_runtime_state()
    monkeypatch.setenv("APP_ENV", "local")
    monkeypatch.setenv("POLICY_PATH", str(POLICY_PATH))
    monkeypatch.setenv("AUDIT_SINK", "log")
    monkeypatch.setenv("TRACE_ENABLED", "false")

    yield

    _reset_runtime_state()
