from fastapi.testclient import TestClient

from lendcase.api.app import app
from lendcase.core.settings import clear_settings_cache


def test_version_defaults(monkeypatch) -> None:
    monkeypatch.delenv("APP_NAME", raising=False)
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.delenv("APP_VERSION", raising=False)
    monkeypatch.delenv("GIT_SHA", raising=False)
    monkeypatch.delenv("BUILD_TIME", raising=False)
    clear_settings_cache()

    client = TestClient(app)
    response = client.get("/version")

    assert response.status_code == 200
    assert response.json() == {
        "app_name": "lendcase",
        "app_env": "local",
        "version": "0.1.0",
        "git_sha": "unknown",
        "build_time": "unknown",
        "policy_version": "underwriting_v1",
    }


def test_version_returns_overridden_env_values(monkeypatch) -> None:
    monkeypatch.setenv("APP_NAME", "lendcase-custom")
    monkeypatch.setenv("APP_ENV", "stg")
    monkeypatch.setenv("APP_VERSION", "1.2.3")
    monkeypatch.setenv("GIT_SHA", "abc123def")
    monkeypatch.setenv("BUILD_TIME", "2026-02-15T14:00:00Z")
    clear_settings_cache()

    client = TestClient(app)
    response = client.get("/version")

    assert response.status_code == 200
    assert response.json() == {
        "app_name": "lendcase-custom",
        "app_env": "stg",
        "version": "1.2.3",
        "git_sha": "abc123def",
        "build_time": "2026-02-15T14:00:00Z",
        "policy_version": "underwriting_v1",
    }
