from __future__ import annotations

import os
from dataclasses import dataclass

VALID_APP_ENVS = {"local", "dev", "stg", "prod"}


@dataclass(frozen=True)
class Settings:
    app_name: str = "lendcase"
    app_env: str = "local"
    app_version: str = "0.1.0"
    git_sha: str = "unknown"
    build_time: str = "unknown"
    policy_path: str = "configs/policy.yaml"
    audit_sink: str = "log"
    audit_jsonl_path: str = "artifacts/events/case_decisions.jsonl"
    trace_enabled: bool = False
    trace_dir: str = "artifacts/traces"


_settings: Settings | None = None


def _validate_settings(settings: Settings) -> None:
    if settings.app_env not in VALID_APP_ENVS:
        allowed = ", ".join(sorted(VALID_APP_ENVS))
        raise ValueError(
            f"Invalid APP_ENV '{settings.app_env}'. Expected one of: {allowed}."
        )

    if not settings.policy_path.strip():
        raise ValueError("POLICY_PATH must be set and non-empty.")

    if settings.audit_sink not in {"log", "jsonl"}:
        raise ValueError("AUDIT_SINK must be 'log' or 'jsonl'.")

    if settings.audit_sink == "jsonl" and not settings.audit_jsonl_path.strip():
        raise ValueError("AUDIT_JSONL_PATH must be set when AUDIT_SINK=jsonl.")

    if settings.trace_enabled and not settings.trace_dir.strip():
        raise ValueError("TRACE_DIR must be set when TRACE_ENABLED is on.")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def get_settings() -> Settings:
    global _settings

    if _settings is None:
        candidate = Settings(
            app_name=os.getenv("APP_NAME", "lendcase"),
            app_env=os.getenv("APP_ENV", "local"),
            app_version=os.getenv("APP_VERSION", "0.1.0"),
            git_sha=os.getenv("GIT_SHA", "unknown"),
            build_time=os.getenv("BUILD_TIME", "unknown"),
            policy_path=os.getenv("POLICY_PATH", "configs/policy.yaml"),
            audit_sink=os.getenv("AUDIT_SINK", "log"),
            audit_jsonl_path=os.getenv(
                "AUDIT_JSONL_PATH",
                "artifacts/events/case_decisions.jsonl",
            ),
            trace_enabled=_env_bool("TRACE_ENABLED", False),
            trace_dir=os.getenv("TRACE_DIR", "artifacts/traces"),
        )
        _validate_settings(candidate)
        _settings = candidate

    return _settings


def clear_settings_cache() -> None:
    global _settings
    _settings = None
