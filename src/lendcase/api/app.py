import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from lendcase.api.routes_metrics import router as metrics_router
from lendcase.api.routes_underwriting import router as underwriting_router
from lendcase.api.routes_version import router as version_router
from lendcase.core.audit import clear_audit_sink_cache
from lendcase.core.errors import install_error_handlers
from lendcase.core.logging import configure_logging
from lendcase.core.metrics import clear_metrics, install_metrics_middleware
from lendcase.core.request_id import install_request_id_middleware
from lendcase.core.settings import get_settings
from lendcase.domain.underwriting.policy import clear_policy_cache, load_policy
from lendcase.repo.submission_store import clear_submission_store

configure_logging()

request_id_logger = logging.getLogger("lendcase.core.request_id")
request_id_logger.setLevel(logging.INFO)
request_id_logger.propagate = True

logger = logging.getLogger(__name__)


def _safe_error_message(message: str, max_length: int = 180) -> str:
    sanitized = " ".join(message.split())
    if not sanitized:
        return "unknown_error"
    return sanitized[:max_length]


def _reset_state() -> None:
    clear_audit_sink_cache()
    clear_metrics()
    clear_policy_cache()
    clear_submission_store()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    _reset_state()

    try:
        policy = load_policy()
    except ValueError as exc:
        error_message = _safe_error_message(str(exc))
        logger.error(
            "startup policy load failed",
            extra={
                "event": "startup_policy_load_failed",
                "policy_path": settings.policy_path,
                "error_type": exc.__class__.__name__,
                "error_message": error_message,
            },
        )
    else:
        logger.info(
            "startup policy loaded",
            extra={
                "event": "startup_policy_loaded",
                "policy_path": settings.policy_path,
                "policy_version": policy.policy_version,
            },
        )

    try:
        yield
    finally:
        _reset_state()


app = FastAPI(title="lendcase underwriting API", lifespan=lifespan)
install_request_id_middleware(app)
install_metrics_middleware(app)
install_error_handlers(app)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(version_router)
app.include_router(metrics_router)
app.include_router(underwriting_router)
