from fastapi import APIRouter

from lendcase.core.settings import get_settings
from lendcase.domain.underwriting.policy import load_policy

router = APIRouter()


@router.get("/version")
def version() -> dict[str, str]:
    """Build info plus the policy version decisions are made under."""
    settings = get_settings()
    return {
        "app_name": settings.app_name,
        "app_env": settings.app_env,
        "version": settings.app_version,
        "git_sha": settings.git_sha,
        "build_time": settings.build_time,
        "policy_version": load_policy().policy_version,
    }
