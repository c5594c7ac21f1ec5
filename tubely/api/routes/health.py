"""
Health check endpoints.

We provide two endpoints:
- /health: Basic liveness check (is the process running?)
- /health/ready: Readiness check (can we serve traffic?)

Readiness covers what an upload needs: valid configuration and the
FFmpeg binaries on PATH (unless media tools are mocked).
"""

import logging
import shutil
from typing import Any

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from ...config.settings import Settings
from ...core.media.errors import ConfigInvalid
from ...infrastructure.storage.urls import create_url_policy
from ..dependencies import SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """
    Health check response.

    Standardized format makes it easy for monitoring tools to parse.
    """
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None
    detail: str | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response with details."""
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not check dependencies.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    """
    Liveness check - is the process alive?

    This endpoint should be very fast and not check external dependencies.
    """
    return HealthResponse(
        status="ok",
        version=settings.api_version,
        details={
            "mock_mode": {
                "s3": settings.s3_mock_mode,
                "media_tools": settings.media_tools_mock_mode,
            },
            "url_policy": settings.url_policy,
        }
    )


def _check_binary(name: str, path: str) -> ReadinessCheck:
    if shutil.which(path) is None:
        return ReadinessCheck(name=name, status="error", error=f"{path} not found on PATH")
    return ReadinessCheck(name=name, status="ok")


def _check_url_policy(settings: Settings) -> ReadinessCheck:
    try:
        policy = create_url_policy(
            settings.url_policy,
            direct_base_url=settings.direct_url_base,
            signed_expiry_seconds=settings.signed_url_expiry_seconds,
        )
    except ConfigInvalid as e:
        return ReadinessCheck(name="url_policy", status="error", error=e.message)
    return ReadinessCheck(name="url_policy", status="ok", detail=policy.name)


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 if the service can handle uploads.",
    responses={
        503: {
            "description": "Service not ready",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(settings: SettingsDep, response: Response) -> ReadinessResponse:
    """
    Readiness check - can we serve traffic?

    Returns 503 if any check fails, which tells load balancers not
    to route traffic here.
    """
    checks: list[ReadinessCheck] = []

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        checks.append(ReadinessCheck(
            name="configuration",
            status="error",
            error=f"Missing required fields: {', '.join(missing_fields)}"
        ))
    else:
        checks.append(ReadinessCheck(name="configuration", status="ok"))

    checks.append(_check_url_policy(settings))

    if settings.media_tools_mock_mode:
        checks.append(ReadinessCheck(name="ffprobe", status="ok", detail="mock mode"))
        checks.append(ReadinessCheck(name="ffmpeg", status="ok", detail="mock mode"))
    else:
        checks.append(_check_binary("ffprobe", settings.ffprobe_path))
        checks.append(_check_binary("ffmpeg", settings.ffmpeg_path))

    all_ok = all(check.status == "ok" for check in checks)

    if not all_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Readiness check failed",
            extra={
                "checks": [
                    {"name": c.name, "status": c.status, "error": c.error}
                    for c in checks
                ]
            }
        )

    return ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=settings.api_version,
        checks=checks,
    )
