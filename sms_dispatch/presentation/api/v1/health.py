from fastapi import APIRouter, Depends

from ....application.services import DispatchService
from ....domain.models import GATEWAY_PROVIDER
from ..dependencies import get_dispatch_service

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health check")
async def health() -> dict:
    """Basic health check for load balancer."""
    return {"status": "healthy"}


@router.get("/health/ready", summary="Readiness check")
async def readiness(service: DispatchService = Depends(get_dispatch_service)) -> dict:
    """Reports which carrier providers have usable configuration."""
    checks = {
        p["slug"]: {"status": "healthy" if await service.provider_health(p["slug"]) else "unconfigured"}
        for p in service.available_providers()
    }
    any_ready = any(c["status"] == "healthy" for slug, c in checks.items() if slug != GATEWAY_PROVIDER)
    return {
        "status": "ready" if any_ready else "degraded",
        "checks": checks,
    }
