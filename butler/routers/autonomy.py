"""Read and update the autonomy policy."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from butler.container import Services
from butler.core.autonomy import AutonomySettings, get_level_description

from .deps import get_services

router = APIRouter(tags=["autonomy"])


@router.get("/api/autonomy", response_model=AutonomySettings)
async def get_autonomy_settings(services: Services = Depends(get_services)) -> AutonomySettings:
    await services.autonomy.ensure_loaded()
    return services.autonomy.settings


@router.put("/api/autonomy", response_model=AutonomySettings)
async def update_autonomy_settings(
    payload: AutonomySettings, services: Services = Depends(get_services)
) -> AutonomySettings:
    """Persist the policy; the engine cache is replaced immediately."""
    return await services.autonomy.save_settings(payload)


@router.get("/api/autonomy/levels")
async def list_levels() -> dict[str, str]:
    return {level: get_level_description(level) for level in ("L1", "L2")}
