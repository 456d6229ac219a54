"""System-level FastAPI routes for BedHeat."""

from __future__ import annotations

from fastapi import APIRouter

from backend.api.dependencies import SettingsDep

router = APIRouter()


@router.get("/health", response_model=dict[str, str])
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/version", response_model=dict[str, str])
async def get_version(settings: SettingsDep) -> dict[str, str]:
    from backend.api.middleware import _VERSION

    return {"name": settings.app_name, "version": _VERSION}
