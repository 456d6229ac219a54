"""API route registration for BedHeat."""

from fastapi import APIRouter

from . import cron, system

CRON_PATH = "/api/v1/temperature-cron"

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(system.router, prefix="/system", tags=["system"])
api_router.include_router(cron.router, prefix="/temperature-cron", tags=["cron"])


__all__ = [
    "CRON_PATH",
    "api_router",
    "cron",
    "system",
]
