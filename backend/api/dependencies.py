"""FastAPI dependency injection helpers."""

from __future__ import annotations

from typing import Annotated

import redis.asyncio as redis
from fastapi import Depends

from backend.config import SETTINGS, Settings
from backend.core.retry import RetryingCommandExecutor
from backend.core.run_coordinator import RunCoordinator
from backend.integrations import DeviceClient
from backend.models.database import get_session_maker
from backend.services import ProfileStore, RunLock

# ---------------------------------------------------------------------------
# Settings dependency
# ---------------------------------------------------------------------------


def get_settings_dependency() -> Settings:
    return SETTINGS


type SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]


# ---------------------------------------------------------------------------
# Redis (run lock)
# ---------------------------------------------------------------------------


_shared_redis: redis.Redis | None = None


def set_shared_redis(client: redis.Redis | None) -> None:
    """Set the shared Redis client (called during app startup)."""
    global _shared_redis
    _shared_redis = client


# ---------------------------------------------------------------------------
# Device API client
# ---------------------------------------------------------------------------


_device_client: DeviceClient | None = None


def get_device_client() -> DeviceClient:
    global _device_client
    if _device_client is None:
        _device_client = DeviceClient(
            str(SETTINGS.device_api_url),
            str(SETTINGS.device_auth_url),
            client_id=SETTINGS.device_client_id,
            client_secret=SETTINGS.device_client_secret,
            timeout=SETTINGS.device_request_timeout,
        )
    return _device_client


async def close_device_client() -> None:
    global _device_client
    if _device_client is not None:
        await _device_client.close()
        _device_client = None


# ---------------------------------------------------------------------------
# Run coordinator
# ---------------------------------------------------------------------------


def build_coordinator() -> RunCoordinator:
    """Wire a coordinator from the shared clients and settings."""
    return RunCoordinator(
        store=ProfileStore(get_session_maker()),
        device=get_device_client(),
        executor=RetryingCommandExecutor(
            attempts=SETTINGS.retry_attempts,
            base_delay=SETTINGS.retry_base_delay_seconds,
        ),
        run_lock=RunLock(_shared_redis, ttl_seconds=SETTINGS.run_lock_ttl_seconds),
    )


def get_coordinator() -> RunCoordinator:
    return build_coordinator()


type CoordinatorDep = Annotated[RunCoordinator, Depends(get_coordinator)]


__all__ = [
    "CoordinatorDep",
    "SettingsDep",
    "build_coordinator",
    "close_device_client",
    "get_coordinator",
    "get_device_client",
    "set_shared_redis",
]
