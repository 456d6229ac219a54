"""Heated-bed cloud API client for BedHeat.

Thin async wrapper around the device vendor's REST API: token refresh,
heating status query, and the two commands the reconciliation engine
issues (set a heating level for a duration, turn heating off).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class DeviceClientError(Exception):
    """Base exception for all device API errors."""


class DeviceConnectionError(DeviceClientError):
    """Raised when the device API cannot be reached or times out."""


class DeviceAuthenticationError(DeviceClientError):
    """Raised on 401 Unauthorized responses."""


class DeviceServiceError(DeviceClientError):
    """Raised on any other non-success response or malformed payload."""


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DeviceHeatingStatus:
    """Snapshot of the user's side of the bed."""

    is_heating: bool
    heating_level: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeviceHeatingStatus:
        """Build a status from the ``/users/{id}/temperature`` payload."""
        state = str(data.get("currentState", {}).get("type", "off")).lower()
        return cls(
            is_heating=state != "off",
            heating_level=int(data.get("currentLevel", 0)),
        )


# Dry-run substitutes this for a real status query.
NOT_HEATING = DeviceHeatingStatus(is_heating=False, heating_level=0)


@dataclass(frozen=True, slots=True)
class Credentials:
    access_token: str
    refresh_token: str
    expires_at: datetime
    device_user_id: str

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(UTC)) > self.expires_at


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class DeviceClient:
    """Async REST wrapper for the heated-bed cloud API.

    Usage::

        async with DeviceClient(api_url, auth_url, client_id=..., client_secret=...) as client:
            status = await client.get_heating_status(credentials)
            await client.set_heating_level(credentials, user_id, 20, 3600)
    """

    def __init__(
        self,
        api_url: str,
        auth_url: str,
        *,
        client_id: str = "",
        client_secret: str = "",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._auth_url = auth_url
        self._client_id = client_id
        self._client_secret = client_secret
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    # -- async context manager ------------------------------------------------

    async def __aenter__(self) -> DeviceClient:
        self._ensure_client()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # -- internal request helper ----------------------------------------------

    def _raise_for_status(self, response: httpx.Response, *, context: str) -> None:
        """Translate HTTP error codes into typed exceptions."""
        if response.is_success:
            return

        status = response.status_code
        detail = response.text[:300]
        if status == 401:
            raise DeviceAuthenticationError(f"[{context}] Authentication failed (401)")
        raise DeviceServiceError(f"[{context}] HTTP {status}: {detail}")

    async def _request(
        self,
        method: str,
        url: str,
        *,
        token: str | None = None,
        json: Any = None,
        context: str,
    ) -> httpx.Response:
        client = self._ensure_client()
        headers = {"Authorization": f"Bearer {token}"} if token else None
        logger.debug("%s %s", method, url)
        try:
            response = await client.request(method, url, json=json, headers=headers)
        except httpx.TimeoutException as exc:
            raise DeviceConnectionError(f"[{context}] request timed out") from exc
        except httpx.TransportError as exc:
            raise DeviceConnectionError(f"[{context}] {exc}") from exc

        self._raise_for_status(response, context=context)
        return response

    # -- auth -----------------------------------------------------------------

    async def refresh_token(self, refresh_token: str, device_user_id: str) -> Credentials:
        """Exchange a refresh token for a fresh access token."""
        response = await self._request(
            "POST",
            self._auth_url,
            json={
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            },
            context="refresh_token",
        )
        data = response.json()
        try:
            access_token = str(data["access_token"])
            expires_in = float(data.get("expires_in", 3600))
        except (KeyError, TypeError, ValueError) as exc:
            raise DeviceServiceError(f"[refresh_token] malformed token payload: {exc}") from exc

        logger.debug("Refreshed device token, expires in %ss", expires_in)
        return Credentials(
            access_token=access_token,
            refresh_token=str(data.get("refresh_token") or refresh_token),
            expires_at=datetime.now(UTC) + timedelta(seconds=expires_in),
            device_user_id=str(data.get("userId") or device_user_id),
        )

    # -- heating --------------------------------------------------------------

    async def get_heating_status(self, credentials: Credentials) -> DeviceHeatingStatus:
        """Return whether the user's side is heating and at which level."""
        response = await self._request(
            "GET",
            f"{self._api_url}/users/{credentials.device_user_id}/temperature",
            token=credentials.access_token,
            context="get_heating_status",
        )
        try:
            return DeviceHeatingStatus.from_dict(response.json())
        except (TypeError, ValueError, AttributeError) as exc:
            raise DeviceServiceError(f"[get_heating_status] malformed payload: {exc}") from exc

    async def set_heating_level(
        self,
        credentials: Credentials,
        device_user_id: str,
        level: int,
        duration_seconds: int,
    ) -> None:
        """Turn heating on at ``level`` (-100..100) for ``duration_seconds``."""
        if not -100 <= level <= 100:
            raise ValueError(f"Heating level out of range: {level}")
        logger.info("Setting heating level %d for %ss on %s", level, duration_seconds, device_user_id)
        await self._request(
            "PUT",
            f"{self._api_url}/users/{device_user_id}/temperature",
            token=credentials.access_token,
            json={
                "currentState": {"type": "smart"},
                "timeBased": {"level": level, "durationSeconds": duration_seconds},
            },
            context="set_heating_level",
        )

    async def turn_off(self, credentials: Credentials, device_user_id: str) -> None:
        """Turn heating off for the user's side."""
        logger.info("Turning off heating on %s", device_user_id)
        await self._request(
            "PUT",
            f"{self._api_url}/users/{device_user_id}/temperature",
            token=credentials.access_token,
            json={"currentState": {"type": "off"}},
            context="turn_off",
        )


__all__ = [
    "NOT_HEATING",
    "Credentials",
    "DeviceAuthenticationError",
    "DeviceClient",
    "DeviceClientError",
    "DeviceConnectionError",
    "DeviceHeatingStatus",
    "DeviceServiceError",
]
