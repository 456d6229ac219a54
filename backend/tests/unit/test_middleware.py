"""Tests for backend.api.middleware.CronSecretMiddleware."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.routing import Route

from backend.api.middleware import CronSecretMiddleware

PREFIX = "/api/v1/temperature-cron"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _ok(request: Request) -> PlainTextResponse:
    return PlainTextResponse("ok")


def _app(secret: str) -> Starlette:
    app = Starlette(
        routes=[
            Route("/health", _ok),
            Route(PREFIX, _ok),
            Route(f"{PREFIX}/extra", _ok),
        ],
    )
    app.add_middleware(CronSecretMiddleware, secret=secret, protected_prefix=PREFIX)
    return app


@pytest.fixture()
async def client() -> AsyncGenerator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=_app("s3cret")), base_url="http://test") as c:
        yield c


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


async def test_missing_header_rejected(client: AsyncClient) -> None:
    response = await client.get(PREFIX)
    assert response.status_code == 401
    assert response.text == "Unauthorized"


async def test_wrong_secret_rejected(client: AsyncClient) -> None:
    response = await client.get(PREFIX, headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401


async def test_secret_without_bearer_scheme_rejected(client: AsyncClient) -> None:
    response = await client.get(PREFIX, headers={"Authorization": "s3cret"})
    assert response.status_code == 401


async def test_correct_secret_passes(client: AsyncClient) -> None:
    response = await client.get(PREFIX, headers={"Authorization": "Bearer s3cret"})
    assert response.status_code == 200
    assert response.text == "ok"


async def test_non_ascii_header_rejected(client: AsyncClient) -> None:
    response = await client.get(PREFIX, headers={"Authorization": "Bearer café".encode()})
    assert response.status_code == 401
    assert response.text == "Unauthorized"


async def test_non_ascii_secret_accepted() -> None:
    transport = ASGITransport(app=_app("café"))
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        ok = await c.get(PREFIX, headers={"Authorization": "Bearer café".encode()})
        assert ok.status_code == 200
        assert (await c.get(PREFIX, headers={"Authorization": "Bearer cafe"})).status_code == 401


async def test_sub_path_protected(client: AsyncClient) -> None:
    response = await client.get(f"{PREFIX}/extra")
    assert response.status_code == 401


async def test_unprotected_path_passes(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200


async def test_empty_secret_closes_endpoint() -> None:
    transport = ASGITransport(app=_app(""))
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        assert (await c.get(PREFIX, headers={"Authorization": "Bearer "})).status_code == 401
        assert (await c.get(PREFIX)).status_code == 401
        assert (await c.get("/health")).status_code == 200
