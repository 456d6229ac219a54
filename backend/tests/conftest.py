import os
import sys
from collections.abc import AsyncGenerator
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

BASE_DIR = Path(__file__).resolve().parents[2]
if str(BASE_DIR) not in sys.path:
    sys.path.append(str(BASE_DIR))

# Must be set before backend.config is first imported.
os.environ.setdefault("BEDHEAT_CRON_SECRET", "test-cron-secret")
os.environ.setdefault("BEDHEAT_REDIS_URL", "")

from backend.api.dependencies import get_coordinator  # noqa: E402
from backend.api.main import app  # noqa: E402


@pytest.fixture()
def cron_secret() -> str:
    return os.environ["BEDHEAT_CRON_SECRET"]


@pytest.fixture()
def coordinator() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
async def client(coordinator: AsyncMock) -> AsyncGenerator[AsyncClient]:
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()
