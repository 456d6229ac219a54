"""Tests for the in-process scheduled reconciliation job in backend.api.main."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from backend.api import main
from backend.core.run_coordinator import RunReport, UserRunOutcome


def _coordinator(report: RunReport | None = None, error: Exception | None = None) -> MagicMock:
    coordinator = MagicMock()
    coordinator.run = AsyncMock(return_value=report, side_effect=error)
    return coordinator


async def test_runs_live_and_logs_summary(caplog: pytest.LogCaptureFixture) -> None:
    report = RunReport(
        started_at=datetime(2026, 2, 17, 23, 30, tzinfo=UTC),
        dry_run=False,
        outcomes=[
            UserRunOutcome(email="a@example.com"),
            UserRunOutcome(email="b@example.com", success=False),
        ],
    )
    coordinator = _coordinator(report)

    with (
        patch.object(main, "build_coordinator", return_value=coordinator),
        caplog.at_level(logging.INFO, logger="backend.api.main"),
    ):
        await main.run_temperature_adjustment()

    coordinator.run.assert_awaited_once_with()
    assert "2 users, 1 failed" in caplog.text


async def test_skipped_run_logged(caplog: pytest.LogCaptureFixture) -> None:
    report = RunReport(started_at=datetime.now(UTC), dry_run=False, skipped=True)

    with (
        patch.object(main, "build_coordinator", return_value=_coordinator(report)),
        caplog.at_level(logging.INFO, logger="backend.api.main"),
    ):
        await main.run_temperature_adjustment()

    assert "skipped" in caplog.text


async def test_failure_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    coordinator = _coordinator(error=RuntimeError("database unavailable"))

    with (
        patch.object(main, "build_coordinator", return_value=coordinator),
        caplog.at_level(logging.ERROR, logger="backend.api.main"),
    ):
        await main.run_temperature_adjustment()

    assert "database unavailable" in caplog.text


def test_init_scheduler_registers_interval_job() -> None:
    scheduler = main.init_scheduler()

    job = scheduler.get_job("temperature_adjustment")
    assert job is not None
    assert job.func is main.run_temperature_adjustment
    assert job.trigger.interval == timedelta(minutes=main.settings_instance.run_interval_minutes)
