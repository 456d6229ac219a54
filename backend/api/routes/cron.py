"""Cron trigger for the temperature reconciliation run."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, status

from backend.api.dependencies import CoordinatorDep
from backend.core.run_coordinator import RunReport
from backend.models.schemas import RunReportResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def parse_test_time(raw: str) -> datetime:
    """Parse a ``testTime`` query value (epoch seconds) into an aware UTC instant."""
    try:
        return datetime.fromtimestamp(float(raw), tz=UTC)
    except (TypeError, ValueError, OverflowError, OSError) as exc:
        raise ValueError(f"Invalid testTime parameter: {raw!r}") from exc


def _to_response(report: RunReport) -> RunReportResponse:
    return RunReportResponse(
        dry_run=report.dry_run,
        started_at=report.started_at,
        users_processed=len(report.outcomes),
        users_failed=report.users_failed,
        skipped=report.skipped,
    )


@router.get("", response_model=RunReportResponse)
async def run_temperature_adjustment(
    coordinator: CoordinatorDep,
    test_time: Annotated[str | None, Query(alias="testTime")] = None,
) -> RunReportResponse:
    """Run one reconciliation pass for every user.

    ``testTime`` (epoch seconds) switches to a dry run at that instant: no
    device commands and no bookkeeping writes.
    """
    try:
        if test_time:
            simulated = parse_test_time(test_time)
            logger.info(
                "[TEST MODE] Running temperature adjustment cron job with test time: %s",
                simulated.isoformat(),
            )
            report = await coordinator.run(simulated_time=simulated)
        else:
            report = await coordinator.run()
    except Exception as exc:
        logger.error("Error in temperature adjustment cron job: %s", exc, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error"
        ) from exc
    return _to_response(report)
