"""Batch reconciliation run over every user profile."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from backend.core.actions import Action, NoOp, SetLevel, TurnOff
from backend.core.decision_engine import ReconciliationDecisionEngine
from backend.core.override import OverrideState
from backend.core.retry import RetryingCommandExecutor
from backend.core.scheduler import Schedule
from backend.integrations.device_client import NOT_HEATING, Credentials, DeviceClient
from backend.models.enums import ActionKind, RunMode
from backend.services.profile_store import UserProfile
from backend.services.run_lock import RunLock

logger = logging.getLogger(__name__)


class ProfileRepository(Protocol):
    async def list_profiles(self) -> list[UserProfile]: ...

    async def get_schedule(self, schedule_id: int) -> Schedule | None: ...

    async def save_credentials(self, email: str, credentials: Credentials) -> None: ...

    async def save_override_state(
        self, email: str, expected: OverrideState, new: OverrideState
    ) -> bool: ...


@dataclass(slots=True)
class UserRunOutcome:
    email: str
    mode: RunMode = RunMode.none
    action: ActionKind | None = None
    success: bool = True
    error: str | None = None


@dataclass(slots=True)
class RunReport:
    started_at: datetime
    dry_run: bool
    outcomes: list[UserRunOutcome] = field(default_factory=list)
    skipped: bool = False

    @property
    def users_failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RunCoordinator:
    """Run the reconciliation engine once for every user.

    A failure for one user is logged and recorded in that user's outcome;
    the remaining users are still processed. Failing to load the profile
    list aborts the run.
    """

    def __init__(
        self,
        *,
        store: ProfileRepository,
        device: DeviceClient,
        executor: RetryingCommandExecutor | None = None,
        engine: ReconciliationDecisionEngine | None = None,
        run_lock: RunLock | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._device = device
        self._executor = executor or RetryingCommandExecutor()
        self._engine = engine or ReconciliationDecisionEngine()
        self._run_lock = run_lock or RunLock(None, ttl_seconds=0)
        self._clock = clock

    async def run(self, simulated_time: datetime | None = None) -> RunReport:
        """Process all users.

        With ``simulated_time`` the run is a dry run: that instant is "now"
        for every user, the bed is assumed off, and nothing is written or
        sent to the device.
        """
        dry_run = simulated_time is not None
        now = simulated_time if simulated_time is not None else self._clock()
        report = RunReport(started_at=now, dry_run=dry_run)

        if dry_run:
            logger.info("[TEST MODE] Running temperature adjustment at %s", now.isoformat())
            await self._process_all(report, now)
            return report

        async with self._run_lock.hold() as acquired:
            if not acquired:
                logger.warning("Another reconciliation run is in progress; skipping")
                report.skipped = True
                return report
            await self._process_all(report, now)
        return report

    async def _process_all(self, report: RunReport, now: datetime) -> None:
        try:
            profiles = await self._store.list_profiles()
        except Exception:
            logger.exception("Error fetching user profiles")
            raise

        for profile in profiles:
            report.outcomes.append(await self._process_user(profile, now, dry_run=report.dry_run))

        logger.info(
            "Temperature adjustment finished: %d users, %d failed",
            len(report.outcomes),
            report.users_failed,
        )

    async def _process_user(
        self, profile: UserProfile, now: datetime, *, dry_run: bool
    ) -> UserRunOutcome:
        outcome = UserRunOutcome(email=profile.email)
        try:
            credentials = profile.credentials
            if not dry_run and credentials.is_expired(self._clock()):
                logger.info("Device token expired, refreshing for %s", profile.email)
                credentials = await self._executor.run(
                    self._device.refresh_token,
                    credentials.refresh_token,
                    credentials.device_user_id,
                    description=f"refresh_token({profile.email})",
                )
                await self._store.save_credentials(profile.email, credentials)

            if dry_run:
                status = NOT_HEATING
            else:
                status = await self._executor.run(
                    self._device.get_heating_status,
                    credentials,
                    description=f"get_heating_status({profile.email})",
                )

            settings = profile.settings
            schedule = None
            if settings.schedule_mode and settings.active_schedule_id is not None:
                schedule = await self._store.get_schedule(settings.active_schedule_id)

            decision = self._engine.decide(settings, schedule, status, now)
            outcome.mode = decision.mode
            outcome.action = decision.action.kind

            if dry_run:
                logger.info(
                    "[TEST MODE] Would %s for user %s", decision.action.describe(), profile.email
                )
                return outcome

            await self._apply(decision.action, credentials, profile.email)

            if decision.mode is RunMode.schedule and decision.persist and decision.state is not None:
                await self._store.save_override_state(
                    profile.email, settings.override, decision.state
                )

            logger.info(
                "Completed temperature adjustment for %s: %s",
                profile.email,
                decision.action.describe(),
            )
        except Exception as exc:
            logger.exception("Error adjusting temperature for user %s", profile.email)
            outcome.success = False
            outcome.error = str(exc) or type(exc).__name__
        return outcome

    async def _apply(self, action: Action, credentials: Credentials, email: str) -> None:
        match action:
            case SetLevel(level=level, duration_seconds=duration):
                await self._executor.run(
                    self._device.set_heating_level,
                    credentials,
                    credentials.device_user_id,
                    level,
                    duration,
                    description=f"set_heating_level({email})",
                )
            case TurnOff():
                await self._executor.run(
                    self._device.turn_off,
                    credentials,
                    credentials.device_user_id,
                    description=f"turn_off({email})",
                )
            case NoOp():
                pass


__all__ = ["ProfileRepository", "RunCoordinator", "RunReport", "UserRunOutcome"]
