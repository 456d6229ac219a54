"""Reconciliation decision engine for BedHeat.

Each run asks, per user: given the clock, the user's settings and what the
bed reports, should we set a heating level, turn heating off, or leave the
bed alone? Two mutually exclusive modes exist:

* preheat-only: one heating command inside a 45 minute window starting at
  the configured preheat time; never turns the bed off.
* schedule: the active phase schedule plus manual-override inference
  (see :mod:`backend.core.override`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from backend.core.actions import PREHEAT_DURATION_SECONDS, Action, NoOp, SetLevel
from backend.core.override import (
    CLEAR_STATE,
    OverrideState,
    ScheduleDecisionInput,
    decide_schedule_action,
)
from backend.core.scheduler import PhaseResult, Schedule, resolve_phase
from backend.core.time_window import at_time_of_day, in_window
from backend.integrations.device_client import DeviceHeatingStatus
from backend.models.enums import RunMode

logger = logging.getLogger(__name__)

PREHEAT_ACTIVATION_WINDOW = timedelta(minutes=45)
# Stored preheat levels are -10..10; the device API expects -100..100.
PREHEAT_LEVEL_SCALE = 10


@dataclass(frozen=True, slots=True)
class TemperatureSettings:
    timezone: str
    preheat_only: bool = False
    preheat_time: str = "21:00"
    preheat_level: int = 10
    active_schedule_id: int | None = None
    override: OverrideState = CLEAR_STATE

    @property
    def schedule_mode(self) -> bool:
        return not self.preheat_only and self.active_schedule_id is not None


@dataclass(frozen=True, slots=True)
class Decision:
    mode: RunMode
    action: Action
    state: OverrideState | None = None
    persist: bool = False
    phase: PhaseResult | None = None


def local_time(now: datetime, timezone: str) -> datetime:
    """Convert an aware instant to the user's wall clock.

    Raises:
        zoneinfo.ZoneInfoNotFoundError: If ``timezone`` is not an IANA zone.
    """
    return now.astimezone(ZoneInfo(timezone))


class ReconciliationDecisionEngine:
    """Pick one action per user from settings, schedule and device status."""

    def decide(
        self,
        settings: TemperatureSettings,
        schedule: Schedule | None,
        status: DeviceHeatingStatus,
        now: datetime,
    ) -> Decision:
        local_now = local_time(now, settings.timezone)
        if settings.preheat_only:
            return self.decide_preheat(settings, status, local_now)
        if settings.active_schedule_id is not None:
            return self.decide_schedule(settings, schedule, status, now, local_now)
        return Decision(mode=RunMode.none, action=NoOp("no active schedule"))

    def decide_preheat(
        self,
        settings: TemperatureSettings,
        status: DeviceHeatingStatus,
        local_now: datetime,
    ) -> Decision:
        if not -10 <= settings.preheat_level <= 10:
            raise ValueError(f"Preheat level out of range: {settings.preheat_level}")

        start = at_time_of_day(local_now, settings.preheat_time)
        end = start + PREHEAT_ACTIVATION_WINDOW
        if end.date() != start.date():
            # Window crosses midnight; compare on a single calendar day.
            end -= timedelta(days=1)
        in_activation_window = in_window(local_now, start, end)

        logger.debug(
            "Preheat-only: time=%s window=%s+%s in_window=%s heating=%s",
            local_now.isoformat(),
            settings.preheat_time,
            PREHEAT_ACTIVATION_WINDOW,
            in_activation_window,
            status.is_heating,
        )
        if in_activation_window and not status.is_heating:
            action: Action = SetLevel(
                level=settings.preheat_level * PREHEAT_LEVEL_SCALE,
                duration_seconds=PREHEAT_DURATION_SECONDS,
            )
        elif in_activation_window:
            action = NoOp("preheat window, already heating")
        else:
            action = NoOp("outside preheat window")
        return Decision(mode=RunMode.preheat, action=action)

    def decide_schedule(
        self,
        settings: TemperatureSettings,
        schedule: Schedule | None,
        status: DeviceHeatingStatus,
        now: datetime,
        local_now: datetime,
    ) -> Decision:
        if schedule is None or not schedule.phases:
            return Decision(mode=RunMode.schedule, action=NoOp("no active profile or empty phases"))

        phase = resolve_phase(local_now, schedule.phases)
        result = decide_schedule_action(
            ScheduleDecisionInput(
                now=now,
                phase=phase,
                status=status,
                allow_manual_override=schedule.allow_manual_override,
                state=settings.override,
            )
        )
        logger.debug(
            "Schedule %r: time=%s phase_level=%s active=%s heating=%s level=%s -> %s",
            schedule.name,
            local_now.isoformat(),
            "off" if phase.level is None else phase.level,
            phase.is_active,
            status.is_heating,
            status.heating_level,
            result.action.describe(),
        )
        return Decision(
            mode=RunMode.schedule,
            action=result.action,
            state=result.state,
            persist=result.changed,
            phase=phase,
        )


__all__ = [
    "PREHEAT_ACTIVATION_WINDOW",
    "Decision",
    "ReconciliationDecisionEngine",
    "TemperatureSettings",
    "local_time",
]
