"""Manual-override inference for schedule mode.

The engine never sees the user touch the device; it only sees periodic
snapshots. Overrides are inferred by comparing what the engine last
commanded (``OverrideState``) with what the device reports now:

* the engine turned heating on and the device is now off -> the user
  switched it off; leave it alone until the next off phase (or 18 hours);
* the engine set a level and the device now runs at another level -> the
  user tweaked it; respect that for 90 minutes, and for the rest of the
  phase unless a new phase asks for a different level.

``decide_schedule_action`` is a pure function: state goes in, a new state
comes out, and the storage layer decides when to write it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from backend.core.actions import PHASE_COMMAND_DURATION_SECONDS, Action, NoOp, SetLevel, TurnOff
from backend.core.scheduler import PhaseResult
from backend.integrations.device_client import DeviceHeatingStatus

logger = logging.getLogger(__name__)

FULL_OVERRIDE_EXPIRY = timedelta(hours=18)
LEVEL_TWEAK_PROTECTION = timedelta(minutes=90)


@dataclass(frozen=True, slots=True)
class OverrideState:
    """Per-user bookkeeping written only by the reconciliation engine."""

    schedule_overridden_at: datetime | None = None
    last_commanded_at: datetime | None = None
    last_commanded_level: int | None = None
    manual_level_override_at: datetime | None = None

    def commanded(self, now: datetime, level: int) -> OverrideState:
        return replace(
            self,
            last_commanded_at=now,
            last_commanded_level=level,
            manual_level_override_at=None,
        )

    def full_override_expired(self, now: datetime) -> bool:
        return (
            self.schedule_overridden_at is not None
            and now - self.schedule_overridden_at >= FULL_OVERRIDE_EXPIRY
        )

    def level_tweak_protected(self, now: datetime) -> bool:
        return (
            self.manual_level_override_at is not None
            and now - self.manual_level_override_at < LEVEL_TWEAK_PROTECTION
        )


CLEAR_STATE = OverrideState()


@dataclass(frozen=True, slots=True)
class ScheduleDecisionInput:
    now: datetime
    phase: PhaseResult
    status: DeviceHeatingStatus
    allow_manual_override: bool
    state: OverrideState


@dataclass(frozen=True, slots=True)
class ScheduleDecision:
    action: Action
    state: OverrideState
    changed: bool


def _decision(inp: ScheduleDecisionInput, action: Action, state: OverrideState) -> ScheduleDecision:
    return ScheduleDecision(action=action, state=state, changed=state != inp.state)


def decide_schedule_action(inp: ScheduleDecisionInput) -> ScheduleDecision:
    """Choose the schedule-mode action for one user."""
    phase = inp.phase
    status = inp.status
    now = inp.now

    if not phase.is_active:
        return _decision(inp, NoOp("schedule inactive"), inp.state)

    # Each off period starts a clean override cycle.
    if phase.level is None:
        if status.is_heating:
            return _decision(inp, TurnOff(), CLEAR_STATE)
        return _decision(inp, NoOp("off phase, already off"), CLEAR_STATE)

    level = phase.level
    state = inp.state

    if state.full_override_expired(now):
        # Safety reset: the stale override and the command it reacted to are
        # both discarded so the schedule can take control again. Plain NoOps
        # below keep the stored state; the reset is written with the next
        # command or inference.
        logger.info("Manual off override expired after %s", FULL_OVERRIDE_EXPIRY)
        state = replace(state, schedule_overridden_at=None, last_commanded_at=None)

    if inp.allow_manual_override and state.schedule_overridden_at is not None:
        return _decision(inp, NoOp("manual off override active"), state)

    if not status.is_heating:
        if inp.allow_manual_override and state.last_commanded_at is not None:
            return _decision(
                inp, NoOp("manual off detected"), replace(state, schedule_overridden_at=now)
            )
        return _decision(
            inp,
            SetLevel(level=level, duration_seconds=PHASE_COMMAND_DURATION_SECONDS),
            state.commanded(now, level),
        )

    if status.heating_level == level:
        return _decision(inp, NoOp("already at phase level"), inp.state)

    apply = SetLevel(level=level, duration_seconds=PHASE_COMMAND_DURATION_SECONDS)
    same_phase = state.last_commanded_level == level

    if state.manual_level_override_at is not None:
        if state.level_tweak_protected(now):
            return _decision(inp, NoOp("manual level tweak protected"), inp.state)
        if same_phase:
            return _decision(inp, NoOp("manual level tweak respected for this phase"), inp.state)
        return _decision(inp, apply, state.commanded(now, level))

    if inp.allow_manual_override and same_phase:
        return _decision(
            inp, NoOp("manual level tweak detected"), replace(state, manual_level_override_at=now)
        )

    return _decision(inp, apply, state.commanded(now, level))


__all__ = [
    "CLEAR_STATE",
    "FULL_OVERRIDE_EXPIRY",
    "LEVEL_TWEAK_PROTECTION",
    "OverrideState",
    "ScheduleDecision",
    "ScheduleDecisionInput",
    "decide_schedule_action",
]
