"""Table-driven tests for backend.core.override.decide_schedule_action."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import pytest

from backend.core.actions import NoOp, SetLevel, TurnOff
from backend.core.override import (
    CLEAR_STATE,
    FULL_OVERRIDE_EXPIRY,
    LEVEL_TWEAK_PROTECTION,
    OverrideState,
    ScheduleDecisionInput,
    decide_schedule_action,
)
from backend.core.scheduler import INACTIVE, PhaseResult
from backend.integrations.device_client import DeviceHeatingStatus
from backend.models.enums import ActionKind

NOW = datetime(2026, 2, 17, 23, 30, tzinfo=UTC)
EARLIER = NOW - timedelta(hours=1)

HEAT_20 = PhaseResult(level=20, is_active=True, phase_start_time=NOW - timedelta(minutes=90))
OFF_PHASE = PhaseResult(level=None, is_active=True, phase_start_time=NOW - timedelta(minutes=5))

OFF = DeviceHeatingStatus(is_heating=False, heating_level=0)
AT_20 = DeviceHeatingStatus(is_heating=True, heating_level=20)
AT_35 = DeviceHeatingStatus(is_heating=True, heating_level=35)

COMMANDED_20 = OverrideState(last_commanded_at=EARLIER, last_commanded_level=20)


def _input(
    phase: PhaseResult = HEAT_20,
    status: DeviceHeatingStatus = OFF,
    state: OverrideState = CLEAR_STATE,
    *,
    allow: bool = True,
    now: datetime = NOW,
) -> ScheduleDecisionInput:
    return ScheduleDecisionInput(
        now=now, phase=phase, status=status, allow_manual_override=allow, state=state
    )


@dataclass(frozen=True)
class Case:
    name: str
    inp: ScheduleDecisionInput
    kind: ActionKind
    state: OverrideState | None = None  # expected new state; None = unchanged


CASES = [
    # Inactive
    Case("inactive schedule", _input(phase=INACTIVE, status=AT_20, state=COMMANDED_20), ActionKind.no_op),
    # Rule 1: off phase
    Case(
        "off phase turns heating off and clears bookkeeping",
        _input(phase=OFF_PHASE, status=AT_20, state=COMMANDED_20),
        ActionKind.turn_off,
        CLEAR_STATE,
    ),
    Case(
        "off phase with bed off clears bookkeeping",
        _input(
            phase=OFF_PHASE,
            state=OverrideState(
                schedule_overridden_at=EARLIER,
                last_commanded_at=EARLIER,
                last_commanded_level=20,
                manual_level_override_at=EARLIER,
            ),
        ),
        ActionKind.no_op,
        CLEAR_STATE,
    ),
    # Rule 2: full override
    Case(
        "active manual off override suppresses heating",
        _input(state=OverrideState(schedule_overridden_at=EARLIER, last_commanded_at=EARLIER)),
        ActionKind.no_op,
    ),
    Case(
        "override ignored when manual override disallowed",
        _input(state=OverrideState(schedule_overridden_at=EARLIER), allow=False),
        ActionKind.set_level,
        OverrideState(
            schedule_overridden_at=EARLIER, last_commanded_at=NOW, last_commanded_level=20
        ),
    ),
    # Rule 3: manual-off inference
    Case(
        "bed off after engine turned it on means manual off",
        _input(state=COMMANDED_20),
        ActionKind.no_op,
        OverrideState(
            schedule_overridden_at=NOW, last_commanded_at=EARLIER, last_commanded_level=20
        ),
    ),
    Case(
        "manual off not inferred when overrides disallowed",
        _input(state=COMMANDED_20, allow=False),
        ActionKind.set_level,
        OverrideState(last_commanded_at=NOW, last_commanded_level=20),
    ),
    # Rule 4: first activation
    Case(
        "first activation of the cycle",
        _input(),
        ActionKind.set_level,
        OverrideState(last_commanded_at=NOW, last_commanded_level=20),
    ),
    # Rule 5: level mismatch
    Case(
        "level tweak inside protection window respected",
        _input(
            status=AT_35,
            state=OverrideState(
                last_commanded_at=EARLIER,
                last_commanded_level=20,
                manual_level_override_at=NOW - timedelta(minutes=30),
            ),
        ),
        ActionKind.no_op,
    ),
    Case(
        "expired level tweak respected for the rest of the phase",
        _input(
            status=AT_35,
            state=OverrideState(
                last_commanded_at=EARLIER,
                last_commanded_level=20,
                manual_level_override_at=NOW - timedelta(hours=2),
            ),
        ),
        ActionKind.no_op,
    ),
    Case(
        "expired level tweak replaced on a new phase",
        _input(
            status=AT_35,
            state=OverrideState(
                last_commanded_at=EARLIER,
                last_commanded_level=10,
                manual_level_override_at=NOW - timedelta(hours=2),
            ),
        ),
        ActionKind.set_level,
        OverrideState(last_commanded_at=NOW, last_commanded_level=20),
    ),
    Case(
        "level differs from what engine set means manual tweak",
        _input(status=AT_35, state=COMMANDED_20),
        ActionKind.no_op,
        OverrideState(
            last_commanded_at=EARLIER, last_commanded_level=20, manual_level_override_at=NOW
        ),
    ),
    Case(
        "phase transition applies new level",
        _input(status=AT_35, state=OverrideState(last_commanded_at=EARLIER, last_commanded_level=10)),
        ActionKind.set_level,
        OverrideState(last_commanded_at=NOW, last_commanded_level=20),
    ),
    Case(
        "tweak not inferred when overrides disallowed",
        _input(status=AT_35, state=COMMANDED_20, allow=False),
        ActionKind.set_level,
        OverrideState(last_commanded_at=NOW, last_commanded_level=20),
    ),
    # Rule 6: already correct
    Case("already at phase level", _input(status=AT_20, state=COMMANDED_20), ActionKind.no_op),
]


@pytest.mark.parametrize("case", CASES, ids=[c.name for c in CASES])
def test_decide_schedule_action(case: Case) -> None:
    decision = decide_schedule_action(case.inp)

    assert decision.action.kind is case.kind
    expected_state = case.state if case.state is not None else case.inp.state
    assert decision.state == expected_state
    assert decision.changed is (expected_state != case.inp.state)


def test_set_level_uses_phase_level_and_one_hour_duration() -> None:
    decision = decide_schedule_action(_input())
    assert decision.action == SetLevel(level=20, duration_seconds=3600)


def test_off_phase_action_is_turn_off() -> None:
    decision = decide_schedule_action(_input(phase=OFF_PHASE, status=AT_20))
    assert isinstance(decision.action, TurnOff)


class TestFullOverrideExpiry:
    def test_override_still_active_just_before_expiry(self) -> None:
        overridden = OverrideState(
            schedule_overridden_at=NOW - FULL_OVERRIDE_EXPIRY + timedelta(seconds=1),
            last_commanded_at=EARLIER - timedelta(hours=18),
            last_commanded_level=20,
        )
        decision = decide_schedule_action(_input(state=overridden))
        assert isinstance(decision.action, NoOp)
        assert not decision.changed

    def test_manual_off_then_expiry_issues_set_level(self) -> None:
        # Run 1: the engine turned the bed on earlier; now it is off.
        first = decide_schedule_action(_input(state=COMMANDED_20))
        assert isinstance(first.action, NoOp)
        assert first.state.schedule_overridden_at == NOW

        # Run 2: 18h + 1s later, unchanged conditions.
        later = NOW + FULL_OVERRIDE_EXPIRY + timedelta(seconds=1)
        second = decide_schedule_action(_input(state=first.state, now=later))
        assert second.action == SetLevel(level=20, duration_seconds=3600)
        assert second.state == OverrideState(last_commanded_at=later, last_commanded_level=20)

    def test_expired_override_at_correct_level_does_not_write(self) -> None:
        stale = OverrideState(
            schedule_overridden_at=NOW - timedelta(hours=19),
            last_commanded_at=NOW - timedelta(hours=20),
            last_commanded_level=20,
        )
        decision = decide_schedule_action(_input(status=AT_20, state=stale))
        assert isinstance(decision.action, NoOp)
        assert decision.state == stale
        assert not decision.changed

    def test_expired_override_with_protected_tweak_does_not_write(self) -> None:
        stale = OverrideState(
            schedule_overridden_at=NOW - timedelta(hours=19),
            last_commanded_at=NOW - timedelta(hours=20),
            last_commanded_level=20,
            manual_level_override_at=NOW - timedelta(minutes=10),
        )
        decision = decide_schedule_action(_input(status=AT_35, state=stale))
        assert isinstance(decision.action, NoOp)
        assert not decision.changed


class TestLevelTweakProtection:
    def test_tweak_window_then_new_phase(self) -> None:
        tweak = decide_schedule_action(_input(status=AT_35, state=COMMANDED_20))
        assert isinstance(tweak.action, NoOp)
        tweaked_at = tweak.state.manual_level_override_at
        assert tweaked_at == NOW

        for minutes in (0, 30, 89):
            inside = decide_schedule_action(
                _input(status=AT_35, state=tweak.state, now=NOW + timedelta(minutes=minutes))
            )
            assert isinstance(inside.action, NoOp)
            assert not inside.changed

        new_phase = PhaseResult(level=30, is_active=True, phase_start_time=NOW + timedelta(hours=1))
        later = NOW + LEVEL_TWEAK_PROTECTION + timedelta(minutes=1)
        after = decide_schedule_action(
            _input(phase=new_phase, status=AT_35, state=tweak.state, now=later)
        )
        assert after.action == SetLevel(level=30, duration_seconds=3600)
        assert after.state.manual_level_override_at is None
        assert after.state.last_commanded_level == 30
        assert after.state.last_commanded_at == later


def test_repeated_runs_at_correct_level_never_write() -> None:
    state = COMMANDED_20
    for minutes in (0, 30):
        decision = decide_schedule_action(
            _input(status=AT_20, state=state, now=NOW + timedelta(minutes=minutes))
        )
        assert isinstance(decision.action, NoOp)
        assert not decision.changed
        state = decision.state
