"""Core reconciliation utilities for BedHeat."""

from __future__ import annotations

from .actions import Action, NoOp, SetLevel, TurnOff
from .decision_engine import Decision, ReconciliationDecisionEngine, TemperatureSettings
from .override import OverrideState, ScheduleDecision, ScheduleDecisionInput, decide_schedule_action
from .retry import RetryingCommandExecutor
from .scheduler import Phase, PhaseResult, Schedule, resolve_phase
from .time_window import in_window

__all__ = [
    "Action",
    "Decision",
    "NoOp",
    "OverrideState",
    "Phase",
    "PhaseResult",
    "ReconciliationDecisionEngine",
    "RetryingCommandExecutor",
    "Schedule",
    "ScheduleDecision",
    "ScheduleDecisionInput",
    "SetLevel",
    "TemperatureSettings",
    "TurnOff",
    "decide_schedule_action",
    "in_window",
    "resolve_phase",
]
