"""Device actions produced by the reconciliation engine."""

from __future__ import annotations

from dataclasses import dataclass, field

from backend.models.enums import ActionKind

# Schedule-mode commands hold for an hour; the next run re-evaluates.
PHASE_COMMAND_DURATION_SECONDS = 3600
# Preheat-only mode fires once and holds for twelve hours.
PREHEAT_DURATION_SECONDS = 43200


@dataclass(frozen=True, slots=True)
class SetLevel:
    level: int
    duration_seconds: int
    kind: ActionKind = field(default=ActionKind.set_level, init=False)

    def describe(self) -> str:
        return f"set heating to level {self.level} for {self.duration_seconds}s"


@dataclass(frozen=True, slots=True)
class TurnOff:
    kind: ActionKind = field(default=ActionKind.turn_off, init=False)

    def describe(self) -> str:
        return "turn off heating"


@dataclass(frozen=True, slots=True)
class NoOp:
    reason: str = ""
    kind: ActionKind = field(default=ActionKind.no_op, init=False)

    def describe(self) -> str:
        return f"no action ({self.reason})" if self.reason else "no action"


type Action = SetLevel | TurnOff | NoOp


__all__ = [
    "PHASE_COMMAND_DURATION_SECONDS",
    "PREHEAT_DURATION_SECONDS",
    "Action",
    "NoOp",
    "SetLevel",
    "TurnOff",
]
