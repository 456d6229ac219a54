"""Phase schedule parsing and lookup utilities for BedHeat."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from backend.core.time_window import at_time_of_day

# Off phases only re-affirm "off" this long after they begin.
OFF_PHASE_ACTIVE_WINDOW = timedelta(minutes=30)


@dataclass(frozen=True, slots=True)
class Phase:
    time: str  # HH:MM, local, recurring daily
    level: int | None  # -100..100, None = off

    @property
    def is_off(self) -> bool:
        return self.level is None


@dataclass(frozen=True, slots=True)
class Schedule:
    id: int
    name: str
    phases: tuple[Phase, ...]
    allow_manual_override: bool = True


@dataclass(frozen=True, slots=True)
class PhaseResult:
    level: int | None
    is_active: bool
    phase_start_time: datetime | None

    @property
    def is_off(self) -> bool:
        return self.is_active and self.level is None


INACTIVE = PhaseResult(level=None, is_active=False, phase_start_time=None)


def parse_phases(raw: Iterable[Mapping[str, Any]]) -> list[Phase]:
    """Build phases from stored JSON.

    Raises:
        pydantic.ValidationError: On a malformed time or out-of-range level.
    """
    from backend.models.schemas import PhaseSchema

    return [
        Phase(time=parsed.time, level=parsed.level)
        for parsed in (PhaseSchema.model_validate(item) for item in raw)
    ]


def resolve_phase(now: datetime, phases: Sequence[Phase]) -> PhaseResult:
    """Return the phase in effect at ``now`` (user-local time).

    Each phase contributes today's and yesterday's occurrence; the most
    recently started occurrence wins, which makes overnight schedules work
    without requiring the phases to be sorted.
    """
    best_start: datetime | None = None
    best: Phase | None = None
    for phase in phases:
        today = at_time_of_day(now, phase.time)
        for start in (today, today - timedelta(days=1)):
            if start <= now and (best_start is None or start > best_start):
                best_start = start
                best = phase

    if best is None or best_start is None:
        return INACTIVE

    if best.is_off:
        if best_start <= now < best_start + OFF_PHASE_ACTIVE_WINDOW:
            return PhaseResult(level=None, is_active=True, phase_start_time=best_start)
        return INACTIVE

    return PhaseResult(level=best.level, is_active=True, phase_start_time=best_start)


__all__ = [
    "INACTIVE",
    "OFF_PHASE_ACTIVE_WINDOW",
    "Phase",
    "PhaseResult",
    "Schedule",
    "parse_phases",
    "resolve_phase",
]
