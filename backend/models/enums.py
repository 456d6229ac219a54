"""Domain enums for BedHeat models."""

from enum import StrEnum


class ActionKind(StrEnum):
    set_level = "set_level"
    turn_off = "turn_off"
    no_op = "no_op"


class RunMode(StrEnum):
    preheat = "preheat"
    schedule = "schedule"
    none = "none"
