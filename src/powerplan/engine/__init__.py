"""Workout resolution, progression and schedule engine."""

from .loads import Coordinate, LoadContext, evaluate, round_weight
from .progression import RuleOutcome, apply_rule
from .resolver import DayResolution, ResolutionError, Workout, resolve_day
from .sets import SetResult, expand
from .statemachine import AdvanceKind, AdvanceResult, Machine, advance, transition

__all__ = [
    "AdvanceKind",
    "AdvanceResult",
    "Coordinate",
    "DayResolution",
    "LoadContext",
    "Machine",
    "ResolutionError",
    "RuleOutcome",
    "SetResult",
    "Workout",
    "advance",
    "apply_rule",
    "evaluate",
    "expand",
    "resolve_day",
    "round_weight",
    "transition",
]
