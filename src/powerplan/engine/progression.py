"""Progression rule evaluation.

``apply_rule`` is pure with respect to storage: it reads the current max
value and mutates the failure counter and stage state objects it is handed.
The caller persists whatever changed.
"""

from dataclasses import dataclass

from ..errors import ConfigurationError, ValidationError
from ..models.progression import (
    AmrapGuidedProgression,
    CycleProgression,
    DeloadOnFailureProgression,
    DeloadType,
    DoubleProgression,
    FailureCounter,
    FinalFailureAction,
    LinearProgression,
    Progression,
    ProgressionAction,
    StageProgression,
    TriggerEvent,
    TriggerType,
    UserProgressionState,
)
from .loads import round_weight

CHECKPOINT_KEY = "checkpoint_value"
RETEST_KEY = "retest_pending"


@dataclass
class RuleOutcome:
    """Result of evaluating one rule against one event."""

    applied: bool
    previous_value: float
    new_value: float
    action: ProgressionAction | None = None
    reason: str = ""

    @property
    def delta(self) -> float:
        return self.new_value - self.previous_value

    @property
    def max_changed(self) -> bool:
        return self.new_value != self.previous_value


def _skip(value: float, reason: str) -> RuleOutcome:
    return RuleOutcome(applied=False, previous_value=value, new_value=value, reason=reason)


def _increment(value: float, increment: float, reason: str) -> RuleOutcome:
    return RuleOutcome(
        applied=True,
        previous_value=value,
        new_value=value + increment,
        action=ProgressionAction.INCREMENT,
        reason=reason,
    )


def _apply_linear(rule, value, event, lift_id, override) -> RuleOutcome:
    performed = event.context.lifts_performed
    if event.type == TriggerType.AFTER_SESSION and performed and lift_id not in performed:
        return _skip(value, "lift not performed in session")
    increment = rule.increment if override is None else override
    return _increment(value, increment, f"linear +{increment}")


def _apply_double(rule: DoubleProgression, value: float, event: TriggerEvent, override) -> RuleOutcome:
    reps = event.context.reps_performed
    if reps is None:
        return _skip(value, "reps performed not reported")
    if reps < rule.rep_ceiling:
        return _skip(value, f"rep ceiling not reached: performed {reps}, need {rule.rep_ceiling}")
    increment = rule.weight_increment if override is None else override
    return _increment(value, increment, f"{reps} reps at the ceiling: +{increment}")


def _apply_cycle(rule, value, override) -> RuleOutcome:
    increment = rule.increment if override is None else override
    return _increment(value, increment, f"cycle +{increment}")


def _apply_amrap(rule: AmrapGuidedProgression, value: float, event: TriggerEvent) -> RuleOutcome:
    reps = event.context.amrap_reps
    if reps is None:
        return _skip(value, "no AMRAP result reported")
    bucket = rule.bucket_for(reps)
    if bucket is None:
        return _skip(value, f"insufficient performance ({reps} reps)")
    return _increment(
        value,
        bucket.increment,
        f"{reps} reps in {bucket.min_reps}-{bucket.max_reps} range: +{bucket.increment}",
    )


def _apply_stage(
    rule: StageProgression, value: float, state: UserProgressionState | None
) -> RuleOutcome:
    if state is None:
        raise ConfigurationError(
            "STAGE progressions need a progression state", {"progression_id": rule.id}
        )

    # Value the max had when the current pass through the stages began
    checkpoint = state.state.setdefault(CHECKPOINT_KEY, value)
    last = len(rule.stages) - 1

    if state.current_stage < last:
        state.current_stage += 1
        return RuleOutcome(
            applied=True,
            previous_value=value,
            new_value=value,
            action=ProgressionAction.STAGE_ADVANCE,
            reason=f"advanced to stage {rule.stage(state.current_stage).name}",
        )

    state.current_stage = 0
    del state.state[CHECKPOINT_KEY]
    if rule.on_final_failure == FinalFailureAction.RETEST_1RM:
        state.state[RETEST_KEY] = True
        return RuleOutcome(
            applied=True,
            previous_value=value,
            new_value=value,
            action=ProgressionAction.RETEST_1RM,
            reason="final stage failed: retest 1RM",
        )

    new_value = checkpoint * rule.reset_percentage / 100
    return RuleOutcome(
        applied=True,
        previous_value=value,
        new_value=new_value,
        action=ProgressionAction.RESET_WEIGHT,
        reason=f"final stage failed: reset to {rule.reset_percentage}% of {checkpoint}",
    )


def _apply_deload(
    rule: DeloadOnFailureProgression,
    value: float,
    event: TriggerEvent,
    counter: FailureCounter | None,
) -> RuleOutcome:
    if counter is None:
        raise ConfigurationError(
            "DELOAD_ON_FAILURE progressions need a failure counter",
            {"progression_id": rule.id},
        )

    if event.type != TriggerType.ON_FAILURE:
        if not event.is_success:
            return _skip(value, "event does not report a success")
        if counter.consecutive_failures == 0:
            return _skip(value, "no failures to reset")
        counter.record_success(event.timestamp)
        return RuleOutcome(
            applied=True,
            previous_value=value,
            new_value=value,
            action=ProgressionAction.COUNTER_RESET,
            reason="success reset failure counter",
        )

    failures = counter.record_failure(event.timestamp)
    if not counter.meets(rule.failure_threshold):
        return RuleOutcome(
            applied=True,
            previous_value=value,
            new_value=value,
            action=ProgressionAction.FAILURE_RECORDED,
            reason=f"failure {failures} of {rule.failure_threshold}",
        )

    if rule.deload_type == DeloadType.PERCENT:
        new_value = value * (1 - rule.deload_percent / 100)
    else:
        new_value = value - rule.deload_amount
    new_value = round_weight(new_value, rule.round_to)
    if new_value <= 0:
        raise ValidationError(
            "Deload would leave a non-positive max",
            {"progression_id": rule.id, "value": value},
        )
    counter.reset()
    return RuleOutcome(
        applied=True,
        previous_value=value,
        new_value=new_value,
        action=ProgressionAction.DELOAD,
        reason=f"{failures} consecutive failures: deload",
    )


def apply_rule(
    rule: Progression,
    current_value: float,
    event: TriggerEvent,
    lift_id: str,
    counter: FailureCounter | None = None,
    stage_state: UserProgressionState | None = None,
    increment_override: float | None = None,
) -> RuleOutcome:
    """Evaluate a progression rule against a trigger event.

    Args:
        rule: The progression rule
        current_value: Current reference max value for the rule's max kind
        event: The trigger event
        lift_id: Lift the rule is applied to
        counter: Failure counter, required by DELOAD_ON_FAILURE
        stage_state: Progression state, required by STAGE
        increment_override: Per program-lift increment for LINEAR and CYCLE

    Returns:
        The outcome. ``applied`` is False when the rule didn't act.

    Raises:
        ValidationError: If a deload would leave a non-positive max
        ConfigurationError: If required state wasn't supplied
    """
    if event.type not in rule.triggers:
        return _skip(
            current_value, f"{rule.type.value} does not react to {event.type.value}"
        )

    if isinstance(rule, LinearProgression):
        return _apply_linear(rule, current_value, event, lift_id, increment_override)
    if isinstance(rule, DoubleProgression):
        return _apply_double(rule, current_value, event, increment_override)
    if isinstance(rule, CycleProgression):
        return _apply_cycle(rule, current_value, increment_override)
    if isinstance(rule, AmrapGuidedProgression):
        return _apply_amrap(rule, current_value, event)
    if isinstance(rule, StageProgression):
        return _apply_stage(rule, current_value, stage_state)
    if isinstance(rule, DeloadOnFailureProgression):
        return _apply_deload(rule, current_value, event, counter)
    raise ConfigurationError(f"Unsupported progression: {type(rule).__name__}")
