"""Error taxonomy for powerplan.

Every error carries a stable ``code`` and a ``details`` dict so the CLI and
the HTTP layer can report it without knowing the concrete class.
"""

from typing import Any


class PowerplanError(Exception):
    """Base class for all powerplan errors."""

    code = "powerplan_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(PowerplanError, ValueError):
    """Malformed input: bad percentages, empty steps, unknown references."""

    code = "validation_error"


class ConfigurationError(PowerplanError):
    """A definition is structurally valid but cannot produce a workout."""

    code = "configuration_error"


class UnknownVariant(ValidationError):
    """A tagged value carries a type tag that isn't recognised."""

    code = "unknown_variant"

    def __init__(self, kind: str, tag: Any):
        super().__init__(
            f"Unknown {kind} type: {tag!r}", {"kind": kind, "tag": tag}
        )
        self.kind = kind
        self.tag = tag


class NotFound(PowerplanError):
    """A referenced entity doesn't exist."""

    code = "not_found"

    def __init__(self, entity: str, identifier: Any):
        super().__init__(
            f"{entity} not found: {identifier}",
            {"entity": entity, "id": identifier},
        )
        self.entity = entity
        self.identifier = identifier


class MissingReferenceMax(PowerplanError):
    """No reference max of the required kind is recorded for a lift."""

    code = "missing_reference_max"

    def __init__(self, lift_id: str, kind: str, reps: int | None = None):
        label = f"{kind} ({reps} reps)" if reps else kind
        super().__init__(
            f"No {label} recorded for lift '{lift_id}'",
            {"lift_id": lift_id, "kind": kind, "reps": reps},
        )
        self.lift_id = lift_id
        self.kind = kind
        self.reps = reps


class LookupMiss(PowerplanError):
    """A lookup table has no row for the requested key."""

    code = "lookup_miss"

    def __init__(self, table_id: str, key: Any):
        super().__init__(
            f"Lookup table '{table_id}' has no entry for {key!r}",
            {"table_id": table_id, "key": key},
        )
        self.table_id = table_id
        self.key = key


class InvalidTransition(PowerplanError):
    """A state machine was asked to make a transition not in its graph."""

    code = "invalid_transition"

    def __init__(self, machine: str, from_state: str, to_state: str):
        super().__init__(
            f"Invalid {machine} transition: {from_state} -> {to_state}",
            {"machine": machine, "from": from_state, "to": to_state},
        )
        self.machine = machine
        self.from_state = from_state
        self.to_state = to_state


class InvalidEnrollmentState(PowerplanError):
    """The enrollment isn't in a state that allows the requested operation."""

    code = "invalid_enrollment_state"


class NotEnrolled(PowerplanError):
    """The user has no enrollment."""

    code = "not_enrolled"

    def __init__(self, user_id: str):
        super().__init__(f"User '{user_id}' is not enrolled in a program", {"user_id": user_id})
        self.user_id = user_id


class SessionAlreadyInProgress(PowerplanError):
    """A workout session is already open for the enrollment."""

    code = "workout_already_in_progress"

    def __init__(self, session_id: int | None):
        super().__init__(
            f"Workout session {session_id} is already in progress",
            {"session_id": session_id},
        )
        self.session_id = session_id


class NoActiveSession(PowerplanError):
    """There is no IN_PROGRESS workout session to finish or abandon."""

    code = "no_active_workout"


class StaleStateError(PowerplanError):
    """A program state write lost an optimistic concurrency race."""

    code = "stale_state"


class DuplicateProgressionTrigger(PowerplanError):
    """The progression log already holds a row for this trigger key."""

    code = "duplicate_progression_trigger"
