"""Progression service: applies rules to reference maxes exactly once."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

from ..db.repositories import (
    CatalogRepository,
    ProgramStateRepository,
    ProgressionRepository,
    ReferenceMaxRepository,
    WorkoutSessionRepository,
)
from ..engine.progression import apply_rule
from ..errors import (
    DuplicateProgressionTrigger,
    MissingReferenceMax,
    NotEnrolled,
    PowerplanError,
)
from ..models.catalog import Catalog
from ..models.lift import MaxKind, ReferenceMax, estimate_one_rm
from ..models.progress import LoggedSet
from ..models.progression import (
    DeloadOnFailureProgression,
    ProgressionAction,
    ProgressionLog,
    StageProgression,
    TriggerContext,
    TriggerEvent,
    TriggerType,
)

log = logging.getLogger(__name__)

ALREADY_APPLIED = "already applied"


class ResultStatus(str, Enum):
    """Outcome of a progression trigger."""

    APPLIED = "applied"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass
class ProgressionResult:
    """What happened when a progression was triggered for one lift."""

    status: ResultStatus
    progression_id: str
    lift_id: str
    trigger_type: TriggerType
    applied_at: datetime
    previous_value: float | None = None
    new_value: float | None = None
    action: ProgressionAction | None = None
    reason: str = ""
    error: PowerplanError | None = None

    @property
    def applied(self) -> bool:
        return self.status == ResultStatus.APPLIED

    @property
    def skipped(self) -> bool:
        return self.status == ResultStatus.SKIPPED

    @property
    def delta(self) -> float:
        if self.previous_value is None or self.new_value is None:
            return 0.0
        return self.new_value - self.previous_value

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "progression_id": self.progression_id,
            "lift_id": self.lift_id,
            "trigger_type": self.trigger_type.value,
            "applied_at": self.applied_at.isoformat(),
            "previous_value": self.previous_value,
            "new_value": self.new_value,
            "delta": self.delta,
            "action": self.action.value if self.action else None,
            "reason": self.reason,
            "error": self.error.to_dict() if self.error else None,
        }


@dataclass
class LoggedSetOutcome:
    """A stored set and the progressions it triggered."""

    logged_set: LoggedSet
    results: list[ProgressionResult] = field(default_factory=list)
    estimated_one_rm: float | None = None


class ProgressionService:
    """Applies progression rules and records their effects."""

    def __init__(self, db_path: Path | None = None):
        self.catalog_repo = CatalogRepository(db_path)
        self.max_repo = ReferenceMaxRepository(db_path)
        self.progression_repo = ProgressionRepository(db_path)
        self.state_repo = ProgramStateRepository(db_path)
        self.session_repo = WorkoutSessionRepository(db_path)

    async def trigger_progression(
        self,
        user_id: str,
        progression_id: str,
        lift_id: str,
        event: TriggerEvent,
        increment_override: float | None = None,
        catalog: Catalog | None = None,
        force: bool = False,
    ) -> ProgressionResult:
        """Apply one progression rule to one lift.

        Replaying an event (same user, progression, lift, trigger type and
        timestamp) is reported as skipped and changes nothing. A forced
        application skips that check and is logged at the time it runs.

        Args:
            user_id: The user
            progression_id: Progression rule to apply
            lift_id: Lift whose max the rule mutates
            event: The trigger event
            increment_override: Per program-lift increment for LINEAR, DOUBLE and CYCLE
            catalog: Preloaded catalog, to avoid reloading it per call
            force: Apply even if this event was already applied

        Returns:
            The result; errors are returned, not raised
        """
        result = ProgressionResult(
            status=ResultStatus.SKIPPED,
            progression_id=progression_id,
            lift_id=lift_id,
            trigger_type=event.type,
            applied_at=datetime.now() if force else event.timestamp,
        )
        try:
            return await self._trigger(
                result, user_id, event, increment_override, catalog, force
            )
        except DuplicateProgressionTrigger:
            result.reason = ALREADY_APPLIED
            return result
        except PowerplanError as e:
            log.warning(
                "Progression %s for %s/%s failed: %s", progression_id, user_id, lift_id, e
            )
            result.status = ResultStatus.ERROR
            result.reason = e.message
            result.error = e
            return result

    async def _trigger(
        self,
        result: ProgressionResult,
        user_id: str,
        event: TriggerEvent,
        increment_override: float | None,
        catalog: Catalog | None,
        force: bool = False,
    ) -> ProgressionResult:
        catalog = catalog or await self.catalog_repo.load()
        rule = catalog.get_progression(result.progression_id)
        lift = catalog.get_lift(result.lift_id)
        # Derived lifts have no max rows of their own to move
        lift.require_own_max()

        if not force and await self.progression_repo.has_applied(
            user_id, rule.id, lift.id, event.type, event.timestamp
        ):
            log.debug("Skipping duplicate %s for %s/%s", event.type.value, rule.id, lift.id)
            result.reason = ALREADY_APPLIED
            return result

        book = await self.max_repo.get_book(user_id, catalog.lifts)
        current = book.current(lift.id, rule.max_kind)
        if current is None:
            raise MissingReferenceMax(lift.id, rule.max_kind.value)

        counter = None
        stage_state = None
        if isinstance(rule, DeloadOnFailureProgression):
            counter = await self.progression_repo.get_counter(user_id, lift.id, rule.id)
        if isinstance(rule, StageProgression):
            stage_state = await self.progression_repo.get_stage_state(user_id, lift.id, rule.id)

        outcome = apply_rule(
            rule,
            current,
            event,
            lift.id,
            counter=counter,
            stage_state=stage_state,
            increment_override=increment_override,
        )
        result.previous_value = outcome.previous_value
        result.new_value = outcome.new_value
        result.action = outcome.action
        result.reason = outcome.reason
        if not outcome.applied:
            return result

        new_max = None
        if outcome.max_changed:
            new_max = ReferenceMax(
                user_id=user_id,
                lift_id=lift.id,
                kind=rule.max_kind,
                value=outcome.new_value,
                effective_date=datetime.now(),
            )
        entry = ProgressionLog(
            user_id=user_id,
            progression_id=rule.id,
            lift_id=lift.id,
            previous_value=outcome.previous_value,
            new_value=outcome.new_value,
            delta=outcome.delta,
            trigger_type=event.type,
            action=outcome.action,
            trigger_context=event.context.to_dict(),
            applied_at=result.applied_at,
        )
        await self.progression_repo.record(
            entry, new_max=new_max, counter=counter, stage_state=stage_state
        )
        result.status = ResultStatus.APPLIED
        log.info(
            "Applied %s to %s for %s: %s -> %s (%s)",
            rule.id, lift.id, user_id, outcome.previous_value, outcome.new_value,
            outcome.action.value,
        )
        return result

    async def fire_trigger(
        self,
        user_id: str,
        event: TriggerEvent,
        lift_ids: list[str] | None = None,
        catalog: Catalog | None = None,
    ) -> list[ProgressionResult]:
        """Apply every enabled progression of the user's program that reacts to an event.

        Links scoped to a prescription only see events for that prescription
        or events that name none.

        Args:
            user_id: The user
            event: The trigger event
            lift_ids: Restrict to these lifts
            catalog: Preloaded catalog

        Returns:
            One result per matching (progression, lift) link

        Raises:
            NotEnrolled: If the user has no enrollment
        """
        state = await self.state_repo.get_by_user(user_id)
        if state is None:
            raise NotEnrolled(user_id)
        catalog = catalog or await self.catalog_repo.load()
        program = catalog.get_program(state.program_id)

        results = []
        for link in program.progressions_for():
            if lift_ids is not None and link.lift_id not in lift_ids:
                continue
            if not link.applies_to(event.context.prescription_id):
                continue
            rule = catalog.get_progression(link.progression_id)
            if event.type not in rule.triggers:
                continue
            results.append(
                await self.trigger_progression(
                    user_id,
                    link.progression_id,
                    link.lift_id,
                    event,
                    increment_override=link.increment_override,
                    catalog=catalog,
                )
            )
        return results

    async def record_set(
        self,
        user_id: str,
        lift_id: str,
        weight: float,
        target_reps: int,
        reps_performed: int,
        is_amrap: bool = False,
        set_number: int = 1,
        session_id: int | None = None,
        logged_at: datetime | None = None,
        prescription_id: str | None = None,
    ) -> LoggedSetOutcome:
        """Store a performed set and feed it to failure-aware progressions.

        A set short of its target fires ON_FAILURE; otherwise AFTER_SET fires
        as a success. AMRAP sets also record an estimated 1RM. Naming the
        prescription the set belongs to keeps it away from links scoped to
        another prescription of the same lift.

        Raises:
            NotEnrolled: If the user has no enrollment
        """
        catalog = await self.catalog_repo.load()
        lift = catalog.get_lift(lift_id)
        logged = LoggedSet(
            user_id=user_id,
            lift_id=lift.id,
            weight=weight,
            target_reps=target_reps,
            reps_performed=reps_performed,
            is_amrap=is_amrap,
            set_number=set_number,
            session_id=session_id,
            logged_at=logged_at or datetime.now(),
        )
        await self.session_repo.add_set(logged)
        outcome = LoggedSetOutcome(logged_set=logged)

        if is_amrap and reps_performed > 0 and weight > 0:
            outcome.estimated_one_rm = estimate_one_rm(weight, reps_performed)
            await self.max_repo.add(
                ReferenceMax(
                    user_id=user_id,
                    lift_id=lift.id,
                    kind=MaxKind.ESTIMATED_1RM,
                    value=outcome.estimated_one_rm,
                    effective_date=logged.logged_at,
                )
            )

        event = TriggerEvent(
            type=TriggerType.AFTER_SET if logged.succeeded else TriggerType.ON_FAILURE,
            timestamp=logged.logged_at,
            context=TriggerContext(
                session_id=session_id,
                prescription_id=prescription_id,
                target_reps=target_reps,
                reps_performed=reps_performed,
                weight=weight,
                amrap_reps=reps_performed if is_amrap else None,
                succeeded=logged.succeeded,
            ),
        )
        outcome.results = await self.fire_trigger(
            user_id, event, lift_ids=[lift.id], catalog=catalog
        )
        return outcome

    async def history(self, user_id: str, lift_id: str | None = None) -> list[ProgressionLog]:
        """List applied progressions, newest first."""
        return await self.progression_repo.list_logs(user_id, lift_id)
