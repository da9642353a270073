"""
State transitions for the trackdown index.

Items live in two status spaces: the coarse lifecycle (planning, active,
completed, archived) and the workflow resolution states layered over it.
The effective state is the resolution state when one is set, otherwise the
lifecycle status. This module decides which moves are allowed and what an
item looks like after one; it never touches disk.
"""

from typing import Dict, FrozenSet, List, Optional, Sequence

from trackdown.constants import VALIDATION_ACTOR_REQUIRED, VALIDATION_REASON_REQUIRED
from trackdown.models.base import (
    ItemRecord,
    LifecycleStatus,
    Resolution,
    ResolutionStatus,
    StateMetadata,
    WorkflowState,
    current_state,
    parse_state,
)
from trackdown.models.results import TransitionResult
from trackdown.utils import utc_now

P = LifecycleStatus
R = ResolutionStatus

# Allowed moves, keyed by effective state. Empty means terminal.
TRANSITIONS: Dict[str, FrozenSet[str]] = {
    P.PLANNING.value: frozenset(
        {P.ACTIVE.value, R.READY_FOR_ENGINEERING.value, P.ARCHIVED.value, R.WONT_DO.value}
    ),
    P.ACTIVE.value: frozenset(
        {
            R.READY_FOR_ENGINEERING.value,
            R.READY_FOR_QA.value,
            P.COMPLETED.value,
            P.ARCHIVED.value,
            R.WONT_DO.value,
        }
    ),
    R.READY_FOR_ENGINEERING.value: frozenset(
        {P.ACTIVE.value, R.READY_FOR_QA.value, R.WONT_DO.value}
    ),
    R.READY_FOR_QA.value: frozenset(
        {
            R.READY_FOR_ENGINEERING.value,
            R.READY_FOR_DEPLOYMENT.value,
            P.ACTIVE.value,
            R.WONT_DO.value,
        }
    ),
    R.READY_FOR_DEPLOYMENT.value: frozenset(
        {R.DONE.value, R.READY_FOR_QA.value, R.WONT_DO.value}
    ),
    P.COMPLETED.value: frozenset(
        {
            R.READY_FOR_DEPLOYMENT.value,
            R.DONE.value,
            P.ACTIVE.value,
            P.ARCHIVED.value,
            R.WONT_DO.value,
        }
    ),
    P.ARCHIVED.value: frozenset({P.ACTIVE.value, P.PLANNING.value, R.WONT_DO.value}),
    R.DONE.value: frozenset(),
    R.WONT_DO.value: frozenset(),
}

# Lifecycle status an item carries while in each resolution state.
RESOLUTION_LIFECYCLE: Dict[ResolutionStatus, LifecycleStatus] = {
    R.READY_FOR_ENGINEERING: P.ACTIVE,
    R.READY_FOR_QA: P.ACTIVE,
    R.READY_FOR_DEPLOYMENT: P.ACTIVE,
    R.DONE: P.COMPLETED,
    R.WONT_DO: P.ARCHIVED,
}

# Targets that check dependencies / dependents / reviewer.
FINISHING_STATES = frozenset({R.READY_FOR_DEPLOYMENT.value, R.DONE.value, P.COMPLETED.value})
ABANDONING_STATES = frozenset({R.WONT_DO.value, P.ARCHIVED.value})
REVIEWED_STATES = frozenset({R.READY_FOR_DEPLOYMENT.value, R.DONE.value})

# Effective states that count as finished for a dependency.
FINISHED_STATES = frozenset({P.COMPLETED.value, R.DONE.value})


class StateTransitionEngine:
    """
    Validates and applies state transitions to item records.

    Usage:
        engine = StateTransitionEngine()
        engine.get_available_transitions(item)
        result = engine.transition_state(item, "ready_for_qa", actor="alice")
        if result.success:
            save(result.item)
    """

    def get_effective_state(self, item: ItemRecord) -> WorkflowState:
        """Effective state of an item as a Lifecycle or Resolution."""
        return item.workflow_state

    def get_available_transitions(self, item: ItemRecord) -> List[str]:
        """Targets reachable from the item's effective state, sorted."""
        return sorted(TRANSITIONS.get(item.effective_state, frozenset()))

    def is_valid_transition(self, from_state: str, to_state: str) -> bool:
        return to_state in TRANSITIONS.get(from_state, frozenset())

    def can_automate(self, item: ItemRecord, target: str) -> bool:
        """Whether a transition may run without a human.

        Moves that need a reason (won_t_do) never can.
        """
        if target == R.WONT_DO.value:
            return False
        return self.is_valid_transition(item.effective_state, target)

    def transition_state(
        self,
        item: ItemRecord,
        target: str,
        actor: str,
        reason: Optional[str] = None,
        reviewer: Optional[str] = None,
        dependencies: Sequence[ItemRecord] = (),
        dependents: Sequence[ItemRecord] = (),
    ) -> TransitionResult:
        """Check and apply a transition.

        The input item is never modified. On success the result carries a
        copy with the new state, lifecycle status and state metadata.

        Args:
            item: The item to move.
            target: Target state name from either status space.
            actor: Who is making the change.
            reason: Why; required for won_t_do.
            reviewer: Who reviewed the work, if anyone.
            dependencies: Records the item depends on.
            dependents: Records that depend on the item.

        Returns:
            TransitionResult; success is False if any error was found.
        """
        errors: List[str] = []
        warnings: List[str] = []
        current = item.effective_state
        target_state = parse_state(target)

        if target_state is None:
            errors.append(f"Unknown state '{target}'")
        elif not self.is_valid_transition(current, target):
            allowed = self.get_available_transitions(item)
            errors.append(
                f"Cannot transition {item.id} from {current} to {target}; "
                + (f"allowed: {', '.join(allowed)}" if allowed else f"{current} is terminal")
            )
        if not actor or not actor.strip():
            errors.append(VALIDATION_ACTOR_REQUIRED)
        if target == R.WONT_DO.value and not (reason and reason.strip()):
            errors.append(VALIDATION_REASON_REQUIRED)

        if errors:
            return TransitionResult(success=False, item=item, errors=errors)

        if target in FINISHING_STATES:
            unfinished = [d.id for d in dependencies if d.effective_state not in FINISHED_STATES]
            if unfinished:
                warnings.append(f"Unfinished dependencies: {', '.join(unfinished)}")
        if target in ABANDONING_STATES and dependents:
            warnings.append(
                f"Items still depend on {item.id}: {', '.join(d.id for d in dependents)}"
            )
        if target in REVIEWED_STATES and not reviewer:
            warnings.append(f"No reviewer recorded for {target}")

        return TransitionResult(
            success=True,
            item=self._apply(item, target_state, actor, reason, reviewer),
            warnings=warnings,
        )

    def _apply(
        self,
        item: ItemRecord,
        target: WorkflowState,
        actor: str,
        reason: Optional[str],
        reviewer: Optional[str],
    ) -> ItemRecord:
        now = utc_now()
        target_value = current_state(target)
        metadata = StateMetadata(
            transitioned_at=now,
            transitioned_by=actor,
            previous_state=item.effective_state,
            reason=reason or None,
            reviewer=reviewer or None,
            automation_eligible=self.can_automate(item, target_value),
        )
        if isinstance(target, Resolution):
            status = RESOLUTION_LIFECYCLE[target.status].value
            state = target_value
        else:
            status = target_value
            state = None
        return item.model_copy(
            update={
                "status": status,
                "state": state,
                "state_metadata": metadata,
                "updated_at": now,
            },
            deep=True,
        )

    def validate_state_metadata(self, item: ItemRecord) -> List[str]:
        """Problems with an item's recorded transition metadata."""
        problems: List[str] = []
        metadata = item.state_metadata
        if item.state and metadata is None:
            problems.append(f"{item.id} has state {item.state} but no state_metadata")
        if metadata is None:
            return problems

        if not metadata.transitioned_by:
            problems.append(f"{item.id} state_metadata is missing transitioned_by")
        if metadata.transitioned_at is None:
            problems.append(f"{item.id} state_metadata is missing transitioned_at")
        elif metadata.transitioned_at > utc_now():
            problems.append(f"{item.id} state_metadata.transitioned_at is in the future")
        if item.effective_state == R.WONT_DO.value and not metadata.reason:
            problems.append(f"{item.id} is won_t_do without a reason")
        if metadata.previous_state and parse_state(metadata.previous_state) is None:
            problems.append(
                f"{item.id} state_metadata.previous_state '{metadata.previous_state}' "
                "is not a known state"
            )
        return problems
