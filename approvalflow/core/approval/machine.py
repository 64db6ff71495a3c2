"""Approval state machine implementation.

Validates transitions for a single item. Authorization and persistence live
in the workflow service; the machine only knows which moves are legal.
"""

from approvalflow.core.errors import InvalidTransitionError
from .states import (
    ApprovalState,
    ApprovalTransition,
    TransitionRule,
    can_transition,
    get_transition_rule,
    TERMINAL_STATES,
)


class ApprovalStateMachine:
    """
    State machine for one approval item.

    Usage:
        machine = ApprovalStateMachine(item.workflow_id, item.status)
        rule = machine.transition(ApprovalTransition.APPROVE)
        store.compare_and_set_status(item.workflow_id, rule.from_state, rule.to_state)
    """

    def __init__(self, workflow_id: str, current_state: str):
        self.workflow_id = workflow_id
        try:
            self._state = ApprovalState(current_state)
        except ValueError:
            raise InvalidTransitionError(
                f"Item {workflow_id} has unknown status '{current_state}'",
                from_state=current_state,
            )

    @property
    def state(self) -> ApprovalState:
        """Current state of the item."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal (no further transitions)."""
        return self._state in TERMINAL_STATES

    def can_perform(self, transition: ApprovalTransition) -> bool:
        return can_transition(self._state, transition)

    def check(self, transition: ApprovalTransition) -> TransitionRule:
        """
        Return the rule for a transition without moving the machine.

        Raises:
            InvalidTransitionError: If the item is terminal or the transition
                is not adjacent to the current state
        """
        if self.is_terminal:
            raise InvalidTransitionError(
                f"Item {self.workflow_id} is already {self._state.value}; no further transitions are permitted",
                from_state=self._state.value,
                transition=transition.value,
            )

        if not self.can_perform(transition):
            raise InvalidTransitionError(
                f"Cannot {transition.value} item {self.workflow_id} from state {self._state.value}",
                from_state=self._state.value,
                transition=transition.value,
            )
        return get_transition_rule(self._state, transition)

    def transition(self, transition: ApprovalTransition) -> TransitionRule:
        """Perform a transition and return the rule that was applied."""
        rule = self.check(transition)
        self._state = rule.to_state
        return rule
