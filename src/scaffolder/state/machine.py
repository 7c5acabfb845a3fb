"""Workflow state machine transitions.

Transitions are pure functions: each takes the current WorkflowState and
returns a new one, leaving the input untouched. There is no persistence;
a state lives for the duration of one workflow run.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from src.scaffolder.state.models import (
    STEP_FOR_STAGE,
    StateTransition,
    WorkflowStage,
    WorkflowState,
    WorkflowStep,
    is_valid_transition,
)


logger = logging.getLogger(__name__)


class InvalidTransitionError(Exception):
    """Raised when a transition violates the valid transitions map.

    Attributes:
        from_stage: The current stage.
        to_stage: The attempted target stage.
    """

    def __init__(self, from_stage: WorkflowStage, to_stage: WorkflowStage):
        self.from_stage = from_stage
        self.to_stage = to_stage
        super().__init__(
            f"Invalid transition from {from_stage.value} to {to_stage.value}"
        )


def start(repo_name: str) -> WorkflowState:
    """Create the initial IDLE state for a run.

    Raises:
        ValueError: If repo_name is empty.
    """
    if not repo_name:
        raise ValueError("repo_name cannot be empty")
    return WorkflowState(repo_name=repo_name)


def advance(
    state: WorkflowState,
    to_stage: WorkflowStage,
    details: Optional[Dict[str, Any]] = None,
) -> WorkflowState:
    """Return the state after moving to ``to_stage``.

    Args:
        state: Current state; not modified.
        to_stage: Target stage.
        details: Metadata recorded with the transition.

    Returns:
        A new WorkflowState with the transition appended to its history.

    Raises:
        InvalidTransitionError: If the transition is not allowed.
    """
    details = details or {}
    from_stage = state.current_stage

    if not is_valid_transition(from_stage, to_stage):
        logger.warning(
            "Invalid workflow transition attempted",
            extra={
                "repo_name": state.repo_name,
                "from_stage": from_stage.value,
                "to_stage": to_stage.value,
            },
        )
        raise InvalidTransitionError(from_stage, to_stage)

    now = datetime.now(timezone.utc)
    transition = StateTransition(
        from_stage=from_stage,
        to_stage=to_stage,
        timestamp=now,
        details=details,
    )
    return state.model_copy(
        update={
            "current_stage": to_stage,
            "history": state.history + [transition],
            "updated_at": now,
        }
    )


def fail(
    state: WorkflowState,
    error: str,
    step: Optional[WorkflowStep] = None,
) -> WorkflowState:
    """Return the FAILED state, recording the failing step and error.

    Args:
        state: Current (non-terminal) state.
        error: Error message of the proximate cause.
        step: Failing step; inferred from the current stage when omitted.

    Raises:
        InvalidTransitionError: If the state is already terminal.
    """
    failed_step = step or STEP_FOR_STAGE.get(state.current_stage)
    failed = advance(
        state,
        WorkflowStage.FAILED,
        details={
            "error": error,
            "step": failed_step.value if failed_step else None,
        },
    )
    return failed.model_copy(update={"failed_step": failed_step, "error": error})
