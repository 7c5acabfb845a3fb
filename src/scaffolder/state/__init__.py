"""Provisioning workflow state machine.

Tracks one run through its stages:
- idle → repo_created → content_pushed → registered
- any non-terminal stage → failed

There is no recovery edge: a failed run leaves whatever it created in
the external systems for the operator to reconcile.
"""

from src.scaffolder.state.machine import InvalidTransitionError, advance, fail, start
from src.scaffolder.state.models import (
    STEP_FOR_STAGE,
    VALID_TRANSITIONS,
    StateTransition,
    WorkflowStage,
    WorkflowState,
    WorkflowStep,
    is_terminal_stage,
    is_valid_transition,
)

__all__ = [
    # Models
    "STEP_FOR_STAGE",
    "StateTransition",
    "VALID_TRANSITIONS",
    "WorkflowStage",
    "WorkflowState",
    "WorkflowStep",
    "is_terminal_stage",
    "is_valid_transition",
    # Transitions
    "InvalidTransitionError",
    "advance",
    "fail",
    "start",
]
