"""Workflow state machine models.

This module defines the data models for the provisioning state machine:
- WorkflowStage: Enum of all workflow stages
- WorkflowStep: The step that was running when a failure occurred
- StateTransition: Record of a transition with timestamp and details
- WorkflowState: Complete state of one workflow run
- VALID_TRANSITIONS: Map defining allowed transitions

The models use Pydantic for validation, consistent with models.py.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class WorkflowStage(str, Enum):
    """Stages a provisioning run progresses through.

    Stage Flow:
        idle → repo_created → content_pushed → registered

    Every non-terminal stage can transition to 'failed'. Both
    'registered' and 'failed' are terminal: there is no compensating
    transition, so state created before a failure stays in the external
    systems.

    Attributes:
        IDLE: Request validated, nothing created yet.
        REPO_CREATED: Remote repository exists, still empty.
        CONTENT_PUSHED: Template content pushed to the remote.
        REGISTERED: Delivery registration created; run succeeded.
        FAILED: A step failed; requires operator remediation.
    """

    IDLE = "idle"
    REPO_CREATED = "repo_created"
    CONTENT_PUSHED = "content_pushed"
    REGISTERED = "registered"
    FAILED = "failed"


class WorkflowStep(str, Enum):
    """Workflow steps, used to record where a run failed."""

    VALIDATION = "validation"
    CREATE_REPOSITORY = "create_repository"
    MATERIALIZE = "materialize"
    REGISTER = "register"


class StateTransition(BaseModel):
    """Record of a state transition in the workflow.

    Attributes:
        from_stage: The stage before the transition.
        to_stage: The stage after the transition.
        timestamp: When the transition occurred (UTC).
        details: Optional metadata (repository id, commit, error, ...).
    """

    model_config = ConfigDict(frozen=True)

    from_stage: WorkflowStage
    to_stage: WorkflowStage
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    details: Dict[str, Any] = Field(default_factory=dict)


class WorkflowState(BaseModel):
    """State of one provisioning run.

    Attributes:
        repo_name: Repository the run provisions.
        current_stage: The current stage.
        history: Ordered list of all transitions.
        failed_step: Step that was running when the run failed.
        error: Error message if the run failed.
        created_at: When the run started (UTC).
        updated_at: When the state last changed (UTC).
    """

    model_config = ConfigDict(frozen=True)

    repo_name: str = Field(..., min_length=1)
    current_stage: WorkflowStage = WorkflowStage.IDLE
    history: List[StateTransition] = Field(default_factory=list)
    failed_step: Optional[WorkflowStep] = None
    error: Optional[str] = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_terminal(self) -> bool:
        return is_terminal_stage(self.current_stage)


# Linear progression; FAILED reachable from every non-terminal stage.
VALID_TRANSITIONS: Dict[WorkflowStage, List[WorkflowStage]] = {
    WorkflowStage.IDLE: [
        WorkflowStage.REPO_CREATED,
        WorkflowStage.FAILED,
    ],
    WorkflowStage.REPO_CREATED: [
        WorkflowStage.CONTENT_PUSHED,
        WorkflowStage.FAILED,
    ],
    WorkflowStage.CONTENT_PUSHED: [
        WorkflowStage.REGISTERED,
        WorkflowStage.FAILED,
    ],
    WorkflowStage.REGISTERED: [],
    WorkflowStage.FAILED: [],
}

# Step that moves the run out of each non-terminal stage
STEP_FOR_STAGE: Dict[WorkflowStage, WorkflowStep] = {
    WorkflowStage.IDLE: WorkflowStep.CREATE_REPOSITORY,
    WorkflowStage.REPO_CREATED: WorkflowStep.MATERIALIZE,
    WorkflowStage.CONTENT_PUSHED: WorkflowStep.REGISTER,
}


def is_valid_transition(from_stage: WorkflowStage, to_stage: WorkflowStage) -> bool:
    """Check if a transition is allowed by VALID_TRANSITIONS.

    Example:
        >>> is_valid_transition(WorkflowStage.IDLE, WorkflowStage.REPO_CREATED)
        True
        >>> is_valid_transition(WorkflowStage.FAILED, WorkflowStage.IDLE)
        False
    """
    return to_stage in VALID_TRANSITIONS.get(from_stage, [])


def is_terminal_stage(stage: WorkflowStage) -> bool:
    """Check if a stage has no outgoing transitions."""
    return len(VALID_TRANSITIONS.get(stage, [])) == 0
