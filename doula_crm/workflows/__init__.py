"""Workflow automation - stored step graphs run on record events."""

from .models import (
    ExecutionStatus,
    ReentryMode,
    StepType,
    TriggerType,
    Workflow,
    WorkflowExecution,
    WorkflowStep,
    WorkflowStepExecution,
)

__all__ = [
    "ExecutionStatus",
    "ReentryMode",
    "StepType",
    "TriggerType",
    "Workflow",
    "WorkflowExecution",
    "WorkflowStep",
    "WorkflowStepExecution",
]
