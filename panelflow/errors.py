"""
Scheduling errors.

All of them are ValueErrors raised synchronously to the caller; none are
retried. Routes translate them into JSON error responses.
"""
from typing import Dict, Optional


class SchedulingError(ValueError):
    """Base class for scheduling failures."""
    status_code = 400


class InvalidConfiguration(SchedulingError):
    """A required numeric scheduling input is missing, zero or negative."""

    def __init__(self, message: str, field_errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.field_errors = field_errors or {}


class ProjectNotFound(SchedulingError):
    status_code = 404

    def __init__(self, project_id):
        super().__init__(f"Project {project_id} not found")
        self.project_id = project_id


class InvalidTimelineInput(SchedulingError):
    """The deadline calculator received an unusable request."""


class InvalidDuration(InvalidTimelineInput):
    """A day count is negative or not a whole number."""

    def __init__(self, field: str, value):
        super().__init__(f"{field} must be a whole number of days >= 0, got {value!r}")
        self.field = field
        self.value = value


class ConfirmationRequired(SchedulingError):
    """Re-initializing replaces existing steps and must be confirmed by the caller."""
    status_code = 409

    def __init__(self, project_id, existing_steps: int):
        super().__init__(
            f"Project {project_id} already has {existing_steps} workflow steps; "
            f"pass confirm=true to replace them"
        )
        self.project_id = project_id
        self.existing_steps = existing_steps


class ReinitializeInProgress(SchedulingError):
    status_code = 409

    def __init__(self, project_id, current_operation: Optional[str] = None):
        super().__init__(f"Workflow re-initialize already in progress for project {project_id}")
        self.project_id = project_id
        self.current_operation = current_operation


class WorkflowStepNotFound(SchedulingError):
    status_code = 404

    def __init__(self, step_id):
        super().__init__(f"Workflow step {step_id} not found")
        self.step_id = step_id


class InvalidStepUpdate(SchedulingError):
    """A workflow step patch carries an invalid status, progress or assignee."""
