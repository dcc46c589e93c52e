"""
Workflow service.

Reads a project's configuration, computes its schedule with the workflow
engine and swaps the project's WorkflowStep rows in a single transaction.
Also applies project edits that require a recompute and step progress
patches.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from panelflow.datetime_utils import to_date, utcnow
from panelflow.errors import (
    ConfirmationRequired,
    InvalidConfiguration,
    InvalidStepUpdate,
    ProjectNotFound,
    ReinitializeInProgress,
    WorkflowStepNotFound,
)
from panelflow.logging_config import OperationContext, get_logger
from panelflow.models import Project, WorkflowStep, db
from panelflow.scheduling.stages import StepStatus, parse_step_status, parse_step_type, stage_definition
from panelflow.scheduling.timeline import CalculationDirection
from panelflow.scheduling.workflow import (
    FIELD_MINIMUMS,
    FeasibilityReport,
    ProjectConfig,
    StageSchedule,
    WorkflowSchedule,
    build_workflow_schedule,
    check_feasibility,
)
from panelflow.stores import ChangeLogStore, ProjectStore, UserStore, WorkflowStepStore
from panelflow.workflow_lock import project_lock_manager

logger = get_logger(__name__)

# Step fields carried over to the same step type when a workflow is recomputed
PRESERVED_STEP_FIELDS = ('status', 'progress', 'assigned_to', 'completed_date')

# Project fields whose change makes existing steps stale
SCHEDULE_FIELDS = tuple(FIELD_MINIMUMS) + ('due_date', 'plot_deadline', 'cover_deadline', 'schedule_direction')

DATE_FIELDS = ('due_date', 'plot_deadline', 'cover_deadline')

EDITABLE_PROJECT_FIELDS = ('title', 'issue', 'description', 'status', 'progress', 'created_by') + SCHEDULE_FIELDS


@dataclass
class InitializeResult:
    project_id: int
    steps: List[WorkflowStep]
    schedule: WorkflowSchedule
    feasibility: FeasibilityReport
    steps_removed: int
    operation_id: str

    def to_dict(self) -> dict:
        """Serialize for JSON response"""
        return {
            'project_id': self.project_id,
            'operation_id': self.operation_id,
            'steps_removed': self.steps_removed,
            'steps': [step.to_dict() for step in self.steps],
            'feasibility': self.feasibility.to_dict(),
        }


def _get_project_or_raise(project_id: int) -> Project:
    project = ProjectStore.get_project(project_id)
    if project is None:
        logger.warning("Project not found", project_id=project_id)
        raise ProjectNotFound(project_id)
    return project


def _parse_direction(direction) -> Optional[CalculationDirection]:
    if direction is None or isinstance(direction, CalculationDirection):
        return direction
    try:
        return CalculationDirection(direction)
    except ValueError:
        raise InvalidConfiguration(
            "Invalid scheduling configuration",
            {'schedule_direction': f"must be 'forward' or 'backward', got {direction!r}"},
        )


def _assign_talent(step_values: List[Dict[str, Any]]) -> None:
    """Fill unassigned steps with the first active user holding the stage's role."""
    users_by_role = {}
    for values in step_values:
        if values.get('assigned_to') is not None:
            continue
        role = stage_definition(values['step_type']).talent_role
        if role not in users_by_role:
            users_by_role[role] = UserStore.get_first_user_by_role(role)
        user = users_by_role[role]
        if user is not None:
            values['assigned_to'] = user.id


def build_step_values(
    stages: List[StageSchedule],
    existing_steps: Optional[List[WorkflowStep]] = None,
    preserve_progress: bool = True,
) -> List[Dict[str, Any]]:
    """
    Column values for the new steps of a project.

    Dates and titles always come from the fresh schedule. With
    `preserve_progress`, status/progress/assignee/completion date are copied
    from the existing step of the same type.
    """
    carried = {}
    if preserve_progress and existing_steps:
        for step in existing_steps:
            carried[parse_step_type(step.step_type)] = {
                field: getattr(step, field) for field in PRESERVED_STEP_FIELDS
            }

    values = []
    for stage in stages:
        step = {
            'step_type': stage.step_type,
            'title': stage.title,
            'description': stage.description,
            'sort_order': stage.sort_order,
            'start_date': stage.start_date,
            'due_date': stage.due_date,
            'status': StepStatus.NOT_STARTED,
            'progress': 0,
            'assigned_to': None,
            'completed_date': None,
        }
        step.update(carried.get(stage.step_type, {}))
        values.append(step)
    return values


def initialize_workflow(
    project_id: int,
    actor_id: Optional[int],
    confirm: bool = False,
    reference_date: Optional[date] = None,
    direction=None,
    auto_assign: bool = False,
    preserve_progress: bool = True,
    change_type: Optional[str] = None,
) -> InitializeResult:
    """
    Compute and persist the workflow steps of a project.

    Existing steps are replaced in one transaction (delete-all then insert);
    on any failure the previous steps stay untouched. Runs are serialized per
    project.

    Args:
        project_id: Project to schedule
        actor_id: User who triggered the run, recorded in the audit log
        confirm: Must be True when the project already has steps
        reference_date: "today" for forward scheduling (defaults to today)
        direction: 'forward'/'backward' override of the project's setting
        auto_assign: Assign unassigned steps to talent by role
        preserve_progress: Carry status/progress/assignee over by step type
        change_type: Audit label (defaults to initialize/reinitialize)

    Returns:
        InitializeResult with the new steps and the feasibility report

    Raises:
        ProjectNotFound: no such project
        ConfirmationRequired: steps exist and confirm is False
        InvalidConfiguration: scheduling inputs are missing, zero or negative
        ReinitializeInProgress: another run holds this project, or another
            worker process replaced its steps first
    """
    project = _get_project_or_raise(project_id)
    direction = _parse_direction(direction)

    with project_lock_manager.acquire(project_id, "initialize_workflow"):
        existing_steps = WorkflowStepStore.get_workflow_steps_by_project(project_id)
        if existing_steps and not confirm:
            raise ConfirmationRequired(project_id, len(existing_steps))

        change_type = change_type or ("reinitialize" if existing_steps else "initialize")

        with OperationContext(change_type, project_id, actor_id) as operation:
            config = ProjectConfig.from_project(project)
            schedule = build_workflow_schedule(config, reference_date, direction)
            feasibility = check_feasibility(schedule, config.due_date)

            step_values = build_step_values(schedule.stages, existing_steps, preserve_progress)
            if auto_assign:
                _assign_talent(step_values)

            try:
                # Later recomputes and feasibility checks read the direction off the project
                if project.schedule_direction != schedule.direction.value:
                    ProjectStore.update_project(
                        project, {'schedule_direction': schedule.direction.value}, commit=False
                    )
                steps = WorkflowStepStore.replace_steps(project_id, step_values)
                ChangeLogStore.record(
                    project_id,
                    change_type,
                    actor_id,
                    operation_id=operation.operation_id,
                    steps_removed=len(existing_steps),
                    steps_created=len(steps),
                    computed_end_date=feasibility.computed_end_date,
                    overage_days=feasibility.days_difference,
                )
                db.session.commit()
            except IntegrityError as e:
                # Another worker process replaced the steps first
                db.session.rollback()
                logger.warning("Workflow step write conflicted", project_id=project_id, error=str(e.orig))
                raise ReinitializeInProgress(project_id, "initialize_workflow")
            except Exception:
                db.session.rollback()
                raise

    if not feasibility.is_feasible:
        logger.warning(
            "Workflow scheduled late",
            project_id=project_id,
            computed_end_date=feasibility.computed_end_date.isoformat(),
            due_date=feasibility.due_date.isoformat() if feasibility.due_date else None,
            overage_days=feasibility.overage_days,
        )

    logger.info(
        "Workflow initialized",
        project_id=project_id,
        actor_id=actor_id,
        change_type=change_type,
        steps_removed=len(existing_steps),
        steps_created=len(steps),
    )

    return InitializeResult(
        project_id=project_id,
        steps=steps,
        schedule=schedule,
        feasibility=feasibility,
        steps_removed=len(existing_steps),
        operation_id=operation.operation_id,
    )


def normalize_project_values(values: Dict[str, Any]) -> Dict[str, Any]:
    """
    Keep editable project fields and coerce date strings to dates.

    Raises:
        InvalidConfiguration: a date field cannot be parsed
    """
    normalized = {}
    field_errors = {}
    for key, value in values.items():
        if key not in EDITABLE_PROJECT_FIELDS:
            continue
        if key in DATE_FIELDS:
            try:
                value = to_date(value)
            except ValueError as e:
                field_errors[key] = str(e)
                continue
        normalized[key] = value

    if field_errors:
        raise InvalidConfiguration("Invalid project data", field_errors)
    return normalized


def apply_project_update(
    project_id: int,
    values: Dict[str, Any],
    actor_id: Optional[int],
    reference_date: Optional[date] = None,
    change_type: Optional[str] = None,
) -> tuple:
    """
    Update a project and recompute its workflow when scheduling inputs changed.

    The project edit and the step replacement commit together; if the new
    values cannot be scheduled neither is saved.

    Returns:
        (project, InitializeResult or None when no recompute was needed)
    """
    project = _get_project_or_raise(project_id)
    values = normalize_project_values(values)

    changed = [key for key in SCHEDULE_FIELDS if key in values and values[key] != getattr(project, key)]

    ProjectStore.update_project(project, values, commit=False)

    if changed:
        try:
            ProjectConfig.from_project(project).validate()
        except InvalidConfiguration:
            db.session.rollback()
            raise

    if not changed or WorkflowStepStore.count_by_project(project_id) == 0:
        db.session.commit()
        return project, None

    logger.info("Project schedule inputs changed", project_id=project_id, fields=changed)

    try:
        result = initialize_workflow(
            project_id,
            actor_id,
            confirm=True,
            reference_date=reference_date,
            change_type=change_type or "reinitialize",
        )
    except Exception:
        db.session.rollback()
        raise

    return project, result


def recompute_on_due_date_change(
    project_id: int,
    new_due_date,
    actor_id: Optional[int],
    reference_date: Optional[date] = None,
) -> Optional[InitializeResult]:
    """
    Record a new project due date and recompute existing workflow steps.

    Returns:
        InitializeResult, or None when the project has no steps yet
    """
    _, result = apply_project_update(
        project_id,
        {'due_date': new_due_date},
        actor_id,
        reference_date=reference_date,
        change_type="due_date_change",
    )
    return result


def project_feasibility(project_id: int, reference_date: Optional[date] = None) -> FeasibilityReport:
    """
    Feasibility of a project's persisted steps, or of a fresh schedule when it has none.
    """
    project = _get_project_or_raise(project_id)
    if reference_date is None:
        reference_date = date.today()
    config = ProjectConfig.from_project(project)
    steps = WorkflowStepStore.get_workflow_steps_by_project(project_id)

    if steps and all(step.start_date and step.due_date for step in steps):
        schedule = WorkflowSchedule(
            direction=config.schedule_direction,
            reference_date=reference_date,
            stages=[
                StageSchedule(
                    step_type=parse_step_type(step.step_type),
                    title=step.title,
                    description=step.description or '',
                    sort_order=step.sort_order,
                    start_date=step.start_date,
                    due_date=step.due_date,
                )
                for step in steps
            ],
        )
    else:
        schedule = build_workflow_schedule(config, reference_date)

    return check_feasibility(schedule, config.due_date)


def resolve_status(
    current_status: StepStatus,
    progress: Optional[int],
    requested_status: Optional[StepStatus],
) -> StepStatus:
    """
    Status after a progress patch.

    Progress drives the status unless the caller chose a status for a step
    that had already started: 1..99 -> in_progress, 100 -> completed, 0 keeps
    the current (or requested) status.
    """
    status = requested_status or current_status
    if progress is None:
        return status
    if requested_status is not None and current_status is not StepStatus.NOT_STARTED:
        return status

    if progress >= 100:
        return StepStatus.COMPLETED
    elif progress > 0:
        return StepStatus.IN_PROGRESS
    return status


def _parse_progress(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 100:
        raise InvalidStepUpdate(f"progress must be a whole number between 0 and 100, got {value!r}")
    return value


def update_workflow_step(step_id: int, values: Dict[str, Any]) -> WorkflowStep:
    """
    Patch a workflow step (status, progress, assignee, dates, title, description).

    A completed step always has progress 100. The resulting start date may
    not be after the resulting due date.

    Raises:
        WorkflowStepNotFound: no such step
        InvalidStepUpdate: bad status, progress, date or assignee
    """
    step = WorkflowStepStore.get_workflow_step(step_id)
    if step is None:
        raise WorkflowStepNotFound(step_id)

    updates: Dict[str, Any] = {}

    progress = None
    if values.get('progress') is not None:
        progress = _parse_progress(values['progress'])
        updates['progress'] = progress

    requested_status = None
    if values.get('status') is not None:
        try:
            requested_status = parse_step_status(values['status'])
        except ValueError as e:
            raise InvalidStepUpdate(str(e))

    status = resolve_status(step.status, progress, requested_status)
    updates['status'] = status
    if status is StepStatus.COMPLETED:
        updates['progress'] = 100
        if step.completed_date is None:
            updates['completed_date'] = utcnow()
    else:
        updates['completed_date'] = None

    for key in ('start_date', 'due_date'):
        if key in values:
            try:
                updates[key] = to_date(values[key])
            except ValueError as e:
                raise InvalidStepUpdate(str(e))

    start_date = updates.get('start_date', step.start_date)
    due_date = updates.get('due_date', step.due_date)
    if start_date and due_date and start_date > due_date:
        raise InvalidStepUpdate(
            f"start_date {start_date.isoformat()} is after due_date {due_date.isoformat()}"
        )

    if 'assigned_to' in values:
        assignee = values['assigned_to']
        if assignee is not None and UserStore.get_user(assignee) is None:
            raise InvalidStepUpdate(f"User {assignee} not found")
        updates['assigned_to'] = assignee

    for key in ('title', 'description'):
        if key in values:
            updates[key] = values[key]

    WorkflowStepStore.update_workflow_step(step, updates)
    logger.info("Workflow step updated", step_id=step_id, fields=sorted(updates))
    return step
