"""
Workflow schedule engine.

Turns a project's page counts, per-role weekly speeds, batch sizes and
approval buffers into dated production stages. Pure business logic: works
with plain dataclasses and has no database dependencies.

Handoff rules between a stage and the stage it depends on:
- FINISH:   start = dependency due + approval days
- BATCH:    start = dependency start + time to finish the first batch + approval
            days; due = max(start + own duration,
                            dependency due + approval + time for the last batch).
            A batch size >= the page count makes the stage wait for 100%.
- PARALLEL: start = dependency start
- JOIN:     start = latest due date among the dependencies + approval days
"""

import math
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from panelflow.datetime_utils import add_days, days_between, format_date, to_date
from panelflow.errors import InvalidConfiguration
from panelflow.logging_config import get_logger
from panelflow.scheduling.config import SchedulingConfig
from panelflow.scheduling.stages import PIPELINE, Handoff, StageDefinition, StepType
from panelflow.scheduling.timeline import CalculationDirection

logger = get_logger(__name__)


# Minimum accepted value for every numeric scheduling input
FIELD_MINIMUMS: Dict[str, int] = {
    'interior_page_count': 1,
    'cover_count': 1,
    'filler_page_count': 0,
    'penciler_pages_per_week': 1,
    'inker_pages_per_week': 1,
    'colorist_pages_per_week': 1,
    'letterer_pages_per_week': 1,
    'pencil_batch_size': 1,
    'ink_batch_size': 1,
    'letter_batch_size': 1,
    'approval_days': 1,
}


@dataclass
class ProjectConfig:
    """The subset of a Project that drives scheduling."""
    interior_page_count: int
    cover_count: int
    filler_page_count: int
    penciler_pages_per_week: int
    inker_pages_per_week: int
    colorist_pages_per_week: int
    letterer_pages_per_week: int
    pencil_batch_size: int
    ink_batch_size: int
    letter_batch_size: int
    approval_days: int
    due_date: Optional[date] = None
    plot_deadline: Optional[date] = None
    cover_deadline: Optional[date] = None
    schedule_direction: CalculationDirection = CalculationDirection.FORWARD

    @classmethod
    def from_project(cls, project) -> 'ProjectConfig':
        """Read scheduling fields off a Project model (or any object with the same attributes)."""
        values = {name: getattr(project, name, None) for name in FIELD_MINIMUMS}
        direction = getattr(project, 'schedule_direction', None) or CalculationDirection.FORWARD.value
        try:
            direction = CalculationDirection(direction)
        except ValueError:
            raise InvalidConfiguration(
                "Invalid scheduling configuration",
                {'schedule_direction': f"must be 'forward' or 'backward', got {direction!r}"},
            )
        return cls(
            due_date=to_date(getattr(project, 'due_date', None)),
            plot_deadline=to_date(getattr(project, 'plot_deadline', None)),
            cover_deadline=to_date(getattr(project, 'cover_deadline', None)),
            schedule_direction=direction,
            **values,
        )

    @classmethod
    def with_defaults(cls, **overrides) -> 'ProjectConfig':
        values = dict(SchedulingConfig.PROJECT_DEFAULTS)
        values.update(overrides)
        return cls(**values)

    def validate(self, direction: Optional[CalculationDirection] = None) -> None:
        """
        Check every numeric input before any date is computed.

        Raises:
            InvalidConfiguration: with a message per offending field
        """
        field_errors = {}
        for name, minimum in FIELD_MINIMUMS.items():
            value = getattr(self, name)
            if value is None:
                field_errors[name] = "is required"
            elif isinstance(value, bool) or not isinstance(value, int):
                field_errors[name] = f"must be a whole number, got {value!r}"
            elif value < minimum:
                field_errors[name] = f"must be >= {minimum}, got {value}"

        if (direction or self.schedule_direction) is CalculationDirection.BACKWARD and self.due_date is None:
            field_errors['due_date'] = "is required to schedule backward from the due date"

        if field_errors:
            raise InvalidConfiguration("Invalid scheduling configuration", field_errors)


@dataclass
class StageSchedule:
    step_type: StepType
    title: str
    description: str
    sort_order: int
    start_date: date
    due_date: date

    @property
    def duration_days(self) -> int:
        return days_between(self.start_date, self.due_date)

    def shifted(self, days: int) -> 'StageSchedule':
        delta = timedelta(days=days)
        return replace(self, start_date=self.start_date + delta, due_date=self.due_date + delta)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'step_type': self.step_type.value,
            'title': self.title,
            'description': self.description,
            'sort_order': self.sort_order,
            'start_date': format_date(self.start_date),
            'due_date': format_date(self.due_date),
            'duration_days': self.duration_days,
        }


@dataclass
class FeasibilityReport:
    """
    Comparison of a computed schedule against the project's due date.

    `days_difference` is signed (negative means slack); `overage_days` is the
    positive part, used for "scheduled N days late" warnings.
    """
    direction: CalculationDirection
    computed_start_date: date
    computed_end_date: date
    due_date: Optional[date]
    days_difference: Optional[int]

    @property
    def overage_days(self) -> int:
        if self.days_difference is None:
            return 0
        return max(0, self.days_difference)

    @property
    def is_feasible(self) -> bool:
        return self.overage_days == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'direction': self.direction.value,
            'computed_start_date': format_date(self.computed_start_date),
            'computed_end_date': format_date(self.computed_end_date),
            'due_date': format_date(self.due_date),
            'days_difference': self.days_difference,
            'overage_days': self.overage_days,
            'is_feasible': self.is_feasible,
        }


@dataclass
class WorkflowSchedule:
    direction: CalculationDirection
    reference_date: date
    stages: List[StageSchedule] = field(default_factory=list)

    @property
    def start_date(self) -> date:
        return min(stage.start_date for stage in self.stages)

    @property
    def end_date(self) -> date:
        """Due date of the final stage."""
        return self.stages[-1].due_date

    def stage(self, step_type: StepType) -> Optional[StageSchedule]:
        for stage in self.stages:
            if stage.step_type is step_type:
                return stage
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'direction': self.direction.value,
            'reference_date': format_date(self.reference_date),
            'start_date': format_date(self.start_date),
            'end_date': format_date(self.end_date),
            'stages': [stage.to_dict() for stage in self.stages],
        }


def days_for_pages(pages: int, pages_per_week: int) -> int:
    """
    Calendar days to produce `pages` at `pages_per_week`.

    Formula: ceil(pages * 7 / pages_per_week), computed in integers so the
    result is always rounded up to a whole day.
    """
    if pages <= 0:
        return 0
    return -(-pages * SchedulingConfig.DAYS_PER_WEEK // pages_per_week)


def last_batch_pages(total_pages: int, batch_size: int) -> int:
    """Pages in the final batch handed downstream."""
    batches = math.ceil(total_pages / batch_size)
    return total_pages - batch_size * (batches - 1)


def stage_rate(config: ProjectConfig, step_type: StepType) -> int:
    """Pages per week for a page-driven stage."""
    if step_type is StepType.PENCILS:
        return config.penciler_pages_per_week
    elif step_type is StepType.INKS:
        return config.inker_pages_per_week
    elif step_type is StepType.COLORS:
        return config.colorist_pages_per_week
    elif step_type is StepType.LETTERS:
        return config.letterer_pages_per_week
    raise ValueError(f"{step_type.value} is not a page-driven stage")


def handoff_batch_size(config: ProjectConfig, step_type: StepType) -> int:
    """Batch size of upstream pages handed to a BATCH stage."""
    if step_type is StepType.INKS:
        return config.pencil_batch_size
    elif step_type is StepType.COLORS:
        return config.ink_batch_size
    elif step_type is StepType.LETTERS:
        return config.letter_batch_size
    raise ValueError(f"{step_type.value} does not receive pages in batches")


def stage_duration_days(config: ProjectConfig, step_type: StepType) -> int:
    """Working duration of a stage, before any batch waiting."""
    if step_type is StepType.PLOT:
        return SchedulingConfig.PLOT_DURATION_DAYS
    elif step_type is StepType.COVERS:
        return SchedulingConfig.cover_duration_days(config.cover_count)
    elif step_type is StepType.SCRIPT:
        return SchedulingConfig.SCRIPT_DURATION_DAYS
    elif step_type in (StepType.PENCILS, StepType.INKS, StepType.COLORS, StepType.LETTERS):
        return days_for_pages(config.interior_page_count, stage_rate(config, step_type))
    elif step_type is StepType.EDITORIAL:
        return days_for_pages(config.filler_page_count, SchedulingConfig.FILLER_PAGES_PER_WEEK)
    elif step_type is StepType.PROOFS:
        return SchedulingConfig.PROOF_DURATION_DAYS
    elif step_type is StepType.PRODUCTION:
        return SchedulingConfig.PRODUCTION_DURATION_DAYS
    elif step_type is StepType.PRINT:
        return SchedulingConfig.print_duration_days()
    raise ValueError(f"No duration rule for step type {step_type!r}")


def stage_description(config: ProjectConfig, step_type: StepType) -> str:
    pages = config.interior_page_count
    total_pages = config.interior_page_count + config.filler_page_count

    if step_type is StepType.PLOT:
        return "Create and approve the story outline and plot points"
    elif step_type is StepType.COVERS:
        return f"Create {config.cover_count} covers for the issue"
    elif step_type is StepType.SCRIPT:
        return "Convert approved plot into full script with dialogue and panel descriptions"
    elif step_type is StepType.PENCILS:
        return (f"Initial sketches and layouts for {pages} interior pages "
                f"({config.penciler_pages_per_week} pages/week)")
    elif step_type is StepType.INKS:
        return (f"Final line work over the pencils for {pages} pages "
                f"({config.inker_pages_per_week} pages/week)")
    elif step_type is StepType.COLORS:
        return f"Coloring {pages} interior pages ({config.colorist_pages_per_week} pages/week)"
    elif step_type is StepType.LETTERS:
        return (f"Adding text, speech bubbles, and sound effects to {pages} pages "
                f"({config.letterer_pages_per_week} pages/week)")
    elif step_type is StepType.EDITORIAL:
        return f"Create {config.filler_page_count} supplementary editorial pages"
    elif step_type is StepType.PROOFS:
        return f"Editorial review of {pages} lettered pages before final approval"
    elif step_type is StepType.PRODUCTION:
        return f"Final assembly, file preparation and prepress for {total_pages} total pages"
    elif step_type is StepType.PRINT:
        return f"Printer queue and press run for {total_pages} pages plus {config.cover_count} covers"
    raise ValueError(f"No description for step type {step_type!r}")


def _includes_stage(config: ProjectConfig, step_type: StepType) -> bool:
    # Editorial pages only exist when there is filler to write
    if step_type is StepType.EDITORIAL:
        return config.filler_page_count > 0
    return True


def _milestone(config: ProjectConfig, step_type: StepType) -> Optional[date]:
    if step_type is StepType.PLOT:
        return config.plot_deadline
    elif step_type is StepType.COVERS:
        return config.cover_deadline
    return None


def _schedule_stage(
    stage_def: StageDefinition,
    config: ProjectConfig,
    anchor: date,
    scheduled: Dict[StepType, StageSchedule],
) -> tuple:
    """Compute (start, due) for one stage from the stages already scheduled."""
    approval = config.approval_days
    duration = stage_duration_days(config, stage_def.step_type)
    handoff = stage_def.handoff

    if handoff is Handoff.NONE:
        start = anchor
        return start, add_days(start, duration)

    elif handoff is Handoff.FINISH:
        upstream = scheduled[stage_def.depends_on[0]]
        start = add_days(upstream.due_date, approval)
        return start, add_days(start, duration)

    elif handoff is Handoff.PARALLEL:
        upstream = scheduled[stage_def.depends_on[0]]
        start = upstream.start_date
        return start, add_days(start, duration)

    elif handoff is Handoff.JOIN:
        upstream_dues = [scheduled[dep].due_date for dep in stage_def.depends_on if dep in scheduled]
        start = add_days(max(upstream_dues), approval)
        return start, add_days(start, duration)

    elif handoff is Handoff.BATCH:
        upstream_type = stage_def.depends_on[0]
        upstream = scheduled[upstream_type]
        pages = config.interior_page_count
        batch = handoff_batch_size(config, stage_def.step_type)
        rate = stage_rate(config, stage_def.step_type)

        if batch >= pages:
            start = add_days(upstream.due_date, approval)
        else:
            first_batch_days = days_for_pages(batch, stage_rate(config, upstream_type))
            start = add_days(upstream.start_date, first_batch_days + approval)

        last_batch_days = days_for_pages(last_batch_pages(pages, batch), rate)
        due = max(
            add_days(start, duration),
            add_days(upstream.due_date, approval + last_batch_days),
        )
        return start, due

    raise ValueError(f"Unhandled handoff {handoff!r} for {stage_def.step_type.value}")


def _compute_stages(config: ProjectConfig, anchor: date, apply_milestones: bool) -> List[StageSchedule]:
    scheduled: Dict[StepType, StageSchedule] = {}

    for stage_def in PIPELINE:
        if not _includes_stage(config, stage_def.step_type):
            continue

        start, due = _schedule_stage(stage_def, config, anchor, scheduled)

        milestone = _milestone(config, stage_def.step_type) if apply_milestones else None
        if milestone is not None:
            if milestone >= start:
                due = milestone
            else:
                logger.warning(
                    "Ignoring milestone before stage start",
                    step_type=stage_def.step_type.value,
                    milestone=milestone.isoformat(),
                    start_date=start.isoformat(),
                )

        scheduled[stage_def.step_type] = StageSchedule(
            step_type=stage_def.step_type,
            title=stage_def.title,
            description=stage_description(config, stage_def.step_type),
            sort_order=stage_def.sort_order,
            start_date=start,
            due_date=due,
        )

    return sorted(scheduled.values(), key=lambda s: s.sort_order)


def build_workflow_schedule(
    config: ProjectConfig,
    reference_date: Optional[date] = None,
    direction: Optional[CalculationDirection] = None,
) -> WorkflowSchedule:
    """
    Compute the dated production stages for a project.

    Forward runs start plot and covers on `reference_date` and honour the
    plot/cover milestones. Backward runs translate the same schedule so the
    final stage is due on the project's due date; milestones are ignored.

    Args:
        config: Project scheduling configuration
        reference_date: "today" for forward runs (defaults to today)
        direction: Overrides config.schedule_direction

    Returns:
        WorkflowSchedule with stages sorted by sort_order

    Raises:
        InvalidConfiguration: if any input is missing, zero or negative
    """
    if reference_date is None:
        reference_date = date.today()
    direction = direction or config.schedule_direction

    config.validate(direction)

    if direction is CalculationDirection.FORWARD:
        stages = _compute_stages(config, reference_date, apply_milestones=True)
    elif direction is CalculationDirection.BACKWARD:
        provisional = _compute_stages(config, config.due_date, apply_milestones=False)
        shift = days_between(provisional[-1].due_date, config.due_date)
        stages = [stage.shifted(shift) for stage in provisional]
    else:
        raise ValueError(f"Unsupported direction {direction!r}")

    schedule = WorkflowSchedule(direction=direction, reference_date=reference_date, stages=stages)

    logger.debug(
        "Computed workflow schedule",
        direction=direction.value,
        start_date=schedule.start_date.isoformat(),
        end_date=schedule.end_date.isoformat(),
        stages=len(stages),
    )
    return schedule


def check_feasibility(schedule: WorkflowSchedule, due_date: Optional[date]) -> FeasibilityReport:
    """
    Compare a computed schedule against the project's due date.

    Forward: days_difference = final stage due - project due date.
    Backward: days_difference = reference date - first stage start, i.e.
    how many days late the schedule finishes if work starts on the
    reference date.
    """
    if schedule.direction is CalculationDirection.FORWARD:
        difference = days_between(due_date, schedule.end_date) if due_date else None
    elif schedule.direction is CalculationDirection.BACKWARD:
        difference = days_between(schedule.start_date, schedule.reference_date)
    else:
        raise ValueError(f"Unsupported direction {schedule.direction!r}")

    return FeasibilityReport(
        direction=schedule.direction,
        computed_start_date=schedule.start_date,
        computed_end_date=schedule.end_date,
        due_date=due_date,
        days_difference=difference,
    )
