"""
Preview a workflow schedule without touching the database.

Used by scripts/preview_workflow.py to check page counts, speeds and
deadlines before a project is created or re-initialized.
"""
from datetime import date
from typing import List, Optional

from panelflow.datetime_utils import format_date, to_date
from panelflow.errors import InvalidConfiguration
from panelflow.scheduling.timeline import CalculationDirection
from panelflow.scheduling.workflow import (
    FeasibilityReport,
    ProjectConfig,
    WorkflowSchedule,
    build_workflow_schedule,
    check_feasibility,
)


def preview_workflow(
    config: ProjectConfig,
    reference_date: Optional[date] = None,
    direction: Optional[CalculationDirection] = None,
) -> tuple:
    """
    Returns:
        (WorkflowSchedule, FeasibilityReport)
    """
    schedule = build_workflow_schedule(config, reference_date, direction)
    return schedule, check_feasibility(schedule, config.due_date)


def format_preview(schedule: WorkflowSchedule, feasibility: FeasibilityReport) -> List[str]:
    """Printable lines for a schedule and its feasibility."""
    lines = [
        "=" * 80,
        "WORKFLOW PREVIEW",
        "=" * 80,
        f"Direction: {schedule.direction.value}",
        f"Reference Date: {format_date(schedule.reference_date)}",
        "",
        f"{'#':>4}  {'Stage':<24}{'Start':<12}{'Due':<12}{'Days':>5}",
        "-" * 80,
    ]
    for stage in schedule.stages:
        lines.append(
            f"{stage.sort_order:>4}  {stage.title:<24}{format_date(stage.start_date):<12}"
            f"{format_date(stage.due_date):<12}{stage.duration_days:>5}"
        )

    lines.append("-" * 80)
    lines.append(f"Computed Start: {format_date(feasibility.computed_start_date)}")
    lines.append(f"Computed End: {format_date(feasibility.computed_end_date)}")

    if feasibility.due_date is None and feasibility.direction is CalculationDirection.FORWARD:
        lines.append("Due Date: not set")
    else:
        lines.append(f"Due Date: {format_date(feasibility.due_date)}")
        if feasibility.is_feasible:
            lines.append(f"✓  On schedule ({-(feasibility.days_difference or 0)} days of slack)")
        else:
            lines.append(f"⚠️  Scheduled {feasibility.overage_days} days late")

    lines.append("=" * 80)
    return lines


def run_preview_script(
    overrides: dict,
    reference_date_str: Optional[str] = None,
    direction: Optional[str] = None,
) -> dict:
    """
    Build and print a preview from CLI values.

    Returns:
        dict with 'schedule' and 'feasibility', or 'error' on invalid input
    """
    try:
        reference_date = to_date(reference_date_str) or date.today()
    except ValueError:
        print(f"Warning: Invalid reference_date '{reference_date_str}', using today")
        reference_date = date.today()

    try:
        config = ProjectConfig.with_defaults(**overrides)
        schedule, feasibility = preview_workflow(
            config,
            reference_date,
            CalculationDirection(direction) if direction else None,
        )
    except (InvalidConfiguration, ValueError) as e:
        print(f"\nError: {e}")
        for field, message in getattr(e, 'field_errors', {}).items():
            print(f"  {field}: {message}")
        return {'error': str(e)}

    for line in format_preview(schedule, feasibility):
        print(line)

    return {'schedule': schedule.to_dict(), 'feasibility': feasibility.to_dict()}
