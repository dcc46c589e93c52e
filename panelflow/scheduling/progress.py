"""
Talent progress classification.

Classifies a page-driven stage as on time or behind, for display coloring.
Two measures are combined and the worse one wins:

- pace: pages expected by now at the role's rate (5 working days a week,
  working days = round(calendar days * 5 / 7)) versus pages completed,
  converted to working days behind;
- projection: calendar days still needed for the remaining pages at the
  role's rate (same rounding as the workflow engine) versus calendar days
  left until the stage's due date.

Thresholds: <= 0 days behind is on_time, exactly 1 is one_day_late,
2 or more is behind_schedule.
"""

import math
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from panelflow.datetime_utils import days_between, to_date
from panelflow.scheduling.config import SchedulingConfig
from panelflow.scheduling.stages import StepType, parse_step_type
from panelflow.scheduling.workflow import days_for_pages, stage_rate


class TalentProgressStatus(Enum):
    ON_TIME = "on_time"
    ONE_DAY_LATE = "one_day_late"
    BEHIND_SCHEDULE = "behind_schedule"


@dataclass
class ProgressAssessment:
    status: TalentProgressStatus
    days_behind: int
    expected_pages: int
    completed_pages: int
    total_pages: int

    def to_dict(self) -> dict:
        return {
            'status': self.status.value,
            'days_behind': self.days_behind,
            'expected_pages': self.expected_pages,
            'completed_pages': self.completed_pages,
            'total_pages': self.total_pages,
        }


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def working_days(calendar_days: int) -> int:
    """Approximate working days in a span of calendar days (never negative)."""
    ratio = SchedulingConfig.WORKING_DAYS_PER_WEEK / SchedulingConfig.DAYS_PER_WEEK
    return max(_round_half_up(calendar_days * ratio), 0)


def classify_days_behind(days_behind: int) -> TalentProgressStatus:
    if days_behind <= 0:
        return TalentProgressStatus.ON_TIME
    elif days_behind == 1:
        return TalentProgressStatus.ONE_DAY_LATE
    return TalentProgressStatus.BEHIND_SCHEDULE


def assess_talent_progress(
    total_pages: int,
    completed_pages: int,
    pages_per_week: int,
    start_date: Optional[date],
    due_date: Optional[date],
    reference_date: Optional[date] = None,
) -> ProgressAssessment:
    """
    Assess a stage's page progress against its dates.

    Args:
        total_pages: Pages the stage must deliver
        completed_pages: Pages delivered so far
        pages_per_week: The assigned role's weekly rate
        start_date: Stage start (None -> on_time)
        due_date: Stage due date (None -> on_time)
        reference_date: "today" (defaults to today)

    Raises:
        ValueError: if pages_per_week < 1 or page counts are negative
    """
    if pages_per_week is None or pages_per_week < 1:
        raise ValueError(f"pages_per_week must be >= 1, got {pages_per_week!r}")
    if total_pages < 0 or completed_pages < 0:
        raise ValueError("page counts must be >= 0")

    if reference_date is None:
        reference_date = date.today()

    completed_pages = min(completed_pages, total_pages)

    if start_date is None or due_date is None:
        return ProgressAssessment(TalentProgressStatus.ON_TIME, 0, 0, completed_pages, total_pages)

    pages_per_day = pages_per_week / SchedulingConfig.WORKING_DAYS_PER_WEEK

    # Pace since the stage started
    working_days_passed = working_days(days_between(start_date, reference_date))
    expected_pages = min(total_pages, math.floor(working_days_passed * pages_per_day))
    pace_days_behind = math.ceil((expected_pages - completed_pages) / pages_per_day)

    # Can the remaining pages still land by the due date?
    remaining_pages = total_pages - completed_pages
    days_needed = days_for_pages(remaining_pages, pages_per_week)
    days_left = days_between(reference_date, due_date)
    projected_days_behind = days_needed - days_left if remaining_pages > 0 else 0

    days_behind = max(pace_days_behind, projected_days_behind)

    return ProgressAssessment(
        status=classify_days_behind(days_behind),
        days_behind=max(days_behind, 0),
        expected_pages=expected_pages,
        completed_pages=completed_pages,
        total_pages=total_pages,
    )


def get_talent_progress_status(
    total_pages: int,
    completed_pages: int,
    pages_per_week: int,
    start_date: Optional[date],
    due_date: Optional[date],
    reference_date: Optional[date] = None,
) -> TalentProgressStatus:
    """Shortcut returning only the status of `assess_talent_progress`."""
    return assess_talent_progress(
        total_pages, completed_pages, pages_per_week, start_date, due_date, reference_date
    ).status


def role_pages_per_week(project, step_type: StepType) -> Optional[int]:
    """Weekly rate of the role that works a step, or None for non page-driven steps."""
    try:
        return stage_rate(project, step_type)
    except ValueError:
        return None


def assess_step_progress(step, project, reference_date: Optional[date] = None) -> ProgressAssessment:
    """
    Assess a WorkflowStep using its progress percentage.

    Completed pages = floor(interior pages * progress / 100). Steps that are
    not page-driven, or whose project has no rate for the role, are on time.
    """
    step_type = parse_step_type(step.step_type)
    total_pages = project.interior_page_count or 0
    completed_pages = (total_pages * (step.progress or 0)) // 100
    rate = role_pages_per_week(project, step_type)

    if not rate:
        return ProgressAssessment(TalentProgressStatus.ON_TIME, 0, 0, completed_pages, total_pages)

    return assess_talent_progress(
        total_pages=total_pages,
        completed_pages=completed_pages,
        pages_per_week=rate,
        start_date=to_date(step.start_date),
        due_date=to_date(step.due_date),
        reference_date=reference_date,
    )
