"""
Tests for talent progress classification.
"""
import pytest
from datetime import date
from unittest.mock import Mock

from panelflow.scheduling.stages import StepType
from panelflow.scheduling.progress import (
    TalentProgressStatus,
    assess_step_progress,
    assess_talent_progress,
    classify_days_behind,
    get_talent_progress_status,
    role_pages_per_week,
    working_days,
)

STAGE_START = date(2025, 1, 6)
LATE_DUE = date(2025, 3, 1)


class TestWorkingDays:

    def test_full_week(self):
        assert working_days(7) == 5

    def test_rounds_half_up(self):
        assert working_days(1) == 1   # 0.71
        assert working_days(3) == 2   # 2.14
        assert working_days(14) == 10

    def test_never_negative(self):
        assert working_days(-3) == 0


class TestClassifyDaysBehind:

    @pytest.mark.parametrize("days,expected", [
        (-4, TalentProgressStatus.ON_TIME),
        (0, TalentProgressStatus.ON_TIME),
        (1, TalentProgressStatus.ONE_DAY_LATE),
        (2, TalentProgressStatus.BEHIND_SCHEDULE),
        (30, TalentProgressStatus.BEHIND_SCHEDULE),
    ])
    def test_thresholds(self, days, expected):
        assert classify_days_behind(days) is expected


class TestAssessTalentProgress:
    """Penciler at 5 pages/week (1 page per working day) on a 22 page issue."""

    def test_first_day_is_on_time(self):
        result = assess_talent_progress(22, 0, 5, STAGE_START, date(2025, 2, 6), STAGE_START)
        assert result.status is TalentProgressStatus.ON_TIME
        assert result.expected_pages == 0

    def test_on_pace_after_a_week(self):
        result = assess_talent_progress(22, 5, 5, STAGE_START, LATE_DUE, date(2025, 1, 13))
        assert result.status is TalentProgressStatus.ON_TIME
        assert result.expected_pages == 5

    def test_one_page_short_is_one_day_late(self):
        result = assess_talent_progress(22, 4, 5, STAGE_START, LATE_DUE, date(2025, 1, 13))
        assert result.status is TalentProgressStatus.ONE_DAY_LATE
        assert result.days_behind == 1

    def test_two_pages_short_is_behind(self):
        result = assess_talent_progress(22, 3, 5, STAGE_START, LATE_DUE, date(2025, 1, 13))
        assert result.status is TalentProgressStatus.BEHIND_SCHEDULE
        assert result.days_behind == 2

    def test_ahead_of_pace_but_due_date_too_close(self):
        result = assess_talent_progress(22, 10, 5, STAGE_START, date(2025, 1, 15), date(2025, 1, 13))
        assert result.status is TalentProgressStatus.BEHIND_SCHEDULE

    def test_finished_work_is_on_time_even_past_due(self):
        result = assess_talent_progress(22, 22, 5, STAGE_START, date(2025, 1, 15), date(2025, 3, 1))
        assert result.status is TalentProgressStatus.ON_TIME
        assert result.days_behind == 0

    def test_expected_pages_capped_at_total(self):
        result = assess_talent_progress(22, 22, 5, STAGE_START, LATE_DUE, date(2025, 6, 1))
        assert result.expected_pages == 22

    def test_missing_dates_are_on_time(self):
        assert get_talent_progress_status(22, 0, 5, None, LATE_DUE) is TalentProgressStatus.ON_TIME
        assert get_talent_progress_status(22, 0, 5, STAGE_START, None) is TalentProgressStatus.ON_TIME

    def test_zero_rate_rejected(self):
        with pytest.raises(ValueError):
            assess_talent_progress(22, 0, 0, STAGE_START, LATE_DUE, STAGE_START)

    def test_negative_pages_rejected(self):
        with pytest.raises(ValueError):
            assess_talent_progress(22, -1, 5, STAGE_START, LATE_DUE, STAGE_START)


class TestAssessStepProgress:

    def make_project(self):
        project = Mock()
        project.interior_page_count = 22
        project.penciler_pages_per_week = 5
        project.inker_pages_per_week = 7
        project.colorist_pages_per_week = 10
        project.letterer_pages_per_week = 15
        return project

    def make_step(self, step_type, progress):
        step = Mock()
        step.step_type = step_type
        step.progress = progress
        step.start_date = STAGE_START
        step.due_date = LATE_DUE
        return step

    def test_completed_pages_from_progress(self):
        result = assess_step_progress(self.make_step('pencils', 50), self.make_project(), date(2025, 1, 13))
        assert result.completed_pages == 11
        assert result.status is TalentProgressStatus.ON_TIME

    def test_uses_role_rate(self):
        # 10 pages/week: 10 pages expected after a week, 2 done
        result = assess_step_progress(self.make_step('colors', 10), self.make_project(), date(2025, 1, 13))
        assert result.expected_pages == 10
        assert result.days_behind == 4
        assert result.status is TalentProgressStatus.BEHIND_SCHEDULE

    def test_non_page_stage_is_on_time(self):
        result = assess_step_progress(self.make_step('script', 0), self.make_project(), date(2025, 2, 28))
        assert result.status is TalentProgressStatus.ON_TIME

    def test_to_dict(self):
        result = assess_step_progress(self.make_step('letters', 0), self.make_project(), STAGE_START)
        assert result.to_dict()['status'] == 'on_time'

    @pytest.mark.parametrize("step_type,rate", [
        (StepType.PENCILS, 5),
        (StepType.INKS, 7),
        (StepType.COLORS, 10),
        (StepType.LETTERS, 15),
    ])
    def test_role_rate_per_stage(self, step_type, rate):
        assert role_pages_per_week(self.make_project(), step_type) == rate

    @pytest.mark.parametrize("step_type", [StepType.PLOT, StepType.SCRIPT, StepType.PRINT])
    def test_no_rate_for_non_page_stage(self, step_type):
        assert role_pages_per_week(self.make_project(), step_type) is None
