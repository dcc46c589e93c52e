"""
Tests for the workflow service layer.
These run against an in-memory SQLite database and verify that steps are
replaced atomically, progress survives a re-initialize, and concurrent runs
for one project are rejected.
"""
import threading
import pytest
from datetime import date, datetime, timedelta
from unittest.mock import patch

from sqlalchemy.exc import IntegrityError

from panelflow.errors import (
    ConfirmationRequired,
    InvalidConfiguration,
    InvalidStepUpdate,
    ProjectNotFound,
    ReinitializeInProgress,
    WorkflowStepNotFound,
)
from panelflow.models import db
from panelflow.scheduling import service
from panelflow.scheduling.stages import StepStatus, StepType
from panelflow.stores import ChangeLogStore, ProjectStore, UserStore, WorkflowStepStore
from panelflow.workflow_lock import project_lock_manager

START = date(2025, 1, 6)


# ==============================================================================
# HELPERS
# ==============================================================================

@pytest.fixture
def project(app):
    return ProjectStore.create_project({'title': 'The Night Ledger', 'issue': '#1'})


def initialize(project_id, **kwargs):
    kwargs.setdefault('reference_date', START)
    return service.initialize_workflow(project_id, actor_id=kwargs.pop('actor_id', 1), **kwargs)


def step_of(project_id, step_type):
    for step in WorkflowStepStore.get_workflow_steps_by_project(project_id):
        if step.step_type is step_type:
            return step
    return None


# ==============================================================================
# INITIALIZE
# ==============================================================================

class TestInitializeWorkflow:

    def test_creates_one_step_per_stage(self, project):
        result = initialize(project.id)
        steps = WorkflowStepStore.get_workflow_steps_by_project(project.id)

        assert len(steps) == 10
        assert [step.sort_order for step in steps] == [10, 20, 30, 40, 50, 60, 70, 80, 90, 100]
        assert all(step.status is StepStatus.NOT_STARTED for step in steps)
        assert all(step.progress == 0 for step in steps)
        assert result.steps_removed == 0
        assert result.feasibility.computed_end_date == date(2025, 4, 24)

    def test_steps_are_linked_in_order(self, project):
        initialize(project.id)
        steps = WorkflowStepStore.get_workflow_steps_by_project(project.id)

        assert steps[0].prev_step_id is None
        assert steps[-1].next_step_id is None
        for previous, current in zip(steps, steps[1:]):
            assert previous.next_step_id == current.id
            assert current.prev_step_id == previous.id

    def test_records_change_log(self, project):
        result = initialize(project.id, actor_id=42)
        entries = ChangeLogStore.get_for_project(project.id)

        assert len(entries) == 1
        assert entries[0].change_type == "initialize"
        assert entries[0].actor_id == 42
        assert entries[0].steps_created == 10
        assert entries[0].operation_id == result.operation_id

    def test_unknown_project(self, app):
        with pytest.raises(ProjectNotFound):
            initialize(999)

    def test_invalid_configuration_writes_nothing(self, project):
        ProjectStore.update_project(project, {'interior_page_count': 0})

        with pytest.raises(InvalidConfiguration) as exc_info:
            initialize(project.id)

        assert 'interior_page_count' in exc_info.value.field_errors
        assert WorkflowStepStore.count_by_project(project.id) == 0

    def test_backward_direction(self, project):
        ProjectStore.update_project(project, {'due_date': date(2025, 6, 30)})
        result = initialize(project.id, direction='backward')

        assert result.feasibility.computed_end_date == date(2025, 6, 30)
        assert step_of(project.id, StepType.PLOT).start_date == date(2025, 3, 14)

    def test_forward_overage_reported(self, project):
        ProjectStore.update_project(project, {'due_date': date(2025, 4, 20)})
        result = initialize(project.id)

        assert result.feasibility.overage_days == 4
        assert ChangeLogStore.get_for_project(project.id)[0].overage_days == 4


class TestReinitializeWorkflow:

    def test_requires_confirmation(self, project):
        initialize(project.id)
        original_ids = [step.id for step in WorkflowStepStore.get_workflow_steps_by_project(project.id)]

        with pytest.raises(ConfirmationRequired) as exc_info:
            initialize(project.id)

        assert exc_info.value.existing_steps == 10
        assert [step.id for step in WorkflowStepStore.get_workflow_steps_by_project(project.id)] == original_ids

    def test_replaces_steps(self, project):
        initialize(project.id)
        ProjectStore.update_project(project, {'filler_page_count': 4})

        result = initialize(project.id, confirm=True)

        assert result.steps_removed == 10
        assert WorkflowStepStore.count_by_project(project.id) == 11
        assert step_of(project.id, StepType.EDITORIAL) is not None
        assert [entry.change_type for entry in ChangeLogStore.get_for_project(project.id)] == [
            "initialize", "reinitialize",
        ]

    def test_preserves_progress_by_step_type(self, project):
        initialize(project.id)
        pencils = step_of(project.id, StepType.PENCILS)
        service.update_workflow_step(pencils.id, {'progress': 50})

        initialize(project.id, confirm=True)
        new_pencils = step_of(project.id, StepType.PENCILS)

        assert new_pencils.progress == 50
        assert new_pencils.status is StepStatus.IN_PROGRESS
        assert step_of(project.id, StepType.INKS).progress == 0

    def test_can_discard_progress(self, project):
        initialize(project.id)
        service.update_workflow_step(step_of(project.id, StepType.PLOT).id, {'progress': 100})

        initialize(project.id, confirm=True, preserve_progress=False)

        plot = step_of(project.id, StepType.PLOT)
        assert plot.progress == 0
        assert plot.status is StepStatus.NOT_STARTED
        assert plot.completed_date is None

    def test_failure_keeps_previous_steps(self, project):
        initialize(project.id)
        original_ids = [step.id for step in WorkflowStepStore.get_workflow_steps_by_project(project.id)]

        with patch('panelflow.scheduling.service.ChangeLogStore.record', side_effect=RuntimeError("disk full")):
            with pytest.raises(RuntimeError):
                initialize(project.id, confirm=True)

        assert [step.id for step in WorkflowStepStore.get_workflow_steps_by_project(project.id)] == original_ids
        assert not project_lock_manager.is_locked(project.id)

    def test_concurrent_reinitialize_rejected(self, project):
        initialize(project.id)
        project_id = project.id
        holding = threading.Event()
        release = threading.Event()

        def hold_lock():
            with project_lock_manager.acquire(project_id, "initialize_workflow"):
                holding.set()
                release.wait(5)

        holder = threading.Thread(target=hold_lock)
        holder.start()
        try:
            assert holding.wait(5)
            with pytest.raises(ReinitializeInProgress):
                initialize(project.id, confirm=True)
        finally:
            release.set()
            holder.join()

        assert WorkflowStepStore.count_by_project(project.id) == 10

    def test_write_conflict_from_another_process(self, project):
        initialize(project.id)
        original_ids = [step.id for step in WorkflowStepStore.get_workflow_steps_by_project(project.id)]
        conflict = IntegrityError("INSERT INTO workflow_steps", {}, Exception("UNIQUE constraint failed"))

        with patch('panelflow.scheduling.service.ChangeLogStore.record', side_effect=conflict):
            with pytest.raises(ReinitializeInProgress) as exc_info:
                initialize(project.id, confirm=True)

        assert exc_info.value.status_code == 409
        assert [step.id for step in WorkflowStepStore.get_workflow_steps_by_project(project.id)] == original_ids
        assert not project_lock_manager.is_locked(project.id)


class TestAutoAssign:

    def test_assigns_first_active_user_per_role(self, project):
        writer = UserStore.create_user({'username': 'wren', 'role': 'writer'})
        UserStore.create_user({'username': 'retired', 'role': 'artist', 'is_active': False})
        artist = UserStore.create_user({'username': 'ada', 'role': 'artist'})
        UserStore.create_user({'username': 'ari', 'role': 'artist'})
        editor = UserStore.create_user({'username': 'ed', 'role': 'editor'})

        initialize(project.id, auto_assign=True)

        assert step_of(project.id, StepType.PLOT).assigned_to == writer.id
        assert step_of(project.id, StepType.SCRIPT).assigned_to == writer.id
        assert step_of(project.id, StepType.PENCILS).assigned_to == artist.id
        assert step_of(project.id, StepType.COVERS).assigned_to == artist.id
        assert step_of(project.id, StepType.PRINT).assigned_to == editor.id
        # no colorist on staff
        assert step_of(project.id, StepType.COLORS).assigned_to is None

    def test_keeps_existing_assignment(self, project):
        UserStore.create_user({'username': 'wren', 'role': 'writer'})
        guest = UserStore.create_user({'username': 'guest', 'role': 'editor'})
        initialize(project.id)
        service.update_workflow_step(step_of(project.id, StepType.PLOT).id, {'assigned_to': guest.id})

        initialize(project.id, confirm=True, auto_assign=True)

        assert step_of(project.id, StepType.PLOT).assigned_to == guest.id


# ==============================================================================
# PROJECT UPDATES
# ==============================================================================

class TestProjectUpdates:

    def test_due_date_change_recomputes(self, project):
        initialize(project.id)

        result = service.recompute_on_due_date_change(project.id, '2025-04-20', actor_id=7, reference_date=START)

        assert project.due_date == date(2025, 4, 20)
        assert result.feasibility.overage_days == 4
        last = ChangeLogStore.get_for_project(project.id)[-1]
        assert last.change_type == "due_date_change"
        assert last.actor_id == 7

    def test_backward_direction_kept_on_due_date_change(self, project):
        ProjectStore.update_project(project, {'due_date': date(2025, 6, 30)})
        initialize(project.id, direction='backward')

        result = service.recompute_on_due_date_change(project.id, date(2025, 7, 31), actor_id=7, reference_date=START)

        assert ProjectStore.get_project(project.id).schedule_direction == 'backward'
        assert result.feasibility.computed_end_date == date(2025, 7, 31)
        assert step_of(project.id, StepType.PRINT).due_date == date(2025, 7, 31)
        assert step_of(project.id, StepType.PLOT).start_date == date(2025, 4, 14)

    def test_due_date_change_without_steps(self, project):
        result = service.recompute_on_due_date_change(project.id, date(2025, 5, 1), actor_id=7)

        assert result is None
        assert ProjectStore.get_project(project.id).due_date == date(2025, 5, 1)
        assert WorkflowStepStore.count_by_project(project.id) == 0

    def test_page_count_change_reinitializes(self, project):
        initialize(project.id)

        _, result = service.apply_project_update(project.id, {'interior_page_count': 30}, 1, START)

        assert result is not None
        pencils = step_of(project.id, StepType.PENCILS)
        assert (pencils.due_date - pencils.start_date).days == 42

    def test_non_schedule_change_leaves_steps(self, project):
        initialize(project.id)
        original_ids = [step.id for step in WorkflowStepStore.get_workflow_steps_by_project(project.id)]

        updated, result = service.apply_project_update(project.id, {'title': 'Renamed'}, 1)

        assert result is None
        assert updated.title == 'Renamed'
        assert [step.id for step in WorkflowStepStore.get_workflow_steps_by_project(project.id)] == original_ids

    def test_invalid_update_saves_nothing(self, project):
        initialize(project.id)

        with pytest.raises(InvalidConfiguration):
            service.apply_project_update(project.id, {'interior_page_count': 0, 'title': 'Broken'}, 1, START)

        reloaded = ProjectStore.get_project(project.id)
        assert reloaded.interior_page_count == 22
        assert reloaded.title == 'The Night Ledger'

    def test_bad_date_rejected(self, project):
        with pytest.raises(InvalidConfiguration) as exc_info:
            service.apply_project_update(project.id, {'due_date': 'next tuesday'}, 1)
        assert 'due_date' in exc_info.value.field_errors


class TestProjectFeasibility:

    def test_uses_persisted_steps(self, project):
        ProjectStore.update_project(project, {'due_date': date(2025, 4, 20)})
        initialize(project.id)

        report = service.project_feasibility(project.id, date(2025, 2, 1))

        assert report.computed_end_date == date(2025, 4, 24)
        assert report.overage_days == 4

    def test_matches_backward_initialize(self, project):
        ProjectStore.update_project(project, {'due_date': date(2025, 6, 30)})
        result = initialize(project.id, direction='backward')

        report = service.project_feasibility(project.id, START)

        assert report.direction.value == 'backward'
        assert report.days_difference == result.feasibility.days_difference == -67

    def test_previews_when_no_steps(self, project):
        ProjectStore.update_project(project, {'due_date': date(2025, 5, 1)})

        report = service.project_feasibility(project.id, START)

        assert report.computed_end_date == date(2025, 4, 24)
        assert report.is_feasible
        assert WorkflowStepStore.count_by_project(project.id) == 0


# ==============================================================================
# STEP UPDATES
# ==============================================================================

class TestResolveStatus:

    def test_progress_starts_a_step(self):
        assert service.resolve_status(StepStatus.NOT_STARTED, 40, None) is StepStatus.IN_PROGRESS

    def test_full_progress_completes(self):
        assert service.resolve_status(StepStatus.IN_PROGRESS, 100, None) is StepStatus.COMPLETED

    def test_explicit_status_wins_once_started(self):
        assert service.resolve_status(StepStatus.IN_PROGRESS, 60, StepStatus.REVIEW) is StepStatus.REVIEW

    def test_progress_wins_on_unstarted_step(self):
        assert service.resolve_status(StepStatus.NOT_STARTED, 60, StepStatus.REVIEW) is StepStatus.IN_PROGRESS

    def test_no_progress_keeps_status(self):
        assert service.resolve_status(StepStatus.BLOCKED, None, None) is StepStatus.BLOCKED
        assert service.resolve_status(StepStatus.IN_PROGRESS, 0, None) is StepStatus.IN_PROGRESS


class TestUpdateWorkflowStep:

    def test_complete_sets_completed_date(self, project):
        initialize(project.id)
        step = service.update_workflow_step(step_of(project.id, StepType.PLOT).id, {'progress': 100})

        assert step.status is StepStatus.COMPLETED
        assert isinstance(step.completed_date, datetime)

    def test_reopen_clears_completed_date(self, project):
        initialize(project.id)
        step_id = step_of(project.id, StepType.PLOT).id
        service.update_workflow_step(step_id, {'progress': 100})

        step = service.update_workflow_step(step_id, {'status': 'revision'})

        assert step.status is StepStatus.REVISION
        assert step.completed_date is None

    def test_out_of_range_progress(self, project):
        initialize(project.id)
        with pytest.raises(InvalidStepUpdate):
            service.update_workflow_step(step_of(project.id, StepType.PLOT).id, {'progress': 150})

    def test_unknown_status(self, project):
        initialize(project.id)
        with pytest.raises(InvalidStepUpdate):
            service.update_workflow_step(step_of(project.id, StepType.PLOT).id, {'status': 'on_vacation'})

    def test_unknown_assignee(self, project):
        initialize(project.id)
        with pytest.raises(InvalidStepUpdate):
            service.update_workflow_step(step_of(project.id, StepType.PLOT).id, {'assigned_to': 999})

    def test_unknown_step(self, app):
        with pytest.raises(WorkflowStepNotFound):
            service.update_workflow_step(999, {'progress': 10})

    def test_explicit_completion_fills_progress(self, project):
        initialize(project.id)
        step_id = step_of(project.id, StepType.PLOT).id
        service.update_workflow_step(step_id, {'progress': 40})

        step = service.update_workflow_step(step_id, {'status': 'completed'})

        assert step.status is StepStatus.COMPLETED
        assert step.progress == 100
        assert isinstance(step.completed_date, datetime)

    def test_start_after_existing_due_rejected(self, project):
        initialize(project.id)
        plot = step_of(project.id, StepType.PLOT)
        original_start = plot.start_date

        with pytest.raises(InvalidStepUpdate):
            service.update_workflow_step(plot.id, {'start_date': plot.due_date + timedelta(days=1)})

        assert step_of(project.id, StepType.PLOT).start_date == original_start

    def test_due_before_new_start_rejected(self, project):
        initialize(project.id)
        plot = step_of(project.id, StepType.PLOT)

        with pytest.raises(InvalidStepUpdate):
            service.update_workflow_step(plot.id, {'start_date': '2025-03-10', 'due_date': '2025-03-01'})

    def test_moving_both_dates_together(self, project):
        initialize(project.id)
        plot = step_of(project.id, StepType.PLOT)

        step = service.update_workflow_step(plot.id, {'start_date': '2025-03-10', 'due_date': '2025-03-20'})

        assert (step.start_date, step.due_date) == (date(2025, 3, 10), date(2025, 3, 20))
