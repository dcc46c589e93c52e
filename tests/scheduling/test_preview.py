"""
Tests for the command-line workflow preview.
"""
from datetime import date

from panelflow.scheduling.preview import format_preview, preview_workflow, run_preview_script
from panelflow.scheduling.workflow import ProjectConfig


class TestPreview:

    def test_format_preview_lists_every_stage(self):
        schedule, feasibility = preview_workflow(ProjectConfig.with_defaults(), date(2025, 1, 6))
        lines = format_preview(schedule, feasibility)

        assert any("Plot Development" in line and "2025-01-13" in line for line in lines)
        assert any(line.startswith(" 100  Print") for line in lines)
        assert "Computed End: 2025-04-24" in lines
        assert "Due Date: not set" in lines

    def test_late_schedule_is_flagged(self):
        config = ProjectConfig.with_defaults(due_date=date(2025, 4, 20))
        lines = format_preview(*preview_workflow(config, date(2025, 1, 6)))
        assert any("Scheduled 4 days late" in line for line in lines)

    def test_run_preview_script(self, capsys):
        results = run_preview_script({'interior_page_count': 22}, '2025-01-06')

        assert results['schedule']['end_date'] == '2025-04-24'
        assert "WORKFLOW PREVIEW" in capsys.readouterr().out

    def test_run_preview_script_invalid_config(self, capsys):
        results = run_preview_script({'approval_days': 0}, '2025-01-06')

        assert 'error' in results
        assert "approval_days" in capsys.readouterr().out

    def test_backward_without_due_date(self, capsys):
        results = run_preview_script({}, '2025-01-06', 'backward')
        assert 'error' in results
