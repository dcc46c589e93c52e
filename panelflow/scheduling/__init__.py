"""
Production scheduling for comic projects.

Pure engines only: the workflow schedule, the distribution timeline
calculator and the talent progress classifier. The database-backed service
lives in panelflow.scheduling.service.
"""

from panelflow.scheduling.config import SchedulingConfig
from panelflow.scheduling.stages import PIPELINE, Handoff, StepStatus, StepType
from panelflow.scheduling.timeline import (
    CalculationDirection,
    DistributionMethod,
    TimelineFormData,
    TimelineResult,
    calculate_timeline,
    format_timeline_summary,
)
from panelflow.scheduling.workflow import (
    FeasibilityReport,
    ProjectConfig,
    WorkflowSchedule,
    build_workflow_schedule,
    check_feasibility,
    days_for_pages,
)
from panelflow.scheduling.progress import (
    TalentProgressStatus,
    assess_talent_progress,
    get_talent_progress_status,
)

__all__ = [
    'SchedulingConfig',
    'PIPELINE',
    'Handoff',
    'StepStatus',
    'StepType',
    'CalculationDirection',
    'DistributionMethod',
    'TimelineFormData',
    'TimelineResult',
    'calculate_timeline',
    'format_timeline_summary',
    'FeasibilityReport',
    'ProjectConfig',
    'WorkflowSchedule',
    'build_workflow_schedule',
    'check_feasibility',
    'days_for_pages',
    'TalentProgressStatus',
    'assess_talent_progress',
    'get_talent_progress_status',
]
