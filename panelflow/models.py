from flask_sqlalchemy import SQLAlchemy
from datetime import datetime

from panelflow.datetime_utils import format_date
from panelflow.scheduling.config import SchedulingConfig
from panelflow.scheduling.stages import StepStatus, StepType

db = SQLAlchemy()

_DEFAULTS = SchedulingConfig.PROJECT_DEFAULTS


def _isoformat(dt):
    return dt.isoformat() if dt else None


class User(db.Model):
    """Talent and editors who can be assigned to workflow steps."""
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False)
    full_name = db.Column(db.String(128), nullable=True)
    role = db.Column(db.String(32), nullable=True, index=True)  # writer, artist, colorist, letterer, editor
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<User {self.id} - {self.username} - {self.role}>"

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'full_name': self.full_name,
            'role': self.role,
            'is_active': self.is_active,
        }


class Project(db.Model):
    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(256), nullable=False)
    issue = db.Column(db.String(64))
    description = db.Column(db.Text)
    status = db.Column(db.String(32), nullable=False, default="in_progress")
    progress = db.Column(db.Integer, nullable=False, default=0)

    # Scheduling inputs
    interior_page_count = db.Column(db.Integer, nullable=False, default=_DEFAULTS['interior_page_count'])
    cover_count = db.Column(db.Integer, nullable=False, default=_DEFAULTS['cover_count'])
    filler_page_count = db.Column(db.Integer, nullable=False, default=_DEFAULTS['filler_page_count'])
    penciler_pages_per_week = db.Column(db.Integer, nullable=False, default=_DEFAULTS['penciler_pages_per_week'])
    inker_pages_per_week = db.Column(db.Integer, nullable=False, default=_DEFAULTS['inker_pages_per_week'])
    colorist_pages_per_week = db.Column(db.Integer, nullable=False, default=_DEFAULTS['colorist_pages_per_week'])
    letterer_pages_per_week = db.Column(db.Integer, nullable=False, default=_DEFAULTS['letterer_pages_per_week'])
    pencil_batch_size = db.Column(db.Integer, nullable=False, default=_DEFAULTS['pencil_batch_size'])
    ink_batch_size = db.Column(db.Integer, nullable=False, default=_DEFAULTS['ink_batch_size'])
    letter_batch_size = db.Column(db.Integer, nullable=False, default=_DEFAULTS['letter_batch_size'])
    approval_days = db.Column(db.Integer, nullable=False, default=_DEFAULTS['approval_days'])

    due_date = db.Column(db.Date, nullable=True)
    plot_deadline = db.Column(db.Date, nullable=True)
    cover_deadline = db.Column(db.Date, nullable=True)
    schedule_direction = db.Column(db.String(16), nullable=False, default="forward")  # 'forward' or 'backward'

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Project {self.id} - {self.title}>"

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'issue': self.issue,
            'description': self.description,
            'status': self.status,
            'progress': self.progress,
            'interior_page_count': self.interior_page_count,
            'cover_count': self.cover_count,
            'filler_page_count': self.filler_page_count,
            'penciler_pages_per_week': self.penciler_pages_per_week,
            'inker_pages_per_week': self.inker_pages_per_week,
            'colorist_pages_per_week': self.colorist_pages_per_week,
            'letterer_pages_per_week': self.letterer_pages_per_week,
            'pencil_batch_size': self.pencil_batch_size,
            'ink_batch_size': self.ink_batch_size,
            'letter_batch_size': self.letter_batch_size,
            'approval_days': self.approval_days,
            'due_date': format_date(self.due_date),
            'plot_deadline': format_date(self.plot_deadline),
            'cover_deadline': format_date(self.cover_deadline),
            'schedule_direction': self.schedule_direction,
            'created_by': self.created_by,
            'created_at': _isoformat(self.created_at),
            'updated_at': _isoformat(self.updated_at),
        }


class WorkflowStep(db.Model):
    """One dated production stage of a project."""
    __tablename__ = "workflow_steps"
    __table_args__ = (
        db.UniqueConstraint("project_id", "sort_order", name="_project_sort_order_uc"),
        db.Index('idx_workflow_steps_project', 'project_id'),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False)
    step_type = db.Column(db.Enum(StepType), nullable=False)
    title = db.Column(db.String(256), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.Enum(StepStatus), nullable=False, default=StepStatus.NOT_STARTED)
    progress = db.Column(db.Integer, nullable=False, default=0)
    assigned_to = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    start_date = db.Column(db.Date, nullable=True)
    due_date = db.Column(db.Date, nullable=True)
    completed_date = db.Column(db.DateTime, nullable=True)

    sort_order = db.Column(db.Integer, nullable=False)
    prev_step_id = db.Column(db.Integer, nullable=True)
    next_step_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<WorkflowStep {self.id} - project {self.project_id} - {self.step_type.value}>"

    def to_dict(self):
        return {
            'id': self.id,
            'project_id': self.project_id,
            'step_type': self.step_type.value,
            'title': self.title,
            'description': self.description,
            'status': self.status.value,
            'progress': self.progress,
            'assigned_to': self.assigned_to,
            'start_date': format_date(self.start_date),
            'due_date': format_date(self.due_date),
            'completed_date': _isoformat(self.completed_date),
            'sort_order': self.sort_order,
            'prev_step_id': self.prev_step_id,
            'next_step_id': self.next_step_id,
            'created_at': _isoformat(self.created_at),
            'updated_at': _isoformat(self.updated_at),
        }


class WorkflowChangeLog(db.Model):
    """Audit trail of workflow (re-)initializations and who triggered them."""
    __tablename__ = 'workflow_change_logs'

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, nullable=False)
    change_type = db.Column(db.String(50), nullable=False)  # "initialize", "reinitialize", "due_date_change"
    actor_id = db.Column(db.Integer, nullable=True)
    operation_id = db.Column(db.String(36), nullable=True)

    steps_removed = db.Column(db.Integer, nullable=False, default=0)
    steps_created = db.Column(db.Integer, nullable=False, default=0)
    computed_end_date = db.Column(db.Date, nullable=True)
    overage_days = db.Column(db.Integer, nullable=True)

    changed_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.Index('idx_workflow_change_project', 'project_id'),
        db.Index('idx_workflow_changed_at', 'changed_at'),
    )

    def __repr__(self):
        return f"<WorkflowChangeLog project {self.project_id}: {self.change_type} by {self.actor_id}>"

    def to_dict(self):
        return {
            'id': self.id,
            'project_id': self.project_id,
            'change_type': self.change_type,
            'actor_id': self.actor_id,
            'operation_id': self.operation_id,
            'steps_removed': self.steps_removed,
            'steps_created': self.steps_created,
            'computed_end_date': format_date(self.computed_end_date),
            'overage_days': self.overage_days,
            'changed_at': _isoformat(self.changed_at),
        }
