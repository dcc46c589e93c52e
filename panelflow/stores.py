"""
Storage collaborators for projects, workflow steps and users.

Thin CRUD wrappers over the SQLAlchemy session. Methods that write take a
`commit` flag so a caller can group several writes into one transaction.
"""

from panelflow.datetime_utils import utcnow
from typing import Any, Dict, Iterable, List, Optional

from panelflow.models import Project, User, WorkflowChangeLog, WorkflowStep, db
from panelflow.logging_config import get_logger

logger = get_logger(__name__)


class ProjectStore:

    @staticmethod
    def get_project(project_id: int) -> Optional[Project]:
        return db.session.get(Project, project_id)

    @staticmethod
    def list_projects() -> List[Project]:
        return Project.query.order_by(Project.id.asc()).all()

    @staticmethod
    def create_project(values: Dict[str, Any], commit: bool = True) -> Project:
        project = Project(**values)
        db.session.add(project)
        if commit:
            db.session.commit()
        return project

    @staticmethod
    def update_project(project: Project, values: Dict[str, Any], commit: bool = True) -> Project:
        """Apply column values to a project. Unknown keys are ignored."""
        for key, value in values.items():
            if hasattr(project, key):
                setattr(project, key, value)
        project.updated_at = utcnow()
        if commit:
            db.session.commit()
        return project


class WorkflowStepStore:

    @staticmethod
    def get_workflow_step(step_id: int) -> Optional[WorkflowStep]:
        return db.session.get(WorkflowStep, step_id)

    @staticmethod
    def get_workflow_steps_by_project(project_id: int) -> List[WorkflowStep]:
        return (
            WorkflowStep.query
            .filter_by(project_id=project_id)
            .order_by(WorkflowStep.sort_order.asc())
            .all()
        )

    @staticmethod
    def get_all_workflow_steps() -> List[WorkflowStep]:
        return WorkflowStep.query.order_by(WorkflowStep.project_id.asc(), WorkflowStep.sort_order.asc()).all()

    @staticmethod
    def count_by_project(project_id: int) -> int:
        return WorkflowStep.query.filter_by(project_id=project_id).count()

    @staticmethod
    def create_workflow_step(values: Dict[str, Any], commit: bool = True) -> WorkflowStep:
        step = WorkflowStep(**values)
        db.session.add(step)
        if commit:
            db.session.commit()
        return step

    @staticmethod
    def update_workflow_step(step: WorkflowStep, values: Dict[str, Any], commit: bool = True) -> WorkflowStep:
        for key, value in values.items():
            if hasattr(step, key):
                setattr(step, key, value)
        step.updated_at = utcnow()
        if commit:
            db.session.commit()
        return step

    @staticmethod
    def replace_steps(project_id: int, new_steps: Iterable[Dict[str, Any]]) -> List[WorkflowStep]:
        """
        Delete every step of a project and insert the new set, without committing.

        The caller commits (or rolls back) once, so readers never see a
        partially replaced list. Steps are linked prev/next in sort order.
        """
        removed = (
            WorkflowStep.query
            .filter_by(project_id=project_id)
            .delete(synchronize_session="fetch")
        )

        created = [
            WorkflowStepStore.create_workflow_step(dict(values, project_id=project_id), commit=False)
            for values in sorted(new_steps, key=lambda v: v['sort_order'])
        ]

        # Ids are needed for the prev/next links
        db.session.flush()

        for index, step in enumerate(created):
            step.prev_step_id = created[index - 1].id if index > 0 else None
            step.next_step_id = created[index + 1].id if index < len(created) - 1 else None

        logger.debug("Replaced workflow steps", project_id=project_id, removed=removed, created=len(created))
        return created


class UserStore:

    @staticmethod
    def get_user(user_id: int) -> Optional[User]:
        return db.session.get(User, user_id)

    @staticmethod
    def get_first_user_by_role(role: str) -> Optional[User]:
        return (
            User.query
            .filter_by(role=role, is_active=True)
            .order_by(User.id.asc())
            .first()
        )

    @staticmethod
    def create_user(values: Dict[str, Any], commit: bool = True) -> User:
        user = User(**values)
        db.session.add(user)
        if commit:
            db.session.commit()
        return user


class ChangeLogStore:

    @staticmethod
    def record(project_id: int, change_type: str, actor_id: Optional[int], **values) -> WorkflowChangeLog:
        """Add an audit entry to the current transaction (not committed)."""
        entry = WorkflowChangeLog(
            project_id=project_id,
            change_type=change_type,
            actor_id=actor_id,
            changed_at=utcnow(),
            **values,
        )
        db.session.add(entry)
        return entry

    @staticmethod
    def get_for_project(project_id: int) -> List[WorkflowChangeLog]:
        return (
            WorkflowChangeLog.query
            .filter_by(project_id=project_id)
            .order_by(WorkflowChangeLog.changed_at.asc(), WorkflowChangeLog.id.asc())
            .all()
        )
