"""
REST endpoints for projects, workflow steps and the distribution calculator.

All responses are JSON. Scheduling errors map to their status code
(400 invalid input, 404 not found, 409 conflict); anything else is a 500.
"""
from datetime import date

from flask import current_app, jsonify, request

from panelflow.api import api_bp, logger
from panelflow.datetime_utils import to_date
from panelflow.errors import InvalidConfiguration, SchedulingError, WorkflowStepNotFound
from panelflow.models import db
from panelflow.scheduling import service
from panelflow.scheduling.config import SchedulingConfig
from panelflow.scheduling.progress import assess_step_progress
from panelflow.scheduling.timeline import TimelineFormData, calculate_timeline, format_timeline_summary
from panelflow.scheduling.workflow import ProjectConfig
from panelflow.stores import ChangeLogStore, ProjectStore, WorkflowStepStore
from panelflow.workflow_lock import project_lock_manager


def _error_response(exc: SchedulingError):
    payload = {"error": str(exc)}
    field_errors = getattr(exc, 'field_errors', None)
    if field_errors:
        payload["field_errors"] = field_errors
    return jsonify(payload), exc.status_code


def _actor_id(data):
    """Actor from the JSON body, falling back to the X-Actor-Id header."""
    actor_id = data.get('actor_id') if data else None
    if actor_id is None:
        actor_id = request.headers.get('X-Actor-Id')
    if actor_id in (None, ''):
        return None
    try:
        return int(actor_id)
    except (TypeError, ValueError):
        raise InvalidConfiguration("Invalid actor", {'actor_id': f"must be a user id, got {actor_id!r}"})


def _reference_date(data=None):
    """Optional "today" override from the body or the query string."""
    value = (data or {}).get('reference_date') or request.args.get('reference_date')
    try:
        return to_date(value)
    except ValueError as e:
        raise InvalidConfiguration("Invalid reference date", {'reference_date': str(e)})


class _Values:
    """Attribute view over a dict, so unsaved values read like a Project."""

    def __init__(self, values):
        self.__dict__.update(values)


@api_bp.route('/health')
def health():
    return jsonify({
        "status": "ok",
        "locks": project_lock_manager.get_status(),
    }), 200


# ==============================================================================
# Projects
# ==============================================================================

@api_bp.route('/projects', methods=['GET'])
def list_projects():
    try:
        projects = ProjectStore.list_projects()
        return jsonify({"projects": [project.to_dict() for project in projects]}), 200
    except Exception as exc:
        logger.error("Error listing projects", error=str(exc))
        return jsonify({"error": "Failed to list projects", "details": str(exc)}), 500


@api_bp.route('/projects', methods=['POST'])
def create_project():
    """
    Create a project, then initialize its workflow unless
    `initialize_workflow` is false.
    """
    try:
        data = request.get_json(silent=True) or {}
        if not data.get('title'):
            return jsonify({"error": "title is required"}), 400

        actor_id = _actor_id(data)
        values = dict(SchedulingConfig.PROJECT_DEFAULTS)
        values['schedule_direction'] = 'forward'
        values.update(service.normalize_project_values(data))
        if actor_id is not None and values.get('created_by') is None:
            values['created_by'] = actor_id

        # Reject unschedulable inputs before anything is written
        ProjectConfig.from_project(_Values(values)).validate()

        project = ProjectStore.create_project(values)
        logger.info("Project created", project_id=project.id, actor_id=actor_id)

        response = {"project": project.to_dict()}
        if data.get('initialize_workflow', True):
            result = service.initialize_workflow(
                project.id,
                actor_id,
                reference_date=_reference_date(data),
                auto_assign=data.get('auto_assign', current_app.config.get('AUTO_ASSIGN_TALENT', False)),
            )
            response["workflow"] = result.to_dict()
        return jsonify(response), 201

    except SchedulingError as exc:
        db.session.rollback()
        return _error_response(exc)
    except Exception as exc:
        logger.error("Error creating project", error=str(exc))
        db.session.rollback()
        return jsonify({"error": "Failed to create project", "details": str(exc)}), 500


@api_bp.route('/projects/<int:project_id>', methods=['GET'])
def get_project(project_id):
    project = ProjectStore.get_project(project_id)
    if project is None:
        return jsonify({"error": f"Project {project_id} not found"}), 404
    return jsonify({"project": project.to_dict()}), 200


@api_bp.route('/projects/<int:project_id>', methods=['PATCH'])
def update_project(project_id):
    """Update a project; scheduling changes re-initialize its existing steps."""
    try:
        data = request.get_json(silent=True) or {}
        project, result = service.apply_project_update(
            project_id,
            data,
            _actor_id(data),
            reference_date=_reference_date(data),
        )
        response = {"project": project.to_dict(), "workflow": result.to_dict() if result else None}
        return jsonify(response), 200

    except SchedulingError as exc:
        return _error_response(exc)
    except Exception as exc:
        logger.error("Error updating project", project_id=project_id, error=str(exc))
        db.session.rollback()
        return jsonify({"error": "Failed to update project", "details": str(exc)}), 500


@api_bp.route('/projects/<int:project_id>/initialize-workflow', methods=['POST'])
def initialize_workflow(project_id):
    """
    (Re-)initialize a project's workflow.

    Body: {actor_id, confirm, auto_assign, direction, reference_date, preserve_progress}
    """
    try:
        data = request.get_json(silent=True) or {}
        result = service.initialize_workflow(
            project_id,
            _actor_id(data),
            confirm=bool(data.get('confirm', False)),
            reference_date=_reference_date(data),
            direction=data.get('direction'),
            auto_assign=data.get('auto_assign', current_app.config.get('AUTO_ASSIGN_TALENT', False)),
            preserve_progress=data.get('preserve_progress', True),
        )
        return jsonify(result.to_dict()), 200

    except SchedulingError as exc:
        return _error_response(exc)
    except Exception as exc:
        logger.error("Error initializing workflow", project_id=project_id, error=str(exc))
        db.session.rollback()
        return jsonify({"error": "Failed to initialize workflow", "details": str(exc)}), 500


@api_bp.route('/projects/<int:project_id>/workflow-steps', methods=['GET'])
def project_workflow_steps(project_id):
    if ProjectStore.get_project(project_id) is None:
        return jsonify({"error": f"Project {project_id} not found"}), 404
    steps = WorkflowStepStore.get_workflow_steps_by_project(project_id)
    return jsonify({"steps": [step.to_dict() for step in steps]}), 200


@api_bp.route('/projects/<int:project_id>/feasibility', methods=['GET'])
def project_feasibility(project_id):
    try:
        report = service.project_feasibility(project_id, _reference_date() or date.today())
        return jsonify(report.to_dict()), 200
    except SchedulingError as exc:
        return _error_response(exc)
    except Exception as exc:
        logger.error("Error checking feasibility", project_id=project_id, error=str(exc))
        return jsonify({"error": "Failed to check feasibility", "details": str(exc)}), 500


@api_bp.route('/projects/<int:project_id>/change-log', methods=['GET'])
def project_change_log(project_id):
    if ProjectStore.get_project(project_id) is None:
        return jsonify({"error": f"Project {project_id} not found"}), 404
    entries = ChangeLogStore.get_for_project(project_id)
    return jsonify({"changes": [entry.to_dict() for entry in entries]}), 200


# ==============================================================================
# Workflow steps
# ==============================================================================

@api_bp.route('/workflow-steps', methods=['GET'])
def list_workflow_steps():
    steps = WorkflowStepStore.get_all_workflow_steps()
    return jsonify({"steps": [step.to_dict() for step in steps]}), 200


@api_bp.route('/workflow-steps/<int:step_id>', methods=['GET'])
def get_workflow_step(step_id):
    step = WorkflowStepStore.get_workflow_step(step_id)
    if step is None:
        return jsonify({"error": f"Workflow step {step_id} not found"}), 404
    return jsonify({"step": step.to_dict()}), 200


@api_bp.route('/workflow-steps/<int:step_id>', methods=['PATCH'])
def update_workflow_step(step_id):
    """Patch status/progress/assignee; progress drives the status."""
    try:
        data = request.get_json(silent=True) or {}
        step = service.update_workflow_step(step_id, data)
        return jsonify({"step": step.to_dict()}), 200

    except SchedulingError as exc:
        db.session.rollback()
        return _error_response(exc)
    except Exception as exc:
        logger.error("Error updating workflow step", step_id=step_id, error=str(exc))
        db.session.rollback()
        return jsonify({"error": "Failed to update workflow step", "details": str(exc)}), 500


@api_bp.route('/workflow-steps/<int:step_id>/progress-status', methods=['GET'])
def workflow_step_progress_status(step_id):
    """Classify a step's page progress as on_time, one_day_late or behind_schedule."""
    try:
        step = WorkflowStepStore.get_workflow_step(step_id)
        if step is None:
            raise WorkflowStepNotFound(step_id)
        project = ProjectStore.get_project(step.project_id)
        assessment = assess_step_progress(step, project, _reference_date())
        return jsonify({"step_id": step_id, **assessment.to_dict()}), 200
    except SchedulingError as exc:
        return _error_response(exc)
    except Exception as exc:
        logger.error("Error classifying step progress", step_id=step_id, error=str(exc))
        return jsonify({"error": "Failed to classify progress", "details": str(exc)}), 500


# ==============================================================================
# Distribution timeline
# ==============================================================================

@api_bp.route('/timeline/calculate', methods=['POST'])
def timeline_calculate():
    """
    Print/distribution milestones from a completion date (forward) or a
    target availability date (backward).
    """
    try:
        data = request.get_json(silent=True) or {}
        form = TimelineFormData.from_dict(data)
        result = calculate_timeline(form)
        return jsonify({
            "result": result.to_dict(),
            "summary": format_timeline_summary(form, result),
        }), 200
    except SchedulingError as exc:
        return _error_response(exc)
    except Exception as exc:
        logger.error("Error calculating timeline", error=str(exc))
        return jsonify({"error": "Failed to calculate timeline", "details": str(exc)}), 500
