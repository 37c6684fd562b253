"""
Task blueprint.

Endpoints:
    GET  /api/v1/tasks                  — list (campaign_id, assignee, status, business_id)
    POST /api/v1/tasks                  — create
    GET  /api/v1/tasks/<id>             — detail with prerequisite + dependents
    PUT  /api/v1/tasks/<id>             — partial update (absent keys untouched)
    POST /api/v1/tasks/<id>/complete    — gated completion
    POST /api/v1/tasks/<id>/block       — block with reason, opens escalation
"""

import logging

from flask import Blueprint, jsonify, request

from campaign_engine.blueprints import json_body
from campaign_engine.services import task_service
from campaign_engine.services.task_service import TaskUpdate
from campaign_engine.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

task_bp = Blueprint("tasks", __name__, url_prefix="/api/v1")
register_error_handlers(task_bp)

_CREATE_OPTIONAL = ("type", "description", "instructions", "priority", "due_date", "depends_on_id")


@task_bp.route("/tasks", methods=["GET"])
def list_tasks():
    tasks = task_service.list_tasks(
        campaign_id=request.args.get("campaign_id"),
        assignee=request.args.get("assignee"),
        status=request.args.get("status"),
        business_id=request.args.get("business_id"),
    )
    return jsonify({"items": [t.to_dict() for t in tasks], "total": len(tasks)})


@task_bp.route("/tasks", methods=["POST"])
def create_task():
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_REQUIRED, "Request body must be a JSON object")
    for field in ("campaign_id", "title", "assignee"):
        if not data.get(field):
            return api_error(E.VALIDATION_REQUIRED, f"{field} is required")

    task = task_service.create_task(
        data["campaign_id"],
        data["title"],
        data["assignee"],
        **{k: data[k] for k in _CREATE_OPTIONAL if k in data},
    )
    return jsonify(task.to_dict()), 201


@task_bp.route("/tasks/<task_id>", methods=["GET"])
def get_task(task_id):
    return jsonify(task_service.get_task(task_id).to_dict(include_links=True))


@task_bp.route("/tasks/<task_id>", methods=["PUT"])
def update_task(task_id):
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_REQUIRED, "Request body must be a JSON object")
    task = task_service.update_task(task_id, TaskUpdate.from_dict(data))
    return jsonify(task.to_dict())


@task_bp.route("/tasks/<task_id>/complete", methods=["POST"])
def complete_task(task_id):
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_REQUIRED, "Request body must be a JSON object")
    result = task_service.complete_task(task_id, data.get("completion_notes"))

    body = result.task.to_dict()
    body["campaign_reset"] = result.campaign_reset
    if result.follow_up_error is not None:
        body["follow_up_error"] = {
            "kind": result.follow_up_error.kind,
            "error": str(result.follow_up_error),
        }
    return jsonify(body)


@task_bp.route("/tasks/<task_id>/block", methods=["POST"])
def block_task(task_id):
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_REQUIRED, "Request body must be a JSON object")
    task = task_service.block_task(task_id, data.get("reason"))
    return jsonify(task.to_dict())
