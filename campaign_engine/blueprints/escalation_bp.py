"""
Escalation blueprint.

Endpoints:
    GET   /api/v1/escalations          — list (status incl. "active", severity, campaign_id)
    POST  /api/v1/escalations          — open an escalation
    GET   /api/v1/escalations/<id>     — single escalation
    PATCH /api/v1/escalations/<id>     — {"action": acknowledge|resolve|dismiss, "human_response"}
"""

from flask import Blueprint, jsonify, request

from campaign_engine.blueprints import json_body
from campaign_engine.services import escalation_service
from campaign_engine.utils.errors import E, api_error, register_error_handlers

escalation_bp = Blueprint("escalations", __name__, url_prefix="/api/v1")
register_error_handlers(escalation_bp)


@escalation_bp.route("/escalations", methods=["GET"])
def list_escalations():
    items = escalation_service.list_escalations(
        status=request.args.get("status"),
        severity=request.args.get("severity"),
        campaign_id=request.args.get("campaign_id"),
    )
    return jsonify({"items": [e.to_dict() for e in items], "total": len(items)})


@escalation_bp.route("/escalations", methods=["POST"])
def create_escalation():
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_REQUIRED, "Request body must be a JSON object")
    for field in ("campaign_id", "type", "severity", "title"):
        if not data.get(field):
            return api_error(E.VALIDATION_REQUIRED, f"{field} is required")

    escalation = escalation_service.create_escalation(
        data["campaign_id"],
        data["type"],
        data["severity"],
        data["title"],
        description=data.get("description"),
    )
    return jsonify(escalation.to_dict()), 201


@escalation_bp.route("/escalations/<escalation_id>", methods=["GET"])
def get_escalation(escalation_id):
    return jsonify(escalation_service.get_escalation(escalation_id).to_dict())


@escalation_bp.route("/escalations/<escalation_id>", methods=["PATCH"])
def transition_escalation(escalation_id):
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_REQUIRED, "Request body must be a JSON object")
    if not data.get("action"):
        return api_error(E.VALIDATION_REQUIRED, "Action is required (acknowledge, resolve, dismiss)")
    escalation = escalation_service.transition_escalation(
        escalation_id, data["action"], human_response=data.get("human_response"),
    )
    return jsonify(escalation.to_dict())
