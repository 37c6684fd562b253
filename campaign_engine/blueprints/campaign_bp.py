"""
Campaign lifecycle blueprint.

Endpoints:
    POST /api/v1/campaigns                      — create (status setup)
    GET  /api/v1/campaigns/<id>                 — detail with counts
    PUT  /api/v1/campaigns/<id>                 — partial field update
    POST /api/v1/campaigns/<id>/approve         — setup → approved, default tasks
    POST /api/v1/campaigns/<id>/launch          — setup|approved → live (gated)
    POST /api/v1/campaigns/<id>/pause           — live → paused
    POST /api/v1/campaigns/<id>/resume          — paused → live
    POST /api/v1/campaigns/<id>/complete        — live|paused → completed
    POST /api/v1/campaigns/<id>/content         — attach content

All business rules live in services/campaign_lifecycle.py.
"""

from flask import Blueprint, g, jsonify

from campaign_engine.blueprints import json_body
from campaign_engine.services import campaign_lifecycle as lifecycle
from campaign_engine.utils.errors import E, api_error, register_error_handlers

campaign_bp = Blueprint("campaigns", __name__, url_prefix="/api/v1")
register_error_handlers(campaign_bp)


def _body():
    data = json_body()
    if data is None:
        return None, api_error(E.VALIDATION_REQUIRED, "Request body must be a JSON object")
    return data, None


@campaign_bp.route("/campaigns", methods=["POST"])
def create_campaign():
    data, err = _body()
    if err:
        return err
    playbook_id = data.get("playbook_id")
    if not playbook_id:
        return api_error(E.VALIDATION_REQUIRED, "playbook_id is required")
    fields = {k: v for k, v in data.items() if k not in ("playbook_id", "name")}
    campaign = lifecycle.create_campaign(playbook_id, data.get("name"), **fields)
    return jsonify(campaign.to_dict()), 201


@campaign_bp.route("/campaigns/<campaign_id>", methods=["GET"])
def get_campaign(campaign_id):
    return jsonify(lifecycle.get_campaign(campaign_id).to_dict(include_counts=True))


@campaign_bp.route("/campaigns/<campaign_id>", methods=["PUT"])
def update_campaign(campaign_id):
    data, err = _body()
    if err:
        return err
    return jsonify(lifecycle.update_campaign(campaign_id, data).to_dict())


# ── Lifecycle ────────────────────────────────────────────────────────────────

@campaign_bp.route("/campaigns/<campaign_id>/approve", methods=["POST"])
def approve_campaign(campaign_id):
    data, err = _body()
    if err:
        return err
    approved_by = getattr(g, "session_email", None) or data.get("approved_by")
    campaign = lifecycle.approve_campaign(campaign_id, approved_by=approved_by)
    return jsonify(campaign.to_dict(include_counts=True))


@campaign_bp.route("/campaigns/<campaign_id>/launch", methods=["POST"])
def launch_campaign(campaign_id):
    return jsonify(lifecycle.launch_campaign(campaign_id).to_dict())


@campaign_bp.route("/campaigns/<campaign_id>/pause", methods=["POST"])
def pause_campaign(campaign_id):
    return jsonify(lifecycle.pause_campaign(campaign_id).to_dict())


@campaign_bp.route("/campaigns/<campaign_id>/resume", methods=["POST"])
def resume_campaign(campaign_id):
    return jsonify(lifecycle.resume_campaign(campaign_id).to_dict())


@campaign_bp.route("/campaigns/<campaign_id>/complete", methods=["POST"])
def complete_campaign(campaign_id):
    return jsonify(lifecycle.complete_campaign(campaign_id).to_dict())


# ── Content ──────────────────────────────────────────────────────────────────

@campaign_bp.route("/campaigns/<campaign_id>/content", methods=["POST"])
def add_content(campaign_id):
    data, err = _body()
    if err:
        return err
    fields = {k: v for k, v in data.items() if k != "campaign_id"}
    content = lifecycle.add_content(campaign_id, **fields)
    return jsonify(content.to_dict()), 201
