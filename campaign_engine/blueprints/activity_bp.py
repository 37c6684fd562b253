"""
Campaign Engine
Activity feed blueprint.

Endpoints:
    GET  /api/v1/activity   — list / filter activity entries, newest first
"""

from flask import Blueprint, jsonify, request

from campaign_engine.blueprints import paginate_query
from campaign_engine.models.activity import ActivityLog
from campaign_engine.utils.errors import register_error_handlers

activity_bp = Blueprint("activity", __name__, url_prefix="/api/v1")
register_error_handlers(activity_bp)


@activity_bp.route("/activity", methods=["GET"])
def list_activity():
    """
    Return paginated activity entries with optional filters.

    Query params:
        business_id  — filter by business
        campaign_id  — filter by campaign
        entity_type  — filter by entity type
        entity_id    — filter by entity PK
        action       — filter by action string (prefix match)
        actor        — human | system
        page         — page number (default 1)
        per_page     — items per page (default 50, max 200)
    """
    q = ActivityLog.query

    for field in ("business_id", "campaign_id", "entity_type", "entity_id", "actor"):
        value = request.args.get(field)
        if value:
            q = q.filter(getattr(ActivityLog, field) == value)

    action = request.args.get("action")
    if action:
        q = q.filter(ActivityLog.action.startswith(action))

    # id breaks ties between entries written in the same instant
    q = q.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())

    paginated = paginate_query(q)
    return jsonify({
        "items": [entry.to_dict() for entry in paginated.items],
        "total": paginated.total,
        "page": paginated.page,
        "per_page": paginated.per_page,
        "pages": paginated.pages,
    })
