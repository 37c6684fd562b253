"""
Business registry blueprint.

Endpoints:
    POST /api/v1/businesses                   — create business (slug derived)
    GET  /api/v1/businesses/<id>              — single business
    POST /api/v1/businesses/<id>/playbooks    — create playbook
"""

from flask import Blueprint, jsonify

from campaign_engine.blueprints import json_body
from campaign_engine.services import business_service
from campaign_engine.utils.errors import E, api_error, register_error_handlers

business_bp = Blueprint("businesses", __name__, url_prefix="/api/v1")
register_error_handlers(business_bp)


@business_bp.route("/businesses", methods=["POST"])
def create_business():
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_REQUIRED, "Request body must be a JSON object")
    business = business_service.create_business(data)
    return jsonify(business.to_dict()), 201


@business_bp.route("/businesses/<business_id>", methods=["GET"])
def get_business(business_id):
    return jsonify(business_service.get_business(business_id).to_dict())


@business_bp.route("/businesses/<business_id>/playbooks", methods=["POST"])
def create_playbook(business_id):
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_REQUIRED, "Request body must be a JSON object")
    playbook = business_service.create_playbook(business_id, data)
    return jsonify(playbook.to_dict()), 201
