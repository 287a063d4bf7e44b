"""
Tourdesk
City visit blueprint — direct access to single itinerary records.

Endpoints summary:
    /api/v1/deals/<id>/visits          GET, POST  (create-only; 409 if the city exists)
    /api/v1/visits/<id>                PATCH      (no propagation)
"""

import logging

from flask import Blueprint, jsonify, request

from tourdesk.services import visit_service
from tourdesk.utils.errors import E, api_error, register_domain_error_handlers

logger = logging.getLogger(__name__)

visit_bp = Blueprint("visits", __name__, url_prefix="/api/v1")
register_domain_error_handlers(visit_bp)


@visit_bp.route("/deals/<int:deal_id>/visits", methods=["GET"])
def list_visits(deal_id):
    return jsonify(visit_service.list_visits(deal_id))


@visit_bp.route("/deals/<int:deal_id>/visits", methods=["POST"])
def create_visit(deal_id):
    data = request.get_json(silent=True) or {}
    city = data.pop("city", None)
    if not city:
        return api_error(E.VALIDATION_REQUIRED, "city is required", details={"city": "Required."})
    return jsonify(visit_service.create_visit(deal_id, city, data)), 201


@visit_bp.route("/visits/<int:visit_id>", methods=["PATCH"])
def patch_visit(visit_id):
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        return api_error(E.VALIDATION_REQUIRED, "At least one field is required")
    return jsonify(visit_service.patch_visit(visit_id, data))
