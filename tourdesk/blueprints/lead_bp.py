"""
Tourdesk
Lead blueprint — inquiries, tourists and conversion.

Endpoints summary:
    LEAD     /api/v1/leads                          GET (?status=&event_id=&limit=&offset=), POST
             /api/v1/leads/<id>                     GET, PUT, DELETE
             /api/v1/leads/<id>/convert             POST  {event_id}

    TOURIST  /api/v1/leads/<id>/tourists            GET, POST
             /api/v1/tourists/<id>                  PUT, DELETE
"""

import logging

from flask import Blueprint, jsonify, request

from tourdesk.blueprints import paginate_query
from tourdesk.services import lead_service
from tourdesk.utils.errors import E, api_error, register_domain_error_handlers

logger = logging.getLogger(__name__)

lead_bp = Blueprint("leads", __name__, url_prefix="/api/v1")
register_domain_error_handlers(lead_bp)


@lead_bp.route("/leads", methods=["GET"])
def list_leads():
    leads, total = paginate_query(lead_service.leads_query(
        status=request.args.get("status"),
        event_id=request.args.get("event_id", type=int),
    ))
    return jsonify({"items": [lead.to_dict() for lead in leads], "total": total})


@lead_bp.route("/leads", methods=["POST"])
def create_lead():
    data = request.get_json(silent=True) or {}
    if not data.get("first_name"):
        return api_error(E.VALIDATION_REQUIRED, "first_name is required", details={"first_name": "Required."})
    return jsonify(lead_service.create_lead(data)), 201


@lead_bp.route("/leads/<int:lead_id>", methods=["GET"])
def get_lead(lead_id):
    return jsonify(lead_service.get_lead(lead_id).to_dict(include_tourists=True))


@lead_bp.route("/leads/<int:lead_id>", methods=["PUT"])
def update_lead(lead_id):
    data = request.get_json(silent=True) or {}
    return jsonify(lead_service.update_lead(lead_id, data))


@lead_bp.route("/leads/<int:lead_id>", methods=["DELETE"])
def delete_lead(lead_id):
    lead_service.delete_lead(lead_id)
    return jsonify({"message": "Lead deleted"}), 200


@lead_bp.route("/leads/<int:lead_id>/convert", methods=["POST"])
def convert_lead(lead_id):
    data = request.get_json(silent=True) or {}
    event_id = data.get("event_id")
    if not isinstance(event_id, int):
        return api_error(E.VALIDATION_REQUIRED, "event_id (integer) is required")
    return jsonify(lead_service.convert_lead(lead_id, event_id)), 201


# ── Tourists ─────────────────────────────────────────────────────────────────


@lead_bp.route("/leads/<int:lead_id>/tourists", methods=["GET"])
def list_tourists(lead_id):
    return jsonify(lead_service.list_tourists(lead_id))


@lead_bp.route("/leads/<int:lead_id>/tourists", methods=["POST"])
def add_tourist(lead_id):
    data = request.get_json(silent=True) or {}
    if not data.get("first_name"):
        return api_error(E.VALIDATION_REQUIRED, "first_name is required")
    return jsonify(lead_service.add_tourist(lead_id, data)), 201


@lead_bp.route("/tourists/<int:tourist_id>", methods=["PUT"])
def update_tourist(tourist_id):
    data = request.get_json(silent=True) or {}
    return jsonify(lead_service.update_tourist(tourist_id, data))


@lead_bp.route("/tourists/<int:tourist_id>", methods=["DELETE"])
def delete_tourist(tourist_id):
    lead_service.delete_tourist(tourist_id)
    return jsonify({"message": "Tourist deleted"}), 200
