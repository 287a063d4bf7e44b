"""
Tourdesk
Group blueprint — explicit participant groups.

Endpoints summary:
    /api/v1/events/<id>/groups                       GET, POST
    /api/v1/groups/<id>                              GET, PUT (rename), DELETE
    /api/v1/groups/<id>/members                      POST  {deal_id, is_primary}
    /api/v1/groups/<id>/members/<deal_id>            DELETE
"""

import logging

from flask import Blueprint, jsonify, request

from tourdesk.services import group_service
from tourdesk.utils.errors import E, api_error, register_domain_error_handlers

logger = logging.getLogger(__name__)

group_bp = Blueprint("groups", __name__, url_prefix="/api/v1")
register_domain_error_handlers(group_bp)


@group_bp.route("/events/<int:event_id>/groups", methods=["GET"])
def list_groups(event_id):
    items = group_service.list_groups(event_id)
    return jsonify({"items": items, "total": len(items)})


@group_bp.route("/events/<int:event_id>/groups", methods=["POST"])
def create_group(event_id):
    data = request.get_json(silent=True) or {}
    if not data.get("name"):
        return api_error(E.VALIDATION_REQUIRED, "name is required")
    member_ids = data.get("member_ids") or []
    if not isinstance(member_ids, list) or not all(isinstance(m, int) for m in member_ids):
        return api_error(E.VALIDATION_INVALID, "member_ids must be a list of integers")
    return jsonify(group_service.create_group(event_id, data)), 201


@group_bp.route("/groups/<int:group_id>", methods=["GET"])
def get_group(group_id):
    return jsonify(group_service.get_group(group_id).to_dict(include_members=True))


@group_bp.route("/groups/<int:group_id>", methods=["PUT"])
def rename_group(group_id):
    data = request.get_json(silent=True) or {}
    if not data.get("name"):
        return api_error(E.VALIDATION_REQUIRED, "name is required")
    return jsonify(group_service.rename_group(group_id, data["name"]))


@group_bp.route("/groups/<int:group_id>", methods=["DELETE"])
def delete_group(group_id):
    group_service.delete_group(group_id)
    return jsonify({"message": "Group deleted"}), 200


@group_bp.route("/groups/<int:group_id>/members", methods=["POST"])
def add_member(group_id):
    data = request.get_json(silent=True) or {}
    deal_id = data.get("deal_id")
    if not isinstance(deal_id, int):
        return api_error(E.VALIDATION_REQUIRED, "deal_id (integer) is required")
    return jsonify(group_service.add_member(group_id, deal_id, bool(data.get("is_primary")))), 201


@group_bp.route("/groups/<int:group_id>/members/<int:deal_id>", methods=["DELETE"])
def remove_member(group_id, deal_id):
    group = group_service.remove_member(group_id, deal_id)
    if group is None:
        return jsonify({"message": "Group emptied and deleted", "group": None}), 200
    return jsonify({"message": "Member removed", "group": group}), 200
