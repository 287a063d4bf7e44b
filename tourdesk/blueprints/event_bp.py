"""
Tourdesk
Event blueprint — touring events, their roster and itinerary edits.

Endpoints summary:
    EVENT      /api/v1/events                              GET, POST
               /api/v1/events/<id>                         GET, PUT, DELETE
               /api/v1/events/<id>/availability            GET

    ROSTER     /api/v1/events/<id>/participants            GET   (ordered, resolved, table meta)

    ITINERARY  /api/v1/events/<id>/itinerary/plan          POST  (dry run)
               /api/v1/events/<id>/itinerary/edits         POST  (plan + execute + auto-fill)

Edit body:
    {"edits": [{"participant_id": 1, "city": "Beijing",
                "field": "hotel_name", "value": "Grand Hotel"}, ...]}
    A single edit object (without the "edits" wrapper) is accepted too.

Service layer owns all business logic and commits.
"""

import logging

from flask import Blueprint, jsonify, request

from tourdesk.services import event_service, roster_service
from tourdesk.utils.errors import E, api_error, register_domain_error_handlers

logger = logging.getLogger(__name__)

event_bp = Blueprint("events", __name__, url_prefix="/api/v1")
register_domain_error_handlers(event_bp)

_REQUIRED_EVENT_FIELDS = ("name", "country", "start_date", "end_date", "cities")
_REQUIRED_EDIT_FIELDS = ("participant_id", "city", "field")


# ── Helpers ──────────────────────────────────────────────────────────────────


def _parse_edits(data):
    """Return (edits, None) or (None, error_response)."""
    raw = data.get("edits") if "edits" in data else [data]
    if not isinstance(raw, list) or not raw:
        return None, api_error(E.VALIDATION_REQUIRED, "edits must be a non-empty list")

    edits = []
    for idx, item in enumerate(raw):
        if not isinstance(item, dict):
            return None, api_error(E.VALIDATION_INVALID, f"edits[{idx}] must be an object")
        missing = [k for k in _REQUIRED_EDIT_FIELDS if item.get(k) in (None, "")]
        if missing:
            return None, api_error(
                E.VALIDATION_REQUIRED,
                f"edits[{idx}]: {', '.join(missing)} required",
                details={k: "Required." for k in missing},
            )
        try:
            participant_id = int(item["participant_id"])
        except (TypeError, ValueError):
            return None, api_error(E.VALIDATION_INVALID, f"edits[{idx}]: participant_id must be an integer")
        edits.append({
            "participant_id": participant_id,
            "city": item["city"],
            "field": item["field"],
            "value": item.get("value"),
        })
    return edits, None


# ═══════════════════════════════════════════════════════════════════════════
#  EVENT CRUD
# ═══════════════════════════════════════════════════════════════════════════


@event_bp.route("/events", methods=["GET"])
def list_events():
    items = event_service.list_events(country=request.args.get("country"))
    return jsonify({"items": items, "total": len(items)})


@event_bp.route("/events", methods=["POST"])
def create_event():
    data = request.get_json(silent=True) or {}
    missing = [f for f in _REQUIRED_EVENT_FIELDS if not data.get(f)]
    if missing:
        return api_error(
            E.VALIDATION_REQUIRED,
            f"{', '.join(missing)} required",
            details={f: "Required." for f in missing},
        )
    return jsonify(event_service.create_event(data)), 201


@event_bp.route("/events/<int:event_id>", methods=["GET"])
def get_event(event_id):
    return jsonify(event_service.get_event(event_id).to_dict())


@event_bp.route("/events/<int:event_id>", methods=["PUT"])
def update_event(event_id):
    data = request.get_json(silent=True) or {}
    return jsonify(event_service.update_event(event_id, data))


@event_bp.route("/events/<int:event_id>", methods=["DELETE"])
def delete_event(event_id):
    event_service.delete_event(event_id)
    return jsonify({"message": "Event deleted"}), 200


@event_bp.route("/events/<int:event_id>/availability", methods=["GET"])
def event_availability(event_id):
    return jsonify(event_service.get_availability(event_id))


# ═══════════════════════════════════════════════════════════════════════════
#  ROSTER & ITINERARY
# ═══════════════════════════════════════════════════════════════════════════


@event_bp.route("/events/<int:event_id>/participants", methods=["GET"])
def list_participants(event_id):
    return jsonify(roster_service.get_roster_view(event_id))


@event_bp.route("/events/<int:event_id>/itinerary/plan", methods=["POST"])
def plan_itinerary(event_id):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return api_error(E.VALIDATION_REQUIRED, "JSON body required")
    edits, err = _parse_edits(data)
    if err:
        return err
    return jsonify(roster_service.plan_itinerary_edits(event_id, edits))


@event_bp.route("/events/<int:event_id>/itinerary/edits", methods=["POST"])
def apply_itinerary(event_id):
    """Apply itinerary edits with shared-field propagation and auto-fill.

    Returns 200 with one result per executed upsert, including failed
    ones; the client reverts exactly the operations whose ``ok`` is false.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return api_error(E.VALIDATION_REQUIRED, "JSON body required")
    edits, err = _parse_edits(data)
    if err:
        return err
    return jsonify(roster_service.apply_itinerary_edits(event_id, edits))
