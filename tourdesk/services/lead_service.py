"""
Lead service — inquiries, their tourists and conversion to participants.

Rules:
  - a lead has at most one primary tourist; the first tourist added
    becomes primary, and marking another one primary clears the flag on
    the rest
  - ``selected_cities`` must be a subset of the linked event's route
  - conversion creates one Contact + Deal per tourist and never groups
    them explicitly: the family is implied by the shared lead
  - db.session.commit() for leads happens only in this file
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy import select

from tourdesk.core.exceptions import NotFoundError, ValidationError
from tourdesk.models import db
from tourdesk.models.lead import LEAD_SOURCES, LEAD_STATUSES, TOURIST_TYPES, Contact, Lead, LeadTourist
from tourdesk.models.participation import Deal
from tourdesk.services import event_service
from tourdesk.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)

_TEXT_FIELDS = ("first_name", "last_name", "email", "phone", "notes")
_MONEY_FIELDS = ("tour_cost", "advance_payment", "remaining_payment")


# ── Leads ────────────────────────────────────────────────────────────────────


def get_lead(lead_id: int) -> Lead:
    lead = db.session.get(Lead, lead_id)
    if not lead:
        raise NotFoundError(resource="Lead", resource_id=lead_id)
    return lead


def _money(field: str, value):
    if value is None or value == "":
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValidationError(f"{field} must be a number", details={field: "Expected a number."}) from exc
    if amount < 0:
        raise ValidationError(f"{field} must not be negative", details={field: "Must be >= 0."})
    return amount


def _currency(field: str, value):
    if not value:
        return None
    code = str(value).upper()
    allowed = current_app.config.get("TOUR_CURRENCIES", ())
    if code not in allowed:
        raise ValidationError(
            f"Unsupported currency '{code}'",
            details={field: f"Must be one of: {', '.join(allowed)}."},
        )
    return code


def _validate_selected_cities(lead: Lead) -> None:
    if lead.selected_cities is None:
        return
    if not isinstance(lead.selected_cities, list):
        raise ValidationError("selected_cities must be a list or null")
    if lead.event_id is None:
        return
    route = event_service.get_event(lead.event_id).cities or []
    unknown = [c for c in lead.selected_cities if c not in route]
    if unknown:
        raise ValidationError(
            f"Cities not on the event route: {', '.join(map(str, unknown))}",
            details={"selected_cities": f"Must be a subset of: {', '.join(route)}."},
        )


def _apply(lead: Lead, data: dict) -> None:
    for field in _TEXT_FIELDS:
        if field in data:
            setattr(lead, field, data[field])
    if "status" in data:
        if data["status"] not in LEAD_STATUSES:
            raise ValidationError(
                f"Invalid status '{data['status']}'",
                details={"status": f"Must be one of: {', '.join(sorted(LEAD_STATUSES))}."},
            )
        lead.status = data["status"]
    if "source" in data:
        if data["source"] not in LEAD_SOURCES:
            raise ValidationError(f"Invalid source '{data['source']}'")
        lead.source = data["source"]
    if "event_id" in data:
        if data["event_id"] is not None:
            event_service.get_event(data["event_id"])
        lead.event_id = data["event_id"]
    for field in _MONEY_FIELDS:
        if field in data:
            setattr(lead, field, _money(field, data[field]))
        currency_field = f"{field}_currency"
        if currency_field in data:
            setattr(lead, currency_field, _currency(currency_field, data[currency_field]))
    if "selected_cities" in data:
        raw = data["selected_cities"]
        lead.selected_cities = list(raw) if raw else None
    _validate_selected_cities(lead)


def leads_query(status: str | None = None, event_id: int | None = None):
    """Filtered lead query, newest first; the caller paginates."""
    query = db.session.query(Lead)
    if status:
        query = query.filter(Lead.status == status)
    if event_id:
        query = query.filter(Lead.event_id == event_id)
    return query.order_by(Lead.created_at.desc(), Lead.id.desc())


def create_lead(data: dict) -> dict:
    """Create a lead, optionally with its tourists.

    Raises:
        ValidationError: bad status, source, money, currency or city subset.
        NotFoundError: event_id does not exist.
    """
    lead = Lead(first_name=data["first_name"], status="new", source="manual")
    _apply(lead, data)
    db.session.add(lead)
    db.session.flush()
    for tourist_data in data.get("tourists") or []:
        _add_tourist(lead, tourist_data)
    db.session.commit()
    logger.info("Lead created: id=%s status=%s", lead.id, lead.status)
    return lead.to_dict(include_tourists=True)


def update_lead(lead_id: int, data: dict) -> dict:
    lead = get_lead(lead_id)
    try:
        _apply(lead, data)
    except (ValidationError, NotFoundError):
        db.session.rollback()
        raise
    db.session.commit()
    logger.info("Lead updated: id=%s", lead_id)
    return lead.to_dict(include_tourists=True)


def delete_lead(lead_id: int) -> None:
    lead = get_lead(lead_id)
    db.session.delete(lead)
    db.session.commit()
    logger.info("Lead deleted: id=%s", lead_id)


# ── Tourists ─────────────────────────────────────────────────────────────────


def _set_primary(lead: Lead, tourist: LeadTourist) -> None:
    for other in lead.tourists:
        other.is_primary = other is tourist


def _apply_tourist(tourist: LeadTourist, data: dict) -> None:
    for field in ("first_name", "last_name", "middle_name"):
        if field in data:
            setattr(tourist, field, data[field])
    if not tourist.first_name:
        raise ValidationError("first_name is required", details={"first_name": "Required."})
    if "tourist_type" in data:
        if data["tourist_type"] not in TOURIST_TYPES:
            raise ValidationError(
                f"Invalid tourist_type '{data['tourist_type']}'",
                details={"tourist_type": f"Must be one of: {', '.join(sorted(TOURIST_TYPES))}."},
            )
        tourist.tourist_type = data["tourist_type"]
    if "date_of_birth" in data:
        try:
            tourist.date_of_birth = parse_date_input(data["date_of_birth"])
        except ValueError as exc:
            raise ValidationError(str(exc), details={"date_of_birth": "Invalid date."}) from exc


def _add_tourist(lead: Lead, data: dict) -> LeadTourist:
    tourist = LeadTourist(lead=lead, first_name=data.get("first_name"), tourist_type="adult", is_primary=False)
    _apply_tourist(tourist, data)
    if len(lead.tourists) == 1 or data.get("is_primary"):
        _set_primary(lead, tourist)
    db.session.flush()
    return tourist


def list_tourists(lead_id: int) -> list[dict]:
    return [t.to_dict() for t in get_lead(lead_id).tourists]


def add_tourist(lead_id: int, data: dict) -> dict:
    lead = get_lead(lead_id)
    try:
        tourist = _add_tourist(lead, data)
    except ValidationError:
        db.session.rollback()
        raise
    db.session.commit()
    logger.info("Tourist added to lead %s: id=%s primary=%s", lead_id, tourist.id, tourist.is_primary)
    return tourist.to_dict()


def _get_tourist(tourist_id: int) -> LeadTourist:
    tourist = db.session.get(LeadTourist, tourist_id)
    if not tourist:
        raise NotFoundError(resource="LeadTourist", resource_id=tourist_id)
    return tourist


def update_tourist(tourist_id: int, data: dict) -> dict:
    tourist = _get_tourist(tourist_id)
    try:
        _apply_tourist(tourist, data)
    except ValidationError:
        db.session.rollback()
        raise
    if data.get("is_primary"):
        _set_primary(tourist.lead, tourist)
    elif data.get("is_primary") is False:
        tourist.is_primary = False
    db.session.commit()
    return tourist.to_dict()


def delete_tourist(tourist_id: int) -> None:
    """Remove a tourist; the first remaining one inherits the primary flag."""
    tourist = _get_tourist(tourist_id)
    lead = tourist.lead
    was_primary = tourist.is_primary
    lead.tourists.remove(tourist)
    if was_primary and lead.tourists:
        _set_primary(lead, lead.tourists[0])
    db.session.commit()
    logger.info("Tourist %s removed from lead %s", tourist_id, lead.id)


# ── Conversion ───────────────────────────────────────────────────────────────


def _converted_tourist_ids(lead_id: int, event_id: int) -> set[int | None]:
    rows = db.session.execute(
        select(Contact.lead_tourist_id)
        .join(Deal, Deal.contact_id == Contact.id)
        .where(Contact.lead_id == lead_id, Deal.event_id == event_id)
    ).scalars().all()
    return set(rows)


def convert_lead(lead_id: int, event_id: int) -> dict:
    """Register a lead's tourists as participants of an event.

    Creates one Contact and one pending Deal per tourist (or one for the
    lead itself when it lists no tourists). Tourists already registered on
    the event are skipped, so repeating the call is harmless.

    Raises:
        NotFoundError: unknown lead or event.
        ValidationError: the event has no room for the new participants.
    """
    lead = get_lead(lead_id)
    event = event_service.get_event(event_id)
    already = _converted_tourist_ids(lead_id, event_id)

    people = [(t, t.full_name) for t in lead.tourists] or [(None, lead.display_name)]
    pending = [(t, name) for t, name in people if (t.id if t else None) not in already]

    limit = event.participant_limit or 0
    if limit and event_service.booked_count(event_id) + len(pending) > limit:
        raise ValidationError(
            f"Event {event_id} has no room for {len(pending)} more participant(s)",
            details={"event_id": "Participant limit reached."},
        )

    created = []
    for tourist, name in pending:
        is_contact_person = tourist is None or tourist.is_primary
        contact = Contact(
            name=name,
            email=lead.email if is_contact_person else None,
            phone=lead.phone if is_contact_person else None,
            lead_id=lead.id,
            lead_tourist_id=tourist.id if tourist else None,
        )
        db.session.add(contact)
        db.session.flush()
        deal = Deal(contact_id=contact.id, event_id=event_id, status="pending")
        db.session.add(deal)
        created.append(deal)

    lead.status = "converted"
    if lead.event_id is None:
        lead.event_id = event_id
    db.session.commit()
    event_service.refresh_capacity(event_id)

    logger.info(
        "Lead %s converted: %d participant(s) created, %d skipped",
        lead_id, len(created), len(people) - len(pending), extra={"event_id": event_id},
    )
    return {
        "lead_id": lead_id,
        "event_id": event_id,
        "created": [d.to_dict() for d in created],
        "skipped": len(people) - len(pending),
    }
