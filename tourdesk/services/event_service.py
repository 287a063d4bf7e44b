"""
Touring event service — event CRUD and capacity.

Rules:
  - the route (``cities``) is an ordered list of distinct, non-empty names
  - availability counts every deal that is not cancelled
  - db.session.commit() for events happens only in this file
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from sqlalchemy import func, select

from tourdesk.core.exceptions import NotFoundError, ValidationError
from tourdesk.models import db
from tourdesk.models.event import TOUR_TYPES, TourEvent
from tourdesk.models.participation import Deal
from tourdesk.utils.helpers import parse_date

logger = logging.getLogger(__name__)

_UPDATABLE = ("name", "description", "country", "tour_type")


def get_event(event_id: int) -> TourEvent:
    event = db.session.get(TourEvent, event_id)
    if not event:
        raise NotFoundError(resource="TourEvent", resource_id=event_id)
    return event


def _clean_cities(raw) -> list[str]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError("cities must be a non-empty list", details={"cities": "At least one city."})
    cities = []
    for c in raw:
        name = str(c).strip() if c is not None else ""
        if not name:
            raise ValidationError("City names must not be empty", details={"cities": "Empty city name."})
        if name in cities:
            raise ValidationError(f"Duplicate city '{name}' on route", details={"cities": "Cities must be unique."})
        cities.append(name)
    return cities


def _apply(event: TourEvent, data: dict) -> None:
    for field in _UPDATABLE:
        if field in data:
            setattr(event, field, data[field])
    if event.tour_type not in TOUR_TYPES:
        raise ValidationError(
            f"Invalid tour_type '{event.tour_type}'",
            details={"tour_type": f"Must be one of: {', '.join(sorted(TOUR_TYPES))}."},
        )
    if "cities" in data:
        event.cities = _clean_cities(data["cities"])
    for field in ("start_date", "end_date"):
        if field in data:
            parsed = parse_date(data[field])
            if parsed is None:
                raise ValidationError(f"Invalid {field}", details={field: "Use YYYY-MM-DD."})
            setattr(event, field, parsed)
    if event.start_date and event.end_date and event.end_date < event.start_date:
        raise ValidationError("end_date is before start_date", details={"end_date": "Must not precede start_date."})
    if "participant_limit" in data:
        try:
            limit = int(data["participant_limit"])
        except (TypeError, ValueError):
            limit = -1
        if limit < 0:
            raise ValidationError("participant_limit must be a non-negative integer")
        event.participant_limit = limit
    if "price" in data:
        try:
            event.price = Decimal(str(data["price"])) if data["price"] is not None else None
        except InvalidOperation as exc:
            raise ValidationError("price must be a number") from exc


def list_events(country: str | None = None) -> list[dict]:
    stmt = select(TourEvent).order_by(TourEvent.start_date, TourEvent.id)
    if country:
        stmt = stmt.where(TourEvent.country == country)
    return [e.to_dict() for e in db.session.execute(stmt).scalars().all()]


def create_event(data: dict) -> dict:
    """Create a touring event.

    Raises:
        ValidationError: bad route, dates, tour type, limit or price.
    """
    event = TourEvent(
        name=data["name"],
        country=data["country"],
        tour_type=data.get("tour_type", "group"),
        cities=[],
    )
    _apply(event, data)
    if event.start_date is None or event.end_date is None:
        raise ValidationError("start_date and end_date are required")
    db.session.add(event)
    db.session.commit()
    logger.info("Tour event created: %s", event.name, extra={"event_id": event.id})
    return event.to_dict()


def update_event(event_id: int, data: dict) -> dict:
    event = get_event(event_id)
    try:
        _apply(event, data)
    except ValidationError:
        db.session.rollback()
        raise
    db.session.commit()
    refresh_capacity(event_id)
    logger.info("Tour event updated", extra={"event_id": event_id})
    return event.to_dict()


def delete_event(event_id: int) -> None:
    event = get_event(event_id)
    db.session.delete(event)
    db.session.commit()
    logger.info("Tour event deleted", extra={"event_id": event_id})


def booked_count(event_id: int) -> int:
    return db.session.execute(
        select(func.count(Deal.id)).where(Deal.event_id == event_id, Deal.status != "cancelled")
    ).scalar() or 0


def get_availability(event_id: int) -> dict:
    event = get_event(event_id)
    booked = booked_count(event_id)
    limit = event.participant_limit or 0
    return {
        "event_id": event_id,
        "participant_limit": limit,
        "booked": booked,
        "available": max(limit - booked, 0) if limit else None,
        "is_full": bool(limit) and booked >= limit,
    }


def refresh_capacity(event_id: int) -> bool:
    """Recompute ``is_full`` from the current bookings. Commits."""
    event = get_event(event_id)
    is_full = get_availability(event_id)["is_full"]
    if event.is_full != is_full:
        event.is_full = is_full
        db.session.commit()
        logger.info("Event capacity changed: is_full=%s", is_full, extra={"event_id": event_id})
    return is_full
