"""
City visit service — direct, single-record access to itinerary rows.

These operations never fan out to a sharing unit; shared edits go through
``roster_service.apply_itinerary_edits``.
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from tourdesk.core.exceptions import NotFoundError, ValidationError
from tourdesk.models import db
from tourdesk.models.participation import CityVisit, Deal
from tourdesk.services.itinerary_fields import normalise_value
from tourdesk.services.roster_service import SqlCityVisitSink

logger = logging.getLogger(__name__)


def _get_deal(deal_id: int) -> Deal:
    deal = db.session.get(Deal, deal_id)
    if not deal:
        raise NotFoundError(resource="Deal", resource_id=deal_id)
    return deal


def _normalise_patch(data: dict) -> dict:
    return {name: normalise_value(name, value) for name, value in data.items()}


def list_visits(deal_id: int) -> list[dict]:
    _get_deal(deal_id)
    visits = db.session.execute(
        select(CityVisit).where(CityVisit.deal_id == deal_id).order_by(CityVisit.id)
    ).scalars().all()
    return [v.to_dict() for v in visits]


def create_visit(deal_id: int, city: str, values: dict) -> dict:
    """Create-only insert of a city visit.

    Raises:
        NotFoundError: unknown deal.
        ValidationError: city not on the event route, or a bad field value.
        ConflictError: the deal already has a visit for this city.
    """
    deal = _get_deal(deal_id)
    route = deal.event.cities or []
    if city not in route:
        raise ValidationError(
            f"City '{city}' is not on the route of event {deal.event_id}",
            details={"city": f"Must be one of: {', '.join(route)}."},
        )
    visit = SqlCityVisitSink().create_city_visit(deal_id, city, _normalise_patch(values))
    logger.info("City visit created: %s for deal %s", city, deal_id, extra={"participant_id": deal_id})
    return visit.to_dict()


def patch_visit(visit_id: int, data: dict) -> dict:
    """Patch one visit's fields, without propagation."""
    visit = db.session.get(CityVisit, visit_id)
    if not visit:
        raise NotFoundError(resource="CityVisit", resource_id=visit_id)
    patch = _normalise_patch(data)
    for name, value in patch.items():
        setattr(visit, name, value)
    db.session.commit()
    logger.info("City visit %s patched: %s", visit_id, ", ".join(patch), extra={"participant_id": visit.deal_id})
    return visit.to_dict()
