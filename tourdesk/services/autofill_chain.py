"""
Auto-fill chain — seed the next city's arrival from a departure edit.

Travellers usually leave city A on the same leg they arrive in city B, so
after a successful departure edit the mapped arrival field of the next
city on the route is filled in, but only where it is still empty.

Targets follow the unit's *arrival* sharing flag: a family fills every
member's next city, a mini-group (departure and arrival not shared) and an
ungrouped participant fill the editor alone.
"""

import logging
from typing import Any, Sequence

from tourdesk.core.roster import (
    Participant,
    PlanState,
    ResolvedRoster,
    UpsertOperation,
    is_empty,
)
from tourdesk.services.itinerary_fields import DEPARTURE_TO_ARRIVAL
from tourdesk.services.shared_field_propagation import propagation_targets

logger = logging.getLogger(__name__)


def participant_route(event_cities: Sequence[str], participant: Participant) -> list[str]:
    """The event route restricted to the participant's lead city selection, if any."""
    route = list(event_cities or [])
    lead = participant.lead
    if lead is not None and lead.selected_cities:
        selected = set(lead.selected_cities)
        route = [c for c in route if c in selected]
    return route


def next_city(route: Sequence[str], city: str) -> str | None:
    """City following ``city`` on the route; None when last or not on the route."""
    try:
        idx = list(route).index(city)
    except ValueError:
        return None
    if idx + 1 >= len(route):
        return None
    return route[idx + 1]


def propagate_to_next_city(
    roster: ResolvedRoster,
    participant_id: int,
    city: str,
    departure_field: str,
    value: Any,
    route: Sequence[str],
    *,
    state: PlanState | None = None,
) -> list[UpsertOperation]:
    """Plan arrival auto-fill for the city after ``city``.

    Args:
        roster: Resolved roster of the event.
        participant_id: The participant whose departure was edited.
        city: City whose departure field changed.
        departure_field: The departure field that changed.
        value: The new departure value.
        route: Ordered route used to find the next city.
        state: Request-scoped planning state; values planned earlier in the
            same request count as filled.

    Returns:
        Fill-only-empty operations, possibly none.
    """
    arrival_field = DEPARTURE_TO_ARRIVAL.get(departure_field)
    if arrival_field is None or is_empty(value):
        return []

    target_city = next_city(route, city)
    if target_city is None:
        logger.debug("No city after %s on route; auto-fill skipped", city)
        return []

    state = state if state is not None else PlanState()
    operations = []
    for target_id in propagation_targets(roster, participant_id, "arrival"):
        member = roster.participant(target_id)
        visit = member.visit(target_city)

        current = state.planned_value(target_id, target_city, arrival_field)
        if current is PlanState.UNSET:
            current = visit.get(arrival_field) if visit is not None else None
        if not is_empty(current):
            continue

        op = UpsertOperation(
            participant_id=target_id,
            city=target_city,
            patch={arrival_field: value},
            creates=visit is None and not state.has_planned_visit(target_id, target_city),
            fill_only_empty=True,
            source="autofill",
        )
        operations.append(state.record(op))

    logger.debug(
        "Auto-fill %s -> %s.%s for participant %s: %d operation(s)",
        departure_field, target_city, arrival_field, participant_id, len(operations),
    )
    return operations
