"""
Shared-field propagation — fan one itinerary edit out to a sharing unit.

Rules:
  - the edited field's group (arrival / hotel / departure) decides whether
    the edit is shared; unclassified fields only reach the editor
  - when the editor's unit shares that group, every unit member receives
    the same value; otherwise only the editor does
  - each target gets one idempotent upsert: patch the CityVisit for the
    city if one exists, else create it with only the edited field set

The planner is pure: it reads the resolved roster and returns operations.
Executing them (in any order, concurrently or not) is the caller's job;
each operation targets a distinct (participant, city) key.

Usage:
    from tourdesk.services.shared_field_propagation import plan_edit

    ops = plan_edit(roster, participant_id=12, city="Beijing",
                    field_name="hotel_name", value="Grand Hotel")
"""

import logging
from typing import Any

from tourdesk.core.roster import PlanState, ResolvedRoster, UpsertOperation
from tourdesk.services.itinerary_fields import classify_field

logger = logging.getLogger(__name__)


def propagation_targets(roster: ResolvedRoster, participant_id: int, field_group: str | None) -> tuple[int, ...]:
    """Participants that must receive an edit of ``field_group`` made by ``participant_id``."""
    unit = roster.entry(participant_id).unit
    if unit.shares(field_group):
        return unit.member_ids
    return (participant_id,)


def plan_edit(
    roster: ResolvedRoster,
    participant_id: int,
    city: str,
    field_name: str,
    value: Any,
    *,
    state: PlanState | None = None,
) -> list[UpsertOperation]:
    """Plan the upserts for one field edit.

    Args:
        roster: Resolved roster of the event.
        participant_id: The participant being edited.
        city: City of the CityVisit being edited.
        field_name: CityVisit field name.
        value: New (already normalised) value; None clears the field.
        state: Request-scoped planning state shared with later planning steps.

    Returns:
        One UpsertOperation per target participant.

    Raises:
        NotFoundError: participant_id is not on the roster.
        ValidationError: field_name is not an itinerary field.
    """
    state = state if state is not None else PlanState()
    field_group = classify_field(field_name)
    targets = propagation_targets(roster, participant_id, field_group)

    operations = []
    for target_id in targets:
        member = roster.participant(target_id)
        creates = member.visit(city) is None and not state.has_planned_visit(target_id, city)
        op = UpsertOperation(
            participant_id=target_id,
            city=city,
            patch={field_name: value},
            creates=creates,
        )
        operations.append(state.record(op))

    logger.debug(
        "Planned edit %s/%s for participant %s: %d operation(s)",
        city, field_name, participant_id, len(operations),
    )
    return operations
