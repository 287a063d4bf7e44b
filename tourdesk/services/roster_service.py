"""
Roster service — database side of the consolidation engine.

Read path:
    load_roster(event_id)        one consistent snapshot, bulk-loaded
    get_roster_view(event_id)    ordered roster + sharing units + table meta

Write path:
    apply_itinerary_edits(event_id, edits)
        validate every edit, then for each one plan the fan-out, execute it
        through the sink and, after a successful departure edit, run the
        auto-fill chain for the next city. Returns one result per upsert.
    plan_itinerary_edits(event_id, edits)
        the same planning without touching storage

Rules:
  - the engine functions never see ORM rows; they get snapshots
  - each upsert is committed on its own; a failed upsert is rolled back
    and reported, the rest of the fan-out still runs
  - db.session.commit() for city visits happens only in SqlCityVisitSink
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from tourdesk.core.exceptions import ConflictError, NotFoundError, ValidationError
from tourdesk.core.roster import (
    CityVisitSnapshot,
    GroupSnapshot,
    LeadSnapshot,
    Participant,
    PlanState,
    ResolvedRoster,
    TouristProfile,
    UpsertOperation,
    UpsertResult,
    is_empty,
)
from tourdesk.models import db
from tourdesk.models.event import Group, TourEvent
from tourdesk.models.lead import Contact, Lead, LeadTourist
from tourdesk.models.participation import CITY_VISIT_FIELDS, CityVisit, Deal
from tourdesk.services.autofill_chain import participant_route, propagate_to_next_city
from tourdesk.services.itinerary_fields import DEPARTURE_TO_ARRIVAL, normalise_value
from tourdesk.services.render_meta import build_table_meta
from tourdesk.services.shared_field_propagation import plan_edit
from tourdesk.services.sharing_units import resolve_roster

logger = logging.getLogger(__name__)

EXCLUDED_DEAL_STATUSES = ("cancelled",)


# ── Snapshot loading ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RosterSnapshot:
    event_id: int
    route: tuple[str, ...]
    participants: tuple[Participant, ...]
    groups: tuple[GroupSnapshot, ...]

    def resolve(self) -> ResolvedRoster:
        return resolve_roster(self.participants, self.groups)


def _by_id(model, ids: Iterable[int]) -> dict:
    ids = {i for i in ids if i is not None}
    if not ids:
        return {}
    rows = db.session.execute(select(model).where(model.id.in_(ids))).scalars().all()
    return {r.id: r for r in rows}


def _participant(deal: Deal, contact, lead, tourist, group, visits) -> Participant:
    profile = None
    if tourist is not None:
        profile = TouristProfile(
            first_name=tourist.first_name,
            last_name=tourist.last_name,
            middle_name=tourist.middle_name,
            tourist_type=tourist.tourist_type,
            is_primary=bool(tourist.is_primary),
        )
    name = profile.full_name if profile else (contact.name if contact else f"Deal {deal.id}")
    return Participant(
        id=deal.id,
        name=name,
        deal_status=deal.status,
        lead_id=contact.lead_id if contact else None,
        lead=LeadSnapshot(
            id=lead.id,
            status=lead.status,
            selected_cities=tuple(lead.selected_cities) if lead.selected_cities else None,
        ) if lead is not None else None,
        tourist=profile,
        group_id=deal.group_id,
        group=GroupSnapshot(id=group.id, name=group.name, type=group.type) if group is not None else None,
        is_primary_in_group=bool(deal.is_primary_in_group),
        visits={
            v.city: CityVisitSnapshot(city=v.city, values=v.field_values(), id=v.id)
            for v in visits
        },
    )


def load_roster(event_id: int) -> RosterSnapshot:
    """Load the complete participant roster of an event.

    Six bulk queries regardless of roster size. Cancelled deals are not
    part of the roster.

    Raises:
        NotFoundError: the event does not exist.
    """
    event = db.session.get(TourEvent, event_id)
    if not event:
        raise NotFoundError(resource="TourEvent", resource_id=event_id)

    deals = db.session.execute(
        select(Deal)
        .where(Deal.event_id == event_id, Deal.status.notin_(EXCLUDED_DEAL_STATUSES))
        .order_by(Deal.id)
    ).scalars().all()

    contacts = _by_id(Contact, (d.contact_id for d in deals))
    leads = _by_id(Lead, (c.lead_id for c in contacts.values()))
    tourists = _by_id(LeadTourist, (c.lead_tourist_id for c in contacts.values()))
    groups = {
        g.id: g for g in db.session.execute(
            select(Group).where(Group.event_id == event_id).order_by(Group.id)
        ).scalars().all()
    }

    visits_by_deal: dict[int, list[CityVisit]] = {}
    if deals:
        rows = db.session.execute(
            select(CityVisit)
            .where(CityVisit.deal_id.in_([d.id for d in deals]))
            .order_by(CityVisit.id)
        ).scalars().all()
        for v in rows:
            visits_by_deal.setdefault(v.deal_id, []).append(v)

    participants = []
    for deal in deals:
        contact = contacts.get(deal.contact_id)
        lead = leads.get(contact.lead_id) if contact and contact.lead_id else None
        tourist = tourists.get(contact.lead_tourist_id) if contact and contact.lead_tourist_id else None
        participants.append(_participant(
            deal, contact, lead, tourist, groups.get(deal.group_id), visits_by_deal.get(deal.id, []),
        ))

    logger.debug(
        "Loaded roster: %d participants, %d groups",
        len(participants), len(groups), extra={"event_id": event_id},
    )
    return RosterSnapshot(
        event_id=event_id,
        route=tuple(event.cities or ()),
        participants=tuple(participants),
        groups=tuple(GroupSnapshot(id=g.id, name=g.name, type=g.type) for g in groups.values()),
    )


def get_roster_view(event_id: int) -> dict:
    """Ordered, resolved roster of an event with table cell metadata."""
    snapshot = load_roster(event_id)
    roster = snapshot.resolve()
    meta = build_table_meta(roster)
    for warning in roster.warnings:
        logger.info("Roster warning: %s", warning, extra={"event_id": event_id})

    items = []
    for entry, row_meta in zip(roster, meta):
        items.append({
            **entry.participant.to_dict(),
            "unit": entry.unit.to_dict(),
            "is_anchor": entry.is_anchor,
            "meta": {group: cell.to_dict() for group, cell in row_meta.items()},
        })
    return {
        "event_id": event_id,
        "cities": list(snapshot.route),
        "items": items,
        "total": len(items),
        "warnings": list(roster.warnings),
    }


# ── Upsert sink ──────────────────────────────────────────────────────────────


class SqlCityVisitSink:
    """Executes city-visit writes against the database, one commit per call."""

    def _find(self, participant_id: int, city: str) -> CityVisit | None:
        return db.session.execute(
            select(CityVisit).where(CityVisit.deal_id == participant_id, CityVisit.city == city)
        ).scalar_one_or_none()

    def _apply(self, visit: CityVisit, patch: Mapping[str, Any], fill_only_empty: bool) -> list[str]:
        skipped = []
        for name, value in patch.items():
            if name not in CITY_VISIT_FIELDS:
                raise ValidationError(f"Unknown itinerary field '{name}'")
            if fill_only_empty and not is_empty(getattr(visit, name)):
                skipped.append(name)
                continue
            setattr(visit, name, value)
        return skipped

    def upsert_city_visit(
        self, participant_id: int, city: str, patch: Mapping[str, Any], *, fill_only_empty: bool = False,
    ) -> tuple[int, tuple[str, ...]]:
        """Create the (participant, city) record if absent, else patch it.

        Returns:
            (visit id, fields left untouched because they were filled).

        Raises:
            NotFoundError: the participant's deal does not exist.
            SQLAlchemyError: storage failure (session rolled back).
        """
        if not db.session.get(Deal, participant_id):
            raise NotFoundError(resource="Deal", resource_id=participant_id)
        try:
            return self._write(participant_id, city, patch, fill_only_empty)
        except IntegrityError:
            # A concurrent writer created the record first; patch it instead.
            return self._write(participant_id, city, patch, fill_only_empty)

    def _write(self, participant_id, city, patch, fill_only_empty):
        visit = self._find(participant_id, city)
        if visit is None:
            visit = CityVisit(deal_id=participant_id, city=city)
            db.session.add(visit)
        try:
            skipped = self._apply(visit, patch, fill_only_empty)
            db.session.commit()
        except (SQLAlchemyError, ValidationError):
            db.session.rollback()
            raise
        return visit.id, tuple(skipped)

    def create_city_visit(self, participant_id: int, city: str, values: Mapping[str, Any]) -> CityVisit:
        """Insert a new record; never patches an existing one.

        Raises:
            NotFoundError: the participant's deal does not exist.
            ConflictError: a record for (participant, city) already exists.
        """
        if not db.session.get(Deal, participant_id):
            raise NotFoundError(resource="Deal", resource_id=participant_id)
        if self._find(participant_id, city) is not None:
            raise ConflictError(resource="CityVisit", field="city", value=city)

        visit = CityVisit(deal_id=participant_id, city=city)
        self._apply(visit, values, fill_only_empty=False)
        db.session.add(visit)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise ConflictError(resource="CityVisit", field="city", value=city) from exc
        return visit


def execute_operations(operations: Iterable[UpsertOperation], sink) -> list[UpsertResult]:
    """Run each operation through the sink; failures become failed results."""
    results = []
    for op in operations:
        try:
            visit_id, skipped = sink.upsert_city_visit(
                op.participant_id, op.city, op.patch, fill_only_empty=op.fill_only_empty,
            )
        except (SQLAlchemyError, NotFoundError, ValidationError) as exc:
            logger.warning(
                "City visit upsert failed for %s/%s: %s",
                op.participant_id, op.city, exc,
                extra={"participant_id": op.participant_id},
            )
            results.append(UpsertResult.failure(op, exc))
            continue
        results.append(UpsertResult.success(op, visit_id=visit_id, skipped_fields=skipped))
    return results


# ── Itinerary edits ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ItineraryEdit:
    participant_id: int
    city: str
    field: str
    value: Any


def _validate_edits(snapshot: RosterSnapshot, roster: ResolvedRoster, edits: Iterable[Mapping]) -> list[ItineraryEdit]:
    validated = []
    for raw in edits:
        participant_id = raw["participant_id"]
        city = raw["city"]
        field_name = raw["field"]
        roster.entry(participant_id)
        if city not in snapshot.route:
            raise ValidationError(
                f"City '{city}' is not on the route of event {snapshot.event_id}",
                details={"city": f"Must be one of: {', '.join(snapshot.route)}."},
            )
        value = normalise_value(field_name, raw.get("value"))
        validated.append(ItineraryEdit(participant_id, city, field_name, value))
    return validated


def _autofill(snapshot, roster, edit: ItineraryEdit, state: PlanState) -> list[UpsertOperation]:
    if edit.field not in DEPARTURE_TO_ARRIVAL:
        return []
    route = participant_route(snapshot.route, roster.participant(edit.participant_id))
    return propagate_to_next_city(
        roster, edit.participant_id, edit.city, edit.field, edit.value, route, state=state,
    )


def plan_itinerary_edits(event_id: int, edits: Iterable[Mapping]) -> dict:
    """Dry run: the operations ``apply_itinerary_edits`` would execute.

    Auto-fill operations are planned as if every edit succeeded.
    """
    snapshot = load_roster(event_id)
    roster = snapshot.resolve()
    state = PlanState()
    for edit in _validate_edits(snapshot, roster, edits):
        plan_edit(roster, edit.participant_id, edit.city, edit.field, edit.value, state=state)
        _autofill(snapshot, roster, edit, state)
    return {
        "event_id": event_id,
        "operations": [op.to_dict() for op in state.operations],
        "warnings": list(roster.warnings),
    }


def apply_itinerary_edits(event_id: int, edits: Iterable[Mapping], sink=None) -> dict:
    """Plan and execute a batch of itinerary edits.

    Every edit is validated before anything is written, so a bad edit in
    the batch rejects the whole request. Once writing starts, each upsert
    succeeds or fails on its own and is reported in ``results``. A failed
    upsert's values are dropped from the planning state, so a later
    auto-fill in the batch still sees the stored (empty) field.

    Raises:
        NotFoundError: unknown event or participant.
        ValidationError: unknown city, unknown field or bad value.
    """
    sink = sink or SqlCityVisitSink()
    snapshot = load_roster(event_id)
    roster = snapshot.resolve()
    validated = _validate_edits(snapshot, roster, edits)

    state = PlanState()
    results: list[UpsertResult] = []
    for edit in validated:
        edit_results = execute_operations(
            plan_edit(roster, edit.participant_id, edit.city, edit.field, edit.value, state=state),
            sink,
        )
        editor_ok = any(r.ok and r.operation.participant_id == edit.participant_id for r in edit_results)
        if editor_ok:
            edit_results += execute_operations(_autofill(snapshot, roster, edit, state), sink)
        for r in edit_results:
            if not r.ok:
                state.forget(r.operation)
        results.extend(edit_results)

    failed = sum(1 for r in results if not r.ok)
    logger.info(
        "Applied %d itinerary edit(s): %d upsert(s), %d failed",
        len(validated), len(results), failed, extra={"event_id": event_id},
    )
    return {
        "event_id": event_id,
        "results": [r.to_dict() for r in results],
        "succeeded": len(results) - failed,
        "failed": failed,
        "warnings": list(roster.warnings),
    }
