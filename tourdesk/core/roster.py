"""
Roster snapshot types.

The consolidation engine (ordering, sharing units, propagation, auto-fill,
render metadata) works on these immutable values rather than on ORM rows:
a roster is loaded once per request by ``roster_service.load_roster`` and
then handed to pure functions that never touch the database.

Write paths do not mutate anything either; they return ``UpsertOperation``
descriptions which the caller executes against a sink, receiving one
``UpsertResult`` per operation.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Iterator, Mapping

from tourdesk.core.exceptions import NotFoundError


def is_empty(value: Any) -> bool:
    """True for values that count as "not filled in" on an itinerary field."""
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


# ── Participant snapshot ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class LeadSnapshot:
    id: int
    status: str = "new"
    selected_cities: tuple[str, ...] | None = None


@dataclass(frozen=True)
class TouristProfile:
    first_name: str
    last_name: str | None = None
    middle_name: str | None = None
    tourist_type: str = "adult"
    is_primary: bool = False

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.last_name, self.first_name, self.middle_name) if p)


@dataclass(frozen=True)
class GroupSnapshot:
    id: int
    name: str = ""
    type: str = "mini_group"


@dataclass(frozen=True)
class CityVisitSnapshot:
    city: str
    values: Mapping[str, Any] = field(default_factory=dict)
    id: int | None = None

    def get(self, field_name: str) -> Any:
        return self.values.get(field_name)


@dataclass(frozen=True)
class Participant:
    """One travel-document holder registered on one event.

    ``lead_id``/``group_id`` are the raw references; ``lead``/``group`` are
    the loaded records and stay ``None`` when the reference does not resolve.
    """

    id: int
    name: str = ""
    deal_status: str = "pending"
    lead_id: int | None = None
    lead: LeadSnapshot | None = None
    tourist: TouristProfile | None = None
    group_id: int | None = None
    group: GroupSnapshot | None = None
    is_primary_in_group: bool = False
    visits: Mapping[str, CityVisitSnapshot] = field(default_factory=dict)

    def visit(self, city: str) -> CityVisitSnapshot | None:
        return self.visits.get(city)

    @property
    def is_lead_primary(self) -> bool:
        return bool(self.tourist and self.tourist.is_primary)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "deal_status": self.deal_status,
            "lead_id": self.lead_id,
            "lead_status": self.lead.status if self.lead else None,
            "tourist_type": self.tourist.tourist_type if self.tourist else None,
            "is_primary": self.is_lead_primary,
            "group_id": self.group_id,
            "group_name": self.group.name if self.group else None,
            "group_type": self.group.type if self.group else None,
            "is_primary_in_group": self.is_primary_in_group,
            "visits": {
                city: {"id": v.id, **dict(v.values)} for city, v in self.visits.items()
            },
        }


# ── Resolved roster ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SharingUnit:
    """Resolved grouping of a participant.

    ``kind`` is ``family``, ``mini_group`` or ``none``; ``key`` is the lead id,
    group id or participant id respectively. ``member_ids`` are in roster
    order, so the first one is the anchor.
    """

    kind: str
    key: int
    member_ids: tuple[int, ...]
    shared_groups: frozenset[str] = frozenset()

    @property
    def anchor_id(self) -> int:
        return self.member_ids[0]

    @property
    def identity(self) -> tuple[str, int]:
        return (self.kind, self.key)

    def shares(self, field_group: str | None) -> bool:
        return field_group is not None and field_group in self.shared_groups

    @property
    def arrival_shared(self) -> bool:
        return self.shares("arrival")

    @property
    def hotel_shared(self) -> bool:
        return self.shares("hotel")

    @property
    def departure_shared(self) -> bool:
        return self.shares("departure")

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "key": self.key,
            "member_ids": list(self.member_ids),
            "anchor_id": self.anchor_id,
            "arrival_shared": self.arrival_shared,
            "hotel_shared": self.hotel_shared,
            "departure_shared": self.departure_shared,
        }


@dataclass(frozen=True)
class ResolvedParticipant:
    participant: Participant
    unit: SharingUnit

    @property
    def is_anchor(self) -> bool:
        return self.unit.anchor_id == self.participant.id


@dataclass(frozen=True)
class ResolvedRoster:
    """Ordered participants with their sharing units attached."""

    entries: tuple[ResolvedParticipant, ...]
    warnings: tuple[str, ...] = ()

    def __iter__(self) -> Iterator[ResolvedParticipant]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def entry(self, participant_id: int) -> ResolvedParticipant:
        for e in self.entries:
            if e.participant.id == participant_id:
                return e
        raise NotFoundError(resource="Participant", resource_id=participant_id)

    def participant(self, participant_id: int) -> Participant:
        return self.entry(participant_id).participant


# ── Write path ───────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class UpsertOperation:
    """Create-if-absent-else-patch of one CityVisit.

    ``creates`` reports whether the roster snapshot had no record for the
    key; the sink upserts either way, so replaying an operation is harmless.
    ``fill_only_empty`` operations never overwrite a populated value.
    """

    participant_id: int
    city: str
    patch: Mapping[str, Any]
    creates: bool = False
    fill_only_empty: bool = False
    source: str = "edit"

    @property
    def key(self) -> tuple[int, str]:
        return (self.participant_id, self.city)

    def to_dict(self) -> dict:
        return {
            "participant_id": self.participant_id,
            "city": self.city,
            "patch": dict(self.patch),
            "creates": self.creates,
            "fill_only_empty": self.fill_only_empty,
            "source": self.source,
        }


@dataclass(frozen=True)
class UpsertResult:
    """Outcome of executing one UpsertOperation (``ok`` or ``error``)."""

    operation: UpsertOperation
    ok: bool
    visit_id: int | None = None
    error: str | None = None
    skipped_fields: tuple[str, ...] = ()

    @classmethod
    def success(cls, operation, visit_id=None, skipped_fields=()):
        return cls(operation=operation, ok=True, visit_id=visit_id, skipped_fields=tuple(skipped_fields))

    @classmethod
    def failure(cls, operation, reason):
        return cls(operation=operation, ok=False, error=str(reason))

    def to_dict(self) -> dict:
        return {
            **self.operation.to_dict(),
            "ok": self.ok,
            "visit_id": self.visit_id,
            "error": self.error,
            "skipped_fields": list(self.skipped_fields),
        }


_UNSET = object()


class PlanState:
    """Per-request planning state.

    Created by the caller for one edit request and passed to the planners.
    Tracks values already planned in this request so that a later step (the
    auto-fill chain, or a second edit in the same batch) sees them as if they
    were stored. ``operations`` folds operations on the same (participant,
    city) and fill mode into one, merging their patches; the later value of
    a field wins. Values of an operation that failed are dropped with
    ``forget``.
    """

    def __init__(self) -> None:
        self._planned: dict[tuple[int, str], dict[str, Any]] = {}
        self._operations: dict[tuple[int, str, bool], UpsertOperation] = {}

    @property
    def operations(self) -> list[UpsertOperation]:
        return list(self._operations.values())

    def has_planned_visit(self, participant_id: int, city: str) -> bool:
        return (participant_id, city) in self._planned

    def planned_value(self, participant_id: int, city: str, field_name: str) -> Any:
        """Return the value planned for the field, or ``PlanState.UNSET``."""
        return self._planned.get((participant_id, city), {}).get(field_name, _UNSET)

    def record(self, operation: UpsertOperation) -> UpsertOperation:
        """Register a planned operation; returns it ready for execution."""
        if operation.creates and operation.key in self._planned:
            # An earlier step in this request already creates the record.
            operation = replace(operation, creates=False)
        self._planned.setdefault(operation.key, {}).update(operation.patch)

        fold_key = (*operation.key, operation.fill_only_empty)
        earlier = self._operations.get(fold_key)
        if earlier is None:
            self._operations[fold_key] = operation
        else:
            self._operations[fold_key] = replace(earlier, patch={**earlier.patch, **operation.patch})
        return operation

    def forget(self, operation: UpsertOperation) -> None:
        """Drop the planned values of an operation that was not stored."""
        planned = self._planned.get(operation.key)
        if planned is None:
            return
        for name, value in operation.patch.items():
            if name in planned and planned[name] == value:
                del planned[name]
        if not planned:
            del self._planned[operation.key]

    UNSET = _UNSET
