"""
Sharing unit resolution — which participants share itinerary data.

Business context:
    Tourists converted from the same lead travel as a family and share the
    whole itinerary (arrival, hotel, departure). Participants the operator
    links into an explicit mini-group only share lodging. Everybody else
    stands alone.

Priority (exactly one applies):
    1. family      — lead shared by ≥ 2 roster members
    2. mini_group  — group of type ``mini_group`` with ≥ 2 roster members
                      that are not in a family
    3. none        — the participant alone

The family relationship is derived here from the loaded roster on every
call; it is never stored. Which field groups a unit shares comes from the
``SHARING_POLICY`` table, not from branching in the propagation code.

Anomalies never raise: a reference to a lead or group that did not load
is treated as no reference, and a unit with zero or several primary
members falls back to roster order for its anchor. Both are logged as
data-quality warnings and returned on ``ResolvedRoster.warnings``.
"""

import logging
from collections import defaultdict
from types import MappingProxyType
from typing import Iterable, Mapping

from tourdesk.core.roster import (
    GroupSnapshot,
    Participant,
    ResolvedParticipant,
    ResolvedRoster,
    SharingUnit,
)
from tourdesk.services.participant_ordering import order_participants

logger = logging.getLogger(__name__)

FAMILY = "family"
MINI_GROUP = "mini_group"
NONE = "none"

# unit kind → field groups propagated across the unit's members
SHARING_POLICY: Mapping[str, frozenset[str]] = MappingProxyType({
    FAMILY: frozenset({"arrival", "hotel", "departure"}),
    MINI_GROUP: frozenset({"hotel"}),
    NONE: frozenset(),
})

MIN_UNIT_SIZE = 2


class RosterIndex:
    """Lead and group membership of an ordered roster, built once per resolve."""

    def __init__(self, ordered: list[Participant], groups: Mapping[int, GroupSnapshot]):
        self.ordered = ordered
        self.groups = groups
        self.lead_members: dict[int, list[int]] = defaultdict(list)
        self.group_members: dict[int, list[int]] = defaultdict(list)
        self.warnings: list[str] = []
        for p in ordered:
            if p.lead_id is not None and p.lead is None:
                self.warn(f"participant {p.id}: lead {p.lead_id} not found, treated as ungrouped")
            if p.lead is not None:
                self.lead_members[p.lead.id].append(p.id)
            if p.group_id is not None:
                if p.group_id in groups:
                    self.group_members[p.group_id].append(p.id)
                else:
                    self.warn(f"participant {p.id}: group {p.group_id} not found, treated as ungrouped")

        # Family members never count toward a mini-group unit.
        self.family_member_ids = {
            pid for members in self.lead_members.values() if len(members) >= MIN_UNIT_SIZE for pid in members
        }
        self.mini_group_members: dict[int, list[int]] = {
            gid: [pid for pid in members if pid not in self.family_member_ids]
            for gid, members in self.group_members.items()
        }

    def warn(self, message: str) -> None:
        logger.warning("Roster data quality: %s", message)
        self.warnings.append(message)


def _build_index(participants: Iterable[Participant], groups: Iterable[GroupSnapshot] | None) -> RosterIndex:
    ordered = order_participants(participants)
    if groups is None:
        group_map = {p.group.id: p.group for p in ordered if p.group is not None}
    else:
        group_map = {g.id: g for g in groups}
    return RosterIndex(ordered, group_map)


def _unit(kind: str, key: int, member_ids) -> SharingUnit:
    return SharingUnit(kind=kind, key=key, member_ids=tuple(member_ids), shared_groups=SHARING_POLICY[kind])


def _resolve_in_index(participant: Participant, index: RosterIndex) -> SharingUnit:
    if participant.lead is not None:
        members = index.lead_members.get(participant.lead.id, [])
        if len(members) >= MIN_UNIT_SIZE:
            return _unit(FAMILY, participant.lead.id, members)

    group = index.groups.get(participant.group_id) if participant.group_id is not None else None
    if group is not None and group.type == MINI_GROUP:
        members = index.mini_group_members.get(group.id, [])
        if len(members) >= MIN_UNIT_SIZE:
            return _unit(MINI_GROUP, group.id, members)

    return _unit(NONE, participant.id, [participant.id])


def resolve(participant: Participant, roster: Iterable[Participant],
            groups: Iterable[GroupSnapshot] | None = None) -> SharingUnit:
    """Resolve one participant's sharing unit against the full roster."""
    return _resolve_in_index(participant, _build_index(roster, groups))


def _check_primary_flags(unit: SharingUnit, by_id: Mapping[int, Participant], index: RosterIndex) -> None:
    if unit.kind == FAMILY:
        primaries = [pid for pid in unit.member_ids if by_id[pid].is_lead_primary]
        label = f"lead {unit.key}"
    elif unit.kind == MINI_GROUP:
        primaries = [pid for pid in unit.member_ids if by_id[pid].is_primary_in_group]
        label = f"group {unit.key}"
    else:
        return
    if len(primaries) != 1:
        index.warn(
            f"{label}: {len(primaries)} primary members, anchoring on participant {unit.anchor_id}"
        )


def resolve_roster(participants: Iterable[Participant],
                   groups: Iterable[GroupSnapshot] | None = None) -> ResolvedRoster:
    """Order the roster and attach each participant's sharing unit.

    Args:
        participants: The complete roster of one event.
        groups: Group records of the event. When omitted, the groups
            attached to the participants are used.

    Returns:
        ResolvedRoster in display order, with data-quality warnings.
    """
    index = _build_index(participants, groups)
    by_id = {p.id: p for p in index.ordered}

    entries = []
    checked: set[tuple[str, int]] = set()
    for p in index.ordered:
        unit = _resolve_in_index(p, index)
        if unit.identity not in checked:
            checked.add(unit.identity)
            _check_primary_flags(unit, by_id, index)
        entries.append(ResolvedParticipant(participant=p, unit=unit))

    logger.debug("Resolved roster: %d participants, %d units", len(entries), len(checked))
    return ResolvedRoster(entries=tuple(entries), warnings=tuple(index.warnings))
