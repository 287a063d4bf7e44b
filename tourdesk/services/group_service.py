"""
Group service — explicit participant groups of an event.

Rules:
  - every member must be a participant (deal) of the group's event
  - a participant belongs to at most one group; adding moves it
  - exactly one member is primary: adding a member as primary clears the
    others, removing the primary promotes the first remaining member
  - a group that loses its last member is deleted
  - the roster resolver reads the current state on its next call; nothing
    here touches city visits
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from tourdesk.core.exceptions import NotFoundError, ValidationError
from tourdesk.models import db
from tourdesk.models.event import GROUP_TYPES, Group
from tourdesk.models.participation import Deal
from tourdesk.services import event_service

logger = logging.getLogger(__name__)


def get_group(group_id: int) -> Group:
    group = db.session.get(Group, group_id)
    if not group:
        raise NotFoundError(resource="Group", resource_id=group_id)
    return group


def _get_member_deal(group: Group, deal_id: int) -> Deal:
    deal = db.session.get(Deal, deal_id)
    if not deal:
        raise NotFoundError(resource="Deal", resource_id=deal_id)
    if deal.event_id != group.event_id:
        raise ValidationError(
            f"Deal {deal_id} does not belong to event {group.event_id}",
            details={"deal_id": "Members must be participants of the group's event."},
        )
    return deal


def _set_primary(group: Group, primary: Deal) -> None:
    for member in group.members:
        member.is_primary_in_group = member is primary


def _attach(group: Group, deal: Deal) -> None:
    previous = deal.group
    if previous is not None and previous is not group:
        _detach(previous, deal)
    deal.group = group
    deal.is_primary_in_group = False


def _detach(group: Group, deal: Deal) -> bool:
    """Remove ``deal`` from ``group``; returns True when the group was deleted."""
    was_primary = deal.is_primary_in_group
    group.members.remove(deal)
    deal.is_primary_in_group = False
    if not group.members:
        db.session.delete(group)
        logger.info("Group %s emptied and deleted", group.id, extra={"event_id": group.event_id})
        return True
    if was_primary:
        _set_primary(group, group.members[0])
    return False


def list_groups(event_id: int) -> list[dict]:
    event_service.get_event(event_id)
    groups = db.session.execute(
        select(Group).where(Group.event_id == event_id).order_by(Group.id)
    ).scalars().all()
    return [g.to_dict(include_members=True) for g in groups]


def create_group(event_id: int, data: dict) -> dict:
    """Create a group with its initial members.

    ``member_ids`` lists deal ids; ``primary_id`` (default: first member)
    becomes the primary member.

    Raises:
        NotFoundError: unknown event or deal.
        ValidationError: bad type, foreign deal or primary not among members.
    """
    event_service.get_event(event_id)
    group_type = data.get("type", "mini_group")
    if group_type not in GROUP_TYPES:
        raise ValidationError(
            f"Invalid group type '{group_type}'",
            details={"type": f"Must be one of: {', '.join(sorted(GROUP_TYPES))}."},
        )
    member_ids = list(dict.fromkeys(data.get("member_ids") or []))
    primary_id = data.get("primary_id", member_ids[0] if member_ids else None)
    if primary_id is not None and primary_id not in member_ids:
        raise ValidationError("primary_id must be one of member_ids", details={"primary_id": "Not a member."})

    group = Group(event_id=event_id, name=data["name"], type=group_type)
    db.session.add(group)
    try:
        for deal_id in member_ids:
            _attach(group, _get_member_deal(group, deal_id))
        if primary_id is not None:
            _set_primary(group, db.session.get(Deal, primary_id))
        db.session.commit()
    except (NotFoundError, ValidationError):
        db.session.rollback()
        raise
    logger.info(
        "Group created: id=%s type=%s members=%d", group.id, group.type, len(member_ids),
        extra={"event_id": event_id},
    )
    return group.to_dict(include_members=True)


def rename_group(group_id: int, name: str) -> dict:
    group = get_group(group_id)
    group.name = name
    db.session.commit()
    return group.to_dict(include_members=True)


def delete_group(group_id: int) -> None:
    """Disband a group; its members stay on the event, ungrouped."""
    group = get_group(group_id)
    event_id = group.event_id
    for member in list(group.members):
        member.group = None
        member.is_primary_in_group = False
    db.session.delete(group)
    db.session.commit()
    logger.info("Group %s disbanded", group_id, extra={"event_id": event_id})


def add_member(group_id: int, deal_id: int, is_primary: bool = False) -> dict:
    group = get_group(group_id)
    try:
        deal = _get_member_deal(group, deal_id)
        _attach(group, deal)
        if is_primary or len(group.members) == 1:
            _set_primary(group, deal)
        db.session.commit()
    except (NotFoundError, ValidationError):
        db.session.rollback()
        raise
    logger.info("Deal %s added to group %s (primary=%s)", deal_id, group_id, deal.is_primary_in_group,
                extra={"participant_id": deal_id})
    return group.to_dict(include_members=True)


def remove_member(group_id: int, deal_id: int) -> dict | None:
    """Remove a member. Returns the group, or None when it was deleted."""
    group = get_group(group_id)
    deal = db.session.get(Deal, deal_id)
    if not deal or deal.group_id != group.id:
        raise NotFoundError(resource="GroupMember", resource_id=deal_id)
    deleted = _detach(group, deal)
    db.session.commit()
    logger.info("Deal %s removed from group %s", deal_id, group_id, extra={"participant_id": deal_id})
    return None if deleted else group.to_dict(include_members=True)
