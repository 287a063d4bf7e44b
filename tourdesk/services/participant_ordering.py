"""
Participant ordering — deterministic total order over an event roster.

Sort key, compared lexicographically:
  1. lead status ``converted`` first
  2. lead id (no lead → lowest key) keeps a lead's members contiguous
  3. the lead's primary tourist first
  4. group id (no group → lowest key) keeps group members contiguous
  5. the group's primary member first

Python's sort is stable, so participants with identical keys keep their
input order. The input sequence is never mutated.
"""

from typing import Iterable

from tourdesk.core.roster import Participant

_ABSENT = (0, 0)


def _id_key(value):
    return _ABSENT if value is None else (1, value)


def sort_key(participant: Participant) -> tuple:
    lead = participant.lead
    return (
        0 if lead is not None and lead.status == "converted" else 1,
        _id_key(lead.id if lead is not None else None),
        0 if participant.is_lead_primary else 1,
        _id_key(participant.group_id),
        0 if participant.is_primary_in_group else 1,
    )


def order_participants(participants: Iterable[Participant]) -> list[Participant]:
    """Return a new list of participants in roster display order."""
    return sorted(participants, key=sort_key)
