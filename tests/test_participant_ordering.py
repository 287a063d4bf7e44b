"""
Tests for participant ordering.

Covers:
  - converted leads sort first regardless of input order
  - lead members are contiguous with the primary tourist first
  - group members are contiguous with the group primary first
  - identical keys keep input order (stable)
  - input sequence is not mutated
"""

from tourdesk.core.roster import GroupSnapshot, LeadSnapshot, Participant, TouristProfile
from tourdesk.services.participant_ordering import order_participants


def _p(pid, lead=None, status="new", primary=False, group=None, group_primary=False):
    return Participant(
        id=pid,
        name=f"P{pid}",
        lead_id=lead,
        lead=LeadSnapshot(id=lead, status=status) if lead is not None else None,
        tourist=TouristProfile(first_name=f"P{pid}", is_primary=primary) if lead is not None else None,
        group_id=group,
        group=GroupSnapshot(id=group) if group is not None else None,
        is_primary_in_group=group_primary,
    )


def _ids(participants):
    return [p.id for p in participants]


def test_converted_lead_sorts_first_regardless_of_input_order():
    new_lead = _p(1, lead=10, status="new")
    converted = _p(2, lead=20, status="converted")

    assert _ids(order_participants([new_lead, converted])) == [2, 1]
    assert _ids(order_participants([converted, new_lead])) == [2, 1]


def test_lead_members_contiguous_with_primary_first():
    maria = _p(1, lead=5)
    loner = _p(2)
    ivan = _p(3, lead=5, primary=True)

    assert _ids(order_participants([maria, loner, ivan])) == [2, 3, 1]


def test_group_members_contiguous_with_group_primary_first():
    member = _p(1, group=7)
    outsider = _p(2)
    leader = _p(3, group=7, group_primary=True)

    assert _ids(order_participants([member, outsider, leader])) == [2, 3, 1]


def test_identical_keys_keep_input_order():
    a, b = _p(1, lead=4), _p(2, lead=4)

    assert _ids(order_participants([a, b])) == [1, 2]
    assert _ids(order_participants([b, a])) == [2, 1]


def test_input_is_not_mutated():
    roster = [_p(1, lead=10), _p(2, lead=20, status="converted")]
    ordered = order_participants(roster)

    assert _ids(roster) == [1, 2]
    assert ordered is not roster
