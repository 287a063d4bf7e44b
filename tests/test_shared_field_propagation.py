"""
Tests for shared-field propagation planning.

Covers:
  - family hotel edit fans out to every member
  - mini-group arrival edit stays with the editor
  - propagation set sizes for family / mini-group per field group
  - unclassified fields never propagate
  - create vs patch flag, PlanState folding and forgetting failed values
  - clearing a field propagates like any other value
  - unknown field / participant
"""

import pytest

from tourdesk.core.exceptions import NotFoundError, ValidationError
from tourdesk.core.roster import (
    CityVisitSnapshot,
    GroupSnapshot,
    LeadSnapshot,
    Participant,
    PlanState,
    TouristProfile,
)
from tourdesk.services.shared_field_propagation import plan_edit
from tourdesk.services.sharing_units import resolve_roster


def _p(pid, lead=None, primary=False, group=None, visits=None):
    return Participant(
        id=pid,
        name=f"P{pid}",
        lead_id=lead,
        lead=LeadSnapshot(id=lead, status="converted") if lead is not None else None,
        tourist=TouristProfile(first_name=f"P{pid}", is_primary=primary) if lead is not None else None,
        group_id=group,
        group=GroupSnapshot(id=group, type="mini_group") if group is not None else None,
        is_primary_in_group=False,
        visits={city: CityVisitSnapshot(city=city, values=values, id=pid * 100)
                for city, values in (visits or {}).items()},
    )


def _family(size):
    return resolve_roster([_p(i, lead=1, primary=i == 1) for i in range(1, size + 1)])


def _mini_group(size):
    return resolve_roster([_p(i, group=9) for i in range(1, size + 1)])


def test_family_hotel_edit_reaches_both_members():
    ivan = _p(1, lead=7, primary=True)
    maria = _p(2, lead=7)
    roster = resolve_roster([maria, ivan])

    ops = plan_edit(roster, 1, "Beijing", "hotel_name", "Grand Hotel")

    assert sorted(op.participant_id for op in ops) == [1, 2]
    assert all(op.city == "Beijing" for op in ops)
    assert all(dict(op.patch) == {"hotel_name": "Grand Hotel"} for op in ops)


def test_mini_group_arrival_edit_targets_editor_only():
    roster = _mini_group(3)

    ops = plan_edit(roster, 2, "Shanghai", "arrival_date", "2025-07-04")

    assert len(ops) == 1
    assert ops[0].participant_id == 2
    assert dict(ops[0].patch) == {"arrival_date": "2025-07-04"}


@pytest.mark.parametrize("size", [2, 3, 5])
def test_family_hotel_edit_produces_one_op_per_member(size):
    ops = plan_edit(_family(size), size, "Beijing", "room_type", "double")

    assert len(ops) == size
    assert {op.participant_id for op in ops} == set(range(1, size + 1))


@pytest.mark.parametrize("size", [2, 3, 4])
def test_mini_group_hotel_edit_produces_one_op_per_member(size):
    ops = plan_edit(_mini_group(size), 1, "Beijing", "hotel_name", "Jade Inn")

    assert len(ops) == size


@pytest.mark.parametrize("field_name", ["arrival_time", "departure_flight_number"])
def test_mini_group_leg_fields_are_not_shared(field_name):
    ops = plan_edit(_mini_group(3), 3, "Beijing", field_name, "10:30" if "time" in field_name else "CA123")

    assert [op.participant_id for op in ops] == [3]


def test_family_departure_edit_is_shared():
    ops = plan_edit(_family(3), 2, "Beijing", "departure_transport_type", "train")

    assert len(ops) == 3


def test_notes_are_never_propagated():
    ops = plan_edit(_family(3), 2, "Beijing", "notes", "vegetarian")

    assert [op.participant_id for op in ops] == [2]


def test_ungrouped_participant_edits_only_self():
    roster = resolve_roster([_p(1), _p(2)])

    ops = plan_edit(roster, 1, "Beijing", "hotel_name", "Jade Inn")

    assert [op.participant_id for op in ops] == [1]


def test_creates_only_where_no_visit_exists():
    roster = resolve_roster([
        _p(1, lead=1, primary=True, visits={"Beijing": {"hotel_name": "Old"}}),
        _p(2, lead=1),
    ])

    ops = {op.participant_id: op for op in plan_edit(roster, 1, "Beijing", "hotel_name", "New")}

    assert ops[1].creates is False
    assert ops[2].creates is True


def test_plan_state_folds_second_create_for_same_key():
    roster = _family(2)
    state = PlanState()

    first = plan_edit(roster, 1, "Beijing", "hotel_name", "Jade Inn", state=state)
    second = plan_edit(roster, 1, "Beijing", "room_type", "twin", state=state)

    assert all(op.creates for op in first)
    assert not any(op.creates for op in second)
    assert state.planned_value(2, "Beijing", "room_type") == "twin"
    assert [dict(op.patch) for op in state.operations] == [
        {"hotel_name": "Jade Inn", "room_type": "twin"},
        {"hotel_name": "Jade Inn", "room_type": "twin"},
    ]
    assert all(op.creates for op in state.operations)


def test_plan_state_folds_repeated_edit_of_same_field():
    roster = _family(2)
    state = PlanState()

    plan_edit(roster, 1, "Beijing", "hotel_name", "Jade Inn", state=state)
    plan_edit(roster, 2, "Beijing", "hotel_name", "Bund Hotel", state=state)

    assert len(state.operations) == 2
    assert {op.patch["hotel_name"] for op in state.operations} == {"Bund Hotel"}


def test_plan_state_forget_drops_failed_values():
    roster = _family(2)
    state = PlanState()

    ops = plan_edit(roster, 1, "Beijing", "arrival_date", "2025-07-01", state=state)
    state.forget(ops[0])

    assert state.planned_value(1, "Beijing", "arrival_date") is PlanState.UNSET
    assert not state.has_planned_visit(1, "Beijing")
    assert state.planned_value(2, "Beijing", "arrival_date") == "2025-07-01"


def test_clearing_a_field_propagates():
    roster = resolve_roster([
        _p(1, lead=1, primary=True, visits={"Beijing": {"hotel_name": "Old"}}),
        _p(2, lead=1, visits={"Beijing": {"hotel_name": "Old"}}),
    ])

    ops = plan_edit(roster, 2, "Beijing", "hotel_name", None)

    assert len(ops) == 2
    assert all(dict(op.patch) == {"hotel_name": None} for op in ops)


def test_roster_is_not_mutated_by_planning():
    roster = _family(2)

    plan_edit(roster, 1, "Beijing", "hotel_name", "Jade Inn")

    assert roster.participant(1).visit("Beijing") is None


def test_unknown_field_is_rejected():
    with pytest.raises(ValidationError):
        plan_edit(_family(2), 1, "Beijing", "passport_number", "X")


def test_unknown_participant_is_rejected():
    with pytest.raises(NotFoundError):
        plan_edit(_family(2), 99, "Beijing", "hotel_name", "X")


def test_group_hotel_edit_never_reaches_family_members():
    roster = resolve_roster([
        _p(1, lead=1, primary=True, group=9, visits={"Beijing": {"hotel_name": "Family Inn"}}),
        _p(2, lead=1, visits={"Beijing": {"hotel_name": "Family Inn"}}),
        _p(3, group=9, visits={"Beijing": {"hotel_name": "Own Hotel"}}),
    ])

    ops = plan_edit(roster, 3, "Beijing", "hotel_name", "Hostel")

    assert [op.participant_id for op in ops] == [3]
