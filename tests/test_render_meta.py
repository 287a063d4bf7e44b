"""
Tests for table meta and export merge ranges.

Covers:
  - visible spans of every field group partition the roster exactly
  - family spans all groups, mini-group spans hotel only
  - a unit split into non-contiguous runs renders each run separately
  - export merge ranges match the table meta
  - canonical values read shared groups from the anchor
"""

import pytest

from tourdesk.core.roster import CityVisitSnapshot, GroupSnapshot, LeadSnapshot, Participant, TouristProfile
from tourdesk.services.itinerary_fields import FIELD_GROUPS
from tourdesk.services.render_meta import (
    CellMeta,
    ColumnLayout,
    MergeRange,
    build_export_merge_ranges,
    build_table_meta,
    canonical_values,
    iter_runs,
)
from tourdesk.services.sharing_units import resolve_roster


def _p(pid, lead=None, primary=False, group=None, group_primary=False, visits=None):
    return Participant(
        id=pid,
        name=f"P{pid}",
        lead_id=lead,
        lead=LeadSnapshot(id=lead, status="converted") if lead is not None else None,
        tourist=TouristProfile(first_name=f"P{pid}", is_primary=primary) if lead is not None else None,
        group_id=group,
        group=GroupSnapshot(id=group, type="mini_group") if group is not None else None,
        is_primary_in_group=group_primary,
        visits={city: CityVisitSnapshot(city=city, values=values)
                for city, values in (visits or {}).items()},
    )


def _mixed_roster():
    return resolve_roster([
        _p(1, lead=1, primary=True), _p(2, lead=1), _p(3, lead=1),
        _p(4, group=9, group_primary=True), _p(5, group=9),
        _p(6), _p(7, lead=2, primary=True),
    ])


def _assert_partition(meta, group):
    covered = [0] * len(meta)
    for idx, row in enumerate(meta):
        cell = row[group]
        if cell.visible:
            for covered_idx in range(idx, idx + cell.span):
                covered[covered_idx] += 1
    assert covered == [1] * len(meta)


@pytest.mark.parametrize("group", FIELD_GROUPS)
def test_visible_spans_partition_the_roster(group):
    meta = build_table_meta(_mixed_roster())

    _assert_partition(meta, group)


def test_family_anchor_spans_every_field_group():
    roster = _mixed_roster()
    meta = build_table_meta(roster)
    family_rows = [i for i, e in enumerate(roster) if e.unit.kind == "family"]

    first, *rest = family_rows
    for group in FIELD_GROUPS:
        assert meta[first][group] == CellMeta(visible=True, span=3)
        assert all(not meta[i][group].visible for i in rest)


def test_mini_group_spans_hotel_only():
    roster = _mixed_roster()
    meta = build_table_meta(roster)
    rows = [i for i, e in enumerate(roster) if e.unit.kind == "mini_group"]

    assert meta[rows[0]]["hotel"] == CellMeta(visible=True, span=2)
    assert meta[rows[1]]["hotel"].visible is False
    for i in rows:
        assert meta[i]["arrival"] == CellMeta()
        assert meta[i]["departure"] == CellMeta()


def test_split_unit_renders_each_run_separately():
    # Group 9 members carry different single-member leads, so a third
    # participant sorts between them.
    roster = resolve_roster([
        _p(1, lead=1, primary=True, group=9, group_primary=True),
        _p(2, lead=2, primary=True),
        _p(3, lead=3, primary=True, group=9),
    ])

    runs = list(iter_runs(roster))
    meta = build_table_meta(roster)

    assert [r.length for r in runs] == [1, 1, 1]
    assert all(row["hotel"] == CellMeta() for row in meta)
    _assert_partition(meta, "hotel")


def test_empty_roster_has_no_meta():
    assert build_table_meta(resolve_roster([])) == []


def test_export_merge_ranges_follow_table_meta():
    # rows: family (3), single lead, ungrouped, mini-group (2)
    roster = _mixed_roster()
    layout = ColumnLayout(
        first_data_row=3,
        columns={"arrival": (6, 7), "hotel": (12,), "departure": (14, 15)},
    )

    ranges = build_export_merge_ranges(roster, layout)

    assert MergeRange(start_row=3, end_row=5, columns=(6, 7)) in ranges
    assert MergeRange(start_row=3, end_row=5, columns=(12,)) in ranges
    assert MergeRange(start_row=3, end_row=5, columns=(14, 15)) in ranges
    assert MergeRange(start_row=8, end_row=9, columns=(12,)) in ranges
    assert len(ranges) == 4


def test_export_merge_ranges_skip_single_rows():
    roster = resolve_roster([_p(1), _p(2, lead=5, primary=True)])
    layout = ColumnLayout(first_data_row=2, columns={"hotel": (4,)})

    assert build_export_merge_ranges(roster, layout) == []


def test_canonical_values_take_shared_groups_from_anchor():
    roster = resolve_roster([
        _p(1, group=9, group_primary=True, visits={"Beijing": {"hotel_name": "Jade Inn", "arrival_time": "08:00"}}),
        _p(2, group=9, visits={"Beijing": {"hotel_name": "Stale", "arrival_time": "21:40", "notes": "late"}}),
    ])

    values = canonical_values(roster, roster.entry(2), "Beijing")

    assert values["hotel_name"] == "Jade Inn"
    assert values["arrival_time"] == "21:40"
    assert values["notes"] == "late"


def test_canonical_values_absent_visit_is_none():
    roster = resolve_roster([_p(1, lead=1, primary=True), _p(2, lead=1)])

    values = canonical_values(roster, roster.entry(2), "Shanghai")

    assert values["hotel_name"] is None
    assert values["room_type"] is None


def test_canonical_values_ignore_family_member_of_same_group():
    roster = resolve_roster([
        _p(1, lead=1, primary=True, group=9, group_primary=True,
           visits={"Beijing": {"hotel_name": "Family Inn"}}),
        _p(2, lead=1, visits={"Beijing": {"hotel_name": "Family Inn"}}),
        _p(3, group=9, visits={"Beijing": {"hotel_name": "Own Hotel"}}),
    ])

    values = canonical_values(roster, roster.entry(3), "Beijing")

    assert values["hotel_name"] == "Own Hotel"
