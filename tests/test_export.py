"""
Tests for the event summary export (Excel + CSV).

Covers:
  - header layout: fixed columns, one merged band per city
  - vertical merges per shared field group, none for unshared ones
  - shared cells show the anchor's values even when members disagree
  - CSV repeats canonical values on every member row
  - format validation and unknown event handling
"""

import csv
import io

from openpyxl import load_workbook

from tourdesk.models import db
from tourdesk.models.participation import CityVisit
from tourdesk.services.export_service import city_column, generate_summary_excel, summary_layout


def _visit(deal, city, **values):
    visit = CityVisit(deal_id=deal.id, city=city, **values)
    db.session.add(visit)
    db.session.commit()
    return visit


def _merged(ws):
    return {str(r) for r in ws.merged_cells.ranges}


def _sheet(content):
    return load_workbook(io.BytesIO(content)).active


def test_city_column_layout():
    assert city_column(0, "arrival_date") == 6
    assert city_column(0, "notes") == 20
    assert city_column(1, "arrival_date") == 21


def test_summary_layout_groups_columns_per_city():
    layout = summary_layout(["Beijing", "Shanghai"])

    assert layout.first_data_row == 3
    assert layout.columns["hotel"] == (12, 13, 27, 28)
    assert len(layout.columns["arrival"]) == 12


def test_excel_headers(tour_event):
    ws = _sheet(generate_summary_excel(tour_event.id))

    assert ws.title == "Summary"
    assert ws.cell(row=1, column=2).value == "Participant"
    assert ws.cell(row=1, column=6).value == "Beijing"
    assert ws.cell(row=2, column=12).value == "Hotel"
    merged = _merged(ws)
    assert "A1:A2" in merged
    assert "F1:T1" in merged


def test_family_rows_are_merged_for_shared_groups(tour_event, make_family):
    _, (ivan, maria) = make_family("Ivan", "Maria")
    _visit(ivan, "Beijing", hotel_name="Grand Hotel", notes="vegetarian")
    _visit(maria, "Beijing", hotel_name="Stale Hotel", notes="window seat")

    ws = _sheet(generate_summary_excel(tour_event.id))
    merged = _merged(ws)

    assert "F3:F4" in merged   # Beijing arrival date
    assert "L3:L4" in merged   # Beijing hotel
    assert "N3:N4" in merged   # Beijing departure date
    assert "T3:T4" not in merged   # notes stay per participant
    assert ws.cell(row=3, column=12).value == "Grand Hotel"
    assert ws.cell(row=3, column=20).value == "vegetarian"
    assert ws.cell(row=4, column=20).value == "window seat"
    assert ws.cell(row=3, column=5).value == "Family"


def test_mini_group_merges_only_hotel(client, tour_event, make_participant):
    a = make_participant("Anna")
    b = make_participant("Boris")
    client.post(f"/api/v1/events/{tour_event.id}/groups", json={"name": "Friends", "member_ids": [a.id, b.id]})

    merged = _merged(_sheet(generate_summary_excel(tour_event.id)))

    assert "L3:L4" in merged
    assert "F3:F4" not in merged
    assert "N3:N4" not in merged


def test_single_participants_have_no_data_merges(tour_event, make_participant):
    make_participant("Anna")
    make_participant("Boris")

    ws = _sheet(generate_summary_excel(tour_event.id))

    assert [r for r in ws.merged_cells.ranges if r.min_row >= 3] == []


def test_csv_repeats_anchor_values(client, tour_event, make_family):
    _, (ivan, maria) = make_family("Ivan", "Maria")
    _visit(ivan, "Beijing", hotel_name="Grand Hotel")
    _visit(maria, "Beijing", hotel_name="Stale Hotel")

    res = client.get(f"/api/v1/events/{tour_event.id}/export/summary?format=csv")

    assert res.status_code == 200
    assert res.headers["Content-Disposition"].endswith('.csv"')
    rows = list(csv.DictReader(io.StringIO(res.get_data(as_text=True))))
    assert [r["participant"] for r in rows] == ["Ivan", "Maria"]
    assert {r["Beijing: Hotel"] for r in rows} == {"Grand Hotel"}
    assert {r["grouping"] for r in rows} == {"family"}


def test_excel_download(client, tour_event):
    res = client.get(f"/api/v1/events/{tour_event.id}/export/summary")

    assert res.status_code == 200
    assert res.mimetype.endswith("spreadsheetml.sheet")
    assert f"event_{tour_event.id}_summary_" in res.headers["Content-Disposition"]


def test_unsupported_format_is_400(client, tour_event):
    res = client.get(f"/api/v1/events/{tour_event.id}/export/summary?format=pdf")

    assert res.status_code == 400


def test_unknown_event_is_404(client):
    assert client.get("/api/v1/events/999/export/summary").status_code == 404
