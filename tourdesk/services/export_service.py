"""
Event summary export — itinerary of every participant, city by city.

Excel layout:
    row 1   fixed column headers + one merged band per city
    row 2   field labels under each city band
    row 3+  one row per participant, in roster order

Cells of a field group shared by a sharing unit are merged vertically
over the unit's rows (one merge per column), using the same run stream
as the on-screen table. Shared cells always show the anchor's values.

The CSV carries the same canonical values, repeated on every member row.
"""

import csv
import io
import logging

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from tourdesk.models.participation import CITY_VISIT_FIELDS
from tourdesk.services.itinerary_fields import FIELDS_BY_GROUP
from tourdesk.services.render_meta import ColumnLayout, build_export_merge_ranges, canonical_values
from tourdesk.services.roster_service import load_roster

logger = logging.getLogger(__name__)

HEADER_FILL = PatternFill(start_color="354A5F", end_color="354A5F", fill_type="solid")
CITY_FILL = PatternFill(start_color="4F6D8A", end_color="4F6D8A", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

FIXED_COLUMNS = ("#", "Participant", "Tourist type", "Deal status", "Grouping")

FIELD_LABELS = {
    "arrival_date": "Arrival date",
    "arrival_time": "Arrival time",
    "arrival_transport_type": "Arrival transport",
    "arrival_flight_number": "Arrival flight/train",
    "arrival_terminal": "Arrival terminal",
    "arrival_transfer": "Arrival transfer",
    "hotel_name": "Hotel",
    "room_type": "Room type",
    "departure_date": "Departure date",
    "departure_time": "Departure time",
    "departure_transport_type": "Departure transport",
    "departure_flight_number": "Departure flight/train",
    "departure_terminal": "Departure terminal",
    "departure_transfer": "Departure transfer",
    "notes": "Notes",
}

UNIT_LABELS = {"family": "Family", "mini_group": "Mini-group", "none": ""}

FIRST_DATA_ROW = 3


def city_column(city_index: int, field_name: str) -> int:
    """1-based sheet column of ``field_name`` under the city at ``city_index``."""
    return len(FIXED_COLUMNS) + city_index * len(CITY_VISIT_FIELDS) + CITY_VISIT_FIELDS.index(field_name) + 1


def summary_layout(cities) -> ColumnLayout:
    """Column layout of the summary sheet for an event route."""
    columns = {
        group: tuple(
            city_column(i, name)
            for i in range(len(cities))
            for name in fields
        )
        for group, fields in FIELDS_BY_GROUP.items()
    }
    return ColumnLayout(first_data_row=FIRST_DATA_ROW, columns=columns)


def _apply_header_style(cell, fill=HEADER_FILL) -> None:
    cell.fill = fill
    cell.font = HEADER_FONT
    cell.border = THIN_BORDER
    cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)


def _auto_width(ws) -> None:
    """Auto-size column widths based on content (capped at 40 chars)."""
    for idx in range(1, ws.max_column + 1):
        max_len = 0
        for row in ws.iter_rows(min_col=idx, max_col=idx):
            value = row[0].value
            if value:
                max_len = max(max_len, min(len(str(value)), 40))
        ws.column_dimensions[get_column_letter(idx)].width = max(max_len + 2, 10)


def _write_headers(ws, cities) -> None:
    for col, header in enumerate(FIXED_COLUMNS, start=1):
        ws.cell(row=1, column=col, value=header)
        _apply_header_style(ws.cell(row=1, column=col))
        ws.merge_cells(start_row=1, start_column=col, end_row=2, end_column=col)

    for i, city in enumerate(cities):
        first = city_column(i, CITY_VISIT_FIELDS[0])
        last = city_column(i, CITY_VISIT_FIELDS[-1])
        ws.cell(row=1, column=first, value=city)
        _apply_header_style(ws.cell(row=1, column=first), CITY_FILL)
        ws.merge_cells(start_row=1, start_column=first, end_row=1, end_column=last)
        for name in CITY_VISIT_FIELDS:
            cell = ws.cell(row=2, column=city_column(i, name), value=FIELD_LABELS[name])
            _apply_header_style(cell)


def generate_summary_excel(event_id: int) -> bytes:
    """Build the summary workbook of an event.

    Raises:
        NotFoundError: the event does not exist.
    """
    snapshot = load_roster(event_id)
    roster = snapshot.resolve()
    cities = list(snapshot.route)

    wb = Workbook()
    ws = wb.active
    ws.title = "Summary"
    _write_headers(ws, cities)

    for offset, entry in enumerate(roster):
        row = FIRST_DATA_ROW + offset
        p = entry.participant
        fixed = (
            offset + 1,
            p.name,
            p.tourist.tourist_type if p.tourist else None,
            p.deal_status,
            UNIT_LABELS.get(entry.unit.kind, ""),
        )
        for col, value in enumerate(fixed, start=1):
            ws.cell(row=row, column=col, value=value).border = THIN_BORDER
        for i, city in enumerate(cities):
            values = canonical_values(roster, entry, city)
            for name in CITY_VISIT_FIELDS:
                cell = ws.cell(row=row, column=city_column(i, name), value=values.get(name))
                cell.border = THIN_BORDER
                cell.alignment = Alignment(vertical="center")

    ranges = build_export_merge_ranges(roster, summary_layout(cities))
    for r in ranges:
        for col in r.columns:
            ws.merge_cells(start_row=r.start_row, start_column=col, end_row=r.end_row, end_column=col)

    ws.freeze_panes = ws.cell(row=FIRST_DATA_ROW, column=len(FIXED_COLUMNS) + 1)
    _auto_width(ws)

    logger.info(
        "Summary workbook generated: %d rows, %d merge ranges", len(roster), len(ranges),
        extra={"event_id": event_id},
    )
    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return buf.getvalue()


def generate_summary_csv(event_id: int) -> str:
    """Summary as CSV; shared values repeated on every member row.

    Raises:
        NotFoundError: the event does not exist.
    """
    snapshot = load_roster(event_id)
    roster = snapshot.resolve()
    cities = list(snapshot.route)

    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(
        ["participant_id", "participant", "tourist_type", "deal_status", "grouping"]
        + [f"{city}: {FIELD_LABELS[name]}" for city in cities for name in CITY_VISIT_FIELDS]
    )
    for entry in roster:
        p = entry.participant
        row = [
            p.id,
            p.name,
            p.tourist.tourist_type if p.tourist else "",
            p.deal_status,
            entry.unit.kind,
        ]
        for city in cities:
            values = canonical_values(roster, entry, city)
            row.extend(
                (values.get(name) or "").replace("\n", " ") for name in CITY_VISIT_FIELDS
            )
        writer.writerow(row)
    return buf.getvalue()
