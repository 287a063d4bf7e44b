"""
Render metadata — merged-cell layout for the participant table and export.

Both renderers read the same run stream: the ordered roster is cut into
contiguous runs of participants that belong to the same sharing unit. For
every field group the unit shares, the first row of the run shows the
value spanning the whole run and the other rows are hidden; unshared field
groups show one cell per row.

Because the table meta and the spreadsheet merge ranges are both derived
from ``iter_runs``, an export never disagrees with the screen.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Mapping

from tourdesk.core.roster import ResolvedParticipant, ResolvedRoster
from tourdesk.services.itinerary_fields import FIELD_GROUPS, FIELDS_BY_GROUP

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CellMeta:
    visible: bool = True
    span: int = 1

    def to_dict(self) -> dict:
        return {"visible": self.visible, "span": self.span}


@dataclass(frozen=True)
class Run:
    """Contiguous rows of one sharing unit: ``start`` index and ``length``."""

    start: int
    length: int
    entries: tuple[ResolvedParticipant, ...]

    @property
    def unit(self):
        return self.entries[0].unit


@dataclass(frozen=True)
class ColumnLayout:
    """Where the data rows and each field group's columns sit on a sheet.

    Rows and columns are 1-based, as in openpyxl. ``columns`` maps a field
    group to every column that holds one of its fields, across all cities.
    """

    first_data_row: int
    columns: Mapping[str, tuple[int, ...]] = field(default_factory=dict)


@dataclass(frozen=True)
class MergeRange:
    start_row: int
    end_row: int
    columns: tuple[int, ...]

    def to_dict(self) -> dict:
        return {"start_row": self.start_row, "end_row": self.end_row, "columns": list(self.columns)}


def _entries(ordered) -> list[ResolvedParticipant]:
    if isinstance(ordered, ResolvedRoster):
        return list(ordered.entries)
    return list(ordered)


def iter_runs(ordered: Iterable[ResolvedParticipant]) -> Iterator[Run]:
    """Yield the contiguous same-unit runs of an ordered, resolved roster."""
    entries = _entries(ordered)
    start = 0
    while start < len(entries):
        identity = entries[start].unit.identity
        end = start + 1
        while end < len(entries) and entries[end].unit.identity == identity:
            end += 1
        yield Run(start=start, length=end - start, entries=tuple(entries[start:end]))
        start = end


def build_table_meta(ordered: Iterable[ResolvedParticipant]) -> list[dict[str, CellMeta]]:
    """Per-row, per-field-group cell visibility and row span.

    Returns:
        One dict per row (same order as ``ordered``) mapping each field
        group to its CellMeta.
    """
    rows: list[dict[str, CellMeta]] = []
    for run in iter_runs(ordered):
        for offset in range(run.length):
            meta = {}
            for group in FIELD_GROUPS:
                if not run.unit.shares(group):
                    meta[group] = CellMeta()
                elif offset == 0:
                    meta[group] = CellMeta(visible=True, span=run.length)
                else:
                    meta[group] = CellMeta(visible=False, span=0)
            rows.append(meta)
    return rows


def build_export_merge_ranges(ordered: Iterable[ResolvedParticipant], layout: ColumnLayout) -> list[MergeRange]:
    """Sheet merge ranges for every shared field group of every multi-row run.

    Single-row runs produce nothing: a one-cell span needs no merge.
    """
    ranges = []
    for run in iter_runs(ordered):
        if run.length < 2:
            continue
        start_row = layout.first_data_row + run.start
        end_row = start_row + run.length - 1
        for group in FIELD_GROUPS:
            columns = tuple(layout.columns.get(group, ()))
            if run.unit.shares(group) and columns:
                ranges.append(MergeRange(start_row=start_row, end_row=end_row, columns=columns))
    logger.debug("Built %d export merge ranges", len(ranges))
    return ranges


def canonical_values(roster: ResolvedRoster, entry: ResolvedParticipant, city: str) -> dict:
    """Field values to display for ``entry`` in ``city``.

    Shared field groups read from the unit's anchor; everything else from
    the participant's own record. Missing values are None.
    """
    own = entry.participant.visit(city)
    anchor = roster.participant(entry.unit.anchor_id).visit(city) if not entry.is_anchor else own

    values = {}
    for group, fields in FIELDS_BY_GROUP.items():
        source = anchor if entry.unit.shares(group) else own
        for name in fields:
            values[name] = source.get(name) if source is not None else None
    values["notes"] = own.get("notes") if own is not None else None
    return values
