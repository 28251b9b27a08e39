"""Rubric tables authored per question.

Stored rubrics come in two row shapes: a list of cells, or an object keyed by
column position (``{"c0": "Logic", "c1": "3"}``). Both are resolved into a
row variant here so rendering never has to guess.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Union

_KEYED_CELL = re.compile(r"^c?(\d+)$")

CRITERIA_COLUMNS = ["Criteria", "Points"]


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


@dataclass(frozen=True)
class PositionalRow:
    cells: tuple[str, ...]

    def cells_for(self, column_count: int) -> list[str]:
        del column_count
        return list(self.cells)


@dataclass(frozen=True)
class KeyedRow:
    cells_by_index: dict[int, str]

    def cells_for(self, column_count: int) -> list[str]:
        return [self.cells_by_index.get(idx) or "" for idx in range(column_count)]


RubricRow = Union[PositionalRow, KeyedRow]


def row_from_payload(raw: Any) -> RubricRow | None:
    if isinstance(raw, (list, tuple)):
        return PositionalRow(tuple(_cell_text(cell) for cell in raw))
    if isinstance(raw, dict):
        cells: dict[int, str] = {}
        for key, value in raw.items():
            match = _KEYED_CELL.match(str(key).strip())
            if match:
                cells[int(match.group(1))] = _cell_text(value)
        return KeyedRow(cells)
    return None


@dataclass
class RubricTable:
    title: str = ""
    columns: list[str] | None = None
    rows: list[RubricRow] | None = field(default=None)

    @property
    def is_tabular(self) -> bool:
        return self.columns is not None and self.rows is not None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "RubricTable":
        title = payload.get("title") or ""
        raw_columns = payload.get("columns")
        raw_rows = payload.get("rows")

        columns = [_cell_text(col) for col in raw_columns] if isinstance(raw_columns, list) else None
        rows: list[RubricRow] | None = None
        if isinstance(raw_rows, list):
            rows = [row for row in (row_from_payload(item) for item in raw_rows) if row is not None]
        return cls(title=str(title), columns=columns, rows=rows)


def _is_criteria_item(item: dict[str, Any]) -> bool:
    return "criteria" in item and "columns" not in item and "rows" not in item


def rubric_tables_from_payload(value: Any) -> list[RubricTable]:
    """Convert a request or stored ``rubric`` value into rubric tables."""
    if not isinstance(value, list):
        return []

    tables: list[RubricTable] = []
    criteria_rows: list[RubricRow] = []
    for item in value:
        if not isinstance(item, dict):
            continue
        if _is_criteria_item(item):
            criteria = _cell_text(item.get("criteria")).strip()
            points = _cell_text(item.get("points")).strip()
            if criteria or points:
                criteria_rows.append(PositionalRow((criteria, points)))
            continue
        tables.append(RubricTable.from_payload(item))

    if criteria_rows:
        tables.append(RubricTable(title="", columns=list(CRITERIA_COLUMNS), rows=criteria_rows))
    return tables
