"""Repository wrapper for SheetClient operations, plus A1 range helpers."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from race_sync.classes.sheet_client import FORMATTED, FORMULA, UNFORMATTED, SheetClient
from race_sync.errors import SheetNotFoundError

_CELL_RE = re.compile(r"^([A-Z]+)(\d*)$")


def column_letter(index: int) -> str:
    """1-indexed column number to letters (1 -> A, 27 -> AA)."""
    if index < 1:
        raise ValueError(f"column index must be positive, got {index}")
    letters = ""
    while index:
        index, remainder = divmod(index - 1, 26)
        letters = chr(65 + remainder) + letters
    return letters


def column_index(letters: str) -> int:
    """Column letters to 1-indexed number (A -> 1, AA -> 27)."""
    letters = letters.strip().upper()
    if not letters or not letters.isalpha():
        raise ValueError(f"invalid column letters: {letters!r}")
    index = 0
    for char in letters:
        index = index * 26 + (ord(char) - 64)
    return index


def quote_sheet(title: str) -> str:
    return "'" + title.replace("'", "''") + "'"


def a1(title: str, start_col: int, start_row: int, end_col: int | None = None, end_row: int | None = None) -> str:
    """Build ``'Title'!B2:F`` style ranges; omit ``end_row`` for open-ended columns."""
    start = f"{column_letter(start_col)}{start_row}"
    if end_col is None:
        return f"{quote_sheet(title)}!{start}"
    end = f"{column_letter(end_col)}{end_row if end_row is not None else ''}"
    return f"{quote_sheet(title)}!{start}:{end}"


@dataclass(frozen=True)
class A1Range:
    sheet: str
    start_col: int
    start_row: int
    end_col: int
    end_row: int | None


def parse_a1(cell_range: str) -> A1Range:
    sheet, _, cells = cell_range.rpartition("!")
    if sheet.startswith("'") and sheet.endswith("'"):
        sheet = sheet[1:-1].replace("''", "'")
    start, _, end = cells.partition(":")
    start_match = _CELL_RE.match(start.upper())
    if not start_match:
        raise ValueError(f"unsupported range: {cell_range!r}")
    start_col = column_index(start_match.group(1))
    start_row = int(start_match.group(2) or 1)
    if not end:
        return A1Range(sheet, start_col, start_row, start_col, start_row)
    end_match = _CELL_RE.match(end.upper())
    if not end_match:
        raise ValueError(f"unsupported range: {cell_range!r}")
    end_row = int(end_match.group(2)) if end_match.group(2) else None
    return A1Range(sheet, start_col, start_row, column_index(end_match.group(1)), end_row)


def pad_grid(values: Sequence[Sequence[Any]], rows: int | None, cols: int) -> list[list[Any]]:
    """The API drops trailing empty cells and rows; restore a rectangular grid."""
    grid = [list(row) + [""] * (cols - len(row)) for row in values]
    if rows is not None:
        grid.extend([[""] * cols for _ in range(rows - len(grid))])
    return grid


class RaceSheetRepository:
    def __init__(self, client: SheetClient) -> None:
        self._client = client

    @property
    def spreadsheet_id(self) -> str | None:
        return self._client.spreadsheet_id

    def _read(self, cell_range: str, render: str) -> list[list[Any]]:
        parsed = parse_a1(cell_range)
        rows = None if parsed.end_row is None else parsed.end_row - parsed.start_row + 1
        cols = parsed.end_col - parsed.start_col + 1
        return pad_grid(self._client.get_values(cell_range, render), rows, cols)

    def read_range(self, cell_range: str) -> list[list[Any]]:
        return self._read(cell_range, UNFORMATTED)

    def read_display(self, cell_range: str) -> list[list[Any]]:
        return self._read(cell_range, FORMATTED)

    def read_formulas(self, cell_range: str) -> list[list[Any]]:
        return self._read(cell_range, FORMULA)

    def read_cell(self, cell_range: str) -> Any:
        return self.read_range(cell_range)[0][0]

    def write_range(self, values: Sequence[Sequence[Any]], cell_range: str) -> int:
        return self._client.write_values([list(row) for row in values], cell_range, value_input_option="USER_ENTERED")

    def write_raw(self, values: Sequence[Sequence[Any]], cell_range: str) -> int:
        return self._client.write_values([list(row) for row in values], cell_range, value_input_option="RAW")

    def write_ranges(self, data: Sequence[tuple[str, Sequence[Sequence[Any]]]]) -> int:
        return self._client.batch_write_values(list(data), value_input_option="USER_ENTERED")

    def clear_range(self, cell_range: str) -> None:
        self._client.clear_range(cell_range)

    def sheet_titles(self) -> list[str]:
        return self._client.sheet_titles()

    def has_sheet(self, title: str) -> bool:
        return self._client.find_sheet_id(title) is not None

    def require_sheet(self, title: str) -> int:
        sheet_id = self._client.find_sheet_id(title)
        if sheet_id is None:
            raise SheetNotFoundError(title)
        return sheet_id

    def duplicate_sheet(self, source_title: str, new_title: str) -> int:
        return self._client.duplicate_sheet(self.require_sheet(source_title), new_title)
