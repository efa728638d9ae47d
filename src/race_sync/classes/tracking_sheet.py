"""Sheet adapters for the DATABASE tracking sheet and TEE-style report sheets."""

from __future__ import annotations

import datetime
import logging
from typing import Any, Sequence

from race_sync.classes.race_models import RaceMetadata
from race_sync.classes.race_sheet_repository import RaceSheetRepository, a1, quote_sheet
from race_sync.classes.reconcile import (
    build_entry_key_set,
    build_single_key_set,
    next_append_row,
    parse_race_id_components,
)
from race_sync.classes.tracking_sheet_domain import (
    TEE_BLOCK_COLUMNS,
    contiguous_runs,
    date_token_to_date,
    find_race_header_rows,
    free_block_rows,
    metadata_row_for_race,
)
from race_sync.errors import ConfigError

logger = logging.getLogger(__name__)

FIRST_DATA_ROW = 2

# (first column, last column) of each logical table, 1-indexed
ENTRY_TABLE = (1, 6)
EXTRACTED_FLAG_COLUMN = 7
WINNER_TABLE = (12, 13)
METADATA_TABLE = (15, 18)


class DatabaseSheet:
    """Three append-only tables sharing the DATABASE sheet."""

    def __init__(self, repo: RaceSheetRepository, title: str = "DATABASE", track_code_cell: str = "J1") -> None:
        self.repo = repo
        self.title = title
        self.track_code_cell = track_code_cell

    def _open_range(self, first_col: int, last_col: int) -> str:
        return a1(self.title, first_col, FIRST_DATA_ROW, last_col)

    def track_code(self) -> str:
        value = self.repo.read_display(f"{quote_sheet(self.title)}!{self.track_code_cell}")[0][0]
        code = str(value or "").strip().upper()
        if not code:
            raise ConfigError(f"Track code is missing in {self.title}!{self.track_code_cell}")
        return code

    def entry_rows(self, with_flag: bool = False) -> list[list[Any]]:
        last_col = EXTRACTED_FLAG_COLUMN if with_flag else ENTRY_TABLE[1]
        return self.repo.read_range(self._open_range(ENTRY_TABLE[0], last_col))

    def winner_rows(self) -> list[list[Any]]:
        return self.repo.read_range(self._open_range(*WINNER_TABLE))

    def metadata_rows(self) -> list[list[Any]]:
        return self.repo.read_range(self._open_range(*METADATA_TABLE))

    def entry_keys(self) -> set[str]:
        return build_entry_key_set(self.repo.read_range(self._open_range(1, 2)))

    def winner_keys(self) -> set[str]:
        return build_single_key_set(self.repo.read_range(self._open_range(WINNER_TABLE[0], WINNER_TABLE[0])))

    def metadata_keys(self) -> set[str]:
        return build_single_key_set(self.repo.read_range(self._open_range(METADATA_TABLE[0], METADATA_TABLE[0])))

    def _append(self, table: tuple[int, int], rows: Sequence[Sequence[Any]]) -> int:
        if not rows:
            return 0
        first_col, last_col = table
        key_column = self.repo.read_range(self._open_range(first_col, first_col))
        start_row = next_append_row(key_column, FIRST_DATA_ROW)
        cell_range = a1(self.title, first_col, start_row, last_col, start_row + len(rows) - 1)
        self.repo.write_range(rows, cell_range)
        return len(rows)

    def append_entries(self, rows: Sequence[Sequence[Any]]) -> int:
        return self._append(ENTRY_TABLE, rows)

    def append_winners(self, rows: Sequence[Sequence[Any]]) -> int:
        return self._append(WINNER_TABLE, rows)

    def append_metadata(self, rows: Sequence[Sequence[Any]]) -> int:
        return self._append(METADATA_TABLE, rows)

    def mark_extracted(self, row_numbers: Sequence[int]) -> int:
        """Set the column G flag to TRUE, one write per run of consecutive rows."""
        data = []
        for start, count in contiguous_runs(row_numbers):
            cell_range = a1(self.title, EXTRACTED_FLAG_COLUMN, start, EXTRACTED_FLAG_COLUMN, start + count - 1)
            data.append((cell_range, [[True]] * count))
        self.repo.write_ranges(data)
        return sum(count for _start, count in contiguous_runs(row_numbers))

    def clear_extracted(self) -> int:
        key_column = self.repo.read_range(self._open_range(1, 1))
        last_row = next_append_row(key_column, FIRST_DATA_ROW) - 1
        if last_row < FIRST_DATA_ROW:
            return 0
        self.repo.clear_range(a1(self.title, EXTRACTED_FLAG_COLUMN, FIRST_DATA_ROW, EXTRACTED_FLAG_COLUMN, last_row))
        return last_row - FIRST_DATA_ROW + 1

    def latest_date(self, track_code: str, min_race: int = 3, max_race: int = 15) -> datetime.date | None:
        """Most recent race date recorded in column A for ``track_code``."""
        latest = None
        for row in self.repo.read_range(self._open_range(1, 1)):
            components = parse_race_id_components(row[0] if row else None)
            if components is None or components.track_code.upper() != track_code.upper():
                continue
            if not min_race <= components.race_number <= max_race:
                continue
            candidate = date_token_to_date(components.date_token)
            if latest is None or candidate > latest:
                latest = candidate
        return latest


class ReportSheet:
    """A TEE-layout sheet: ``RACE n`` blocks in column A, 5-column horse rows.

    Reads the grid once; writes are queued and flushed in one batch request.
    """

    def __init__(self, repo: RaceSheetRepository, title: str, max_horses: int = 16) -> None:
        self.repo = repo
        self.title = title
        self.max_horses = max_horses
        self._grid: list[list[Any]] | None = None
        self._pending: list[tuple[str, list[list[Any]]]] = []

    @property
    def grid(self) -> list[list[Any]]:
        if self._grid is None:
            self._grid = self.repo.read_range(a1(self.title, 1, 1, 6))
        return self._grid

    def _cell(self, row: int, col: int) -> Any:
        if row - 1 >= len(self.grid):
            return ""
        values = self.grid[row - 1]
        return values[col - 1] if col - 1 < len(values) else ""

    def _set(self, row: int, col: int, value: Any) -> None:
        while len(self.grid) < row:
            self.grid.append([""] * 6)
        self.grid[row - 1][col - 1] = value

    def header_rows(self, races: Sequence[int]) -> dict[int, int]:
        return find_race_header_rows([row[:1] for row in self.grid], races)

    def _queue(self, cell_range: str, values: list[list[Any]]) -> None:
        self._pending.append((cell_range, values))

    def replace_block(self, header_row: int, rows: Sequence[Sequence[Any]]) -> int:
        """Clear the race block and write ``rows`` from its first data row."""
        start = header_row + 2
        block = [list(row) for row in rows[: self.max_horses]]
        written = len(block)
        if len(rows) > written:
            logger.warning("%s: %d horses for a %d-row block; dropping the rest", self.title, len(rows), self.max_horses)
        block += [[""] * TEE_BLOCK_COLUMNS for _ in range(self.max_horses - written)]
        self._queue(a1(self.title, 1, start, TEE_BLOCK_COLUMNS, start + self.max_horses - 1), block)
        for offset, row in enumerate(block):
            for col, value in enumerate(row, start=1):
                self._set(start + offset, col, value)
        return written

    def merge_block(self, header_row: int, rows: Sequence[Sequence[Any]]) -> int:
        """Add horses missing from the block into its empty rows."""
        start = header_row + 2
        block = [
            self.grid[r - 1][:TEE_BLOCK_COLUMNS] if r - 1 < len(self.grid) else []
            for r in range(start, start + self.max_horses)
        ]
        existing, free_rows = free_block_rows(block, start)
        written = 0
        for row in rows:
            try:
                horse = int(float(row[0]))
            except (TypeError, ValueError, OverflowError):
                continue
            if horse in existing or not free_rows:
                continue
            target = free_rows.pop(0)
            self._queue(a1(self.title, 1, target, TEE_BLOCK_COLUMNS, target), [list(row)])
            for col, value in enumerate(row, start=1):
                self._set(target, col, value)
            existing.add(horse)
            written += 1
        return written

    def set_winner_if_empty(self, header_row: int, winner: Any) -> bool:
        if str(self._cell(header_row, 2)).strip():
            return False
        self._queue(a1(self.title, 2, header_row), [[winner]])
        self._set(header_row, 2, winner)
        return True

    def set_metadata_if_empty(self, race_number: int, metadata: RaceMetadata) -> int:
        """Fill type, age and purse (D, E, F) of the race's metadata row where blank."""
        row = metadata_row_for_race(race_number)
        written = 0
        for col, value in ((4, metadata.race_type), (5, metadata.age), (6, metadata.purse)):
            if str(self._cell(row, col)).strip():
                continue
            self._queue(a1(self.title, col, row), [[value or ""]])
            self._set(row, col, value or "")
            written += 1
        return written

    def flush(self) -> int:
        if not self._pending:
            return 0
        updated = self.repo.write_ranges(self._pending)
        self._pending = []
        return updated
