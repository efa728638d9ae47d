"""Pure helpers for the DATABASE, TEE, dated and TOTALS sheets."""

from __future__ import annotations

import datetime
import re
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from race_sync.classes.normalize import sheet_serial_to_date, stringify_cell
from race_sync.classes.race_models import RaceMetadata
from race_sync.classes.race_sheet_repository import column_index, column_letter, quote_sheet
from race_sync.classes.reconcile import key_part, parse_race_id_components

DATE_SHEET_RE = re.compile(r"^\d{2}/\d{2}/\d{2}$")
TEE_BLOCK_COLUMNS = 5
TRUE_TOKENS = {"TRUE", "True", "true"}


def is_truthy_flag(value: Any) -> bool:
    return value is True or (isinstance(value, str) and value.strip() in TRUE_TOKENS)


def date_token_to_sheet_name(date_token: str) -> str:
    """``"20250905"`` -> ``"09/05/25"``"""
    return f"{date_token[4:6]}/{date_token[6:8]}/{date_token[2:4]}"


def sheet_name_to_date_token(sheet_name: str) -> str:
    """``"09/05/25"`` -> ``"20250905"``; used as the chronological sort key."""
    month, day, year = sheet_name.split("/")
    return f"20{year}{month}{day}"


def iso_to_date_token(iso_date: str) -> str:
    return iso_date.replace("-", "")


def date_token_to_date(date_token: str) -> datetime.date:
    return datetime.date(int(date_token[:4]), int(date_token[4:6]), int(date_token[6:8]))


def date_sheet_titles(titles: Iterable[str], skipped_names: Iterable[str] = ()) -> list[str]:
    """``MM/dd/yy`` sheet titles, oldest first."""
    skipped = {name.upper() for name in skipped_names}
    dated = [title for title in titles if title.upper() not in skipped and DATE_SHEET_RE.match(title)]
    return sorted(dated, key=sheet_name_to_date_token)


def find_race_header_rows(
    column_a: Sequence[Sequence[Any]],
    races: Iterable[int],
    first_row: int = 1,
) -> dict[int, int]:
    """Row of the first cell reading exactly ``RACE n`` (any case) for each race."""
    wanted = {f"RACE {race}": race for race in races}
    rows: dict[int, int] = {}
    for offset, row in enumerate(column_a):
        if not row:
            continue
        text = stringify_cell(row[0]).strip().upper()
        race = wanted.get(text)
        if race is not None and race not in rows:
            rows[race] = first_row + offset
    return rows


def metadata_row_for_race(race_number: int) -> int:
    return 2 + (race_number - 3) * 20


@dataclass
class DatabaseEntry:
    row_number: int
    race_id: str
    race_number: int
    horse_number: Any
    ml: Any = ""
    live_odds: Any = ""
    correct_p3: Any = ""
    double: Any = ""

    def block_row(self) -> list[Any]:
        return [self.horse_number, self.ml, self.live_odds, self.correct_p3, self.double]


def _horse_sort_key(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0


def tee_block_rows(entries: Iterable[DatabaseEntry]) -> list[list[Any]]:
    """``[horse, ml, live_odds, correct_p3, double]`` rows sorted by horse number."""
    return [entry.block_row() for entry in sorted(entries, key=lambda e: _horse_sort_key(e.horse_number))]


def _as_cell(value: Any) -> Any:
    return "" if value is None else value


def entries_from_rows(
    rows: Sequence[Sequence[Any]],
    first_row: int = 2,
    *,
    track_code: str | None = None,
    date_token: str | None = None,
    min_race: int = 3,
    max_race: int = 15,
    skip_extracted: bool = False,
) -> tuple[list[DatabaseEntry], int]:
    """Parse DATABASE A:F (or A:G) rows into entries inside the race window.

    Returns the entries and how many rows were skipped as already extracted.
    """
    entries: list[DatabaseEntry] = []
    extracted = 0
    for offset, row in enumerate(rows):
        if skip_extracted and len(row) > 6 and is_truthy_flag(row[6]):
            extracted += 1
            continue
        race_id = key_part(row[0]) if row else ""
        components = parse_race_id_components(race_id)
        if components is None:
            continue
        if track_code is not None and components.track_code.upper() != track_code.upper():
            continue
        if date_token is not None and components.date_token != date_token:
            continue
        if not min_race <= components.race_number <= max_race:
            continue
        padded = list(row) + [""] * (6 - len(row))
        if key_part(padded[1]) == "":
            continue
        entries.append(
            DatabaseEntry(
                row_number=first_row + offset,
                race_id=race_id,
                race_number=components.race_number,
                horse_number=padded[1],
                ml=_as_cell(padded[2]),
                live_odds=_as_cell(padded[3]),
                correct_p3=_as_cell(padded[4]),
                double=_as_cell(padded[5]),
            )
        )
    return entries, extracted


def group_by_race(entries: Iterable[DatabaseEntry]) -> dict[int, list[DatabaseEntry]]:
    grouped: dict[int, list[DatabaseEntry]] = defaultdict(list)
    for entry in entries:
        grouped[entry.race_number].append(entry)
    return dict(sorted(grouped.items()))


def group_by_date(entries: Iterable[DatabaseEntry]) -> dict[str, list[DatabaseEntry]]:
    grouped: dict[str, list[DatabaseEntry]] = defaultdict(list)
    for entry in entries:
        components = parse_race_id_components(entry.race_id)
        if components is not None:
            grouped[components.date_token].append(entry)
    return dict(sorted(grouped.items()))


def _races_for_date(race_ids: Iterable[str], date_token: str, min_race: int, max_race: int) -> dict[str, int]:
    result = {}
    for race_id in race_ids:
        components = parse_race_id_components(race_id)
        if components is None or components.date_token != date_token:
            continue
        if min_race <= components.race_number <= max_race:
            result[race_id] = components.race_number
    return result


def winners_for_date(
    rows: Sequence[Sequence[Any]], date_token: str, min_race: int = 3, max_race: int = 15
) -> dict[int, Any]:
    """Race number -> winning horse from DATABASE L:M rows."""
    winners = {}
    for row in rows:
        if len(row) < 2 or not key_part(row[0]) or key_part(row[1]) == "":
            continue
        winners[key_part(row[0])] = row[1]
    races = _races_for_date(winners, date_token, min_race, max_race)
    return {race: winners[race_id] for race_id, race in races.items()}


def metadata_for_date(
    rows: Sequence[Sequence[Any]], date_token: str, min_race: int = 3, max_race: int = 15
) -> dict[int, RaceMetadata]:
    """Race number -> metadata from DATABASE O:R rows."""
    metadata = {}
    for row in rows:
        padded = list(row) + [""] * (4 - len(row))
        race_id = key_part(padded[0])
        if not race_id:
            continue
        metadata[race_id] = RaceMetadata(
            race_id=race_id,
            age=key_part(padded[1]),
            race_type=key_part(padded[2]),
            purse=key_part(padded[3]),
        )
    races = _races_for_date(metadata, date_token, min_race, max_race)
    return {race: metadata[race_id] for race_id, race in races.items()}


def contiguous_runs(numbers: Iterable[int]) -> list[tuple[int, int]]:
    """Sorted ``(start, count)`` runs of consecutive integers."""
    runs: list[tuple[int, int]] = []
    for number in sorted(set(numbers)):
        if runs and runs[-1][0] + runs[-1][1] == number:
            start, count = runs[-1]
            runs[-1] = (start, count + 1)
        else:
            runs.append((number, 1))
    return runs


def free_block_rows(block: Sequence[Sequence[Any]], data_start_row: int) -> tuple[set[int], list[int]]:
    """Horse numbers already present in a race block, and its empty rows."""
    existing: set[int] = set()
    free_rows: list[int] = []
    for offset, row in enumerate(block):
        cell = row[0] if row else ""
        if key_part(cell) == "":
            free_rows.append(data_start_row + offset)
            continue
        horse = _horse_sort_key(cell)
        if horse:
            existing.add(horse)
    return existing, free_rows


@dataclass(frozen=True)
class FormulaCell:
    row: int
    col: int
    formula: str


def extract_formulas(
    grid: Sequence[Sequence[Any]],
    first_row: int = 1,
    first_col: int = 1,
) -> list[FormulaCell]:
    cells = []
    for row_offset, row in enumerate(grid):
        for col_offset, value in enumerate(row):
            if isinstance(value, str) and value.strip() and value.startswith("="):
                cells.append(FormulaCell(first_row + row_offset, first_col + col_offset, value))
    return cells


@dataclass
class FormulaRun:
    row: int
    col: int
    formulas: list[list[str]] = field(default_factory=list)

    def a1(self, sheet: str) -> str:
        height = len(self.formulas)
        width = len(self.formulas[0]) if self.formulas else 0
        end = f"{column_letter(self.col + width - 1)}{self.row + height - 1}"
        return f"{quote_sheet(sheet)}!{column_letter(self.col)}{self.row}:{end}"


def row_formula_runs(cells: Iterable[FormulaCell]) -> list[FormulaRun]:
    """Group cells into horizontal runs of consecutive columns per row."""
    by_row: dict[int, list[FormulaCell]] = defaultdict(list)
    for cell in cells:
        by_row[cell.row].append(cell)
    runs: list[FormulaRun] = []
    for row in sorted(by_row):
        current: FormulaRun | None = None
        for cell in sorted(by_row[row], key=lambda c: c.col):
            if current is not None and current.col + len(current.formulas[0]) == cell.col:
                current.formulas[0].append(cell.formula)
                continue
            current = FormulaRun(row=row, col=cell.col, formulas=[[cell.formula]])
            runs.append(current)
    return runs


def column_formula_runs(cells: Iterable[FormulaCell]) -> list[FormulaRun]:
    """Group cells into vertical runs of consecutive rows per column."""
    by_col: dict[int, list[FormulaCell]] = defaultdict(list)
    for cell in cells:
        by_col[cell.col].append(cell)
    runs: list[FormulaRun] = []
    for col in sorted(by_col):
        current: FormulaRun | None = None
        for cell in sorted(by_col[col], key=lambda c: c.row):
            if current is not None and current.row + len(current.formulas) == cell.row:
                current.formulas.append([cell.formula])
                continue
            current = FormulaRun(row=cell.row, col=col, formulas=[[cell.formula]])
            runs.append(current)
    return runs


def normalize_columns(columns: Iterable[str | int]) -> list[int]:
    """Column letters or 1-based numbers, de-duplicated in input order."""
    result: list[int] = []
    for column in columns:
        if isinstance(column, bool):
            raise ValueError(f"Invalid column format: {column!r}")
        if isinstance(column, int):
            number = column
        elif isinstance(column, str) and column.strip().isdigit():
            number = int(column.strip())
        elif isinstance(column, str):
            number = column_index(column)
        else:
            raise ValueError(f"Invalid column format: {column!r}")
        if number < 1:
            raise ValueError(f"Invalid column format: {column!r}")
        if number not in result:
            result.append(number)
    return result


def totals_row(sheet_name: str, total_cells: Sequence[str]) -> tuple[list[Any], list[Any]]:
    """Plain-text label cell and formula cells for one TOTALS row."""
    quoted = quote_sheet(sheet_name)
    return [sheet_name], [f"={quoted}!{cell}" for cell in total_cells]


def totals_label_to_sheet_name(value: Any) -> str:
    """TOTALS column A cell as a dated sheet name; date-typed cells are reformatted."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        as_date = sheet_serial_to_date(value)
        if as_date is not None:
            return as_date.strftime("%m/%d/%y")
    return stringify_cell(value).strip().replace("-", "/")
