"""Read races, entries and winners off hand-edited race sheets.

A race sheet has the track name in ``E1``, the event date in ``AB2`` and
today's date in ``AB3``. Race headers (``RACE n``) sit in column A every 23
rows from row 48, with the post time in column J. Each header is followed,
two rows down, by a 16 x 20 block of per-horse values.
"""

from __future__ import annotations

import datetime
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from race_sync.classes.entry_validator import WillPayColumns, has_valid_entry_data
from race_sync.classes.normalize import (
    build_raw_data_string,
    clean_currency_value,
    clean_numeric_value,
    clean_p3_value,
    clean_percent_value,
    clean_veto_rating,
    format_date_for_api,
    is_safe_number,
    sheet_serial_to_date,
    stringify_cell,
)
from race_sync.classes.race_models import (
    Confidence,
    ExtractionMethod,
    Race,
    RaceEntry,
    Winner,
    external_race_id,
    race_number_from_external_id,
)
from race_sync.classes.race_sheet_repository import RaceSheetRepository, a1, quote_sheet

logger = logging.getLogger(__name__)

TRACK_NAME_CELL = "E1"
EVENT_DATE_RANGE = "AB2:AB3"

RACE_HEADER_ROWS = tuple(48 + 23 * i for i in range(13))
ENTRY_ROW_OFFSET = 2
ENTRY_BLOCK_COLUMNS = 20
POST_TIME_COLUMN = 10

# historical sheets: winner in column C of the header row, $2 payout 43 rows below in B
HEADER_WINNER_COLUMN = 3
PAYOUT_ROW_OFFSET = 43
PAYOUT_COLUMN = 2

UTILITY_WINNER_FIRST_ROW = 277
UTILITY_WINNER_ROWS = 15

_LEADING_INT_RE = re.compile(r"^\s*[+-]?\d+")


@dataclass(frozen=True)
class EntryColumns:
    """0-indexed positions inside a 20-column entry row."""

    double: int = 1
    constant: int = 2
    p3: int = 3
    correct_p3: int = 4
    live_odds: int = 5
    sharp_action: int = 6
    ml: int = 7
    double_delta: int = 8
    p3_delta: int = 9
    x_figure: int = 10
    will_pay_2: int = 11
    will_pay: int = 12
    will_pay_1_p3: int = 13
    win_pool: int = 15
    veto_rating: int = 16

    @property
    def will_pay_columns(self) -> WillPayColumns:
        return WillPayColumns(will_pay_2=self.will_pay_2, will_pay_1_p3=self.will_pay_1_p3)


ENTRY_COLUMNS = EntryColumns()


def parse_int_prefix(value: Any) -> int | None:
    """Leading integer of a cell, the way ``parseInt`` reads it."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return int(value)
        except (OverflowError, ValueError):
            return None
    match = _LEADING_INT_RE.match(str(value))
    return int(match.group(0)) if match else None


def parse_payout(value: Any) -> float | None:
    """Positive dollar amount from a number or a ``$1,234.50`` string."""
    if value is None or isinstance(value, bool) or value == "":
        return None
    if isinstance(value, str):
        value = re.sub(r"[$,\s]", "", value)
    try:
        amount = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return amount if is_safe_number(amount) and amount > 0 else None


def parse_race_header(value: Any) -> str | None:
    """Race number text from a ``RACE n`` header cell, or None."""
    text = stringify_cell(value) if value is not None else ""
    if "RACE" not in text:
        return None
    return text.replace("RACE ", "").strip()


def _cell(row: Sequence[Any], index: int) -> Any:
    return row[index] if index < len(row) else None


def _numeric(value_row: Sequence[Any], display_row: Sequence[Any], index: int) -> float | None:
    number = clean_numeric_value(_cell(value_row, index), _cell(display_row, index))
    return number if number is not None and is_safe_number(number) else None


def build_entry(
    horse_number: int,
    value_row: Sequence[Any],
    display_row: Sequence[Any],
    columns: EntryColumns = ENTRY_COLUMNS,
) -> RaceEntry:
    def pair(index: int) -> tuple[Any, Any]:
        return _cell(value_row, index), _cell(display_row, index)

    return RaceEntry(
        horse_number=horse_number,
        raw_data=build_raw_data_string(horse_number, display_row),
        double=_numeric(value_row, display_row, columns.double),
        constant=_numeric(value_row, display_row, columns.constant),
        correct_p3=_numeric(value_row, display_row, columns.correct_p3),
        ml=_numeric(value_row, display_row, columns.ml),
        live_odds=_numeric(value_row, display_row, columns.live_odds),
        action=_numeric(value_row, display_row, columns.sharp_action),
        double_delta=_numeric(value_row, display_row, columns.double_delta),
        p3_delta=_numeric(value_row, display_row, columns.p3_delta),
        x_figure=_numeric(value_row, display_row, columns.x_figure),
        p3=clean_p3_value(*pair(columns.p3)),
        sharp_percent=clean_percent_value(*pair(columns.sharp_action)),
        will_pay_2=clean_currency_value(*pair(columns.will_pay_2)),
        will_pay=clean_currency_value(*pair(columns.will_pay)),
        will_pay_1_p3=clean_currency_value(*pair(columns.will_pay_1_p3)),
        win_pool=clean_currency_value(*pair(columns.win_pool)),
        veto_rating=clean_veto_rating(*pair(columns.veto_rating)),
    )


def extract_entries(
    values: Sequence[Sequence[Any]],
    display: Sequence[Sequence[Any]],
    columns: EntryColumns = ENTRY_COLUMNS,
) -> list[RaceEntry]:
    """Entries from one 16-row block; row ``i`` is horse ``i + 1``."""
    entries = []
    for index, value_row in enumerate(values):
        display_row = display[index] if index < len(display) else []
        if not has_valid_entry_data(value_row, display_row, columns.will_pay_columns):
            continue
        entries.append(build_entry(index + 1, value_row, display_row, columns))
    return entries


@dataclass
class SheetGrid:
    """Values and display values of a rectangular range anchored at ``first_row``."""

    first_row: int
    values: list[list[Any]] = field(default_factory=list)
    display: list[list[Any]] = field(default_factory=list)

    def value(self, row: int, col: int) -> Any:
        return self._at(self.values, row, col)

    def display_value(self, row: int, col: int) -> Any:
        return self._at(self.display, row, col)

    def _at(self, grid: list[list[Any]], row: int, col: int) -> Any:
        offset = row - self.first_row
        if offset < 0 or offset >= len(grid):
            return None
        return _cell(grid[offset], col - 1)

    def block(self, start_row: int, height: int, width: int) -> tuple[list[list[Any]], list[list[Any]]]:
        start = start_row - self.first_row
        values = [list(row[:width]) for row in self.values[start : start + height]]
        display = [list(row[:width]) for row in self.display[start : start + height]]
        return values, display


@dataclass
class RaceSheet:
    """One race sheet's parsed header data plus the races it yielded."""

    title: str
    track_name: str
    event_date: datetime.date
    races: list[Race] = field(default_factory=list)
    headers: SheetGrid | None = None

    @property
    def api_date(self) -> str:
        return format_date_for_api(self.event_date)

    @property
    def race_ids(self) -> list[str]:
        return [race.race_id for race in self.races]


def extract_races(
    track_name: str,
    api_date: str,
    headers: SheetGrid,
    entries: SheetGrid,
    *,
    race_min: int = 1,
    race_max: int = 15,
    min_entries: int = 1,
    horse_max: int = 16,
) -> list[Race]:
    races = []
    for header_row in RACE_HEADER_ROWS:
        race_num = parse_race_header(headers.value(header_row, 1))
        if race_num is None:
            continue
        number = parse_int_prefix(race_num)
        if number is None or not race_min <= number <= race_max:
            logger.debug("Skipping race header %r at row %d", race_num, header_row)
            continue
        post_time = stringify_cell(headers.display_value(header_row, POST_TIME_COLUMN) or "").strip() or None
        values, display = entries.block(header_row + ENTRY_ROW_OFFSET, horse_max, ENTRY_BLOCK_COLUMNS)
        race_entries = extract_entries(values, display)
        if len(race_entries) < min_entries:
            logger.info("Race %s has insufficient entries: %d", race_num, len(race_entries))
            continue
        races.append(
            Race(
                race_id=external_race_id(track_name, api_date, race_num),
                track=track_name,
                date=api_date,
                race_number=race_num,
                post_time=post_time,
                entries=race_entries,
            )
        )
    return races


def utility_winners(
    race_ids: Iterable[str],
    horses: Sequence[Sequence[Any]],
    payouts: Sequence[Sequence[Any]],
    horse_max: int = 16,
) -> dict[str, Winner]:
    """Winners from the UTILITY summary rows (one row per race number, from race 1)."""
    winners: dict[str, Winner] = {}
    for race_id in race_ids:
        number = race_number_from_external_id(race_id)
        if number is None:
            logger.warning("Could not extract race number from race id %s", race_id)
            continue
        index = number - 1
        if index < 0 or index >= len(horses):
            continue
        horse_cell = _cell(horses[index], 0)
        payout_cell = _cell(payouts[index], 0) if index < len(payouts) else None
        if horse_cell in (None, "", "#N/A") or payout_cell in (None, "", "#N/A"):
            continue
        horse = parse_int_prefix(horse_cell)
        if horse is None or not 1 <= horse <= horse_max:
            logger.warning("Invalid horse number for %s: %r", race_id, horse_cell)
            continue
        payout = parse_payout(payout_cell)
        if payout is None:
            logger.warning("Invalid winning amount for %s: %r", race_id, payout_cell)
            continue
        winners[race_id] = Winner(
            race_id=race_id,
            winning_horse_number=horse,
            extraction_method=ExtractionMethod.SIMPLE_CORRECT,
            extraction_confidence=Confidence.HIGH,
            winning_payout_2_dollar=payout,
        )
    return winners


def header_winners(
    sheet: RaceSheet,
    race_ids: Iterable[str],
    min_race: int = 3,
    horse_max: int = 16,
) -> dict[str, Winner]:
    """Winners read from each race header row of a historical sheet."""
    wanted = set(race_ids)
    winners: dict[str, Winner] = {}
    if sheet.headers is None:
        return winners
    for header_row in RACE_HEADER_ROWS:
        race_num = parse_race_header(sheet.headers.value(header_row, 1))
        number = parse_int_prefix(race_num) if race_num is not None else None
        if number is None or number < min_race:
            continue
        race_id = external_race_id(sheet.track_name, sheet.api_date, race_num)
        if race_id not in wanted:
            continue
        horse = parse_int_prefix(sheet.headers.value(header_row, HEADER_WINNER_COLUMN))
        if horse is None:
            logger.debug("No winner number for %s in row %d", race_id, header_row)
            continue
        if not 1 <= horse <= horse_max:
            logger.warning("Invalid winner number for %s: %d", race_id, horse)
            continue
        payout = parse_payout(sheet.headers.value(header_row + PAYOUT_ROW_OFFSET, PAYOUT_COLUMN))
        winners[race_id] = Winner(
            race_id=race_id,
            winning_horse_number=horse,
            extraction_method=ExtractionMethod.HEADER,
            extraction_confidence=Confidence.HIGH if payout else Confidence.MEDIUM,
            winning_payout_2_dollar=payout,
        )
    return winners


class RaceSheetReader:
    """Fetches the few ranges a race sheet needs, in as few reads as possible."""

    def __init__(
        self,
        repo: RaceSheetRepository,
        *,
        race_min: int = 1,
        race_max: int = 15,
        min_entries: int = 1,
        horse_max: int = 16,
    ) -> None:
        self.repo = repo
        self.race_min = race_min
        self.race_max = race_max
        self.min_entries = min_entries
        self.horse_max = horse_max

    def _grid(self, title: str, first_row: int, last_row: int, last_col: int) -> SheetGrid:
        cell_range = a1(title, 1, first_row, last_col, last_row)
        return SheetGrid(
            first_row=first_row,
            values=self.repo.read_range(cell_range),
            display=self.repo.read_display(cell_range),
        )

    def read(self, title: str, *, require_today: bool) -> RaceSheet | None:
        """Parse ``title``; None when it is not a usable race sheet."""
        sheet = quote_sheet(title)
        event_cell, today_cell = (row[0] for row in self.repo.read_range(f"{sheet}!{EVENT_DATE_RANGE}")[:2])
        event_date = sheet_serial_to_date(event_cell)
        if event_date is None:
            logger.info("Sheet %s: no event date found", title)
            return None
        if require_today and event_date != sheet_serial_to_date(today_cell):
            logger.info("Skipping sheet %s: no race today", title)
            return None
        track_name = stringify_cell(self.repo.read_cell(f"{sheet}!{TRACK_NAME_CELL}") or "").strip()
        if not track_name:
            logger.info("Sheet %s: no track name found", title)
            return None

        last_header = RACE_HEADER_ROWS[-1]
        headers = self._grid(title, RACE_HEADER_ROWS[0], last_header + PAYOUT_ROW_OFFSET, POST_TIME_COLUMN)
        entries = self._grid(
            title,
            RACE_HEADER_ROWS[0] + ENTRY_ROW_OFFSET,
            last_header + ENTRY_ROW_OFFSET + self.horse_max - 1,
            ENTRY_BLOCK_COLUMNS,
        )
        race_sheet = RaceSheet(title=title, track_name=track_name, event_date=event_date, headers=headers)
        race_sheet.races = extract_races(
            track_name,
            race_sheet.api_date,
            headers,
            entries,
            race_min=self.race_min,
            race_max=self.race_max,
            min_entries=self.min_entries,
            horse_max=self.horse_max,
        )
        return race_sheet

    def read_utility_winners(self, utility_title: str, race_ids: Iterable[str]) -> dict[str, Winner]:
        last_row = UTILITY_WINNER_FIRST_ROW + UTILITY_WINNER_ROWS - 1
        grid = self.repo.read_range(a1(utility_title, 3, UTILITY_WINNER_FIRST_ROW, 4, last_row))
        payouts = [row[:1] for row in grid]
        horses = [row[1:2] for row in grid]
        return utility_winners(race_ids, horses, payouts, self.horse_max)
