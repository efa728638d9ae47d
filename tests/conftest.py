import math
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = REPO_ROOT / "src"

for path in (REPO_ROOT, SRC_ROOT):
    path_str = str(path)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from race_sync.classes.race_sheet_repository import RaceSheetRepository, parse_a1  # noqa: E402
from race_sync.classes.sheet_client import SheetClient  # noqa: E402
from race_sync.config import SyncSettings  # noqa: E402


def _is_empty(value):
    return value is None or value == ""


def _display(value):
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value)


class _Request:
    def __init__(self, fn):
        self._fn = fn

    def execute(self):
        return self._fn()


class _Values:
    def __init__(self, workbook):
        self.workbook = workbook

    def get(self, spreadsheetId=None, range=None, valueRenderOption=None, dateTimeRenderOption=None):
        return _Request(lambda: {"values": self.workbook.read(range, valueRenderOption)})

    def update(self, spreadsheetId=None, range=None, valueInputOption=None, body=None):
        return _Request(lambda: {"updatedCells": self.workbook.write(range, body["values"], valueInputOption)})

    def batchUpdate(self, spreadsheetId=None, body=None):
        def _run():
            total = 0
            for item in body["data"]:
                total += self.workbook.write(item["range"], item["values"], body["valueInputOption"])
            self.workbook.batch_calls += 1
            return {"totalUpdatedCells": total}

        return _Request(_run)

    def clear(self, spreadsheetId=None, range=None, body=None):
        return _Request(lambda: self.workbook.clear(range))


class _Spreadsheets:
    def __init__(self, workbook):
        self.workbook = workbook

    def values(self):
        return _Values(self.workbook)

    def get(self, spreadsheetId=None):
        return _Request(
            lambda: {
                "sheets": [
                    {"properties": {"title": title, "sheetId": sheet["id"]}}
                    for title, sheet in self.workbook.sheets.items()
                ]
            }
        )

    def batchUpdate(self, spreadsheetId=None, body=None):
        def _run():
            replies = []
            for request in body["requests"]:
                duplicate = request["duplicateSheet"]
                new_id = self.workbook.duplicate(duplicate["sourceSheetId"], duplicate["newSheetName"])
                replies.append({"duplicateSheet": {"properties": {"sheetId": new_id, "title": duplicate["newSheetName"]}}})
            return {"replies": replies}

        return _Request(_run)


class FakeWorkbook:
    """In-memory stand-in for the Sheets v4 service used by SheetClient.

    Cells are stored per sheet as ``{(row, col): value}``. Formatted reads
    render values the way the sheet would unless a display override is set.
    Reads drop trailing empty cells and rows like the real API.
    """

    def __init__(self):
        self.sheets = {}
        self.display = {}
        self.updates = []
        self.cleared = []
        self.reads = []
        self.batch_calls = 0
        self._next_id = 100

    def spreadsheets(self):
        return _Spreadsheets(self)

    def add_sheet(self, title, rows=None, first_row=1, first_col=1):
        self.sheets[title] = {"id": self._next_id, "cells": {}}
        self._next_id += 1
        if rows:
            self.set_rows(title, rows, first_row, first_col)
        return self.sheets[title]

    def set_rows(self, title, rows, first_row=1, first_col=1):
        cells = self.sheets[title]["cells"]
        for r, row in enumerate(rows):
            for c, value in enumerate(row):
                if _is_empty(value):
                    cells.pop((first_row + r, first_col + c), None)
                else:
                    cells[(first_row + r, first_col + c)] = value

    def set_cell(self, title, cell, value):
        parsed = parse_a1(f"'{title}'!{cell}")
        self.set_rows(title, [[value]], parsed.start_row, parsed.start_col)

    def set_display(self, title, cell, text):
        parsed = parse_a1(f"'{title}'!{cell}")
        self.display[(title, parsed.start_row, parsed.start_col)] = text

    def cell(self, title, cell):
        parsed = parse_a1(f"'{title}'!{cell}")
        return self.sheets[title]["cells"].get((parsed.start_row, parsed.start_col))

    def column(self, title, col, first_row=1, last_row=None):
        cells = self.sheets[title]["cells"]
        last_row = last_row or max([row for row, _ in cells] or [first_row])
        return [cells.get((row, col)) for row in range(first_row, last_row + 1)]

    def _sheet(self, title):
        if title not in self.sheets:
            raise KeyError(f"Unable to parse range: {title}")
        return self.sheets[title]

    def _bounds(self, cell_range):
        parsed = parse_a1(cell_range)
        cells = self._sheet(parsed.sheet)["cells"]
        end_row = parsed.end_row
        if end_row is None:
            end_row = max([row for row, _ in cells] or [parsed.start_row])
        return parsed, end_row

    def read(self, cell_range, render=None):
        self.reads.append((cell_range, render))
        parsed, end_row = self._bounds(cell_range)
        cells = self.sheets[parsed.sheet]["cells"]
        rows = []
        for row in range(parsed.start_row, end_row + 1):
            values = []
            for col in range(parsed.start_col, parsed.end_col + 1):
                value = cells.get((row, col))
                if render == "FORMATTED_VALUE" and not _is_empty(value):
                    value = self.display.get((parsed.sheet, row, col), _display(value))
                values.append("" if value is None else value)
            while values and _is_empty(values[-1]):
                values.pop()
            rows.append(values)
        while rows and not rows[-1]:
            rows.pop()
        return rows

    def write(self, cell_range, values, value_input_option):
        parsed = parse_a1(cell_range)
        self._sheet(parsed.sheet)
        self.updates.append((cell_range, [list(row) for row in values], value_input_option))
        self.set_rows(parsed.sheet, values, parsed.start_row, parsed.start_col)
        return sum(len(row) for row in values)

    def clear(self, cell_range):
        parsed, end_row = self._bounds(cell_range)
        self.cleared.append(cell_range)
        cells = self.sheets[parsed.sheet]["cells"]
        for row in range(parsed.start_row, end_row + 1):
            for col in range(parsed.start_col, parsed.end_col + 1):
                cells.pop((row, col), None)
        return {"clearedRange": cell_range}

    def duplicate(self, source_id, new_title):
        source = next(sheet for sheet in self.sheets.values() if sheet["id"] == source_id)
        created = self.add_sheet(new_title)
        created["cells"] = dict(source["cells"])
        return created["id"]

    def ranges_written(self, option=None):
        return [cell_range for cell_range, _values, used in self.updates if option is None or used == option]


@pytest.fixture
def workbook():
    return FakeWorkbook()


@pytest.fixture
def repo(workbook):
    return RaceSheetRepository(SheetClient("sheet-id", service=workbook))


@pytest.fixture
def settings():
    return SyncSettings(
        api_base_url="https://races.example.test",
        api_key="secret-key",
        spreadsheet_id="sheet-id",
    )


def entry_row(horse, will_pay_2=25.4, will_pay_1_p3=12, **overrides):
    """A 20-column race sheet entry row with live will-pay values."""
    row = [""] * 20
    row[0] = horse
    row[1] = 2.5
    row[3] = 3.456
    row[7] = 5
    row[11] = will_pay_2
    row[13] = will_pay_1_p3
    for index, value in overrides.items():
        row[int(index.lstrip("c"))] = value
    return row


@pytest.fixture
def race_sheet_factory(workbook):
    """Build a race sheet: ``races`` maps race number to (entry rows, winner, payout)."""

    def _build(title, races, track="GULFSTREAM", event_serial=45905, today_serial=45905):
        workbook.add_sheet(title)
        workbook.set_cell(title, "E1", track)
        workbook.set_cell(title, "AB2", event_serial)
        workbook.set_cell(title, "AB3", today_serial)
        for position, (race_number, (rows, winner, payout)) in enumerate(sorted(races.items())):
            header_row = 48 + 23 * position
            workbook.set_cell(title, f"A{header_row}", f"RACE {race_number}")
            workbook.set_cell(title, f"J{header_row}", f"{race_number}:15 PM")
            if winner is not None:
                workbook.set_cell(title, f"C{header_row}", winner)
            if payout is not None:
                workbook.set_cell(title, f"B{header_row + 43}", payout)
            workbook.set_rows(title, rows, first_row=header_row + 2)
        return title

    return _build
