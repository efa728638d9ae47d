"""Persisted progress markers for resumable batch runs.

A store keeps one session marker and one completion flag per unit. The
spreadsheet encoding (session cell on the TEE sheet, flag cell on each dated
sheet) is one implementation; the in-memory store backs tests and dry runs.
"""

from __future__ import annotations

from typing import Protocol

from race_sync.classes.normalize import stringify_cell
from race_sync.classes.race_sheet_repository import RaceSheetRepository, quote_sheet


class JobStateStore(Protocol):
    def get_session(self) -> str | None: ...

    def set_session(self, marker: str) -> None: ...

    def clear_session(self) -> None: ...

    def get_unit(self, unit: str) -> str | None: ...

    def mark_unit(self, unit: str, marker: str) -> None: ...

    def clear_unit(self, unit: str) -> None: ...


def _marker(value: object) -> str | None:
    if value is None:
        return None
    text = stringify_cell(value).strip()
    return text or None


class InMemoryJobStateStore:
    def __init__(self) -> None:
        self.session: str | None = None
        self.units: dict[str, str] = {}

    def get_session(self) -> str | None:
        return self.session

    def set_session(self, marker: str) -> None:
        self.session = marker

    def clear_session(self) -> None:
        self.session = None

    def get_unit(self, unit: str) -> str | None:
        return self.units.get(unit)

    def mark_unit(self, unit: str, marker: str) -> None:
        self.units[unit] = marker

    def clear_unit(self, unit: str) -> None:
        self.units.pop(unit, None)


class SheetCellJobStateStore:
    """Session marker in ``session_sheet!session_cell``; unit flags in ``unit!unit_cell``."""

    def __init__(self, repo: RaceSheetRepository, session_sheet: str, session_cell: str, unit_cell: str) -> None:
        self.repo = repo
        self._session_range = f"{quote_sheet(session_sheet)}!{session_cell}"
        self._unit_cell = unit_cell

    def _unit_range(self, unit: str) -> str:
        return f"{quote_sheet(unit)}!{self._unit_cell}"

    def get_session(self) -> str | None:
        return _marker(self.repo.read_cell(self._session_range))

    def set_session(self, marker: str) -> None:
        self.repo.write_raw([[marker]], self._session_range)

    def clear_session(self) -> None:
        self.repo.clear_range(self._session_range)

    def get_unit(self, unit: str) -> str | None:
        return _marker(self.repo.read_cell(self._unit_range(unit)))

    def mark_unit(self, unit: str, marker: str) -> None:
        self.repo.write_raw([[marker]], self._unit_range(unit))

    def clear_unit(self, unit: str) -> None:
        self.repo.clear_range(self._unit_range(unit))
