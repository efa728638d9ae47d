"""Append-only, key-deduplicated reconciliation of API records into the tracking sheet.

Three logical tables share the DATABASE sheet: entries (A:F, key race_id|horse),
winners (L:M, key race_id) and race metadata (O:R, key race_id). Planning is
pure; ``services.database_sync`` reads the key columns and performs the writes.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from race_sync.classes.normalize import stringify_cell
from race_sync.classes.race_models import RaceMetadata

logger = logging.getLogger(__name__)

RACE_ID_RE = re.compile(r"^([A-Z0-9]+)_(\d{8})_(\d{1,2})$", re.IGNORECASE)

ENTRY_COLUMNS = ("race_id", "horse_number", "ml", "live_odds", "correct_p3", "double")


@dataclass(frozen=True)
class RaceIdComponents:
    track_code: str
    date_token: str
    race_number: int


@dataclass(frozen=True)
class ReconcileWindow:
    track_code: str
    date_token: str | None = None
    min_race: int = 3
    max_race: int = 15

    def accepts(self, components: RaceIdComponents) -> bool:
        if components.track_code.upper() != self.track_code.upper():
            return False
        if self.date_token is not None and components.date_token != self.date_token:
            return False
        return self.min_race <= components.race_number <= self.max_race


def parse_race_id_components(race_id: Any) -> RaceIdComponents | None:
    """Split ``"GP_20250905_3"`` into track code, YYYYMMDD token and race number."""
    if race_id is None:
        return None
    match = RACE_ID_RE.match(str(race_id).strip())
    if not match:
        return None
    return RaceIdComponents(
        track_code=match.group(1),
        date_token=match.group(2),
        race_number=int(match.group(3)),
    )


def key_part(value: Any) -> str:
    if value is None:
        return ""
    return stringify_cell(value).strip()


def entry_key(race_id: Any, horse_number: Any) -> str:
    return f"{key_part(race_id)}|{key_part(horse_number)}"


def build_entry_key_set(rows: Iterable[Sequence[Any]]) -> set[str]:
    """Composite keys from A:B rows; rows without a race id are ignored."""
    keys = set()
    for row in rows:
        race_id = key_part(row[0]) if row else ""
        if not race_id:
            continue
        horse = row[1] if len(row) > 1 else ""
        keys.add(entry_key(race_id, horse))
    return keys


def build_single_key_set(rows: Iterable[Sequence[Any]]) -> set[str]:
    return {key_part(row[0]) for row in rows if row and key_part(row[0])}


def next_append_row(column_rows: Sequence[Sequence[Any]], first_row: int = 2) -> int:
    """Row after the last non-empty cell of a column read from ``first_row``."""
    for index in range(len(column_rows) - 1, -1, -1):
        row = column_rows[index]
        if row and key_part(row[0]):
            return first_row + index + 1
    return first_row


@dataclass
class ReconcilePlan:
    entry_rows: list[list[Any]] = field(default_factory=list)
    metadata_rows: list[list[Any]] = field(default_factory=list)
    winner_rows: list[list[Any]] = field(default_factory=list)
    fetched: int = 0
    skipped: int = 0
    winners_skipped: int = 0


def _cell(value: Any) -> Any:
    return "" if value is None else value


def entry_row(entry: dict[str, Any]) -> list[Any]:
    return [_cell(entry.get(column)) for column in ENTRY_COLUMNS]


def plan_entries(
    entries: Sequence[dict[str, Any]],
    existing_entry_keys: set[str],
    existing_metadata_keys: set[str],
    window: ReconcileWindow,
    plan: ReconcilePlan | None = None,
) -> ReconcilePlan:
    """Queue unseen entries and first-seen race metadata.

    Both key sets are updated in place so repeated candidates in one batch
    are appended once.
    """
    plan = plan or ReconcilePlan()
    plan.fetched += len(entries)
    metadata_by_race: dict[str, RaceMetadata] = {}

    for entry in entries:
        components = parse_race_id_components(entry.get("race_id"))
        if components is None or not window.accepts(components):
            plan.skipped += 1
            continue

        race_id = key_part(entry.get("race_id"))
        if race_id not in metadata_by_race:
            metadata = RaceMetadata.from_entry({**entry, "race_id": race_id})
            if metadata is not None:
                metadata_by_race[race_id] = metadata

        key = entry_key(race_id, entry.get("horse_number"))
        if key in existing_entry_keys:
            plan.skipped += 1
            continue
        plan.entry_rows.append(entry_row({**entry, "race_id": race_id}))
        existing_entry_keys.add(key)

    for race_id, metadata in metadata_by_race.items():
        if race_id in existing_metadata_keys:
            continue
        plan.metadata_rows.append(metadata.to_row())
        existing_metadata_keys.add(race_id)

    return plan


def plan_winners(
    winners: Sequence[dict[str, Any]],
    existing_winner_keys: set[str],
    window: ReconcileWindow,
    plan: ReconcilePlan | None = None,
) -> ReconcilePlan:
    """Queue winners for races without one; existing winners are never replaced."""
    plan = plan or ReconcilePlan()
    for winner in winners:
        components = parse_race_id_components(winner.get("race_id"))
        if components is None or not window.accepts(components):
            plan.winners_skipped += 1
            continue
        race_id = key_part(winner.get("race_id"))
        horse = winner.get("winning_horse_number")
        if race_id in existing_winner_keys or not horse:
            plan.winners_skipped += 1
            continue
        plan.winner_rows.append([race_id, horse])
        existing_winner_keys.add(race_id)
    return plan
