"""Track name to track code lookups."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import yaml

from race_sync.classes.race_models import EXTERNAL_RACE_ID_RE
from race_sync.errors import ConfigError
from race_sync.paths import tracks_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Track:
    name: str
    code: str


class TrackTable:
    def __init__(self, tracks: Iterable[Track]) -> None:
        self._by_name = {track.name.upper(): track for track in tracks}

    def __len__(self) -> int:
        return len(self._by_name)

    def code_for_name(self, track_name: str | None) -> str | None:
        if not track_name:
            return None
        track = self._by_name.get(str(track_name).strip().upper())
        return track.code if track else None

    def to_internal_race_id(self, external_race_id: str) -> str | None:
        """Convert ``"GULFSTREAM 09-05-25 Race 03"`` to ``"GP_20250905_03"``."""
        match = EXTERNAL_RACE_ID_RE.match(external_race_id.strip())
        if not match:
            logger.warning("Could not parse race id %r", external_race_id)
            return None
        track_name, month, day, year, race_number = match.groups()
        code = self.code_for_name(track_name)
        if code is None:
            logger.warning("No track code for %r", track_name.strip())
            return None
        return f"{code}_20{year}{month}{day}_{race_number.zfill(2)}"


def _track_from_mapping(item: Any) -> Track:
    if not isinstance(item, dict) or not item.get("name") or not item.get("code"):
        raise ConfigError(f"Invalid track entry: {item!r}")
    return Track(
        name=str(item["name"]).strip(),
        code=str(item["code"]).strip().upper(),
    )


def load_track_table(path: Path | None = None) -> TrackTable:
    track_path = path or tracks_path()
    if not track_path.is_file():
        raise ConfigError(f"Track table not found: {track_path}")
    with open(track_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return TrackTable(_track_from_mapping(item) for item in data.get("tracks") or [])
