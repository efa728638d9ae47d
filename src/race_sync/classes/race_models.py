"""Race, entry, winner and metadata records exchanged with the race backend."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field, fields
from typing import Any

EXTERNAL_RACE_ID_RE = re.compile(r"^([A-Z\s]+?)\s+(\d{2})-(\d{2})-(\d{2})\s+Race\s+(\d+)$", re.IGNORECASE)
RACE_NUMBER_SUFFIX_RE = re.compile(r"Race\s+(\d+)$", re.IGNORECASE)


class ExtractionMethod(str, enum.Enum):
    SIMPLE_CORRECT = "simple_correct"
    HEADER = "header"
    SUMMARY = "summary"
    CROSS_REFERENCE = "cross_reference"


class Confidence(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def _payload(record: Any, skip: tuple[str, ...] = ()) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for f in fields(record):
        if f.name in skip:
            continue
        value = getattr(record, f.name)
        if value is None:
            continue
        if isinstance(value, enum.Enum):
            value = value.value
        payload[f.name] = value
    return payload


@dataclass
class RaceEntry:
    horse_number: int
    raw_data: str = ""
    double: float | None = None
    constant: float | None = None
    correct_p3: float | None = None
    ml: float | None = None
    live_odds: float | None = None
    action: float | None = None
    double_delta: float | None = None
    p3_delta: float | None = None
    x_figure: float | None = None
    p3: str | None = None
    sharp_percent: str | None = None
    will_pay_2: str | None = None
    will_pay: str | None = None
    will_pay_1_p3: str | None = None
    win_pool: str | None = None
    veto_rating: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Absent fields are omitted rather than sent as null."""
        return _payload(self)


@dataclass
class Race:
    race_id: str
    track: str
    date: str
    race_number: str
    post_time: str | None = None
    entries: list[RaceEntry] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        payload = _payload(self, skip=("entries", "post_time"))
        payload["post_time"] = self.post_time
        payload["entries"] = [entry.to_payload() for entry in self.entries]
        return payload


@dataclass
class Winner:
    race_id: str
    winning_horse_number: int
    extraction_method: ExtractionMethod
    extraction_confidence: Confidence
    winning_payout_2_dollar: float | None = None
    winning_payout_1_p3: float | None = None

    def to_payload(self) -> dict[str, Any]:
        return _payload(self)


@dataclass
class RaceMetadata:
    race_id: str
    age: str | None = None
    race_type: str | None = None
    purse: str | None = None

    @classmethod
    def from_entry(cls, entry: dict[str, Any]) -> "RaceMetadata | None":
        """Metadata carried on an API entry, or None when it has none."""
        age, race_type, purse = (
            str(entry[name]) if entry.get(name) is not None else None for name in ("age", "race_type", "purse")
        )
        if not (age or race_type or purse):
            return None
        return cls(race_id=str(entry.get("race_id", "")).strip(), age=age, race_type=race_type, purse=purse)

    def to_row(self) -> list[Any]:
        return [self.race_id, self.age or "", self.race_type or "", self.purse or ""]


def external_race_id(track_name: str, api_date: str, race_number: int | str) -> str:
    """``"GULFSTREAM 09-05-25 Race 03"``"""
    return f"{track_name} {api_date} Race {str(race_number).zfill(2)}"


def race_number_from_external_id(race_id: str) -> int | None:
    match = RACE_NUMBER_SUFFIX_RE.search(race_id.strip())
    if not match:
        return None
    return int(match.group(1))
