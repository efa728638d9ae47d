"""Last pass over outbound race payloads before they are posted."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from race_sync.classes.normalize import is_safe_number

NUMERIC_FIELDS = (
    "double",
    "constant",
    "correct_p3",
    "ml",
    "live_odds",
    "action",
    "double_delta",
    "p3_delta",
    "x_figure",
)
STRING_FIELDS = (
    "p3",
    "sharp_percent",
    "will_pay_2",
    "will_pay",
    "will_pay_1_p3",
    "win_pool",
    "veto_rating",
)


def sanitize_entry(entry: Mapping[str, Any]) -> dict[str, Any]:
    """Copy ``entry`` keeping only safe numbers and present strings."""
    sanitized: dict[str, Any] = {
        "horse_number": entry.get("horse_number"),
        "raw_data": entry.get("raw_data"),
    }
    for field in NUMERIC_FIELDS:
        if is_safe_number(entry.get(field)):
            sanitized[field] = entry[field]
    for field in STRING_FIELDS:
        if entry.get(field) is not None:
            sanitized[field] = entry[field]
    return sanitized


def sanitize_races(races: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    result = []
    for race in races:
        cleaned = dict(race)
        cleaned["entries"] = [sanitize_entry(entry) for entry in race.get("entries") or []]
        result.append(cleaned)
    return result


def count_unsafe_fields(races: Iterable[Mapping[str, Any]]) -> int:
    """Number of numeric fields ``sanitize_races`` would drop."""
    count = 0
    for race in races:
        for entry in race.get("entries") or []:
            for field in NUMERIC_FIELDS:
                if field in entry and not is_safe_number(entry[field]):
                    count += 1
    return count
