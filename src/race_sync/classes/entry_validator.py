"""Decide whether a race sheet row is a live (non-scratched) entry."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from race_sync.classes.normalize import clean_currency_value

# FALSE is absent here: a P3 of FALSE does not make the horse a scratch.
INVALID_WILL_PAY_VALUES = frozenset({"SC", "N/A", "#VALUE!", "#DIV/0!", ""})


@dataclass(frozen=True)
class WillPayColumns:
    will_pay_2: int = 11
    will_pay_1_p3: int = 13


def is_valid_will_pay_value(value: str | None) -> bool:
    if not value:
        return False
    return value.strip().upper() not in INVALID_WILL_PAY_VALUES


def _cell(row: Sequence[Any] | None, index: int) -> Any:
    if row is None or index >= len(row):
        return None
    return row[index]


def has_valid_entry_data(
    value_row: Sequence[Any] | None,
    display_row: Sequence[Any] | None,
    columns: WillPayColumns = WillPayColumns(),
) -> bool:
    """Both will-pay columns must clean to a usable payout."""
    will_pay_2 = clean_currency_value(_cell(value_row, columns.will_pay_2), _cell(display_row, columns.will_pay_2))
    will_pay_1_p3 = clean_currency_value(
        _cell(value_row, columns.will_pay_1_p3), _cell(display_row, columns.will_pay_1_p3)
    )
    return is_valid_will_pay_value(will_pay_2) and is_valid_will_pay_value(will_pay_1_p3)
