"""Cell value normalization for race sheet ingestion.

Each cleaner takes the ``(value, display_value)`` pair a spreadsheet returns for
one cell (unformatted and formatted renderings) and produces either a cleaned
value or ``None``. Cleaners never raise on malformed input; a rejected value is
logged and reported as absent.
"""

from __future__ import annotations

import datetime
import enum
import logging
import math
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Sequence

logger = logging.getLogger(__name__)

INVALID_VALUES = frozenset({"SC", "N/A", "#VALUE!", "#DIV/0!", "FALSE", ""})

MAX_SAFE_INTEGER = 2**53 - 1
DEFAULT_MAX_ABS_VALUE = 1e15
MAX_CLEAN_NUMERIC = 1e10
MAX_P3_LENGTH = 20

SHEET_EPOCH = datetime.date(1899, 12, 30)

_LEADING_FLOAT_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_STRIP_NUMERIC_RE = re.compile(r"[$,\s]")
_CURRENCY_SHAPE_RE = re.compile(r"^\$?\d+[.,]?\d*$")
_DATE_FORMATS = ("%m/%d/%y", "%m/%d/%Y", "%m-%d-%y", "%m-%d-%Y", "%Y-%m-%d")


class NormalizationPolicy(enum.Enum):
    """Which invalid tokens a candidate resolution lets through."""

    STRICT = "strict"
    ALLOW_FALSE = "allow_false"

    @property
    def allowed_tokens(self) -> frozenset[str]:
        if self is NormalizationPolicy.ALLOW_FALSE:
            return frozenset({"FALSE"})
        return frozenset()


@dataclass(frozen=True)
class Candidate:
    raw_value: Any
    string_value: str


def stringify_cell(value: Any) -> str:
    """Render a cell value the way the sheet displays it."""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value)


def resolve_candidate_value(
    value: Any,
    display_value: Any = None,
    policy: NormalizationPolicy = NormalizationPolicy.STRICT,
) -> Candidate | None:
    """Return the first usable of ``value`` then ``display_value``."""
    allowed = policy.allowed_tokens
    for candidate in (value, display_value):
        if candidate is None:
            continue
        text = stringify_cell(candidate).strip()
        if not text:
            continue
        if text not in allowed and text in INVALID_VALUES:
            continue
        return Candidate(raw_value=candidate, string_value=text)
    return None


def is_safe_number(value: Any, max_abs_value: float = DEFAULT_MAX_ABS_VALUE) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    # ints are compared exactly; math.isfinite would overflow on huge ones
    if isinstance(value, float) and not math.isfinite(value):
        return False
    return abs(value) <= max_abs_value and abs(value) <= MAX_SAFE_INTEGER


def parse_leading_float(text: str) -> float | None:
    """Parse the numeric prefix of ``text`` ("12.5abc" -> 12.5)."""
    match = _LEADING_FLOAT_RE.match(text.strip())
    if not match:
        return None
    try:
        result = float(match.group(0))
    except ValueError:
        return None
    return result if math.isfinite(result) else None


def _quantize(value: float, places: int) -> Decimal:
    exact = Decimal(repr(value))
    try:
        return exact.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # past the decimal context precision there is no fraction left to round
        return exact


def round_half_up(value: float, places: int = 2) -> float:
    return float(_quantize(value, places))


def _format_fixed(value: float, places: int) -> str:
    return f"{_quantize(value, places):.{places}f}"


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        logger.warning("Numeric value too large to represent; dropping")
        return None
    return number if math.isfinite(number) else None


def _bounded(result: float, source: Any) -> float | None:
    if not math.isfinite(result):
        return None
    if abs(result) > MAX_CLEAN_NUMERIC:
        logger.warning("Numeric value %r exceeds %s after cleaning; dropping", source, MAX_CLEAN_NUMERIC)
        return None
    return result


def clean_numeric_value(value: Any, display_value: Any = None) -> float | None:
    """Clean a numeric cell to a float rounded to 2 decimals.

    Zero is a legitimate value and is kept.
    """
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        number = _to_number(value)
        return None if number is None else _bounded(round_half_up(number), value)

    candidate = resolve_candidate_value(value, display_value)
    if candidate is None:
        return None
    if candidate.string_value.upper() in INVALID_VALUES:
        return None
    stripped = _STRIP_NUMERIC_RE.sub("", candidate.string_value)
    parsed = parse_leading_float(stripped)
    if parsed is None:
        logger.debug("Could not parse numeric value %r", candidate.string_value)
        return None
    return _bounded(round_half_up(parsed), candidate.string_value)


def format_currency(amount: float) -> str:
    rounded = _quantize(amount, 2)
    sign = "-" if rounded < 0 else ""
    return f"{sign}${abs(rounded):,.2f}"


def clean_currency_value(value: Any, display_value: Any = None) -> str | None:
    """Clean a payout cell to a ``$#,##0.00`` string."""
    if display_value is not None:
        display = stringify_cell(display_value).strip()
        if display and ("$" in display or _CURRENCY_SHAPE_RE.match(display)):
            parsed = parse_leading_float(_STRIP_NUMERIC_RE.sub("", display))
            if parsed is not None:
                return format_currency(parsed)

    candidate = resolve_candidate_value(value, display_value)
    if candidate is None:
        return None
    number = _to_number(candidate.raw_value)
    if number is None:
        number = parse_leading_float(candidate.string_value.replace("$", "").replace(",", ""))
    if number is None:
        return None
    return format_currency(number)


def normalise_percent_string(text: str) -> str | None:
    sanitized = re.sub(r"\s+", "", text)
    parsed = parse_leading_float(sanitized.replace("%", "").replace(",", ""))
    if parsed is None:
        return sanitized or None
    return f"{_format_fixed(parsed, 2)}%"


def clean_percent_value(value: Any, display_value: Any = None) -> str | None:
    """Clean a percent cell; bare fractions (abs <= 1) are scaled by 100."""
    display_candidate = resolve_candidate_value(display_value, display_value)
    if display_candidate is not None and "%" in display_candidate.string_value:
        return normalise_percent_string(display_candidate.string_value)

    candidate = resolve_candidate_value(value, display_value)
    if candidate is None:
        return None
    number = _to_number(candidate.raw_value)
    if number is None:
        number = parse_leading_float(candidate.string_value.replace(",", "").replace("%", ""))
    if number is None:
        return None
    if abs(number) <= 1 and "%" not in candidate.string_value:
        number *= 100
    return f"{_format_fixed(number, 2)}%"


def clean_p3_value(value: Any, display_value: Any = None) -> str | None:
    candidate = resolve_candidate_value(value, display_value, NormalizationPolicy.ALLOW_FALSE)
    if candidate is None:
        return None
    if candidate.string_value == "FALSE":
        return "FALSE"
    number = _to_number(candidate.raw_value)
    if number is None:
        number = parse_leading_float(candidate.string_value.replace(",", ""))
    if number is not None:
        return _format_fixed(number, 2)
    if len(candidate.string_value) > MAX_P3_LENGTH:
        logger.warning("P3 value %r longer than %d characters; truncating", candidate.string_value, MAX_P3_LENGTH)
        return candidate.string_value[:MAX_P3_LENGTH]
    return candidate.string_value


def clean_veto_rating(value: Any, display_value: Any = None) -> str | None:
    candidate = resolve_candidate_value(value, display_value)
    if candidate is None:
        return None
    number = _to_number(candidate.raw_value)
    if number is None:
        number = parse_leading_float(candidate.string_value.replace(",", ""))
    if number is None:
        return None
    return _format_fixed(number, 1)


def build_raw_data_string(horse_number: int, display_row: Sequence[Any] | None) -> str:
    """Audit snapshot: horse number plus display tokens 1..16 of the row."""
    if not display_row:
        return str(horse_number)
    tokens = [str(horse_number)]
    for index in range(1, 17):
        cell = display_row[index] if index < len(display_row) else ""
        tokens.append(stringify_cell(cell).strip() if cell is not None else "")
    return " | ".join(tokens)


def format_date_for_api(value: datetime.date) -> str:
    return value.strftime("%m-%d-%y")


def sheet_serial_to_date(value: Any) -> datetime.date | None:
    """Convert a sheet date cell (serial number or text) to a date."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, (int, float)):
        number = _to_number(value)
        if number is None or number <= 0:
            return None
        try:
            return SHEET_EPOCH + datetime.timedelta(days=int(number))
        except OverflowError:
            return None
    text = str(value).strip()
    if not text:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    logger.debug("Unrecognised date cell %r", value)
    return None
