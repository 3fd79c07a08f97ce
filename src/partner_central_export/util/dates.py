from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from dateutil import parser as date_parser

from ..errors import FormatError


class DateEncoding(str, Enum):
    MONTH_FIRST = "month_first"  # 01/05/2024 -> January 5th (request format)
    DAY_FIRST = "day_first"  # 05/01/2024 -> January 5th (what the portal's inputs render)


MONTHS: dict[str, int] = {
    "january": 1,
    "february": 2,
    "march": 3,
    "april": 4,
    "may": 5,
    "june": 6,
    "july": 7,
    "august": 8,
    "september": 9,
    "october": 10,
    "november": 11,
    "december": 12,
}
MONTH_NAMES: tuple[str, ...] = tuple(name.capitalize() for name in MONTHS)

_NUMERIC_RE = re.compile(r"^\d+$")


@dataclass(frozen=True)
class DateValue:
    """
    A calendar date that remembers which slash encoding it was parsed from.

    Equality only looks at the calendar date, so `05/01/2024` (day-first) == `01/05/2024` (month-first).
    """

    value: date
    encoding: DateEncoding = field(default=DateEncoding.MONTH_FIRST, compare=False)

    @property
    def day(self) -> int:
        return self.value.day

    @property
    def month(self) -> int:
        return self.value.month

    @property
    def year(self) -> int:
        return self.value.year

    @property
    def month_name(self) -> str:
        return MONTH_NAMES[self.value.month - 1]

    def __str__(self) -> str:
        return to_display_string(self, self.encoding, zero_padded=True)


def month_index(name: str) -> int:
    key = (name or "").strip().lower()
    if key in MONTHS:
        return MONTHS[key]
    # Three-letter forms ("Jan", "Sept" is tolerated too).
    for full, idx in MONTHS.items():
        if len(key) >= 3 and full.startswith(key):
            return idx
    raise FormatError(f"Unknown month name: {name!r}")


def months_between(current_month_name: str, current_year: int, target_month_name: str, target_year: int) -> int:
    """
    Signed month distance from the month a calendar currently shows to the target month.

    Positive: the target is earlier (click "previous" that many times).
    Negative: the target is later (click "next").
    """
    current = int(current_year) * 12 + month_index(current_month_name)
    target = int(target_year) * 12 + month_index(target_month_name)
    return current - target


def normalize_date(raw: str, assumed_encoding: DateEncoding) -> DateValue:
    if raw is None:
        raise FormatError("normalize_date: value is None")
    s = str(raw).strip()
    parts = s.split("/")
    if len(parts) != 3 or not all(_NUMERIC_RE.match(p.strip()) for p in parts):
        raise FormatError(f"Expected a date like 'NN/NN/YYYY', got {raw!r}")

    a, b, y = (int(p) for p in parts)
    if assumed_encoding == DateEncoding.MONTH_FIRST:
        month, day = a, b
    else:
        day, month = a, b

    if not 1 <= month <= 12:
        raise FormatError(f"Month out of range in {raw!r} ({assumed_encoding.value})")
    if not 1 <= day <= 31:
        raise FormatError(f"Day out of range in {raw!r} ({assumed_encoding.value})")
    if len(parts[2].strip()) != 4:
        raise FormatError(f"Expected a 4-digit year in {raw!r}")

    try:
        value = date(y, month, day)
    except ValueError as e:
        raise FormatError(f"Not a calendar date: {raw!r} ({assumed_encoding.value}): {e}") from e
    return DateValue(value=value, encoding=assumed_encoding)


def to_display_string(d: DateValue, encoding: DateEncoding, zero_padded: bool = True) -> str:
    if zero_padded:
        day, month = f"{d.day:02d}", f"{d.month:02d}"
    else:
        day, month = str(d.day), str(d.month)
    if encoding == DateEncoding.MONTH_FIRST:
        return f"{month}/{day}/{d.year:04d}"
    return f"{day}/{month}/{d.year:04d}"


def display_variants(d: DateValue, encoding: DateEncoding) -> tuple[str, str]:
    """The portal has been seen rendering both `05/01/2024` and `5/1/2024`."""
    return (to_display_string(d, encoding, zero_padded=True), to_display_string(d, encoding, zero_padded=False))


def parse_month_header(text: str) -> tuple[str, int]:
    """
    Parse a calendar panel header like "January 2024" into ("January", 2024).
    """
    s = (text or "").strip()
    if not s:
        raise FormatError("Calendar header is empty")
    try:
        dt = date_parser.parse(s, default=datetime(1900, 1, 1))
    except (ValueError, OverflowError) as e:
        raise FormatError(f"Could not parse calendar header {text!r}") from e
    if dt.year == 1900:
        raise FormatError(f"Calendar header {text!r} has no year")
    return MONTH_NAMES[dt.month - 1], dt.year
