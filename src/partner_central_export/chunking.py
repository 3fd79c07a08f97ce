from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from .errors import InvalidRangeError
from .util.dates import DateValue


DEFAULT_SPAN_DAYS = 2


@dataclass(frozen=True)
class DateChunk:
    start: DateValue
    end: DateValue

    @property
    def days(self) -> int:
        return (self.end.value - self.start.value).days + 1

    def __str__(self) -> str:
        return f"{self.start}..{self.end}"


def chunk_date_range(start: DateValue, end: DateValue, span_days: int = DEFAULT_SPAN_DAYS) -> list[DateChunk]:
    """
    Split the inclusive range [start, end] into consecutive chunks of at most `span_days` days.

    Every calendar day lands in exactly one chunk; the next chunk starts the day after the previous one ends.
    """
    if span_days < 1:
        raise ValueError(f"span_days must be >= 1 (got {span_days})")
    if end.value < start.value:
        raise InvalidRangeError(f"End date {end} is before start date {start}")

    chunks: list[DateChunk] = []
    cur = start.value
    while cur <= end.value:
        chunk_end = min(cur + timedelta(days=span_days - 1), end.value)
        chunks.append(
            DateChunk(
                start=DateValue(cur, start.encoding),
                end=DateValue(chunk_end, end.encoding),
            )
        )
        cur = chunk_end + timedelta(days=1)
    return chunks
