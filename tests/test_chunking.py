from __future__ import annotations

from datetime import date, timedelta

import pytest

from partner_central_export.chunking import chunk_date_range
from partner_central_export.errors import InvalidRangeError
from partner_central_export.util.dates import DateEncoding, DateValue, normalize_date


def _mf(raw: str) -> DateValue:
    return normalize_date(raw, DateEncoding.MONTH_FIRST)


def test_two_day_range_is_one_chunk() -> None:
    chunks = chunk_date_range(_mf("01/05/2024"), _mf("01/06/2024"), span_days=2)
    assert len(chunks) == 1
    assert chunks[0].start == _mf("01/05/2024")
    assert chunks[0].end == _mf("01/06/2024")
    assert chunks[0].days == 2


def test_single_day_range() -> None:
    chunks = chunk_date_range(_mf("03/10/2024"), _mf("03/10/2024"))
    assert len(chunks) == 1
    assert chunks[0].start == chunks[0].end


def test_last_chunk_is_truncated() -> None:
    chunks = chunk_date_range(_mf("01/01/2024"), _mf("01/05/2024"), span_days=2)
    assert [(c.start.day, c.end.day) for c in chunks] == [(1, 2), (3, 4), (5, 5)]


def test_chunks_cross_month_and_year_boundaries() -> None:
    chunks = chunk_date_range(_mf("12/30/2023"), _mf("01/02/2024"), span_days=3)
    assert [(c.start.value, c.end.value) for c in chunks] == [
        (date(2023, 12, 30), date(2024, 1, 1)),
        (date(2024, 1, 2), date(2024, 1, 2)),
    ]


@pytest.mark.parametrize("span", [1, 2, 3, 7, 31])
def test_chunks_partition_the_range(span: int) -> None:
    start, end = _mf("02/20/2024"), _mf("04/03/2024")
    chunks = chunk_date_range(start, end, span_days=span)

    assert chunks[0].start == start
    assert chunks[-1].end == end
    for c in chunks:
        assert c.start.value <= c.end.value
        assert c.days <= span
    for prev, nxt in zip(chunks, chunks[1:]):
        assert nxt.start.value == prev.end.value + timedelta(days=1)

    covered = sum(c.days for c in chunks)
    assert covered == (end.value - start.value).days + 1


def test_chunks_keep_input_encoding() -> None:
    chunks = chunk_date_range(_mf("01/01/2024"), _mf("01/04/2024"))
    assert all(c.start.encoding == DateEncoding.MONTH_FIRST for c in chunks)
    assert str(chunks[1]) == "01/03/2024..01/04/2024"


def test_end_before_start_is_rejected() -> None:
    with pytest.raises(InvalidRangeError):
        chunk_date_range(_mf("01/06/2024"), _mf("01/05/2024"))


def test_span_must_be_positive() -> None:
    with pytest.raises(ValueError):
        chunk_date_range(_mf("01/05/2024"), _mf("01/06/2024"), span_days=0)
