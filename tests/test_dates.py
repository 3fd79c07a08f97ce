from __future__ import annotations

from datetime import date

import pytest

from partner_central_export.errors import FormatError
from partner_central_export.util.dates import (
    DateEncoding,
    DateValue,
    display_variants,
    month_index,
    months_between,
    normalize_date,
    parse_month_header,
    to_display_string,
)


def test_normalize_date_month_first_and_day_first() -> None:
    assert normalize_date("01/05/2024", DateEncoding.MONTH_FIRST).value == date(2024, 1, 5)
    assert normalize_date("01/05/2024", DateEncoding.DAY_FIRST).value == date(2024, 5, 1)
    assert normalize_date(" 1/5/2024 ", DateEncoding.MONTH_FIRST).value == date(2024, 1, 5)


def test_same_day_from_either_encoding_is_equal() -> None:
    a = normalize_date("01/05/2024", DateEncoding.MONTH_FIRST)
    b = normalize_date("05/01/2024", DateEncoding.DAY_FIRST)
    assert a == b
    assert hash(a) == hash(b)
    assert a.encoding != b.encoding


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "2024-01-05",
        "01/05",
        "01/05/2024/1",
        "aa/05/2024",
        "13/05/2024",  # month 13 when month-first
        "01/32/2024",
        "02/30/2024",  # not a calendar date
        "01/05/24",  # 2-digit year
    ],
)
def test_normalize_date_rejects_malformed(raw: str) -> None:
    with pytest.raises(FormatError):
        normalize_date(raw, DateEncoding.MONTH_FIRST)


def test_format_error_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        normalize_date("nope", DateEncoding.DAY_FIRST)


def test_leap_day_is_accepted() -> None:
    assert normalize_date("29/02/2024", DateEncoding.DAY_FIRST).value == date(2024, 2, 29)


def test_display_round_trip() -> None:
    d = DateValue(date(2024, 3, 7))
    for enc in DateEncoding:
        for padded in (True, False):
            assert normalize_date(to_display_string(d, enc, padded), enc) == d


def test_display_strings() -> None:
    d = DateValue(date(2024, 1, 5))
    assert to_display_string(d, DateEncoding.DAY_FIRST) == "05/01/2024"
    assert to_display_string(d, DateEncoding.MONTH_FIRST, zero_padded=False) == "1/5/2024"
    assert display_variants(d, DateEncoding.DAY_FIRST) == ("05/01/2024", "5/1/2024")
    assert str(normalize_date("1/5/2024", DateEncoding.MONTH_FIRST)) == "01/05/2024"


def test_months_between_sign_convention() -> None:
    # Calendar shows March, target is January: two clicks on "previous".
    assert months_between("March", 2024, "January", 2024) == 2
    # Calendar shows December 2023, target is February 2024: two clicks on "next".
    assert months_between("December", 2023, "February", 2024) == -2
    assert months_between("May", 2024, "May", 2024) == 0


@pytest.mark.parametrize(
    "a, b",
    [
        (("January", 2024), ("March", 2025)),
        (("December", 2023), ("January", 2024)),
        (("July", 2020), ("July", 2020)),
    ],
)
def test_months_between_is_antisymmetric(a: tuple[str, int], b: tuple[str, int]) -> None:
    assert months_between(*a, *b) == -months_between(*b, *a)


def test_month_index_accepts_abbreviations() -> None:
    assert month_index("January") == 1
    assert month_index("sep") == 9
    assert month_index("Sept") == 9
    with pytest.raises(FormatError):
        month_index("Ja")
    with pytest.raises(FormatError):
        month_index("Smarch")


def test_parse_month_header() -> None:
    assert parse_month_header("January 2024") == ("January", 2024)
    assert parse_month_header("  Dec 2023 ") == ("December", 2023)


@pytest.mark.parametrize("text", ["", "   ", "January", "not a month"])
def test_parse_month_header_rejects_garbage(text: str) -> None:
    with pytest.raises(FormatError):
        parse_month_header(text)
