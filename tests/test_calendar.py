from __future__ import annotations

from datetime import date

import pytest

from fake_portal import FakeCalendar, FakeDriver
from partner_central_export.chunking import DateChunk
from partner_central_export.errors import (
    ConfirmationMismatchError,
    DayUnavailableError,
    NavigationControlMissingError,
)
from partner_central_export.portal.calendar import CalendarNavigator
from partner_central_export.portal.session import ScrapeSession
from partner_central_export.util.dates import DateEncoding, normalize_date


def _chunk(start: str, end: str) -> DateChunk:
    return DateChunk(normalize_date(start, DateEncoding.MONTH_FIRST), normalize_date(end, DateEncoding.MONTH_FIRST))


def _navigator(driver: FakeDriver, **kwargs) -> CalendarNavigator:
    return CalendarNavigator(ScrapeSession(driver), **kwargs)


def test_sets_range_in_the_visible_month() -> None:
    d = FakeDriver()
    cal = FakeCalendar(d, shows=(2024, 1))

    conf = _navigator(d).set_range(_chunk("01/05/2024", "01/06/2024"))

    assert cal.from_value == "05/01/2024"
    assert cal.to_value == "06/01/2024"
    assert conf.confirmed_from.value == date(2024, 1, 5)
    assert conf.confirmed_to.value == date(2024, 1, 6)
    assert cal.confirms == 1


def test_navigates_backwards_to_an_earlier_month() -> None:
    d = FakeDriver()
    cal = FakeCalendar(d, shows=(2024, 4))

    _navigator(d).set_range(_chunk("01/30/2024", "01/31/2024"))

    assert cal.from_value == "30/01/2024"
    assert cal.to_value == "31/01/2024"
    assert cal.nav_log[:3] == ["prev", "prev", "prev"]
    assert "next" not in cal.nav_log


def test_navigates_forward_across_a_year_boundary() -> None:
    d = FakeDriver()
    cal = FakeCalendar(d, shows=(2023, 11))

    _navigator(d).set_range(_chunk("01/31/2024", "02/01/2024"))

    assert (cal.from_value, cal.to_value) == ("31/01/2024", "01/02/2024")
    assert cal.nav_log[:2] == ["next", "next"]


def test_button_mapping_is_configurable() -> None:
    d = FakeDriver()
    cal = FakeCalendar(d, shows=(2024, 3), prev_index=1, next_index=0)

    _navigator(d, prev_button_index=1, next_button_index=0).set_range(_chunk("01/10/2024", "01/11/2024"))

    assert (cal.from_value, cal.to_value) == ("10/01/2024", "11/01/2024")


def test_month_first_portal_rendering() -> None:
    d = FakeDriver()
    cal = FakeCalendar(d, shows=(2024, 1), ui_encoding=DateEncoding.MONTH_FIRST)

    conf = _navigator(d, ui_encoding=DateEncoding.MONTH_FIRST).set_range(_chunk("01/05/2024", "01/06/2024"))

    assert cal.from_value == "01/05/2024"
    assert conf.confirmed_from.value == date(2024, 1, 5)


def test_mismatch_fixed_by_corrective_pass() -> None:
    d = FakeDriver()
    cal = FakeCalendar(d, shows=(2024, 1), mismatched_confirms=1)

    conf = _navigator(d).set_range(_chunk("01/05/2024", "01/06/2024"))

    assert cal.confirms == 2
    assert conf.confirmed_from.value == date(2024, 1, 5)
    assert conf.confirmed_to.value == date(2024, 1, 6)
    assert "calendar_mismatch" in d.snapshots


def test_persistent_mismatch_raises() -> None:
    d = FakeDriver()
    cal = FakeCalendar(d, shows=(2024, 1), mismatched_confirms=5)

    with pytest.raises(ConfirmationMismatchError) as ei:
        _navigator(d).set_range(_chunk("01/05/2024", "01/06/2024"))

    assert cal.confirms == 2
    assert ei.value.expected == ("05/01/2024", "06/01/2024")
    assert ei.value.actual == ("06/01/2024", "06/01/2024")
    assert "calendar_mismatch_persistent" in d.snapshots


def test_missing_nav_controls() -> None:
    d = FakeDriver()
    FakeCalendar(d, shows=(2024, 3), with_nav=False)

    with pytest.raises(NavigationControlMissingError):
        _navigator(d).set_range(_chunk("01/05/2024", "01/06/2024"))


def test_missing_date_inputs() -> None:
    with pytest.raises(NavigationControlMissingError):
        _navigator(FakeDriver()).set_range(_chunk("01/05/2024", "01/06/2024"))


def test_disabled_day_fails_after_corrective_pass() -> None:
    d = FakeDriver()
    FakeCalendar(d, shows=(2024, 1), disabled=[date(2024, 1, 5)])

    with pytest.raises(DayUnavailableError):
        _navigator(d).set_range(_chunk("01/05/2024", "01/06/2024"))


def test_same_day_chunk() -> None:
    d = FakeDriver()
    cal = FakeCalendar(d, shows=(2024, 2))

    _navigator(d).set_range(_chunk("02/29/2024", "02/29/2024"))

    assert (cal.from_value, cal.to_value) == ("29/02/2024", "29/02/2024")
