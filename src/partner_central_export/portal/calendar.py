from __future__ import annotations

import logging
from dataclasses import dataclass

from ..chunking import DateChunk
from ..config import ScrapeConfig
from ..errors import (
    ConfirmationMismatchError,
    DayUnavailableError,
    FormatError,
    NavigationControlMissingError,
)
from ..util.dates import (
    DateEncoding,
    DateValue,
    display_variants,
    months_between,
    normalize_date,
    parse_month_header,
)
from .session import ScrapeSession


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DateRangeConfirmation:
    confirmed_from: DateValue
    confirmed_to: DateValue


@dataclass(frozen=True)
class _Panel:
    name: str
    opener: str
    header: str
    days: str


class CalendarNavigator:
    """
    Drives the two-panel date-range picker on the reservations page.

    Month navigation uses `months_between` (positive: click "previous", negative: click "next").
    Which physical button is "previous" is configuration, because it has flipped between portal releases.
    """

    def __init__(
        self,
        session: ScrapeSession,
        *,
        ui_encoding: DateEncoding = DateEncoding.DAY_FIRST,
        prev_button_index: int = 0,
        next_button_index: int = 1,
        settle_ms: int = 200,
        open_settle_ms: int = 1_000,
        confirm_settle_ms: int = 2_000,
        panel_timeout_ms: int = 5_000,
    ) -> None:
        self.session = session
        self.ui_encoding = ui_encoding
        self.prev_button_index = prev_button_index
        self.next_button_index = next_button_index
        self.settle_ms = settle_ms
        self.open_settle_ms = open_settle_ms
        self.confirm_settle_ms = confirm_settle_ms
        self.panel_timeout_ms = panel_timeout_ms

        s = session.selectors
        self._start_panel = _Panel("start", s.from_input, s.first_month_header, s.first_month_days)
        self._end_panel = _Panel("end", s.to_input, s.second_month_header, s.second_month_days)

    @classmethod
    def from_config(cls, session: ScrapeSession, cfg: ScrapeConfig) -> "CalendarNavigator":
        return cls(
            session,
            ui_encoding=cfg.ui_date_encoding,
            prev_button_index=cfg.calendar_prev_button_index,
            next_button_index=cfg.calendar_next_button_index,
            settle_ms=cfg.calendar_settle_ms,
            open_settle_ms=cfg.calendar_open_settle_ms,
            confirm_settle_ms=cfg.calendar_confirm_settle_ms,
        )

    def set_range(self, chunk: DateChunk) -> DateRangeConfirmation:
        expected = (
            display_variants(chunk.start, self.ui_encoding)[0],
            display_variants(chunk.end, self.ui_encoding)[0],
        )
        logger.info("Setting date range %s -> %s (portal format %s - %s)", chunk.start, chunk.end, *expected)
        if self.session.driver.count(self._start_panel.opener) == 0:
            raise NavigationControlMissingError("Date range inputs not found on the reservations page")

        self._select(self._start_panel, chunk.start, by_text=False)
        self._select(self._end_panel, chunk.end, by_text=False)
        self._confirm()

        actual = self._read_back()
        if self._matches(actual, chunk):
            return self._confirmation(actual)

        # One corrective pass: reopen and pick the days by their visible text instead of grid position.
        logger.warning(
            "Date picker shows %s - %s, expected %s - %s; retrying selection once by day text.",
            actual[0],
            actual[1],
            *expected,
        )
        self.session.save_debug("calendar_mismatch")
        self._select(self._start_panel, chunk.start, by_text=True)
        self._select(self._end_panel, chunk.end, by_text=True)
        self._confirm()

        actual = self._read_back()
        if self._matches(actual, chunk):
            logger.info("Date range confirmed after corrective pass.")
            return self._confirmation(actual)

        self.session.save_debug("calendar_mismatch_persistent")
        raise ConfirmationMismatchError(
            f"Date range not applied: expected {expected[0]} - {expected[1]}, got {actual[0]} - {actual[1]}",
            expected=expected,
            actual=actual,
        )

    def _select(self, panel: _Panel, target: DateValue, *, by_text: bool) -> None:
        d = self.session.driver
        d.click(panel.opener)
        d.pause(self.open_settle_ms)
        if not d.wait_for(panel.header, timeout_ms=self.panel_timeout_ms):
            raise NavigationControlMissingError(f"Calendar {panel.name} panel did not open")

        month_name, year = parse_month_header(d.read_text(panel.header))
        delta = months_between(month_name, year, target.month_name, target.year)
        logger.debug(
            "Calendar %s panel shows %s %s; target %s %s; delta=%d",
            panel.name,
            month_name,
            year,
            target.month_name,
            target.year,
            delta,
        )
        self._navigate(delta)

        if delta:
            try:
                shown_month, shown_year = parse_month_header(d.read_text(panel.header))
            except FormatError:
                shown_month, shown_year = "", 0
            if (shown_month, shown_year) != (target.month_name, target.year):
                logger.warning(
                    "Calendar %s panel shows %s %s after navigating (wanted %s %s). "
                    "If it moved the wrong way, swap scrape.calendar_prev_button_index/next_button_index.",
                    panel.name,
                    shown_month,
                    shown_year,
                    target.month_name,
                    target.year,
                )

        self._click_day(panel, target, by_text=by_text)

    def _navigate(self, delta: int) -> None:
        if delta == 0:
            return
        d = self.session.driver
        nav = self.session.selectors.calendar_nav_buttons
        if d.count(nav) <= max(self.prev_button_index, self.next_button_index):
            raise NavigationControlMissingError("Calendar previous/next controls not found")

        button = self.prev_button_index if delta > 0 else self.next_button_index
        for _ in range(abs(delta)):
            d.click(nav, index=button)
            d.pause(self.settle_ms)

    def _click_day(self, panel: _Panel, target: DateValue, *, by_text: bool) -> None:
        d = self.session.driver
        if by_text:
            idx = d.index_of_text(panel.days, str(target.day), exact=True)
            if idx is None:
                raise DayUnavailableError(f"Day {target.day} not rendered in the {panel.name} panel")
        else:
            idx = target.day - 1
            if idx >= d.count(panel.days):
                raise DayUnavailableError(f"Day {target.day} not rendered in the {panel.name} panel")

        if not d.is_enabled(panel.days, index=idx):
            if by_text:
                raise DayUnavailableError(f"Day {target} is disabled in the {panel.name} panel")
            # Blocked date: leave the selection alone; the readback decides what happens next.
            logger.warning("Day %s is disabled in the %s panel; not clicking.", target, panel.name)
            return
        d.click(panel.days, index=idx)

    def _confirm(self) -> None:
        d = self.session.driver
        done = self.session.selectors.calendar_done_button
        if d.count(done) == 0:
            raise NavigationControlMissingError("Calendar Done button not found")
        d.click(done)
        d.pause(self.confirm_settle_ms)

    def _read_back(self) -> tuple[str, str]:
        d = self.session.driver
        s = self.session.selectors
        return d.read_value(s.from_input), d.read_value(s.to_input)

    def _matches(self, actual: tuple[str, str], chunk: DateChunk) -> bool:
        return actual[0] in display_variants(chunk.start, self.ui_encoding) and actual[1] in display_variants(
            chunk.end, self.ui_encoding
        )

    def _confirmation(self, actual: tuple[str, str]) -> DateRangeConfirmation:
        return DateRangeConfirmation(
            confirmed_from=normalize_date(actual[0], self.ui_encoding),
            confirmed_to=normalize_date(actual[1], self.ui_encoding),
        )
