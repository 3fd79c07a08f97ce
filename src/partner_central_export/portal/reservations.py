from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Callable, Optional

from ..config import ScrapeConfig
from ..errors import (
    DialogTimeoutError,
    ExtractionRetryExhaustedError,
    NavigationControlMissingError,
    PageProcessingError,
)
from ..models import (
    NOT_AVAILABLE,
    Adjustment,
    CardDetails,
    PaymentDetails,
    PayoutSummary,
    RecordSet,
    ReservationRecord,
    ReservationStatus,
)
from ..util.money import money_after
from ..util.retry import retry_fixed
from .driver import DriverError
from .session import ScrapeSession


logger = logging.getLogger(__name__)

_TOTAL_RESULTS_RE = re.compile(r"of\s+([\d,]+)\s+Results", re.I)
_REASON_RE = re.compile(r"Reason\s*:?\s*(.{1,200})", re.I | re.S)
# Labels that can follow the reason text when the dialog is read as one collapsed string.
_REASON_STOP_RE = re.compile(
    r"\s{2,}|[\r\n]|Total\s+guest\s+payment|Expedia\s+compensation|Total\s+payout|Amount\s+to\s+(?:charge|refund)",
    re.I,
)

# A status line or a statement about this booking; cancellation-policy wording does not count.
_CANCELLED_RE = re.compile(
    r"\bstatus\s*:?\s*cancel+ed\b|\b(?:reservation|booking)\s+(?:has\s+been\s+|was\s+|is\s+)cancel+ed\b",
    re.I,
)

_ROW_FIELDS: tuple[tuple[str, str], ...] = (
    ("guest_name", "row_guest_name"),
    ("reservation_id", "row_reservation_id"),
    ("confirmation_code", "row_confirmation_code"),
    ("check_in_date", "row_check_in"),
    ("check_out_date", "row_check_out"),
    ("room_type", "row_room_type"),
    ("booking_amount", "row_booking_amount"),
    ("booked_date", "row_booked_date"),
)


class ScrapePhase(str, Enum):
    IDLE = "idle"
    FILTERS_APPLIED = "filters_applied"
    STABILIZING = "stabilizing"
    PAGINATING = "paginating"
    DONE = "done"


def parse_total_results(text: str) -> Optional[int]:
    m = _TOTAL_RESULTS_RE.search(text or "")
    return int(m.group(1).replace(",", "")) if m else None


def parse_payout_summary(text: str) -> Optional[PayoutSummary]:
    total_guest_payment = money_after(r"Total\s+guest\s+payment", text)
    expedia_compensation = money_after(r"Expedia\s+compensation", text)
    total_payout = money_after(r"Total\s+payout", text)
    if not (total_guest_payment or total_payout):
        return None
    return PayoutSummary(
        total_guest_payment=total_guest_payment or "",
        expedia_compensation=expedia_compensation or "",
        total_payout=total_payout or "",
    )


def parse_adjustment(text: str) -> Optional[Adjustment]:
    """Optional "(remaining) amount to charge" / "amount to refund" line plus its reason."""
    charge = money_after(r"amount\s+to\s+charge", text)
    refund = money_after(r"amount\s+to\s+refund", text)
    if charge:
        kind, amount = "charge", charge
    elif refund:
        kind, amount = "refund", refund
    else:
        return None

    reason = ""
    m = _REASON_RE.search(text or "")
    if m:
        reason = _REASON_STOP_RE.split(m.group(1), maxsplit=1)[0].strip()
    return Adjustment(kind=kind, amount=amount, reason=reason)


class ReservationPageScraper:
    """
    Works one already-loaded reservations window: filters -> stable rows -> every page -> records.
    """

    def __init__(self, session: ScrapeSession, *, cfg: Optional[ScrapeConfig] = None) -> None:
        self.session = session
        self.cfg = cfg or ScrapeConfig()
        self.phase = ScrapePhase.IDLE

    def apply_filters(self) -> None:
        d = self.session.driver
        s = self.session.selectors

        if not self._toggle(s.date_type_option, s.date_type_input, self.cfg.date_type_filter):
            raise NavigationControlMissingError(f"Date type filter {self.cfg.date_type_filter!r} not found")
        for label in self.cfg.payment_filters:
            if not self._toggle(s.payment_filter_option, s.payment_filter_input, label):
                logger.warning("Payment filter %r not found; continuing without it.", label)

        d.pause(500)
        self.phase = ScrapePhase.FILTERS_APPLIED

    def _toggle(self, option: str, input_selector: str, label: str) -> bool:
        d = self.session.driver
        idx = d.index_of_text(option, label, text_selector=self.session.selectors.filter_label, exact=True)
        if idx is None:
            return False
        if d.is_checked(input_selector, within=option, index=idx):
            logger.debug("Filter %r already selected", label)
            return True
        d.click(self.session.selectors.filter_label, within=option, index=idx)
        logger.info("Selected filter %r", label)
        return True

    def submit(self) -> None:
        d = self.session.driver
        s = self.session.selectors
        if d.count(s.apply_button) == 0:
            raise NavigationControlMissingError("Apply button not found")
        d.click(s.apply_button)

        # The loader can be too quick to catch; only its disappearance matters.
        if d.wait_for(s.table_loader, state="visible", timeout_ms=self.cfg.apply_loader_appear_timeout_ms):
            if not d.wait_for(s.table_loader, state="hidden", timeout_ms=self.cfg.apply_loader_timeout_ms):
                raise PageProcessingError("Results table kept loading after Apply")
        self.session.step("filters_submitted")

    def wait_for_stable_rows(self) -> int:
        """
        Poll the rendered row count until two consecutive polls agree on a non-zero count.

        Returns the row count; 0 after all polls means the window has no reservations.
        """
        self.phase = ScrapePhase.STABILIZING
        d = self.session.driver
        rows = self.session.selectors.result_rows

        previous = -1
        current = 0
        for poll in range(1, self.cfg.stabilize_max_polls + 1):
            current = d.count(rows)
            if current > 0 and current == previous:
                logger.info("Row count stable at %d after %d polls", current, poll)
                return current
            previous = current
            if poll < self.cfg.stabilize_max_polls:
                d.pause(self.cfg.stabilize_interval_ms)

        if current == 0:
            logger.info("No rows after %d polls", self.cfg.stabilize_max_polls)
        else:
            logger.warning("Row count still changing after %d polls; continuing with %d rows", poll, current)
        return current

    def set_page_size(self) -> None:
        d = self.session.driver
        s = self.session.selectors
        if d.count(s.page_size_select) == 0:
            logger.debug("No page size selector; keeping the default page size")
            return
        d.select_option(s.page_size_select, self.cfg.page_size)
        d.pause(self.cfg.page_settle_ms)
        if not d.wait_for(s.result_rows, timeout_ms=self.cfg.rows_timeout_ms):
            raise PageProcessingError(f"Rows did not reload after setting page size {self.cfg.page_size}")

    def total_results(self) -> Optional[int]:
        return parse_total_results(self.session.driver.read_text(self.session.selectors.results_summary))

    def scrape(
        self, record_set: RecordSet, restore: Optional[Callable[[], None]] = None
    ) -> list[ReservationRecord]:
        """
        Scrape every page of the current window into `record_set` and return the records it accepted.

        A page-level failure reloads the page, calls `restore` (re-apply filters and dates) and starts
        again from page 1; rows already in `record_set` are skipped without opening their dialogs.
        """
        accepted: list[ReservationRecord] = []
        if self.wait_for_stable_rows() == 0:
            self.phase = ScrapePhase.DONE
            return accepted

        self.phase = ScrapePhase.PAGINATING
        reloads = 0
        page = 1
        sized = False
        while True:
            try:
                if not sized:
                    self.set_page_size()
                    total = self.total_results()
                    if total is not None:
                        logger.info("Total reservations to fetch: %d", total)
                    sized = True
                self._scrape_page(page, record_set, accepted)
                if page >= self.cfg.max_pages:
                    logger.warning("Stopping at max_pages=%d", self.cfg.max_pages)
                    break
                if not self._has_next_page():
                    break
                self.session.driver.click(self.session.selectors.next_page_button)
                self.session.driver.pause(self.cfg.page_settle_ms)
                page += 1
            except (DriverError, PageProcessingError) as e:
                reloads += 1
                self.session.save_debug(f"page_error_{page}")
                if reloads > self.cfg.max_page_reloads:
                    raise PageProcessingError(
                        f"Giving up on this window after {self.cfg.max_page_reloads} page reloads: {e}"
                    ) from e
                logger.warning("Error processing page %d (%s); reloading (%d/%d)", page, e, reloads,
                               self.cfg.max_page_reloads)
                if not self._recover(restore):
                    break
                page = 1
                sized = False

        self.phase = ScrapePhase.DONE
        logger.info("Window done: %d new records (%d total)", len(accepted), len(record_set))
        return accepted

    def _recover(self, restore: Optional[Callable[[], None]]) -> bool:
        d = self.session.driver
        d.reload()
        d.pause(self.cfg.page_settle_ms)
        if restore is not None:
            restore()
        if self.wait_for_stable_rows() == 0:
            logger.info("Window is empty after reload")
            return False
        self.phase = ScrapePhase.PAGINATING
        return True

    def _scrape_page(self, page: int, record_set: RecordSet, accepted: list[ReservationRecord]) -> None:
        d = self.session.driver
        s = self.session.selectors
        logger.info("Processing page %d...", page)
        if not d.wait_for(s.result_rows, timeout_ms=self.cfg.rows_timeout_ms):
            raise PageProcessingError(f"No rows rendered on page {page}")
        d.pause(self.cfg.page_settle_ms)

        for i in range(d.count(s.result_rows)):
            record = self._process_row(i, record_set)
            if record is not None and record_set.add(record):
                accepted.append(record)
        logger.info("Processed page %d (%d records so far)", page, len(record_set))

    def _read_summary(self, row: int) -> dict[str, str]:
        d = self.session.driver
        s = self.session.selectors
        return {
            field: d.read_text(getattr(s, selector), within=s.result_rows, index=row)
            for field, selector in _ROW_FIELDS
        }

    def _process_row(self, row: int, record_set: RecordSet) -> Optional[ReservationRecord]:
        summary = self._read_summary(row)
        reservation_id = summary["reservation_id"]
        if not reservation_id:
            logger.debug("Row %d has no reservation id; skipping", row)
            return None
        if reservation_id in record_set:
            logger.info("Skipping duplicate reservation: %s", reservation_id)
            return None

        try:
            self._open_detail(row)
        except DialogTimeoutError as e:
            logger.warning("Skipping reservation %s: %s", reservation_id, e)
            self._close_detail()
            return None

        try:
            if self._is_cancelled():
                logger.info("Reservation %s is cancelled", reservation_id)
                return ReservationRecord(**summary, status=ReservationStatus.CANCELLED)
            payment, adjustment = self._extract_payment(reservation_id)
            return ReservationRecord(**summary, payment_details=payment, adjustment=adjustment)
        finally:
            self._close_detail()

    def _open_detail(self, row: int) -> None:
        d = self.session.driver
        s = self.session.selectors
        try:
            d.click(s.row_guest_button, within=s.result_rows, index=row)
        except DriverError as e:
            raise DialogTimeoutError(f"Could not open the detail dialog for row {row}") from e
        if not d.wait_for(s.dialog_content, timeout_ms=self.cfg.detail_timeout_ms):
            raise DialogTimeoutError(f"Detail dialog did not appear within {self.cfg.detail_timeout_ms}ms")
        d.pause(self.cfg.detail_settle_ms)

        # Payment details render lazily at the bottom of the dialog.
        try:
            d.scroll_to_bottom(s.dialog_content)
        except DriverError:
            logger.debug("Could not scroll the detail dialog.", exc_info=True)
        d.pause(self.cfg.detail_settle_ms)

    def _is_cancelled(self) -> bool:
        return bool(_CANCELLED_RE.search(self.session.driver.read_text(self.session.selectors.dialog_content)))

    def _read_payment(
        self, partial: list[CardDetails]
    ) -> Optional[tuple[PaymentDetails, Optional[Adjustment]]]:
        d = self.session.driver
        s = self.session.selectors
        text = d.read_text(s.dialog_content)
        adjustment = parse_adjustment(text)

        number = d.read_text(s.card_number)
        if number:
            card = CardDetails(
                number=number,
                expiry=d.read_text(s.card_detail_cells, index=0),
                cvv=d.read_text(s.card_detail_cells, index=1),
            )
            if card.expiry and card.cvv:
                return card, adjustment
            # Expiry and CVV cells can render after the card number.
            partial[:] = [card]
            return None

        payout = parse_payout_summary(text)
        if payout is not None:
            return payout, adjustment
        return None

    def _extract_payment(self, reservation_id: str) -> tuple[PaymentDetails, Optional[Adjustment]]:
        partial: list[CardDetails] = []
        try:
            return retry_fixed(
                lambda: self._read_payment(partial),
                attempts=self.cfg.detail_attempts,
                delay_ms=self.cfg.detail_backoff_ms,
                retry_on=(DriverError,),
                accept=lambda r: r is not None,
                pause=self.session.driver.pause,
                error_cls=ExtractionRetryExhaustedError,
                label=f"Payment details for {reservation_id}",
            )
        except ExtractionRetryExhaustedError as e:
            if partial:
                card = partial[0]
                logger.warning("%s; recording the card with missing fields as N/A", e)
                return (
                    card.model_copy(update={"expiry": card.expiry or NOT_AVAILABLE, "cvv": card.cvv or NOT_AVAILABLE}),
                    None,
                )
            logger.warning("%s; recording card fields as N/A", e)
            return CardDetails.placeholder(), None

    def _close_detail(self) -> None:
        d = self.session.driver
        s = self.session.selectors
        try:
            if d.count(s.dialog_close_button) == 0:
                return
            d.click(s.dialog_close_button)
            d.pause(self.cfg.dialog_close_settle_ms)
        except DriverError:
            logger.warning("Could not close dialog normally", exc_info=True)

    def _has_next_page(self) -> bool:
        d = self.session.driver
        s = self.session.selectors
        return d.count(s.next_page_button) > 0 and d.is_enabled(s.next_page_button)
