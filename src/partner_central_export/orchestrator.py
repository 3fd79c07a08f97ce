from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from .chunking import DateChunk
from .errors import ConfirmationMismatchError, PageProcessingError, ScrapeError, SessionStateError
from .models import ChunkFailure, RecordSet, ReservationRecord
from .portal.calendar import CalendarNavigator
from .portal.driver import DriverError
from .portal.reservations import ReservationPageScraper
from .portal.session import ScrapeSession, SessionState
from .util.retry import retry_fixed


logger = logging.getLogger(__name__)


@dataclass
class OrchestrationResult:
    records: list[ReservationRecord] = field(default_factory=list)
    failed_chunks: list[ChunkFailure] = field(default_factory=list)
    chunk_count: int = 0

    @property
    def partial(self) -> bool:
        return bool(self.failed_chunks)


class ChunkOrchestrator:
    """
    Runs every date chunk through prepare (filters + date range + apply) and scrape, in order,
    accumulating into one run-wide RecordSet. A chunk that fails is recorded and skipped.
    """

    def __init__(
        self,
        session: ScrapeSession,
        calendar: CalendarNavigator,
        scraper: ReservationPageScraper,
        *,
        chunk_attempts: int = 2,
        chunk_retry_delay_ms: int = 2_000,
        page_load_timeout_ms: int = 30_000,
    ) -> None:
        self.session = session
        self.calendar = calendar
        self.scraper = scraper
        self.chunk_attempts = chunk_attempts
        self.chunk_retry_delay_ms = chunk_retry_delay_ms
        self.page_load_timeout_ms = page_load_timeout_ms

    def run(self, chunks: Iterable[DateChunk]) -> OrchestrationResult:
        if not self.session.reservations_url:
            raise SessionStateError("Reservations page has not been opened")

        record_set = RecordSet()
        result = OrchestrationResult()
        chunks = list(chunks)
        result.chunk_count = len(chunks)

        for n, chunk in enumerate(chunks, start=1):
            logger.info("Processing chunk %d/%d: %s", n, len(chunks), chunk)
            before = len(record_set)
            try:
                self._prepare_with_retry(chunk)
                self.scraper.scrape(record_set, restore=lambda c=chunk: self._prepare(c))
            except (ScrapeError, DriverError) as e:
                logger.error("Chunk %s failed: %s", chunk, e)
                self.session.save_debug(f"chunk_failure_{n:02d}")
                result.failed_chunks.append(ChunkFailure(start=str(chunk.start), end=str(chunk.end), error=str(e)))
            logger.info("Chunk %s added %d records (%d total)", chunk, len(record_set) - before, len(record_set))

        result.records = record_set.records
        if result.failed_chunks:
            logger.warning("%d of %d chunks failed", len(result.failed_chunks), len(chunks))
        return result

    def _prepare_with_retry(self, chunk: DateChunk) -> None:
        retry_fixed(
            lambda: self._prepare(chunk),
            attempts=self.chunk_attempts,
            delay_ms=self.chunk_retry_delay_ms,
            retry_on=(ConfirmationMismatchError,),
            pause=self.session.driver.pause,
            label=f"Setting up chunk {chunk}",
        )

    def _prepare(self, chunk: DateChunk) -> None:
        d = self.session.driver
        d.goto(self.session.reservations_url)
        if not d.wait_for(self.session.selectors.date_type_input, timeout_ms=self.page_load_timeout_ms):
            raise PageProcessingError("Reservations page did not load")
        self.session.transition(SessionState.RESERVATIONS_LOADED)

        self.scraper.apply_filters()
        confirmation = self.calendar.set_range(chunk)
        logger.info("Date range set: %s - %s", confirmation.confirmed_from, confirmation.confirmed_to)
        self.scraper.submit()
