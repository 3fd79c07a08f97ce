from __future__ import annotations

import logging
import time
from typing import Callable, ContextManager, Optional

from .chunking import DateChunk, chunk_date_range
from .config import AppConfig
from .errors import (
    AuthenticationError,
    PortalNavigationError,
    PropertyNotFoundError,
    ScrapeError,
)
from .export import ReportExporter
from .models import RunResult, ScrapeRequest
from .orchestrator import ChunkOrchestrator, OrchestrationResult
from .portal.auth import SessionAuthenticator
from .portal.calendar import CalendarNavigator
from .portal.driver import DriverError
from .portal.mfa import PasscodeProvider, make_passcode_provider
from .portal.property import PropertyLocator
from .portal.reservations import ReservationPageScraper
from .portal.session import ScrapeSession, open_session
from .util.dates import DateEncoding, normalize_date


logger = logging.getLogger(__name__)

SessionFactory = Callable[[AppConfig], ContextManager[ScrapeSession]]

_FAILURE_MESSAGES: tuple[tuple[type[BaseException], str], ...] = (
    (AuthenticationError, "Login to Partner Central failed"),
    (PropertyNotFoundError, "Property not found"),
    (PortalNavigationError, "Could not open the reservations page"),
)


def plan_chunks(request: ScrapeRequest, cfg: AppConfig) -> list[DateChunk]:
    start = normalize_date(request.start_date, DateEncoding.MONTH_FIRST)
    end = normalize_date(request.end_date, DateEncoding.MONTH_FIRST)
    return chunk_date_range(start, end, cfg.scrape.chunk_span_days)


def _failure_message(e: BaseException) -> str:
    for err_type, message in _FAILURE_MESSAGES:
        if isinstance(e, err_type):
            return message
    return "Reservation scrape failed"


def run_export(
    request: ScrapeRequest,
    cfg: AppConfig,
    *,
    passcode_provider: Optional[PasscodeProvider] = None,
    session_factory: SessionFactory = open_session,
    exporter: Optional[ReportExporter] = None,
) -> RunResult:
    """
    One full run: login, (property), reservations, every chunk, spreadsheet.

    The browser is released before this returns, on every path. Errors are logged in full;
    the returned envelope only carries a short message.
    """
    t0 = time.time()
    try:
        chunks = plan_chunks(request, cfg)
    except ValueError as e:
        logger.error("Invalid date range %s - %s: %s", request.start_date, request.end_date, e)
        return RunResult(success=False, message=f"Invalid date range: {e}")
    logger.info(
        "Planned %d chunk(s) for %s - %s (span=%d days)",
        len(chunks),
        request.start_date,
        request.end_date,
        cfg.scrape.chunk_span_days,
    )

    if passcode_provider is None and cfg.gmail_imap.configured:
        passcode_provider = make_passcode_provider(
            cfg.gmail_imap, timeout_seconds=cfg.scrape.passcode_poll_timeout_seconds
        )
    exporter = exporter or ReportExporter(cfg.export.out_dir)

    try:
        with session_factory(cfg) as session:
            outcome = _scrape(session, request, chunks, cfg, passcode_provider)
    except (ScrapeError, DriverError) as e:
        logger.exception("Run failed after %.1fs", time.time() - t0)
        return RunResult(success=False, message=_failure_message(e))

    try:
        output_path = exporter.write(outcome.records)
    except OSError:
        logger.exception("Could not write the export file")
        return RunResult(
            success=False,
            message="Could not write the export file",
            record_count=len(outcome.records),
            records=outcome.records,
        )

    n = len(outcome.records)
    if outcome.partial:
        message = f"Exported {n} reservations; {len(outcome.failed_chunks)} of {outcome.chunk_count} chunks failed"
    else:
        message = f"Exported {n} reservations"
    logger.info("%s (seconds=%.2f)", message, time.time() - t0)

    return RunResult(
        success=not outcome.partial,
        message=message,
        record_count=n,
        output_path=output_path,
        partial=outcome.partial,
        failed_chunks=outcome.failed_chunks,
        records=outcome.records,
    )


def _scrape(
    session: ScrapeSession,
    request: ScrapeRequest,
    chunks: list[DateChunk],
    cfg: AppConfig,
    passcode_provider: Optional[PasscodeProvider],
) -> OrchestrationResult:
    SessionAuthenticator(
        session,
        login_url=cfg.portal.login_url,
        passcode_provider=passcode_provider,
        cfg=cfg.scrape,
    ).login(request.email, request.password)

    locator = PropertyLocator(session, cfg=cfg.scrape)
    if request.property_name:
        locator.select(request.property_name)
    locator.open_reservations()

    orchestrator = ChunkOrchestrator(
        session,
        CalendarNavigator.from_config(session, cfg.scrape),
        ReservationPageScraper(session, cfg=cfg.scrape),
        chunk_attempts=cfg.scrape.chunk_attempts,
        chunk_retry_delay_ms=cfg.scrape.chunk_retry_delay_ms,
        page_load_timeout_ms=cfg.scrape.rows_timeout_ms,
    )
    return orchestrator.run(chunks)
