from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Optional

from playwright.sync_api import sync_playwright

from ..config import AppConfig
from ..errors import SessionStateError
from .driver import PageDriver, PlaywrightDriver
from .selectors import PortalSelectors


logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    PROPERTY_SELECTED = "property_selected"
    RESERVATIONS_LOADED = "reservations_loaded"
    CLOSED = "closed"


_ALLOWED: dict[SessionState, frozenset[SessionState]] = {
    SessionState.UNAUTHENTICATED: frozenset({SessionState.AUTHENTICATING}),
    # A rejected login drops back to unauthenticated.
    SessionState.AUTHENTICATING: frozenset({SessionState.AUTHENTICATED, SessionState.UNAUTHENTICATED}),
    SessionState.AUTHENTICATED: frozenset({SessionState.PROPERTY_SELECTED, SessionState.RESERVATIONS_LOADED}),
    SessionState.PROPERTY_SELECTED: frozenset({SessionState.RESERVATIONS_LOADED}),
    SessionState.RESERVATIONS_LOADED: frozenset({SessionState.RESERVATIONS_LOADED}),
    SessionState.CLOSED: frozenset(),
}


class ScrapeSession:
    """
    One browser page bound to one portal login, owned by a single run.
    """

    def __init__(
        self,
        driver: PageDriver,
        *,
        selectors: Optional[PortalSelectors] = None,
        debug_dir: str = "data/debug",
        step_debug: bool = False,
    ) -> None:
        self.driver = driver
        self.selectors = selectors or PortalSelectors()
        self.debug_dir = debug_dir
        self.state = SessionState.UNAUTHENTICATED
        self.passcode_pending = False
        self.reservations_url = ""

        self._step_debug_enabled = step_debug
        self._step_counter = 0

    def transition(self, new_state: SessionState) -> None:
        if new_state == SessionState.CLOSED:
            self.state = new_state
            return
        if new_state not in _ALLOWED[self.state]:
            raise SessionStateError(f"Illegal session transition {self.state.value} -> {new_state.value}")
        if new_state != self.state:
            logger.info("Session %s -> %s", self.state.value, new_state.value)
        self.state = new_state

    def require(self, *states: SessionState) -> None:
        if self.state not in states:
            wanted = ", ".join(s.value for s in states)
            raise SessionStateError(f"Session is {self.state.value}; expected one of: {wanted}")

    def save_debug(self, name_prefix: str) -> None:
        self.driver.save_debug(self.debug_dir, name_prefix)

    def step(self, name: str) -> None:
        """
        If enabled, log step-by-step progress and save a snapshot per step.
        """
        if not self._step_debug_enabled:
            return
        self._step_counter += 1
        safe = re.sub(r"[^a-zA-Z0-9_-]+", "_", name).strip("_")[:60] or "step"
        prefix = f"step_{self._step_counter:02d}_{safe}"
        logger.info("Step %02d %s (url=%s)", self._step_counter, name, self.driver.url)
        self.driver.save_debug(self.debug_dir, prefix)


@contextmanager
def open_session(cfg: AppConfig, *, selectors: Optional[PortalSelectors] = None) -> Iterator[ScrapeSession]:
    """
    Launch Chromium, yield a ScrapeSession, and always close context + browser on the way out.
    """
    portal = cfg.portal
    with sync_playwright() as p:
        # Prefer Playwright's bundled Chromium, but fall back to a system-installed browser if the
        # cache doesn't have Playwright browsers available.
        try:
            browser = p.chromium.launch(headless=portal.headless, slow_mo=portal.slow_mo_ms)
        except Exception as e:
            msg = str(e)
            if "Executable doesn't exist" not in msg:
                raise
            logger.warning("Playwright Chromium executable missing; falling back to system Chrome. (%s)", msg)
            browser = p.chromium.launch(headless=portal.headless, slow_mo=portal.slow_mo_ms, channel="chrome")

        session: Optional[ScrapeSession] = None
        try:
            ctx = browser.new_context(color_scheme="light", viewport={"width": 1600, "height": 1000})
            try:
                page = ctx.new_page()
                page.set_default_timeout(portal.default_timeout_ms)
                page.set_default_navigation_timeout(portal.default_timeout_ms)
                session = ScrapeSession(
                    PlaywrightDriver(page),
                    selectors=selectors,
                    debug_dir=portal.debug_dir,
                    step_debug=portal.step_debug,
                )
                yield session
            finally:
                ctx.close()
        finally:
            if session is not None:
                session.transition(SessionState.CLOSED)
            browser.close()
            logger.info("Browser closed")
