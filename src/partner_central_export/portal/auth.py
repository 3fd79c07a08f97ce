from __future__ import annotations

import logging
import re
from typing import Optional

from ..config import ScrapeConfig
from ..errors import AuthenticationError
from .driver import DriverError
from .mfa import PasscodeProvider, mask_code
from .session import ScrapeSession, SessionState


logger = logging.getLogger(__name__)

_PASSCODE_RE = re.compile(r"^\d{6,10}$")


class SessionAuthenticator:
    """
    Email -> password -> emailed passcode login flow for Partner Central.
    """

    def __init__(
        self,
        session: ScrapeSession,
        *,
        login_url: str,
        passcode_provider: Optional[PasscodeProvider],
        cfg: Optional[ScrapeConfig] = None,
    ) -> None:
        self.session = session
        self.login_url = login_url
        self.passcode_provider = passcode_provider
        self.cfg = cfg or ScrapeConfig()

    def login(self, email: str, password: str) -> None:
        self.session.require(SessionState.UNAUTHENTICATED)
        self.session.transition(SessionState.AUTHENTICATING)
        try:
            self._submit_credentials(email, password)
            self._complete_passcode()
            self._wait_for_landing()
        except AuthenticationError:
            self.session.save_debug("login_failure")
            self.session.passcode_pending = False
            self.session.transition(SessionState.UNAUTHENTICATED)
            raise
        except DriverError as e:
            self.session.save_debug("login_failure")
            self.session.passcode_pending = False
            self.session.transition(SessionState.UNAUTHENTICATED)
            raise AuthenticationError(f"Login flow broke: {e}") from e

        self.session.transition(SessionState.AUTHENTICATED)
        logger.info("Login successful")

    def _submit_credentials(self, email: str, password: str) -> None:
        d = self.session.driver
        s = self.session.selectors
        c = self.cfg

        logger.info("Navigating to Partner Central logon page")
        d.goto(self.login_url)
        self.session.step("after_goto")

        if not d.wait_for(s.email_input, timeout_ms=30_000):
            raise AuthenticationError("Login email field not found")
        d.type_slowly(s.email_input, email, delay_ms=c.typing_delay_ms)
        d.click(s.email_continue_button)

        logger.info("Waiting for password page")
        if not d.wait_for(s.password_input, timeout_ms=c.password_timeout_ms):
            raise AuthenticationError("Password field did not appear after submitting the email")
        # The password step animates in; typing too early drops characters.
        d.pause(4_000)
        d.type_slowly(s.password_input, password, delay_ms=c.typing_delay_ms)
        self.session.step("password_filled")
        d.pause(2_000)

        if d.count(s.sign_in_button) == 0:
            raise AuthenticationError("Sign-in button not found")
        d.click(s.sign_in_button)

    def _complete_passcode(self) -> None:
        d = self.session.driver
        s = self.session.selectors
        c = self.cfg

        logger.info("Waiting for verification page")
        if not d.wait_for(s.passcode_input, timeout_ms=c.passcode_input_timeout_ms):
            raise AuthenticationError(
                "Passcode prompt did not appear (credentials rejected or the login flow changed)"
            )
        self.session.passcode_pending = True
        self.session.step("passcode_prompt")

        if self.passcode_provider is None:
            raise AuthenticationError("The portal asked for a passcode but no passcode provider is configured")

        logger.info("Waiting %ss for the passcode email", c.passcode_wait_seconds)
        d.pause(c.passcode_wait_seconds * 1000)

        code = (self.passcode_provider() or "").strip()
        if not code:
            raise AuthenticationError("No passcode found in the inbox")
        if not _PASSCODE_RE.match(code):
            raise AuthenticationError(f"Passcode has an unexpected format ({mask_code(code)})")
        logger.info("Got passcode %s", mask_code(code))

        d.type_slowly(s.passcode_input, code, delay_ms=c.typing_delay_ms)
        d.pause(1_500)

        if d.count(s.passcode_submit_button) == 0:
            raise AuthenticationError("Verify button not found")
        if not d.is_enabled(s.passcode_submit_button):
            raise AuthenticationError("Verify button is disabled (passcode not accepted by the form)")
        d.click(s.passcode_submit_button)
        self.session.passcode_pending = False

    def _wait_for_landing(self) -> None:
        d = self.session.driver
        s = self.session.selectors
        if not d.wait_for(s.property_table, timeout_ms=self.cfg.post_login_timeout_ms):
            if d.count(s.passcode_input) > 0:
                raise AuthenticationError("Portal is still showing the passcode prompt (expired or wrong code)")
            raise AuthenticationError("Login did not reach the property list")
        self.session.step("login_complete")
