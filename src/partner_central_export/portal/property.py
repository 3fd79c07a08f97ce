from __future__ import annotations

import logging

from ..config import ScrapeConfig
from ..errors import PortalNavigationError, PropertyNotFoundError
from .session import ScrapeSession, SessionState


logger = logging.getLogger(__name__)


class PropertyLocator:
    def __init__(self, session: ScrapeSession, *, cfg: ScrapeConfig | None = None) -> None:
        self.session = session
        self.cfg = cfg or ScrapeConfig()

    def select(self, property_name: str) -> str:
        """
        Search the property list and open the property whose name matches. Returns the link text.
        """
        self.session.require(SessionState.AUTHENTICATED)
        d = self.session.driver
        s = self.session.selectors

        if not d.wait_for(s.property_table, timeout_ms=30_000):
            raise PropertyNotFoundError("Property list did not load")
        if not d.wait_for(s.property_search_input, timeout_ms=10_000):
            raise PropertyNotFoundError("Property search box not found")

        logger.info("Searching for property: %s", property_name)
        d.type_slowly(s.property_search_input, property_name, delay_ms=self.cfg.typing_delay_ms)
        d.pause(2_000)

        if not d.wait_for(s.property_result_rows, timeout_ms=10_000) or not d.wait_for(
            s.property_link, timeout_ms=10_000
        ):
            self.session.save_debug("property_not_found")
            raise PropertyNotFoundError(f"Property {property_name!r} not found")

        idx = d.index_of_text(s.property_link, property_name, exact=False)
        if idx is None:
            # The search box already filtered the list; take the top hit but say so.
            idx = 0
            logger.warning("No property link contains %r; using the first search result.", property_name)

        link_text = d.read_text(s.property_link, index=idx)
        logger.info("Found property: %s, opening", link_text)
        d.click(s.property_link, index=idx)
        d.pause(8_000)

        self.session.transition(SessionState.PROPERTY_SELECTED)
        self.session.step("property_selected")
        return link_text

    def open_reservations(self) -> str:
        """
        Open the Reservations page from the side drawer. Returns its URL.
        """
        self.session.require(SessionState.AUTHENTICATED, SessionState.PROPERTY_SELECTED)
        d = self.session.driver
        s = self.session.selectors

        logger.info("Looking for Reservations link")
        if not d.wait_for(s.nav_drawer, timeout_ms=30_000):
            self.session.save_debug("nav_drawer_missing")
            raise PortalNavigationError("Navigation drawer did not load")

        idx = d.index_of_text(s.nav_item, s.nav_reservations_text, text_selector=s.nav_item_text, exact=True)
        if idx is None or d.count(s.nav_item_link, within=s.nav_item, index=idx) == 0:
            self.session.save_debug("nav_reservations_missing")
            raise PortalNavigationError("Could not find the Reservations link")
        d.click(s.nav_item_link, within=s.nav_item, index=idx)
        d.pause(5_000)

        if not d.wait_for(s.date_type_input, timeout_ms=30_000):
            self.session.save_debug("reservations_filters_missing")
            raise PortalNavigationError("Reservations page loaded without its date filters")

        self.session.reservations_url = d.url
        self.session.step("reservations_page")
        logger.info("Reservations page: %s", self.session.reservations_url)
        return self.session.reservations_url
