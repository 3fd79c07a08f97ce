from __future__ import annotations

import functools
import logging
from pathlib import Path
from typing import Callable, Optional, Protocol, TypeVar

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Locator, Page
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError


logger = logging.getLogger(__name__)

T = TypeVar("T")


class DriverError(RuntimeError):
    """
    A UI interaction failed (element missing, detached, not clickable, navigation error, ...).
    """


class PageDriver(Protocol):
    """
    The only way the scraping components touch the browser.

    `within` + `index` address an element relative to the `index`-th match of `within`
    (e.g. a cell inside the 3rd table row). Without `within`, `index` picks the n-th match of `selector`.
    """

    @property
    def url(self) -> str: ...

    def goto(self, url: str) -> None: ...

    def reload(self) -> None: ...

    def count(self, selector: str, *, within: Optional[str] = None, index: int = 0) -> int: ...

    def read_text(self, selector: str, *, within: Optional[str] = None, index: int = 0) -> str: ...

    def read_value(self, selector: str, *, index: int = 0) -> str: ...

    def click(self, selector: str, *, within: Optional[str] = None, index: int = 0) -> None: ...

    def is_enabled(self, selector: str, *, within: Optional[str] = None, index: int = 0) -> bool: ...

    def is_checked(self, selector: str, *, within: Optional[str] = None, index: int = 0) -> bool: ...

    def index_of_text(
        self, selector: str, text: str, *, text_selector: Optional[str] = None, exact: bool = True
    ) -> Optional[int]: ...

    def wait_for(self, selector: str, *, state: str = "visible", timeout_ms: int = 10_000) -> bool: ...

    def type_slowly(self, selector: str, text: str, *, delay_ms: int = 100) -> None: ...

    def select_option(self, selector: str, value: str) -> None: ...

    def scroll_to_bottom(self, selector: str) -> None: ...

    def pause(self, ms: int) -> None: ...

    def save_debug(self, debug_dir: str, name_prefix: str) -> None: ...


def _translate_errors(fn: Callable[..., T]) -> Callable[..., T]:
    @functools.wraps(fn)
    def wrapper(self: "PlaywrightDriver", *args, **kwargs) -> T:
        try:
            return fn(self, *args, **kwargs)
        except PlaywrightError as e:
            raise DriverError(f"{fn.__name__}{args!r} failed: {e}") from e

    return wrapper


class PlaywrightDriver:
    """PageDriver backed by a Playwright sync `Page`."""

    def __init__(self, page: Page, *, action_timeout_ms: int = 10_000) -> None:
        self.page = page
        self.action_timeout_ms = action_timeout_ms

    def _locate(self, selector: str, within: Optional[str], index: int) -> Locator:
        if within:
            return self.page.locator(within).nth(index).locator(selector).first
        return self.page.locator(selector).nth(index)

    @property
    def url(self) -> str:
        return self.page.url or ""

    @_translate_errors
    def goto(self, url: str) -> None:
        self.page.goto(url, wait_until="domcontentloaded")

    @_translate_errors
    def reload(self) -> None:
        self.page.reload(wait_until="domcontentloaded")

    @_translate_errors
    def count(self, selector: str, *, within: Optional[str] = None, index: int = 0) -> int:
        if within:
            return self.page.locator(within).nth(index).locator(selector).count()
        return self.page.locator(selector).count()

    @_translate_errors
    def read_text(self, selector: str, *, within: Optional[str] = None, index: int = 0) -> str:
        loc = self._locate(selector, within, index)
        if loc.count() == 0:
            return ""
        return (loc.text_content(timeout=self.action_timeout_ms) or "").strip()

    @_translate_errors
    def read_value(self, selector: str, *, index: int = 0) -> str:
        loc = self.page.locator(selector).nth(index)
        if loc.count() == 0:
            return ""
        return (loc.input_value(timeout=self.action_timeout_ms) or "").strip()

    @_translate_errors
    def click(self, selector: str, *, within: Optional[str] = None, index: int = 0) -> None:
        self._locate(selector, within, index).click(timeout=self.action_timeout_ms)

    @_translate_errors
    def is_enabled(self, selector: str, *, within: Optional[str] = None, index: int = 0) -> bool:
        loc = self._locate(selector, within, index)
        if loc.count() == 0:
            return False
        return loc.is_enabled(timeout=self.action_timeout_ms)

    @_translate_errors
    def is_checked(self, selector: str, *, within: Optional[str] = None, index: int = 0) -> bool:
        loc = self._locate(selector, within, index)
        if loc.count() == 0:
            return False
        return loc.is_checked(timeout=self.action_timeout_ms)

    @_translate_errors
    def index_of_text(
        self, selector: str, text: str, *, text_selector: Optional[str] = None, exact: bool = True
    ) -> Optional[int]:
        needle = (text or "").strip().casefold()
        loc = self.page.locator(selector)
        # Cap to avoid pathological matches on overly generic selectors.
        n = min(loc.count(), 200)
        for i in range(n):
            el = loc.nth(i)
            if text_selector:
                el = el.locator(text_selector).first
                if el.count() == 0:
                    continue
            got = (el.text_content(timeout=self.action_timeout_ms) or "").strip().casefold()
            if (exact and got == needle) or (not exact and needle in got):
                return i
        return None

    def wait_for(self, selector: str, *, state: str = "visible", timeout_ms: int = 10_000) -> bool:
        try:
            self.page.locator(selector).first.wait_for(state=state, timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False
        except PlaywrightError:
            logger.debug("wait_for(%r, state=%s) failed.", selector, state, exc_info=True)
            return False

    @_translate_errors
    def type_slowly(self, selector: str, text: str, *, delay_ms: int = 100) -> None:
        loc = self.page.locator(selector).first
        loc.click(timeout=self.action_timeout_ms)
        # Character-by-character typing; the login form drops input when filled programmatically.
        loc.press_sequentially(text, delay=delay_ms, timeout=self.action_timeout_ms + delay_ms * len(text))

    @_translate_errors
    def select_option(self, selector: str, value: str) -> None:
        self.page.locator(selector).first.select_option(value, timeout=self.action_timeout_ms)

    @_translate_errors
    def scroll_to_bottom(self, selector: str) -> None:
        loc = self.page.locator(selector).first
        if loc.count() == 0:
            return
        loc.evaluate("el => el.scrollTo(0, el.scrollHeight)")

    def pause(self, ms: int) -> None:
        if ms > 0:
            self.page.wait_for_timeout(ms)

    def save_debug(self, debug_dir: str, name_prefix: str) -> None:
        try:
            out_dir = Path(debug_dir)
            out_dir.mkdir(parents=True, exist_ok=True)
            self.page.screenshot(path=str(out_dir / f"{name_prefix}.png"), full_page=True)
            (out_dir / f"{name_prefix}.html").write_text(self.page.content(), encoding="utf-8")
            # Also save the rendered body text so selectors can be debugged offline without DOM tooling.
            try:
                (out_dir / f"{name_prefix}.txt").write_text(self.page.inner_text("body"), encoding="utf-8")
            except Exception:
                pass
        except Exception:
            logger.debug("Failed to save debug artifacts.", exc_info=True)
