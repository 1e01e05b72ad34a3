"""Detect the Maconomy authentication cookie in a browser session.

:class:`CookieCaptureController` drives a
:class:`~.driver.BrowserSessionDriver` in one of three modes:

- **reactive** -- watch responses as they arrive and stop at the first
  ``Set-Cookie`` whose name carries the configured prefix.
- **checkpoint** -- wait for the user to say they have finished signing in,
  then inspect the cookie jar exactly once.
- **poll** -- inspect the cookie jar at a fixed interval until a match
  appears or the deadline passes.

Every mode returns a :class:`~maconomy_auth.models.CaptureOutcome`; failures
are tagged outcomes, not exceptions.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from maconomy_auth.models import CaptureOutcome
from maconomy_auth.plugins.browser_login.cookies import find_cookie, parse_set_cookie_header
from maconomy_auth.plugins.browser_login.driver import BrowserSessionDriver

logger = logging.getLogger(__name__)


class CookieCaptureController:
    """Capture the first cookie whose name starts with *cookie_name_prefix*.

    Args:
        driver: A started browser session driver.
        cookie_name_prefix: Name prefix identifying the session cookie,
            e.g. ``"Maconomy-"``.
        entry_url: Page that starts the SSO login. When ``None`` the
            browser is left where it is.
    """

    def __init__(
        self,
        driver: BrowserSessionDriver,
        cookie_name_prefix: str,
        entry_url: Optional[str] = None,
    ) -> None:
        self._driver = driver
        self._prefix = cookie_name_prefix
        self._entry_url = entry_url

    def _open_entry_page(self, deadline: Optional[float] = None) -> bool:
        """Navigate to the entry page. Returns ``False`` if loading outlives *deadline*."""
        if not self._entry_url:
            return True
        if deadline is None:
            self._driver.navigate(self._entry_url)
            return True
        try:
            self._driver.navigate(self._entry_url, timeout=max(deadline - time.monotonic(), 0.0))
        except PlaywrightTimeoutError:
            logger.debug("Entry page %s did not load before the deadline", self._entry_url)
            return False
        return True

    def capture_reactive(self, timeout: float) -> CaptureOutcome:
        """Watch intercepted responses until a matching cookie is set.

        The subscription is opened before navigating so responses from the
        entry page itself are observed. It is closed as soon as a match is
        found; no further responses are read.
        """
        deadline = time.monotonic() + timeout
        with self._driver.observe_responses(until=deadline) as responses:
            if not self._open_entry_page(deadline):
                return CaptureOutcome.timed_out()
            for response in responses:
                cookie = find_cookie(parse_set_cookie_header(response.set_cookie), self._prefix)
                if cookie is not None:
                    logger.debug("Cookie '%s' set by %s", cookie.name, response.url)
                    return CaptureOutcome.captured(cookie)
        logger.debug("No '%s' cookie within %.1fs", self._prefix, timeout)
        return CaptureOutcome.timed_out()

    def capture_checkpoint(self, wait_for_signal: Callable[[], None]) -> CaptureOutcome:
        """Inspect the cookie jar once, after *wait_for_signal* returns.

        A missing cookie is terminal; the jar is not read again.
        """
        self._open_entry_page()
        wait_for_signal()
        cookie = find_cookie(self._driver.current_cookies(), self._prefix)
        if cookie is None:
            return CaptureOutcome.not_found()
        logger.debug("Cookie '%s' found in the cookie jar", cookie.name)
        return CaptureOutcome.captured(cookie)

    def capture_polling(self, timeout: float, interval: float = 1.0) -> CaptureOutcome:
        """Read the cookie jar every *interval* seconds until a match or *timeout*."""
        deadline = time.monotonic() + timeout
        if not self._open_entry_page(deadline):
            return CaptureOutcome.timed_out()
        while True:
            cookie = find_cookie(self._driver.current_cookies(), self._prefix)
            if cookie is not None:
                logger.debug("Cookie '%s' appeared in the cookie jar", cookie.name)
                return CaptureOutcome.captured(cookie)
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return CaptureOutcome.timed_out()
            self._driver.pause(min(interval, remaining))
