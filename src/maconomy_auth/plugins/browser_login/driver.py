"""Thin Playwright wrapper used by the SSO cookie capture.

:class:`BrowserSessionDriver` launches a browser (headed by default, because
the user signs in by hand), navigates to a URL, and exposes two observation
modes: a lazy stream of intercepted responses and on-demand inspection of the
cookie jar. It performs no authentication logic itself.

The driver uses Playwright's sync API. Browser events are only dispatched
while Playwright is waiting, so every wait in this module goes through
:meth:`BrowserSessionDriver.pause`, which keeps events flowing.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from typing import TYPE_CHECKING, Iterator, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from maconomy_auth.exceptions import InvalidUsageError
from maconomy_auth.models import CapturedCookie, InterceptedResponse

if TYPE_CHECKING:
    from playwright.sync_api import Browser, BrowserContext, Page, Playwright, Response

logger = logging.getLogger(__name__)


class ResponseSubscription:
    """Single-consumer stream of responses seen by the browser context.

    The response listener is registered on construction, so responses that
    arrive before iteration starts are not lost. Iteration is lazy, runs
    until *until* (a ``time.monotonic()`` value) or forever when ``None``,
    and cannot be restarted. :meth:`close` deregisters the listener.
    """

    def __init__(self, driver: BrowserSessionDriver, until: Optional[float] = None) -> None:
        self._driver = driver
        self._until = until
        self._pending: deque[Response] = deque()
        self._closed = False
        self._started = False
        driver.context.on("response", self._on_response)

    def _on_response(self, response: Response) -> None:
        self._pending.append(response)

    def __iter__(self) -> Iterator[InterceptedResponse]:
        if self._started:
            raise InvalidUsageError("A response subscription can only be iterated once")
        self._started = True
        while not self._closed:
            while self._pending and not self._closed:
                yield self._driver.intercept(self._pending.popleft())
            if self._until is None:
                wait = self._driver.poll_interval
            else:
                remaining = self._until - time.monotonic()
                if remaining <= 0:
                    return
                wait = min(self._driver.poll_interval, remaining)
            self._driver.pause(wait)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._pending.clear()
        self._driver.context.remove_listener("response", self._on_response)
        logger.debug("Response subscription closed")

    def __enter__(self) -> ResponseSubscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class BrowserSessionDriver:
    """Own one browser, one context and one page for a capture session.

    Args:
        browser: Playwright browser type: ``"chromium"``, ``"firefox"`` or
            ``"webkit"``.
        headless: Launch without a window. Interactive SSO needs a window,
            so this defaults to ``False``.
        poll_interval: Seconds between event-loop pumps while observing.

    Example::

        with BrowserSessionDriver() as driver:
            driver.navigate("https://sso.example.com/maconomy")
            cookies = driver.current_cookies()
    """

    def __init__(
        self,
        browser: str = "chromium",
        headless: bool = False,
        poll_interval: float = 0.25,
    ) -> None:
        self._browser_name = browser
        self._headless = headless
        self.poll_interval = poll_interval
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    @property
    def context(self) -> BrowserContext:
        if self._context is None:
            raise InvalidUsageError("Browser session is not started")
        return self._context

    @property
    def page(self) -> Page:
        if self._page is None:
            raise InvalidUsageError("Browser session is not started")
        return self._page

    def start(self) -> None:
        """Launch the browser and open a blank page. No-op when already started."""
        if self._playwright is not None:
            return
        self._playwright = sync_playwright().start()
        try:
            browser_type = getattr(self._playwright, self._browser_name)
            self._browser = browser_type.launch(headless=self._headless)
            self._context = self._browser.new_context()
            self._page = self._context.new_page()
        except BaseException:
            self.close()
            raise
        logger.debug("Launched %s (headless=%s)", self._browser_name, self._headless)

    def navigate(self, url: str, timeout: Optional[float] = None) -> None:
        """Load *url* in the session page.

        *timeout* bounds the load in seconds; Playwright's default applies
        when it is ``None``.

        Raises:
            playwright.sync_api.TimeoutError: If the page does not load in time.
        """
        logger.debug("Navigating to %s", url)
        if timeout is None:
            self.page.goto(url, wait_until="domcontentloaded")
        else:
            # Playwright treats a zero timeout as "no timeout".
            self.page.goto(url, wait_until="domcontentloaded", timeout=max(timeout * 1000, 1.0))

    def observe_responses(self, until: Optional[float] = None) -> ResponseSubscription:
        """Subscribe to responses seen by the browser context (including popups)."""
        return ResponseSubscription(self, until)

    def intercept(self, response: Response) -> InterceptedResponse:
        """Snapshot the parts of a Playwright response the capture needs.

        ``Set-Cookie`` is excluded from Playwright's provisional headers, so
        it is fetched explicitly; repeated headers come back newline-joined.
        """
        try:
            set_cookie = response.header_value("set-cookie")
        except PlaywrightError as exc:
            logger.debug("Could not read Set-Cookie from %s: %s", response.url, exc)
            set_cookie = None
        return InterceptedResponse(url=response.url, status=response.status, set_cookie=set_cookie)

    def current_cookies(self) -> list[CapturedCookie]:
        """Return the context's cookie jar in the order the browser reports it."""
        return [
            CapturedCookie(name=cookie["name"], value=cookie["value"])
            for cookie in self.context.cookies()
        ]

    def pause(self, seconds: float) -> None:
        """Wait *seconds* while letting browser events be dispatched."""
        self.page.wait_for_timeout(seconds * 1000)

    def close(self) -> None:
        """Close the browser and stop Playwright. Safe to call more than once."""
        try:
            if self._browser is not None:
                self._browser.close()
        except PlaywrightError as exc:
            logger.debug("Browser already gone while closing: %s", exc)
        finally:
            self._browser = None
            self._context = None
            self._page = None
            if self._playwright is not None:
                self._playwright.stop()
                self._playwright = None

    def __enter__(self) -> BrowserSessionDriver:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
