"""Tests for the cookie capture controller against a fake browser driver."""

from __future__ import annotations

import time
from typing import Iterator, Optional

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from maconomy_auth.models import CapturedCookie, CaptureStatus, InterceptedResponse
from maconomy_auth.plugins.browser_login import CookieCaptureController


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeSubscription:
    def __init__(self, driver: FakeDriver, until: Optional[float]) -> None:
        self.driver = driver
        self.until = until
        self.consumed = 0
        self.closed = False

    def __iter__(self) -> Iterator[InterceptedResponse]:
        for response in self.driver.responses:
            if self.closed:
                return
            self.consumed += 1
            yield response

    def close(self) -> None:
        self.closed = True
        self.driver.events.append("unsubscribe")

    def __enter__(self) -> FakeSubscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class FakeDriver:
    """Records calls and serves canned responses and cookie jars."""

    def __init__(
        self,
        responses: Optional[list[InterceptedResponse]] = None,
        jars: Optional[list[list[CapturedCookie]]] = None,
    ) -> None:
        self.responses = responses or []
        self.jars = jars or [[]]
        self.events: list[str] = []
        self.subscription: Optional[FakeSubscription] = None
        self.cookie_reads = 0
        self.pauses: list[float] = []
        self.navigate_timeouts: list[Optional[float]] = []
        self.navigate_error: Optional[Exception] = None

    def navigate(self, url: str, timeout: Optional[float] = None) -> None:
        self.events.append(f"navigate {url}")
        self.navigate_timeouts.append(timeout)
        if self.navigate_error is not None:
            raise self.navigate_error

    def observe_responses(self, until: Optional[float] = None) -> FakeSubscription:
        self.events.append("subscribe")
        self.subscription = FakeSubscription(self, until)
        return self.subscription

    def current_cookies(self) -> list[CapturedCookie]:
        jar = self.jars[min(self.cookie_reads, len(self.jars) - 1)]
        self.cookie_reads += 1
        return list(jar)

    def pause(self, seconds: float) -> None:
        self.pauses.append(seconds)


def _response(set_cookie: Optional[str] = None) -> InterceptedResponse:
    return InterceptedResponse(url="https://sso.example.com/", status=200, set_cookie=set_cookie)


JAR = [
    CapturedCookie(name="Maconomy-Session", value="v1"),
    CapturedCookie(name="Other", value="v2"),
]


# ---------------------------------------------------------------------------
# Checkpoint mode
# ---------------------------------------------------------------------------


class TestCheckpointCapture:
    def test_matching_cookie(self) -> None:
        driver = FakeDriver(jars=[JAR])
        signals: list[bool] = []
        controller = CookieCaptureController(driver, "Maconomy-", "https://sso.example.com/")

        outcome = controller.capture_checkpoint(lambda: signals.append(True))

        assert outcome.status == CaptureStatus.CAPTURED
        assert outcome.cookie == CapturedCookie(name="Maconomy-Session", value="v1")
        assert signals == [True]
        assert driver.events == ["navigate https://sso.example.com/"]

    def test_no_match_is_terminal(self) -> None:
        driver = FakeDriver(jars=[[CapturedCookie(name="Other", value="v2")], JAR])
        controller = CookieCaptureController(driver, "Maconomy-")

        outcome = controller.capture_checkpoint(lambda: None)

        assert outcome.status == CaptureStatus.NOT_FOUND
        assert driver.cookie_reads == 1

    def test_jar_read_only_after_signal(self) -> None:
        driver = FakeDriver(jars=[JAR])
        reads_at_signal: list[int] = []
        controller = CookieCaptureController(driver, "Maconomy-")

        controller.capture_checkpoint(lambda: reads_at_signal.append(driver.cookie_reads))

        assert reads_at_signal == [0]

    def test_navigation_uses_default_timeout(self) -> None:
        driver = FakeDriver(jars=[JAR])
        CookieCaptureController(driver, "Maconomy-", "https://sso.example.com/").capture_checkpoint(
            lambda: None
        )
        assert driver.navigate_timeouts == [None]


# ---------------------------------------------------------------------------
# Reactive mode
# ---------------------------------------------------------------------------


class TestReactiveCapture:
    def test_third_response_matches_and_stops(self) -> None:
        responses = [
            _response(),
            _response("ARRAffinity=abc; Path=/"),
            _response("Maconomy-Session=v1; Path=/"),
            _response("Maconomy-Later=v9; Path=/"),
            _response(),
        ]
        driver = FakeDriver(responses=responses)
        controller = CookieCaptureController(driver, "Maconomy-", "https://sso.example.com/")

        outcome = controller.capture_reactive(timeout=5.0)

        assert outcome.cookie == CapturedCookie(name="Maconomy-Session", value="v1")
        assert driver.subscription is not None
        assert driver.subscription.consumed == 3
        assert driver.subscription.closed

    def test_subscribes_before_navigating(self) -> None:
        driver = FakeDriver(responses=[_response("Maconomy-Session=v1")])
        CookieCaptureController(driver, "Maconomy-", "https://sso.example.com/").capture_reactive(5.0)

        assert driver.events[:2] == ["subscribe", "navigate https://sso.example.com/"]
        assert driver.events[-1] == "unsubscribe"

    def test_deadline_passed_to_subscription(self) -> None:
        driver = FakeDriver()
        before = time.monotonic()
        CookieCaptureController(driver, "Maconomy-").capture_reactive(timeout=2.0)

        assert driver.subscription is not None
        assert driver.subscription.until is not None
        assert before + 2.0 <= driver.subscription.until <= time.monotonic() + 2.0

    def test_exhausted_stream_times_out(self) -> None:
        driver = FakeDriver(responses=[_response("lang=en"), _response()])
        outcome = CookieCaptureController(driver, "Maconomy-").capture_reactive(timeout=1.0)

        assert outcome.status == CaptureStatus.TIMEOUT
        assert driver.subscription is not None and driver.subscription.closed

    def test_entry_navigation_bounded_by_deadline(self) -> None:
        driver = FakeDriver(responses=[_response("Maconomy-Session=v1")])
        CookieCaptureController(driver, "Maconomy-", "https://sso.example.com/").capture_reactive(2.0)

        [nav_timeout] = driver.navigate_timeouts
        assert nav_timeout is not None
        assert 0 < nav_timeout <= 2.0

    def test_stalled_entry_page_times_out(self) -> None:
        driver = FakeDriver(responses=[_response("Maconomy-Session=v1")])
        driver.navigate_error = PlaywrightTimeoutError("Timeout 1000ms exceeded.")
        controller = CookieCaptureController(driver, "Maconomy-", "https://sso.example.com/")

        outcome = controller.capture_reactive(timeout=1.0)

        assert outcome.status == CaptureStatus.TIMEOUT
        assert driver.subscription is not None
        assert driver.subscription.consumed == 0
        assert driver.events[-1] == "unsubscribe"


# ---------------------------------------------------------------------------
# Polling mode
# ---------------------------------------------------------------------------


class TestPollingCapture:
    def test_cookie_appears_on_third_poll(self) -> None:
        driver = FakeDriver(jars=[[], [CapturedCookie(name="Other", value="v2")], JAR])
        outcome = CookieCaptureController(driver, "Maconomy-").capture_polling(
            timeout=5.0, interval=0.5
        )

        assert outcome.cookie == CapturedCookie(name="Maconomy-Session", value="v1")
        assert driver.cookie_reads == 3
        assert driver.pauses == [0.5, 0.5]

    def test_times_out(self) -> None:
        driver = FakeDriver(jars=[[]])
        driver.pause = time.sleep  # type: ignore[method-assign]
        outcome = CookieCaptureController(driver, "Maconomy-").capture_polling(
            timeout=0.05, interval=0.01
        )

        assert outcome.status == CaptureStatus.TIMEOUT

    def test_stalled_entry_page_times_out(self) -> None:
        driver = FakeDriver(jars=[JAR])
        driver.navigate_error = PlaywrightTimeoutError("Timeout 1000ms exceeded.")
        controller = CookieCaptureController(driver, "Maconomy-", "https://sso.example.com/")

        outcome = controller.capture_polling(timeout=1.0)

        assert outcome.status == CaptureStatus.TIMEOUT
        assert driver.cookie_reads == 0
