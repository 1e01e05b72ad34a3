"""SSO browser cookie credential strategy.

Exports:
    :class:`SsoCookieStrategy` -- the strategy class.
    :class:`CookieCaptureController` -- reactive, checkpoint and polling capture.
    :class:`BrowserSessionDriver` -- the Playwright session wrapper.
"""

from maconomy_auth.plugins.browser_login.capture import CookieCaptureController
from maconomy_auth.plugins.browser_login.cookies import find_cookie, parse_set_cookie_header
from maconomy_auth.plugins.browser_login.driver import BrowserSessionDriver, ResponseSubscription
from maconomy_auth.plugins.browser_login.plugin import SsoCookieStrategy

__all__ = [
    "BrowserSessionDriver",
    "CookieCaptureController",
    "ResponseSubscription",
    "SsoCookieStrategy",
    "find_cookie",
    "parse_set_cookie_header",
]
