"""Structured parsing of ``Set-Cookie`` header values.

Browser engines report repeated ``Set-Cookie`` headers as a single value
joined by newlines. :func:`parse_set_cookie_header` splits that value and
reads only the leading ``name=value`` pair of each line (:rfc:`6265`
section 5.2), so attributes such as ``Path``, ``Secure``, ``Partitioned`` or
``Priority=High`` never become cookies, and keeps the order in which the
cookies were sent.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from maconomy_auth.models import CapturedCookie

logger = logging.getLogger(__name__)


def _parse_line(line: str) -> Optional[CapturedCookie]:
    pair, _, _attributes = line.partition(";")
    name, sep, value = pair.partition("=")
    name = name.strip()
    if not sep or not name:
        return None
    return CapturedCookie(name=name, value=value.strip())


def parse_set_cookie_header(header: Optional[str]) -> list[CapturedCookie]:
    """Return the cookies set by a (possibly multi-line) ``Set-Cookie`` value.

    Lines without a ``name=value`` pair are skipped.

    Example::

        >>> parse_set_cookie_header("Maconomy-Session=v1; Path=/\\nlang=en; Secure")
        [CapturedCookie(name='Maconomy-Session', value='v1'), CapturedCookie(name='lang', value='en')]
    """
    cookies: list[CapturedCookie] = []
    if not header:
        return cookies

    for line in header.splitlines():
        line = line.strip()
        if not line:
            continue
        cookie = _parse_line(line)
        if cookie is None:
            logger.debug("Skipping Set-Cookie line without a name=value pair")
            continue
        cookies.append(cookie)
    return cookies


def find_cookie(cookies: Iterable[CapturedCookie], name_prefix: str) -> Optional[CapturedCookie]:
    """Return the first cookie whose name starts with *name_prefix*.

    When several cookies match, the first one in source order wins.
    """
    for cookie in cookies:
        if cookie.name.startswith(name_prefix):
            return cookie
    return None
