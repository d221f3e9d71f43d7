"""Set-Cookie parsing and Cookie header serialization.

The read side (parse_set_cookie, used by Response) and the write side
(serialize_cookies, used by Response and Request.set_cookie) live together
so the two stay symmetric for the primary key/value pairs.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from http.cookiejar import http2time
from typing import Any

from http_request.models import COOKIE_ATTRIBUTES, Cookie, CookieValue

_SET_COOKIE_PREFIX = re.compile(r"^Set-Cookie:\s*", re.IGNORECASE)


def is_set_cookie_line(line: str) -> bool:
    return _SET_COOKIE_PREFIX.match(line) is not None


def parse_set_cookie(line: str) -> Cookie:
    """Parse one Set-Cookie header line into a Cookie.

    Each ';' segment is split once on '='. Segments whose key is a known
    attribute (domain, expires, path, secure, comment, httponly; any case)
    set that attribute; any other segment is taken as the primary pair, and
    when a line carries several such segments the last one wins.

    Args:
        line: A header line, with or without the "Set-Cookie:" prefix and
              trailing CR.

    Returns:
        The parsed Cookie. Its value is None if no primary pair was found.
    """
    line = _SET_COOKIE_PREFIX.sub("", line.strip())

    data: dict[str, Any] = {}
    for segment in line.split(";"):
        if not segment.strip():
            continue
        key, _, value = segment.partition("=")
        key = key.strip()
        value = value.strip()
        attribute = key.lower()

        if attribute == "expires":
            data["expires"] = _parse_expires(value)
        elif attribute in ("secure", "httponly"):
            data[attribute] = True
        elif attribute in COOKIE_ATTRIBUTES:
            data[attribute] = value
        else:
            data["value"] = CookieValue(key=key, value=value)

    return Cookie.model_validate(data)


def _parse_expires(value: str) -> int | None:
    """Convert an Expires attribute to epoch seconds, None if unparseable."""
    timestamp = http2time(value)
    if timestamp is None:
        return None
    return int(timestamp)


def serialize_cookies(cookies: Iterable[Cookie | Mapping[str, Any]]) -> str:
    """Join the primary pairs of cookies into a Cookie header value.

    Attributes are dropped. Cookies without a primary pair are skipped.
    Mappings are validated as Cookie first, so structured input such as
    {"value": {"key": "PREF", "value": "ID"}, "path": "/"} is accepted.

    Raises:
        pydantic.ValidationError: If a mapping is not a valid Cookie.
    """
    pairs: list[str] = []
    for cookie in cookies:
        if not isinstance(cookie, Cookie):
            cookie = Cookie.model_validate(cookie)
        if cookie.value is None:
            continue
        pairs.append(f"{cookie.value.key}={cookie.value.value}")
    return "; ".join(pairs)
