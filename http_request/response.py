"""Response - Structured view over one completed (or failed) HTTP call.

A Response wraps the raw payload returned by the transport (header blocks
followed by the body) plus the side-channel values the transport reports:
status code, header block length and an optional transport error.
"""

from __future__ import annotations

import re

from http_request.cookies import is_set_cookie_line, parse_set_cookie, serialize_cookies
from http_request.models import Cookie, TransportResult

_CHARSET = re.compile(r"charset\s*=\s*\"?([\w.:-]+)", re.IGNORECASE)


class Response:
    """Immutable snapshot of one HTTP call.

    Usage:
        response = Request.get("example.com").execute()
        if response.is_success():
            body = response.get_data()
    """

    def __init__(
        self,
        raw: bytes | str,
        http_status_code: int,
        header_size: int,
        error_code: int | None = None,
        error_description: str = "",
    ) -> None:
        if isinstance(raw, str):
            raw = raw.encode("utf-8")
        self._raw = raw or b""
        self._http_status_code = http_status_code
        self._header_size = header_size or 0
        self._error_code = error_code
        self._error_description = error_description or ""
        # HTTP header bytes are ISO-8859-1; every byte maps to one character
        self._header = self._raw[:self._header_size].decode("iso-8859-1").split("\n")

    @classmethod
    def from_transport_result(cls, result: TransportResult) -> Response:
        return cls(
            result.raw,
            result.http_status_code,
            result.header_size,
            result.error_code,
            result.error_description,
        )

    def get_raw(self) -> bytes:
        return self._raw

    def get_header(self) -> list[str]:
        """Header block split on newlines (lines keep a trailing CR if sent)."""
        return list(self._header)

    def get_header_size(self) -> int:
        return self._header_size

    def get_cookie(self, as_string: bool = True) -> str | list[Cookie]:
        """Cookies set by the response, one per Set-Cookie line.

        Args:
            as_string: Return a "key=value; key=value" string instead of
                       the parsed Cookie list.
        """
        cookies = [parse_set_cookie(line) for line in self._header if is_set_cookie_line(line)]
        if as_string:
            return serialize_cookies(cookies)
        return cookies

    def get_data(self) -> bytes:
        """The body: everything after the header blocks."""
        return self._raw[self._header_size:]

    def get_text(self) -> str:
        """The body decoded with the response charset (UTF-8 if unknown)."""
        encoding = self._charset() or "utf-8"
        try:
            return self.get_data().decode(encoding, errors="replace")
        except LookupError:
            return self.get_data().decode("utf-8", errors="replace")

    def _charset(self) -> str | None:
        # Last Content-Type wins: earlier header blocks belong to redirects
        charset = None
        for line in self._header:
            name, _, value = line.partition(":")
            if name.strip().lower() == "content-type":
                match = _CHARSET.search(value)
                charset = match.group(1) if match else None
        return charset

    def get_http_status_code(self) -> int:
        return self._http_status_code

    def is_success(self) -> bool:
        return not self.is_error()

    def is_error(self) -> bool:
        """True unless the status starts with 2 or 3 and no transport error occurred.

        The check looks at the first character of the status code as text, so
        a status of 0 (no response received) counts as an error. An error code
        of 0 is libcurl's "no error" and does not count.
        """
        status = str(self._http_status_code)
        if status[:1] not in ("2", "3") or self._error_code:
            return True
        return False

    def get_error_code(self) -> int | None:
        return self._error_code

    def get_error_description(self) -> str:
        return self._error_description

    def __repr__(self) -> str:
        return (
            f"<Response status={self._http_status_code} "
            f"error_code={self._error_code} bytes={len(self._raw)}>"
        )
