"""Transport - Sends one resolved request through httpx.

HttpxTransport turns the option mapping built by Request.prepare_options()
into an httpx.Client call and reports back a TransportResult: the raw
payload (header blocks followed by the body), the status code, the header
block length, and on failure an error code and message.

Failures never raise out of send(). They are reported with error codes
numbered like libcurl's, so callers branch on Response.is_error().
"""

from __future__ import annotations

import logging
import socket
import ssl
from collections.abc import Mapping
from enum import IntEnum
from typing import Any
from urllib.parse import quote, urlsplit, urlunsplit

import httpx

from http_request.models import HttpMethod, Option, TransportResult

logger = logging.getLogger(__name__)


class TransportErrorCode(IntEnum):
    """Transport error codes (libcurl numbering)."""

    OK = 0
    UNSUPPORTED_PROTOCOL = 1
    FAILED = 2
    URL_MALFORMAT = 3
    COULDNT_RESOLVE_PROXY = 5
    COULDNT_RESOLVE_HOST = 6
    COULDNT_CONNECT = 7
    WEIRD_SERVER_REPLY = 8
    OPERATION_TIMEDOUT = 28
    SSL_CONNECT_ERROR = 35
    BAD_FUNCTION_ARGUMENT = 43
    TOO_MANY_REDIRECTS = 47
    SEND_ERROR = 55
    RECV_ERROR = 56
    PEER_FAILED_VERIFICATION = 60
    BAD_CONTENT_ENCODING = 61


# Options consumed by the transport. Anything else is logged and ignored.
_KNOWN_OPTIONS = frozenset(Option)

_DEFAULT_TIMEOUT = 30.0


class HttpxTransport:
    """Executes resolved option mappings with httpx.

    Usage:
        transport = HttpxTransport()
        result = transport.send({Option.URL: "http://example.com",
                                 Option.CUSTOM_REQUEST: "GET"})

    Tests pass an httpx.MockTransport to avoid the network:
        HttpxTransport(httpx.MockTransport(handler))
    """

    def __init__(self, transport: httpx.BaseTransport | None = None) -> None:
        """Initialize the adapter.

        Args:
            transport: Optional httpx transport mounted into every client
                       (e.g. httpx.MockTransport). None uses httpx's default.
        """
        self._transport = transport

    def send(self, options: Mapping[Any, Any]) -> TransportResult:
        """Send one request described by options.

        A fresh httpx.Client is opened per call and closed before returning,
        on success and on failure alike.

        Args:
            options: Resolved option mapping keyed by Option.

        Returns:
            TransportResult; error_code is set when the call failed.
        """
        options = {Option.normalize(k): v for k, v in options.items()}
        for key in options:
            if key not in _KNOWN_OPTIONS:
                logger.warning("Ignoring unknown transport option %r", key)

        url = options.get(Option.URL, "")
        method = str(options.get(Option.CUSTOM_REQUEST) or HttpMethod.GET.value)

        try:
            client_kwargs = self._build_client_kwargs(options)
            request_kwargs = self._build_request_kwargs(options)
            logger.debug("Sending %s %s", method, url)
            with httpx.Client(**client_kwargs) as client:
                http_response = client.request(method, url, **request_kwargs)
        except Exception as e:
            code = _classify_error(e)
            if code is None:
                raise
            message = str(e) or type(e).__name__
            logger.warning("%s %s failed: [%d] %s", method, url, code, message)
            return TransportResult(error_code=int(code), error_description=message)

        return self._convert_response(http_response, options.get(Option.INCLUDE_HEADER, True))

    def _build_client_kwargs(self, options: Mapping[Any, Any]) -> dict[str, Any]:
        """Build kwargs for httpx.Client from client-level options."""
        kwargs: dict[str, Any] = {
            "follow_redirects": bool(options.get(Option.FOLLOW_LOCATION, False)),
            "timeout": self._build_timeout(options),
        }

        if Option.MAX_REDIRS in options:
            kwargs["max_redirects"] = int(options[Option.MAX_REDIRS])

        if Option.SSL_VERIFY_PEER in options:
            kwargs["verify"] = bool(options[Option.SSL_VERIFY_PEER])

        user_password = options.get(Option.USER_PASSWORD)
        if user_password:
            user, _, password = str(user_password).partition(":")
            kwargs["auth"] = (user, password)

        proxy = options.get(Option.PROXY)
        if proxy:
            kwargs["proxy"] = _proxy_url(str(proxy), options.get(Option.PROXY_USER_PASSWORD))

        if self._transport is not None:
            kwargs["transport"] = self._transport

        return kwargs

    def _build_timeout(self, options: Mapping[Any, Any]) -> httpx.Timeout:
        """Total timeout from timeout_ms (preferred) or timeout, plus connect timeout."""
        if options.get(Option.TIMEOUT_MS) is not None:
            total = float(options[Option.TIMEOUT_MS]) / 1000
        elif options.get(Option.TIMEOUT) is not None:
            total = float(options[Option.TIMEOUT])
        else:
            total = _DEFAULT_TIMEOUT

        # 0 means "no limit", as it does for libcurl
        timeout = total or None
        connect = options.get(Option.CONNECT_TIMEOUT)
        if connect is None:
            return httpx.Timeout(timeout)
        return httpx.Timeout(timeout, connect=float(connect) or None)

    def _build_request_kwargs(self, options: Mapping[Any, Any]) -> dict[str, Any]:
        """Build headers and body kwargs for client.request()."""
        headers: list[tuple[str, str]] = []
        for line in options.get(Option.HTTP_HEADER) or []:
            name, sep, value = str(line).partition(":")
            if not sep or not name.strip():
                logger.debug("Skipping malformed header line %r", line)
                continue
            headers.append((name.strip(), value.strip()))

        present = {name.lower() for name, _ in headers}

        cookie = options.get(Option.COOKIE)
        if cookie and "cookie" not in present:
            headers.append(("Cookie", str(cookie)))

        if Option.ENCODING in options and "accept-encoding" not in present:
            encoding = options[Option.ENCODING]
            if encoding is None:
                headers.append(("Accept-Encoding", "identity"))
            elif encoding:
                headers.append(("Accept-Encoding", str(encoding)))
            # "" keeps httpx's own Accept-Encoding (all decoders it supports)

        kwargs: dict[str, Any] = {"headers": headers}

        data = options.get(Option.POST_FIELDS)
        if options.get(Option.POST) and data:
            if isinstance(data, Mapping):
                kwargs["data"] = dict(data)
            elif isinstance(data, (bytes, bytearray)):
                kwargs["content"] = bytes(data)
            else:
                kwargs["content"] = str(data).encode("utf-8")

        return kwargs

    def _convert_response(self, response: httpx.Response, include_header: Any) -> TransportResult:
        """Convert an httpx Response (and its redirect history) to a TransportResult.

        Each response in the redirect chain contributes one header block,
        so Set-Cookie lines from intermediate hops stay visible.
        """
        body = response.content
        if not include_header:
            return TransportResult(raw=body, http_status_code=response.status_code)

        header_block = bytearray()
        for hop in [*response.history, response]:
            header_block += _render_header_block(hop)

        return TransportResult(
            raw=bytes(header_block) + body,
            http_status_code=response.status_code,
            header_size=len(header_block),
        )


def _render_header_block(response: httpx.Response) -> bytes:
    """Status line, raw headers and the blank line, as received."""
    version = response.http_version or "HTTP/1.1"
    reason = response.reason_phrase or ""
    status_line = f"{version} {response.status_code} {reason}".rstrip()

    block = bytearray(status_line.encode("ascii", errors="replace") + b"\r\n")
    for name, value in response.headers.raw:
        block += name + b": " + value + b"\r\n"
    block += b"\r\n"
    return bytes(block)


def _proxy_url(proxy: str, user_password: Any) -> str:
    """Fold "user:password" credentials into the proxy URL."""
    if "://" not in proxy:
        proxy = "http://" + proxy
    if not user_password:
        return proxy

    user, _, password = str(user_password).partition(":")
    parts = urlsplit(proxy)
    netloc = parts.netloc.rpartition("@")[2]
    credentials = quote(user, safe="") + (":" + quote(password, safe="") if password else "")
    return urlunsplit(parts._replace(netloc=f"{credentials}@{netloc}"))


def _caused_by(error: BaseException, kind: type[BaseException]) -> bool:
    """True if error or anything in its cause/context chain is a kind."""
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        if isinstance(current, kind):
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return False


def _classify_error(error: Exception) -> TransportErrorCode | None:
    """Map an exception raised while sending to a TransportErrorCode.

    Returns None for exceptions that are not transport failures; those
    propagate.
    """
    if isinstance(error, httpx.TooManyRedirects):
        return TransportErrorCode.TOO_MANY_REDIRECTS
    if isinstance(error, httpx.UnsupportedProtocol):
        return TransportErrorCode.UNSUPPORTED_PROTOCOL
    if isinstance(error, httpx.ProxyError):
        return TransportErrorCode.COULDNT_RESOLVE_PROXY
    if isinstance(error, httpx.TimeoutException):
        return TransportErrorCode.OPERATION_TIMEDOUT
    if isinstance(error, httpx.ConnectError):
        if _caused_by(error, ssl.SSLCertVerificationError):
            return TransportErrorCode.PEER_FAILED_VERIFICATION
        if _caused_by(error, ssl.SSLError):
            return TransportErrorCode.SSL_CONNECT_ERROR
        if _caused_by(error, socket.gaierror):
            return TransportErrorCode.COULDNT_RESOLVE_HOST
        return TransportErrorCode.COULDNT_CONNECT
    if isinstance(error, httpx.WriteError):
        return TransportErrorCode.SEND_ERROR
    if isinstance(error, httpx.ReadError):
        return TransportErrorCode.RECV_ERROR
    if isinstance(error, httpx.DecodingError):
        return TransportErrorCode.BAD_CONTENT_ENCODING
    if isinstance(error, httpx.ProtocolError):
        return TransportErrorCode.WEIRD_SERVER_REPLY
    if isinstance(error, httpx.InvalidURL):
        return TransportErrorCode.URL_MALFORMAT
    if isinstance(error, httpx.HTTPError):
        return TransportErrorCode.FAILED
    if isinstance(error, ImportError):
        # httpx needs an optional extra for the scheme, e.g. socksio for socks5://
        return TransportErrorCode.UNSUPPORTED_PROTOCOL
    if isinstance(error, (UnicodeEncodeError, ValueError, TypeError)):
        # Non-ASCII header values, bad auth/proxy/timeouts and the like
        return TransportErrorCode.BAD_FUNCTION_ARGUMENT
    return None
