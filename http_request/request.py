"""Request - Fluent builder for a single outbound HTTP call.

A Request accumulates URL, method, body, headers and transport options,
then hands the resolved option mapping to a transport in execute().
Malformed input is normalized rather than rejected: an unknown method
becomes GET and a URL without a scheme gains "http://".
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from http_request.cookies import serialize_cookies
from http_request.merge import merge_deep
from http_request.models import Cookie, HttpMethod, Option, RequestConfig, TransportResult
from http_request.response import Response
from http_request.transport import HttpxTransport

logger = logging.getLogger(__name__)

_SCHEME = re.compile(r"^https?://")


class Transport(Protocol):
    def send(self, options: Mapping[Any, Any]) -> TransportResult:
        ...


class Request:
    """One configurable HTTP call.

    Every setter returns the Request, so calls chain:

        response = (
            Request.post("api.example.com/items", "name=widget")
            .set_headers(["Accept: application/json"])
            .set_timeout(2.5)
            .execute()
        )

    execute() never raises for transport failures; inspect the returned
    Response with is_success()/is_error().
    """

    def __init__(
        self,
        url: str,
        method: HttpMethod | str = HttpMethod.GET,
        data: Any = None,
        transport: Transport | None = None,
    ) -> None:
        """Initialize the request.

        Args:
            url: Target URL; "http://" is prepended when no scheme is given.
            method: HTTP method; anything but the six known methods means GET.
            data: Optional body, sent when truthy.
            transport: Object with send(options) -> TransportResult.
                       Defaults to HttpxTransport.
        """
        self._url = ""
        self._method = HttpMethod.GET
        self._data: Any = None
        self._headers: list[str] = []
        self._options: dict[Any, Any] = RequestConfig().to_options()
        self._test_mode = False
        self._transport = transport

        self.set_url(url)
        self.set_method(method)
        self.set_post_data(data)

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    @classmethod
    def get(cls, url: str) -> Request:
        return cls(url)

    @classmethod
    def post(cls, url: str, data: Any) -> Request:
        return cls(url, HttpMethod.POST, data)

    @classmethod
    def put(cls, url: str, data: Any) -> Request:
        return cls(url, HttpMethod.PUT, data)

    @classmethod
    def delete(cls, url: str) -> Request:
        return cls(url, HttpMethod.DELETE)

    @classmethod
    def head(cls, url: str) -> Request:
        return cls(url, HttpMethod.HEAD)

    @classmethod
    def options(cls, url: str) -> Request:
        return cls(url, HttpMethod.OPTIONS)

    # -------------------------------------------------------------------------
    # Core fields
    # -------------------------------------------------------------------------

    def set_url(self, url: str | None) -> Request:
        url = "" if url is None else str(url)
        if not _SCHEME.match(url):
            url = "http://" + url
        self._url = url
        return self

    def get_url(self) -> str:
        return self._url

    def set_method(self, method: HttpMethod | str) -> Request:
        """Set the method. Matching is exact and case sensitive; no match means GET."""
        try:
            self._method = HttpMethod(method)
        except ValueError:
            self._method = HttpMethod.GET
        return self

    def get_method(self) -> HttpMethod:
        return self._method

    def set_post_data(self, data: Any) -> Request:
        """Set the body. It is sent with any method, as long as it is truthy."""
        self._data = data
        return self

    def get_post_data(self) -> Any:
        return self._data

    def set_headers(self, headers: str | Iterable[str] | None) -> Request:
        """Replace the header list. A single string becomes a one-item list."""
        if headers is None:
            headers = []
        elif isinstance(headers, str):
            headers = [headers]
        self._headers = list(headers)
        return self

    def get_headers(self) -> list[str]:
        return self._headers

    def set_options(self, options: Mapping[Any, Any]) -> Request:
        """Deep-merge options into the current ones.

        Known string keys are normalized to Option members. The passed
        mapping is not modified.
        """
        normalized = {Option.normalize(key): value for key, value in options.items()}
        self._options = merge_deep(self._options, normalized)
        return self

    def get_options(self) -> dict[Any, Any]:
        """Return a copy of the current options; change them with set_options()."""
        return merge_deep(self._options)

    # -------------------------------------------------------------------------
    # Convenience setters
    # -------------------------------------------------------------------------

    def set_user_password(self, user_password: str) -> Request:
        return self.set_options({Option.USER_PASSWORD: user_password})

    def set_ssl_verify_peer(self, verify: bool = False) -> Request:
        return self.set_options({Option.SSL_VERIFY_PEER: verify})

    def set_cookie(self, cookie: str | Iterable[Cookie | Mapping[str, Any]]) -> Request:
        """Set the Cookie header value.

        Args:
            cookie: Either a ready "key=value; key=value" string or a list of
                    Cookie objects / cookie mappings, serialized with their
                    primary pairs only.
        """
        if not isinstance(cookie, str):
            cookie = serialize_cookies(cookie)
        return self.set_options({Option.COOKIE: cookie})

    def set_follow_location(self, follow_location: bool = True) -> Request:
        return self.set_options({Option.FOLLOW_LOCATION: follow_location})

    def set_max_redirs(self, max_redirs: int = 5) -> Request:
        return self.set_options({Option.MAX_REDIRS: max_redirs})

    def set_timeout(self, timeout: int | float = 30) -> Request:
        """Set the timeout.

        An int is stored in seconds under Option.TIMEOUT; a float is stored
        in milliseconds under Option.TIMEOUT_MS. The other key is removed so
        the latest call decides.
        """
        if isinstance(timeout, float):
            self.set_options({Option.TIMEOUT_MS: 1000 * timeout})
            self._options.pop(Option.TIMEOUT, None)
        else:
            self.set_options({Option.TIMEOUT: timeout})
            self._options.pop(Option.TIMEOUT_MS, None)
        return self

    def set_encoding(self, encoding: str | None = "") -> Request:
        return self.set_options({Option.ENCODING: encoding})

    def set_proxy(self, proxy: str, user_password: str | None = None) -> Request:
        options: dict[Option, Any] = {Option.PROXY: proxy}
        if user_password is not None:
            options[Option.PROXY_USER_PASSWORD] = user_password
        return self.set_options(options)

    def set_config(self, config: RequestConfig) -> Request:
        """Apply a RequestConfig: its options are merged, its headers (if any) replace ours."""
        if isinstance(config.timeout, float):
            self._options.pop(Option.TIMEOUT, None)
        else:
            self._options.pop(Option.TIMEOUT_MS, None)
        self.set_options(config.to_options())
        if config.headers:
            self.set_headers(config.headers)
        return self

    def set_test_mode(self, mode: bool) -> Request:
        """Enable test mode: execute() returns a canned 200 "Ok" without I/O.

        Non-bool values are ignored.
        """
        if isinstance(mode, bool):
            self._test_mode = mode
        return self

    def is_test_mode(self) -> bool:
        return self._test_mode

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def prepare_options(self) -> dict[Any, Any]:
        """Resolve the option mapping handed to the transport.

        URL, method, body and headers are applied last and override any
        same-named entries set through set_options().
        """
        options = dict(self._options)
        options[Option.URL] = self._url
        options[Option.CUSTOM_REQUEST] = self._method.value
        if self._data:
            options[Option.POST] = True
            options[Option.POST_FIELDS] = self._data
        if self._headers:
            options[Option.HTTP_HEADER] = list(self._headers)
        return options

    def execute(self) -> Response:
        """Perform the call and return its Response.

        Transport failures are reported on the Response (error code and
        description), never raised.
        """
        options = self.prepare_options()
        if self._test_mode:
            logger.debug("Test mode: skipping %s %s", self._method.value, self._url)
            return Response(b"Ok", 200, 0)

        transport = self._transport or HttpxTransport()

        result = transport.send(options)
        return Response.from_transport_result(result)

    def __repr__(self) -> str:
        return f"<Request {self._method.value} {self._url}>"
