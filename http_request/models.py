"""Data models for http-request.

Enums for methods and transport options, pydantic v2 models for cookies,
transport results and request configuration.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# Enumerations
# =============================================================================


class HttpMethod(str, Enum):
    """HTTP methods a Request can carry."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


class Option(str, Enum):
    """Well-known transport option keys.

    Plain string keys equal to a member's value are normalized to the member
    when merged into a Request's options.
    """

    URL = "url"
    CUSTOM_REQUEST = "custom_request"  # HTTP method sent on the wire
    POST = "post"
    POST_FIELDS = "post_fields"
    HTTP_HEADER = "http_header"  # list of raw "Name: value" strings
    INCLUDE_HEADER = "include_header"  # keep header blocks in the raw payload
    FOLLOW_LOCATION = "follow_location"
    MAX_REDIRS = "max_redirs"
    CONNECT_TIMEOUT = "connect_timeout"  # seconds
    TIMEOUT = "timeout"  # seconds
    TIMEOUT_MS = "timeout_ms"  # milliseconds
    ENCODING = "encoding"  # Accept-Encoding; "" = everything httpx supports
    SSL_VERIFY_PEER = "ssl_verify_peer"
    USER_PASSWORD = "user_password"  # "user:password"
    COOKIE = "cookie"  # "key=value; key=value"
    PROXY = "proxy"
    PROXY_USER_PASSWORD = "proxy_user_password"

    @classmethod
    def normalize(cls, key: Any) -> Any:
        """Return the member for a known key, or the key unchanged."""
        if isinstance(key, cls):
            return key
        try:
            return cls(key)
        except ValueError:
            return key


# =============================================================================
# Cookies
# =============================================================================


COOKIE_ATTRIBUTES = frozenset({"domain", "expires", "path", "secure", "comment", "httponly"})


class CookieValue(BaseModel):
    """Primary key/value pair of a cookie."""

    model_config = ConfigDict(extra="forbid", coerce_numbers_to_str=True)

    key: str = Field(description="Cookie name")
    value: Any = Field(default="", description="Cookie value, serialized with str()")


class Cookie(BaseModel):
    """One cookie parsed from a Set-Cookie line, or supplied by a caller.

    Attribute keys are accepted in any case ("HttpOnly", "Path", ...) and
    stored lower-cased.
    """

    model_config = ConfigDict(extra="ignore")

    value: CookieValue | None = Field(default=None, description="Primary key/value pair")
    domain: str | None = Field(default=None, description="Domain attribute")
    path: str | None = Field(default=None, description="Path attribute")
    expires: int | None = Field(default=None, description="Expiry as epoch seconds")
    secure: bool | None = Field(default=None, description="True when Secure was present")
    httponly: bool | None = Field(default=None, description="True when HttpOnly was present")
    comment: str | None = Field(default=None, description="Comment attribute")

    @model_validator(mode="before")
    @classmethod
    def lowercase_attribute_keys(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {
                (k.lower() if isinstance(k, str) and k.lower() in COOKIE_ATTRIBUTES else k): v
                for k, v in data.items()
            }
        return data

    @property
    def key(self) -> str | None:
        return self.value.key if self.value is not None else None


# =============================================================================
# Transport
# =============================================================================


class TransportResult(BaseModel):
    """What the transport hands back for one call.

    raw is the header block(s) followed by the body; header_size is the byte
    offset where the body starts.
    """

    model_config = ConfigDict(extra="forbid")

    raw: bytes = Field(default=b"", description="Header blocks followed by the body")
    http_status_code: int = Field(default=0, description="Final HTTP status code, 0 if none")
    header_size: int = Field(default=0, description="Byte length of the header blocks")
    error_code: int | None = Field(default=None, description="Transport error code, None on success")
    error_description: str = Field(default="", description="Transport error message")


# =============================================================================
# Configuration
# =============================================================================


class RequestConfig(BaseModel):
    """Default request settings, loadable from YAML.

    Field defaults are the defaults every new Request starts with.
    """

    model_config = ConfigDict(extra="forbid")

    include_header: bool = Field(default=True, description="Keep header blocks in the raw payload")
    follow_location: bool = Field(default=True, description="Follow redirects")
    max_redirs: int = Field(default=10, description="Maximum number of redirects")
    connect_timeout: int = Field(default=30, description="Connect timeout in seconds")
    timeout: int | float = Field(
        default=30, description="Timeout; a float is sent as milliseconds"
    )
    encoding: str | None = Field(default="", description="Accept-Encoding value")
    ssl_verify_peer: bool | None = Field(default=None, description="Verify the server certificate")
    user_password: str | None = Field(default=None, description="Basic auth as user:password")
    proxy: str | None = Field(default=None, description="Proxy URL")
    proxy_user_password: str | None = Field(default=None, description="Proxy auth as user:password")
    headers: list[str] = Field(default_factory=list, description="Raw 'Name: value' headers")

    def to_options(self) -> dict[Option, Any]:
        """Render the config as a Request option mapping.

        Optional fields left unset are omitted. Headers are not options;
        Request.set_config applies them separately.
        """
        options: dict[Option, Any] = {
            Option.INCLUDE_HEADER: self.include_header,
            Option.FOLLOW_LOCATION: self.follow_location,
            Option.MAX_REDIRS: self.max_redirs,
            Option.CONNECT_TIMEOUT: self.connect_timeout,
        }
        if isinstance(self.timeout, float):
            options[Option.TIMEOUT_MS] = 1000 * self.timeout
        else:
            options[Option.TIMEOUT] = self.timeout
        options[Option.ENCODING] = self.encoding

        optional = {
            Option.SSL_VERIFY_PEER: self.ssl_verify_peer,
            Option.USER_PASSWORD: self.user_password,
            Option.PROXY: self.proxy,
            Option.PROXY_USER_PASSWORD: self.proxy_user_password,
        }
        for key, value in optional.items():
            if value is not None:
                options[key] = value
        return options
