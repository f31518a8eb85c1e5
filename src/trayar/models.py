"""Canonical Pydantic models shared across all trayar modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`RequestConfig`, :class:`CacheConfig`, :class:`OutputConfig`, and
    :class:`ClientConfig`.

**Pipeline models** -- produced and consumed by the request pipeline:
    :class:`HTTPMethod`, :class:`ErrorCode`, :class:`UploadFile`,
    :class:`RequestDescriptor`, :class:`ApiErrorInfo`, :class:`ApiResponse`,
    and :class:`AuthTokens`.

All models use Pydantic v2. Pipeline models are frozen so that a descriptor
cannot change between the first attempt and a replay. Freezing is shallow, so
the response cache hands out deep copies of the envelopes it holds.
"""

from __future__ import annotations

import enum
import mimetypes
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_BASE_URL = "https://api.trayar.dental/v1"


# --- Pipeline models ---


class HTTPMethod(str, enum.Enum):
    """HTTP methods the pipeline dispatches."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class ErrorCode(str, enum.Enum):
    """Error codes produced locally by the pipeline.

    Codes supplied by the server in a JSON error body are passed through
    verbatim and need not appear here.
    """

    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    SERVER_ERROR = "SERVER_ERROR"
    CLIENT_ERROR = "CLIENT_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class UploadFile(BaseModel):
    """A single file part of a multipart upload.

    Example::

        UploadFile.from_path("session-42.m4a")
        UploadFile(name="clip.m4a", content=b"...", content_type="audio/mp4")
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="File name sent in the multipart part")
    content: bytes = Field(repr=False)
    content_type: str = Field(default="audio/mp4")

    @classmethod
    def from_path(cls, path: str | Path, content_type: Optional[str] = None) -> UploadFile:
        """Read a file from disk, guessing the content type from its extension."""
        path = Path(path)
        if content_type is None:
            content_type = mimetypes.guess_type(path.name)[0] or "audio/mp4"
        return cls(name=path.name, content=path.read_bytes(), content_type=content_type)


class RequestDescriptor(BaseModel):
    """Everything the pipeline needs to dispatch (and re-dispatch) one call.

    A descriptor is immutable once created: retries and the replay after a
    token refresh send exactly the same request, only the ``Authorization``
    header is re-read from the token store on every attempt.

    Attributes:
        method: HTTP method. Lower-case strings are accepted.
        path: URL path appended to the client's base URL.
        body: JSON-serialisable request body.
        params: Query parameters. Also part of the cache key for GET.
        headers: Per-call header overrides, applied after the defaults and
            the bearer token.
        timeout: Per-call timeout in seconds. ``None`` uses the client default.
        bypass_cache: Skip the cache lookup and store for a GET.
        cache_ttl: Override the cache's default TTL for this GET, in seconds.
        files: Multipart file parts keyed by form field name.
        form: Multipart text fields sent alongside ``files``.
        on_progress: Upload progress callback, receives an integer percent.
        refresh_on_401: Refresh the token and replay once when the server
            answers 401. Disabled for calls that end the session anyway.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    method: HTTPMethod = HTTPMethod.GET
    path: str
    body: Any = None
    params: Optional[dict[str, Any]] = None
    headers: Optional[dict[str, str]] = None
    timeout: Optional[float] = Field(default=None, gt=0)
    bypass_cache: bool = False
    cache_ttl: Optional[float] = Field(default=None, gt=0)
    files: Optional[dict[str, UploadFile]] = None
    form: Optional[dict[str, str]] = None
    on_progress: Optional[Callable[[int], None]] = Field(default=None, exclude=True, repr=False)
    refresh_on_401: bool = True

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.upper()
        return value

    @property
    def is_cacheable(self) -> bool:
        """Whether this request may be answered from, and stored in, the cache."""
        return self.method is HTTPMethod.GET and not self.bypass_cache and not self.files


class ApiErrorInfo(BaseModel):
    """Normalised description of a failed call.

    ``status_code == 0`` means no response was received (transport failure).
    """

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    details: Any = None
    status_code: int = 0


class ApiResponse(BaseModel):
    """The uniform envelope returned by every pipeline call.

    Exactly one of ``data`` and ``error`` is populated: ``data`` when
    ``success`` is true, ``error`` when it is false. The invariant is checked
    on construction, so an envelope that violates it cannot exist.

    Example::

        resp = await client.get("/health")
        if resp.success:
            print(resp.data["status"])
        else:
            print(resp.error.code, resp.error.message)
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    data: Any = None
    error: Optional[ApiErrorInfo] = None
    status_code: int = 0

    @model_validator(mode="after")
    def _check_envelope(self) -> ApiResponse:
        if self.success:
            if self.error is not None:
                raise ValueError("a successful response cannot carry an error")
            if self.data is None:
                raise ValueError("a successful response must carry data")
        else:
            if self.error is None:
                raise ValueError("a failed response must carry an error")
            if self.data is not None:
                raise ValueError("a failed response cannot carry data")
        return self

    @classmethod
    def ok(cls, data: Any, status_code: int = 200) -> ApiResponse:
        """Build a success envelope. An empty body becomes ``{}``."""
        return cls(success=True, data={} if data is None else data, status_code=status_code)

    @classmethod
    def fail(cls, error: ApiErrorInfo) -> ApiResponse:
        """Build a failure envelope carrying the error's status code."""
        return cls(success=False, error=error, status_code=error.status_code)

    def raise_for_error(self) -> ApiResponse:
        """Return ``self`` on success, raise the mapped :class:`~trayar.exceptions.TrayarError` otherwise."""
        if not self.success:
            from trayar.exceptions import error_for_envelope

            assert self.error is not None
            raise error_for_envelope(self.error)
        return self


class AuthTokens(BaseModel):
    """A bearer token and the optional refresh token issued with it."""

    token: str
    refresh_token: Optional[str] = None


# --- Configuration models ---


class RequestConfig(BaseModel):
    """Default HTTP request and retry settings applied to every API call."""

    timeout: float = Field(default=30, gt=0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    retry_base_delay_ms: int = Field(
        default=1000, ge=0, description="Linear backoff step: attempt x base"
    )
    retry_jitter_ms: int = Field(
        default=0, ge=0, description="Upper bound of random jitter added to each delay"
    )
    retry_max_delay_ms: int = Field(
        default=30000, ge=0, description="Cap applied to server-requested Retry-After delays"
    )


class CacheConfig(BaseModel):
    """In-memory GET response cache settings."""

    enabled: bool = Field(default=True, description="Enable response caching")
    ttl_seconds: float = Field(default=300, gt=0, description="Default cache TTL in seconds")
    max_entries: int = Field(default=100, ge=1, description="Maximum number of cached responses")


class OutputConfig(BaseModel):
    """Default output format preferences for the ``trayar`` CLI."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class ClientConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/trayar/config.json``.

    Loaded and saved by :func:`~trayar.config.load_config` and
    :func:`~trayar.config.save_config`. See
    :func:`~trayar.config.resolve_config` for how environment variables and
    CLI flags override it.
    """

    base_url: str = Field(default=DEFAULT_BASE_URL, description="API base URL")
    request: RequestConfig = Field(default_factory=RequestConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
