"""Normalisation of HTTP outcomes into :class:`~trayar.models.ApiResponse` envelopes.

Every attempt made by the pipeline ends in one of three ways -- a response
with a success status, a response with an error status, or a transport
exception. The helpers here turn each of those into the uniform envelope
shape so that callers never see :mod:`httpx` types:

* :func:`envelope_from_response` -- 2xx/3xx into ``ApiResponse.ok``, 4xx/5xx
  into ``ApiResponse.fail`` via :func:`error_from_response`.
* :func:`error_from_exception` -- transport exceptions into a status-0 error.
* :func:`auth_error` -- the envelope error for an unrecoverable 401.

Server error bodies of the form ``{"code": ..., "message": ..., "details": ...}``
are surfaced verbatim; anything else gets a generic code chosen from the
status class.
"""

from __future__ import annotations

from typing import Any

import httpx

from trayar.models import ApiErrorInfo, ApiResponse, ErrorCode


def extract_response_data(response: httpx.Response) -> Any:
    """Extract the body from an HTTP response.

    Attempts to parse the body as JSON first. If that fails (e.g. the
    response is HTML or plain text), returns the raw text. Returns ``None``
    for responses with no content.
    """
    if not response.content:
        return None

    try:
        return response.json()
    except ValueError:
        return response.text


def envelope_from_response(response: httpx.Response) -> ApiResponse:
    """Wrap a received response in an envelope according to its status code."""
    if response.status_code < 400:
        return ApiResponse.ok(extract_response_data(response), status_code=response.status_code)
    return ApiResponse.fail(error_from_response(response))


def error_from_response(response: httpx.Response) -> ApiErrorInfo:
    """Build an :class:`~trayar.models.ApiErrorInfo` from an error response."""
    status = response.status_code
    body = extract_response_data(response)
    default_code = ErrorCode.SERVER_ERROR if status >= 500 else ErrorCode.CLIENT_ERROR

    code = default_code.value
    message = ""
    details: Any = None
    if isinstance(body, dict):
        if isinstance(body.get("code"), str) and body["code"]:
            code = body["code"]
        for field in ("message", "error", "detail"):
            if isinstance(body.get(field), str) and body[field]:
                message = body[field]
                break
        details = body.get("details")
    elif isinstance(body, str):
        message = body[:200]

    if not message:
        if status >= 500:
            message = "Server error occurred"
        else:
            message = response.reason_phrase or f"Request failed with status {status}"

    return ApiErrorInfo(code=code, message=message, details=details, status_code=status)


def error_from_exception(exc: Exception) -> ApiErrorInfo:
    """Build a status-0 :class:`~trayar.models.ApiErrorInfo` from a local failure."""
    if isinstance(exc, httpx.TimeoutException):
        return ApiErrorInfo(
            code=ErrorCode.TIMEOUT_ERROR.value,
            message="Request timed out",
            details=str(exc) or None,
            status_code=0,
        )
    if isinstance(exc, httpx.RequestError):
        return ApiErrorInfo(
            code=ErrorCode.NETWORK_ERROR.value,
            message="Network connection error",
            details=str(exc) or None,
            status_code=0,
        )
    return ApiErrorInfo(
        code=ErrorCode.UNKNOWN_ERROR.value,
        message=str(exc) or "An unknown error occurred",
        details=type(exc).__name__,
        status_code=0,
    )


def auth_error(message: str = "Session expired, please sign in again") -> ApiErrorInfo:
    """The error reported when a 401 could not be recovered by refreshing."""
    return ApiErrorInfo(code=ErrorCode.AUTH_ERROR.value, message=message, status_code=401)
