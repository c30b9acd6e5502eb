"""Normalization of the backend's ``{statusCode, error?, data?}`` envelope.

Every failure mode, whether no response, a non-2xx status, a malformed body
or a structured server error, ends up in ``ResponseEnvelope.error`` so callers
have a single failure path. The decoder never raises.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from cratebytes.transport import TransportErr, TransportErrorKind, TransportResult

T = TypeVar("T")

SUCCESS_CODES = (200, 204)
NO_VALID_RESPONSE = "Failed to get a valid response from the API"


class ErrorKind(Enum):
    TRANSPORT = "transport"
    PROTOCOL = "protocol"
    DECODE = "decode"
    APPLICATION = "application"


@dataclass(frozen=True)
class ApiError:
    message: str
    kind: ErrorKind = ErrorKind.APPLICATION

    def __str__(self) -> str:
        return f"[CrateBytesError]: {self.message}"


@dataclass
class ResponseEnvelope(Generic[T]):
    success: bool
    status_code: int
    data: Optional[T] = None
    error: Optional[ApiError] = None

    @property
    def ok(self) -> bool:
        """True only when the call succeeded and carried a payload."""
        return self.success and self.data is not None

    @property
    def error_message(self) -> Optional[str]:
        return self.error.message if self.error else None

    def require_data(self) -> "ResponseEnvelope[T]":
        """Turn "success without data" into a failure callers cannot dereference."""
        if self.success and self.data is None:
            return failure(self.status_code, NO_VALID_RESPONSE, ErrorKind.DECODE)
        return self

    def map(self, convert: Callable[[T], Any]) -> "ResponseEnvelope[Any]":
        """Re-type the payload, keeping status and error."""
        if not self.ok:
            return ResponseEnvelope(success=self.success, status_code=self.status_code, error=self.error)
        return ResponseEnvelope(success=True, status_code=self.status_code, data=convert(self.data))


def failure(status_code: int, message: str, kind: ErrorKind) -> ResponseEnvelope[Any]:
    return ResponseEnvelope(success=False, status_code=status_code, error=ApiError(message, kind))


def _describe_transport_error(result: TransportErr) -> str:
    label = "Connection error" if result.kind is TransportErrorKind.CONNECTION_ERROR else "Protocol error"
    return f"{label}: {result.detail}" if result.detail else label


def _status_line(status_code: int, reason: str) -> str:
    return f"HTTP {status_code}: {reason}" if reason else f"HTTP {status_code}"


def _server_error(payload: Dict[str, Any]) -> Optional[ApiError]:
    raw = payload.get("error")
    if isinstance(raw, dict):
        message = raw.get("message")
        if message:
            return ApiError(str(message), ErrorKind.APPLICATION)
    elif isinstance(raw, str) and raw:
        return ApiError(raw, ErrorKind.APPLICATION)
    return None


def decode_response(
    result: TransportResult,
    parse: Optional[Callable[[Any], T]] = None,
) -> ResponseEnvelope[T]:
    """Decode a transport result into a ``ResponseEnvelope``.

    ``parse`` converts the raw ``data`` value into the target payload type.
    When it is given, a 200 response without ``data`` is a failure.
    """
    if isinstance(result, TransportErr):
        return failure(0, _describe_transport_error(result), ErrorKind.TRANSPORT)

    http_ok = 200 <= result.status_code < 300
    payload: Optional[Dict[str, Any]] = None
    if result.body.strip():
        try:
            parsed = json.loads(result.body)
        except ValueError as exc:
            if not http_ok:
                return failure(result.status_code, _status_line(result.status_code, result.reason), ErrorKind.PROTOCOL)
            return failure(result.status_code, f"Failed to parse response: {exc}", ErrorKind.DECODE)
        if not isinstance(parsed, dict):
            if not http_ok:
                return failure(result.status_code, _status_line(result.status_code, result.reason), ErrorKind.PROTOCOL)
            return failure(
                result.status_code,
                f"Failed to parse response: expected a JSON object, got {type(parsed).__name__}",
                ErrorKind.DECODE,
            )
        payload = parsed
    elif result.status_code != 204:
        if not http_ok:
            return failure(result.status_code, _status_line(result.status_code, result.reason), ErrorKind.PROTOCOL)
        return failure(result.status_code, "Failed to parse response: empty body", ErrorKind.DECODE)

    payload = payload or {}
    status_code = payload.get("statusCode", result.status_code)
    try:
        status_code = int(status_code)
    except (TypeError, ValueError, OverflowError):
        status_code = result.status_code

    if status_code not in SUCCESS_CODES or not http_ok:
        error = _server_error(payload) or ApiError(_status_line(status_code, result.reason), ErrorKind.PROTOCOL)
        return ResponseEnvelope(success=False, status_code=status_code, error=error)

    raw_data = payload.get("data")
    if raw_data is None:
        if parse is not None and status_code == 200:
            return failure(status_code, NO_VALID_RESPONSE, ErrorKind.DECODE)
        return ResponseEnvelope(success=True, status_code=status_code)

    if parse is None:
        return ResponseEnvelope(success=True, status_code=status_code, data=raw_data)
    try:
        data = parse(raw_data)
    except (KeyError, TypeError, ValueError, AttributeError, OverflowError) as exc:
        return failure(status_code, f"Failed to parse response: {exc}", ErrorKind.DECODE)
    return ResponseEnvelope(success=True, status_code=status_code, data=data)
