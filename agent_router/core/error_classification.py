"""Error classification for upstream dispatch failures.

Upstream providers fail in many shapes: httpx exceptions, SDK exceptions with
``status_code``, plain mappings decoded from JSON error bodies, OS level
connection errors. ``classify_error`` normalizes any of them once into an
``ErrorKind`` so the retry logic only has to look at the tag.

Probe order: HTTP status (``status`` / ``status_code`` / ``response.status_code``),
top-level ``code``, nested ``error.code``, ``type``. The first probe that maps
to a known kind wins. Anything unrecognized is ``UNKNOWN`` and is not retried.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import httpx


class ErrorKind(Enum):
    """Normalized failure categories."""

    NETWORK = "network"
    RATE_LIMIT = "rate_limit"
    SERVER = "server"
    AUTH = "auth"
    BAD_REQUEST = "bad_request"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self in _RETRYABLE_KINDS


_RETRYABLE_KINDS = frozenset({ErrorKind.NETWORK, ErrorKind.RATE_LIMIT, ErrorKind.SERVER})

STATUS_KINDS: Dict[int, ErrorKind] = {
    400: ErrorKind.BAD_REQUEST,
    401: ErrorKind.AUTH,
    403: ErrorKind.AUTH,
    429: ErrorKind.RATE_LIMIT,
    500: ErrorKind.SERVER,
    502: ErrorKind.SERVER,
    503: ErrorKind.SERVER,
    504: ErrorKind.SERVER,
}

# Compared upper-cased
CODE_KINDS: Dict[str, ErrorKind] = {
    "ECONNRESET": ErrorKind.NETWORK,
    "ETIMEDOUT": ErrorKind.NETWORK,
    "ECONNREFUSED": ErrorKind.NETWORK,
    "RATE_LIMIT_EXCEEDED": ErrorKind.RATE_LIMIT,
    "RATE_LIMIT_ERROR": ErrorKind.RATE_LIMIT,
    "INVALID_API_KEY": ErrorKind.AUTH,
    "AUTHENTICATION_ERROR": ErrorKind.AUTH,
    "PERMISSION_ERROR": ErrorKind.AUTH,
    "BAD_REQUEST": ErrorKind.BAD_REQUEST,
    "INVALID_REQUEST_ERROR": ErrorKind.BAD_REQUEST,
}


class UpstreamError(Exception):
    """Structured upstream failure.

    Mirrors the fields providers put on their error payloads so callers can
    raise something ``classify_error`` understands without an SDK.
    """

    def __init__(
        self,
        message: str = "",
        *,
        status: Any = None,
        code: Optional[str] = None,
        error: Optional[Mapping[str, Any]] = None,
        type: Optional[str] = None,
    ):
        super().__init__(message or code or (str(status) if status is not None else "upstream error"))
        self.status = status
        self.code = code
        self.error = error
        self.type = type


@dataclass(frozen=True)
class ErrorClassification:
    """Result of normalizing one error."""

    kind: ErrorKind
    identifier: str

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


def _field(obj: Any, name: str) -> Any:
    """Read ``name`` from a mapping key or an attribute."""
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _parse_status(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _kind_for_status(value: Any) -> Optional[ErrorKind]:
    status = _parse_status(value)
    if status is None:
        return None
    return STATUS_KINDS.get(status)


def _kind_for_code(value: Any) -> Optional[ErrorKind]:
    if value is None:
        return None
    # Some providers put the HTTP status in the code field
    by_status = _kind_for_status(value)
    if by_status is not None:
        return by_status
    if not isinstance(value, str):
        return None
    return CODE_KINDS.get(value.upper())


def _status_candidates(error: Any):
    yield _field(error, "status")
    yield _field(error, "status_code")
    yield _field(_field(error, "response"), "status_code")


def _transport_code(error: Any) -> Optional[str]:
    """Network code for httpx and builtin connection exceptions."""
    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return "ETIMEDOUT"
    if isinstance(error, (httpx.ConnectError, ConnectionRefusedError)):
        return "ECONNREFUSED"
    if isinstance(error, (httpx.TransportError, ConnectionError)):
        return "ECONNRESET"
    return None


def classify_error(error: Any) -> ErrorClassification:
    """Normalize ``error`` into an ``ErrorClassification``."""
    if error is None:
        return ErrorClassification(ErrorKind.UNKNOWN, "Unknown error")

    for status in _status_candidates(error):
        kind = _kind_for_status(status)
        if kind is not None:
            return ErrorClassification(kind, str(status))

    code = _field(error, "code")
    kind = _kind_for_code(code)
    if kind is not None:
        return ErrorClassification(kind, str(code))

    nested_code = _field(_field(error, "error"), "code")
    kind = _kind_for_code(nested_code)
    if kind is not None:
        return ErrorClassification(kind, str(nested_code))

    error_type = _field(error, "type")
    kind = _kind_for_code(error_type)
    if kind is not None:
        return ErrorClassification(kind, str(error_type))

    transport = _transport_code(error)
    if transport is not None:
        return ErrorClassification(ErrorKind.NETWORK, transport)

    return ErrorClassification(ErrorKind.UNKNOWN, describe_error(error))


def is_retryable_error(error: Any) -> bool:
    return classify_error(error).retryable


def describe_error(error: Any) -> str:
    """Short identifier for log lines: code, nested code, type, status, message."""
    for value in (
        _field(error, "code"),
        _field(_field(error, "error"), "code"),
        _field(error, "type"),
        _field(error, "status"),
        _field(error, "status_code"),
    ):
        if value not in (None, "") and not callable(value):
            return str(value)
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    message = _field(error, "message")
    if message:
        return str(message)
    return "Unknown error"
