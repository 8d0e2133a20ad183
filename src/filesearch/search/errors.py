"""Structured error taxonomy and fault classification for upstream calls."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

import httpx

from .logging import RetrievalLogSink
from .models import (
    AttemptFault,
    AttemptRaised,
    AttemptTimedOut,
    HttpErrorResponse,
    UnknownFault,
)

UNREADABLE_BODY = "Could not read error response body."
# Upper bound on reading a non-2xx body that arrives after its headers
ERROR_BODY_READ_TIMEOUT_S = 30.0

# Substrings that mark a generic exception as a network-level failure
NETWORK_ERROR_MARKERS = (
    "fetch failed",
    "connection refused",
    "connection reset",
    "network is unreachable",
    "name or service not known",
    "temporary failure in name resolution",
)


class ErrorCode(str, Enum):
    OPENAI_RATE_LIMIT = "OPENAI_RATE_LIMIT"
    OPENAI_UPSTREAM_ERROR = "OPENAI_UPSTREAM_ERROR"
    OPENAI_NETWORK_ERROR = "OPENAI_NETWORK_ERROR"
    OPENAI_TIMEOUT = "OPENAI_TIMEOUT"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


RETRYABLE_CODES = frozenset(
    {
        ErrorCode.OPENAI_RATE_LIMIT,
        ErrorCode.OPENAI_UPSTREAM_ERROR,
        ErrorCode.OPENAI_NETWORK_ERROR,
        ErrorCode.OPENAI_TIMEOUT,
    }
)


def is_retryable(code: ErrorCode) -> bool:
    return code in RETRYABLE_CODES


@dataclass(frozen=True)
class StructuredError:
    """Machine-readable failure returned to the RPC caller."""
    code: ErrorCode
    message: str
    details: Optional[Union[dict[str, Any], str]] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details is not None:
            data["details"] = self.details
        return data


class RetrievalError(Exception):
    """Final failure of a retrieveDocs invocation."""

    def __init__(self, error: StructuredError):
        super().__init__(error.message)
        self.error = error

    @property
    def code(self) -> ErrorCode:
        return self.error.code

    @property
    def details(self) -> Optional[Union[dict[str, Any], str]]:
        return self.error.details


def _is_network_failure(exc: Exception) -> bool:
    if isinstance(exc, (httpx.TransportError, ConnectionError)):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in NETWORK_ERROR_MARKERS)


async def _read_error_body(
    response: httpx.Response,
    log: Optional[RetrievalLogSink],
    timeout_s: float = ERROR_BODY_READ_TIMEOUT_S,
) -> str:
    """Best-effort read of an error body within ``timeout_s``. Never raises."""
    try:
        await asyncio.wait_for(response.aread(), timeout=timeout_s)
        return response.text
    except asyncio.TimeoutError:
        if log is not None:
            await log.error(
                f"❌ Failed to read error response body: no data after {timeout_s:g} seconds"
            )
        return UNREADABLE_BODY
    except Exception as e:
        if log is not None:
            await log.error(f"❌ Failed to read error response body: {e}")
        return UNREADABLE_BODY
    finally:
        try:
            await response.aclose()
        except httpx.HTTPError:
            pass


async def classify_fault(
    fault: AttemptFault,
    log: Optional[RetrievalLogSink] = None,
    read_timeout_s: float = ERROR_BODY_READ_TIMEOUT_S,
) -> StructuredError:
    """Map an attempt fault onto one of the five error codes.

    Only the HTTP branch has a side effect (reading the response body);
    otherwise equal faults produce equal errors.
    """
    if isinstance(fault, AttemptTimedOut):
        return StructuredError(
            code=ErrorCode.OPENAI_TIMEOUT,
            message=f"OpenAI API request timed out after {fault.timeout_s:g} seconds.",
        )

    if isinstance(fault, HttpErrorResponse):
        status = fault.status_code
        error_text = await _read_error_body(fault.response, log, read_timeout_s)
        details = {"status": status, "errorText": error_text}
        if status == 429:
            return StructuredError(
                code=ErrorCode.OPENAI_RATE_LIMIT,
                message="OpenAI API rate limit exceeded.",
                details=details,
            )
        if status >= 500:
            return StructuredError(
                code=ErrorCode.OPENAI_UPSTREAM_ERROR,
                message="OpenAI API returned an upstream server error.",
                details=details,
            )
        # 4xx: caller misconfiguration, reported as internal and not retried
        return StructuredError(
            code=ErrorCode.INTERNAL_SERVER_ERROR,
            message=f"OpenAI API request failed with status {status}.",
            details=details,
        )

    if isinstance(fault, AttemptRaised):
        exc = fault.exc
        if isinstance(exc, httpx.TimeoutException):
            return StructuredError(
                code=ErrorCode.OPENAI_TIMEOUT,
                message=str(exc) or "OpenAI API request timed out.",
            )
        if _is_network_failure(exc):
            return StructuredError(
                code=ErrorCode.OPENAI_NETWORK_ERROR,
                message=str(exc) or "Network error during OpenAI API request.",
            )
        return StructuredError(
            code=ErrorCode.INTERNAL_SERVER_ERROR,
            message=str(exc) or "An unexpected server error occurred.",
        )

    value = fault.value if isinstance(fault, UnknownFault) else fault
    return StructuredError(
        code=ErrorCode.INTERNAL_SERVER_ERROR,
        message="An unknown error occurred.",
        details=str(value),
    )
