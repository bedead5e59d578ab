"""Error taxonomy for remote calls.

Every failure that leaves the client is one of the :class:`ServiceError`
subclasses below.  :func:`classify_error` is the only place that inspects raw
transport exceptions; everything downstream branches on type.
"""

from __future__ import annotations

import httpx

__all__ = [
    "AgrolinkError",
    "ConfigurationError",
    "FatalServiceError",
    "InvalidInputError",
    "MalformedResponseError",
    "RequestCancelledError",
    "ServiceError",
    "TransientServiceError",
    "classify_error",
]

# HTTP codes worth retrying: rate limiting and server faults.
TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

# Gemini's ``error.status`` values carrying the same meaning.
TRANSIENT_RPC_STATUSES = frozenset({"RESOURCE_EXHAUSTED", "INTERNAL", "UNAVAILABLE"})


class AgrolinkError(Exception):
    """Base exception for all agrolink errors."""


class ConfigurationError(AgrolinkError):
    """Raised when configuration is invalid or missing."""


class ServiceError(AgrolinkError):
    """Base class for failed remote calls."""

    retryable = False

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientServiceError(ServiceError):
    """Rate limiting or a server-side fault; worth retrying."""

    retryable = True


class FatalServiceError(ServiceError):
    """Bad request, auth failure, policy rejection - retrying will not help."""


class MalformedResponseError(ServiceError):
    """The service answered but the payload does not match the expected shape."""


class InvalidInputError(ServiceError):
    """Rejected locally before any network call was made."""


class RequestCancelledError(ServiceError):
    """The owning session was torn down while the call was waiting to retry."""


def _rpc_status(response: httpx.Response) -> str | None:
    """Extract ``error.status`` from a Google-style JSON error body."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        status = body["error"].get("status")
        return status if isinstance(status, str) else None
    return None


def classify_error(exc: BaseException) -> ServiceError:
    """Map any exception raised by a remote call onto the error taxonomy.

    Already-classified errors are returned unchanged.  The returned error
    keeps *exc* as its ``__cause__``.
    """
    if isinstance(exc, ServiceError):
        return exc

    if isinstance(exc, httpx.HTTPStatusError):
        code = exc.response.status_code
        rpc_status = _rpc_status(exc.response)
        message = f"HTTP {code}" + (f" ({rpc_status})" if rpc_status else "") + f" from {exc.request.url}"
        if code in TRANSIENT_STATUS_CODES or rpc_status in TRANSIENT_RPC_STATUSES:
            err: ServiceError = TransientServiceError(message, status_code=code)
        else:
            err = FatalServiceError(message, status_code=code)
    elif isinstance(exc, httpx.TransportError):
        # Connection resets, timeouts, protocol errors: the RPC never completed.
        err = TransientServiceError(f"RPC failed: {exc!r}")
    else:
        err = FatalServiceError(f"{type(exc).__name__}: {exc}")

    err.__cause__ = exc
    return err
