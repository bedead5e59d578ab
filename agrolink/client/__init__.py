"""Resilient client for the generative-AI service.

Import what you need directly from this package::

    from agrolink.client import AgriIntelligenceClient, GeminiTransport, RetryPolicy
"""

from __future__ import annotations

from agrolink.client.errors import (
    AgrolinkError,
    ConfigurationError,
    FatalServiceError,
    InvalidInputError,
    MalformedResponseError,
    RequestCancelledError,
    ServiceError,
    TransientServiceError,
    classify_error,
)
from agrolink.client.retry import RetryPolicy, RetryState, call_with_retry, compute_backoff
from agrolink.client.service import AgriIntelligenceClient
from agrolink.client.transport import GeminiTransport, GenerationRequest, InlineImage, Transport

__all__ = [
    "AgriIntelligenceClient",
    "AgrolinkError",
    "ConfigurationError",
    "FatalServiceError",
    "GeminiTransport",
    "GenerationRequest",
    "InlineImage",
    "InvalidInputError",
    "MalformedResponseError",
    "RequestCancelledError",
    "RetryPolicy",
    "RetryState",
    "ServiceError",
    "TransientServiceError",
    "Transport",
    "call_with_retry",
    "classify_error",
    "compute_backoff",
]
