"""Transport layer - one request in, response text out.

Provides:
- ``GenerationRequest`` - transport-neutral description of one model call.
- ``Transport``         - abstract base class with the connect/generate/close
                          lifecycle.
- ``GeminiTransport``   - httpx implementation for the Gemini
                          ``generateContent`` REST endpoint.
"""

from __future__ import annotations

import base64
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict

from agrolink.client.errors import MalformedResponseError

__all__ = ["DEFAULT_BASE_URL", "GeminiTransport", "GenerationRequest", "InlineImage", "Transport"]

logger = logging.getLogger("agrolink.client.transport")

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class InlineImage(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: str = "image/jpeg"


class GenerationRequest(BaseModel):
    """Everything a transport needs to perform one generation call.

    Attributes:
        model: Model name, e.g. ``"gemini-3-flash-preview"``.
        prompt: Instruction text.
        image: Optional inline image sent before the prompt.
        response_schema: When set, the service is asked for JSON matching it.
        use_search: Enable search grounding.
        thinking_budget: Optional reasoning token budget.
    """

    model_config = ConfigDict(frozen=True)

    model: str
    prompt: str
    image: InlineImage | None = None
    response_schema: dict[str, Any] | None = None
    use_search: bool = False
    thinking_budget: int | None = None

    def to_payload(self) -> dict[str, Any]:
        """Build the ``generateContent`` JSON body."""
        parts: list[dict[str, Any]] = []
        if self.image is not None:
            parts.append({
                "inline_data": {
                    "mime_type": self.image.mime_type,
                    "data": base64.b64encode(self.image.data).decode("ascii"),
                }
            })
        parts.append({"text": self.prompt})

        payload: dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}

        generation_config: dict[str, Any] = {}
        if self.response_schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = self.response_schema
        if self.thinking_budget is not None:
            generation_config["thinkingConfig"] = {"thinkingBudget": self.thinking_budget}
        if generation_config:
            payload["generationConfig"] = generation_config

        if self.use_search:
            payload["tools"] = [{"google_search": {}}]
        return payload


class Transport(ABC):
    """Abstract base class for generation backends.

    ``generate`` must raise the backend's own exceptions unchanged (the retry
    layer classifies them) and return the response text on success.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open connections / resources."""

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> str:
        """Perform one call and return the model's text output."""

    @abstractmethod
    async def close(self) -> None:
        """Release resources."""


class GeminiTransport(Transport):
    """POST generation requests to the Gemini REST API.

    Parameters:
        api_key: Sent as the ``x-goog-api-key`` header.
        base_url: API root, defaults to the public ``v1beta`` endpoint.
        timeout_s: Per-request timeout in seconds.
        http_transport: Optional ``httpx`` transport (tests pass
            ``httpx.MockTransport``).
    """

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 60.0,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_s
        self._http_transport = http_transport
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            headers={"Content-Type": "application/json", "x-goog-api-key": self._api_key},
            transport=self._http_transport,
        )
        logger.info("GeminiTransport ready - endpoint: %s", self._base_url)

    async def generate(self, request: GenerationRequest) -> str:
        if self._client is None:
            raise RuntimeError("GeminiTransport is not connected")

        resp = await self._client.post(f"/models/{request.model}:generateContent", json=request.to_payload())
        resp.raise_for_status()
        logger.debug("POST %s - HTTP %d", request.model, resp.status_code)
        return _extract_text(resp)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("GeminiTransport closed")


def _extract_text(resp: httpx.Response) -> str:
    """Concatenate the text parts of the first candidate."""
    try:
        body = resp.json()
        parts = body["candidates"][0]["content"]["parts"]
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise MalformedResponseError(f"Unexpected response body: {exc!r}") from exc

    texts = [p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)]
    if not texts:
        raise MalformedResponseError("Response contained no text parts")
    return "".join(texts)
