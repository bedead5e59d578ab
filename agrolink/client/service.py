"""AgriIntelligenceClient - the typed operations the dashboard calls.

Each operation validates its input locally, builds a
:class:`~agrolink.client.transport.GenerationRequest`, runs it through
:func:`~agrolink.client.retry.call_with_retry` and, for structured results,
validates the JSON into a frozen pydantic model.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from collections.abc import Mapping, Sequence
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from agrolink.client.errors import InvalidInputError, MalformedResponseError
from agrolink.client.retry import RetryPolicy, call_with_retry
from agrolink.client.transport import GenerationRequest, InlineImage, Transport
from agrolink.models import AnalysisResult, AuditLogEntry, ThreatAssessment

__all__ = ["AgriIntelligenceClient", "ANALYSIS_SCHEMA", "THREAT_SCHEMA"]

logger = logging.getLogger("agrolink.client")

M = TypeVar("M", bound=BaseModel)

FLASH_MODEL = "gemini-3-flash-preview"
PRO_MODEL = "gemini-3-pro-preview"
REPORT_THINKING_BUDGET = 4000

ANALYSIS_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "diagnosis": {"type": "STRING"},
        "confidence": {"type": "NUMBER"},
        "recommendations": {"type": "ARRAY", "items": {"type": "STRING"}},
        "sustainabilityImpact": {"type": "STRING"},
    },
    "required": ["diagnosis", "confidence", "recommendations", "sustainabilityImpact"],
}

THREAT_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "threatLevel": {"type": "STRING"},
        "summary": {"type": "STRING"},
        "confidence": {"type": "NUMBER"},
        "riskFactors": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": ["threatLevel", "summary", "confidence", "riskFactors"],
}

CROP_PROMPT = (
    "Analyze this crop image for health, pests, and nutrient deficiencies. "
    "Provide a professional diagnosis and sustainable recommendations in JSON format. "
    "Report confidence as a number between 0 and 1."
)
SOIL_PROMPT = (
    "Analyze this soil sample. Identify soil type and nutrient markers. "
    "Provide professional management advice in JSON format. "
    "Report confidence as a number between 0 and 1."
)


class AgriIntelligenceClient:
    """Typed client for crop/soil image analysis, reports, climate outlooks
    and audit-log threat assessment.

    Example::

        transport = GeminiTransport(api_key=os.environ["GEMINI_API_KEY"])
        async with AgriIntelligenceClient(transport) as client:
            result = await client.analyze_crop_image(Path("leaf.jpg").read_bytes())

    Parameters:
        transport:
            Backend performing the actual calls.
        retry_policy:
            Attempt budget and backoff shared by every operation.
        flash_model / pro_model:
            Model names for the fast (image, logs) and deep (report,
            climate) operations.
        rng:
            Jitter source for backoff delays.

    The client keeps no per-call state, so operations may run concurrently.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        retry_policy: RetryPolicy | None = None,
        flash_model: str = FLASH_MODEL,
        pro_model: str = PRO_MODEL,
        rng: random.Random | None = None,
    ) -> None:
        self.transport = transport
        self.retry_policy = retry_policy or RetryPolicy()
        self.flash_model = flash_model
        self.pro_model = pro_model
        self._rng = rng

    async def __aenter__(self) -> AgriIntelligenceClient:
        await self.transport.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.transport.close()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def analyze_crop_image(
        self,
        image: bytes,
        mime_type: str = "image/jpeg",
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> AnalysisResult:
        """Diagnose crop health, pests and nutrient deficiencies from a photo."""
        return await self._analyze_image(image, mime_type, CROP_PROMPT, "crop analysis", cancel_event)

    async def analyze_soil_image(
        self,
        image: bytes,
        mime_type: str = "image/jpeg",
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> AnalysisResult:
        """Identify soil type and nutrient markers from a photo."""
        return await self._analyze_image(image, mime_type, SOIL_PROMPT, "soil analysis", cancel_event)

    async def generate_strategic_report(
        self,
        context_text: str,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> str:
        """Free-text stakeholder report grounded with web search."""
        if not context_text or not context_text.strip():
            raise InvalidInputError("Report context must not be empty")
        request = GenerationRequest(
            model=self.pro_model,
            prompt=(
                "Generate a fact-checked strategic report for stakeholders. "
                f"Context: {context_text}. "
                "Use Google Search to cross-reference with current agricultural trends."
            ),
            use_search=True,
            thinking_budget=REPORT_THINKING_BUDGET,
        )
        return await self._invoke(request, "strategic report", cancel_event)

    async def get_climate_outlook(
        self,
        lat: float,
        lng: float,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> str:
        """Free-text climate outlook for a coordinate."""
        if not -90.0 <= lat <= 90.0 or not -180.0 <= lng <= 180.0:
            raise InvalidInputError(f"Coordinates out of range: lat={lat}, lng={lng}")
        request = GenerationRequest(
            model=self.pro_model,
            prompt=f"Provide an accurate climate outlook for Lat {lat}, Lng {lng} using real-time search data.",
            use_search=True,
        )
        return await self._invoke(request, "climate outlook", cancel_event)

    async def assess_security_logs(
        self,
        entries: Sequence[AuditLogEntry | Mapping[str, Any]],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> ThreatAssessment:
        """Ask the service for a threat verdict over a list of audit log entries.

        An empty list is allowed (the background sweep sends one).
        """
        logs = [_as_log_entry(e) for e in entries]
        request = GenerationRequest(
            model=self.flash_model,
            prompt="Analyze audit logs for threats: " + json.dumps([e.model_dump(mode="json") for e in logs]),
            response_schema=THREAT_SCHEMA,
        )
        text = await self._invoke(request, "security assessment", cancel_event)
        return _parse(text, ThreatAssessment)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _analyze_image(
        self,
        image: bytes,
        mime_type: str,
        prompt: str,
        label: str,
        cancel_event: asyncio.Event | None,
    ) -> AnalysisResult:
        if not image:
            raise InvalidInputError("Image payload is empty")
        if not mime_type.startswith("image/"):
            raise InvalidInputError(f"Unsupported mime type '{mime_type}'")
        request = GenerationRequest(
            model=self.flash_model,
            prompt=prompt,
            image=InlineImage(data=image, mime_type=mime_type),
            response_schema=ANALYSIS_SCHEMA,
        )
        text = await self._invoke(request, label, cancel_event)
        return _parse(text, AnalysisResult)

    async def _invoke(
        self,
        request: GenerationRequest,
        label: str,
        cancel_event: asyncio.Event | None,
    ) -> str:
        logger.debug("Starting %s on %s", label, request.model)
        return await call_with_retry(
            lambda: self.transport.generate(request),
            self.retry_policy,
            cancel_event=cancel_event,
            rng=self._rng,
            label=label,
        )


def _as_log_entry(entry: AuditLogEntry | Mapping[str, Any]) -> AuditLogEntry:
    if isinstance(entry, AuditLogEntry):
        return entry
    try:
        return AuditLogEntry.model_validate(entry)
    except ValidationError as exc:
        raise InvalidInputError(f"Invalid audit log entry: {exc.error_count()} error(s)") from exc


def _parse(text: str, model: type[M]) -> M:
    """Validate the service's JSON text into *model*."""
    try:
        return model.model_validate_json(text)
    except ValidationError as exc:
        raise MalformedResponseError(
            f"{model.__name__} payload failed validation: {exc.error_count()} error(s)"
        ) from exc
