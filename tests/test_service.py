"""Tests for AgriIntelligenceClient - operations over a stub transport."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from agrolink._catalog import AUDIT_LOG_SOURCES
from agrolink.client.errors import (
    FatalServiceError,
    InvalidInputError,
    MalformedResponseError,
    RequestCancelledError,
    TransientServiceError,
)
from agrolink.client.retry import RetryPolicy
from agrolink.client.service import ANALYSIS_SCHEMA, THREAT_SCHEMA, AgriIntelligenceClient
from agrolink.client.transport import GeminiTransport, GenerationRequest, Transport
from agrolink.models import AnalysisResult, ThreatAssessment

FAST = RetryPolicy(max_attempts=5, base_delay_s=0.001, max_jitter_s=0.0005)

ANALYSIS_JSON = json.dumps({
    "diagnosis": "Early blight on lower leaves",
    "confidence": 0.87,
    "recommendations": ["Remove infected foliage", "Apply copper fungicide"],
    "sustainabilityImpact": "Low chemical load",
})

THREAT_JSON = json.dumps({
    "threatLevel": "Low",
    "summary": "No anomalies",
    "confidence": 0.93,
    "riskFactors": ["Denied SSH attempt"],
})

# -----------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------


def _server_error(code: int = 500) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://example.test/models/m:generateContent")
    return httpx.HTTPStatusError(
        f"HTTP {code}", request=request, response=httpx.Response(code, request=request)
    )


class _StubTransport(Transport):
    """Replays queued outcomes: exceptions are raised, strings returned."""

    def __init__(self, outcomes: list[str | BaseException]) -> None:
        self.outcomes = list(outcomes)
        self.requests: list[GenerationRequest] = []
        self.connected = False
        self.closed = False

    async def connect(self) -> None:
        self.connected = True

    async def generate(self, request: GenerationRequest) -> str:
        self.requests.append(request)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self) -> None:
        self.closed = True


def _client(outcomes: list[str | BaseException]) -> tuple[AgriIntelligenceClient, _StubTransport]:
    transport = _StubTransport(outcomes)
    return AgriIntelligenceClient(transport, retry_policy=FAST), transport


# -----------------------------------------------------------------------
# Image analysis
# -----------------------------------------------------------------------


class TestImageAnalysis:
    """analyze_crop_image / analyze_soil_image."""

    @pytest.mark.asyncio
    async def test_crop_analysis_returns_typed_result(self) -> None:
        client, transport = _client([ANALYSIS_JSON])
        result = await client.analyze_crop_image(b"\xff\xd8jpeg")

        assert isinstance(result, AnalysisResult)
        assert result.diagnosis == "Early blight on lower leaves"
        assert result.confidence == 0.87
        assert result.recommendations == ("Remove infected foliage", "Apply copper fungicide")
        assert result.sustainability_impact == "Low chemical load"

        request = transport.requests[0]
        assert request.model == "gemini-3-flash-preview"
        assert request.image is not None and request.image.mime_type == "image/jpeg"
        assert request.response_schema == ANALYSIS_SCHEMA
        assert "crop" in request.prompt.lower()

    @pytest.mark.asyncio
    async def test_soil_analysis_uses_soil_prompt(self) -> None:
        client, transport = _client([ANALYSIS_JSON])
        await client.analyze_soil_image(b"img", "image/png")
        request = transport.requests[0]
        assert "soil" in request.prompt.lower()
        assert request.image is not None and request.image.mime_type == "image/png"

    @pytest.mark.asyncio
    async def test_empty_image_rejected_before_network(self) -> None:
        client, transport = _client([ANALYSIS_JSON])
        with pytest.raises(InvalidInputError):
            await client.analyze_crop_image(b"")
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_non_image_mime_rejected(self) -> None:
        client, transport = _client([ANALYSIS_JSON])
        with pytest.raises(InvalidInputError):
            await client.analyze_soil_image(b"data", "application/pdf")
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_missing_fields_are_malformed(self) -> None:
        client, transport = _client([json.dumps({"diagnosis": "x"}), ANALYSIS_JSON])
        with pytest.raises(MalformedResponseError):
            await client.analyze_crop_image(b"img")
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_non_json_is_malformed(self) -> None:
        client, _ = _client(["Sorry, I cannot help with that."])
        with pytest.raises(MalformedResponseError):
            await client.analyze_crop_image(b"img")

    @pytest.mark.asyncio
    async def test_confidence_out_of_range_is_malformed(self) -> None:
        payload = json.loads(ANALYSIS_JSON) | {"confidence": 87}
        client, _ = _client([json.dumps(payload)])
        with pytest.raises(MalformedResponseError):
            await client.analyze_crop_image(b"img")

    @pytest.mark.asyncio
    async def test_retries_transient_then_succeeds(self) -> None:
        client, transport = _client([_server_error(429), ANALYSIS_JSON])
        result = await client.analyze_crop_image(b"img")
        assert result.confidence == 0.87
        assert len(transport.requests) == 2


# -----------------------------------------------------------------------
# Free-text operations
# -----------------------------------------------------------------------


class TestFreeText:
    """generate_strategic_report / get_climate_outlook."""

    @pytest.mark.asyncio
    async def test_report(self) -> None:
        client, transport = _client(["## Strategic report"])
        text = await client.generate_strategic_report("Yields up 12%")
        assert text == "## Strategic report"

        request = transport.requests[0]
        assert request.model == "gemini-3-pro-preview"
        assert request.use_search is True
        assert request.thinking_budget == 4000
        assert request.response_schema is None
        assert "Yields up 12%" in request.prompt

    @pytest.mark.asyncio
    async def test_blank_report_context_rejected(self) -> None:
        client, transport = _client(["x"])
        with pytest.raises(InvalidInputError):
            await client.generate_strategic_report("   ")
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_climate_outlook(self) -> None:
        client, transport = _client(["Long rains expected"])
        text = await client.get_climate_outlook(-1.2863, 36.8172)
        assert text == "Long rains expected"
        assert "Lat -1.2863, Lng 36.8172" in transport.requests[0].prompt
        assert transport.requests[0].use_search is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("lat", "lng"), [(91.0, 0.0), (-91.0, 0.0), (0.0, 181.0), (0.0, -180.5)])
    async def test_climate_coordinates_validated(self, lat: float, lng: float) -> None:
        client, transport = _client(["x"])
        with pytest.raises(InvalidInputError):
            await client.get_climate_outlook(lat, lng)
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_fatal_error_propagates(self) -> None:
        client, transport = _client([_server_error(403)])
        with pytest.raises(FatalServiceError):
            await client.get_climate_outlook(0.0, 0.0)
        assert len(transport.requests) == 1


# -----------------------------------------------------------------------
# Security log assessment
# -----------------------------------------------------------------------


class TestSecurityAssessment:
    """assess_security_logs."""

    @pytest.mark.asyncio
    async def test_two_server_faults_then_success(self) -> None:
        client, transport = _client([_server_error(500), _server_error(500), THREAT_JSON])
        result = await client.assess_security_logs([])

        assert isinstance(result, ThreatAssessment)
        assert result.threat_level == "Low"
        assert result.risk_factors == ("Denied SSH attempt",)
        assert len(transport.requests) == 3

    @pytest.mark.asyncio
    async def test_logs_serialized_into_prompt(self) -> None:
        client, transport = _client([THREAT_JSON])
        await client.assess_security_logs(AUDIT_LOG_SOURCES["live"])

        request = transport.requests[0]
        assert request.response_schema == THREAT_SCHEMA
        assert "TX-8818" in request.prompt
        assert "Unauthorized SSH Attempt" in request.prompt

    @pytest.mark.asyncio
    async def test_dict_entries_accepted(self) -> None:
        client, transport = _client([THREAT_JSON])
        entry = {"id": "X-1", "event": "Login", "actor": "ops", "status": "Denied", "timestamp": "now"}
        await client.assess_security_logs([entry])
        assert "X-1" in transport.requests[0].prompt

    @pytest.mark.asyncio
    async def test_invalid_entry_rejected(self) -> None:
        client, transport = _client([THREAT_JSON])
        with pytest.raises(InvalidInputError):
            await client.assess_security_logs([{"id": "X-1", "status": "Maybe"}])
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_exhausted_retries_surface_transient_error(self) -> None:
        client, transport = _client([_server_error(503) for _ in range(5)])
        with pytest.raises(TransientServiceError):
            await client.assess_security_logs([])
        assert len(transport.requests) == 5

    @pytest.mark.asyncio
    async def test_cancel_event_stops_pending_retry(self) -> None:
        transport = _StubTransport([_server_error(500), THREAT_JSON])
        client = AgriIntelligenceClient(
            transport, retry_policy=RetryPolicy(base_delay_s=30.0, max_jitter_s=0.0)
        )
        cancel = asyncio.Event()
        task = asyncio.create_task(client.assess_security_logs([], cancel_event=cancel))
        await asyncio.sleep(0.05)
        cancel.set()

        with pytest.raises(RequestCancelledError):
            await asyncio.wait_for(task, timeout=1.0)
        assert len(transport.requests) == 1


# -----------------------------------------------------------------------
# Lifecycle and end-to-end over HTTP
# -----------------------------------------------------------------------


class TestClientLifecycle:
    """Context manager and a full round trip through GeminiTransport."""

    @pytest.mark.asyncio
    async def test_context_manager_connects_and_closes(self) -> None:
        client, transport = _client([])
        async with client:
            assert transport.connected
        assert transport.closed

    @pytest.mark.asyncio
    async def test_gemini_round_trip_with_retry(self) -> None:
        calls: list[int] = []

        def _handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            if len(calls) < 3:
                return httpx.Response(500, json={"error": {"code": 500, "status": "INTERNAL"}})
            body = {"candidates": [{"content": {"parts": [{"text": THREAT_JSON}]}}]}
            return httpx.Response(200, json=body)

        transport = GeminiTransport(api_key="k", http_transport=httpx.MockTransport(_handler))
        async with AgriIntelligenceClient(transport, retry_policy=FAST) as client:
            result = await client.assess_security_logs([])

        assert result.summary == "No anomalies"
        assert len(calls) == 3
