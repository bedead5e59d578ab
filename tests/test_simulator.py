"""Tests for agrolink.simulator - FarmSession wiring, timers, teardown."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from agrolink.client.retry import RetryPolicy
from agrolink.client.service import AgriIntelligenceClient
from agrolink.client.transport import GenerationRequest, Transport
from agrolink.config import SessionSettings
from agrolink.generator import GeneratorState, TelemetryGenerator
from agrolink.models import GeoPosition, SensorReading
from agrolink.simulator import FarmSession

THREAT_JSON = json.dumps({
    "threatLevel": "Elevated",
    "summary": "Flagged tamper event",
    "confidence": 0.7,
    "riskFactors": ["Hardware tamper"],
})

FAST_SETTINGS = SessionSettings(tick_interval_s=0.01, sweep_interval_s=60.0)

# -----------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------


class _RoutingTransport(Transport):
    """Answers structured requests with THREAT_JSON, free text with an outlook."""

    def __init__(self, *, fail_with: BaseException | None = None) -> None:
        self.requests: list[GenerationRequest] = []
        self.fail_with = fail_with

    async def connect(self) -> None:
        """No-op."""

    async def generate(self, request: GenerationRequest) -> str:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        return THREAT_JSON if request.response_schema else "Dry spell ahead"

    async def close(self) -> None:
        """No-op."""


def _server_error() -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://example.test/")
    return httpx.HTTPStatusError("HTTP 500", request=request, response=httpx.Response(500, request=request))


# -----------------------------------------------------------------------
# Telemetry only
# -----------------------------------------------------------------------


class TestSessionTelemetry:
    """Ticking and listeners without a client."""

    @pytest.mark.asyncio
    async def test_context_manager_ticks_and_stops(self) -> None:
        gen = TelemetryGenerator()
        async with FarmSession(generator=gen, settings=FAST_SETTINGS) as session:
            assert session.active
            assert gen.state == GeneratorState.TICKING
            await asyncio.sleep(0.1)

        assert not session.active
        assert gen.state == GeneratorState.IDLE
        ticks = gen.tick_count
        assert ticks > 0
        await asyncio.sleep(0.05)
        assert gen.tick_count == ticks

    @pytest.mark.asyncio
    async def test_sync_and_async_listeners(self) -> None:
        sync_seen: list[tuple[SensorReading, ...]] = []
        async_seen: list[tuple[SensorReading, ...]] = []

        async def _async_listener(fleet: tuple[SensorReading, ...]) -> None:
            async_seen.append(fleet)

        session = FarmSession(settings=FAST_SETTINGS)
        session.add_listener(sync_seen.append)
        session.add_listener(_async_listener)
        async with session:
            await asyncio.sleep(0.1)

        assert sync_seen
        assert len(sync_seen) == len(async_seen)

    @pytest.mark.asyncio
    async def test_start_twice_raises(self) -> None:
        session = FarmSession(settings=FAST_SETTINGS)
        session.start()
        try:
            with pytest.raises(RuntimeError, match="already active"):
                session.start()
        finally:
            await session.aclose()

    @pytest.mark.asyncio
    async def test_stop_on_exception_in_body(self) -> None:
        gen = TelemetryGenerator()
        session = FarmSession(generator=gen, settings=FAST_SETTINGS)
        with pytest.raises(ValueError):
            async with session:
                raise ValueError("ui crashed")
        assert gen.state == GeneratorState.IDLE
        assert session.cancel_event.is_set()

    @pytest.mark.asyncio
    async def test_restart_after_stop(self) -> None:
        session = FarmSession(settings=FAST_SETTINGS)
        async with session:
            pass
        async with session:
            assert session.active
            assert not session.cancel_event.is_set()

    @pytest.mark.asyncio
    async def test_run_async_with_duration(self) -> None:
        gen = TelemetryGenerator()
        session = FarmSession(generator=gen, settings=FAST_SETTINGS)
        await session.run_async(duration_s=0.1)
        assert gen.tick_count > 0
        assert not session.active

    def test_run_blocking(self) -> None:
        gen = TelemetryGenerator()
        FarmSession(generator=gen, settings=FAST_SETTINGS).run(duration_s=0.1)
        assert gen.tick_count > 0

    def test_low_battery_uses_configured_threshold(self) -> None:
        assert [s.id for s in FarmSession().low_battery()] == ["SN-A102"]

        strict = FarmSession(settings=SessionSettings(battery_threshold=80))
        assert {s.id for s in strict.low_battery()} == {"SN-A102", "SN-C301", "SN-W202", "SN-C302"}

        assert FarmSession(settings=SessionSettings(battery_threshold=0)).low_battery() == []

    @pytest.mark.asyncio
    async def test_refresh_climate_without_client(self) -> None:
        with pytest.raises(RuntimeError, match="no client"):
            await FarmSession().refresh_climate()


# -----------------------------------------------------------------------
# With a client
# -----------------------------------------------------------------------


class TestSessionRemote:
    """Threat sweep and climate refresh."""

    @pytest.mark.asyncio
    async def test_start_runs_sweep_and_climate(self) -> None:
        transport = _RoutingTransport()
        client = AgriIntelligenceClient(transport)
        settings = FAST_SETTINGS.model_copy(update={"audit_source": "nodes"})

        async with FarmSession(client=client, settings=settings) as session:
            await asyncio.sleep(0.05)
            assert session.latest_threat is not None
            assert session.latest_threat.threat_level == "Elevated"
            assert session.climate_outlook == "Dry spell ahead"

        structured = [r for r in transport.requests if r.response_schema]
        assert "NX-440" in structured[0].prompt
        climate = [r for r in transport.requests if not r.response_schema]
        assert "Lat -1.2863, Lng 36.8172" in climate[0].prompt

    @pytest.mark.asyncio
    async def test_sweep_disabled(self) -> None:
        transport = _RoutingTransport()
        settings = FAST_SETTINGS.model_copy(update={"sweep_enabled": False})
        async with FarmSession(client=AgriIntelligenceClient(transport), settings=settings) as session:
            await asyncio.sleep(0.05)
            assert session.latest_threat is None
        assert all(r.response_schema is None for r in transport.requests)

    @pytest.mark.asyncio
    async def test_refresh_climate_custom_location(self) -> None:
        transport = _RoutingTransport()
        session = FarmSession(client=AgriIntelligenceClient(transport))
        text = await session.refresh_climate(GeoPosition(lat=10.5, lng=-20.25))
        assert text == "Dry spell ahead"
        assert "Lat 10.5, Lng -20.25" in transport.requests[0].prompt

    @pytest.mark.asyncio
    async def test_sweep_failure_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        transport = _RoutingTransport(fail_with=_server_error())
        client = AgriIntelligenceClient(transport, retry_policy=RetryPolicy(max_attempts=1))
        session = FarmSession(client=client)

        assert await session.run_threat_sweep() is None
        assert session.latest_threat is None
        assert "Threat sweep failed" in caplog.text

    @pytest.mark.asyncio
    async def test_stop_abandons_retrying_sweep(self) -> None:
        transport = _RoutingTransport(fail_with=_server_error())
        client = AgriIntelligenceClient(
            transport, retry_policy=RetryPolicy(base_delay_s=30.0, max_jitter_s=0.0)
        )
        settings = FAST_SETTINGS.model_copy(update={"sweep_enabled": True})
        session = FarmSession(client=client, settings=settings)

        session.start()
        await asyncio.sleep(0.05)
        await asyncio.wait_for(session.aclose(), timeout=1.0)

        assert session.cancel_event.is_set()
        assert session.latest_threat is None
        # sweep + climate: one attempt each before backing off
        assert len(transport.requests) == 2

    @pytest.mark.asyncio
    async def test_failing_listener_stops_whole_session(self, caplog: pytest.LogCaptureFixture) -> None:
        def _boom(_fleet: tuple[SensorReading, ...]) -> None:
            raise RuntimeError("dashboard render failed")

        transport = _RoutingTransport()
        gen = TelemetryGenerator()
        settings = SessionSettings(tick_interval_s=0.01, sweep_interval_s=0.02)
        session = FarmSession(generator=gen, client=AgriIntelligenceClient(transport), settings=settings)
        session.add_listener(_boom)

        session.start()
        await asyncio.sleep(0.1)
        assert not session.active
        assert gen.state == GeneratorState.IDLE
        assert session.cancel_event.is_set()
        assert "Telemetry ticker failed" in caplog.text

        # the threat sweep no longer calls out
        sent = len(transport.requests)
        await asyncio.sleep(0.1)
        assert len(transport.requests) == sent

        # a fresh start is allowed after the failure
        session.start()
        assert session.active
        await session.aclose()
