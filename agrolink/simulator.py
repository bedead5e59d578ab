"""FarmSession - top-level orchestrator that owns the telemetry ticker, the
background threat sweep and the session's cancellation signal.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
import signal
import threading
from collections.abc import Callable
from typing import Any

from agrolink._catalog import AUDIT_LOG_SOURCES
from agrolink.client.errors import RequestCancelledError, ServiceError
from agrolink.client.service import AgriIntelligenceClient
from agrolink.config import SessionSettings
from agrolink.generator import TelemetryGenerator
from agrolink.models import GeoPosition, SensorReading, ThreatAssessment
from agrolink.timers import PeriodicTask

__all__ = ["FarmSession"]

logger = logging.getLogger("agrolink")

Listener = Callable[[tuple[SensorReading, ...]], Any]


class FarmSession:
    """High-level API for running the simulated farm while a user is signed in.

    Example::

        from agrolink import FarmSession

        session = FarmSession()
        session.add_listener(lambda fleet: print(fleet[0].value))
        session.run(duration_s=30)

    Parameters:
        generator:
            Telemetry generator to drive.  Defaults to the built-in fleet.
        client:
            Remote-call client for the threat sweep and climate outlook.
            ``None`` runs telemetry only.
        settings:
            Intervals, audit-log source and fallback location.

    ``start()`` launches the telemetry ticker and (with a client) the threat
    sweep plus one climate refresh.  ``stop()`` synchronously stops both
    timers and sets the cancellation event handed to every client call made
    by the session, so a pending retry backoff is abandoned at once.
    """

    def __init__(
        self,
        *,
        generator: TelemetryGenerator | None = None,
        client: AgriIntelligenceClient | None = None,
        settings: SessionSettings | None = None,
    ) -> None:
        self.generator = generator or TelemetryGenerator()
        self.client = client
        self.settings = settings or SessionSettings()
        self._listeners: list[Listener] = []
        self._ticker: PeriodicTask | None = None
        self._sweep: PeriodicTask | None = None
        self._climate_task: asyncio.Task[None] | None = None
        self._cancel_event = asyncio.Event()
        self.active = False
        self.latest_threat: ThreatAssessment | None = None
        self.climate_outlook: str | None = None

    # ------------------------------------------------------------------
    # Listeners and fleet
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> None:
        """Register a sync or async callable receiving every new fleet snapshot."""
        self._listeners.append(listener)

    async def _notify(self, snapshot: tuple[SensorReading, ...]) -> None:
        for listener in self._listeners:
            result = listener(snapshot)
            if inspect.isawaitable(result):
                await result

    def low_battery(self) -> list[SensorReading]:
        """Sensors below the configured ``battery_threshold``."""
        return self.generator.low_battery(self.settings.battery_threshold)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def cancel_event(self) -> asyncio.Event:
        return self._cancel_event

    def start(self) -> None:
        """Start ticking (and sweeping, with a client) on the running loop."""
        if self.active:
            raise RuntimeError("FarmSession is already active")

        self._cancel_event = asyncio.Event()
        self._sweep = self._climate_task = None
        self._ticker = self.generator.start(
            self.settings.tick_interval_s,
            on_tick=self._notify,
            on_error=self._on_ticker_error,
        )

        if self.client is not None:
            if self.settings.sweep_enabled:
                self._sweep = PeriodicTask(
                    self.run_threat_sweep,
                    self.settings.sweep_interval_s,
                    name="threat-sweep",
                    run_immediately=True,
                ).start()
            self._climate_task = asyncio.get_running_loop().create_task(
                self._initial_climate(), name="climate-refresh"
            )

        self.active = True
        logger.info(
            "Session started: %d sensors, tick %.1fs, sweep %s",
            self.generator.sensor_count,
            self.settings.tick_interval_s,
            f"{self.settings.sweep_interval_s:.0f}s" if self._sweep else "off",
        )

    def stop(self) -> None:
        """Stop every timer and abort in-flight retries.  Safe to call twice."""
        self._cancel_event.set()
        for timer in (self._ticker, self._sweep):
            if timer is not None:
                timer.stop()
        if self._climate_task is not None and not self._climate_task.done():
            self._climate_task.cancel()
        if self.active:
            logger.info("Session stopped after %d ticks", self.generator.tick_count)
        self.active = False

    def _on_ticker_error(self, exc: Exception) -> None:
        logger.error("Telemetry ticker failed (%s) - stopping session", exc)
        self.stop()

    async def aclose(self) -> None:
        """Stop and wait for the background tasks to unwind."""
        self._cancel_event.set()
        for timer in (self._ticker, self._sweep):
            if timer is not None:
                await timer.aclose()
        climate_task = self._climate_task
        self.stop()
        if climate_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await climate_task
        self._ticker = self._sweep = self._climate_task = None

    async def __aenter__(self) -> FarmSession:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Remote-backed features
    # ------------------------------------------------------------------

    async def run_threat_sweep(self) -> ThreatAssessment | None:
        """Assess the configured audit-log source once; keep the verdict on ``latest_threat``.

        Service failures are logged and leave the previous verdict in place.
        """
        if self.client is None:
            return None
        logs = AUDIT_LOG_SOURCES[self.settings.audit_source]
        try:
            self.latest_threat = await self.client.assess_security_logs(
                logs, cancel_event=self._cancel_event
            )
        except RequestCancelledError:
            logger.info("Threat sweep abandoned - session ended")
            return None
        except ServiceError as exc:
            logger.error("Threat sweep failed: %s", exc)
            return None
        logger.info("Threat sweep: level=%s", self.latest_threat.threat_level)
        return self.latest_threat

    async def refresh_climate(self, location: GeoPosition | None = None) -> str:
        """Fetch the climate outlook for *location* (or the fallback location).

        Raises:
            RuntimeError: if the session has no client.
            ServiceError: if the call fails.
        """
        if self.client is None:
            raise RuntimeError("FarmSession has no client configured")
        loc = location or self.settings.fallback_location
        self.climate_outlook = await self.client.get_climate_outlook(
            loc.lat, loc.lng, cancel_event=self._cancel_event
        )
        return self.climate_outlook

    async def _initial_climate(self) -> None:
        try:
            await self.refresh_climate()
        except RequestCancelledError:
            logger.info("Climate refresh abandoned - session ended")
        except ServiceError as exc:
            logger.error("Climate sync failed: %s", exc)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self, duration_s: float | None = None) -> None:
        """Blocking entry point - starts the event loop.

        Works inside environments that already run an event loop (Jupyter,
        IPython) by spawning a dedicated thread with its own loop.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None and loop.is_running():
            exc: list[BaseException | None] = [None]

            def _target() -> None:
                try:
                    asyncio.run(self.run_async(duration_s=duration_s))
                except KeyboardInterrupt:
                    logger.info("Interrupted by user")
                except BaseException as e:
                    exc[0] = e

            t = threading.Thread(target=_target, daemon=True)
            t.start()
            t.join()
            if exc[0] is not None:
                raise exc[0]
        else:
            try:
                asyncio.run(self.run_async(duration_s=duration_s))
            except KeyboardInterrupt:
                logger.info("Interrupted by user")

    async def run_async(self, duration_s: float | None = None) -> None:
        """Run the session until *duration_s* elapses or SIGINT/SIGTERM arrives."""
        # NotImplementedError: signal handlers are unsupported on Windows.
        # RuntimeError: not running in the main thread (e.g. notebook env).
        loop = asyncio.get_running_loop()
        stop_event = asyncio.Event()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, stop_event.set)

        try:
            async with self:
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=duration_s)
                    logger.info("Stop signal received - shutting down")
                except asyncio.TimeoutError:
                    logger.info("Duration reached (%.1fs) - stopping", duration_s)
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                with contextlib.suppress(NotImplementedError, RuntimeError):
                    loop.remove_signal_handler(sig)
