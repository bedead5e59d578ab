"""Telemetry generator - advances the simulated sensor fleet each tick.

The fleet is held as an immutable tuple of frozen
:class:`~agrolink.models.SensorReading` objects.  :meth:`TelemetryGenerator.tick`
builds a complete new tuple and swaps it in with a single assignment, so a
reader always sees either the previous snapshot or the next one, never a
sensor with a new value but an old position.
"""

from __future__ import annotations

import inspect
import logging
import random
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from typing import Any

from agrolink._catalog import INITIAL_FLEET
from agrolink.models import (
    GeoPosition,
    HistoryPoint,
    SensorKind,
    SensorReading,
    SensorStatus,
    StrEnum,
)
from agrolink.sensor_models import KIND_SPECS, POSITION_DRIFT_DEG, clamp_value, round_value
from agrolink.timers import PeriodicTask

__all__ = ["GeneratorState", "HISTORY_WINDOWS", "TelemetryGenerator", "generate_history"]

logger = logging.getLogger("agrolink.generator")

# window -> (number of points, spacing between points)
HISTORY_WINDOWS: dict[str, tuple[int, timedelta]] = {
    "24h": (24, timedelta(hours=1)),
    "7d": (7, timedelta(days=1)),
    "30d": (30, timedelta(days=1)),
}


class GeneratorState(StrEnum):
    IDLE = "idle"
    TICKING = "ticking"


def generate_history(
    kind: SensorKind,
    current_value: float,
    window: str = "24h",
    *,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> list[HistoryPoint]:
    """Build a plausible backward-looking series ending at *current_value*.

    Points are returned oldest first.  Each point ``i`` steps back from the
    present gets a random offset proportional to ``i``, so the series wanders
    further from the current value the older it is and the last point sits
    exactly on the (clamped) current value.

    Raises:
        ValueError: if *window* is not one of ``"24h"``, ``"7d"``, ``"30d"``.
    """
    if window not in HISTORY_WINDOWS:
        raise ValueError(f"Unknown history window '{window}'. Available: {sorted(HISTORY_WINDOWS)}")

    rng = rng or random.Random()
    now = now or datetime.now()
    points, step = HISTORY_WINDOWS[window]
    variance = KIND_SPECS[kind].history_variance

    series: list[HistoryPoint] = []
    for i in range(points - 1, -1, -1):
        at = now - i * step
        label = f"{at.hour}:00" if window == "24h" else f"{at.month}/{at.day}"
        offset = (rng.random() - 0.5) * variance * i * 0.2
        value = round_value(kind, clamp_value(kind, current_value + offset))
        series.append(HistoryPoint(label=label, value=value))
    return series


class TelemetryGenerator:
    """Owns the simulated fleet and advances it on every :meth:`tick`.

    Parameters:
        sensors:
            Seed readings.  Defaults to the built-in 10-sensor demo fleet.
            The fleet size is fixed after construction.
        rng:
            Source of randomness.  Pass a seeded ``random.Random`` for
            reproducible runs.

    Raises:
        ValueError: if two seed readings share an id.
    """

    def __init__(
        self,
        sensors: Iterable[SensorReading] | None = None,
        *,
        rng: random.Random | None = None,
    ) -> None:
        fleet = tuple(sensors) if sensors is not None else INITIAL_FLEET
        ids = [s.id for s in fleet]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Duplicate sensor ids in fleet: {duplicates}")

        self._fleet: tuple[SensorReading, ...] = fleet
        self._rng = rng or random.Random()
        self._ticker: PeriodicTask | None = None
        self.tick_count = 0

        logger.info("TelemetryGenerator initialised with %d sensors", len(fleet))

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self) -> tuple[SensorReading, ...]:
        """Advance every non-offline sensor once and return the new snapshot."""
        self._fleet = tuple(self._advance(s) for s in self._fleet)
        self.tick_count += 1
        if self.tick_count % 100 == 0:
            logger.debug("Tick %d - %d sensors", self.tick_count, len(self._fleet))
        return self._fleet

    def _advance(self, sensor: SensorReading) -> SensorReading:
        if sensor.status == SensorStatus.OFFLINE:
            return sensor

        spec = KIND_SPECS[sensor.kind]
        noise = (self._rng.random() - 0.5) * spec.variance
        value = clamp_value(sensor.kind, round_value(sensor.kind, sensor.value + noise))

        lat_drift = (self._rng.random() - 0.5) * POSITION_DRIFT_DEG
        lng_drift = (self._rng.random() - 0.5) * POSITION_DRIFT_DEG
        position = GeoPosition(
            lat=sensor.position.lat + lat_drift,
            lng=sensor.position.lng + lng_drift,
        )
        return sensor.model_copy(update={"value": value, "position": position})

    # ------------------------------------------------------------------
    # Ticking lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> GeneratorState:
        if self._ticker is not None and self._ticker.running:
            return GeneratorState.TICKING
        return GeneratorState.IDLE

    def start(
        self,
        interval_s: float = 3.0,
        on_tick: Callable[[tuple[SensorReading, ...]], Any] | None = None,
        on_error: Callable[[Exception], Any] | None = None,
    ) -> PeriodicTask:
        """Start ticking every *interval_s* seconds on the running loop.

        *on_tick* (sync or async) receives each new snapshot.  *on_error* is
        called if a tick or *on_tick* raises, after the ticker has stopped.
        Returns the owned timer; call its ``stop()`` to return to IDLE.
        """
        if self.state == GeneratorState.TICKING:
            raise RuntimeError("TelemetryGenerator is already ticking")

        async def _tick() -> None:
            snapshot = self.tick()
            if on_tick is not None:
                result = on_tick(snapshot)
                if inspect.isawaitable(result):
                    await result

        self._ticker = PeriodicTask(
            _tick, interval_s, name="telemetry-tick", on_error=on_error
        ).start()
        logger.info("Telemetry ticking every %.1fs", interval_s)
        return self._ticker

    # ------------------------------------------------------------------
    # Fleet queries
    # ------------------------------------------------------------------

    @property
    def sensors(self) -> tuple[SensorReading, ...]:
        """The latest snapshot."""
        return self._fleet

    @property
    def sensor_count(self) -> int:
        return len(self._fleet)

    def get(self, sensor_id: str) -> SensorReading:
        for sensor in self._fleet:
            if sensor.id == sensor_id:
                return sensor
        raise KeyError(sensor_id)

    def by_kind(self, kind: SensorKind) -> list[SensorReading]:
        return [s for s in self._fleet if s.kind == kind]

    def average(self, kind: SensorKind) -> float | None:
        """Mean value of all sensors of *kind*, rounded to 1 dp; ``None`` if there are none."""
        nodes = self.by_kind(kind)
        if not nodes:
            return None
        return round(sum(s.value for s in nodes) / len(nodes), 1)

    def low_battery(self, threshold: int = 25) -> list[SensorReading]:
        """Sensors whose battery is strictly below *threshold* percent."""
        return [s for s in self._fleet if s.battery_percent < threshold]

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def sensor_history(
        self,
        sensor_id: str,
        window: str = "24h",
        *,
        now: datetime | None = None,
    ) -> list[HistoryPoint]:
        """History series for one fleet sensor ending at its current value."""
        sensor = self.get(sensor_id)
        return generate_history(sensor.kind, sensor.value, window, now=now, rng=self._rng)
