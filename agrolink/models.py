"""Common data models for agrolink.

Defines the ``SensorReading`` that the telemetry generator produces and the
typed results returned by the remote-call client.  All models are frozen:
a tick or a service call produces new objects, never mutates old ones.
"""

from __future__ import annotations

from typing import Any

try:
    from enum import StrEnum
except ImportError:  # Python < 3.11
    from enum import Enum

    class StrEnum(str, Enum):  # type: ignore[no-redef]
        """Minimal backport of ``enum.StrEnum`` for Python 3.10."""

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "AnalysisResult",
    "AuditLogEntry",
    "AuditStatus",
    "GeoPosition",
    "HistoryPoint",
    "KIND_UNITS",
    "SensorKind",
    "SensorReading",
    "SensorStatus",
    "ThreatAssessment",
]


class SensorKind(StrEnum):
    """Kinds of simulated farm sensors."""

    SOIL_MOISTURE = "soil-moisture"
    WATER_FLOW = "water-flow"
    CROP_HEALTH = "crop-health"
    SOIL_PH = "soil-ph"
    NUTRIENT = "nutrient"


# Display unit per kind.
KIND_UNITS: dict[SensorKind, str] = {
    SensorKind.SOIL_MOISTURE: "%",
    SensorKind.WATER_FLOW: "L/m",
    SensorKind.CROP_HEALTH: "%",
    SensorKind.SOIL_PH: "pH",
    SensorKind.NUTRIENT: "ppm",
}


class SensorStatus(StrEnum):
    ONLINE = "online"
    LOW_POWER = "low-power"
    OFFLINE = "offline"


class AuditStatus(StrEnum):
    AUTHORIZED = "Authorized"
    DENIED = "Denied"
    FLAGGED = "Flagged"


# ----------------------------------------------------------------------
# Telemetry
# ----------------------------------------------------------------------


class GeoPosition(BaseModel):
    """Latitude / longitude pair in degrees."""

    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class SensorReading(BaseModel):
    """Latest state of one sensor in the fleet.

    Attributes:
        id: Stable identifier, unique within the fleet (e.g. ``"SN-A101"``).
        kind: What the sensor measures; determines range, noise and unit.
        value: Current measurement in the kind's unit.
        position: Where the sensor sits; drifts slightly every tick.
        battery_percent: Remaining battery, 0-100.
        signal_percent: Mesh signal strength, 0-100.
        status: ``online``, ``low-power`` or ``offline``.  Offline sensors
            are never updated by the generator.
        verified: Cosmetic trust flag shown on the dashboard.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    kind: SensorKind
    value: float
    position: GeoPosition
    battery_percent: int = Field(default=100, ge=0, le=100)
    signal_percent: int = Field(default=100, ge=0, le=100)
    status: SensorStatus = SensorStatus.ONLINE
    verified: bool = True

    @property
    def unit(self) -> str:
        return KIND_UNITS[self.kind]

    def to_dict(self) -> dict[str, Any]:
        """Return a plain ``dict`` representation (JSON-safe types)."""
        return self.model_dump(mode="json")

    def to_json(self) -> str:
        """Return a compact JSON string."""
        return self.model_dump_json()


class HistoryPoint(BaseModel):
    """One point of a synthetic history series."""

    model_config = ConfigDict(frozen=True)

    label: str
    value: float


# ----------------------------------------------------------------------
# Remote-call results
# ----------------------------------------------------------------------


class AnalysisResult(BaseModel):
    """Structured diagnosis returned by the crop and soil image analyses.

    Field aliases match the camelCase keys of the service's JSON payload.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    diagnosis: str
    confidence: float = Field(ge=0.0, le=1.0)
    recommendations: tuple[str, ...]
    sustainability_impact: str = Field(alias="sustainabilityImpact")


class ThreatAssessment(BaseModel):
    """Structured verdict returned by the security log assessment."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    threat_level: str = Field(alias="threatLevel")
    summary: str
    confidence: float = Field(ge=0.0, le=1.0)
    risk_factors: tuple[str, ...] = Field(alias="riskFactors")


class AuditLogEntry(BaseModel):
    """One audit log line submitted for threat assessment."""

    model_config = ConfigDict(frozen=True)

    id: str
    event: str
    actor: str
    status: AuditStatus
    timestamp: str
