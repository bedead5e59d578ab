"""agrolink - simulated farm telemetry and a resilient generative-AI client
for a smart-agriculture dashboard.

Quick start::

    from agrolink import FarmSession, TelemetryGenerator

    session = FarmSession(generator=TelemetryGenerator())
    session.add_listener(lambda fleet: print([s.value for s in fleet]))
    session.run(duration_s=10)
"""

from __future__ import annotations

from agrolink.client import AgriIntelligenceClient, GeminiTransport, RetryPolicy
from agrolink.generator import TelemetryGenerator, generate_history
from agrolink.models import (
    AnalysisResult,
    AuditLogEntry,
    GeoPosition,
    SensorKind,
    SensorReading,
    SensorStatus,
    ThreatAssessment,
)
from agrolink.simulator import FarmSession
from agrolink.timers import PeriodicTask

__all__ = [
    "AgriIntelligenceClient",
    "AnalysisResult",
    "AuditLogEntry",
    "FarmSession",
    "GeminiTransport",
    "GeoPosition",
    "PeriodicTask",
    "RetryPolicy",
    "SensorKind",
    "SensorReading",
    "SensorStatus",
    "TelemetryGenerator",
    "ThreatAssessment",
    "generate_history",
]

__version__ = "0.1.0"
