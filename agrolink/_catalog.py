"""Built-in seed data: the demo sensor fleet and canned audit logs."""

from __future__ import annotations

from agrolink.models import (
    AuditLogEntry,
    AuditStatus,
    GeoPosition,
    SensorKind,
    SensorReading,
    SensorStatus,
)

__all__ = ["AUDIT_LOG_SOURCES", "FALLBACK_LOCATION", "INITIAL_FLEET"]

# Used when no device location is available (Nairobi hub).
FALLBACK_LOCATION = GeoPosition(lat=-1.2863, lng=36.8172)


def _sensor(
    sensor_id: str,
    kind: SensorKind,
    value: float,
    lat: float,
    lng: float,
    battery: int,
    signal: int,
    status: SensorStatus = SensorStatus.ONLINE,
) -> SensorReading:
    return SensorReading(
        id=sensor_id,
        kind=kind,
        value=value,
        position=GeoPosition(lat=lat, lng=lng),
        battery_percent=battery,
        signal_percent=signal,
        status=status,
        verified=True,
    )


INITIAL_FLEET: tuple[SensorReading, ...] = (
    _sensor("SN-A101", SensorKind.SOIL_MOISTURE, 42.4, -1.2863, 36.8172, 88, 95),
    _sensor("SN-A102", SensorKind.SOIL_MOISTURE, 38.1, -1.2855, 36.8210, 12, 82, SensorStatus.LOW_POWER),
    _sensor("SN-W201", SensorKind.WATER_FLOW, 8.4, -1.2900, 36.8150, 95, 98),
    _sensor("SN-PH401", SensorKind.SOIL_PH, 6.8, -1.2880, 36.8200, 92, 91),
    _sensor("SN-C301", SensorKind.CROP_HEALTH, 94.2, -1.2820, 36.8190, 76, 45),
    _sensor("SN-A103", SensorKind.SOIL_MOISTURE, 45.9, -1.2875, 36.8185, 81, 89),
    _sensor("SN-W202", SensorKind.WATER_FLOW, 12.1, -1.2915, 36.8160, 74, 92),
    _sensor("SN-PH402", SensorKind.SOIL_PH, 6.2, -1.2890, 36.8215, 89, 85),
    _sensor("SN-C302", SensorKind.CROP_HEALTH, 88.5, -1.2835, 36.8195, 62, 78),
    _sensor("SN-N501", SensorKind.NUTRIENT, 240.0, -1.2850, 36.8220, 97, 99),
)


AUDIT_LOG_SOURCES: dict[str, tuple[AuditLogEntry, ...]] = {
    "live": (
        AuditLogEntry(id="TX-8821", event="Encryption Key Rotation", actor="System Auto-Task",
                      status=AuditStatus.AUTHORIZED, timestamp="2m ago"),
        AuditLogEntry(id="TX-8820", event="Biometric Access Sector 4", actor="Dr. Elena Vance",
                      status=AuditStatus.AUTHORIZED, timestamp="15m ago"),
        AuditLogEntry(id="TX-8819", event="Mesh-Net Firmware Update", actor="Command Hub Alpha",
                      status=AuditStatus.AUTHORIZED, timestamp="1h ago"),
        AuditLogEntry(id="TX-8818", event="Unauthorized SSH Attempt", actor="IP: 192.168.1.204",
                      status=AuditStatus.DENIED, timestamp="3h ago"),
    ),
    "archive": (
        AuditLogEntry(id="AX-1022", event="System-Wide Entropy Audit", actor="UN Compliance Bot",
                      status=AuditStatus.AUTHORIZED, timestamp="2d ago"),
        AuditLogEntry(id="AX-1021", event="Credential Escalation Attempt", actor="Guest-VPN-02",
                      status=AuditStatus.FLAGGED, timestamp="3d ago"),
    ),
    "nodes": (
        AuditLogEntry(id="NX-440", event="Hardware Tamper Triggered", actor="Sensor-A102",
                      status=AuditStatus.FLAGGED, timestamp="10m ago"),
    ),
}
