"""Per-kind behaviour of the simulated farm sensors.

Every :class:`~agrolink.models.SensorKind` has a closed value range, a
live-tick noise variance, a (larger) history variance and a rounding
precision.  Display units live in ``agrolink.models.KIND_UNITS`` and the seed
fleet in ``_catalog.py``.
"""

from __future__ import annotations

from pydantic import BaseModel

from agrolink.models import SensorKind

__all__ = [
    "KIND_SPECS",
    "KindSpec",
    "POSITION_DRIFT_DEG",
    "clamp_value",
    "round_value",
]

# Maximum total latitude/longitude step per tick (each axis draws from
# +/- half of this).
POSITION_DRIFT_DEG = 0.0001


class KindSpec(BaseModel):
    """Constants governing one sensor kind."""

    model_config = {"frozen": True}

    min_value: float
    max_value: float
    variance: float
    history_variance: float
    decimals: int = 1


KIND_SPECS: dict[SensorKind, KindSpec] = {
    SensorKind.SOIL_MOISTURE: KindSpec(
        min_value=20, max_value=80, variance=0.5, history_variance=5,
    ),
    SensorKind.WATER_FLOW: KindSpec(
        min_value=1, max_value=30, variance=0.2, history_variance=2,
    ),
    SensorKind.SOIL_PH: KindSpec(
        min_value=4, max_value=9, variance=0.05, history_variance=0.3, decimals=2,
    ),
    SensorKind.CROP_HEALTH: KindSpec(
        min_value=60, max_value=100, variance=0.5, history_variance=1,
    ),
    SensorKind.NUTRIENT: KindSpec(
        min_value=100, max_value=500, variance=0.5, history_variance=10,
    ),
}


def clamp_value(kind: SensorKind, value: float) -> float:
    """Clamp *value* into the closed range of *kind*."""
    spec = KIND_SPECS[kind]
    return max(spec.min_value, min(spec.max_value, value))


def round_value(kind: SensorKind, value: float) -> float:
    """Round to 2 decimals for soil pH, 1 decimal otherwise."""
    return round(value, KIND_SPECS[kind].decimals)
