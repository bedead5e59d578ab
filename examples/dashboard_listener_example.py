#!/usr/bin/env python3
"""FarmSession listener examples -- 3 cases showing sync listeners, async
listeners and the synthetic history series a dashboard chart would plot.

Directly runnable (no API key required).

Usage::

    python examples/dashboard_listener_example.py           # Case 1 (default)
    python examples/dashboard_listener_example.py --case 2   # Async listener
    python examples/dashboard_listener_example.py --case 3   # History chart
"""

from __future__ import annotations

import argparse

# ---------------------------------------------------------------------------
# Case 1: Sync listener -- fleet averages per tick
# ---------------------------------------------------------------------------


def run_case_1() -> None:
    """Print the average soil moisture and low-battery count on every tick."""
    from agrolink import FarmSession, SensorKind
    from agrolink.config import SessionSettings

    print("=== Case 1: Sync listener ===\n")

    session = FarmSession(settings=SessionSettings(tick_interval_s=1.0))
    gen = session.generator

    def summarise(fleet):
        print(
            f"  tick {gen.tick_count:>3d}  "
            f"soil={gen.average(SensorKind.SOIL_MOISTURE)}%  "
            f"ph={gen.average(SensorKind.SOIL_PH)}  "
            f"low-battery={len(session.low_battery())}"
        )

    session.add_listener(summarise)
    session.run(duration_s=6)


# ---------------------------------------------------------------------------
# Case 2: Async listener
# ---------------------------------------------------------------------------


def run_case_2() -> None:
    """Async listener that simulates pushing each snapshot over a socket."""
    import asyncio

    from agrolink import FarmSession
    from agrolink.config import SessionSettings

    print("=== Case 2: Async listener ===\n")

    async def push(fleet):
        await asyncio.sleep(0.01)
        drifting = fleet[0].position
        print(f"  pushed {len(fleet)} readings, {fleet[0].id} at {drifting.lat:.5f},{drifting.lng:.5f}")

    session = FarmSession(settings=SessionSettings(tick_interval_s=0.5))
    session.add_listener(push)
    session.run(duration_s=4)


# ---------------------------------------------------------------------------
# Case 3: History series
# ---------------------------------------------------------------------------


def run_case_3() -> None:
    """Render a crude text chart of the 7-day history for each kind."""
    from agrolink import TelemetryGenerator

    print("=== Case 3: History chart ===\n")

    gen = TelemetryGenerator()
    for sensor_id in ("SN-A101", "SN-W201", "SN-PH401", "SN-N501"):
        series = gen.sensor_history(sensor_id, "7d")
        values = [p.value for p in series]
        print(f"  {sensor_id} ({gen.get(sensor_id).unit}) min={min(values)} max={max(values)}")
        for point in series:
            print(f"    {point.label:>5}  {point.value:>8.2f}")
        print()


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main() -> None:
    parser = argparse.ArgumentParser(description="FarmSession listener examples")
    parser.add_argument(
        "--case", type=int, default=1, choices=[1, 2, 3], help="Which example case to run (default: 1)"
    )
    args = parser.parse_args()

    cases = {
        1: run_case_1,
        2: run_case_2,
        3: run_case_3,
    }
    cases[args.case]()


if __name__ == "__main__":
    main()
