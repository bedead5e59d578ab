#!/usr/bin/env python3
"""Field analysis example -- assess the canned audit logs, fetch a climate
outlook and (optionally) analyse a crop photo through the retrying client.

Requires an API key in ``GEMINI_API_KEY`` (or ``API_KEY``).

Usage::

    python examples/field_analysis_example.py
    python examples/field_analysis_example.py --image leaf.jpg
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path


async def run(image: Path | None) -> None:
    from agrolink._catalog import AUDIT_LOG_SOURCES, FALLBACK_LOCATION
    from agrolink.client import AgriIntelligenceClient, GeminiTransport, ServiceError
    from agrolink.config import ClientSettings

    settings = ClientSettings()
    transport = GeminiTransport(api_key=settings.resolve_api_key(), base_url=settings.base_url)

    async with AgriIntelligenceClient(transport, retry_policy=settings.retry_policy) as client:
        print("=== Threat assessment (live logs) ===\n")
        threat = await client.assess_security_logs(AUDIT_LOG_SOURCES["live"])
        print(f"  level={threat.threat_level}  confidence={threat.confidence:.2f}")
        print(f"  {threat.summary}")
        for factor in threat.risk_factors:
            print(f"    - {factor}")

        print("\n=== Climate outlook ===\n")
        print(await client.get_climate_outlook(FALLBACK_LOCATION.lat, FALLBACK_LOCATION.lng))

        if image is not None:
            print(f"\n=== Crop analysis: {image} ===\n")
            try:
                result = await client.analyze_crop_image(image.read_bytes())
            except ServiceError as exc:
                print(f"  analysis failed: {exc}")
                return
            print(f"  {result.diagnosis} ({result.confidence:.0%})")
            for rec in result.recommendations:
                print(f"    - {rec}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Field analysis example")
    parser.add_argument("--image", type=Path, default=None, help="Optional crop photo to analyse.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)-30s %(levelname)-7s %(message)s",
        datefmt="%H:%M:%S",
    )
    asyncio.run(run(args.image))


if __name__ == "__main__":
    main()
