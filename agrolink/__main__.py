"""CLI entry point for agrolink.

Usage::

    agrolink run --duration 30
    agrolink --config agrolink.yaml run --with-client
    agrolink list-sensors
    agrolink history SN-A101 --window 7d
    agrolink analyze-crop leaf.jpg
    agrolink analyze-soil sample.png --mime-type image/png
    agrolink report "Maize yields up 12% in the northern block"
    agrolink climate --lat -1.2863 --lng 36.8172
    agrolink assess-logs --source archive
    agrolink issue-license --tier "Industrial Apex"
    agrolink init-config --output agrolink.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import textwrap
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

# ---------------------------------------------------------------------------
# Sample YAML config template for init-config
# ---------------------------------------------------------------------------
_SAMPLE_CONFIG = """\
# agrolink configuration

client:
  # api_key: ...                      # default: $GEMINI_API_KEY or $API_KEY
  base_url: https://generativelanguage.googleapis.com/v1beta
  flash_model: gemini-3-flash-preview # image analysis, log assessment
  pro_model: gemini-3-pro-preview     # strategic report, climate outlook
  timeout_s: 60
  max_attempts: 5                     # total attempts per call
  base_delay_s: 1.0                   # backoff: base * 2^attempt + jitter
  max_jitter_s: 0.5

session:
  tick_interval_s: 3.0                # telemetry refresh
  sweep_interval_s: 180.0             # background threat sweep
  sweep_enabled: true
  audit_source: live                  # live, archive or nodes
  fallback_location: {lat: -1.2863, lng: 36.8172}
  battery_threshold: 25               # percent; lower is flagged

log_level: INFO                       # DEBUG, INFO, WARNING, ERROR
"""

_LOG_FORMAT = "%(asctime)s %(name)-30s %(levelname)-7s %(message)s"


# ======================================================================
# Main entry point
# ======================================================================


def main(argv: list[str] | None = None) -> None:
    epilog = textwrap.dedent("""\
        examples:
          agrolink run --duration 30
          agrolink history SN-A101 --window 7d
          agrolink analyze-crop leaf.jpg
          agrolink assess-logs --source archive
          agrolink init-config --output agrolink.yaml
    """)

    parser = argparse.ArgumentParser(
        prog="agrolink",
        description="Simulated farm telemetry and generative-AI field analysis.",
        epilog=epilog,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to YAML config file.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: from config, INFO).",
    )

    subparsers = parser.add_subparsers(dest="command", title="commands")

    # -- run ---------------------------------------------------------------
    run_parser = subparsers.add_parser(
        "run",
        help="Tick the simulated fleet and print every snapshot.",
    )
    run_parser.add_argument(
        "--duration",
        "-d",
        type=float,
        default=None,
        help="Run duration in seconds (default: indefinite, Ctrl-C to stop).",
    )
    run_parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Tick interval in seconds (default: from config, 3.0).",
    )
    run_parser.add_argument(
        "--format",
        type=str,
        default="text",
        choices=["text", "json"],
        help="Output format (default: text).",
    )
    run_parser.add_argument(
        "--with-client",
        action="store_true",
        help="Also run the threat sweep and climate refresh (needs an API key).",
    )

    # -- list-sensors ------------------------------------------------------
    subparsers.add_parser(
        "list-sensors",
        help="List the seed fleet.",
    )

    # -- history -----------------------------------------------------------
    history_parser = subparsers.add_parser(
        "history",
        help="Print a synthetic history series for one sensor.",
    )
    history_parser.add_argument("sensor_id", type=str, help="Sensor id, e.g. SN-A101.")
    history_parser.add_argument(
        "--window",
        "-w",
        type=str,
        default="24h",
        choices=["24h", "7d", "30d"],
        help="History window (default: 24h).",
    )

    # -- remote operations -------------------------------------------------
    for name, what in (("analyze-crop", "crop"), ("analyze-soil", "soil")):
        p = subparsers.add_parser(name, help=f"Analyze a {what} photo.")
        p.add_argument("image", type=str, help="Path to the image file.")
        p.add_argument(
            "--mime-type",
            type=str,
            default=None,
            help="Image mime type (default: guessed from the file extension).",
        )

    report_parser = subparsers.add_parser("report", help="Generate a strategic stakeholder report.")
    report_parser.add_argument("context", type=str, help="Free-text context for the report.")

    climate_parser = subparsers.add_parser("climate", help="Fetch a climate outlook.")
    climate_parser.add_argument("--lat", type=float, default=None, help="Latitude (default: fallback location).")
    climate_parser.add_argument("--lng", type=float, default=None, help="Longitude (default: fallback location).")

    logs_parser = subparsers.add_parser("assess-logs", help="Assess a canned audit-log source for threats.")
    logs_parser.add_argument(
        "--source",
        type=str,
        default=None,
        choices=["live", "archive", "nodes"],
        help="Audit log source (default: from config, live).",
    )

    # -- issue-license -----------------------------------------------------
    license_parser = subparsers.add_parser("issue-license", help="Issue a simulated license key.")
    license_parser.add_argument(
        "--tier",
        type=str,
        default="Industrial Apex",
        choices=["Boutique Estate", "Industrial Apex", "Sovereign Protocol"],
        help="Plan tier (default: Industrial Apex).",
    )

    # -- init-config -------------------------------------------------------
    init_parser = subparsers.add_parser(
        "init-config",
        help="Generate a sample YAML configuration file.",
    )
    init_parser.add_argument(
        "--output",
        "-o",
        type=str,
        default=None,
        help="Write config to this file instead of stdout.",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return

    # -- Dispatch ----------------------------------------------------------
    if args.command == "init-config":
        _cmd_init_config(args.output)
        return
    if args.command == "list-sensors":
        _cmd_list_sensors()
        return
    if args.command == "issue-license":
        _cmd_issue_license(args.tier)
        return

    cfg = _load_config(args.config)
    logging.basicConfig(
        level=getattr(logging, args.log_level or cfg.log_level.upper(), logging.INFO),
        format=_LOG_FORMAT,
        datefmt="%H:%M:%S",
    )

    if args.command == "run":
        _cmd_run(cfg, args)
    elif args.command == "history":
        _cmd_history(args.sensor_id, args.window)
    elif args.command in ("analyze-crop", "analyze-soil"):
        _cmd_analyze(cfg, args.command, args.image, args.mime_type)
    elif args.command == "report":
        _run_remote(cfg, lambda client: client.generate_strategic_report(args.context))
    elif args.command == "climate":
        _cmd_climate(cfg, args.lat, args.lng)
    elif args.command == "assess-logs":
        _cmd_assess_logs(cfg, args.source)
    else:
        parser.print_help()


# ======================================================================
# Helpers
# ======================================================================


def _load_config(path: str | None):
    from agrolink.client.errors import ConfigurationError
    from agrolink.config import AgrolinkConfig, load_yaml_config

    if path is None:
        return AgrolinkConfig()
    try:
        return load_yaml_config(path)
    except (FileNotFoundError, ConfigurationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


def _build_client(cfg):
    from agrolink.client.service import AgriIntelligenceClient
    from agrolink.client.transport import GeminiTransport

    transport = GeminiTransport(
        api_key=cfg.client.resolve_api_key(),
        base_url=cfg.client.base_url,
        timeout_s=cfg.client.timeout_s,
    )
    return AgriIntelligenceClient(
        transport,
        retry_policy=cfg.client.retry_policy,
        flash_model=cfg.client.flash_model,
        pro_model=cfg.client.pro_model,
    )


def _run_remote(cfg, operation: Callable[[Any], Awaitable[Any]]) -> None:
    """Run one client operation and print its result; exit 1 on failure."""
    from agrolink.client.errors import AgrolinkError

    async def _go() -> Any:
        async with _build_client(cfg) as client:
            return await operation(client)

    try:
        result = asyncio.run(_go())
    except AgrolinkError as exc:
        print(f"Error ({type(exc).__name__}): {exc}", file=sys.stderr)
        sys.exit(1)

    if isinstance(result, str):
        print(result)
    else:
        print(result.model_dump_json(indent=2))


def _format_reading(reading) -> str:
    return (
        f"[{reading.id:<8s}] {reading.value:>9.2f} {reading.unit:<4s} "
        f"(kind={reading.kind.value}, status={reading.status.value}, "
        f"at={reading.position.lat:.5f},{reading.position.lng:.5f})"
    )


# ======================================================================
# Command implementations
# ======================================================================


def _cmd_run(cfg, args: argparse.Namespace) -> None:
    """Run the session and print every fleet snapshot."""
    from agrolink.simulator import FarmSession

    settings = cfg.session
    if args.interval is not None:
        settings = settings.model_copy(update={"tick_interval_s": args.interval})

    def _print_snapshot(fleet) -> None:
        if args.format == "json":
            print(json.dumps([s.to_dict() for s in fleet]))
        else:
            for reading in fleet:
                flag = " LOW BATTERY" if reading.battery_percent < settings.battery_threshold else ""
                print(_format_reading(reading) + flag)
            print()
        sys.stdout.flush()

    if args.with_client:
        from agrolink.client.errors import ConfigurationError

        try:
            client = _build_client(cfg)
        except ConfigurationError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(1)

        async def _go() -> None:
            async with client:
                session = FarmSession(client=client, settings=settings)
                session.add_listener(_print_snapshot)
                await session.run_async(duration_s=args.duration)

        try:
            asyncio.run(_go())
        except KeyboardInterrupt:
            logging.getLogger("agrolink").info("Interrupted by user")
    else:
        session = FarmSession(settings=settings)
        session.add_listener(_print_snapshot)
        session.run(duration_s=args.duration)


def _cmd_list_sensors() -> None:
    from agrolink._catalog import INITIAL_FLEET

    print(f"\n{'Id':<10} {'Kind':<14} {'Value':>8} {'Unit':<5} {'Battery':>7} {'Signal':>7} {'Status':<10}")
    print("-" * 68)
    for s in INITIAL_FLEET:
        print(
            f"{s.id:<10} {s.kind.value:<14} {s.value:>8.2f} {s.unit:<5} "
            f"{s.battery_percent:>6d}% {s.signal_percent:>6d}% {s.status.value:<10}"
        )
    print()


def _cmd_history(sensor_id: str, window: str) -> None:
    from agrolink.generator import TelemetryGenerator

    gen = TelemetryGenerator()
    try:
        series = gen.sensor_history(sensor_id, window)
    except KeyError:
        valid = ", ".join(s.id for s in gen.sensors)
        print(f"Error: unknown sensor '{sensor_id}'.")
        print(f"Available sensors: {valid}")
        sys.exit(1)

    print(f"\nHistory for {sensor_id} ({window}):\n")
    for point in series:
        print(f"{point.label:>6}  {point.value:>9.2f}")
    print()


def _cmd_analyze(cfg, command: str, image_path: str, mime_type: str | None) -> None:
    import mimetypes

    path = Path(image_path)
    if not path.is_file():
        print(f"Error: image not found: {path}", file=sys.stderr)
        sys.exit(1)

    data = path.read_bytes()
    mime = mime_type or mimetypes.guess_type(path.name)[0] or "image/jpeg"
    if command == "analyze-crop":
        _run_remote(cfg, lambda client: client.analyze_crop_image(data, mime))
    else:
        _run_remote(cfg, lambda client: client.analyze_soil_image(data, mime))


def _cmd_climate(cfg, lat: float | None, lng: float | None) -> None:
    fallback = cfg.session.fallback_location
    lat = fallback.lat if lat is None else lat
    lng = fallback.lng if lng is None else lng
    _run_remote(cfg, lambda client: client.get_climate_outlook(lat, lng))


def _cmd_assess_logs(cfg, source: str | None) -> None:
    from agrolink._catalog import AUDIT_LOG_SOURCES

    logs = AUDIT_LOG_SOURCES[source or cfg.session.audit_source]
    _run_remote(cfg, lambda client: client.assess_security_logs(logs))


def _cmd_issue_license(tier: str) -> None:
    from agrolink.licenses import LicenseRegistry, PlanTier

    lic = LicenseRegistry(seed_defaults=False).issue(PlanTier(tier))
    print(f"{lic.key}  ({lic.tier.value}, expires unclaimed in 5 minutes)")


def _cmd_init_config(output_path: str | None) -> None:
    if output_path:
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        Path(output_path).write_text(_SAMPLE_CONFIG)
        print(f"Sample config written to {output_path}")
    else:
        print(_SAMPLE_CONFIG)


# ======================================================================
if __name__ == "__main__":
    main()
