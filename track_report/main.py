#!/usr/bin/env python3
"""
Track Report CLI

Command-line interface for the device track report engine.

Usage:
    python -m track_report.main report <points.json> [options]
    python -m track_report.main device <device_id> --start YYYY-MM-DD --end YYYY-MM-DD [options]

Examples:
    # Summarize a JSON file of points with the offline summarizer
    python -m track_report.main report samples/points.json --mock-llm

    # Timeline only, no summarizer call
    python -m track_report.main report samples/points.json --timeline-only

    # Report for stored tracks of device 7
    python -m track_report.main device 7 --start 2024-05-01 --end 2024-05-02 --db tracks.db
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .config import get_config
from .engine import ReportEngine
from .errors import EmptyInputError, InvalidPointError, NoTracksFoundError, TrackReportError
from .models import DeviceReport
from .pipeline import ReportPipeline
from .storage import TrackStore
from .utils.helpers import load_config, setup_logging


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="track-report",
        description="Summarize device location tracks into statistics, a timeline and a narrative",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-c", "--config",
        type=str,
        default=None,
        help="Path to configuration YAML file"
    )
    common.add_argument(
        "--json-output",
        type=str,
        default=None,
        help="Output file for the full JSON report"
    )
    common.add_argument(
        "--db",
        type=str,
        default=None,
        help="SQLite database for tracks and reports (default: TRACK_REPORT_DB)"
    )
    common.add_argument(
        "--mock-llm",
        action="store_true",
        help="Use the offline mock summarizer"
    )
    common.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging to console"
    )
    common.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress all console output except errors"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    report = subparsers.add_parser(
        "report",
        parents=[common],
        help="Report on points from a JSON file",
    )
    report.add_argument(
        "points_file",
        type=str,
        help="JSON file: a list of points, or an object with device_id and points"
    )
    report.add_argument(
        "--device-id",
        type=int,
        default=None,
        help="Device id for the report (overrides the file)"
    )
    report.add_argument(
        "--timeline-only",
        action="store_true",
        help="Print statistics and timeline without calling the summarizer"
    )

    device = subparsers.add_parser(
        "device",
        parents=[common],
        help="Report on stored tracks of a device",
    )
    device.add_argument("device_id", type=int, help="Device identifier")
    device.add_argument("--start", required=True, help="First day (YYYY-MM-DD, UTC)")
    device.add_argument("--end", required=True, help="Last day (YYYY-MM-DD, UTC)")

    return parser


def load_points_file(file_path: str) -> tuple[int | None, list[dict[str, Any]]]:
    """
    Load raw points from a JSON file.

    Returns:
        (device_id or None, list of raw point mappings)
    """
    path = Path(file_path)

    if not path.exists():
        raise FileNotFoundError(f"Points file not found: {file_path}")

    if not path.suffix.lower() == ".json":
        raise ValueError(f"Expected JSON file, got: {path.suffix}")

    with open(path, "r") as f:
        data = json.load(f)

    if isinstance(data, list):
        return None, data

    if isinstance(data, dict) and isinstance(data.get("points"), list):
        return data.get("device_id"), data["points"]

    raise ValueError("Points file must hold a list of points or an object with 'points'")


def resolve_config(config_path: str | None) -> dict[str, Any]:
    """Load the given config file, or the default one when present."""
    if config_path:
        return load_config(config_path)
    try:
        return load_config()
    except FileNotFoundError:
        return {}


def save_output(report: DeviceReport, json_output: str | None) -> None:
    """Save the full report as JSON."""
    if not json_output:
        return

    path = Path(json_output)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        f.write(report.model_dump_json(indent=2, by_alias=True))


def print_report(console: Console, report: DeviceReport) -> None:
    """Print a report using rich formatting."""
    if report.ai_summary.narrative:
        console.print(Panel(
            report.ai_summary.narrative,
            title="[bold green]Track Narrative[/bold green]",
            border_style="green"
        ))

    print_overview(console, report.overview)
    print_timeline(console, report.timeline)

    if report.report_id is not None:
        console.print(f"\n[dim]Stored as report #{report.report_id}[/dim]")
    console.print(f"[dim]Generated in {report.processing_time_seconds:.2f}s[/dim]")

    if report.warnings:
        console.print("\n[bold yellow]Warnings:[/bold yellow]")
        for warning in report.warnings:
            console.print(f"  [yellow]! {warning}[/yellow]")


def print_overview(console: Console, overview) -> None:
    """Print the summary statistics table."""
    table = Table(title="Track Overview")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")

    last = overview.last_location
    table.add_row("Points", str(overview.total_points))
    table.add_row("Distance", overview.total_distance)
    table.add_row("Time", overview.total_time)
    table.add_row("Avg Accuracy", f"{overview.avg_accuracy:.1f} m")
    table.add_row("Motion Status", overview.motion_status)
    table.add_row("Last Location", f"{last.latitude:.5f}, {last.longitude:.5f} ({last.accuracy_level})")

    color = "red" if overview.anomalies else "green"
    table.add_row("Confidence", f"[{color}]{overview.last_confidence}[/{color}]")
    table.add_row("Anomalies", "yes" if overview.anomalies else "no")

    console.print(table)


def print_timeline(console: Console, timeline: list[str]) -> None:
    """Print the timeline entries."""
    console.print("\n[bold]Timeline:[/bold]")
    for line in timeline:
        console.print(f"  - {line}")


async def run_report(args: argparse.Namespace, config: dict[str, Any]) -> DeviceReport:
    """Run the pipeline for the selected subcommand."""
    db_path = args.db or get_config().storage.db_path
    store = TrackStore(db_path) if (args.db or args.command == "device") else None

    pipeline = ReportPipeline(
        config=config,
        store=store,
        use_mock_summarizer=args.mock_llm,
    )

    if args.command == "device":
        return await pipeline.build_device_report(args.device_id, args.start, args.end)

    file_device_id, points = load_points_file(args.points_file)
    device_id = args.device_id if args.device_id is not None else (file_device_id or 0)
    return await pipeline.build_report(device_id, points)


def main() -> int:
    """Main entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args()

    if args.quiet:
        log_level = "ERROR"
    elif args.verbose:
        log_level = "DEBUG"
    else:
        log_level = "WARNING"

    setup_logging(level=log_level)
    console = Console(stderr=False, quiet=args.quiet)
    errors = Console(stderr=True)

    try:
        config = resolve_config(args.config)

        if args.verbose:
            get_config().log_configuration()

        if args.command == "report" and args.timeline_only:
            _, points = load_points_file(args.points_file)
            engine = ReportEngine(config)
            print_overview(console, engine.ingest(points))
            print_timeline(console, list(engine.timeline(points)))
            return 0

        with console.status("Building report..."):
            report = asyncio.run(run_report(args, config))

        save_output(report, args.json_output)
        print_report(console, report)
        return 0

    except (FileNotFoundError, ValueError, EmptyInputError, InvalidPointError) as e:
        errors.print(f"[red]Error:[/red] {e}")
        return 1

    except NoTracksFoundError as e:
        errors.print(f"[red]No data:[/red] {e}")
        return 2

    except TrackReportError as e:
        errors.print(f"[red]Report Error:[/red] {e}")
        return 2

    except Exception as e:
        errors.print(f"[red]Unexpected Error:[/red] {e}")

        if args.verbose:
            import traceback
            traceback.print_exc()

        return 3


if __name__ == "__main__":
    sys.exit(main())
