#!/usr/bin/env python3
"""
Catalyft coach CLI.

Runs the coaching jobs by hand and inspects athlete metrics.

Usage:
    catalyft serve                      # Run the function server
    catalyft sync-whoop                 # Pull WHOOP cycles and workouts
    catalyft adjust                     # ARIA program adjustment for today
    catalyft injury-risk                # Injury risk for yesterday
    catalyft weekly-summary --debug     # Weekly summaries without delivery
    catalyft acwr --athlete ID --days 28
    catalyft readiness --hrv 65 --sleep 420 --soreness 3 --jump 42
    catalyft local-store init|pending
"""

import argparse
import asyncio
import logging
from datetime import datetime, timezone

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich import box

from .config import get_settings
from .exceptions import CatalyftError
from .metrics.readiness import calculate_readiness, readiness_zone
from .utils.log_sanitizer import configure_logging

console = Console()


def get_risk_color(risk_zone: str) -> str:
    """Get rich color for an ACWR risk zone."""
    colors = {
        "optimal": "green",
        "undertrained": "blue",
        "caution": "yellow",
        "danger": "red",
    }
    return colors.get(risk_zone, "white")


def print_result(title: str, result: dict) -> None:
    table = Table(title=title, box=box.ROUNDED, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in result.items():
        if isinstance(value, (list, dict)):
            continue
        table.add_row(key, str(value))
    console.print(table)


def cmd_serve(args):
    """Run the FastAPI app with uvicorn."""
    import uvicorn

    settings = get_settings()
    host = args.host or settings.api_host
    port = args.port or settings.api_port
    console.print(Panel(f"[bold]Catalyft coach[/bold] on http://{host}:{port}"))
    uvicorn.run("catalyft.main:app", host=host, port=port, reload=args.reload)


def cmd_sync_whoop(args):
    from .api.deps import get_whoop_sync_service

    result = asyncio.run(get_whoop_sync_service().sync_activity(days=args.days))
    print_result("WHOOP Activity Sync", result.to_dict())


def cmd_adjust(args):
    from .api.deps import get_adjustment_service

    result = asyncio.run(get_adjustment_service().run())
    print_result("ARIA Program Adjustment", result.to_dict())


def cmd_injury_risk(args):
    from .api.deps import get_injury_risk_service

    result = asyncio.run(get_injury_risk_service().run())
    print_result("Injury Risk Assessment", result.to_dict())

    if result.results:
        table = Table(title="Athletes", box=box.SIMPLE)
        table.add_column("Athlete", style="cyan")
        table.add_column("Risk", justify="right")
        for row in result.results:
            risk = row.get("risk", 0.0)
            style = "red" if row.get("high_risk") else "green"
            table.add_row(str(row.get("athlete_id")), Text(f"{risk:.1f}", style=style))
        console.print(table)


def cmd_weekly_summary(args):
    from .api.deps import get_weekly_summary_service

    result = asyncio.run(get_weekly_summary_service().run(debug=args.debug))
    summary = result.to_dict()
    console.print(
        f"Period: [cyan]{summary['period']['start']}[/cyan] to [cyan]{summary['period']['end']}[/cyan]"
    )
    print_result("ARIA Weekly Summary", summary)


def cmd_acwr(args):
    """Show the ACWR series for one athlete."""
    from .api.deps import get_readiness_service

    analytics = get_readiness_service().get_analytics(args.athlete, days=args.days)

    table = Table(title=f"ACWR (Last {analytics['days']} Days)", box=box.ROUNDED)
    table.add_column("Date", style="cyan")
    table.add_column("Load", justify="right")
    table.add_column("Acute 7d", justify="right")
    table.add_column("Chronic 28d", justify="right")
    table.add_column("ACWR", justify="right")

    for entry in analytics["series"]:
        table.add_row(
            entry["day"],
            f"{entry['daily_load']:.1f}",
            f"{entry['acute_7d']:.1f}",
            f"{entry['chronic_28d']:.1f}",
            f"{entry['acwr_7_28']:.2f}",
        )
    console.print(table)

    zone = analytics["risk_zone"]
    if zone:
        console.print("Current risk zone:", Text(zone.upper(), style=get_risk_color(zone)))

    fitness = analytics["fitness"]
    if fitness:
        console.print(
            f"CTL [bold]{fitness['ctl']:.1f}[/bold]  ATL [bold]{fitness['atl']:.1f}[/bold]  "
            f"TSB [bold]{fitness['tsb']:+.1f}[/bold]"
        )


def cmd_readiness(args):
    """Score readiness from values given on the command line."""
    score = calculate_readiness(args.hrv, args.sleep, args.soreness, args.jump)
    zone = readiness_zone(score)
    console.print(
        Panel(
            Text(f"Readiness {score}/100 ({zone})", style=zone),
            title="Readiness",
            box=box.ROUNDED,
        )
    )


def cmd_local_store(args):
    from .api.deps import get_local_store

    store = get_local_store()
    if args.action == "init":
        store.initialize()
        console.print(f"Local store ready at [cyan]{store.db_path}[/cyan]")
        print_result("Local Store", store.get_stats())
        return

    pending = store.get_pending_sets()
    if not pending:
        console.print("No pending sets.")
        return

    table = Table(title=f"Pending Sets ({len(pending)})", box=box.ROUNDED)
    table.add_column("Created", style="cyan")
    table.add_column("Session")
    table.add_column("Exercise")
    table.add_column("Weight", justify="right")
    table.add_column("Reps", justify="right")
    table.add_column("RPE", justify="right")
    for item in pending:
        table.add_row(
            item.created_at,
            item.session_id,
            item.exercise,
            f"{item.weight:g}",
            str(item.reps),
            str(item.rpe) if item.rpe is not None else "-",
        )
    console.print(table)


COMMANDS = {
    "serve": cmd_serve,
    "sync-whoop": cmd_sync_whoop,
    "adjust": cmd_adjust,
    "injury-risk": cmd_injury_risk,
    "weekly-summary": cmd_weekly_summary,
    "acwr": cmd_acwr,
    "readiness": cmd_readiness,
    "local-store": cmd_local_store,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catalyft",
        description="Catalyft coach - wearable sync and ARIA coaching jobs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  catalyft serve --port 8000
  catalyft sync-whoop --days 7
  catalyft weekly-summary --debug
  catalyft acwr --athlete 7c1e... --days 28
  catalyft readiness --hrv 65 --sleep 420 --soreness 3 --jump 42
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_p = subparsers.add_parser("serve", help="Run the function server")
    serve_p.add_argument("--host", type=str, help="Bind address")
    serve_p.add_argument("--port", type=int, help="Port")
    serve_p.add_argument("--reload", action="store_true", help="Reload on code changes")

    sync_p = subparsers.add_parser("sync-whoop", help="Pull WHOOP cycles and workouts for all athletes")
    sync_p.add_argument("--days", "-d", type=int, help="Days to sync (default from settings)")

    subparsers.add_parser("adjust", help="Run the ARIA program adjustment for today")
    subparsers.add_parser("injury-risk", help="Assess yesterday's injury risk")

    summary_p = subparsers.add_parser("weekly-summary", help="Generate last week's ARIA summaries")
    summary_p.add_argument("--debug", action="store_true", help="Do not mark summaries as delivered")

    acwr_p = subparsers.add_parser("acwr", help="Show an athlete's ACWR series")
    acwr_p.add_argument("--athlete", "-a", required=True, help="Athlete id")
    acwr_p.add_argument("--days", "-d", type=int, default=28, help="Number of days to show")

    readiness_p = subparsers.add_parser("readiness", help="Score readiness from raw values")
    readiness_p.add_argument("--hrv", type=float, help="HRV RMSSD (ms)")
    readiness_p.add_argument("--sleep", type=float, help="Sleep (minutes)")
    readiness_p.add_argument("--soreness", type=float, help="Soreness (1-10)")
    readiness_p.add_argument("--jump", type=float, help="Jump height (cm)")

    local_p = subparsers.add_parser("local-store", help="Inspect the offline queue")
    local_p.add_argument("action", choices=["init", "pending"])

    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    configure_logging(get_settings().log_level)
    started = datetime.now(timezone.utc)
    try:
        handler(args)
    except CatalyftError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        return 1
    logging.getLogger(__name__).debug(
        f"{args.command} finished in {(datetime.now(timezone.utc) - started).total_seconds():.1f}s"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
