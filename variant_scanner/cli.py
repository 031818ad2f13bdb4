"""CLI interface for the card variant scanner."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from variant_scanner.config import AppConfig, load_config
from variant_scanner.models import ScanMode
from variant_scanner.scanner import Scanner, ScanSummary
from variant_scanner.state import CheckpointStore, PersistenceError

console = Console()

MENU = (
    ("1", "Scan all sets (keep cache)", ScanMode.SCAN),
    ("2", "Update only failed cards", ScanMode.RETRY_ERRORS),
    ("3", "Check for V6-V9 variants (for cards with V5)", ScanMode.EXTEND),
    ("4", "Update README with variants", ScanMode.REPORT),
    ("9", "Rescan all (clear cache)", ScanMode.RESCAN),
)


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # Set up logging
    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )

    func: Callable[[argparse.Namespace], None] = getattr(args, "func", _cmd_menu)
    func(args)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="card-variants",
        description="Find numbered variant pages for catalog cards",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug)",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config.yaml (default: config.yaml)",
    )

    subparsers = parser.add_subparsers(title="commands", dest="command")

    for name, mode, help_text in (
        ("scan", ScanMode.SCAN, "Scan all sets, skipping cards already checked"),
        ("retry-errors", ScanMode.RETRY_ERRORS, "Re-check only cards that failed"),
        ("rescan", ScanMode.RESCAN, "Clear the checkpoint and scan everything"),
    ):
        scan_parser = subparsers.add_parser(name, help=help_text)
        scan_parser.add_argument(
            "--sets",
            type=str,
            default=None,
            help="Comma-separated set names or codes to scan (e.g., SVI,PAL)",
        )
        scan_parser.set_defaults(func=_cmd_run, mode=mode)

    extend_parser = subparsers.add_parser(
        "extend", help="Check V6-V9 for cards that already have V5"
    )
    extend_parser.set_defaults(func=_cmd_run, mode=ScanMode.EXTEND)

    report_parser = subparsers.add_parser(
        "report", help="Rebuild the variants file and README section"
    )
    report_parser.set_defaults(func=_cmd_run, mode=ScanMode.REPORT)

    status_parser = subparsers.add_parser("status", help="Show checkpoint contents")
    status_parser.set_defaults(func=_cmd_status)

    clean_parser = subparsers.add_parser("clean", help="Remove the checkpoint and variants files")
    clean_parser.set_defaults(func=_cmd_clean)

    menu_parser = subparsers.add_parser("menu", help="Choose a mode interactively")
    menu_parser.set_defaults(func=_cmd_menu)

    return parser


def _load_app_config(args: argparse.Namespace) -> AppConfig:
    try:
        return load_config(args.config)
    except ValueError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        sys.exit(1)


def choose_mode(answer: str) -> Optional[ScanMode]:
    """Map a menu answer to a scan mode, or None if it is not an option."""
    choices: Dict[str, ScanMode] = {key: mode for key, _, mode in MENU}
    return choices.get(answer.strip())


# ------------------------------------------------------------------
# Command handlers
# ------------------------------------------------------------------


def _cmd_menu(args: argparse.Namespace) -> None:
    console.print("[bold]Card Variant Scanner[/bold]")
    for key, label, _ in MENU:
        console.print(f"{key}) {label}")
    mode = choose_mode(console.input("Choose an option: "))
    if mode is None:
        console.print("[red]Invalid choice[/red]")
        sys.exit(1)
    _execute(args, mode, set_filter=None)


def _cmd_run(args: argparse.Namespace) -> None:
    set_filter = None
    if getattr(args, "sets", None):
        set_filter = [s.strip() for s in args.sets.split(",") if s.strip()]
    _execute(args, args.mode, set_filter=set_filter)


def _execute(args: argparse.Namespace, mode: ScanMode, set_filter: Optional[List[str]]) -> None:
    config = _load_app_config(args)
    try:
        summary = asyncio.run(_run_scanner(config, mode, set_filter))
    except PersistenceError as exc:
        console.print(f"[red]Cannot save progress, stopping: {escape(str(exc))}[/red]")
        sys.exit(1)
    _print_summary(summary)


async def _run_scanner(
    config: AppConfig,
    mode: ScanMode,
    set_filter: Optional[List[str]] = None,
) -> ScanSummary:
    scanner = Scanner(config)
    try:
        return await scanner.run(mode, set_filter=set_filter)
    finally:
        await scanner.teardown()


def _print_summary(summary: ScanSummary) -> None:
    console.print(f"\n[bold green]Finished ({summary.mode.value})[/bold green]")

    table = Table(title="Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("Cards processed", str(summary.processed))
    if summary.mode is ScanMode.EXTEND:
        table.add_row("Cards with new variants", str(summary.extended))
    elif summary.mode is not ScanMode.REPORT:
        table.add_row("Skipped (already checked)", str(summary.skipped))
        table.add_row("Malformed lines", str(summary.malformed))
        for status, count in summary.statuses.items():
            table.add_row(f"Status {status}", str(count))
    stats = summary.probe_stats
    if stats is not None and stats.requests:
        table.add_row("Requests", str(stats.requests))
        table.add_row("Rate limited (429)", str(stats.rate_limited))
        table.add_row("Blocked (403)", str(stats.blocked))
        table.add_row("Abandoned probes", str(stats.abandoned))
    console.print(table)

    for output in summary.outputs:
        console.print(f"Wrote {output}")


def _cmd_status(args: argparse.Namespace) -> None:
    config = _load_app_config(args)
    store = CheckpointStore(config.paths.checkpoint_file)
    summary = store.summary()

    console.print(f"\n[bold]Checkpoint {config.paths.checkpoint_file}[/bold]\n")

    table = Table(title="Overview")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Cards checked", str(summary["total_cards"]))
    for status, count in summary["statuses"].items():
        table.add_row(f"Status {status}", str(count))
    table.add_row("Cards with variants", str(summary["cards_with_variants"]))
    console.print(table)

    if summary["collections"]:
        console.print()
        sets_table = Table(title="Per-Collection Details")
        sets_table.add_column("Collection", style="cyan")
        sets_table.add_column("Cards", justify="right")
        sets_table.add_column("With variants", justify="right", style="green")
        sets_table.add_column("Errors", justify="right", style="red")

        for name, info in summary["collections"].items():
            sets_table.add_row(
                name,
                str(info["cards"]),
                str(info["with_variants"]),
                str(info["errors"]),
            )
        console.print(sets_table)


def _cmd_clean(args: argparse.Namespace) -> None:
    config = _load_app_config(args)
    store = CheckpointStore(config.paths.checkpoint_file, config.paths.variants_file)
    store.delete()
    console.print("[green]Clean complete[/green]")
