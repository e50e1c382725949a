"""Command-line access to the shared aggregate left behind by a test run."""

from __future__ import annotations

import logging
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from logtally import __version__
from logtally.config import CATEGORY_STYLES, MAX_ORIGINS, REPORT_DIR_NAME, REPORT_ORIGIN_THRESHOLD
from logtally.models import Snapshot
from logtally.store import AggregateStore
from logtally.summary import category_origin_totals, category_totals, top_messages, top_origins

console = Console()


@click.group()
@click.version_option(version=__version__)
@click.option("--aggregate", "aggregate_path", type=click.Path(dir_okay=False), default=None,
              help="Aggregate file (default: LOGTALLY_AGGREGATE_PATH or the temp dir).")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx, aggregate_path, verbose):
    """logtally: inspect logging-call counts aggregated across test workers."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = AggregateStore(aggregate_path)


@main.command()
@click.pass_obj
def path(store):
    """Print the location of the aggregate file."""
    click.echo(str(store.path))


@main.command()
@click.pass_obj
def reset(store):
    """Delete the aggregate file."""
    store.reset()
    console.print(f"Removed [bold]{escape(str(store.path))}[/bold]")


@main.command()
@click.option("-o", "--output-dir", default=REPORT_DIR_NAME, type=click.Path(file_okay=False),
              help="Directory for the detailed Markdown report.")
@click.option("--threshold", default=REPORT_ORIGIN_THRESHOLD, show_default=True,
              help="Distinct origins required before the report is written.")
@click.pass_obj
def summary(store, output_dir, threshold):
    """Summarize the aggregate the way the pytest plugin does at run end."""
    from logtally.reporter import summarize_run

    result = summarize_run(store, output_dir, threshold)
    result.print(console)
    if result.snapshot.error:
        sys.exit(1)


@main.command()
@click.option("-n", "--top", "top_n", default=10, show_default=True,
              help="Messages shown per category.")
@click.option("--by-file", is_flag=True, help="Also show per-category counts per origin.")
@click.pass_obj
def show(store, top_n, by_file):
    """Print ranked tables of the aggregate."""
    snapshot = store.load()
    if snapshot.error:
        console.print(f"[red]Error reading aggregate:[/red] {escape(snapshot.error)}")
        sys.exit(1)
    if not snapshot.counts:
        console.print(f"No logging calls recorded in [bold]{escape(str(store.path))}[/bold]")
        return

    _print_totals(snapshot)
    _print_top_messages(snapshot, top_n)
    if by_file:
        _print_origin_totals(snapshot)


def _print_totals(snapshot: Snapshot) -> None:
    table = Table(title="Logging calls by category", show_header=True, header_style="bold cyan")
    table.add_column("Category")
    table.add_column("Total", justify="right")
    table.add_column("Distinct messages", justify="right")

    distinct: dict[str, int] = {}
    for key in snapshot.counts:
        distinct[key.category] = distinct.get(key.category, 0) + 1

    for category, total in category_totals(snapshot).items():
        table.add_row(
            Text(category, style=CATEGORY_STYLES.get(category, "")),
            f"{total:,}",
            str(distinct[category]),
        )
    console.print(table)


def _print_top_messages(snapshot: Snapshot, top_n: int) -> None:
    for category, entries in top_messages(snapshot, top_n).items():
        table = Table(title=f"Top {top_n} {category} messages", show_header=True,
                      header_style="bold cyan")
        table.add_column("Count", justify="right")
        table.add_column("Message", max_width=80)
        table.add_column("Files", style="dim")
        for key, count in entries:
            shown, remaining = top_origins(snapshot, key, MAX_ORIGINS)
            files = ", ".join(origin for origin, _ in shown)
            if remaining:
                files += f" (+{remaining})"
            table.add_row(str(count), Text(key.label), Text(files))
        console.print(table)


def _print_origin_totals(snapshot: Snapshot) -> None:
    for category, per_origin in category_origin_totals(snapshot).items():
        table = Table(title=f"{category} calls by file", show_header=True,
                      header_style="bold cyan")
        table.add_column("File", style="dim")
        table.add_column("Count", justify="right")
        for origin, count in sorted(per_origin.items(), key=lambda kv: kv[1], reverse=True):
            table.add_row(Text(origin), str(count))
        console.print(table)


if __name__ == "__main__":
    main()
