"""Compact terminal summary rendered with rich."""

from __future__ import annotations

import io
from pathlib import Path

from rich.console import Console
from rich.text import Text

from logtally.config import CATEGORY_STYLES, COUNT_STYLE, HIGHLIGHT_GROUPS, REPORTER_NAME
from logtally.models import Snapshot
from logtally.summary import category_totals, top_messages


def category_prefix(category: str, suffix: str = "") -> Text:
    """``  <category>:<suffix>`` with the category styled."""
    text = Text("  ")
    text.append(f"{category}:", style=CATEGORY_STYLES.get(category, ""))
    text.append(suffix)
    return text


def summary_lines(snapshot: Snapshot, report_path: Path | None = None) -> list[Text]:
    """Lines of the terminal summary for *snapshot*."""
    if snapshot.error:
        return [Text(f"[{REPORTER_NAME}] Error reading aggregate: {snapshot.error}", style="red")]
    if not snapshot.counts:
        return [Text(f"[{REPORTER_NAME}] No logging calls detected.")]

    lines = [Text(f"[{REPORTER_NAME}] Logging call summary:", style="bold")]
    for category, total in category_totals(snapshot).items():
        lines.append(category_prefix(category, f" {total}"))

    top = top_messages(snapshot, 1)
    for group in HIGHLIGHT_GROUPS:
        category = next((name for name in group if top.get(name)), None)
        if category is None:
            continue
        key, count = top[category][0]
        line = category_prefix(category, f' "{key.label}" - ')
        line.append(str(count), style=COUNT_STYLE)
        lines.append(line)

    if report_path is not None:
        lines.append(Text(""))
        lines.append(Text(f"Full summary available in {report_path}"))
    return lines


def print_summary(console: Console, snapshot: Snapshot, report_path: Path | None = None) -> None:
    console.print()
    for line in summary_lines(snapshot, report_path):
        console.print(line, soft_wrap=True)


def render_terminal_summary(
    snapshot: Snapshot,
    report_path: Path | None = None,
    *,
    color: bool = False,
) -> str:
    """Return the summary as a string, with ANSI styling when *color*."""
    buffer = io.StringIO()
    console = Console(
        file=buffer,
        force_terminal=color,
        color_system="standard" if color else None,
        no_color=not color,
        highlight=False,
        width=10_000,
    )
    print_summary(console, snapshot, report_path)
    return buffer.getvalue()
