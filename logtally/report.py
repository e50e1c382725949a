"""Detailed Markdown report.

Written only when enough distinct origins logged something to make a
per-file breakdown worth reading (``REPORT_ORIGIN_THRESHOLD``).
"""

from __future__ import annotations

import logging
from pathlib import Path

from logtally.config import MAX_ORIGINS, REPORT_FILENAME, REPORTER_NAME, TOP_MESSAGES
from logtally.models import Snapshot
from logtally.summary import CategorySection, MessageEntry, build_sections, category_totals

logger = logging.getLogger(__name__)


def escape_markdown(text: str) -> str:
    """Escape the table delimiter so rows keep their shape."""
    return text.replace("|", "\\|")


def render_report(
    snapshot: Snapshot,
    top_n: int = TOP_MESSAGES,
    max_origins: int = MAX_ORIGINS,
) -> str:
    """Render the full report for a readable snapshot."""
    lines: list[str] = []
    lines.append("")
    lines.append(f"## [{REPORTER_NAME}] Logging call summary:")
    lines.append("")
    lines.extend(_render_totals_table(category_totals(snapshot)))

    for section in build_sections(snapshot, top_n, max_origins):
        lines.extend(_render_section(section, top_n))

    return "\n".join(lines) + "\n"


def render_error_report(error: str) -> str:
    return f"\n## [{REPORTER_NAME}] Error reading aggregate: {escape_markdown(error)}\n"


def _render_totals_table(totals: dict[str, int]) -> list[str]:
    lines = ["| Category | Total Count |", "|---|---|"]
    for category, total in totals.items():
        lines.append(f"| `{escape_markdown(category)}` | {total} |")
    return lines


def _render_section(section: CategorySection, top_n: int) -> list[str]:
    if not section.messages:
        return []
    lines = ["", f"## Top {top_n} `{escape_markdown(section.category)}` calls by message", ""]
    for entry in section.messages:
        lines.extend(_render_message(entry))
    return lines


def _render_message(entry: MessageEntry) -> list[str]:
    lines = [f"- ({entry.count}) {escape_markdown(entry.key.label)}"]
    for origin, count in entry.origins:
        lines.append(f"  - ({count}) `{escape_markdown(origin)}`")
    if entry.more_origins:
        plural = "s" if entry.more_origins > 1 else ""
        lines.append(f"  - + {entry.more_origins} more file{plural}")
    return lines


def write_report(markdown: str, output_dir: str | Path) -> Path:
    """Write *markdown* into *output_dir*, creating it if needed.

    Directory creation failures propagate.
    """
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / REPORT_FILENAME
    path.write_text(markdown, encoding="utf-8")
    logger.info("Wrote logging summary to %s", path)
    return path
