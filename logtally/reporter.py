"""Run-end summarization.

Reads the aggregate exactly once, after every worker has flushed, decides
whether the detailed report is warranted, writes it, and returns what the
terminal should show.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console

from logtally.config import REPORT_ORIGIN_THRESHOLD
from logtally.models import Snapshot
from logtally.report import render_error_report, render_report, write_report
from logtally.store import AggregateStore
from logtally.terminal import print_summary, render_terminal_summary

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    """Outcome of one summarization."""
    snapshot: Snapshot
    report_path: Path | None = None

    def terminal_text(self, color: bool = False) -> str:
        return render_terminal_summary(self.snapshot, self.report_path, color=color)

    def print(self, console: Console) -> None:
        print_summary(console, self.snapshot, self.report_path)


def should_write_report(snapshot: Snapshot, threshold: int = REPORT_ORIGIN_THRESHOLD) -> bool:
    """True when *snapshot* spans at least *threshold* distinct origins."""
    return len(snapshot.origins()) >= threshold


def summarize_snapshot(
    snapshot: Snapshot,
    output_dir: str | Path,
    threshold: int = REPORT_ORIGIN_THRESHOLD,
) -> RunSummary:
    """Summarize an already-loaded snapshot.

    A snapshot carrying a read error gets an error-only report and no
    ranking.  Report directory creation failures propagate.
    """
    if snapshot.error:
        logger.debug("Aggregate unreadable: %s", snapshot.error)
        path = write_report(render_error_report(snapshot.error), output_dir)
        return RunSummary(snapshot, path)

    if not snapshot.counts or not should_write_report(snapshot, threshold):
        return RunSummary(snapshot)

    path = write_report(render_report(snapshot), output_dir)
    return RunSummary(snapshot, path)


def summarize_run(
    store: AggregateStore,
    output_dir: str | Path,
    threshold: int = REPORT_ORIGIN_THRESHOLD,
) -> RunSummary:
    """Load *store* once and summarize it."""
    return summarize_snapshot(store.load(), output_dir, threshold)
