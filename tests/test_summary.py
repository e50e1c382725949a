"""Tests for ranking, the Markdown report and the terminal summary."""

from __future__ import annotations

from unittest import mock

import pytest

from conftest import make_snapshot
from logtally.config import COUNT_STYLE
from logtally.models import EventKey, Snapshot
from logtally.report import escape_markdown, render_error_report, render_report
from logtally.reporter import should_write_report, summarize_run, summarize_snapshot
from logtally.summary import (
    build_sections,
    category_origin_totals,
    category_totals,
    distinct_origins,
    top_messages,
    top_origins,
)
from logtally.terminal import render_terminal_summary, summary_lines


def _origins(n, key="error: Shared failure"):
    return make_snapshot({key: {f"pkg/test_{i}.py": i + 1 for i in range(n)}})


# ===========================================================================
# Summary computations
# ===========================================================================

class TestSummary:
    def test_category_totals(self, payment_snapshot):
        assert category_totals(payment_snapshot) == {"error": 3, "warn": 1}

    def test_top_error_message(self, payment_snapshot):
        top = top_messages(payment_snapshot, 1)
        key, count = top["error"][0]
        assert key.signature == "Payment gateway timeout"
        assert count == 3

    def test_top_n_per_category(self):
        snap = make_snapshot({
            "info: a": {"x/1.py": 1},
            "info: b": {"x/1.py": 5},
            "info: c": {"x/1.py": 3},
            "debug: d": {"x/1.py": 2},
        })
        top = top_messages(snap, 2)
        assert [k.signature for k, _ in top["info"]] == ["b", "c"]
        assert [k.signature for k, _ in top["debug"]] == ["d"]

    def test_distinct_origins(self, wide_snapshot):
        assert len(distinct_origins(wide_snapshot)) == 7

    def test_category_origin_totals(self, wide_snapshot):
        totals = category_origin_totals(wide_snapshot)
        assert totals["warning"] == {"api/test_orders.py": 3, "api/test_cart.py": 1}
        assert sum(totals["error"].values()) == 34

    def test_top_origins_rollup(self, wide_snapshot):
        shown, remaining = top_origins(wide_snapshot, EventKey("error", "Database connection lost"))
        assert [o for o, _ in shown] == [
            "api/test_orders.py", "api/test_users.py", "api/test_cart.py",
            "jobs/test_sync.py", "jobs/test_email.py",
        ]
        assert remaining == 2

    def test_key_without_origins(self):
        snap = Snapshot(counts={EventKey("error", "orphan"): 4})
        assert top_origins(snap, EventKey("error", "orphan")) == ([], 0)
        section = build_sections(snap)[0]
        assert section.messages[0].origins == []


# ===========================================================================
# Detailed report
# ===========================================================================

class TestReport:
    def test_seven_origins_show_five_plus_rollup(self, wide_snapshot):
        md = render_report(wide_snapshot)
        block = md.split("## Top 5 `error` calls by message", 1)[1].split("##", 1)[0]
        origin_lines = [l for l in block.splitlines() if l.startswith("  - (")]
        assert len(origin_lines) == 5
        assert "  - + 2 more files" in block

    def test_single_extra_origin_is_singular(self):
        md = render_report(_origins(6))
        assert "  - + 1 more file\n" in md

    def test_totals_table(self, wide_snapshot):
        md = render_report(wide_snapshot)
        assert "| Category | Total Count |" in md
        assert "| `error` | 34 |" in md
        assert "| `info` | 12 |" in md

    def test_messages_ranked_within_category(self):
        snap = make_snapshot({
            "warning: low": {"a/1.py": 1},
            "warning: high": {"a/1.py": 9},
        })
        md = render_report(snap)
        assert md.index("- (9) high") < md.index("- (1) low")

    def test_delimiter_is_escaped(self):
        snap = make_snapshot({
            "error: Status | code 500": {"a/1.py": 2},
            "info: plain": {"a/2.py": 1},
        })
        md = render_report(snap)
        assert "- (2) Status \\| code 500" in md
        table_rows = [l for l in md.splitlines() if l.startswith("| `")]
        assert len(table_rows) == 2
        assert all(l.count("|") == 3 for l in table_rows)

    def test_escape_markdown(self):
        assert escape_markdown("a|b|c") == "a\\|b\\|c"

    def test_error_report(self):
        assert "Error reading aggregate: JSONDecodeError: bad" in render_error_report(
            "JSONDecodeError: bad"
        )


# ===========================================================================
# Report threshold / orchestration
# ===========================================================================

class TestSummarizeRun:
    def test_threshold(self):
        assert not should_write_report(_origins(4))
        assert should_write_report(_origins(5))

    def test_four_origins_no_report(self, store, tmp_path):
        store.merge(_origins(4))
        out = tmp_path / "reports"
        result = summarize_run(store, out)
        assert result.report_path is None
        assert not out.exists()
        assert "Full summary available" not in result.terminal_text()

    def test_five_origins_writes_report(self, store, tmp_path):
        store.merge(_origins(5))
        out = tmp_path / "reports"
        result = summarize_run(store, out)
        assert result.report_path == out / "logtally-summary.md"
        assert "## Top 5 `error` calls by message" in result.report_path.read_text(encoding="utf-8")
        assert f"Full summary available in {result.report_path}" in result.terminal_text()

    def test_corrupt_store_surfaces_error(self, store, tmp_path):
        store.path.write_text("{", encoding="utf-8")
        result = summarize_run(store, tmp_path / "reports")
        text = result.terminal_text()
        assert "[logtally] Error reading aggregate:" in text
        assert "Logging call summary" not in text
        assert "Error reading aggregate" in result.report_path.read_text(encoding="utf-8")

    def test_empty_store(self, store, tmp_path):
        result = summarize_run(store, tmp_path / "reports")
        assert result.report_path is None
        assert "No logging calls detected." in result.terminal_text()

    def test_report_dir_failure_propagates(self, tmp_path):
        with mock.patch("logtally.report.Path.mkdir", side_effect=PermissionError("denied")):
            with pytest.raises(PermissionError):
                summarize_snapshot(_origins(5), tmp_path / "reports")


# ===========================================================================
# Terminal summary
# ===========================================================================

class TestTerminal:
    def test_lines(self, payment_snapshot):
        lines = [line.plain for line in summary_lines(payment_snapshot)]
        assert lines == [
            "[logtally] Logging call summary:",
            "  error: 3",
            "  warn: 1",
            '  error: "Payment gateway timeout" - 3',
            '  warn: "Retrying payment" - 1',
        ]

    def test_only_highlighted_categories_get_top_message(self, wide_snapshot):
        text = render_terminal_summary(wide_snapshot)
        assert '  error: "Database connection lost" - 34' in text
        assert '  warning: "Cache miss for key" - 4' in text
        assert '"Request handled"' not in text
        assert "  info: 12" in text

    def test_warning_and_warn_share_one_highlight(self):
        snap = make_snapshot({
            "error: E": {"a/1.py": 1},
            "warning: W": {"a/1.py": 1},
            "warn: V": {"a/1.py": 1},
        })
        lines = [line.plain for line in summary_lines(snap)]
        highlighted = [line for line in lines if '"' in line]
        assert highlighted == ['  error: "E" - 1', '  warning: "W" - 1']

    def test_warn_highlighted_when_warning_absent(self, payment_snapshot):
        lines = [line.plain for line in summary_lines(payment_snapshot)]
        assert '  warn: "Retrying payment" - 1' in lines

    def test_highlighted_count_is_styled(self, payment_snapshot):
        line = summary_lines(payment_snapshot)[3]
        count_span = line.spans[-1]
        assert line.plain[count_span.start:count_span.end] == "3"
        assert count_span.style == COUNT_STYLE

    def test_plain_output_has_no_ansi(self, payment_snapshot):
        assert "\x1b[" not in render_terminal_summary(payment_snapshot, color=False)

    def test_color_output_styles_category(self, payment_snapshot):
        assert "\x1b[" in render_terminal_summary(payment_snapshot, color=True)

    def test_markup_in_messages_is_literal(self):
        snap = make_snapshot({"error: [bold]not markup[/bold]": {"a/1.py": 1}})
        assert '"[bold]not markup[/bold]"' in render_terminal_summary(snap)
