"""pytest plugin: count logging calls across all workers of a test run.

Enable with ``pytest --logtally`` or ``LOGTALLY_ENABLED=1``.  Under
pytest-xdist every worker counts into its own buffer and flushes it into
the shared aggregate file when its session finishes; the controller resets
the file at session start and summarizes it in the terminal summary, after
all workers are done.  Without xdist the single process plays both roles.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from logtally.config import REPORT_DIR_NAME, is_enabled
from logtally.reporter import RunSummary, summarize_run
from logtally.store import AggregateStore
from logtally_patcher.event_buffer import EventBuffer, OriginTracker
from logtally_patcher.logging_patch import TallyHandler, TalliedLogger, wrap_logger

logger = logging.getLogger(__name__)

PLUGIN_NAME = "logtally_session"


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("logtally", "logging call summary")
    group.addoption(
        "--logtally",
        action="store_true",
        default=False,
        help="Count logging calls in every test worker and summarize them at the end.",
    )
    group.addoption(
        "--logtally-aggregate",
        default=None,
        metavar="PATH",
        help="Shared aggregate file (default: LOGTALLY_AGGREGATE_PATH or the temp dir).",
    )
    group.addoption(
        "--logtally-report-dir",
        default=None,
        metavar="DIR",
        help="Directory for the detailed Markdown report, relative to rootdir.",
    )
    parser.addini(
        "logtally_report_dir",
        help="Directory for the detailed Markdown report, relative to rootdir.",
        default=REPORT_DIR_NAME,
    )


def pytest_configure(config: pytest.Config) -> None:
    if not (config.getoption("logtally") or is_enabled()):
        return
    plugin = LogTallyPlugin(config)
    config.pluginmanager.register(plugin, PLUGIN_NAME)
    plugin.attach()


def pytest_unconfigure(config: pytest.Config) -> None:
    plugin = config.pluginmanager.get_plugin(PLUGIN_NAME)
    if plugin is not None:
        plugin.detach()
        config.pluginmanager.unregister(plugin, PLUGIN_NAME)


def _report_dir(config: pytest.Config) -> Path:
    value = config.getoption("logtally_report_dir") or config.getini("logtally_report_dir")
    return config.rootpath / (value or REPORT_DIR_NAME)


class LogTallyPlugin:
    """Per-process lifecycle glue between pytest and the aggregation core."""

    def __init__(self, config: pytest.Config) -> None:
        self.config = config
        self.is_worker = hasattr(config, "workerinput")
        self.store = AggregateStore(config.getoption("logtally_aggregate"))
        self.report_dir = _report_dir(config)
        self.buffer = EventBuffer()
        self.origin = OriginTracker()
        self.handler = TallyHandler(self.buffer, self.origin)
        self.summary: RunSummary | None = None

    def attach(self) -> None:
        logging.getLogger().addHandler(self.handler)

    def detach(self) -> None:
        logging.getLogger().removeHandler(self.handler)

    # -- lifecycle hooks ------------------------------------------------------

    def pytest_sessionstart(self, session: pytest.Session) -> None:
        if not self.is_worker:
            self.store.reset()

    @pytest.hookimpl(tryfirst=True)
    def pytest_runtest_protocol(self, item: pytest.Item, nextitem: pytest.Item | None) -> None:
        self.origin.set(item.path)

    def pytest_runtest_logfinish(self, nodeid: str, location: tuple) -> None:
        self.origin.clear()

    def pytest_sessionfinish(self, session: pytest.Session, exitstatus: int) -> None:
        self.detach()
        if not self.buffer.flush(self.store):
            logger.debug("logtally flush failed; aggregate may be incomplete")

    def pytest_terminal_summary(self, terminalreporter, exitstatus: int, config: pytest.Config) -> None:
        if self.is_worker:
            return
        self.summary = summarize_run(self.store, self.report_dir)
        terminalreporter.write(self.summary.terminal_text(color=terminalreporter.hasmarkup))

    # -- fixtures -------------------------------------------------------------

    def make_logger(self, name: str) -> TalliedLogger:
        return wrap_logger(
            logging.getLogger(name),
            buffer=self.buffer,
            resolve_origin=self.origin,
            enabled=True,
        )


@pytest.fixture
def tally_logger(request: pytest.FixtureRequest) -> TalliedLogger:
    """A logger for the requesting test module whose calls are counted.

    When logtally is not enabled the view forwards to the plain logger
    without counting.
    """
    name = request.module.__name__ if request.module is not None else "logtally"
    plugin = request.config.pluginmanager.get_plugin(PLUGIN_NAME)
    if plugin is None:
        return wrap_logger(logging.getLogger(name), enabled=False)
    return plugin.make_logger(name)
