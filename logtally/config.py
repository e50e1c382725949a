"""Global configuration constants for logtally."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Mapping

REPORTER_NAME = "logtally"

# Activation / shared store location
ENABLE_ENV_VAR = "LOGTALLY_ENABLED"
AGGREGATE_PATH_ENV_VAR = "LOGTALLY_AGGREGATE_PATH"
AGGREGATE_FILENAME = "logtally-counts.json"

# Sentinels
UNKNOWN_ORIGIN = "<unknown>"
EMPTY_SIGNATURE = "<empty>"

# Logger methods counted by default
TRACKED_METHODS = ("debug", "info", "warning", "error", "critical", "exception")

# Logger method -> category it is counted under
METHOD_CATEGORIES = {
    "warn": "warning",
    "exception": "error",
    "fatal": "critical",
}

# Summary limits
TOP_MESSAGES = 5
MAX_ORIGINS = 5  # Origins shown per message before rolling up into "+ K more"
REPORT_ORIGIN_THRESHOLD = 5  # Distinct origins needed before the report is written

# Categories whose single top message is echoed in the terminal summary.
# One line per group, taken from the first category of the group present.
HIGHLIGHT_GROUPS = (("error",), ("warning", "warn"))

# Output
REPORT_DIR_NAME = "reports"
REPORT_FILENAME = "logtally-summary.md"

# rich styles per category
CATEGORY_STYLES = {
    "critical": "bold white on red",
    "error": "white on red",
    "warning": "black on yellow",
    "warn": "black on yellow",
    "info": "black on cyan",
    "debug": "black on white",
}
COUNT_STYLE = "black on white"

_TRUTHY = {"1", "true", "yes", "on"}


def is_enabled(environ: Mapping[str, str] | None = None) -> bool:
    """Return True when the activation flag is set in *environ*."""
    env = os.environ if environ is None else environ
    return env.get(ENABLE_ENV_VAR, "").strip().lower() in _TRUTHY


def default_aggregate_path(environ: Mapping[str, str] | None = None) -> Path:
    """Well-known location of the shared aggregate file."""
    env = os.environ if environ is None else environ
    override = env.get(AGGREGATE_PATH_ENV_VAR)
    if override:
        return Path(override)
    return Path(tempfile.gettempdir()) / AGGREGATE_FILENAME
