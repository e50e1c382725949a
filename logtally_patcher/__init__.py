"""logtally-patcher: worker-side counting of logging calls.

Importing this package changes nothing in the host process.  Counting is
opt-in: wrap the callables or loggers you want tracked with
:func:`intercept` / :func:`wrap_logger`, or attach a :class:`TallyHandler`.
When the ``LOGTALLY_ENABLED`` flag is not set the wrappers hand back the
originals untouched.
"""

from __future__ import annotations

from logtally_patcher.event_buffer import (
    EventBuffer,
    OriginTracker,
    make_event_key,
    make_signature,
    origin_from_path,
)
from logtally_patcher.logging_patch import (
    InterceptedSources,
    TalliedLogger,
    TallyHandler,
    intercept,
    wrap_logger,
)

__all__ = [
    "EventBuffer",
    "InterceptedSources",
    "OriginTracker",
    "TalliedLogger",
    "TallyHandler",
    "intercept",
    "make_event_key",
    "make_signature",
    "origin_from_path",
    "wrap_logger",
]
