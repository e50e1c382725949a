"""Per-worker event buffer for logtally-patcher.

Every interceptor in a worker process counts into an EventBuffer.  At
worker completion the buffer is flushed: its contents are merged into the
shared aggregate store and the buffer is emptied.  Thread-safe via
threading.Lock.
"""

from __future__ import annotations

import logging
import threading
from pathlib import PurePath
from typing import Any, Callable, Optional, Sequence

from logtally.config import EMPTY_SIGNATURE, UNKNOWN_ORIGIN
from logtally.models import EventKey, Snapshot
from logtally.store import AggregateStore

logger = logging.getLogger(__name__)

OriginResolver = Callable[[], str]


# ---------------------------------------------------------------------------
# Helper utilities (module-level so they can be imported independently)
# ---------------------------------------------------------------------------

def make_signature(args: Sequence[Any]) -> str:
    """Return the first line of ``str(args[0])``, or the empty sentinel."""
    if not args:
        return EMPTY_SIGNATURE
    try:
        text = str(args[0])
    except Exception:
        return EMPTY_SIGNATURE
    return text.split("\n", 1)[0]


def make_event_key(category: str, args: Sequence[Any]) -> EventKey:
    """Return the dedupe key for one call of *category* with *args*."""
    return EventKey(category, make_signature(args))


def origin_from_path(path: Any) -> str:
    """Return the last two segments of *path* joined with ``/``."""
    if not path:
        return UNKNOWN_ORIGIN
    parts = PurePath(str(path)).parts
    if not parts:
        return UNKNOWN_ORIGIN
    return "/".join(parts[-2:])


def resolve_origin_safely(resolver: Optional[OriginResolver]) -> str:
    """Call *resolver*; any failure or empty answer maps to ``<unknown>``."""
    if resolver is None:
        return UNKNOWN_ORIGIN
    try:
        origin = resolver()
    except Exception:
        return UNKNOWN_ORIGIN
    return str(origin) if origin else UNKNOWN_ORIGIN


class OriginTracker:
    """Remembers the file of the test that is currently running.

    Instances are callables suitable as an origin resolver.
    """

    def __init__(self) -> None:
        self._path: str | None = None

    def set(self, path: Any) -> None:
        self._path = str(path) if path else None

    def clear(self) -> None:
        self._path = None

    def __call__(self) -> str:
        return origin_from_path(self._path)


# ---------------------------------------------------------------------------
# EventBuffer
# ---------------------------------------------------------------------------

class EventBuffer:
    """Worker-local Count Map + Origin Map.

    ``EventBuffer.get()`` returns a process-wide default instance; tests and
    the pytest plugin construct their own.
    """

    _instance: EventBuffer | None = None
    _init_lock = threading.Lock()

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: dict[EventKey, int] = {}
        self._files: dict[EventKey, dict[str, int]] = {}

    # -- singleton accessor ---------------------------------------------------

    @classmethod
    def get(cls) -> EventBuffer:
        """Return the process-wide buffer, creating it on first call."""
        if cls._instance is None:
            with cls._init_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    # -- public API -----------------------------------------------------------

    def record(self, key: EventKey, origin: str) -> None:
        """Count one occurrence of *key* at *origin*."""
        with self._lock:
            self._counts[key] = self._counts.get(key, 0) + 1
            per_key = self._files.setdefault(key, {})
            per_key[origin] = per_key.get(origin, 0) + 1

    def record_call(
        self,
        category: str,
        args: Sequence[Any],
        resolve_origin: Optional[OriginResolver] = None,
    ) -> EventKey:
        """Derive the key for a call and count it.  Returns the key."""
        key = make_event_key(category, args)
        self.record(key, resolve_origin_safely(resolve_origin))
        return key

    @property
    def total(self) -> int:
        with self._lock:
            return sum(self._counts.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._counts)

    def snapshot(self) -> Snapshot:
        """Return a copy of the current contents."""
        with self._lock:
            return Snapshot(
                counts=dict(self._counts),
                files={key: dict(per_key) for key, per_key in self._files.items()},
            )

    def drain(self) -> Snapshot:
        """Return the current contents and empty the buffer."""
        with self._lock:
            snap = Snapshot(counts=self._counts, files=self._files)
            self._counts = {}
            self._files = {}
        return snap

    def flush(self, store: AggregateStore) -> bool:
        """Merge the buffer into *store* and discard it.

        Returns False when the write failed; the failure is logged and
        otherwise ignored, and the drained counts are not retried.  Flushing
        an already-drained buffer is a no-op.
        """
        local = self.drain()
        if local.is_empty():
            return True
        try:
            store.merge(local)
        except OSError as exc:
            # Never fail the host run because of aggregation problems.
            logger.debug("Dropping %d key(s), flush to %s failed: %s",
                         len(local.counts), store.path, exc)
            return False
        return True
