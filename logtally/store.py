"""File-backed aggregate store shared by every worker in a run.

The store is a single JSON document::

    {"counts": {"<category>: <signature>": 3, ...},
     "files":  {"<category>: <signature>": {"<origin>": 2, ...}, ...}}

Workers flush with an unsynchronized read-merge-write.  Each write lands
through a rename so readers never see a half-written file, but two workers
that both read before either writes will lose one of the two updates.
Counts are therefore a best-effort approximation under heavy parallel
flushing; they are exact when flushes do not overlap.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from logtally.config import default_aggregate_path
from logtally.models import Snapshot

logger = logging.getLogger(__name__)


def merge_snapshots(base: Snapshot, local: Snapshot) -> Snapshot:
    """Combine *local* into *base* key-wise and return a new snapshot.

    Counts are summed per key and origin counts per key per origin; keys
    and origins are unioned.  Neither input is mutated.  Merging the same
    local snapshot twice counts it twice.
    """
    merged = base.copy()
    merged.error = None

    for key, count in local.counts.items():
        merged.counts[key] = merged.counts.get(key, 0) + count

    for key, per_key in local.files.items():
        target = merged.files.setdefault(key, {})
        for origin, count in per_key.items():
            target[origin] = target.get(origin, 0) + count

    return merged


class AggregateStore:
    """Named, shared aggregate location addressed by a well-known path."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else default_aggregate_path()

    def __repr__(self) -> str:
        return f"AggregateStore({str(self.path)!r})"

    def exists(self) -> bool:
        return self.path.exists()

    def reset(self) -> None:
        """Delete the aggregate.  Missing files are fine."""
        try:
            self.path.unlink()
            logger.debug("Removed aggregate %s", self.path)
        except FileNotFoundError:
            pass

    def load(self) -> Snapshot:
        """Return the current snapshot.

        An absent store is an empty snapshot.  Unreadable or malformed
        content yields an empty snapshot with ``error`` set instead of
        raising.
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return Snapshot()
        except OSError as exc:
            logger.debug("Could not read aggregate %s: %s", self.path, exc)
            return Snapshot(error=f"{type(exc).__name__}: {exc}")

        try:
            return Snapshot.from_dict(json.loads(raw))
        except (json.JSONDecodeError, ValueError) as exc:
            logger.debug("Could not parse aggregate %s: %s", self.path, exc)
            return Snapshot(error=f"{type(exc).__name__}: {exc}")

    def write(self, snapshot: Snapshot) -> None:
        """Replace the store contents with *snapshot*.

        Raises ``OSError`` when the file cannot be written.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(snapshot.to_dict(), fh, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    def merge(self, local: Snapshot) -> Snapshot:
        """Read-merge-write *local* into the store and return what was written.

        A corrupt store is treated as empty.  Not atomic across processes.
        """
        current = self.load()
        if current.error:
            logger.debug("Discarding unreadable aggregate %s: %s", self.path, current.error)
            current = Snapshot()
        merged = merge_snapshots(current, local)
        self.write(merged)
        logger.debug(
            "Merged %d key(s) into %s (%d total)",
            len(local.counts), self.path, len(merged.counts),
        )
        return merged
