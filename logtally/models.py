"""Shared data models for logtally."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from logtally.config import EMPTY_SIGNATURE


@dataclass(frozen=True)
class EventKey:
    """One distinct reported event shape: ``(category, signature)``."""
    category: str
    signature: str

    def __post_init__(self) -> None:
        if ":" in self.category:
            raise ValueError(f"category may not contain ':': {self.category!r}")

    @property
    def label(self) -> str:
        """Signature as displayed to humans."""
        return self.signature or EMPTY_SIGNATURE

    def to_storage(self) -> str:
        """Serialize to the ``"<category>: <signature>"`` form used on disk."""
        return f"{self.category}: {self.signature}"

    @classmethod
    def from_storage(cls, raw: str) -> EventKey:
        category, _, rest = raw.partition(":")
        if rest.startswith(" "):
            rest = rest[1:]
        return cls(category.strip(), rest)


@dataclass
class Snapshot:
    """Count Map + Origin Map at a point in time.

    ``error`` is set only when the snapshot came from a store that could
    not be read or parsed.
    """
    counts: dict[EventKey, int] = field(default_factory=dict)
    files: dict[EventKey, dict[str, int]] = field(default_factory=dict)
    error: str | None = None

    def is_empty(self) -> bool:
        return not self.counts and not self.files

    def origins(self) -> set[str]:
        """All distinct origins across every key."""
        return {origin for per_key in self.files.values() for origin in per_key}

    def is_consistent(self) -> bool:
        """True when every key's origin counts sum to its total."""
        return all(
            sum(per_key.values()) == self.counts.get(key, 0)
            for key, per_key in self.files.items()
        )

    def copy(self) -> Snapshot:
        return Snapshot(
            counts=dict(self.counts),
            files={key: dict(per_key) for key, per_key in self.files.items()},
            error=self.error,
        )

    # -- storage boundary -----------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON document persisted by the aggregate store."""
        return {
            "counts": {key.to_storage(): count for key, count in self.counts.items()},
            "files": {
                key.to_storage(): dict(per_key) for key, per_key in self.files.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Any) -> Snapshot:
        """Build a snapshot from a parsed aggregate document.

        Raises ``ValueError`` when the document does not have the
        expected shape.  Raw keys that parse to the same ``EventKey``
        (``"error:x"`` and ``"error: x"``) are summed.
        """
        if not isinstance(data, dict):
            raise ValueError(f"aggregate root must be an object, got {type(data).__name__}")
        raw_counts = data.get("counts") or {}
        raw_files = data.get("files") or {}
        if not isinstance(raw_counts, dict) or not isinstance(raw_files, dict):
            raise ValueError("aggregate 'counts' and 'files' must be objects")

        counts: dict[EventKey, int] = {}
        for raw_key, count in raw_counts.items():
            key = EventKey.from_storage(raw_key)
            counts[key] = counts.get(key, 0) + _as_count(count, raw_key)

        files: dict[EventKey, dict[str, int]] = {}
        for raw_key, per_key in raw_files.items():
            if not isinstance(per_key, dict):
                raise ValueError(f"origin map for {raw_key!r} must be an object")
            merged = files.setdefault(EventKey.from_storage(raw_key), {})
            for origin, count in per_key.items():
                origin = str(origin)
                merged[origin] = merged.get(origin, 0) + _as_count(count, raw_key)
        return cls(counts=counts, files=files)


def _as_count(value: Any, raw_key: str) -> int:
    # bool is an int subclass but never a valid count
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"invalid count {value!r} for {raw_key!r}")
    return value
