"""Ranking and rollups over a final aggregate snapshot.

Ties are broken by the snapshot's key iteration order (``sorted`` is
stable); callers should not rely on the order of equal counts.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from logtally.config import MAX_ORIGINS, TOP_MESSAGES
from logtally.models import EventKey, Snapshot


def category_totals(snapshot: Snapshot) -> dict[str, int]:
    """Sum of counts per category, in encounter order."""
    totals: dict[str, int] = {}
    for key, count in snapshot.counts.items():
        totals[key.category] = totals.get(key.category, 0) + count
    return totals


def top_messages(snapshot: Snapshot, n: int = 1) -> dict[str, list[tuple[EventKey, int]]]:
    """The *n* highest-count keys for each category."""
    by_category: dict[str, list[tuple[EventKey, int]]] = {}
    for key, count in snapshot.counts.items():
        by_category.setdefault(key.category, []).append((key, count))
    return {
        category: sorted(entries, key=lambda kv: kv[1], reverse=True)[:n]
        for category, entries in by_category.items()
    }


def distinct_origins(snapshot: Snapshot) -> set[str]:
    return snapshot.origins()


def category_origin_totals(snapshot: Snapshot) -> dict[str, dict[str, int]]:
    """Counts per category per origin."""
    totals: dict[str, dict[str, int]] = {}
    for key in snapshot.counts:
        per_key = snapshot.files.get(key)
        if not per_key:
            continue
        target = totals.setdefault(key.category, {})
        for origin, count in per_key.items():
            target[origin] = target.get(origin, 0) + count
    return totals


def top_origins(
    snapshot: Snapshot,
    key: EventKey,
    limit: int = MAX_ORIGINS,
) -> tuple[list[tuple[str, int]], int]:
    """Return ``(shown, remaining)`` for *key*'s origins, highest count first.

    At most *limit* origins are shown; ``remaining`` is how many more
    exist.  Keys without origins give ``([], 0)``.
    """
    per_key = snapshot.files.get(key) or {}
    ranked = sorted(per_key.items(), key=lambda kv: kv[1], reverse=True)
    shown = ranked[:limit]
    return shown, len(ranked) - len(shown)


@dataclass
class MessageEntry:
    """One ranked message with its origin breakdown."""
    key: EventKey
    count: int
    origins: list[tuple[str, int]] = field(default_factory=list)
    more_origins: int = 0


@dataclass
class CategorySection:
    category: str
    total: int
    messages: list[MessageEntry] = field(default_factory=list)


def build_sections(
    snapshot: Snapshot,
    top_n: int = TOP_MESSAGES,
    max_origins: int = MAX_ORIGINS,
) -> list[CategorySection]:
    """Per-category ranked messages with their top origins."""
    totals = category_totals(snapshot)
    ranked = top_messages(snapshot, top_n)
    sections = []
    for category, total in totals.items():
        section = CategorySection(category=category, total=total)
        for key, count in ranked.get(category, []):
            shown, remaining = top_origins(snapshot, key, max_origins)
            section.messages.append(MessageEntry(key, count, shown, remaining))
        sections.append(section)
    return sections
