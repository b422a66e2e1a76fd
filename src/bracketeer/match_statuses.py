"""Shared match-status definitions and helpers.

This module is the single source of truth for status groups that are reused
across the lifecycle controller, the status report and the API filters.
"""

from __future__ import annotations

from typing import Iterable

# Individual statuses a match can hold.
ALL_MATCH_STATUSES: tuple[str, ...] = (
    "scheduled",
    "in_progress",
    "completed",
    "walkover",
    "retired",
    "cancelled",
)

# Canonical status groups.
MATCH_STATUS_GROUPS: dict[str, tuple[str, ...]] = {
    # Waiting to be played (a postponed match returns here).
    "upcoming": ("scheduled",),
    # Currently being played.
    "active": ("in_progress",),
    # Not yet finished in any way.
    "open": ("scheduled", "in_progress"),
    # Finished with a winner.
    "decided": ("completed", "walkover", "retired"),
    # Finished. A cancelled elimination node is replayed on a new row.
    "terminal": ("completed", "walkover", "retired", "cancelled"),
    # Full set used by API filters when callers want explicit control.
    "all": ALL_MATCH_STATUSES,
}


def get_status_group(group_name: str) -> tuple[str, ...]:
    """Return a named status group, raising KeyError for unknown names."""
    return MATCH_STATUS_GROUPS[group_name]


def is_terminal(status: str) -> bool:
    return status in MATCH_STATUS_GROUPS["terminal"]


def normalize_status_filter(
    raw_statuses: Iterable[str] | None,
    *,
    default_group: str = "all",
) -> list[str]:
    """Normalize requested statuses against known values.

    - If no statuses are provided, returns the statuses from ``default_group``.
    - Unknown statuses are ignored.
    - Order is preserved and duplicates are removed.
    """
    if raw_statuses is None:
        return list(get_status_group(default_group))

    seen: set[str] = set()
    normalized: list[str] = []

    for raw in raw_statuses:
        status = raw.strip().lower()
        if not status or status in seen or status not in ALL_MATCH_STATUSES:
            continue
        seen.add(status)
        normalized.append(status)

    if normalized:
        return normalized

    return list(get_status_group(default_group))
