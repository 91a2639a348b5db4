"""Deterministic timestamp acceptance policy.

This module intentionally contains *no* payload parsing. The ingestion
boundary calls it with already-validated records.
"""

from __future__ import annotations


def resolve_timestamp(
    timestamp: int,
    *,
    now: int,
    stale_window: int,
    accept_stale: bool,
    accept_future: bool,
) -> int | None:
    """Decide which timestamp an inbound record should carry.

    Policy:
    - Within ``[now - stale_window, now]``: keep the timestamp.
    - Stale or future: correct it to *now* if the matching ``accept_*``
      toggle is set, otherwise reject (``None``).
    """
    is_stale = timestamp < now - stale_window
    is_future = timestamp > now

    if not is_stale and not is_future:
        return timestamp
    if (is_stale and accept_stale) or (is_future and accept_future):
        return now
    return None


def is_expired(now: int, expires_at: int) -> bool:
    return now >= expires_at
