"""Semantic presence event kinds.

Devices classify their compiled output into these kinds. Only the
state layer is allowed to produce them.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable


class EventKind(enum.StrEnum):
    """Event kinds, declared in their deterministic output order."""

    APPEARANCE = "appearance"
    DISPLACEMENT = "displacement"
    NEW_DATA = "new-data"
    KEEP_ALIVE = "keep-alive"
    DISAPPEARANCE = "disappearance"


_EVENT_ORDER: dict[EventKind, int] = {kind: index for index, kind in enumerate(EventKind)}


def sort_event_kinds(kinds: Iterable[EventKind | str]) -> list[EventKind]:
    """Deduplicate and sort event kinds in declaration order."""
    unique = {EventKind(kind) for kind in kinds}
    return sorted(unique, key=_EVENT_ORDER.__getitem__)


class PendingEvent(enum.Flag):
    """Events detected on input and confirmed at the next evaluation.

    Keep-alive and disappearance are never pending: they are derived from
    elapsed time when a device is evaluated.
    """

    NONE = 0
    APPEARANCE = enum.auto()
    DISPLACEMENT = enum.auto()
    NEW_DATA = enum.auto()
