"""Context assembler.

Turns device snapshots into a closed proximity graph: every device lists
its nearest neighbours (strongest first), and every neighbour referenced
anywhere has at least a placeholder entry at the top level, so a caller
can render two hops without further queries.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pybarnacles._constants import NEAREST_PROPERTY
from pybarnacles.ingestion.normalize import coerce_int
from pybarnacles.models._base import make_signature
from pybarnacles.state.device import DeviceSnapshot

_logger = logging.getLogger(__name__)


def _parse_nearest_item(item: Any) -> tuple[str, int] | None:
    """Parse one ``nearest`` dynamb entry into ``(signature, rssi)``."""
    if not isinstance(item, Mapping):
        return None
    device_id = item.get("deviceId")
    rssi = coerce_int(item.get("rssi"))
    if not isinstance(device_id, str) or not device_id.strip() or rssi is None:
        return None
    device_id = device_id.strip().lower()
    device_id_type = coerce_int(item.get("deviceIdType"))
    if device_id_type is None:
        return device_id, rssi
    return make_signature(device_id, device_id_type), rssi


def compile_nearest(snapshot: DeviceSnapshot) -> list[dict[str, Any]]:
    """Neighbours of one device as ``{"device", "rssi"}`` dicts, strongest first.

    Sources are the rssi signature of the latest compiled event and the
    ``nearest`` dynamb property. A neighbour seen by both keeps its
    strongest rssi.
    """
    strongest: dict[str, int] = {}

    def keep(signature: str, rssi: int) -> None:
        current = strongest.get(signature)
        if current is None or rssi > current:
            strongest[signature] = rssi

    if snapshot.raddec is not None:
        for entry in snapshot.raddec.rssi_signature:
            keep(entry.receiver_signature, entry.rssi)

    if snapshot.dynamb is not None:
        nearest = snapshot.dynamb.get(NEAREST_PROPERTY)
        if isinstance(nearest, list):
            for item in nearest:
                parsed = _parse_nearest_item(item)
                if parsed is not None:
                    keep(*parsed)

    strongest.pop(snapshot.signature, None)
    ordered = sorted(strongest.items(), key=lambda pair: -pair[1])
    return [{"device": signature, "rssi": rssi} for signature, rssi in ordered]


def compile_context(snapshots: Iterable[DeviceSnapshot], depth: int = 1) -> dict[str, dict[str, Any]]:
    """Compile the closed proximity graph of the given devices.

    ``depth`` greater than 1 is accepted but served as depth 1: multi-hop
    traversal is not implemented.
    """
    if depth > 1:
        _logger.debug("Context depth=%d requested; compiling depth 1", depth)

    context: dict[str, dict[str, Any]] = {}
    for snapshot in snapshots:
        entry: dict[str, Any] = {"nearest": compile_nearest(snapshot)}
        if snapshot.raddec is not None:
            entry["raddec"] = snapshot.raddec.to_json()
        if snapshot.dynamb is not None:
            entry["dynamb"] = snapshot.dynamb
        if snapshot.statid is not None:
            entry["statid"] = snapshot.statid
        context[snapshot.signature] = entry

    neighbours = [neighbour["device"] for entry in context.values() for neighbour in entry["nearest"]]
    for signature in neighbours:
        context.setdefault(signature, {})

    return context
