"""Outbound notification services.

A service receives every ``(topic, payload)`` pair published on the bus
and forwards the ones it is interested in. Delivery is best-effort.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping
from typing import Any, Protocol


class EventService(Protocol):
    """Structural interface of an outbound service."""

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    def handle_event(self, topic: str, payload: Mapping[str, Any]) -> None: ...


def is_whitelisted(payload: Mapping[str, Any], whitelist: Collection[str] | None) -> bool:
    """Return True if any receiver (or the device itself) is whitelisted.

    ``None`` whitelists everything. Entries are matched against receiver
    ids of the payload's rssi signature and against its transmitter or
    device id.
    """
    if whitelist is None:
        return True

    candidates: list[Any] = [payload.get("transmitterId"), payload.get("deviceId")]
    signature = payload.get("rssiSignature")
    if isinstance(signature, list):
        candidates.extend(entry.get("receiverId") for entry in signature if isinstance(entry, Mapping))
    return any(isinstance(value, str) and value in whitelist for value in candidates)
