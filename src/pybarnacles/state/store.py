"""In-memory device store.

This is the only component allowed to mutate device state. Every change
goes through :meth:`DeviceStore.insert_raddec`,
:meth:`DeviceStore.insert_dynamb`, :meth:`DeviceStore.insert_statid` or
:meth:`DeviceStore.sweep`; queries return copies.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from typing import Any

from pybarnacles.config import BarnaclesConfig
from pybarnacles.models._base import make_signature, normalize_signature
from pybarnacles.models.attributes import DynambCandidate, StatidCandidate
from pybarnacles.models.raddec import Raddec
from pybarnacles.state.context import compile_context
from pybarnacles.state.device import Device, DeviceSnapshot

_logger = logging.getLogger(__name__)

DEVICE_PROPERTIES: frozenset[str] = frozenset({"raddec", "dynamb", "statid"})


def _now_ms() -> int:
    """Current epoch timestamp in milliseconds."""
    return int(time.time() * 1000)


class DeviceStore:
    """Map of transmitter signature to :class:`Device`.

    Access is serialized by a single re-entrant lock: raddec producers may
    run on any thread while the sweep runs on the event loop. Events found
    by a sweep are emitted after the lock is released, so listeners may
    query the store.
    """

    def __init__(
        self,
        config: BarnaclesConfig | None = None,
        *,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._config = config or BarnaclesConfig()
        self._clock = clock
        self._devices: dict[str, Device] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._devices)

    def __contains__(self, signature: object) -> bool:
        with self._lock:
            return signature in self._devices

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def insert_raddec(self, raddec: Raddec) -> int:
        """Insert a raddec, creating its device on first sight.

        Returns the device's next evaluation deadline.
        """
        now = self._clock()
        if raddec.timestamp is None:
            raddec = raddec.with_timestamp(now)

        with self._lock:
            device = self._devices.get(raddec.signature)
            if device is None:
                device = Device(raddec.transmitter_id, raddec.transmitter_id_type, self._config)
                self._devices[raddec.signature] = device
                _logger.debug("Device created signature=%s", raddec.signature)
            return device.handle_raddec(raddec, now)

    def insert_dynamb(self, dynamb: DynambCandidate) -> bool:
        """Route a dynamb to its device. Returns False if the device is unknown."""
        with self._lock:
            device = self._devices.get(dynamb.signature)
            if device is None:
                return False
            device.insert_dynamb(dynamb)
            return True

    def insert_statid(self, statid: StatidCandidate) -> bool:
        """Route a statid to its device. Returns False if the device is unknown."""
        with self._lock:
            device = self._devices.get(statid.signature)
            if device is None:
                return False
            device.insert_statid(statid)
            return True

    def sweep(self, now: int, emit: Callable[[Raddec], None]) -> int:
        """Evaluate every device and remove those that disappeared.

        Returns the earliest next deadline across all devices, or
        ``now + delay_ms`` when the store is empty.
        """
        events: list[Raddec] = []
        next_deadline = now + self._config.delay_ms

        with self._lock:
            deadlines: list[int] = []
            for signature, device in list(self._devices.items()):
                deadline = device.determine_events(now, events.append)
                if deadline is None:
                    del self._devices[signature]
                    _logger.debug("Device removed signature=%s", signature)
                else:
                    deadlines.append(deadline)
            if deadlines:
                next_deadline = min(deadlines)

        for event in events:
            emit(event)
        return next_deadline

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _snapshots(self, signatures: Iterable[str] | None, now: int) -> list[DeviceSnapshot]:
        with self._lock:
            if signatures is None:
                devices = list(self._devices.values())
            else:
                requested = dict.fromkeys(normalize_signature(signature) for signature in signatures)
                devices = [self._devices[s] for s in requested if s in self._devices]
            return [device.snapshot(now) for device in devices]

    def retrieve_devices(
        self,
        device_id: str | None = None,
        device_id_type: int | None = None,
        properties: Iterable[str] | None = None,
    ) -> dict[str, dict[str, Any]]:
        """Project the requested properties of matching devices.

        ``device_id`` without ``device_id_type`` matches every id type;
        ``properties`` defaults to ``raddec``, ``dynamb`` and ``statid``.
        Properties a device does not have are omitted.
        """
        wanted = DEVICE_PROPERTIES if properties is None else DEVICE_PROPERTIES & set(properties)
        now = self._clock()

        if device_id is None:
            signatures = None
        elif device_id_type is not None:
            signatures = [make_signature(device_id.strip().lower(), device_id_type)]
        else:
            prefix = f"{device_id.strip().lower()}/"
            with self._lock:
                signatures = [signature for signature in self._devices if signature.startswith(prefix)]

        devices: dict[str, dict[str, Any]] = {}
        for snapshot in self._snapshots(signatures, now):
            projection: dict[str, Any] = {}
            if "raddec" in wanted and snapshot.raddec is not None:
                projection["raddec"] = snapshot.raddec.to_json()
            if "dynamb" in wanted and snapshot.dynamb is not None:
                projection["dynamb"] = snapshot.dynamb
            if "statid" in wanted and snapshot.statid is not None:
                projection["statid"] = snapshot.statid
            devices[snapshot.signature] = projection
        return devices

    def retrieve_context(self, signatures: Iterable[str] | None = None, depth: int = 1) -> dict[str, dict[str, Any]]:
        """Return the closed proximity graph of the given (or all) devices."""
        snapshots = self._snapshots(signatures, self._clock())
        return compile_context(snapshots, depth)
