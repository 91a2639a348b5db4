"""Per-transmitter presence state machine.

A :class:`Device` is pure state: it performs no I/O and reads no clock.
The store passes *now* in and collects whatever it emits.

Lifecycle (flag combinations rather than named states)::

    new --handle_raddec--> active --deadline--> evaluating --> active | gone

Events are detected cheaply on input (``pending``) and confirmed against
the merged buffer when the debounce deadline expires.
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pybarnacles.config import BarnaclesConfig
from pybarnacles.models._base import make_signature
from pybarnacles.models.attributes import DynambCandidate, StatidCandidate
from pybarnacles.models.raddec import Raddec
from pybarnacles.state.events import EventKind, PendingEvent
from pybarnacles.state.policy import is_expired


def _time(raddec: Raddec) -> int:
    # The store stamps raddecs without a timestamp before insertion.
    return raddec.timestamp if raddec.timestamp is not None else 0


@dataclass(slots=True)
class _DynambValue:
    value: Any
    timestamp: int


@dataclass(frozen=True, slots=True)
class DeviceSnapshot:
    """Read-only copy of the queryable state of one device."""

    signature: str
    raddec: Raddec | None
    dynamb: dict[str, Any] | None
    statid: dict[str, Any] | None


class Device:
    """State of one physical transmitter.

    Attributes
    ----------
    raddecs : list of Raddec
        Buffered raddecs, newest first, pruned to the history window.
    pending : PendingEvent
        Events detected since the last compiled event.
    latest_event : Raddec or None
        Last compiled event, the baseline for displacement and new-data.
    next_deadline : int or None
        When the device must next be evaluated (epoch ms).
    disappearance_deadline : int or None
        When the device is considered gone absent new raddecs (epoch ms).
    """

    def __init__(self, transmitter_id: str, transmitter_id_type: int, config: BarnaclesConfig) -> None:
        self.transmitter_id = transmitter_id
        self.transmitter_id_type = transmitter_id_type
        self._config = config
        self.raddecs: list[Raddec] = []
        self.pending = PendingEvent.APPEARANCE
        self.latest_event: Raddec | None = None
        self.latest_event_time: int | None = None
        self.next_deadline: int | None = None
        self.disappearance_deadline: int | None = None
        self._dynamb: dict[str, _DynambValue] = {}
        self._statid: dict[str, Any] = {}

    @property
    def signature(self) -> str:
        return make_signature(self.transmitter_id, self.transmitter_id_type)

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def handle_raddec(self, raddec: Raddec, now: int) -> int:
        """Buffer a raddec and flag what it might change.

        Returns the device's next evaluation deadline.
        """
        previous = self.latest_event
        if previous is not None:
            receiver = raddec.receiver_signature
            if receiver is not None and receiver != previous.receiver_signature:
                self.pending |= PendingEvent.DISPLACEMENT
            known_packets = set(previous.packets)
            if any(packet not in known_packets for packet in raddec.packets):
                self.pending |= PendingEvent.NEW_DATA

        # Raddecs normally arrive in time order: only late arrivals re-sort.
        self.raddecs.insert(0, raddec)
        if len(self.raddecs) > 1 and _time(self.raddecs[0]) < _time(self.raddecs[1]):
            self.raddecs.sort(key=_time, reverse=True)

        if self.raddecs[0] is raddec:
            self.disappearance_deadline = _time(raddec) + self._config.disappearance_ms

        debounced = now + self._config.delay_ms
        if self.next_deadline is None or (self.pending and self.next_deadline > debounced):
            return self._schedule(debounced)
        return self._schedule(self.next_deadline)

    def insert_dynamb(self, dynamb: DynambCandidate) -> None:
        """Merge dynamic attributes; older values never overwrite newer ones."""
        for name, value in dynamb.properties.items():
            current = self._dynamb.get(name)
            if current is None or dynamb.timestamp >= current.timestamp:
                self._dynamb[name] = _DynambValue(value=copy.deepcopy(value), timestamp=dynamb.timestamp)

    def insert_statid(self, statid: StatidCandidate) -> None:
        """Merge static attributes: lists are unioned, scalars replaced."""
        for name, value in statid.properties.items():
            existing = self._statid.get(name)
            if isinstance(value, list) and isinstance(existing, list):
                merged = list(existing)
                for item in value:
                    if item not in merged:
                        merged.append(copy.deepcopy(item))
                self._statid[name] = merged
            else:
                self._statid[name] = copy.deepcopy(value)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def determine_events(self, now: int, emit: Callable[[Raddec], None]) -> int | None:
        """Evaluate the device if its deadline has passed.

        Returns the next evaluation deadline, or ``None`` when the device
        has disappeared and must be removed by the caller.
        """
        if self.next_deadline is not None and now < self.next_deadline:
            return self.next_deadline

        self._prune_raddecs()
        self._expire_dynamb(now)

        if self.disappearance_deadline is not None and is_expired(now, self.disappearance_deadline):
            # A device that never appeared leaves without an event.
            if self.latest_event is not None:
                emit(self.latest_event.with_events([EventKind.DISAPPEARANCE]))
            return None

        kinds: list[EventKind] = []
        compiled: Raddec | None = None
        if self.pending:
            compiled = self._compile()
            kinds = self._confirm(compiled)
            self.pending = PendingEvent.NONE

        if not kinds and self._is_keep_alive_due(now):
            compiled = compiled if compiled is not None else self._compile()
            kinds = [EventKind.KEEP_ALIVE]

        if not kinds or compiled is None:
            return self._schedule(now + self._config.delay_ms)

        event = compiled.with_events(kinds)
        self.latest_event = event
        self.latest_event_time = now
        emit(event)
        return self._schedule(now + self._config.keep_alive_ms)

    def _confirm(self, compiled: Raddec) -> list[EventKind]:
        kinds: list[EventKind] = []
        previous = self.latest_event

        if PendingEvent.APPEARANCE in self.pending:
            kinds.append(EventKind.APPEARANCE)

        # Displacement is only a hint until the merged buffer agrees.
        if (
            PendingEvent.DISPLACEMENT in self.pending
            and previous is not None
            and compiled.receiver_signature != previous.receiver_signature
        ):
            kinds.append(EventKind.DISPLACEMENT)

        if PendingEvent.NEW_DATA in self.pending:
            known_packets = set(previous.packets) if previous is not None else set()
            if any(packet not in known_packets for packet in compiled.packets):
                kinds.append(EventKind.NEW_DATA)

        return kinds

    def _is_keep_alive_due(self, now: int) -> bool:
        if self.latest_event_time is None:
            return False
        if now - self.latest_event_time < self._config.keep_alive_ms:
            return False
        return any(raddec.rssi_signature for raddec in self.raddecs)

    def _compile(self) -> Raddec:
        """Merge the buffer into one representative raddec.

        Raddecs within the decoding compilation window of the newest are
        fully merged; older ones within the packet compilation window only
        contribute packets.
        """
        newest = self.raddecs[0]
        compiled = newest.with_events([])
        for raddec in self.raddecs[1:]:
            age = _time(newest) - _time(raddec)
            if age <= self._config.decoding_compilation_ms:
                compiled = compiled.merge(raddec)
            elif age <= self._config.packet_compilation_ms:
                compiled = compiled.merge_packets(raddec)
            else:
                break
        return compiled

    def _schedule(self, deadline: int) -> int:
        if self.disappearance_deadline is not None:
            deadline = min(deadline, self.disappearance_deadline)
        self.next_deadline = deadline
        return deadline

    def _prune_raddecs(self) -> None:
        if not self.raddecs:
            return
        cutoff = _time(self.raddecs[0]) - self._config.history_ms
        self.raddecs = [raddec for raddec in self.raddecs if _time(raddec) >= cutoff]

    def _expire_dynamb(self, now: int) -> None:
        ttl = self._config.dynamb_freshness_ms
        expired = [name for name, entry in self._dynamb.items() if is_expired(now, entry.timestamp + ttl)]
        for name in expired:
            del self._dynamb[name]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def dynamb_snapshot(self, now: int) -> dict[str, Any] | None:
        ttl = self._config.dynamb_freshness_ms
        fresh = {name: entry for name, entry in self._dynamb.items() if not is_expired(now, entry.timestamp + ttl)}
        if not fresh:
            return None
        dynamb: dict[str, Any] = {
            "deviceId": self.transmitter_id,
            "deviceIdType": self.transmitter_id_type,
            "timestamp": max(entry.timestamp for entry in fresh.values()),
        }
        for name, entry in fresh.items():
            dynamb[name] = copy.deepcopy(entry.value)
        return dynamb

    def statid_snapshot(self) -> dict[str, Any] | None:
        if not self._statid:
            return None
        statid: dict[str, Any] = {
            "deviceId": self.transmitter_id,
            "deviceIdType": self.transmitter_id_type,
        }
        statid.update(copy.deepcopy(self._statid))
        return statid

    def snapshot(self, now: int) -> DeviceSnapshot:
        return DeviceSnapshot(
            signature=self.signature,
            raddec=self.latest_event,
            dynamb=self.dynamb_snapshot(now),
            statid=self.statid_snapshot(),
        )
