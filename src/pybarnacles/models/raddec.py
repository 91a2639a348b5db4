"""Radio decoding (raddec) model.

A raddec reports that one transmitter was heard by one or more receivers.
Raddecs of the same transmitter are mergeable: merging unions the rssi
signatures (strongest entry per receiver wins) and the packets.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from pydantic import AliasChoices, Field, field_validator

from pybarnacles.models._base import BarnaclesBaseModel, Identifier, Milliseconds, make_signature
from pybarnacles.state.events import EventKind, sort_event_kinds


class RssiSignatureEntry(BarnaclesBaseModel):
    """One receiver's decoding of a transmitter.

    Parameters
    ----------
    receiver_id : str
        Receiver identifier (lower-cased).
    receiver_id_type : int
        Receiver identifier type.
    rssi : int
        Received signal strength in dBm (``signalStrength`` also accepted).
    number_of_decodings : int or None
        Number of decodings aggregated into this entry, if reported.
    """

    receiver_id: Identifier
    receiver_id_type: int
    rssi: int = Field(validation_alias=AliasChoices("rssi", "signalStrength", "signal_strength"))
    number_of_decodings: int | None = None

    @property
    def receiver_signature(self) -> str:
        return make_signature(self.receiver_id, self.receiver_id_type)


def _strongest_first(entries: Iterable[RssiSignatureEntry]) -> list[RssiSignatureEntry]:
    # sorted() is stable: equal rssi keeps arrival order.
    return sorted(entries, key=lambda entry: -entry.rssi)


def _union(first: Iterable[str], second: Iterable[str]) -> list[str]:
    return list(dict.fromkeys([*first, *second]))


def _earliest(first: int | None, second: int | None) -> int | None:
    if first is None:
        return second
    if second is None:
        return first
    return min(first, second)


class Raddec(BarnaclesBaseModel):
    """A transmitter observation, or a compiled event when ``events`` is set.

    Parameters
    ----------
    transmitter_id : str
        Transmitter identifier (lower-cased).
    transmitter_id_type : int
        Transmitter identifier type.
    rssi_signature : list of RssiSignatureEntry
        Receivers that decoded the transmitter, strongest first
        (``signalSignature`` also accepted).
    timestamp : int or None
        Earliest observation time in epoch milliseconds (``time`` and
        ``initialTime`` also accepted).  Missing timestamps are set to
        *now* by the intake.
    packets : list of str
        Raw payloads as hex strings, deduplicated.
    protocol_specific_data : dict or None
        Side-channel data handed to the protocol-specific decoder.
    events : list of EventKind
        Event kinds of a compiled event, in deterministic order
        (``eventKinds`` also accepted).
    """

    transmitter_id: Identifier
    transmitter_id_type: int
    rssi_signature: list[RssiSignatureEntry] = Field(
        default_factory=list,
        validation_alias=AliasChoices("rssiSignature", "signalSignature", "rssi_signature"),
    )
    timestamp: Milliseconds | None = Field(
        default=None,
        validation_alias=AliasChoices("timestamp", "time", "initialTime"),
    )
    packets: list[str] = Field(default_factory=list)
    protocol_specific_data: dict[str, Any] | None = None
    events: list[EventKind] = Field(
        default_factory=list,
        validation_alias=AliasChoices("events", "eventKinds"),
    )

    @field_validator("rssi_signature")
    @classmethod
    def _sort_rssi_signature(cls, value: list[RssiSignatureEntry]) -> list[RssiSignatureEntry]:
        return _strongest_first(value)

    @field_validator("packets", mode="before")
    @classmethod
    def _normalize_packets(cls, value: Any) -> Any:
        if not isinstance(value, (list, tuple)):
            return value
        packets: list[Any] = []
        for packet in value:
            if isinstance(packet, (bytes, bytearray)):
                packets.append(bytes(packet).hex())
            elif isinstance(packet, str):
                packets.append(packet.strip().lower())
            else:
                packets.append(packet)
        return list(dict.fromkeys(packets))

    @field_validator("events")
    @classmethod
    def _sort_events(cls, value: list[EventKind]) -> list[EventKind]:
        return sort_event_kinds(value)

    @property
    def signature(self) -> str:
        """Transmitter signature, ``"<transmitterId>/<transmitterIdType>"``."""
        return make_signature(self.transmitter_id, self.transmitter_id_type)

    @property
    def receiver_signature(self) -> str | None:
        """Signature of the strongest receiver, or ``None`` without signal."""
        if not self.rssi_signature:
            return None
        return self.rssi_signature[0].receiver_signature

    def merge(self, other: Raddec) -> Raddec:
        """Return the full merge of this raddec with *other*.

        Raises :class:`ValueError` if *other* is from another transmitter.
        """
        if other.signature != self.signature:
            raise ValueError(f"cannot merge raddec of {other.signature} into {self.signature}")

        strongest: dict[str, RssiSignatureEntry] = {}
        for entry in (*self.rssi_signature, *other.rssi_signature):
            current = strongest.get(entry.receiver_signature)
            if current is None or entry.rssi > current.rssi:
                strongest[entry.receiver_signature] = entry

        return self.model_copy(
            update={
                "rssi_signature": _strongest_first(strongest.values()),
                "packets": _union(self.packets, other.packets),
                "timestamp": _earliest(self.timestamp, other.timestamp),
                "protocol_specific_data": self.protocol_specific_data or other.protocol_specific_data,
            }
        )

    def merge_packets(self, other: Raddec) -> Raddec:
        """Return a copy augmented with the packets of *other* only."""
        return self.model_copy(update={"packets": _union(self.packets, other.packets)})

    def with_events(self, kinds: Iterable[EventKind | str]) -> Raddec:
        return self.model_copy(update={"events": sort_event_kinds(kinds)})

    def with_timestamp(self, timestamp: int) -> Raddec:
        return self.model_copy(update={"timestamp": timestamp})

    def to_json(self) -> dict[str, Any]:
        """Camel-case, JSON-safe representation (the outbound wire form)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
