"""Hand-off to the external decoding collaborator.

Payload decoding is not done here: a :class:`PacketProcessor` supplied by
the host turns raw packets (or protocol-specific data) into a flat mapping
of decoded properties. This module wraps each decoded mapping in a dynamb
and a statid candidate and lets the attribute managers decide what to keep.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol

from pybarnacles._constants import RELAY_PROPERTY, TOPIC_RELAY
from pybarnacles.ingestion.attributes import DynambManager, StatidManager
from pybarnacles.models.raddec import Raddec

_logger = logging.getLogger(__name__)


class PacketProcessor(Protocol):
    """Structural interface of the decoding collaborator.

    ``process`` receives the raddec's packets (a list of hex strings) or
    its protocol-specific data (a dict) and returns the decoded
    properties, or ``None`` when nothing could be decoded.
    """

    def process(self, data: Any) -> Mapping[str, Any] | None: ...


class _DecodedDataManager:
    def __init__(
        self,
        processor: PacketProcessor,
        dynamb_manager: DynambManager,
        statid_manager: StatidManager,
    ) -> None:
        self._processor = processor
        self._dynamb_manager = dynamb_manager
        self._statid_manager = statid_manager

    def _decode(self, raddec: Raddec, data: Any) -> Mapping[str, Any] | None:
        try:
            decoded = self._processor.process(data)
        except Exception:
            _logger.debug("Decoding failed signature=%s", raddec.signature, exc_info=True)
            return None
        if not isinstance(decoded, Mapping) or not decoded:
            return None
        return decoded

    def _dispatch(self, raddec: Raddec, decoded: Mapping[str, Any]) -> None:
        identity = {"deviceId": raddec.transmitter_id, "deviceIdType": raddec.transmitter_id_type}
        self._dynamb_manager.handle_dynamb({**decoded, **identity, "timestamp": raddec.timestamp})
        self._statid_manager.handle_statid({**decoded, **identity})


class PacketManager(_DecodedDataManager):
    """Decodes the packets of each inbound raddec."""

    def handle_raddec(self, raddec: Raddec) -> None:
        if not raddec.packets:
            return
        decoded = self._decode(raddec, list(raddec.packets))
        if decoded is not None:
            self._dispatch(raddec, decoded)


class ProtocolSpecificDataManager(_DecodedDataManager):
    """Decodes the protocol-specific data of each inbound raddec.

    A decoded ``relay`` property is published on the ``relay`` topic.
    """

    def __init__(
        self,
        processor: PacketProcessor,
        dynamb_manager: DynambManager,
        statid_manager: StatidManager,
        *,
        publish: Callable[[str, Any], None],
    ) -> None:
        super().__init__(processor, dynamb_manager, statid_manager)
        self._publish = publish

    def handle_raddec(self, raddec: Raddec) -> None:
        if not raddec.protocol_specific_data:
            return
        decoded = self._decode(raddec, dict(raddec.protocol_specific_data))
        if decoded is None:
            return

        relay = decoded.get(RELAY_PROPERTY)
        if isinstance(relay, Mapping):
            self._publish(TOPIC_RELAY, {"timestamp": raddec.timestamp, **relay})

        self._dispatch(raddec, decoded)
