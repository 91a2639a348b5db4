"""Raddec stream intake.

Thin orchestration between raddec producers, the device store and the
outbound bus:

- parse and filter inbound raddecs, correct or reject their timestamps
- insert accepted raddecs into the store and re-arm the sweep timer
- forward packets and protocol-specific data to the decoding managers
- filter compiled events and publish them on the ``raddec`` topic
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError

from pybarnacles._constants import TOPIC_RADDEC
from pybarnacles.config import BarnaclesConfig
from pybarnacles.ingestion.packets import PacketManager, ProtocolSpecificDataManager
from pybarnacles.models.raddec import Raddec
from pybarnacles.state.policy import resolve_timestamp
from pybarnacles.state.store import DeviceStore

_logger = logging.getLogger(__name__)


def parse_raddec(data: Raddec | Mapping[str, Any]) -> Raddec | None:
    """Parse a raddec, returning ``None`` when identity fields are malformed."""
    if isinstance(data, Raddec):
        return data
    try:
        return Raddec.model_validate(data)
    except ValidationError:
        return None


class RaddecManager:
    """Feeds accepted raddecs to the store and relays compiled events."""

    def __init__(
        self,
        store: DeviceStore,
        config: BarnaclesConfig,
        *,
        publish: Callable[[str, Any], None],
        clock: Callable[[], int],
        on_deadline: Callable[[int], None] | None = None,
        accept_raddec: Callable[[Raddec], bool] | None = None,
        accept_event: Callable[[Raddec], bool] | None = None,
        packet_manager: PacketManager | None = None,
        protocol_specific_data_manager: ProtocolSpecificDataManager | None = None,
    ) -> None:
        self._store = store
        self._config = config
        self._publish = publish
        self._clock = clock
        self._on_deadline = on_deadline
        self._accept_raddec = accept_raddec
        self._accept_event = accept_event
        self._packet_manager = packet_manager
        self._protocol_specific_data_manager = protocol_specific_data_manager
        # A raddec older than disappearance_ms would be gone before it could appear.
        self._stale_window = min(config.history_ms, config.disappearance_ms)

    def handle_raddec(self, data: Raddec | Mapping[str, Any]) -> Raddec | None:
        """Ingest one raddec.

        Returns the raddec as inserted (possibly re-timestamped), or
        ``None`` if it was rejected.
        """
        raddec = parse_raddec(data)
        if raddec is None:
            _logger.debug("Raddec rejected: malformed identity")
            return None

        if self._accept_raddec is not None and not self._accept_raddec(raddec):
            return None

        now = self._clock()
        if raddec.timestamp is None:
            raddec = raddec.with_timestamp(now)
        else:
            timestamp = resolve_timestamp(
                raddec.timestamp,
                now=now,
                stale_window=self._stale_window,
                accept_stale=self._config.accept_stale_raddecs,
                accept_future=self._config.accept_future_raddecs,
            )
            if timestamp is None:
                _logger.debug("Raddec rejected: timestamp=%d out of range signature=%s", raddec.timestamp, raddec.signature)
                return None
            if timestamp != raddec.timestamp:
                raddec = raddec.with_timestamp(timestamp)

        deadline = self._store.insert_raddec(raddec)
        if self._on_deadline is not None:
            self._on_deadline(deadline)

        if self._packet_manager is not None:
            self._packet_manager.handle_raddec(raddec)
        if self._protocol_specific_data_manager is not None:
            self._protocol_specific_data_manager.handle_raddec(raddec)
        return raddec

    def handle_event(self, event: Raddec) -> None:
        """Relay a compiled event to the outbound bus unless filtered out."""
        if self._accept_event is not None and not self._accept_event(event):
            return
        self._publish(TOPIC_RADDEC, event.to_json())
