"""High-level async entry point for the presence engine."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from pybarnacles.config import BarnaclesConfig
from pybarnacles.ingestion.attributes import DynambManager, StatidManager
from pybarnacles.ingestion.packets import PacketManager, PacketProcessor, ProtocolSpecificDataManager
from pybarnacles.ingestion.raddecs import RaddecManager
from pybarnacles.models.attributes import DynambCandidate, StatidCandidate
from pybarnacles.models.raddec import Raddec
from pybarnacles.services import EventService
from pybarnacles.state.scheduler import SweepScheduler
from pybarnacles.state.store import DeviceStore

_logger = logging.getLogger(__name__)

Listener = Callable[[str, Any], None]


def _now_ms() -> int:
    """Current epoch timestamp in milliseconds."""
    return int(time.time() * 1000)


class Barnacles:
    """Turns a stream of raddecs into a stream of device events.

    Usage::

        async with Barnacles(BarnaclesConfig()) as barnacles:
            barnacles.add_listener(lambda topic, payload: print(topic, payload))
            barnacles.handle_raddec(raddec)

    ``handle_*`` and query methods are safe to call from any thread;
    events are published from the event loop the instance was entered on.
    """

    def __init__(
        self,
        config: BarnaclesConfig | None = None,
        *,
        packet_processor: PacketProcessor | None = None,
        protocol_specific_data_processor: PacketProcessor | None = None,
        accept_raddec: Callable[[Raddec], bool] | None = None,
        accept_event: Callable[[Raddec], bool] | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._config = config or BarnaclesConfig()
        self._clock = clock
        self._listeners: tuple[Listener, ...] = ()
        self._services: list[EventService] = []
        self._listeners_lock = threading.Lock()
        self._running = False

        self._store = DeviceStore(self._config, clock=clock)
        self._dynamb_manager = DynambManager(self._store, self._config, publish=self._publish, clock=clock)
        self._statid_manager = StatidManager(self._store, self._config)

        packet_manager = None
        if packet_processor is not None:
            packet_manager = PacketManager(packet_processor, self._dynamb_manager, self._statid_manager)
        psd_manager = None
        if protocol_specific_data_processor is not None:
            psd_manager = ProtocolSpecificDataManager(
                protocol_specific_data_processor,
                self._dynamb_manager,
                self._statid_manager,
                publish=self._publish,
            )

        self._scheduler = SweepScheduler(
            self._store,
            emit=self._handle_event,
            clock=clock,
            min_rearm_ms=self._config.min_rearm_ms,
        )
        self._raddec_manager = RaddecManager(
            self._store,
            self._config,
            publish=self._publish,
            clock=clock,
            on_deadline=self._scheduler.rearm,
            accept_raddec=accept_raddec,
            accept_event=accept_event,
            packet_manager=packet_manager,
            protocol_specific_data_manager=psd_manager,
        )

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> Barnacles:
        for service in list(self._services):
            await service.start()
        await self._scheduler.start()
        self._running = True
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self._running = False
        await self._scheduler.stop()
        for service in reversed(self._services):
            try:
                await service.stop()
            except Exception:
                _logger.warning("Service %r failed to stop", service, exc_info=True)

    @property
    def config(self) -> BarnaclesConfig:
        return self._config

    @property
    def store(self) -> DeviceStore:
        return self._store

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def handle_raddec(self, raddec: Raddec | Mapping[str, Any]) -> Raddec | None:
        """Ingest a raddec (model or camelCase dict). Returns ``None`` if dropped."""
        return self._raddec_manager.handle_raddec(raddec)

    def handle_dynamb(self, dynamb: DynambCandidate | Mapping[str, Any]) -> DynambCandidate | None:
        """Ingest a dynamb for a known device. Returns ``None`` if dropped."""
        return self._dynamb_manager.handle_dynamb(dynamb)

    def handle_statid(self, statid: StatidCandidate | Mapping[str, Any]) -> StatidCandidate | None:
        """Ingest a statid for a known device. Returns ``None`` if dropped."""
        return self._statid_manager.handle_statid(statid)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> None:
        """Register a ``(topic, payload)`` callback for every published message."""
        with self._listeners_lock:
            self._listeners = (*self._listeners, listener)

    def remove_listener(self, listener: Listener) -> None:
        with self._listeners_lock:
            self._listeners = tuple(item for item in self._listeners if item is not listener)

    async def add_service(self, service: EventService) -> None:
        """Attach an outbound service; it is started now if the engine is running."""
        self._services.append(service)
        self.add_listener(service.handle_event)
        if self._running:
            await service.start()

    def _handle_event(self, event: Raddec) -> None:
        self._raddec_manager.handle_event(event)

    def _publish(self, topic: str, payload: Any) -> None:
        for listener in self._listeners:
            try:
                listener(topic, payload)
            except Exception:
                _logger.warning("Listener failed on topic=%s", topic, exc_info=True)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def retrieve_devices(
        self,
        device_id: str | None = None,
        device_id_type: int | None = None,
        properties: Iterable[str] | None = None,
    ) -> dict[str, dict[str, Any]]:
        return self._store.retrieve_devices(device_id, device_id_type, properties)

    def retrieve_context(self, signatures: Iterable[str] | None = None, depth: int = 1) -> dict[str, dict[str, Any]]:
        return self._store.retrieve_context(signatures, depth)

    def sweep_now(self) -> int:
        """Evaluate every device immediately. Returns the next global deadline."""
        return self._scheduler.sweep_now()
