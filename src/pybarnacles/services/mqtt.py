"""MQTT event forwarder.

Publishes bus events as JSON to ``<base_topic>/<topic>`` on a broker,
typically consumed by another barnacles instance or a dashboard.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Collection, Mapping
from typing import Any

import paho.mqtt.client as mqtt

from pybarnacles._constants import TOPIC_RADDEC
from pybarnacles.exceptions import BarnaclesMqttError
from pybarnacles.services import is_whitelisted


class MqttEventForwarder:
    """Threaded paho-mqtt publisher.

    The network loop runs on paho's own thread (``loop_start``), so
    :meth:`handle_event` never blocks the sweep.

    Parameters
    ----------
    host : str
        Broker host name.
    port : int
        Broker port.
    base_topic : str
        Prefix of every published topic.
    topics : collection of str
        Bus topics to forward (default: compiled raddec events only).
    whitelist : collection of str or None
        Receiver/device ids to forward; ``None`` forwards everything.
    """

    def __init__(
        self,
        *,
        host: str,
        port: int = 1883,
        base_topic: str = "barnacles",
        client_id: str = "",
        username: str | None = None,
        password: str | None = None,
        tls: bool = False,
        keepalive: int = 60,
        qos: int = 0,
        topics: Collection[str] = (TOPIC_RADDEC,),
        whitelist: Collection[str] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._host = host
        self._port = port
        self._base_topic = base_topic.rstrip("/")
        self._client_id = client_id
        self._username = username
        self._password = password
        self._tls = tls
        self._keepalive = keepalive
        self._qos = qos
        self._topics = frozenset(topics)
        self._whitelist = frozenset(whitelist) if whitelist is not None else None
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the MQTT network loop is running."""
        return self._running

    async def start(self) -> None:
        """Connect in the background and start the network loop."""
        await self.stop()
        self._logger.debug("MQTT forwarder start requested host=%s port=%s", self._host, self._port)

        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self._client_id,
        )
        client.enable_logger(self._logger)
        if self._username is not None:
            client.username_pw_set(self._username, self._password)

        def on_connect(
            _client: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.is_failure:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.debug("MQTT connected reason=%s", reason_code)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_disconnect = on_disconnect

        try:
            if self._tls:
                client.tls_set()
            client.connect_async(self._host, self._port, keepalive=self._keepalive)
            client.loop_start()
        except (OSError, ValueError) as exc:
            raise BarnaclesMqttError(f"MQTT forwarder could not start: {exc}") from exc

        self._client = client
        self._running = True

    async def stop(self) -> None:
        """Disconnect and stop the network loop if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT forwarder stopped")

    def handle_event(self, topic: str, payload: Mapping[str, Any]) -> None:
        client = self._client
        if client is None or topic not in self._topics:
            return
        if not is_whitelisted(payload, self._whitelist):
            return

        message = json.dumps(payload, separators=(",", ":"))
        info = client.publish(f"{self._base_topic}/{topic}", message, qos=self._qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self._logger.warning("MQTT publish failed topic=%s rc=%s", topic, info.rc)
