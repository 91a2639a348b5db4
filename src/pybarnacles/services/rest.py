"""REST event forwarder."""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
from collections.abc import Collection, Mapping, Sequence
from typing import Any

import aiohttp

from pybarnacles._constants import TOPIC_RADDEC
from pybarnacles.exceptions import BarnaclesTransportError
from pybarnacles.services import is_whitelisted

_logger = logging.getLogger(__name__)

_EVENTS_ENDPOINT = "/events"


class RestEventForwarder:
    """POSTs bus events to a remote HTTP endpoint.

    Each forwarded payload is sent as ``{"events": [payload]}`` to
    ``<base_url>/events``. Delivery failures are logged and dropped.

    :meth:`handle_event` may be called from any thread; requests are
    scheduled on the loop :meth:`start` ran on.
    """

    def __init__(
        self,
        base_url: str,
        *,
        session: aiohttp.ClientSession | None = None,
        timeout: float = 10.0,
        topics: Collection[str] = (TOPIC_RADDEC,),
        whitelist: Collection[str] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._external_session = session is not None
        self._http = session
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._topics = frozenset(topics)
        self._whitelist = frozenset(whitelist) if whitelist is not None else None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pending: set[concurrent.futures.Future[None]] = set()

    async def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        if self._http is None:
            self._http = aiohttp.ClientSession()

    async def stop(self) -> None:
        """Wait for in-flight deliveries, then release the HTTP session."""
        self._loop = None
        pending = list(self._pending)
        if pending:
            await asyncio.gather(*(asyncio.wrap_future(f) for f in pending), return_exceptions=True)
        if not self._external_session and self._http is not None:
            await self._http.close()
            self._http = None

    def handle_event(self, topic: str, payload: Mapping[str, Any]) -> None:
        loop = self._loop
        if loop is None or topic not in self._topics:
            return
        if not is_whitelisted(payload, self._whitelist):
            return

        future = asyncio.run_coroutine_threadsafe(self._deliver(dict(payload)), loop)
        self._pending.add(future)
        future.add_done_callback(self._pending.discard)

    async def _deliver(self, payload: dict[str, Any]) -> None:
        try:
            await self.post_events([payload])
        except BarnaclesTransportError as exc:
            _logger.warning("Event delivery failed: %s", exc)

    async def post_events(self, events: Sequence[Mapping[str, Any]]) -> None:
        """POST a batch of events, raising :class:`BarnaclesTransportError` on failure."""
        if self._http is None:
            raise BarnaclesTransportError("Forwarder not started", endpoint=_EVENTS_ENDPOINT)

        url = f"{self._base_url}{_EVENTS_ENDPOINT}"
        _logger.debug("POST %s events=%d", url, len(events))

        try:
            async with self._http.post(url, json={"events": list(events)}, timeout=self._timeout) as resp:
                if resp.status >= 300:
                    text = await resp.text()
                    raise BarnaclesTransportError(
                        f"HTTP {resp.status} from {_EVENTS_ENDPOINT}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=_EVENTS_ENDPOINT,
                    )
        except BarnaclesTransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise BarnaclesTransportError(
                f"Request to {_EVENTS_ENDPOINT} failed: {exc}",
                endpoint=_EVENTS_ENDPOINT,
            ) from exc
