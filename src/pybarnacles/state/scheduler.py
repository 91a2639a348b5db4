"""Self-re-arming sweep timer.

One timer drives every device of a store: after each sweep it sleeps
until the earliest deadline any device reported, but never less than
``min_rearm_ms``. Inserts that schedule an earlier deadline wake it up
through :meth:`SweepScheduler.rearm`, which is safe to call from any
thread.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable

from pybarnacles.models.raddec import Raddec
from pybarnacles.state.store import DeviceStore

_logger = logging.getLogger(__name__)


class SweepScheduler:
    """Async loop sweeping a :class:`DeviceStore` at its earliest deadline.

    Usage::

        scheduler = SweepScheduler(store, emit=on_event, clock=clock, min_rearm_ms=50)
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        store: DeviceStore,
        *,
        emit: Callable[[Raddec], None],
        clock: Callable[[], int],
        min_rearm_ms: int,
    ) -> None:
        self._store = store
        self._emit = emit
        self._clock = clock
        self._min_rearm_ms = min_rearm_ms
        self._task: asyncio.Task[None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._wakeup: asyncio.Event | None = None
        self._armed_deadline: int | None = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def armed_deadline(self) -> int | None:
        """Deadline (epoch ms) the timer is currently armed for."""
        with self._lock:
            return self._armed_deadline

    # --- Lifecycle ---

    async def start(self) -> None:
        """Start the sweep loop on the running event loop."""
        if self._task is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._wakeup = asyncio.Event()
        self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        """Cancel the sweep loop. A sweep in progress always completes first."""
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        self._loop = None
        self._wakeup = None
        with self._lock:
            self._armed_deadline = None

    # --- Scheduling ---

    def sweep_now(self) -> int:
        """Run one synchronous sweep and return the next global deadline."""
        return self._store.sweep(self._clock(), self._emit)

    def rearm(self, deadline: int) -> None:
        """Wake the loop early if *deadline* precedes the armed deadline."""
        with self._lock:
            if self._armed_deadline is not None and deadline >= self._armed_deadline:
                return
            self._armed_deadline = deadline
        loop = self._loop
        wakeup = self._wakeup
        if loop is None or wakeup is None:
            return
        with contextlib.suppress(RuntimeError):
            # The loop may close between the check and the call.
            loop.call_soon_threadsafe(wakeup.set)

    async def _run_loop(self) -> None:
        while True:
            # Deadlines rearmed while the sweep runs are kept if earlier.
            with self._lock:
                self._armed_deadline = None
            try:
                next_deadline = self.sweep_now()
            except Exception:
                _logger.exception("Sweep failed; retrying after the minimum re-arm interval")
                next_deadline = self._clock() + self._min_rearm_ms
            with self._lock:
                if self._armed_deadline is None or next_deadline < self._armed_deadline:
                    self._armed_deadline = next_deadline
            await self._sleep_until_deadline()

    async def _sleep_until_deadline(self) -> None:
        assert self._wakeup is not None  # noqa: S101
        while True:
            self._wakeup.clear()
            with self._lock:
                deadline = self._armed_deadline
            if deadline is None:
                return
            delay_ms = max(self._min_rearm_ms, deadline - self._clock())
            _logger.debug("Sweep timer armed delay_ms=%d deadline=%d", delay_ms, deadline)
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=delay_ms / 1000.0)
            except TimeoutError:
                return
