"""Latest-write-wins gate for characteristic writes.

A slider drag in the hub produces a burst of writes for one characteristic.
Each write waits on a per-key timer; a newer write for the same key cancels the
pending timer and releases the older waiter with False, so only the final value
reaches the device.
"""

from __future__ import annotations

import asyncio

from meross_controller.const import DEBOUNCE_DELAY_SECONDS


def _release(waiter: asyncio.Future[bool]) -> None:
    if not waiter.done():
        waiter.set_result(True)


class DebounceGate:
    """Cancel-and-replace delayed timers, one pending waiter per key."""

    def __init__(self) -> None:
        self._pending: dict[str, tuple[asyncio.Future[bool], asyncio.TimerHandle]] = {}

    def pending(self, key: str) -> bool:
        return key in self._pending

    async def debounce(self, key: str, delay: float = DEBOUNCE_DELAY_SECONDS) -> bool:
        """Wait out the debounce window for `key`.

        Returns:
            True if no newer call for `key` arrived during the wait, else False

        """
        loop = asyncio.get_running_loop()

        previous = self._pending.pop(key, None)
        if previous is not None:
            previous_waiter, previous_timer = previous
            previous_timer.cancel()
            if not previous_waiter.done():
                previous_waiter.set_result(False)

        waiter: asyncio.Future[bool] = loop.create_future()
        timer = loop.call_later(delay, _release, waiter)
        self._pending[key] = (waiter, timer)
        try:
            return await waiter
        finally:
            timer.cancel()
            current = self._pending.get(key)
            if current is not None and current[0] is waiter:
                del self._pending[key]

    def cancel_all(self) -> None:
        """Release every pending waiter as superseded."""
        for waiter, timer in self._pending.values():
            timer.cancel()
            if not waiter.done():
                waiter.set_result(False)
        self._pending.clear()
