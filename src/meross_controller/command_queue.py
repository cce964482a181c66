"""Per-device command queue.

Serializes outbound device I/O: one task at a time, FIFO, dispatches spaced by
a minimum interval, each task bounded by a timeout.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeAlias, TypeVar

from meross_controller.correlation import correlation_context, get_correlation_id
from meross_controller.exceptions import CommandTimeoutError
from meross_controller.logging_abstraction import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

QueueTask: TypeAlias = Callable[[], Awaitable[T]]


@dataclass(slots=True)
class _QueuedTask:
    task: QueueTask[Any]
    future: asyncio.Future[Any]
    correlation_id: str | None


class CommandQueue:
    """Single-concurrency, rate-limited, timeout-bounded task queue.

    `submit()` resolves with the task's result or raises its exception; a
    failing or timed-out task never affects the tasks queued behind it. When
    the last pending task finishes, `on_idle` is called.
    """

    lp: str = "CommandQueue:"

    def __init__(
        self,
        *,
        interval: float,
        timeout: float,
        on_idle: Callable[[], None] | None = None,
        name: str = "",
    ) -> None:
        """Initialize the queue.

        Args:
            interval: Minimum seconds between the start of consecutive tasks
            timeout: Seconds a task may run before failing with CommandTimeoutError
            on_idle: Called when no task is pending or running
            name: Used in the log prefix

        """
        self.interval: float = interval
        self.timeout: float = timeout
        self._on_idle: Callable[[], None] | None = on_idle
        self._queue: asyncio.Queue[_QueuedTask] = asyncio.Queue()
        self._processing: bool = False
        self._worker: asyncio.Task[None] | None = None
        self._last_dispatch: float | None = None
        if name:
            self.lp = f"CommandQueue:{name}:"

    @property
    def idle(self) -> bool:
        return not self._processing and self._queue.empty()

    def __len__(self) -> int:
        return self._queue.qsize()

    async def submit(self, task: QueueTask[T]) -> T:
        """Queue a task and wait for its outcome."""
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait(_QueuedTask(task=task, future=future, correlation_id=get_correlation_id()))
        logger.debug("%s Queued task (queue size: %d)", self.lp, self._queue.qsize())
        if not self._processing:
            self._processing = True
            self._worker = asyncio.create_task(self._process())
        return await future

    async def _process(self) -> None:
        try:
            while not self._queue.empty():
                item = self._queue.get_nowait()
                try:
                    if item.future.cancelled():
                        logger.debug("%s Skipping task abandoned by its submitter", self.lp)
                        continue
                    await self._wait_for_slot()
                    with correlation_context(item.correlation_id, auto_generate=False):
                        await self._run(item)
                finally:
                    self._queue.task_done()
        finally:
            self._processing = False
            self._worker = None
            logger.debug("%s Queue idle", self.lp)
            if self._on_idle is not None:
                self._on_idle()

    async def _wait_for_slot(self) -> None:
        loop = asyncio.get_running_loop()
        if self._last_dispatch is not None:
            delay = self._last_dispatch + self.interval - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
        self._last_dispatch = loop.time()

    async def _run(self, item: _QueuedTask) -> None:
        try:
            result = await asyncio.wait_for(item.task(), timeout=self.timeout)
        except TimeoutError:
            logger.debug("%s Task timed out after %ss", self.lp, self.timeout)
            if not item.future.done():
                item.future.set_exception(CommandTimeoutError(self.timeout))
        except asyncio.CancelledError:
            if not item.future.done():
                item.future.cancel()
            raise
        except Exception as e:  # noqa: BLE001 - delivered to the submitter
            if not item.future.done():
                item.future.set_exception(e)
        else:
            if not item.future.done():
                item.future.set_result(result)

    async def close(self) -> None:
        """Cancel the worker and fail everything still queued."""
        worker = self._worker
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if not item.future.done():
                item.future.cancel()
            self._queue.task_done()
        if worker is not None and not worker.done():
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker
