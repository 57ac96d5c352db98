"""
Single-worker task queue serializing every exchange with the device.

The protocol carries no correlation identifiers, so two exchanges in flight
at once would misattribute responses. Units of work are coroutine functions
taking a CancelSignal; they run one at a time, in submission order.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from .errors import AbortedError, OssmTimeoutError

logger = logging.getLogger(__name__)


class CancelSignal:
    """Shared cancellation flag handed to a running unit of work."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[BaseException] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: BaseException) -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self.reason is not None:
            raise self.reason

    async def wait(self) -> None:
        await self._event.wait()


UnitOfWork = Callable[[CancelSignal], Awaitable[Any]]


@dataclass
class _WorkItem:
    unit: UnitOfWork
    generation: int
    future: asyncio.Future
    timeout: Optional[float]


class SerialTaskQueue:
    """Runs units of work strictly one at a time on a single worker task."""

    def __init__(self) -> None:
        self._channel: asyncio.Queue = asyncio.Queue()
        self._generation = 0
        self._current: Optional[CancelSignal] = None
        self._worker: Optional[asyncio.Task] = None

    @property
    def generation(self) -> int:
        """Counter bumped by every clear_queue()."""
        return self._generation

    @property
    def busy(self) -> bool:
        return self._current is not None

    @property
    def pending(self) -> int:
        """Number of units waiting behind the running one."""
        return self._channel.qsize()

    async def enqueue(self, unit: UnitOfWork, timeout: Optional[float] = None) -> Any:
        """Submit a unit of work and wait for its result.

        Args:
            unit: Coroutine function receiving the unit's CancelSignal
            timeout: Seconds the unit may run before failing with OssmTimeoutError

        Raises:
            AbortedError: The queue was cleared before or while the unit ran
            OssmTimeoutError: The unit overran its timeout
        """
        loop = asyncio.get_running_loop()
        self._ensure_worker()
        future = loop.create_future()
        self._channel.put_nowait(_WorkItem(unit, self._generation, future, timeout))
        return await future

    def clear_queue(self, reason: Union[str, BaseException, None] = None) -> None:
        """Invalidate queued work and abort the running unit.

        Units queued before the call fail with AbortedError without running;
        units submitted afterwards run normally.
        """
        self._generation += 1
        logger.debug(f"Task queue cleared (generation {self._generation})")
        self.abort_current(reason or "Task queue cleared")

    def abort_current(self, reason: Union[str, BaseException]) -> None:
        """Abort only the running unit, leaving its successors queued."""
        if self._current is None:
            return
        if isinstance(reason, str):
            reason = AbortedError(reason)
        self._current.cancel(reason)

    async def close(self) -> None:
        """Stop the worker and fail anything still waiting."""
        self.clear_queue("Task queue closed")
        worker, self._worker = self._worker, None
        if worker is not None:
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass
        while not self._channel.empty():
            item = self._channel.get_nowait()
            if not item.future.done():
                item.future.set_exception(AbortedError("Task queue closed"))

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while True:
            item = await self._channel.get()
            try:
                await self._execute(item)
            except asyncio.CancelledError:
                if not item.future.done():
                    item.future.set_exception(AbortedError("Task queue closed"))
                raise
            except Exception:
                logger.exception("Task queue worker error")

    async def _execute(self, item: _WorkItem) -> None:
        if item.future.done():
            # Caller stopped waiting
            return
        if item.generation != self._generation:
            item.future.set_exception(
                AbortedError("Task queue was cleared before this task started")
            )
            return

        signal = CancelSignal()
        self._current = signal
        loop = asyncio.get_running_loop()
        timer = None
        if item.timeout is not None:
            timer = loop.call_later(
                item.timeout,
                signal.cancel,
                OssmTimeoutError(f"Task did not complete within {item.timeout}s"),
            )

        task = asyncio.ensure_future(item.unit(signal))
        waiter = asyncio.ensure_future(signal.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
            if not task.done():
                task.cancel()
                # Let the unit unwind before the next exchange touches the wire
                await asyncio.gather(task, return_exceptions=True)
                if not item.future.done():
                    item.future.set_exception(signal.reason)
            elif not item.future.done():
                if task.cancelled():
                    item.future.set_exception(
                        signal.reason or AbortedError("Task was cancelled")
                    )
                elif task.exception() is not None:
                    item.future.set_exception(task.exception())
                else:
                    item.future.set_result(task.result())
        finally:
            if not task.done():
                task.cancel()
            waiter.cancel()
            if timer is not None:
                timer.cancel()
            self._current = None
