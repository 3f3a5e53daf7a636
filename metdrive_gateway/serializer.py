"""Single-flight admission queue for inbound requests."""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

Handler = Callable[[], Awaitable[Any]]


class WorkflowTimeoutError(Exception):
    """An admitted handler exceeded the workflow timeout and was cancelled."""
    pass


@dataclass
class QueuedItem:
    sequence: int
    handler: Handler
    done: asyncio.Future = field(repr=False)

    @property
    def abandoned(self) -> bool:
        return self.done.done()


class RequestSerializer:
    """
    Run admitted handlers one at a time in arrival order.

    A single worker task drains the queue. Each item's completion is signalled
    from a ``finally`` block, so the slot is released whether the handler
    returned, raised, timed out or was cancelled.
    """

    def __init__(self, workflow_timeout: Optional[float] = None):
        self.workflow_timeout = workflow_timeout if workflow_timeout else None
        self._queue: Optional[asyncio.Queue[QueuedItem]] = None
        self._worker: Optional[asyncio.Task] = None
        self._active: Optional[QueuedItem] = None
        self._sequence = itertools.count(1)
        self.completed = 0

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    @property
    def active(self) -> bool:
        return self._active is not None

    async def start(self) -> None:
        if self.running:
            return
        queue: asyncio.Queue[QueuedItem] = asyncio.Queue()
        self._queue = queue
        self._worker = asyncio.create_task(self._worker_loop(queue))

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        if self._queue is not None:
            while not self._queue.empty():
                item = self._queue.get_nowait()
                if not item.done.done():
                    item.done.cancel()
        self._queue = None

    async def admit(self, handler: Handler) -> Any:
        """
        Enqueue ``handler`` and wait for it to run to completion.

        Returns the handler's result or re-raises its exception.

        Raises:
            WorkflowTimeoutError: Handler exceeded the workflow timeout
            RuntimeError: Serializer has not been started
        """
        if not self.running or self._queue is None:
            raise RuntimeError("request serializer is not running")
        loop = asyncio.get_running_loop()
        item = QueuedItem(sequence=next(self._sequence), handler=handler, done=loop.create_future())
        await self._queue.put(item)
        return await item.done

    async def _run(self, item: QueuedItem) -> None:
        try:
            if self.workflow_timeout is None:
                result = await item.handler()
            else:
                result = await asyncio.wait_for(item.handler(), self.workflow_timeout)
        except asyncio.TimeoutError:
            logger.error(
                f"Request {item.sequence} exceeded {self.workflow_timeout}s and was cancelled"
            )
            if not item.done.done():
                item.done.set_exception(
                    WorkflowTimeoutError(f"request timed out after {self.workflow_timeout}s")
                )
        except Exception as exc:  # noqa: BLE001
            if not item.done.done():
                item.done.set_exception(exc)
        else:
            if not item.done.done():
                item.done.set_result(result)

    async def _worker_loop(self, queue: asyncio.Queue[QueuedItem]) -> None:
        while True:
            try:
                item = await queue.get()
            except asyncio.CancelledError:
                break
            if item.abandoned:
                queue.task_done()
                continue
            self._active = item
            try:
                await self._run(item)
            finally:
                self._complete(queue, item)
            # let the finished request's response go out before the next starts
            await asyncio.sleep(0)

    def _complete(self, queue: asyncio.Queue[QueuedItem], item: QueuedItem) -> None:
        if not item.done.done():
            item.done.cancel()
        self._active = None
        self.completed += 1
        queue.task_done()
