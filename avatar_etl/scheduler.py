"""Admission-controlled runner capping the number of in-flight tasks."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Set, Tuple

logger = logging.getLogger(__name__)


@dataclass
class _Pending:
    fn: Callable[..., Any]
    args: Tuple[Any, ...]
    kwargs: dict[str, Any]
    future: asyncio.Future[Any]


class BoundedScheduler:
    """
    Runs submitted callables with at most ``limit`` of them executing at once.

    Admission is FIFO; completion order is whatever the tasks make it. Each
    submission gets its own future, settled with the callable's result or
    exception, so one task failing never affects another. The queue and the
    running count are only touched from the event loop thread, which is the
    single serialization point.
    """

    def __init__(self, limit: int) -> None:
        """Initialize the scheduler.

        Parameters
        ----------
        limit:
            Maximum number of tasks running concurrently. Must be >= 1.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self._limit = limit
        self._running = 0
        self._queue: Deque[_Pending] = deque()
        self._tasks: Set[asyncio.Task[None]] = set()
        self._idle = asyncio.Event()
        self._idle.set()

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> asyncio.Future[Any]:
        """Queue ``fn(*args, **kwargs)`` and return a future for its outcome.

        ``fn`` may be a coroutine function or a plain callable. Must be
        called from within the running event loop.
        """
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._queue.append(_Pending(fn, args, kwargs, future))
        self._idle.clear()
        self._dispatch()
        return future

    def _dispatch(self) -> None:
        while self._running < self._limit and self._queue:
            item = self._queue.popleft()
            if item.future.cancelled():
                # caller gave up before admission
                continue
            self._running += 1
            task = asyncio.create_task(self._run(item))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        if self._running == 0 and not self._queue:
            self._idle.set()

    async def _run(self, item: _Pending) -> None:
        try:
            result = item.fn(*item.args, **item.kwargs)
            if inspect.isawaitable(result):
                result = await result
        except asyncio.CancelledError:
            if not item.future.done():
                item.future.cancel()
            raise
        except Exception as exc:
            logger.debug("Task %r failed: %r", item.fn, exc)
            if not item.future.done():
                item.future.set_exception(exc)
        else:
            if not item.future.done():
                item.future.set_result(result)
        finally:
            self._running -= 1
            self._dispatch()

    async def join(self) -> None:
        """Wait until the queue is drained and no task is running."""
        await self._idle.wait()

    @property
    def limit(self) -> int:
        """Return the enforced concurrency limit."""
        return self._limit

    @property
    def running(self) -> int:
        """Return the number of tasks currently executing."""
        return self._running

    @property
    def pending(self) -> int:
        """Return the number of submitted tasks not yet admitted."""
        return len(self._queue)
