import asyncio
import queue
from concurrent.futures import Executor, Future
from typing import Callable, Optional, Protocol

from typed_events.core.logging import get_logger

logger = get_logger(__name__)


class ExecutionContext(Protocol):
    """Somewhere a deferred handler can be scheduled to run."""
    name: str

    def submit(self, fn: Callable[[], None]) -> None:
        ...


class MainQueueContext:
    """
    FIFO queue of deferred callbacks owned by the host's main loop.

    Any thread may submit; the owning loop calls drain() to run what is
    pending. Exceptions raised by a callback propagate out of drain() and
    leave the remaining callbacks queued.
    """

    def __init__(self, name: str = "main"):
        self.name = name
        self._queue: "queue.SimpleQueue[Callable[[], None]]" = queue.SimpleQueue()

    def submit(self, fn: Callable[[], None]) -> None:
        self._queue.put(fn)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def drain(self, max_items: Optional[int] = None) -> int:
        """Run queued callbacks in submission order. Returns how many ran."""
        ran = 0
        while max_items is None or ran < max_items:
            try:
                fn = self._queue.get_nowait()
            except queue.Empty:
                break
            ran += 1
            fn()
        return ran


class AsyncioContext:
    """Runs callbacks on an asyncio event loop, from any thread."""

    def __init__(self, loop: asyncio.AbstractEventLoop, name: str = "asyncio"):
        self.name = name
        self.loop = loop

    def submit(self, fn: Callable[[], None]) -> None:
        self.loop.call_soon_threadsafe(fn)


class ExecutorContext:
    """
    Runs callbacks on a concurrent.futures executor.

    Nobody waits on these futures, so failures are logged from the
    done-callback instead of being lost.
    """

    def __init__(self, executor: Executor, name: str = "worker"):
        self.name = name
        self.executor = executor

    def submit(self, fn: Callable[[], None]) -> None:
        future = self.executor.submit(fn)
        future.add_done_callback(self._report_failure)

    def _report_failure(self, future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(
                "deferred_handler_failed",
                context=self.name,
                error=repr(exc),
            )
