"""Inference concurrency layer.

Architecture:
    FastAPI (async) -> asyncio.Semaphore(N) -> ThreadPoolExecutor(N) -> FaceService operation

Each submission names the face operation it runs ("enroll", "verify", "compare"),
and the pool keeps per-operation counts of completed calls, rejected submissions and
failures grouped by error kind. A submission that cannot get a slot within the queue
timeout raises PoolSaturated, which the API renders as 503.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

from facematch.errors import FaceMatchError, PoolSaturated

if TYPE_CHECKING:
    from collections.abc import Callable

    from facematch.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

QUEUE_TIMEOUT_SECONDS: float = 5.0
UNEXPECTED_FAILURE = "unexpected"


@dataclass
class OperationStats:
    """Outcome counters for one face operation."""

    completed: int = 0
    rejected: int = 0
    failures: Counter[str] = field(default_factory=Counter)

    def as_dict(self) -> dict[str, object]:
        return {"completed": self.completed, "rejected": self.rejected, "failures": dict(self.failures)}


class InferencePool:
    """Runs blocking face operations off the event loop with bounded concurrency."""

    def __init__(self, max_concurrent: int, queue_timeout: float = QUEUE_TIMEOUT_SECONDS) -> None:
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._executor = ThreadPoolExecutor(max_workers=max_concurrent, thread_name_prefix="face-inference")
        self._queue_timeout = queue_timeout
        self._running = 0
        self._waiting = 0
        self._stats: dict[str, OperationStats] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> InferencePool:
        return cls(settings.max_concurrent, queue_timeout=settings.queue_timeout)

    def _record(self, operation: str) -> OperationStats:
        # Caller holds self._lock.
        return self._stats.setdefault(operation, OperationStats())

    async def submit(self, operation: str, func: Callable[..., T], *args: object) -> T:
        """Run ``func(*args)`` on a worker thread once a slot is free.

        Args:
            operation: Name the outcome is counted under.
            func: Blocking callable, usually a ``FaceService`` method.

        Raises:
            PoolSaturated: If no slot frees up within the queue timeout.
        """
        with self._lock:
            self._waiting += 1
        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=self._queue_timeout)
        except TimeoutError:
            with self._lock:
                self._record(operation).rejected += 1
            logger.warning("Inference pool saturated, rejecting %s after %.1fs", operation, self._queue_timeout)
            raise PoolSaturated(operation, self._queue_timeout) from None
        finally:
            with self._lock:
                self._waiting -= 1

        with self._lock:
            self._running += 1
        try:
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(self._executor, func, *args)
        except FaceMatchError as exc:
            with self._lock:
                self._record(operation).failures[str(exc.kind)] += 1
            raise
        except Exception:
            with self._lock:
                self._record(operation).failures[UNEXPECTED_FAILURE] += 1
            logger.exception("Unexpected failure during %s", operation)
            raise
        else:
            with self._lock:
                self._record(operation).completed += 1
            return result
        finally:
            self._semaphore.release()
            with self._lock:
                self._running -= 1

    @property
    def running(self) -> int:
        """Number of operations currently executing on a worker."""
        with self._lock:
            return self._running

    @property
    def waiting(self) -> int:
        """Number of submissions waiting for a slot."""
        with self._lock:
            return self._waiting

    def stats(self) -> dict[str, dict[str, object]]:
        """Snapshot of per-operation counters."""
        with self._lock:
            return {name: record.as_dict() for name, record in self._stats.items()}

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
