"""Deduplicating, rate limited work queue for ManagedCertificate keys."""

import heapq
import itertools
import logging
import threading
import time
from typing import Callable, Dict, Generic, Hashable, List, Optional, Set, Tuple, TypeVar

from .config import QUEUE_BASE_DELAY_SECONDS, QUEUE_MAX_DELAY_SECONDS

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Hashable)


class ExponentialBackoff(Generic[T]):
    """Per-item exponential backoff: base * 2^failures, capped at max_delay."""

    def __init__(
        self,
        base_delay: float = QUEUE_BASE_DELAY_SECONDS,
        max_delay: float = QUEUE_MAX_DELAY_SECONDS,
    ):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._failures: Dict[T, int] = {}
        self._lock = threading.Lock()

    def when(self, item: T) -> float:
        """Record a failure of item and return how long to wait before retrying it."""
        with self._lock:
            exp = self._failures.get(item, 0)
            self._failures[item] = exp + 1

        # Avoid overflowing the float for items that fail for a long time
        if exp > 64:
            return self.max_delay
        return min(self.base_delay * (2 ** exp), self.max_delay)

    def forget(self, item: T) -> None:
        with self._lock:
            self._failures.pop(item, None)

    def num_requeues(self, item: T) -> int:
        with self._lock:
            return self._failures.get(item, 0)


class RateLimitingQueue(Generic[T]):
    """
    Work queue holding unique pending items.

    An item handed out by get() stays in flight until done() is called. Adding
    an item that is in flight defers it: it is queued again once done() is
    called, so two workers never process the same item at once. Adding an
    item that is already pending is a no-op.
    """

    def __init__(
        self,
        name: str = "",
        rate_limiter: Optional[ExponentialBackoff] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the queue.

        Args:
            name: Queue name used in log messages
            rate_limiter: Backoff policy for add_rate_limited
            clock: Monotonic time source
        """
        self.name = name
        self.rate_limiter = rate_limiter or ExponentialBackoff()
        self._clock = clock

        self._queue: List[T] = []
        self._dirty: Set[T] = set()
        self._processing: Set[T] = set()

        # Delayed adds, ordered by the time they become ready
        self._waiting: List[Tuple[float, int, T]] = []
        self._waiting_ready_at: Dict[T, float] = {}
        self._sequence = itertools.count()

        self._shutting_down = False
        self._cond = threading.Condition(threading.Lock())

    def add(self, item: T) -> None:
        """Mark item as needing processing."""
        with self._cond:
            self._add_locked(item)

    def _add_locked(self, item: T) -> None:
        if self._shutting_down:
            return
        if item in self._dirty:
            return
        self._dirty.add(item)
        if item in self._processing:
            return
        self._queue.append(item)
        self._cond.notify()

    def add_after(self, item: T, delay: float) -> None:
        """Add item once delay seconds have passed."""
        if delay <= 0:
            self.add(item)
            return

        with self._cond:
            if self._shutting_down:
                return
            ready_at = self._clock() + delay
            current = self._waiting_ready_at.get(item)
            if current is not None and current <= ready_at:
                return
            self._waiting_ready_at[item] = ready_at
            heapq.heappush(self._waiting, (ready_at, next(self._sequence), item))
            self._cond.notify()

    def add_rate_limited(self, item: T) -> None:
        """Add item after the rate limiter says it's ok."""
        delay = self.rate_limiter.when(item)
        logger.debug(f"Queue {self.name}: requeueing {item} in {delay:.3f}s")
        self.add_after(item, delay)

    def forget(self, item: T) -> None:
        """Stop tracking failures of item; its next backoff starts from scratch."""
        self.rate_limiter.forget(item)

    def num_requeues(self, item: T) -> int:
        return self.rate_limiter.num_requeues(item)

    def _promote_ready_locked(self) -> Optional[float]:
        """Move due delayed items into the queue. Returns seconds until the next one."""
        now = self._clock()
        while self._waiting:
            ready_at, _, item = self._waiting[0]
            if self._waiting_ready_at.get(item) != ready_at:
                # Superseded by an earlier add_after
                heapq.heappop(self._waiting)
                continue
            if ready_at > now:
                return ready_at - now
            heapq.heappop(self._waiting)
            del self._waiting_ready_at[item]
            self._add_locked(item)
        return None

    def get(self) -> Tuple[Optional[T], bool]:
        """
        Block until an item can be processed.

        Returns:
            Tuple of (item, shutdown). When shutdown is True the item is None
            and the caller should stop.
        """
        with self._cond:
            while True:
                wait_for = self._promote_ready_locked()
                if self._queue or self._shutting_down:
                    break
                self._cond.wait(timeout=wait_for)

            if not self._queue:
                return None, True

            item = self._queue.pop(0)
            self._processing.add(item)
            self._dirty.discard(item)
            return item, False

    def done(self, item: T) -> None:
        """Mark item as done processing. If it was added meanwhile, queue it again."""
        with self._cond:
            self._processing.discard(item)
            if item in self._dirty:
                self._queue.append(item)
                self._cond.notify()

    def shut_down(self) -> None:
        """Stop accepting items; get() returns shutdown once the queue is drained."""
        with self._cond:
            self._shutting_down = True
            self._waiting.clear()
            self._waiting_ready_at.clear()
            self._cond.notify_all()
        logger.debug(f"Queue {self.name}: shut down")

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)
