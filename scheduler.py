"""
Virtual clock for the simulation.

Timers are kept in a heap ordered by (deadline, sequence) and only fire when
the clock is advanced, so the simulation is fully deterministic. The service
advances it from the tick endpoint or from a real-time pump; tests advance it
directly.
"""

import heapq
import itertools
from typing import Callable, List, Optional


class TimerHandle:
    """A scheduled callback. Cancel it to make sure it never fires."""

    def __init__(self, deadline_ms: int, callback: Callable[[], None],
                 interval_ms: Optional[int] = None,
                 on_cancel: Optional[Callable[["TimerHandle"], None]] = None):
        self.deadline_ms = deadline_ms
        self.callback = callback
        self.interval_ms = interval_ms
        self._cancelled = False
        self._on_cancel = on_cancel

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._on_cancel is not None:
            self._on_cancel(self)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def recurring(self) -> bool:
        return self.interval_ms is not None


class VirtualClock:
    def __init__(self, start_ms: int = 0):
        self._now_ms = start_ms
        self._queue: List[tuple] = []
        self._sequence = itertools.count()
        # Handles currently in the heap, and how many of those are cancelled
        self._queued = set()
        self._cancelled = 0

    @property
    def now_ms(self) -> int:
        return self._now_ms

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        """Run callback once, delay_ms after now"""
        if delay_ms < 0:
            raise ValueError(f"delay must not be negative: {delay_ms}")
        handle = TimerHandle(self._now_ms + delay_ms, callback, on_cancel=self._handle_cancelled)
        self._push(handle)
        return handle

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> TimerHandle:
        """Run callback every interval_ms, first run one interval from now"""
        if interval_ms <= 0:
            raise ValueError(f"interval must be positive: {interval_ms}")
        handle = TimerHandle(self._now_ms + interval_ms, callback, interval_ms,
                             on_cancel=self._handle_cancelled)
        self._push(handle)
        return handle

    def advance(self, ms: int) -> int:
        """
        Move the clock forward and fire every timer that falls due, in deadline
        order. Timers scheduled by callbacks fire too if they land inside the
        window. Returns the number of callbacks run.
        """
        if ms < 0:
            raise ValueError(f"cannot move the clock backwards: {ms}")
        target = self._now_ms + ms
        fired = 0

        while self._queue and self._queue[0][0] <= target:
            deadline, _, handle = heapq.heappop(self._queue)
            self._queued.discard(handle)
            if handle.cancelled:
                self._cancelled -= 1
                continue
            self._now_ms = deadline
            if handle.recurring:
                handle.deadline_ms = deadline + handle.interval_ms
                self._push(handle)
            handle.callback()
            fired += 1

        self._now_ms = target
        return fired

    def pending(self) -> int:
        return len(self._queue) - self._cancelled

    def _handle_cancelled(self, handle: TimerHandle) -> None:
        if handle not in self._queued:
            return
        self._cancelled += 1
        if self._cancelled > len(self._queue) // 2:
            self._compact()

    def _compact(self) -> None:
        """Drop cancelled entries once they make up most of the heap"""
        live = [entry for entry in self._queue if not entry[2].cancelled]
        self._queued = {entry[2] for entry in live}
        heapq.heapify(live)
        self._queue = live
        self._cancelled = 0

    def _push(self, handle: TimerHandle) -> None:
        heapq.heappush(self._queue, (handle.deadline_ms, next(self._sequence), handle))
        self._queued.add(handle)
