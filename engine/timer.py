# engine/timer.py
"""Countdown timer for quiz sessions.

The timer is a small state machine (idle -> running -> expired) driven by a
recurring tick. Ticks are scheduled through a :class:`Scheduler` so the same
timer runs on an asyncio loop in the app and on a :class:`ManualScheduler` in
tests. Each start bumps a generation counter; a tick that belongs to an older
generation, or arrives after :meth:`TimerService.stop`, does nothing.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Protocol, Tuple

from engine.config import LOW_TIME_SECONDS, TICK_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


class TimerMode(str, Enum):
    NONE = "none"
    PER_QUESTION = "perQuestion"
    OVERALL = "overall"


class TimerPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    EXPIRED = "expired"


# --- Clocks & schedulers -------------------------------------------------------------


class Clock(Protocol):
    def now(self) -> float:
        """Return monotonic seconds."""
        ...


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...


class MonotonicClock:
    def now(self) -> float:
        return time.monotonic()


class AsyncioScheduler:
    """Schedules ticks on the running event loop (single-threaded by construction)."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class _ManualHandle:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic scheduler and clock: time only moves when :meth:`advance` is called."""

    def __init__(self, *, start: float = 0.0) -> None:
        self._t = float(start)
        self._queue: List[Tuple[float, int, _ManualHandle, Callable[[], None]]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._t

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        handle = _ManualHandle()
        heapq.heappush(self._queue, (self._t + max(0.0, delay), next(self._seq), handle, callback))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h, _ in self._queue if not h.cancelled)

    def advance(self, dt: float) -> None:
        if dt < 0:
            raise ValueError("dt must be non-negative")
        target = self._t + float(dt)
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback = heapq.heappop(self._queue)
            self._t = max(self._t, due)
            if not handle.cancelled:
                callback()
        self._t = target


# --- Timer -------------------------------------------------------------------------


@dataclass
class TimerState:
    mode: TimerMode = TimerMode.NONE
    time_left: int = 0
    initial_time: int = 0
    running: bool = False


class TimerService:
    def __init__(
        self,
        scheduler: Scheduler,
        on_timeout: Callable[[TimerMode], None],
        *,
        interval: float = TICK_INTERVAL_SECONDS,
    ) -> None:
        self._scheduler = scheduler
        self._on_timeout = on_timeout
        self._interval = interval
        self._handle: Optional[Cancellable] = None
        self._generation = 0
        self.state = TimerState()
        self.phase = TimerPhase.IDLE

    @property
    def running(self) -> bool:
        return self.phase is TimerPhase.RUNNING

    def start(self, mode: TimerMode, duration: int) -> None:
        """Begin a fresh countdown of ``duration`` units in ``mode``."""
        self._cancel()
        duration = max(0, int(duration))
        self.state = TimerState(mode=mode, time_left=duration, initial_time=duration)
        if mode is TimerMode.NONE or duration <= 0:
            self.phase = TimerPhase.IDLE
            return
        self._run()

    def restart(self, remaining: int, *, mode: Optional[TimerMode] = None, initial_time: Optional[int] = None) -> None:
        """Re-enter running with a previously saved remaining time (resume)."""
        self._cancel()
        self.state.mode = mode or self.state.mode
        self.state.time_left = max(0, int(remaining))
        if initial_time is not None:
            self.state.initial_time = max(int(initial_time), self.state.time_left)
        if self.state.mode is TimerMode.NONE or self.state.time_left <= 0:
            self.state.running = False
            self.phase = TimerPhase.IDLE
            return
        self._run()

    def load(self, mode: TimerMode, time_left: int, initial_time: int) -> None:
        """Adopt saved values without running (completed or answered-and-paused sessions)."""
        self._cancel()
        self.state = TimerState(mode=mode, time_left=max(0, int(time_left)), initial_time=max(0, int(initial_time)))
        self.phase = TimerPhase.IDLE

    def stop(self) -> None:
        self._cancel()
        self.state.running = False
        if self.phase is TimerPhase.RUNNING:
            self.phase = TimerPhase.IDLE

    def tick(self) -> bool:
        """Consume one time-unit. Returns False (no-op) unless running."""
        if self.phase is not TimerPhase.RUNNING:
            return False
        self.state.time_left = max(0, self.state.time_left - 1)
        if self.state.time_left <= 0:
            self._cancel()
            self.state.running = False
            self.phase = TimerPhase.EXPIRED
            logger.debug("Timer expired (%s)", self.state.mode.value)
            self._on_timeout(self.state.mode)
        return True

    # --- display ---

    def display(self) -> str:
        minutes, seconds = divmod(max(0, self.state.time_left), 60)
        return f"{minutes:02d}:{seconds:02d}"

    def urgency(self) -> str:
        if self.state.mode is TimerMode.NONE or self.state.initial_time <= 0:
            return "none"
        percentage = self.state.time_left / self.state.initial_time * 100
        if percentage > 50:
            return "ok"
        if percentage > 25:
            return "low"
        return "critical"

    @property
    def pulse(self) -> bool:
        return self.running and 0 < self.state.time_left <= LOW_TIME_SECONDS

    # --- internals ---

    def _run(self) -> None:
        self._generation += 1
        self.state.running = True
        self.phase = TimerPhase.RUNNING
        self._schedule(self._generation)

    def _schedule(self, generation: int) -> None:
        self._handle = self._scheduler.call_later(self._interval, lambda: self._fire(generation))

    def _fire(self, generation: int) -> None:
        if generation != self._generation or self.phase is not TimerPhase.RUNNING:
            return
        self._handle = None
        self.tick()
        if generation == self._generation and self.phase is TimerPhase.RUNNING:
            self._schedule(generation)

    def _cancel(self) -> None:
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
