from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction.

    Core logic depends on this interface rather than calling real time directly.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class RealClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


@dataclass(frozen=True, slots=True)
class TimerHandle:
    timer_id: int
    due_at_s: float


class DelayScheduler:
    """Cancelable delayed callbacks driven by an injected Clock.

    Nothing fires on its own: the owner calls ``poll()`` (once per frame in the
    UI, explicitly in tests) and every delay whose deadline has passed runs in
    deadline order. ``close()`` drops all pending delays and refuses new ones.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._next_id = 1
        self._pending: dict[int, tuple[float, Callable[[], None]]] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def pending_count(self) -> int:
        return len(self._pending)

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        if self._closed:
            raise RuntimeError("scheduler is closed")
        if delay_s < 0.0:
            raise ValueError("delay_s must be >= 0")
        timer_id = self._next_id
        self._next_id += 1
        due_at_s = self._clock.now() + float(delay_s)
        self._pending[timer_id] = (due_at_s, callback)
        return TimerHandle(timer_id=timer_id, due_at_s=due_at_s)

    def cancel(self, handle: TimerHandle | None) -> bool:
        if handle is None:
            return False
        return self._pending.pop(handle.timer_id, None) is not None

    def cancel_all(self) -> int:
        n = len(self._pending)
        self._pending.clear()
        return n

    def close(self) -> None:
        self.cancel_all()
        self._closed = True

    def poll(self) -> int:
        """Run every due callback. Returns how many ran."""

        fired = 0
        now = self._clock.now()
        while not self._closed:
            due = [(due_at, tid) for tid, (due_at, _) in self._pending.items() if due_at <= now]
            if not due:
                break
            _, timer_id = min(due)
            _, callback = self._pending.pop(timer_id)
            callback()
            fired += 1
        return fired
