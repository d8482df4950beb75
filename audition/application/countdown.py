"""Countdown clock used for both the exam clock and the per-question clock."""

from typing import Callable, List, Optional

from .models import format_clock


class CountdownTimer:
    """
    Whole-second countdown driven by an external scheduler.

    ``start`` only arms the timer; each call to ``tick`` (made once per second
    by the session runner) removes one second while it is running. The value
    never goes below zero, and reaching zero stops the timer and notifies the
    expiry listeners once.
    """

    def __init__(self, initial_duration: int):
        if initial_duration < 0:
            raise ValueError("initial_duration must be >= 0")
        self._initial = initial_duration
        self._remaining = initial_duration
        self._running = False
        self._listeners: List[Callable[[], None]] = []

    @property
    def initial_duration(self) -> int:
        return self._initial

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def formatted(self) -> str:
        return format_clock(self._remaining)

    @property
    def is_expired(self) -> bool:
        return self._remaining == 0

    @property
    def is_running(self) -> bool:
        return self._running

    def on_expire(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        if self._remaining > 0:
            self._running = True

    def stop(self) -> None:
        self._running = False

    def reset(self, duration: Optional[int] = None) -> None:
        if duration is not None:
            if duration < 0:
                raise ValueError("duration must be >= 0")
            self._initial = duration
        self._running = False
        self._remaining = self._initial

    def tick(self) -> None:
        if not self._running:
            return
        self._remaining = max(self._remaining - 1, 0)
        if self._remaining == 0:
            self._running = False
            for listener in list(self._listeners):
                listener()
