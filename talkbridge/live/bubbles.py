from __future__ import annotations

import threading
from typing import Any, Callable, Optional

from talkbridge.contracts import MessageBubble

TimerFactory = Callable[[float, Callable[[], None]], Any]


def default_timer(interval: float, fn: Callable[[], None]) -> threading.Timer:
    t = threading.Timer(interval, fn)
    t.daemon = True
    return t


class BubbleBoard:
    """
    Holds the current message bubble and at most one fading predecessor.
    A new bubble demotes the current one to fading; the fading one is dropped
    after `fade_interval` seconds or when it is itself displaced.
    """

    def __init__(self, *, fade_interval: float = 0.3, timer_factory: TimerFactory = default_timer) -> None:
        if fade_interval < 0:
            raise ValueError("fade_interval must be >= 0")
        self.fade_interval = float(fade_interval)
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._current: Optional[MessageBubble] = None
        self._fading: Optional[MessageBubble] = None
        self._fade_timer: Any = None
        self._generation = 0

    @property
    def current(self) -> Optional[MessageBubble]:
        with self._lock:
            return self._current

    @property
    def fading(self) -> Optional[MessageBubble]:
        with self._lock:
            return self._fading

    def replace(self, bubble: MessageBubble) -> None:
        with self._lock:
            self._cancel_fade()
            if self._current is not None:
                self._fading = self._current
                self._generation += 1
                generation = self._generation
                self._fade_timer = self._timer_factory(self.fade_interval, lambda: self._discard(generation))
                self._fade_timer.start()
            self._current = bubble

    def clear(self) -> None:
        with self._lock:
            self._cancel_fade()
            self._current = None

    def _cancel_fade(self) -> None:
        if self._fade_timer is not None:
            self._fade_timer.cancel()
            self._fade_timer = None
        self._fading = None

    def _discard(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._fading = None
            self._fade_timer = None
