from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import Callable, Optional

from talkbridge.app.logging_setup import log_event
from talkbridge.contracts import SynthesisRequest, SynthesisResult
from talkbridge.tts.azure_rest import SynthesisProvider

CacheKey = tuple[str, str, str]


class SynthesisCache:
    """Thread-safe LRU keyed by (locale, voice, text), with optional per-entry TTL."""

    def __init__(
        self,
        *,
        max_entries: int = 256,
        ttl_sec: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be > 0")
        if ttl_sec is not None and ttl_sec <= 0:
            raise ValueError("ttl_sec must be > 0")
        self.max_entries = int(max_entries)
        self.ttl_sec = ttl_sec
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: "OrderedDict[CacheKey, tuple[float, SynthesisResult]]" = OrderedDict()

    def get(self, key: CacheKey) -> Optional[SynthesisResult]:
        with self._lock:
            hit = self._entries.get(key)
            if hit is None:
                return None
            stored_at, result = hit
            if self.ttl_sec is not None and self._clock() - stored_at >= self.ttl_sec:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return result

    def put(self, key: CacheKey, result: SynthesisResult) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), result)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class ConcurrencyGate:
    """
    Admit at most `limit` holders at once. Waiters are served strictly in arrival
    order: a released slot is handed directly to the oldest waiter.
    """

    def __init__(self, limit: int = 3) -> None:
        if limit <= 0:
            raise ValueError("limit must be > 0")
        self.limit = int(limit)
        self._lock = threading.Lock()
        self._active = 0
        self._waiters: "deque[threading.Event]" = deque()

    def acquire(self) -> None:
        with self._lock:
            if self._active < self.limit and not self._waiters:
                self._active += 1
                return
            ticket = threading.Event()
            self._waiters.append(ticket)
        ticket.wait()

    def release(self) -> None:
        with self._lock:
            if self._waiters:
                # slot passes to the next waiter; _active is unchanged
                self._waiters.popleft().set()
                return
            if self._active <= 0:
                raise RuntimeError("release() without a matching acquire()")
            self._active -= 1

    def __enter__(self) -> "ConcurrencyGate":
        self.acquire()
        return self

    def __exit__(self, *exc) -> None:
        self.release()

    @property
    def active(self) -> int:
        with self._lock:
            return self._active

    @property
    def queued(self) -> int:
        with self._lock:
            return len(self._waiters)


@dataclass(frozen=True)
class DispatcherStats:
    active: int
    queued: int
    cached: int
    provider_calls: int
    cache_hits: int


class SynthesisDispatcher:
    """Cached, concurrency-bounded front for a speech synthesis provider."""

    def __init__(
        self,
        provider: SynthesisProvider,
        *,
        concurrency: int = 3,
        cache: Optional[SynthesisCache] = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.provider = provider
        self.gate = ConcurrencyGate(concurrency)
        self.cache = cache if cache is not None else SynthesisCache()
        self.logger = logger
        self._counter_lock = threading.Lock()
        self._provider_calls = 0
        self._cache_hits = 0

    def synthesize(self, text: str, voice: str, locale: str) -> bytes:
        return self.synthesize_result(text, voice, locale).audio

    def synthesize_result(self, text: str, voice: str, locale: str) -> SynthesisResult:
        if not text or not text.strip():
            raise ValueError("text must be non-empty")
        req = SynthesisRequest(text=text, voice=voice, locale=locale)
        key = req.cache_key

        cached = self.cache.get(key)
        if cached is not None:
            with self._counter_lock:
                self._cache_hits += 1
            log_event(self.logger, logging.DEBUG, "synthesize_cache_hit", locale=locale, voice=voice)
            return cached

        t_wait = time.perf_counter()
        with self.gate:
            waited_ms = (time.perf_counter() - t_wait) * 1000.0
            with self._counter_lock:
                self._provider_calls += 1
            t0 = time.perf_counter()
            result = self.provider.synthesize(req)
            self.cache.put(key, result)

        log_event(
            self.logger,
            logging.INFO,
            "synthesize_done",
            locale=locale,
            voice=voice,
            chars=len(text),
            bytes=len(result.audio),
            wait_ms=round(waited_ms, 2),
            ms=round((time.perf_counter() - t0) * 1000.0, 2),
        )
        return result

    def stats(self) -> DispatcherStats:
        with self._counter_lock:
            calls, hits = self._provider_calls, self._cache_hits
        return DispatcherStats(
            active=self.gate.active,
            queued=self.gate.queued,
            cached=len(self.cache),
            provider_calls=calls,
            cache_hits=hits,
        )
