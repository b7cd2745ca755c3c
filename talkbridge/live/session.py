from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Protocol, Sequence

from talkbridge.app.diagnostics import summarize_exception, user_message_for
from talkbridge.app.logging_setup import log_event
from talkbridge.app.state import READY_STATES, SessionState, SessionStateTracker
from talkbridge.asr.base import AUTO_LANGUAGE, Recognizer
from talkbridge.asr.locales import short_code
from talkbridge.audio.encoder import SignalEncoder
from talkbridge.audio.mic import AudioCapturer
from talkbridge.contracts import (
    BubbleRole,
    MessageBubble,
    PipelineOutcome,
    SynthesisResult,
    TranslationItem,
)
from talkbridge.errors import SessionBusyError
from talkbridge.live.bubbles import BubbleBoard, TimerFactory, default_timer
from talkbridge.nlp.translator.base import Translator
from talkbridge.tts.dispatcher import SynthesisDispatcher

FALLBACK_VOICE_CODE = "en"


class Player(Protocol):
    def play(self, audio: bytes, *, blocking: bool = True) -> bool:
        ...


@dataclass(frozen=True)
class Notification:
    kind: str  # "error" | "retry_ready"
    title: str
    message: str


class SessionStateMachine:
    """
    Drive one utterance at a time through capture -> encode -> recognize ->
    translate -> synthesize.

    idle -> listening -> translating -> done | error; error returns to idle after
    `retry_delay` seconds with a "retry_ready" notification. A new capture may start
    directly from done.
    """

    def __init__(
        self,
        *,
        capturer: AudioCapturer,
        encoder: SignalEncoder,
        recognizer: Recognizer,
        translator: Translator,
        dispatcher: SynthesisDispatcher,
        voices: Mapping[str, Sequence[str]],
        targets: Sequence[str] = ("en",),
        source_language: str = AUTO_LANGUAGE,
        player: Optional[Player] = None,
        retry_delay: float = 2.0,
        fade_interval: float = 0.3,
        timer_factory: TimerFactory = default_timer,
        on_transition: Optional[Callable[[SessionState, SessionState], None]] = None,
        on_notify: Optional[Callable[[Notification], None]] = None,
        logger: logging.Logger | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if retry_delay < 0:
            raise ValueError("retry_delay must be >= 0")
        self.capturer = capturer
        self.encoder = encoder
        self.recognizer = recognizer
        self.translator = translator
        self.dispatcher = dispatcher
        self.voices = {str(k): tuple(v) for k, v in voices.items()}
        self.targets = tuple(targets)
        self.source_language = source_language
        self.player = player
        self.retry_delay = float(retry_delay)
        self.bubbles = BubbleBoard(fade_interval=fade_interval, timer_factory=timer_factory)
        self.on_transition = on_transition
        self.on_notify = on_notify
        self.logger = logger
        self._timer_factory = timer_factory
        self._clock = clock
        self._lock = threading.RLock()
        self._tracker = SessionStateTracker()
        self._retry_timer: Any = None
        self._worker: threading.Thread | None = None
        self._worker_outcome: Optional[PipelineOutcome] = None
        self._worker_error: Optional[Exception] = None
        self.last_outcome: Optional[PipelineOutcome] = None

    # --- state ---

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._tracker.state

    @property
    def last_error(self) -> str | None:
        with self._lock:
            return self._tracker.last_error

    def _move(self, new: SessionState) -> None:
        with self._lock:
            old = self._tracker.move(new)
            self._emit_transition(old, new)

    def _emit_transition(self, old: SessionState, new: SessionState) -> None:
        log_event(self.logger, logging.INFO, "session_transition", old=old.value, new=new.value)
        if self.on_transition is not None:
            self.on_transition(old, new)

    def _notify(self, note: Notification) -> None:
        log_event(self.logger, logging.INFO, "session_notify", kind=note.kind, title=note.title)
        if self.on_notify is not None:
            self.on_notify(note)

    def _begin(self, new: SessionState) -> None:
        with self._lock:
            if self._tracker.state not in READY_STATES:
                raise SessionBusyError(f"session is {self._tracker.state.value}")
            self._move(new)

    def _fail(self, exc: BaseException) -> None:
        title, message = user_message_for(exc)
        with self._lock:
            old = self._tracker.set_error(summarize_exception(f"{type(exc).__name__}: {exc}"))
            self._emit_transition(old, SessionState.ERROR)
            self._retry_timer = self._timer_factory(self.retry_delay, self._retry_ready)
            self._retry_timer.start()
        log_event(
            self.logger,
            logging.WARNING,
            "session_error",
            error_type=type(exc).__name__,
            error=str(exc),
        )
        self._notify(Notification(kind="error", title=title, message=message))

    def _retry_ready(self) -> None:
        with self._lock:
            if self._tracker.state != SessionState.ERROR:
                return
            self._retry_timer = None
            self._move(SessionState.IDLE)
        self._notify(
            Notification(
                kind="retry_ready",
                title="Ready to try again",
                message="Start a new recording when you're ready.",
            )
        )

    # --- operations ---

    def record_and_translate(self, targets: Optional[Sequence[str]] = None) -> PipelineOutcome:
        chosen = self._resolve_targets(targets)
        self._begin(SessionState.LISTENING)
        try:
            captured = self.capturer.start()
            self._move(SessionState.TRANSLATING)
            encoded = self.encoder.encode(captured)
            log_event(
                self.logger,
                logging.INFO,
                "utterance_encoded",
                native_sr=captured.sample_rate,
                samples=encoded.sample_count,
                trim_start=encoded.trim_start,
                trim_end=encoded.trim_end,
            )
            recognized = self.recognizer.submit(encoded, self.source_language)
            self.bubbles.replace(
                MessageBubble(
                    role=BubbleRole.SUBJECT,
                    text=recognized.text,
                    language=recognized.language,
                    timestamp=self._clock(),
                )
            )
            outcome = self._translate_and_synthesize(recognized.text, recognized.language, chosen)
        except Exception as e:
            self._fail(e)
            raise
        return self._finish(outcome)

    def translate_text(
        self,
        text: str,
        targets: Optional[Sequence[str]] = None,
        source: Optional[str] = None,
    ) -> PipelineOutcome:
        """Typed-text path: same flow without capture and recognition."""
        chosen = self._resolve_targets(targets)
        self._begin(SessionState.TRANSLATING)
        try:
            self.bubbles.replace(
                MessageBubble(role=BubbleRole.SUBJECT, text=text, language=source, timestamp=self._clock())
            )
            outcome = self._translate_and_synthesize(text, source, chosen)
        except Exception as e:
            self._fail(e)
            raise
        return self._finish(outcome)

    def start(self, targets: Optional[Sequence[str]] = None) -> threading.Thread:
        """Run `record_and_translate` on a worker thread; use `stop()` to end capture early."""
        with self._lock:
            if self._tracker.state not in READY_STATES or (self._worker is not None and self._worker.is_alive()):
                raise SessionBusyError(f"session is {self._tracker.state.value}")
            worker = threading.Thread(
                target=self._worker_entry,
                args=(targets,),
                name="talkbridge-session-worker",
                daemon=True,
            )
            self._worker = worker
            self._worker_outcome = None
            self._worker_error = None
        worker.start()
        return worker

    def _worker_entry(self, targets: Optional[Sequence[str]]) -> None:
        try:
            self._worker_outcome = self.record_and_translate(targets)
        except Exception as e:
            self._worker_error = e
            # Already surfaced through the error notification.
            if self.logger is not None:
                self.logger.exception("session_worker_failed")

    def join(self, timeout: Optional[float] = None) -> Optional[PipelineOutcome]:
        """
        Wait for the worker started by `start()`. Re-raises the worker's error, returns its
        outcome, or None when the worker is still running after `timeout`.
        """
        with self._lock:
            worker = self._worker
        if worker is None:
            return None
        worker.join(timeout)
        if worker.is_alive():
            return None
        if self._worker_error is not None:
            raise self._worker_error
        return self._worker_outcome

    def stop(self) -> None:
        self.capturer.stop()

    def play_last(self) -> bool:
        outcome = self.last_outcome
        if self.player is None or outcome is None:
            return False
        return self.player.play(outcome.audio_bytes)

    def reset(self) -> None:
        with self._lock:
            if self._tracker.state in (SessionState.LISTENING, SessionState.TRANSLATING):
                raise SessionBusyError(f"session is {self._tracker.state.value}")
            if self._retry_timer is not None:
                self._retry_timer.cancel()
                self._retry_timer = None
            old = self._tracker.force_idle()
            if old != SessionState.IDLE:
                self._emit_transition(old, SessionState.IDLE)
            self.bubbles.clear()
            self.last_outcome = None

    # --- pipeline stages ---

    def _resolve_targets(self, targets: Optional[Sequence[str]]) -> tuple[str, ...]:
        chosen = tuple(str(t).strip() for t in (targets if targets is not None else self.targets) if str(t).strip())
        if not chosen:
            raise ValueError("at least one target language is required")
        return chosen

    def voice_for(self, code: str) -> tuple[str, str]:
        """(locale, voice) for a target code; falls back to the English voice."""
        entry = self.voices.get(code) or self.voices.get(short_code(code) or "") or self.voices.get(FALLBACK_VOICE_CODE)
        if not entry or len(entry) != 2:
            raise ValueError(f"no synthesis voice configured for {code!r}")
        return str(entry[0]), str(entry[1])

    def _translate_and_synthesize(
        self,
        text: str,
        language: Optional[str],
        targets: Sequence[str],
    ) -> PipelineOutcome:
        translation = self.translator.translate(text, targets, short_code(language))
        audio = self._synthesize_all(translation.items)
        outcome = PipelineOutcome(
            original_text=text,
            detected_language=language,
            translations=tuple(translation.items),
            audio=audio,
        )
        self.bubbles.replace(
            MessageBubble(
                role=BubbleRole.TRANSLATED,
                text=outcome.translated_text,
                language=outcome.translations[0].code,
                timestamp=self._clock(),
            )
        )
        return outcome

    def _synthesize_all(self, items: Sequence[TranslationItem]) -> dict[str, SynthesisResult]:
        jobs = []
        for item in items:
            locale, voice = self.voice_for(item.code)
            jobs.append((item.code, item.text, voice, locale))
        # Parallelism here is bounded again by the dispatcher's gate.
        with ThreadPoolExecutor(max_workers=max(1, len(jobs)), thread_name_prefix="talkbridge-tts") as pool:
            futures = [
                (code, pool.submit(self.dispatcher.synthesize_result, text, voice, locale))
                for code, text, voice, locale in jobs
            ]
            return {code: fut.result() for code, fut in futures}

    def _finish(self, outcome: PipelineOutcome) -> PipelineOutcome:
        with self._lock:
            self.last_outcome = outcome
            self._move(SessionState.DONE)
        log_event(
            self.logger,
            logging.INFO,
            "session_done",
            detected=outcome.detected_language,
            targets=[item.code for item in outcome.translations],
        )
        return outcome
