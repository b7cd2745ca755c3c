from __future__ import annotations

import threading
import traceback

from talkbridge.app.config import ProviderCredentials, resolve_args
from talkbridge.app.diagnostics import hint_for_exception, summarize_exception
from talkbridge.app.logging_setup import setup_app_logger
from talkbridge.app.services import build_services
from talkbridge.app.state import SessionState
from talkbridge.audio.mic import SoundDeviceCapturer
from talkbridge.errors import TalkbridgeError
from talkbridge.live.session import Notification

_STATE_LABELS = {
    SessionState.IDLE: "Ready to listen",
    SessionState.LISTENING: "Listening...",
    SessionState.TRANSLATING: "Translating...",
    SessionState.DONE: "Done",
    SessionState.ERROR: "Try again",
}


def main(argv: list[str] | None = None) -> int:
    args = resolve_args(argv)
    logger, _log_dir, log_path = setup_app_logger(debug=bool(args.debug))
    logger.info("app_start", extra={"config_path": str(getattr(args, "config", "")), "argv": argv or []})

    if args.list_devices:
        print(SoundDeviceCapturer.list_devices())
        return 0

    creds = ProviderCredentials.from_env()
    if not creds.has_speech or not creds.has_translator:
        print("[warn] Azure credentials incomplete; missing providers run in mock mode.")

    idle_again = threading.Event()

    def _on_transition(old: SessionState, new: SessionState) -> None:
        print(f"[{new.value}] {_STATE_LABELS[new]}")
        if new == SessionState.IDLE:
            idle_again.set()

    def _on_notify(note: Notification) -> None:
        print(f"  {note.title}: {note.message}")

    services = build_services(
        args,
        credentials=creds,
        logger=logger,
        on_transition=_on_transition,
        on_notify=_on_notify,
    )
    session = services.session

    failures = 0
    rounds = max(1, int(args.repeat))
    for i in range(rounds):
        idle_again.clear()
        try:
            if args.say:
                outcome = session.translate_text(str(args.say))
            else:
                print(f"Speak now (up to {float(args.capture_sec):.1f}s, Ctrl+C to stop early)...")
                session.start()
                try:
                    outcome = session.join()
                except KeyboardInterrupt:
                    # First Ctrl+C ends the recording; the shortened utterance is still translated.
                    logger.info("app_manual_stop", extra={"round": i})
                    session.stop()
                    outcome = session.join()
        except KeyboardInterrupt:
            logger.info("app_keyboard_interrupt")
            break
        except (TalkbridgeError, ValueError):
            failures += 1
            summary = summarize_exception(traceback.format_exc())
            logger.warning("round_failed", extra={"round": i, "summary": summary})
            print(f"  detail: {summary}")
            print(f"  hint: {hint_for_exception(summary)}")
            if i + 1 < rounds:
                idle_again.wait(timeout=float(args.retry_delay_sec) + 1.0)
            continue

        lang = outcome.detected_language or "unknown"
        print(f"  heard ({lang}): {outcome.original_text}")
        for item in outcome.translations:
            print(f"  {item.code}: {item.text}")
        if args.play:
            try:
                session.play_last()
            except TalkbridgeError as e:
                logger.warning("playback_failed", extra={"error": str(e)})
                print(f"  playback failed: {e}")

    stats = services.dispatcher.stats()
    logger.info(
        "app_stop",
        extra={
            "failures": failures,
            "synth_provider_calls": stats.provider_calls,
            "synth_cache_hits": stats.cache_hits,
        },
    )
    if failures:
        print(f"Log: {log_path}")
    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
