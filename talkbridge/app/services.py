from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from talkbridge.app.config import ProviderCredentials
from talkbridge.app.state import SessionState
from talkbridge.asr.azure_rest import AzureRecognitionClient
from talkbridge.asr.locales import LocaleTable
from talkbridge.audio.encoder import SignalEncoder
from talkbridge.audio.mic import CaptureConstraints, SoundDeviceCapturer
from talkbridge.audio.player import SoundDevicePlayer
from talkbridge.live.session import Notification, SessionStateMachine
from talkbridge.nlp.translator.base import Translator
from talkbridge.nlp.translator.factory import get_translator
from talkbridge.tts.azure_rest import AzureSynthesisProvider
from talkbridge.tts.dispatcher import SynthesisCache, SynthesisDispatcher


@dataclass(frozen=True)
class TalkbridgeServices:
    capturer: SoundDeviceCapturer
    encoder: SignalEncoder
    recognizer: AzureRecognitionClient
    translator: Translator
    dispatcher: SynthesisDispatcher
    player: SoundDevicePlayer
    session: SessionStateMachine


def build_services(
    args: Any,
    *,
    credentials: Optional[ProviderCredentials] = None,
    logger: logging.Logger | None = None,
    on_transition: Optional[Callable[[SessionState, SessionState], None]] = None,
    on_notify: Optional[Callable[[Notification], None]] = None,
) -> TalkbridgeServices:
    creds = credentials or ProviderCredentials.from_env()
    timeout = float(args.http_timeout_sec)

    capturer = SoundDeviceCapturer(
        max_seconds=float(args.capture_sec),
        device=args.device,
        sample_rate=args.capture_sr,
        channels=int(args.channels),
        constraints=CaptureConstraints(
            echo_cancellation=bool(args.echo_cancellation),
            noise_suppression=bool(args.noise_suppression),
            auto_gain_control=bool(args.auto_gain_control),
        ),
        logger=logger,
    )
    encoder = SignalEncoder(silence_threshold=float(args.silence_threshold))
    recognizer = AzureRecognitionClient(
        creds,
        bootstrap_language=str(args.bootstrap_language),
        locales=LocaleTable(getattr(args, "locale_map", None)),
        timeout=timeout,
        logger=logger,
    )
    translator = get_translator(str(args.translator), credentials=creds, timeout=timeout, logger=logger)
    dispatcher = SynthesisDispatcher(
        AzureSynthesisProvider(
            creds,
            output_format=str(args.tts_output_format),
            prosody_rate=args.prosody_rate or None,
            timeout=timeout,
            logger=logger,
        ),
        concurrency=max(1, int(args.synthesis_concurrency)),
        cache=SynthesisCache(
            max_entries=max(1, int(args.cache_max_entries)),
            ttl_sec=None if args.cache_ttl_sec is None else float(args.cache_ttl_sec),
        ),
        logger=logger,
    )
    player = SoundDevicePlayer(
        device=args.output_device,
        speed=float(args.playback_speed),
        logger=logger,
    )
    session = SessionStateMachine(
        capturer=capturer,
        encoder=encoder,
        recognizer=recognizer,
        translator=translator,
        dispatcher=dispatcher,
        voices=dict(getattr(args, "voices", None) or {}),
        targets=list(args.targets),
        source_language=str(args.source_language),
        player=player,
        retry_delay=max(0.0, float(args.retry_delay_sec)),
        fade_interval=max(0, int(args.fade_ms)) / 1000.0,
        on_transition=on_transition,
        on_notify=on_notify,
        logger=logger,
    )
    return TalkbridgeServices(
        capturer=capturer,
        encoder=encoder,
        recognizer=recognizer,
        translator=translator,
        dispatcher=dispatcher,
        player=player,
        session=session,
    )
