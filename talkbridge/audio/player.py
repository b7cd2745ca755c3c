from __future__ import annotations

import io
import logging

import soundfile as sf

from talkbridge.app.logging_setup import log_event
from talkbridge.audio.mic import _import_sounddevice
from talkbridge.errors import EncodingError


class SoundDevicePlayer:
    """Decode synthesized audio bytes and play them on the default output device."""

    def __init__(self, *, device: int | None = None, speed: float = 1.0, logger: logging.Logger | None = None) -> None:
        if speed <= 0:
            raise ValueError("speed must be > 0")
        self.device = device
        self.speed = float(speed)
        self.logger = logger

    def play(self, audio: bytes, *, blocking: bool = True) -> bool:
        if not audio:
            log_event(self.logger, logging.INFO, "playback_skipped_empty")
            return False
        try:
            data, sr = sf.read(io.BytesIO(audio), dtype="float32")
        except (sf.SoundFileError, RuntimeError) as e:
            raise EncodingError(f"failed to decode synthesized audio: {e}") from e

        sd = _import_sounddevice()
        # Slow playback just lowers the output rate, e.g. 0.75 for "slow".
        rate = int(round(sr * self.speed))
        sd.play(data, rate, device=self.device)
        if blocking:
            sd.wait()
        log_event(self.logger, logging.INFO, "playback", sr=rate, samples=len(data))
        return True
