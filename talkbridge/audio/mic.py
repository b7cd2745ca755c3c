from __future__ import annotations

import io
import logging
import threading
from dataclasses import dataclass
from typing import Optional, Protocol

import numpy as np
import soundfile as sf

from talkbridge.app.logging_setup import log_event
from talkbridge.contracts import CapturedAudio
from talkbridge.errors import MicPermissionError, SessionBusyError


@dataclass(frozen=True)
class CaptureConstraints:
    echo_cancellation: bool = True
    noise_suppression: bool = True
    auto_gain_control: bool = True


class AudioCapturer(Protocol):
    def start(self) -> CapturedAudio:
        ...

    def stop(self) -> None:
        ...


def _import_sounddevice():
    try:
        import sounddevice as sd
    except (ImportError, OSError) as e:
        raise MicPermissionError(
            "Audio input backend unavailable. Install with: python -m pip install sounddevice"
        ) from e
    return sd


class SoundDeviceCapturer:
    """
    Single-shot microphone capture using the `sounddevice` package (PortAudio).
    Records at the device's native rate until `max_seconds` elapse or `stop()` is called,
    then returns the recording as an in-memory FLAC blob.
    """

    def __init__(
        self,
        *,
        max_seconds: float = 4.0,
        device: Optional[int] = None,
        sample_rate: Optional[int] = None,
        channels: int = 1,
        constraints: CaptureConstraints = CaptureConstraints(),
        logger: logging.Logger | None = None,
    ) -> None:
        if max_seconds <= 0:
            raise ValueError("max_seconds must be > 0")
        if sample_rate is not None and sample_rate <= 0:
            raise ValueError("sample_rate must be > 0")
        if channels not in (1, 2):
            raise ValueError("channels must be 1 or 2 (for now)")

        self.max_seconds = float(max_seconds)
        self.device = device
        self.sample_rate = sample_rate
        self.channels = int(channels)
        self.constraints = constraints
        self.logger = logger
        self._lock = threading.Lock()
        self._stop_event: threading.Event | None = None

    @staticmethod
    def list_devices() -> str:
        sd = _import_sounddevice()
        return str(sd.query_devices())

    @property
    def is_recording(self) -> bool:
        with self._lock:
            return self._stop_event is not None

    def _native_rate(self, sd) -> int:
        if self.sample_rate is not None:
            return int(self.sample_rate)
        try:
            info = sd.query_devices(self.device, "input")
        except (ValueError, sd.PortAudioError) as e:
            raise MicPermissionError("No usable microphone input device found.") from e
        return int(round(float(info["default_samplerate"])))

    def stop(self) -> None:
        with self._lock:
            ev = self._stop_event
        if ev is not None:
            ev.set()

    def start(self) -> CapturedAudio:
        with self._lock:
            if self._stop_event is not None:
                raise SessionBusyError("a recording is already in progress")
            stop_event = threading.Event()
            self._stop_event = stop_event

        try:
            sd = _import_sounddevice()
            rate = self._native_rate(sd)
            # PortAudio exposes no echo/noise/gain processing; the request is only recorded.
            log_event(
                self.logger,
                logging.DEBUG,
                "capture_constraints_unsupported",
                echo_cancellation=self.constraints.echo_cancellation,
                noise_suppression=self.constraints.noise_suppression,
                auto_gain_control=self.constraints.auto_gain_control,
            )

            blocks: list[np.ndarray] = []

            def _callback(indata, frames, time_info, status) -> None:
                blocks.append(indata.copy())

            try:
                stream = sd.InputStream(
                    samplerate=rate,
                    channels=self.channels,
                    dtype="float32",
                    device=self.device,
                    callback=_callback,
                )
            except (ValueError, sd.PortAudioError) as e:
                raise MicPermissionError(
                    "Failed to open microphone stream. Check device selection and mic permissions."
                ) from e

            log_event(self.logger, logging.INFO, "capture_start", sr=rate, max_seconds=self.max_seconds)
            try:
                with stream:
                    stopped_early = stop_event.wait(timeout=self.max_seconds)
            except (ValueError, sd.PortAudioError) as e:
                # Denied or busy devices usually fail here, when the stream starts.
                raise MicPermissionError(
                    "Failed to start microphone stream. Check device selection and mic permissions."
                ) from e
        finally:
            with self._lock:
                self._stop_event = None

        if blocks:
            samples = np.concatenate(blocks, axis=0)
        else:
            samples = np.zeros((0, self.channels), dtype=np.float32)
        duration = samples.shape[0] / float(rate)
        log_event(
            self.logger,
            logging.INFO,
            "capture_done",
            sr=rate,
            seconds=round(duration, 3),
            manual_stop=bool(stopped_early),
        )
        return CapturedAudio(
            data=encode_flac(samples, rate),
            mime_type="audio/flac",
            sample_rate=rate,
            duration=duration,
        )


def encode_flac(samples: np.ndarray, sample_rate: int) -> bytes:
    buf = io.BytesIO()
    sf.write(buf, samples, sample_rate, format="FLAC", subtype="PCM_16")
    return buf.getvalue()
