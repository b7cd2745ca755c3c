from __future__ import annotations

import base64
import binascii
import io
import math
import struct
from typing import Union

import numpy as np
import soundfile as sf

from talkbridge.contracts import CANONICAL_SAMPLE_RATE, CapturedAudio, EncodedUtterance
from talkbridge.errors import EncodingError

WAV_HEADER_BYTES = 44
WAV_DATA_URI_PREFIX = "data:audio/wav;base64,"
DEFAULT_SILENCE_THRESHOLD = 0.01


def _round_half_up(x):
    return np.floor(np.asarray(x, dtype=np.float64) + 0.5).astype(np.int64)


def decode_channel0(blob: bytes) -> tuple[np.ndarray, int]:
    """Decode a compressed/uncompressed audio container and return (channel 0, native rate)."""
    if not blob:
        raise EncodingError("captured audio is empty")
    try:
        data, sr = sf.read(io.BytesIO(blob), dtype="float64", always_2d=True)
    except (sf.SoundFileError, RuntimeError, TypeError) as e:
        raise EncodingError(f"failed to decode captured audio: {e}") from e
    if sr <= 0:
        raise EncodingError(f"invalid native sample rate: {sr}")
    if data.shape[0] == 0:
        raise EncodingError("captured audio has no samples")
    return np.ascontiguousarray(data[:, 0]), int(sr)


def resample_nearest(samples: np.ndarray, native_rate: int, target_rate: int = CANONICAL_SAMPLE_RATE) -> np.ndarray:
    """
    Nearest-neighbour resample. Output length is round(len / ratio) with
    ratio = native_rate / target_rate; source indices past the end read as silence.
    """
    ratio = float(native_rate) / float(target_rate)
    out_len = int(math.floor(len(samples) / ratio + 0.5))
    if out_len <= 0:
        return np.zeros(0, dtype=np.float64)
    src = _round_half_up(np.arange(out_len) * ratio)
    out = np.zeros(out_len, dtype=np.float64)
    valid = src < len(samples)
    out[valid] = samples[src[valid]]
    return out


def find_trim_bounds(samples: np.ndarray, threshold: float = DEFAULT_SILENCE_THRESHOLD) -> tuple[int, int]:
    """Inclusive [start, end] of the above-threshold region; whole buffer when nothing crosses."""
    if len(samples) == 0:
        return 0, -1
    loud = np.flatnonzero(np.abs(samples) > threshold)
    if loud.size == 0:
        return 0, len(samples) - 1
    return int(loud[0]), int(loud[-1])


def quantize_pcm16(samples: np.ndarray) -> bytes:
    # int16 range is asymmetric: -32768..32767
    clipped = np.clip(samples, -1.0, 1.0)
    scaled = np.where(clipped < 0, clipped * 32768.0, clipped * 32767.0)
    return scaled.astype("<i2").tobytes()


def wav_header(data_len: int, sample_rate: int = CANONICAL_SAMPLE_RATE) -> bytes:
    channels = 1
    bits = 16
    block_align = channels * bits // 8
    return struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        36 + data_len,
        b"WAVE",
        b"fmt ",
        16,
        1,  # PCM
        channels,
        sample_rate,
        sample_rate * block_align,
        block_align,
        bits,
        b"data",
        data_len,
    )


def to_data_uri(wav_bytes: bytes) -> str:
    return WAV_DATA_URI_PREFIX + base64.b64encode(wav_bytes).decode("ascii")


def decode_data_uri(text: str) -> bytes:
    """Accept either a `data:<mime>;base64,` URI or a bare base64 payload."""
    payload = text.strip()
    if payload.startswith("data:"):
        _, sep, payload = payload.partition(",")
        if not sep:
            raise EncodingError("data URI has no payload")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise EncodingError(f"invalid base64 audio payload: {e}") from e


class SignalEncoder:
    def __init__(self, *, silence_threshold: float = DEFAULT_SILENCE_THRESHOLD) -> None:
        if silence_threshold < 0:
            raise ValueError("silence_threshold must be >= 0")
        self.silence_threshold = float(silence_threshold)

    def encode_samples(self, samples: np.ndarray, native_rate: int) -> EncodedUtterance:
        if native_rate <= 0:
            raise ValueError("native_rate must be > 0")
        resampled = resample_nearest(np.asarray(samples, dtype=np.float64), native_rate)
        if len(resampled) == 0:
            raise EncodingError("captured audio is too short to resample")
        start, end = find_trim_bounds(resampled, self.silence_threshold)
        pcm = quantize_pcm16(resampled[start : end + 1])
        wav = wav_header(len(pcm)) + pcm
        return EncodedUtterance(
            wav_bytes=wav,
            data_uri=to_data_uri(wav),
            trim_start=start,
            trim_end=end,
        )

    def encode(self, audio: Union[CapturedAudio, bytes]) -> EncodedUtterance:
        blob = audio.data if isinstance(audio, CapturedAudio) else audio
        samples, native_rate = decode_channel0(blob)
        return self.encode_samples(samples, native_rate)
