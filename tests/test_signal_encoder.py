from __future__ import annotations

import io
import struct

import numpy as np
import pytest
import soundfile as sf

from talkbridge.audio.encoder import (
    SignalEncoder,
    decode_data_uri,
    find_trim_bounds,
    quantize_pcm16,
    resample_nearest,
)
from talkbridge.errors import EncodingError


def _wav_blob(samples: np.ndarray, sr: int) -> bytes:
    buf = io.BytesIO()
    sf.write(buf, samples, sr, format="WAV", subtype="FLOAT")
    return buf.getvalue()


def _tone(sr: int, seconds: float, amp: float = 0.5) -> np.ndarray:
    t = np.arange(int(round(sr * seconds))) / sr
    return (amp * np.sin(2 * np.pi * 440.0 * t)).astype(np.float32)


@pytest.mark.parametrize("native_sr", [8000, 16000, 22050, 44100, 48000])
def test_output_is_canonical_rate_and_not_longer_than_input(native_sr: int) -> None:
    samples = _tone(native_sr, 0.75)
    enc = SignalEncoder().encode(_wav_blob(samples, native_sr))

    assert enc.sample_rate == 16000
    assert struct.unpack("<I", enc.wav_bytes[24:28])[0] == 16000
    assert sf.info(io.BytesIO(enc.wav_bytes)).samplerate == 16000
    # length is round(n / ratio): at most half an output sample over the input duration
    assert enc.duration <= len(samples) / native_sr + 1.0 / 16000


def test_header_declares_mono_pcm16_and_trimmed_length() -> None:
    sr = 16000
    samples = np.zeros(1600, dtype=np.float32)
    samples[400:800] = 0.25
    enc = SignalEncoder().encode(_wav_blob(samples, sr))

    header = enc.wav_bytes[:44]
    assert header[0:4] == b"RIFF"
    assert header[8:16] == b"WAVEfmt "
    fmt_tag, channels, rate, byte_rate, block_align, bits = struct.unpack("<HHIIHH", header[20:36])
    assert (fmt_tag, channels, rate, byte_rate, block_align, bits) == (1, 1, 16000, 32000, 2, 16)
    assert header[36:40] == b"data"
    assert struct.unpack("<I", header[40:44])[0] == 400 * 2
    assert (enc.trim_start, enc.trim_end) == (400, 799)
    assert enc.sample_count == 400


def test_silent_buffer_is_not_trimmed_and_not_an_error() -> None:
    sr = 48000
    enc = SignalEncoder().encode(_wav_blob(np.zeros(sr, dtype=np.float32), sr))
    assert enc.trim_start == 0
    assert enc.trim_end == 15999
    assert enc.sample_count == 16000
    assert set(enc.wav_bytes[44:]) == {0}


def test_find_trim_bounds_is_contiguous_and_keeps_quiet_samples_inside() -> None:
    samples = np.array([0.0, 0.005, 0.5, 0.0, -0.3, 0.002, 0.0])
    assert find_trim_bounds(samples, 0.01) == (2, 4)
    assert find_trim_bounds(np.zeros(5), 0.01) == (0, 4)


def test_threshold_is_strictly_greater_than() -> None:
    samples = np.array([0.01, 0.02, 0.01])
    assert find_trim_bounds(samples, 0.01) == (1, 1)


def test_quantize_respects_asymmetric_int16_range() -> None:
    pcm = quantize_pcm16(np.array([-1.0, 1.0, 0.5, -0.5, 2.0, -3.0]))
    values = np.frombuffer(pcm, dtype="<i2").tolist()
    assert values == [-32768, 32767, 16383, -16384, 32767, -32768]


def test_resample_nearest_downsamples_by_index_mapping() -> None:
    samples = np.arange(12, dtype=np.float64)
    out = resample_nearest(samples, 48000, 16000)
    assert out.tolist() == [0.0, 3.0, 6.0, 9.0]


def test_resample_nearest_upsampling_pads_past_end_with_silence() -> None:
    samples = np.array([0.1, 0.2, 0.3])
    out = resample_nearest(samples, 8000, 16000)
    # source index = round_half_up(i * 0.5)
    assert out.tolist() == [0.1, 0.2, 0.2, 0.3, 0.3, 0.0]


def test_uses_channel_zero_only() -> None:
    sr = 16000
    left = np.array([0.0, 0.0, 0.25, 0.5, 0.0, 0.0], dtype=np.float32)
    right = np.full(6, 0.9, dtype=np.float32)
    enc = SignalEncoder().encode(_wav_blob(np.stack([left, right], axis=1), sr))
    assert (enc.trim_start, enc.trim_end) == (2, 3)
    assert np.frombuffer(enc.wav_bytes[44:], dtype="<i2").tolist() == [8191, 16383]


def test_data_uri_carries_the_wav_bytes() -> None:
    enc = SignalEncoder().encode_samples(np.array([0.0, 0.5, -0.5, 0.0]), 16000)
    assert enc.data_uri.startswith("data:audio/wav;base64,")
    assert decode_data_uri(enc.data_uri) == enc.wav_bytes


def test_decode_data_uri_rejects_garbage() -> None:
    with pytest.raises(EncodingError):
        decode_data_uri("data:audio/wav;base64,@@@not-base64@@@")


@pytest.mark.parametrize("blob", [b"", b"definitely not audio"])
def test_undecodable_blob_raises_encoding_error(blob: bytes) -> None:
    with pytest.raises(EncodingError):
        SignalEncoder().encode(blob)


def test_flac_blob_from_capture_decodes() -> None:
    from talkbridge.audio.mic import encode_flac

    sr = 44100
    blob = encode_flac(_tone(sr, 0.5, amp=0.3).reshape(-1, 1), sr)
    enc = SignalEncoder().encode(blob)
    assert enc.sample_rate == 16000
    assert 0 < enc.sample_count <= 8000
