from __future__ import annotations

import argparse
from pathlib import Path

from talkbridge.audio.encoder import SignalEncoder
from talkbridge.audio.mic import SoundDeviceCapturer


def main() -> int:
    p = argparse.ArgumentParser()
    p.add_argument("--device", type=int, default=None, help="sounddevice input device id")
    p.add_argument("--seconds", type=float, default=4.0, help="recording ceiling")
    p.add_argument("--silence-threshold", type=float, default=0.01, help="edge trim threshold")
    p.add_argument("--out", default="assets/audio/mic_test.wav", help="output WAV path (16 kHz, trimmed)")
    p.add_argument("--list-devices", action="store_true", help="print audio devices and exit")
    args = p.parse_args()

    if args.list_devices:
        print(SoundDeviceCapturer.list_devices())
        return 0

    capturer = SoundDeviceCapturer(max_seconds=args.seconds, device=args.device)
    print(f"Recording up to {args.seconds:.1f}s from device={args.device}...")
    captured = capturer.start()
    encoded = SignalEncoder(silence_threshold=args.silence_threshold).encode(captured)

    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(encoded.wav_bytes)

    print(f"Native rate: {captured.sample_rate} Hz, captured {captured.duration:.2f}s")
    print(f"Kept samples {encoded.trim_start}..{encoded.trim_end} ({encoded.duration:.2f}s at 16 kHz)")
    print(f"Saved WAV: {out_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
