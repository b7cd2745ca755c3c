from __future__ import annotations

import argparse
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from talkbridge.app.config import ProviderCredentials
from talkbridge.tts.azure_rest import AzureSynthesisProvider
from talkbridge.tts.dispatcher import SynthesisDispatcher


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("text", nargs="+", help="one or more phrases to synthesize")
    ap.add_argument("--voice", default="en-US-JennyNeural")
    ap.add_argument("--locale", default="en-US")
    ap.add_argument("--concurrency", type=int, default=3)
    ap.add_argument("--out-dir", default="assets/audio/tts")
    args = ap.parse_args()

    dispatcher = SynthesisDispatcher(
        AzureSynthesisProvider(ProviderCredentials.from_env()),
        concurrency=args.concurrency,
    )
    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    with ThreadPoolExecutor(max_workers=len(args.text)) as pool:
        audios = list(pool.map(lambda t: dispatcher.synthesize(t, args.voice, args.locale), args.text))

    for i, (text, audio) in enumerate(zip(args.text, audios)):
        path = out_dir / f"tts_{i:02d}.mp3"
        path.write_bytes(audio)
        print(f"[{len(audio)} bytes] {text} -> {path}")

    stats = dispatcher.stats()
    print(f"provider calls: {stats.provider_calls}, cache hits: {stats.cache_hits}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
