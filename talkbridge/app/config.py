from __future__ import annotations

import argparse
import copy
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from platformdirs import user_config_dir


DEFAULTS: dict[str, Any] = {
    "list_devices": False,
    "device": None,
    "output_device": None,
    "capture_sr": None,
    "channels": 1,
    "capture_sec": 4.0,
    "echo_cancellation": True,
    "noise_suppression": True,
    "auto_gain_control": True,
    "silence_threshold": 0.01,
    "source_language": "auto",
    "bootstrap_language": "en-US",
    "targets": ["en"],
    "translator": "azure",
    "synthesis_concurrency": 3,
    "cache_max_entries": 256,
    "cache_ttl_sec": None,
    "tts_output_format": "audio-24khz-48kbitrate-mono-mp3",
    "prosody_rate": "-10%",
    "http_timeout_sec": 30.0,
    "retry_delay_sec": 2.0,
    "fade_ms": 300,
    "play": True,
    "playback_speed": 1.0,
    "locale_map": {},
    "voices": {
        "en": ["en-US", "en-US-JennyNeural"],
        "es": ["es-ES", "es-ES-ElviraNeural"],
        "fr": ["fr-FR", "fr-FR-DeniseNeural"],
        "de": ["de-DE", "de-DE-KatjaNeural"],
        "it": ["it-IT", "it-IT-ElsaNeural"],
        "pt": ["pt-PT", "pt-PT-RaquelNeural"],
        "ru": ["ru-RU", "ru-RU-SvetlanaNeural"],
        "zh-Hans": ["zh-CN", "zh-CN-XiaoxiaoNeural"],
        "ja": ["ja-JP", "ja-JP-NanamiNeural"],
        "ko": ["ko-KR", "ko-KR-SunHiNeural"],
        "ar": ["ar-SA", "ar-SA-ZariyahNeural"],
        "tr": ["tr-TR", "tr-TR-EmelNeural"],
        "nl": ["nl-NL", "nl-NL-ColetteNeural"],
        "da": ["da-DK", "da-DK-ChristelNeural"],
        "fa": ["fa-IR", "fa-IR-DilaraNeural"],
        "lv": ["lv-LV", "lv-LV-EveritaNeural"],
    },
    "debug": False,
}
CONFIG_KEYS: tuple[str, ...] = tuple(DEFAULTS.keys())


@dataclass(frozen=True)
class AppPaths:
    config_dir: Path
    config_path: Path


@dataclass(frozen=True)
class ProviderCredentials:
    speech_key: Optional[str] = None
    speech_region: Optional[str] = None
    translator_key: Optional[str] = None
    translator_region: Optional[str] = None

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "ProviderCredentials":
        env = os.environ if env is None else env

        def _get(name: str) -> Optional[str]:
            value = (env.get(name) or "").strip()
            return value or None

        return cls(
            speech_key=_get("AZURE_SPEECH_KEY"),
            speech_region=_get("AZURE_SPEECH_REGION"),
            translator_key=_get("AZURE_TRANSLATOR_KEY"),
            translator_region=_get("AZURE_TRANSLATOR_REGION"),
        )

    @property
    def has_speech(self) -> bool:
        return bool(self.speech_key and self.speech_region)

    @property
    def has_translator(self) -> bool:
        return bool(self.translator_key and self.translator_region)


def default_asset_config_path() -> Path:
    return Path(__file__).resolve().parents[2] / "assets" / "config" / "default.json"


def app_paths() -> AppPaths:
    config_dir = Path(user_config_dir("Talkbridge", "Talkbridge"))
    return AppPaths(config_dir=config_dir, config_path=config_dir / "config.json")


def _load_json_dict(path: Path) -> dict[str, Any]:
    # Accept UTF-8 with or without BOM for Windows-edited config files.
    with path.open("r", encoding="utf-8-sig") as f:
        loaded = json.load(f)
    if not isinstance(loaded, dict):
        raise ValueError(f"config must be a JSON object: {path}")
    return loaded


def _write_json_dict(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
        f.write("\n")


def _known_only(payload: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in CONFIG_KEYS:
        if key in payload:
            out[key] = payload[key]
    return out


def load_default_config() -> dict[str, Any]:
    path = default_asset_config_path()
    if not path.exists():
        return copy.deepcopy(DEFAULTS)
    loaded = _load_json_dict(path)
    out = copy.deepcopy(DEFAULTS)
    for key in DEFAULTS.keys():
        if key in loaded:
            out[key] = loaded[key]
    return out


def load_user_config(config_path: str | None = None) -> tuple[dict[str, Any], Path]:
    defaults = load_default_config()
    if config_path:
        chosen = Path(config_path)
        if not chosen.exists():
            raise SystemExit(f"Config file not found: {chosen}")
    else:
        chosen = ensure_user_config_exists(defaults)
    loaded = _known_only(_load_json_dict(chosen))
    merged = dict(defaults)
    merged.update(loaded)
    return merged, chosen


def ensure_user_config_exists(defaults: dict[str, Any] | None = None) -> Path:
    paths = app_paths()
    if paths.config_path.exists():
        return paths.config_path
    _write_json_dict(paths.config_path, defaults or load_default_config())
    return paths.config_path


def resolve_defaults(config_path: str | None = None) -> tuple[dict[str, Any], Path]:
    return load_user_config(config_path=config_path)


def _csv_list(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def parser_with_defaults(defaults: dict[str, Any]) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="talkbridge")
    p.add_argument("--config", default=None, help="JSON config path (CLI flags override config)")
    p.add_argument("--list-devices", action="store_true", help="print audio devices and exit")
    p.add_argument("--device", type=int, default=defaults["device"], help="sounddevice input device id")
    p.add_argument(
        "--output-device",
        type=int,
        default=defaults["output_device"],
        help="sounddevice output device id",
    )
    p.add_argument(
        "--capture-sr",
        type=int,
        default=defaults["capture_sr"],
        help="capture sample rate (Hz); device default when omitted",
    )
    p.add_argument("--channels", type=int, default=defaults["channels"], help="input channels")
    p.add_argument(
        "--capture-sec",
        type=float,
        default=defaults["capture_sec"],
        help="recording ceiling in seconds",
    )
    p.add_argument(
        "--echo-cancellation",
        action=argparse.BooleanOptionalAction,
        default=defaults["echo_cancellation"],
        help="request echo cancellation where the device supports it",
    )
    p.add_argument(
        "--noise-suppression",
        action=argparse.BooleanOptionalAction,
        default=defaults["noise_suppression"],
        help="request noise suppression where the device supports it",
    )
    p.add_argument(
        "--auto-gain-control",
        action=argparse.BooleanOptionalAction,
        default=defaults["auto_gain_control"],
        help="request automatic gain where the device supports it",
    )
    p.add_argument(
        "--silence-threshold",
        type=float,
        default=defaults["silence_threshold"],
        help="absolute amplitude below which edges are trimmed",
    )
    p.add_argument(
        "--source-language",
        default=defaults["source_language"],
        help="recognizer locale tag, or 'auto' to detect",
    )
    p.add_argument(
        "--bootstrap-language",
        default=defaults["bootstrap_language"],
        help="locale used for the first recognition pass in auto mode",
    )
    p.add_argument(
        "--targets",
        type=_csv_list,
        default=list(defaults["targets"]),
        help="comma-separated translation target codes",
    )
    p.add_argument("--translator", default=defaults["translator"], choices=["azure", "mock"], help="translator provider")
    p.add_argument(
        "--synthesis-concurrency",
        type=int,
        default=defaults["synthesis_concurrency"],
        help="max concurrent synthesis calls",
    )
    p.add_argument(
        "--cache-max-entries",
        type=int,
        default=defaults["cache_max_entries"],
        help="synthesis cache size (LRU)",
    )
    p.add_argument(
        "--cache-ttl-sec",
        type=float,
        default=defaults["cache_ttl_sec"],
        help="synthesis cache entry lifetime; no expiry when omitted",
    )
    p.add_argument("--tts-output-format", default=defaults["tts_output_format"], help="synthesis audio format")
    p.add_argument("--prosody-rate", default=defaults["prosody_rate"], help="synthesis speaking rate")
    p.add_argument(
        "--http-timeout-sec",
        type=float,
        default=defaults["http_timeout_sec"],
        help="deadline for each provider call",
    )
    p.add_argument(
        "--retry-delay-sec",
        type=float,
        default=defaults["retry_delay_sec"],
        help="delay before an errored session returns to idle",
    )
    p.add_argument("--fade-ms", type=int, default=defaults["fade_ms"], help="message fade interval (ms)")
    p.add_argument(
        "--play",
        action=argparse.BooleanOptionalAction,
        default=defaults["play"],
        help="play synthesized audio after each translation",
    )
    p.add_argument(
        "--playback-speed",
        type=float,
        default=defaults["playback_speed"],
        help="playback speed factor (0.75 = slow)",
    )
    p.add_argument("--say", default=None, help="translate typed text instead of recording")
    p.add_argument("--repeat", type=int, default=1, help="number of record/translate rounds")
    p.add_argument("--debug", action="store_true", help="echo structured log events to stderr")
    return p


def resolve_args(argv: list[str] | None = None) -> argparse.Namespace:
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", default=None)
    pre_args, _ = pre.parse_known_args(argv)
    defaults, _ = resolve_defaults(config_path=pre_args.config)
    parser = parser_with_defaults(defaults)
    args = parser.parse_args(argv)
    # Not exposed as flags; carried over from the config file.
    args.locale_map = dict(defaults.get("locale_map") or {})
    args.voices = dict(defaults.get("voices") or {})
    if defaults.get("list_devices"):
        args.list_devices = True
    if defaults.get("debug"):
        args.debug = True
    return args
