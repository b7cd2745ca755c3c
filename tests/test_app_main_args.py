from __future__ import annotations

import json
from pathlib import Path

from talkbridge.app.config import resolve_args


def test_app_resolve_args_cli_overrides_config(tmp_path: Path) -> None:
    cfg_path = tmp_path / "app.json"
    cfg_path.write_text(
        json.dumps(
            {
                "translator": "azure",
                "capture_sec": 6.0,
                "fade_ms": 500,
            }
        ),
        encoding="utf-8",
    )
    args = resolve_args(
        [
            "--config",
            str(cfg_path),
            "--translator",
            "mock",
            "--fade-ms",
            "200",
        ]
    )
    assert args.translator == "mock"
    assert args.capture_sec == 6.0
    assert args.fade_ms == 200


def test_app_resolve_args_targets_csv(tmp_path: Path) -> None:
    cfg_path = tmp_path / "app.json"
    cfg_path.write_text(json.dumps({"targets": ["ar"]}), encoding="utf-8")
    args = resolve_args(["--config", str(cfg_path)])
    assert args.targets == ["ar"]

    args = resolve_args(["--config", str(cfg_path), "--targets", "en, fr,,es"])
    assert args.targets == ["en", "fr", "es"]


def test_app_resolve_args_boolean_flags(tmp_path: Path) -> None:
    cfg_path = tmp_path / "app.json"
    cfg_path.write_text(json.dumps({"play": True, "noise_suppression": True}), encoding="utf-8")
    args = resolve_args(["--config", str(cfg_path), "--no-play", "--no-noise-suppression"])
    assert args.play is False
    assert args.noise_suppression is False
    assert args.echo_cancellation is True


def test_app_resolve_args_carries_tables_from_config(tmp_path: Path) -> None:
    cfg_path = tmp_path / "app.json"
    cfg_path.write_text(
        json.dumps({"locale_map": {"pt": "pt-BR"}, "voices": {"pt": ["pt-BR", "pt-BR-FranciscaNeural"]}}),
        encoding="utf-8",
    )
    args = resolve_args(["--config", str(cfg_path)])
    assert args.locale_map == {"pt": "pt-BR"}
    assert args.voices == {"pt": ["pt-BR", "pt-BR-FranciscaNeural"]}


def test_app_resolve_args_typed_text(tmp_path: Path) -> None:
    cfg_path = tmp_path / "app.json"
    cfg_path.write_text("{}", encoding="utf-8")
    args = resolve_args(["--config", str(cfg_path), "--say", "Good work!", "--repeat", "2"])
    assert args.say == "Good work!"
    assert args.repeat == 2
