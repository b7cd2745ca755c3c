from __future__ import annotations

import json
import logging
from pathlib import Path

from talkbridge.app import config as app_config
from talkbridge.app.logging_setup import log_event, setup_app_logger


def test_setup_app_logger_writes_json_line(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(app_config, "user_config_dir", lambda appname, appauthor=None: str(tmp_path))
    logger, log_dir, log_path = setup_app_logger("talkbridge.test")

    log_event(logger, logging.INFO, "synthesize_done", locale="en-US", cached=False, elapsed_ms=12)
    for h in logger.handlers:
        h.flush()

    assert log_dir == tmp_path / "logs"
    assert log_path.exists()
    lines = [ln for ln in log_path.read_text(encoding="utf-8").splitlines() if ln.strip()]
    assert lines
    payload = json.loads(lines[-1])
    assert payload["message"] == "synthesize_done"
    assert payload["locale"] == "en-US"
    assert payload["cached"] is False
    assert payload["elapsed_ms"] == 12
    assert payload["level"] == "INFO"

    for h in logger.handlers:
        h.close()
    logging.getLogger("talkbridge.test").handlers.clear()


def test_log_event_without_logger_is_noop() -> None:
    log_event(None, logging.INFO, "nothing", value=1)


def test_non_json_values_are_stringified(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(app_config, "user_config_dir", lambda appname, appauthor=None: str(tmp_path))
    logger, _, log_path = setup_app_logger("talkbridge.test.paths")
    log_event(logger, logging.WARNING, "path_event", path=tmp_path)
    for h in logger.handlers:
        h.flush()
    payload = json.loads(log_path.read_text(encoding="utf-8").splitlines()[-1])
    assert payload["path"] == str(tmp_path)
    assert payload["level"] == "WARNING"

    for h in logger.handlers:
        h.close()
    logging.getLogger("talkbridge.test.paths").handlers.clear()
