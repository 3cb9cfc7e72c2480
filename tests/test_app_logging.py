from __future__ import annotations

import json
import logging
from pathlib import Path

from lingualive.app import config as app_config
from lingualive.app.logging_setup import setup_app_logger
from lingualive.contracts import BackendKind


def _close(logger: logging.Logger) -> None:
    for h in logger.handlers:
        h.close()
    logger.handlers.clear()


def test_setup_app_logger_writes_json_line(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(app_config, "user_config_dir", lambda appname, appauthor=None: str(tmp_path))
    logger, log_dir, log_path = setup_app_logger("lingualive.test", console_level=None)

    logger.info("backend_selected", extra={"backend": BackendKind.LOCAL, "chars": 7})
    for h in logger.handlers:
        h.flush()

    assert log_dir == tmp_path / "logs"
    lines = [ln for ln in log_path.read_text(encoding="utf-8").splitlines() if ln.strip()]
    payload = json.loads(lines[-1])
    assert payload["message"] == "backend_selected"
    assert payload["backend"] == "local"
    assert payload["chars"] == 7
    assert payload["level"] == "INFO"
    _close(logger)


def test_debug_level_and_exception_text(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(app_config, "user_config_dir", lambda appname, appauthor=None: str(tmp_path))
    logger, _log_dir, log_path = setup_app_logger("lingualive.test.debug", debug=True, console_level=None)
    assert logger.level == logging.DEBUG

    try:
        raise ValueError("bad segment")
    except ValueError:
        logger.exception("segment_processing_failed")
    for h in logger.handlers:
        h.flush()

    payload = json.loads(log_path.read_text(encoding="utf-8").splitlines()[-1])
    assert payload["level"] == "ERROR"
    assert "ValueError: bad segment" in payload["exc_info"]
    _close(logger)


def test_repeated_setup_does_not_duplicate_handlers(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(app_config, "user_config_dir", lambda appname, appauthor=None: str(tmp_path))
    setup_app_logger("lingualive.test.repeat")
    logger, _log_dir, _log_path = setup_app_logger("lingualive.test.repeat")
    assert len(logger.handlers) == 2
    _close(logger)
