from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import pytest

from lingualive.app import config as app_config
from lingualive.app.history import HistoryEntry, HistoryStore
from lingualive.app.main import main


@pytest.fixture
def config_home(tmp_path: Path, monkeypatch) -> Iterator[Path]:
    monkeypatch.setattr(app_config, "user_config_dir", lambda appname, appauthor=None: str(tmp_path))
    monkeypatch.delenv(app_config.CREDENTIAL_ENV, raising=False)
    yield tmp_path
    logger = logging.getLogger("lingualive")
    for h in logger.handlers:
        h.close()
    logger.handlers.clear()


def test_set_api_key_stores_and_removes(config_home: Path, capsys) -> None:
    assert main(["--set-api-key", "abc"]) == 0
    assert app_config.load_credential() == "abc"
    assert "API key saved." in capsys.readouterr().out

    assert main(["--set-api-key", ""]) == 0
    assert app_config.load_credential() is None


def test_show_and_clear_history(config_home: Path, capsys) -> None:
    store = HistoryStore(app_config.app_paths().history_path)
    store.append(
        HistoryEntry(
            original="good morning",
            translation="buenos días",
            provider="mymemory",
            source_language="en",
            target_language="es",
            timestamp="2024-05-01T09:00:00",
        )
    )

    assert main(["--show-history"]) == 0
    out = capsys.readouterr().out
    assert "[en->es via mymemory]" in out
    assert "buenos días" in out

    assert main(["--clear-history"]) == 0
    assert store.load() == []
