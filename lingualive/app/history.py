from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import List

from lingualive.contracts import TranslationOutcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    original: str
    translation: str
    provider: str
    source_language: str
    target_language: str
    timestamp: str

    @classmethod
    def from_outcome(cls, original: str, outcome: TranslationOutcome) -> "HistoryEntry":
        return cls(
            original=original,
            translation=outcome.text,
            provider=outcome.provider_used,
            source_language=outcome.source_language,
            target_language=outcome.target_language,
            timestamp=datetime.now().isoformat(timespec="seconds"),
        )


class HistoryStore:
    """Newest-first translation history kept in one JSON file."""

    def __init__(self, path: Path, limit: int = 50) -> None:
        if limit <= 0:
            raise ValueError("limit must be > 0")
        self.path = Path(path)
        self.limit = int(limit)
        self._lock = threading.Lock()

    def load(self) -> List[HistoryEntry]:
        with self._lock:
            return self._read()

    def _read(self) -> List[HistoryEntry]:
        if not self.path.exists():
            return []
        try:
            with self.path.open("r", encoding="utf-8-sig") as f:
                raw = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self._set_aside(str(e))
            return []
        if not isinstance(raw, list):
            self._set_aside(f"expected a JSON list, got {type(raw).__name__}")
            return []
        names = HistoryEntry.__dataclass_fields__.keys()
        out: List[HistoryEntry] = []
        for item in raw:
            if isinstance(item, dict) and all(k in item for k in names):
                out.append(HistoryEntry(**{k: str(item[k]) for k in names}))
        return out

    def _set_aside(self, reason: str) -> None:
        """Move an unreadable history file out of the way so new entries can be saved."""
        backup = self.path.with_name(self.path.name + ".corrupt")
        self.path.replace(backup)
        logger.warning("history_corrupt", extra={"path": str(self.path), "backup": str(backup), "error": reason})

    def append(self, entry: HistoryEntry) -> None:
        with self._lock:
            entries = [entry] + self._read()
            self._write(entries[: self.limit])

    def clear(self) -> None:
        with self._lock:
            if self.path.exists():
                self.path.unlink()

    def _write(self, entries: List[HistoryEntry]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            json.dump([asdict(e) for e in entries], f, ensure_ascii=False, indent=2)
            f.write("\n")
