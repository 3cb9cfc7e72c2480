from __future__ import annotations

import queue
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class LineKind(str, Enum):
    INTERIM = "interim"
    ORIGINAL = "original"
    TRANSLATION = "translation"
    STATUS = "status"


def put_drop_oldest(q: "queue.Queue[Any]", item: Any) -> bool:
    """Non-blocking put; returns True when an older item had to be dropped."""
    try:
        q.put_nowait(item)
        return False
    except queue.Full:
        try:
            _ = q.get_nowait()
        except queue.Empty:
            return False
        try:
            q.put_nowait(item)
            return True
        except queue.Full:
            return True


@dataclass(frozen=True)
class DisplayLine:
    kind: LineKind
    text: str
    language: Optional[str] = None
    provider: Optional[str] = None


class DisplayBus:
    """
    Thread-safe handoff from pipeline threads -> console loop.
    Producers never block: when full, the oldest line is dropped.
    """
    def __init__(self, maxsize: int = 100):
        self.q: "queue.Queue[DisplayLine]" = queue.Queue(maxsize=maxsize)

    def push(self, line: DisplayLine) -> bool:
        return put_drop_oldest(self.q, line)

    def pop(self) -> Optional[DisplayLine]:
        try:
            return self.q.get_nowait()
        except queue.Empty:
            return None
