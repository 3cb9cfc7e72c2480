from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from lingualive.contracts import AUTO


class RuntimeState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    ERROR = "error"


@dataclass(frozen=True)
class Session:
    source_language: str = AUTO
    target_language: str = "en"
    detected_language: Optional[str] = None
    listening: bool = False
    segment_in_flight: bool = False
    state: RuntimeState = RuntimeState.STOPPED
    last_error: Optional[str] = None

    @property
    def effective_source(self) -> Optional[str]:
        if self.source_language != AUTO:
            return self.source_language
        return self.detected_language


class SessionManager:
    """
    Sole owner of the Session record. Every write swaps in a new frozen
    Session under the lock, so readers always see a consistent snapshot.
    """

    def __init__(self, source_language: str = AUTO, target_language: str = "en") -> None:
        if not target_language or target_language == AUTO:
            raise ValueError("target_language must be a concrete language tag")
        self._lock = threading.Lock()
        self._session = Session(
            source_language=source_language or AUTO,
            target_language=target_language,
        )

    def snapshot(self) -> Session:
        with self._lock:
            return self._session

    def _update(self, **changes) -> Session:
        with self._lock:
            self._session = replace(self._session, **changes)
            return self._session

    def set_source_language(self, language: str) -> Session:
        language = language or AUTO
        with self._lock:
            if language == self._session.source_language:
                return self._session
            self._session = replace(self._session, source_language=language, detected_language=None)
            return self._session

    def set_target_language(self, language: str) -> Session:
        if not language or language == AUTO:
            raise ValueError("target_language must be a concrete language tag")
        return self._update(target_language=language)

    def set_detected_language(self, language: Optional[str]) -> Session:
        with self._lock:
            # only meaningful while the source is auto
            if self._session.source_language != AUTO:
                return self._session
            self._session = replace(self._session, detected_language=language or None)
            return self._session

    def set_listening(self, listening: bool) -> Session:
        return self._update(listening=bool(listening))

    def set_segment_in_flight(self, in_flight: bool) -> Session:
        return self._update(segment_in_flight=bool(in_flight))

    def set_starting(self) -> Session:
        return self._update(state=RuntimeState.STARTING, last_error=None)

    def set_running(self) -> Session:
        return self._update(state=RuntimeState.RUNNING, listening=True)

    def set_stopped(self) -> Session:
        with self._lock:
            state = self._session.state
            if state != RuntimeState.ERROR:
                state = RuntimeState.STOPPED
            self._session = replace(
                self._session, state=state, listening=False, segment_in_flight=False
            )
            return self._session

    def set_error(self, detail: str) -> Session:
        return self._update(state=RuntimeState.ERROR, last_error=detail, listening=False)
