from __future__ import annotations

import logging
import threading
from typing import Optional

from lingualive.asr.faster_whisper_local import LocalWhisperBackend, ProgressCallback
from lingualive.asr.fallback_recognizer import StreamingFallbackRecognizer
from lingualive.contracts import BackendKind
from lingualive.fallback import Attempt, first_accepted


class BackendSwitch:
    """
    Tagged choice between the local backend and the streaming fallback.
    Chosen once by select(); demote() is the only transition and is one-way.
    """

    def __init__(
        self,
        *,
        local: Optional[LocalWhisperBackend],
        fallback: StreamingFallbackRecognizer,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.local = local
        self.fallback = fallback
        self.logger = logger or logging.getLogger(__name__)
        self._kind: Optional[BackendKind] = None
        self._lock = threading.Lock()
        self.demotion_reason: Optional[str] = None

    @property
    def kind(self) -> BackendKind:
        with self._lock:
            return self._kind or BackendKind.FALLBACK

    @property
    def selected(self) -> bool:
        with self._lock:
            return self._kind is not None

    def select(
        self,
        *,
        progress: Optional[ProgressCallback] = None,
        timeout: Optional[float] = None,
        force_fallback: bool = False,
    ) -> BackendKind:
        local = self.local
        attempts = []
        if local is not None and not force_fallback:
            attempts.append(
                Attempt(BackendKind.LOCAL.value, lambda: local.load(progress=progress, timeout=timeout))
            )
        attempts.append(Attempt(BackendKind.FALLBACK.value, lambda: None))

        def _on_failure(name: str, e: Exception) -> None:
            self.demotion_reason = str(e)
            self.logger.warning("backend_load_failed", extra={"backend": name, "error": str(e)})

        picked = first_accepted(attempts, on_failure=_on_failure)
        kind = BackendKind(picked[0]) if picked is not None else BackendKind.FALLBACK
        with self._lock:
            self._kind = kind
        self.logger.info("backend_selected", extra={"backend": kind.value})
        return kind

    def demote(self, reason: str) -> bool:
        """Switch to the fallback for the rest of the session. Returns False if already there."""
        with self._lock:
            if self._kind == BackendKind.FALLBACK:
                return False
            self._kind = BackendKind.FALLBACK
            self.demotion_reason = reason
        self.logger.warning("backend_demoted", extra={"reason": reason})
        return True
