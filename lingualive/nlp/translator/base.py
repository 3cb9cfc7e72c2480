from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Tuple

from lingualive.contracts import TranslationRequest


class Translator(ABC):
    requires_credential: bool = False
    # Substrings that mark a reply as an error notice rather than a translation.
    failure_markers: Tuple[str, ...] = ()

    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    def available(self) -> bool:
        return True

    @abstractmethod
    def translate(self, req: TranslationRequest) -> str:
        """Return translated text or raise; the resolver treats any exception as a provider failure."""

    def is_marked_failure(self, text: str) -> bool:
        upper = text.upper()
        return any(marker.upper() in upper for marker in self.failure_markers)
