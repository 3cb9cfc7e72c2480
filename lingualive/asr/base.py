from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from lingualive.contracts import AudioSegment, BackendKind, Transcript


class SegmentTranscriber(ABC):
    @property
    @abstractmethod
    def kind(self) -> BackendKind: ...

    @abstractmethod
    def transcribe(self, segment: AudioSegment, language: Optional[str]) -> Transcript:
        """
        Raise BackendUnavailable when the backend cannot serve at all and
        SegmentDecodeError when only this segment is unusable.
        """
        raise NotImplementedError
