from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

AUTO = "auto"
PASSTHROUGH = "passthrough"


class BackendKind(str, Enum):
    LOCAL = "local"
    FALLBACK = "fallback"


class SignalReject(str, Enum):
    TOO_SHORT = "too_short"
    TOO_QUIET = "too_quiet"
    TOO_LOUD = "too_loud"
    DIGITAL_ARTIFACT = "digital_artifact"


@dataclass(frozen=True)
class AudioSegment:
    """
    One closed capture window.
    samples: mono float32 in [-1, 1]; never mutated after handoff.
    """
    samples: np.ndarray
    sample_rate: int
    duration_seconds: float
    start_time: float = 0.0  # seconds since capture start


@dataclass(frozen=True)
class Transcript:
    text: str
    detected_language: Optional[str]
    backend: BackendKind
    is_final: bool = True


@dataclass(frozen=True)
class TranslationOutcome:
    text: str
    provider_used: str
    source_language: str
    target_language: str

    @property
    def is_passthrough(self) -> bool:
        return self.provider_used == PASSTHROUGH


class EventKind(str, Enum):
    INTERIM = "interim"
    FINAL = "final"
    END = "end"
    ERROR = "error"


@dataclass(frozen=True)
class RecognizerEvent:
    kind: EventKind
    text: str = ""
    code: str = ""  # ERROR only: "not-allowed", "no-speech", "network", ...


@dataclass(frozen=True)
class TranslationRequest:
    text: str
    source_lang: str
    target_lang: str
