from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from lingualive.audio.signal import energy_variation, rms
from lingualive.contracts import AudioSegment, SignalReject

# Phrases Whisper emits on silence, music, or noise.
DEFAULT_BOILERPLATE: FrozenSet[str] = frozenset(
    {
        "[music]",
        "(music)",
        "[blank_audio]",
        "[silence]",
        "[noise]",
        "[applause]",
        "(applause)",
        "[laughter]",
        "(laughter)",
        "[inaudible]",
        "♪",
        "♫",
        "♪♪",
        "you",
        "thank you",
        "thanks for watching",
        "thank you for watching",
        "thank you so much for watching",
        "please subscribe",
        "like and subscribe",
        "see you next time",
        "subtitles by the amara.org community",
    }
)

_TRAILING_PUNCT = re.compile(r"[\s.!?,。！？…]+$")
_WORD_EDGES = re.compile(r"^\W+|\W+$", flags=re.UNICODE)


@dataclass(frozen=True)
class ValidatorConfig:
    min_chars: int = 2
    boilerplate: FrozenSet[str] = field(default=DEFAULT_BOILERPLATE)
    max_char_run: int = 5
    max_word_run: int = 4
    # longest unspaced token (e.g. "ha", "我们") checked for back-to-back repeats
    max_token_len: int = 4
    max_char_ratio: float = 0.7
    ratio_min_letters: int = 4
    min_segment_sec: float = 0.5
    silence_rms: float = 0.005
    saturation_rms: float = 0.5
    min_energy_variation: float = 0.05
    energy_window_sec: float = 0.1

    def __post_init__(self) -> None:
        if self.min_chars < 0:
            raise ValueError("min_chars must be >= 0")
        if self.max_char_run < 1 or self.max_word_run < 1:
            raise ValueError("repetition thresholds must be >= 1")
        if self.max_token_len < 2:
            raise ValueError("max_token_len must be >= 2")
        if not 0.0 < self.max_char_ratio <= 1.0:
            raise ValueError("max_char_ratio must be in (0, 1]")
        if self.silence_rms < 0 or self.saturation_rms <= self.silence_rms:
            raise ValueError("saturation_rms must be > silence_rms >= 0")


def _normalize_phrase(text: str) -> str:
    return _TRAILING_PUNCT.sub("", text.strip().casefold())


class TranscriptValidator:
    """
    Rejects recognizer artifacts before anything is translated.
    Text checks and signal checks are independent so either can be tuned alone.
    """

    def __init__(self, config: Optional[ValidatorConfig] = None) -> None:
        self.config = config or ValidatorConfig()
        self._boilerplate = frozenset(_normalize_phrase(p) for p in self.config.boilerplate)
        self._char_run = re.compile(r"(\S)\1{%d,}" % self.config.max_char_run)
        self._token_run = re.compile(
            r"(\S{2,%d}?)(?:\s*\1){%d,}" % (self.config.max_token_len, self.config.max_word_run),
            flags=re.IGNORECASE,
        )

    def reject_reason(self, text: str) -> Optional[str]:
        cfg = self.config
        t = (text or "").strip()
        if len(t) < cfg.min_chars:
            return "too_short"
        if _normalize_phrase(t) in self._boilerplate:
            return "boilerplate"
        if self._char_run.search(t):
            return "char_run"
        if self._has_word_run(t):
            return "word_run"
        if self._token_run.search(t):
            return "token_run"
        if self._dominant_letter_ratio(t) > cfg.max_char_ratio:
            return "char_ratio"
        return None

    def is_valid(self, text: str) -> bool:
        return self.reject_reason(text) is None

    def _has_word_run(self, text: str) -> bool:
        prev = None
        run = 0
        for raw in text.split():
            word = _WORD_EDGES.sub("", raw.casefold())
            if not word:
                continue
            if word == prev:
                run += 1
            else:
                prev = word
                run = 1
            if run > self.config.max_word_run:
                return True
        return False

    def _dominant_letter_ratio(self, text: str) -> float:
        letters = [c for c in text.casefold() if c.isalpha()]
        if len(letters) < self.config.ratio_min_letters:
            return 0.0
        _, top = Counter(letters).most_common(1)[0]
        return top / float(len(letters))

    def signal_reject_reason(self, segment: AudioSegment) -> Optional[SignalReject]:
        cfg = self.config
        if segment.duration_seconds < cfg.min_segment_sec or segment.samples.size == 0:
            return SignalReject.TOO_SHORT
        energy = rms(segment.samples)
        if energy < cfg.silence_rms:
            return SignalReject.TOO_QUIET
        if energy > cfg.saturation_rms:
            return SignalReject.TOO_LOUD
        variation = energy_variation(segment.samples, segment.sample_rate, cfg.energy_window_sec)
        if variation < cfg.min_energy_variation:
            return SignalReject.DIGITAL_ARTIFACT
        return None
