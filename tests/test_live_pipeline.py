from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import numpy as np
import pytest

from lingualive.app.history import HistoryStore
from lingualive.app.state import SessionManager
from lingualive.asr.fallback_recognizer import StreamingFallbackRecognizer
from lingualive.asr.faster_whisper_local import LocalWhisperBackend
from lingualive.asr.switch import BackendSwitch
from lingualive.contracts import PASSTHROUGH, AudioSegment, BackendKind, Transcript, TranslationRequest
from lingualive.live.bus import DisplayBus, LineKind
from lingualive.live.pipeline import LiveTranslatePipeline
from lingualive.nlp.translator.base import Translator
from lingualive.nlp.translator.resolver import TranslationResolver
from lingualive.nlp.validator import TranscriptValidator


class _Model:
    def __init__(self, text: str = "good morning", language: str = "en", error: Exception | None = None) -> None:
        self.text = text
        self.language = language
        self.error = error
        self.calls = 0

    def transcribe(self, audio: np.ndarray, **kwargs: Any):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return [SimpleNamespace(text=self.text)], SimpleNamespace(language=self.language)


class _Provider(Translator):
    def __init__(self, reply: str = "buenos días") -> None:
        self.reply = reply
        self.requests: list[TranslationRequest] = []

    @property
    def name(self) -> str:
        return "secondary"

    def translate(self, req: TranslationRequest) -> str:
        self.requests.append(req)
        return self.reply


class _Speech:
    def __init__(self) -> None:
        self.spoken: list[tuple[str, str]] = []

    def speak(self, text: str, language: str) -> None:
        self.spoken.append((text, language))


def _speech_like(seconds: float = 2.0, sr: int = 16000) -> np.ndarray:
    rng = np.random.default_rng(0)
    n = int(seconds * sr)
    t = np.arange(n) / sr
    return (rng.normal(0.0, 0.05, n) * (0.2 + np.abs(np.sin(2 * np.pi * 1.3 * t)))).astype(np.float32)


def _segment(samples: np.ndarray, sr: int = 16000) -> AudioSegment:
    return AudioSegment(samples=samples, sample_rate=sr, duration_seconds=samples.size / sr)


def _build(tmp_path, model: _Model, *, source: str = "auto", target: str = "es", auto_speak: bool = True):
    session = SessionManager(source_language=source, target_language=target)
    backend = BackendSwitch(
        local=LocalWhisperBackend(model_factory=lambda *a: model),
        fallback=StreamingFallbackRecognizer(),
    )
    backend.select(timeout=2.0)
    provider = _Provider()
    speech = _Speech()
    pipeline = LiveTranslatePipeline(
        session=session,
        backend=backend,
        validator=TranscriptValidator(),
        resolver=TranslationResolver([provider]),
        history=HistoryStore(tmp_path / "history.json"),
        speech=speech,
        display=DisplayBus(maxsize=50),
        auto_speak=auto_speak,
    )
    return pipeline, provider, speech


def _lines(bus: DisplayBus) -> list:
    out = []
    while (line := bus.pop()) is not None:
        out.append(line)
    return out


def test_segment_flows_to_history_display_and_speech(tmp_path) -> None:
    model = _Model(text="good morning", language="en")
    pipeline, provider, speech = _build(tmp_path, model)

    outcome = pipeline.process_segment(_segment(_speech_like()))

    assert outcome is not None
    assert outcome.text == "buenos días"
    assert outcome.provider_used == "secondary"
    assert provider.requests[0].source_lang == "en"
    assert pipeline.session.snapshot().detected_language == "en"
    assert speech.spoken == [("buenos días", "es")]

    entries = pipeline.history.load()
    assert [(e.original, e.translation, e.provider) for e in entries] == [("good morning", "buenos días", "secondary")]

    kinds = [line.kind for line in _lines(pipeline.display)]
    assert kinds == [LineKind.ORIGINAL, LineKind.TRANSLATION]


def test_silent_segment_never_reaches_transcriber(tmp_path) -> None:
    model = _Model()
    pipeline, provider, _speech = _build(tmp_path, model)

    assert pipeline.process_segment(_segment(np.zeros(32000, dtype=np.float32))) is None
    assert model.calls == 0
    assert provider.requests == []
    assert pipeline.history.load() == []


@pytest.mark.parametrize("text", ["[Music]", "SSSSSSSS", "thank you"])
def test_hallucinated_transcripts_are_dropped(tmp_path, text: str) -> None:
    model = _Model(text=text)
    pipeline, provider, _speech = _build(tmp_path, model)

    assert pipeline.process_segment(_segment(_speech_like())) is None
    assert model.calls == 1
    assert provider.requests == []
    assert _lines(pipeline.display) == []


def test_decode_error_is_absorbed(tmp_path) -> None:
    model = _Model(error=RuntimeError("bad audio"))
    pipeline, provider, _speech = _build(tmp_path, model)

    assert pipeline.process_segment(_segment(_speech_like())) is None
    assert provider.requests == []
    assert pipeline.backend.kind == BackendKind.LOCAL


def test_unloaded_model_demotes_to_fallback(tmp_path) -> None:
    pipeline, _provider, _speech = _build(tmp_path, _Model())
    pipeline.backend.local._model = None

    assert pipeline.process_segment(_segment(_speech_like())) is None
    assert pipeline.backend.kind == BackendKind.FALLBACK
    lines = _lines(pipeline.display)
    assert [line.kind for line in lines] == [LineKind.STATUS]


def test_stale_result_is_discarded(tmp_path) -> None:
    model = _Model()
    pipeline, provider, _speech = _build(tmp_path, model)

    assert pipeline.process_segment(_segment(_speech_like()), is_current=lambda: False) is None
    assert model.calls == 1
    assert provider.requests == []


def test_same_language_is_not_spoken(tmp_path) -> None:
    pipeline, provider, speech = _build(tmp_path, _Model(), source="es", target="es")
    outcome = pipeline.process_transcript(Transcript("buenos días", None, BackendKind.FALLBACK))

    assert outcome is not None
    assert outcome.provider_used == PASSTHROUGH
    assert provider.requests == []
    assert speech.spoken == []
    assert pipeline.history.load()[0].provider == PASSTHROUGH


def test_interim_transcript_only_updates_display(tmp_path) -> None:
    pipeline, provider, _speech = _build(tmp_path, _Model())
    result = pipeline.process_transcript(Transcript("good mor", None, BackendKind.FALLBACK, is_final=False))

    assert result is None
    assert provider.requests == []
    lines = _lines(pipeline.display)
    assert [(line.kind, line.text) for line in lines] == [(LineKind.INTERIM, "good mor")]


def test_gpu_failure_during_transcription_demotes(tmp_path) -> None:
    model = _Model(error=RuntimeError("CUDA error: an illegal memory access was encountered"))
    pipeline, provider, _speech = _build(tmp_path, model)

    assert pipeline.process_segment(_segment(_speech_like())) is None
    assert pipeline.backend.kind == BackendKind.FALLBACK
    assert "device failure" in (pipeline.backend.demotion_reason or "")
    assert [line.kind for line in _lines(pipeline.display)] == [LineKind.STATUS]

    # later segments closed before the handover are simply skipped
    assert pipeline.process_segment(_segment(_speech_like())) is None
    assert model.calls == 1
    assert provider.requests == []


def test_repeated_decode_failures_demote(tmp_path) -> None:
    model = _Model(error=RuntimeError("bad audio"))
    pipeline, _provider, _speech = _build(tmp_path, model)

    for _ in range(3):
        pipeline.process_segment(_segment(_speech_like()))
    assert pipeline.backend.kind == BackendKind.FALLBACK
    assert model.calls == 3
