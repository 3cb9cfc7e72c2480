from __future__ import annotations

import time
from typing import Any, Callable

import numpy as np
import speech_recognition as sr

from lingualive.app.history import HistoryStore
from lingualive.app.state import SessionManager
from lingualive.asr.fallback_recognizer import StreamingFallbackRecognizer
from lingualive.asr.faster_whisper_local import LocalWhisperBackend
from lingualive.asr.switch import BackendSwitch
from lingualive.contracts import BackendKind
from lingualive.live.bus import DisplayBus, LineKind
from lingualive.live.pipeline import LiveTranslatePipeline
from lingualive.live.scheduler import CaptureScheduler
from lingualive.nlp.translator.google_cloud import GoogleCloudTranslator
from lingualive.nlp.translator.mymemory import MyMemoryTranslator
from lingualive.nlp.translator.resolver import TranslationResolver
from lingualive.nlp.validator import TranscriptValidator


class _Response:
    ok = True
    status_code = 200

    def json(self) -> Any:
        return {"responseStatus": 200, "responseData": {"translatedText": "buenos días"}}


class _Session:
    def __init__(self) -> None:
        self.params: list[dict[str, Any]] = []

    def get(self, url: str, params: dict[str, Any], timeout: float) -> _Response:
        self.params.append(params)
        return _Response()

    def post(self, *args: Any, **kwargs: Any) -> _Response:
        raise AssertionError("no POST provider should be reached")


class _OnePhraseRecognizer:
    def __init__(self) -> None:
        self.sent = False

    def adjust_for_ambient_noise(self, source: Any, duration: float = 1.0) -> None:
        return None

    def listen(self, source: Any, timeout: float | None = None, phrase_time_limit: float | None = None) -> str:
        if not self.sent:
            self.sent = True
            return "audio"
        time.sleep(0.01)
        raise sr.WaitTimeoutError("listening timed out")

    def recognize_google(self, audio: Any, language: str = "en-US", show_all: bool = False) -> Any:
        return {"alternative": [{"transcript": "good morning", "confidence": 0.93}], "final": True}


class _Mic:
    def __enter__(self) -> "_Mic":
        return self

    def __exit__(self, *exc: Any) -> None:
        return None


class _UnusedSource:
    sample_rate = 16000

    def open(self) -> None:
        raise AssertionError("fallback mode must not open the segment source")

    def read(self, frames: int) -> np.ndarray:
        raise AssertionError("fallback mode must not read segments")

    def close(self) -> None:
        return None


class _Speech:
    def __init__(self) -> None:
        self.spoken: list[tuple[str, str]] = []

    def speak(self, text: str, language: str) -> None:
        self.spoken.append((text, language))


def _wait_until(predicate: Callable[[], bool], timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_local_timeout_falls_back_and_translates_via_secondary(tmp_path) -> None:
    def slow_model(size: str, device: str, compute: str):
        time.sleep(1.0)
        return object()

    session = SessionManager(source_language="en", target_language="es")
    backend = BackendSwitch(
        local=LocalWhisperBackend(model_factory=slow_model),
        fallback=StreamingFallbackRecognizer(
            language="en",
            recognizer_factory=_OnePhraseRecognizer,
            microphone_factory=_Mic,
        ),
    )
    assert backend.select(timeout=0.05) == BackendKind.FALLBACK
    assert "timed out" in (backend.demotion_reason or "")

    http = _Session()
    resolver = TranslationResolver(
        [GoogleCloudTranslator(None, session=http), MyMemoryTranslator(session=http)]
    )
    history = HistoryStore(tmp_path / "history.json")
    display = DisplayBus()
    speech = _Speech()
    pipeline = LiveTranslatePipeline(
        session=session,
        backend=backend,
        validator=TranscriptValidator(),
        resolver=resolver,
        history=history,
        speech=speech,
        display=display,
        auto_speak=True,
    )
    scheduler = CaptureScheduler(
        source=_UnusedSource(),
        session=session,
        backend=backend,
        pipeline=pipeline,
        restart_delay=0.01,
    )

    scheduler.start()
    try:
        assert _wait_until(lambda: bool(history.load()))
    finally:
        scheduler.close()

    entry = history.load()[0]
    assert (entry.original, entry.translation) == ("good morning", "buenos días")
    assert entry.provider == "mymemory"
    assert (entry.source_language, entry.target_language) == ("en", "es")
    assert http.params[0]["langpair"] == "en|es"
    assert speech.spoken == [("buenos días", "es")]

    lines = []
    while (line := display.pop()) is not None:
        lines.append(line)
    assert [(line.kind, line.text) for line in lines] == [
        (LineKind.ORIGINAL, "good morning"),
        (LineKind.TRANSLATION, "buenos días"),
    ]
