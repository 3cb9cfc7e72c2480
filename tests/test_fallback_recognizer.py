from __future__ import annotations

import queue
import time
from typing import Any

import speech_recognition as sr

from lingualive.asr.fallback_recognizer import (
    ERR_NETWORK,
    ERR_NO_SPEECH,
    ERR_NOT_ALLOWED,
    StreamingFallbackRecognizer,
    parse_google_result,
    recognizer_locale,
)
from lingualive.contracts import EventKind, RecognizerEvent


class _ScriptedRecognizer:
    """Hands out one canned phrase, then only listen timeouts."""

    def __init__(self, result: Any = None, error: Exception | None = None, phrases: int = 1) -> None:
        self.result = result
        self.error = error
        self.phrases = phrases
        self.languages: list[str] = []

    def adjust_for_ambient_noise(self, source: Any, duration: float = 1.0) -> None:
        return None

    def listen(self, source: Any, timeout: float | None = None, phrase_time_limit: float | None = None) -> str:
        if self.phrases > 0:
            self.phrases -= 1
            return "audio"
        time.sleep(0.01)
        raise sr.WaitTimeoutError("listening timed out")

    def recognize_google(self, audio: Any, language: str = "en-US", show_all: bool = False) -> Any:
        self.languages.append(language)
        if self.error is not None:
            raise self.error
        return self.result


class _FakeMicrophone:
    def __enter__(self) -> "_FakeMicrophone":
        return self

    def __exit__(self, *exc: Any) -> None:
        return None


def _next_event(events: "queue.Queue[RecognizerEvent]", timeout: float = 3.0) -> RecognizerEvent:
    return events.get(timeout=timeout)


def _final(text: str) -> dict[str, Any]:
    return {"alternative": [{"transcript": text, "confidence": 0.9}], "final": True}


def test_recognizer_locale() -> None:
    assert recognizer_locale("auto") == "en-US"
    assert recognizer_locale(None) == "en-US"
    assert recognizer_locale("ja") == "ja-JP"
    assert recognizer_locale("sv") == "sv"


def test_parse_google_result() -> None:
    assert parse_google_result(_final(" good morning ")) == ("good morning", True)
    assert parse_google_result({"alternative": [{"transcript": "good"}], "final": False}) == ("good", False)
    assert parse_google_result([]) == ("", True)
    assert parse_google_result({"alternative": []}) == ("", True)


def test_recognize_phrase_publishes_final_and_interim() -> None:
    rec = StreamingFallbackRecognizer(language="es")
    rec.recognize_phrase(_ScriptedRecognizer(result=_final("hola")), "audio")
    rec.recognize_phrase(
        _ScriptedRecognizer(result={"alternative": [{"transcript": "ho"}], "final": False}),
        "audio",
    )
    assert rec.events.get_nowait() == RecognizerEvent(EventKind.FINAL, text="hola")
    assert rec.events.get_nowait() == RecognizerEvent(EventKind.INTERIM, text="ho")


def test_recognize_phrase_maps_errors_to_codes() -> None:
    rec = StreamingFallbackRecognizer()
    rec.recognize_phrase(_ScriptedRecognizer(error=sr.UnknownValueError()), "audio")
    rec.recognize_phrase(_ScriptedRecognizer(error=sr.RequestError("connection reset")), "audio")
    rec.recognize_phrase(_ScriptedRecognizer(result=[]), "audio")
    codes = [rec.events.get_nowait().code for _ in range(3)]
    assert codes == [ERR_NO_SPEECH, ERR_NETWORK, ERR_NO_SPEECH]


def test_language_change_applies_to_next_request() -> None:
    scripted = _ScriptedRecognizer(result=_final("hi"))
    rec = StreamingFallbackRecognizer(language="en")
    rec.recognize_phrase(scripted, "audio")
    rec.set_language("fr")
    rec.recognize_phrase(scripted, "audio")
    assert scripted.languages == ["en-US", "fr-FR"]


def test_listen_loop_publishes_phrases_until_stopped() -> None:
    rec = StreamingFallbackRecognizer(
        recognizer_factory=lambda: _ScriptedRecognizer(result=_final("good morning")),
        microphone_factory=_FakeMicrophone,
    )
    rec.start()
    try:
        event = _next_event(rec.events)
        assert event == RecognizerEvent(EventKind.FINAL, text="good morning")
        assert rec.running
    finally:
        rec.stop()
    assert not rec.running


def test_missing_microphone_reports_not_allowed_then_end() -> None:
    def no_mic():
        raise OSError("No Default Input Device Available")

    rec = StreamingFallbackRecognizer(
        recognizer_factory=lambda: _ScriptedRecognizer(),
        microphone_factory=no_mic,
    )
    rec.start()
    first = _next_event(rec.events)
    second = _next_event(rec.events)
    rec.stop()
    assert first == RecognizerEvent(EventKind.ERROR, text="No Default Input Device Available", code=ERR_NOT_ALLOWED)
    assert second.kind == EventKind.END
