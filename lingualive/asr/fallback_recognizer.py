from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable, Optional, Tuple

from lingualive.contracts import AUTO, BackendKind, EventKind, RecognizerEvent

logger = logging.getLogger(__name__)

_LOCALES = {
    "auto": "en-US",
    "en": "en-US",
    "es": "es-ES",
    "fr": "fr-FR",
    "de": "de-DE",
    "it": "it-IT",
    "pt": "pt-BR",
    "ru": "ru-RU",
    "ja": "ja-JP",
    "ko": "ko-KR",
    "zh": "zh-CN",
    "ar": "ar-SA",
    "hi": "hi-IN",
}

ERR_NOT_ALLOWED = "not-allowed"
ERR_NO_SPEECH = "no-speech"
ERR_NETWORK = "network"
ERR_ABORTED = "aborted"


def recognizer_locale(language: Optional[str]) -> str:
    if not language:
        return _LOCALES[AUTO]
    return _LOCALES.get(language, language)


def parse_google_result(result: Any) -> Tuple[str, bool]:
    """
    Return (best transcript, is_final) from a show_all response.
    An empty transcript means nothing was recognized.
    """
    if not isinstance(result, dict):
        return "", True
    alternatives = result.get("alternative") or []
    if not alternatives:
        return "", True
    text = str(alternatives[0].get("transcript") or "").strip()
    return text, bool(result.get("final", True))


class StreamingFallbackRecognizer:
    """
    Continuous recognizer over the `speech_recognition` package.
    It owns its own microphone and publishes RecognizerEvent values onto
    `events`; whoever consumes the channel decides on restarts.
    """

    def __init__(
        self,
        *,
        language: Optional[str] = AUTO,
        phrase_time_limit: float = 8.0,
        pause_threshold: float = 0.8,
        sample_rate: int = 16000,
        device: Optional[int] = None,
        events: Optional["queue.Queue[RecognizerEvent]"] = None,
        recognizer_factory: Optional[Callable[[], Any]] = None,
        microphone_factory: Optional[Callable[[], Any]] = None,
    ) -> None:
        self.phrase_time_limit = float(phrase_time_limit)
        self.pause_threshold = float(pause_threshold)
        self.sample_rate = int(sample_rate)
        self.device = device
        self.events: "queue.Queue[RecognizerEvent]" = events if events is not None else queue.Queue()
        self._locale = recognizer_locale(language)
        self._recognizer_factory = recognizer_factory
        self._microphone_factory = microphone_factory
        self._stop = threading.Event()
        self._stop.set()
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def kind(self) -> BackendKind:
        return BackendKind.FALLBACK

    @property
    def locale(self) -> str:
        return self._locale

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._done.is_set()

    def set_language(self, language: Optional[str]) -> None:
        # picked up by the next recognition request
        self._locale = recognizer_locale(language)

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            previous = self._thread
            if previous is not None and previous is not threading.current_thread():
                previous.join(timeout=1.0)
            # fresh events per run so a late-exiting old loop cannot see the new run's state
            self._stop = threading.Event()
            self._done = threading.Event()
            self._thread = threading.Thread(
                target=self._listen_loop,
                args=(self._stop, self._done),
                name="lingualive-fallback-recognizer",
                daemon=True,
            )
            self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        with self._lock:
            self._stop.set()
            thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)

    def _publish(self, event: RecognizerEvent) -> None:
        self.events.put(event)

    def _make_recognizer(self, sr):
        if self._recognizer_factory is not None:
            return self._recognizer_factory()
        recognizer = sr.Recognizer()
        recognizer.pause_threshold = self.pause_threshold
        recognizer.dynamic_energy_threshold = True
        return recognizer

    def _make_microphone(self, sr):
        if self._microphone_factory is not None:
            return self._microphone_factory()
        return sr.Microphone(device_index=self.device, sample_rate=self.sample_rate)

    def recognize_phrase(self, recognizer: Any, audio: Any) -> None:
        import speech_recognition as sr

        try:
            result = recognizer.recognize_google(audio, language=self._locale, show_all=True)
        except sr.UnknownValueError:
            self._publish(RecognizerEvent(EventKind.ERROR, code=ERR_NO_SPEECH))
            return
        except sr.RequestError as e:
            logger.warning("fallback_request_failed", extra={"error": str(e)})
            self._publish(RecognizerEvent(EventKind.ERROR, code=ERR_NETWORK))
            return

        text, is_final = parse_google_result(result)
        if not text:
            self._publish(RecognizerEvent(EventKind.ERROR, code=ERR_NO_SPEECH))
            return
        kind = EventKind.FINAL if is_final else EventKind.INTERIM
        self._publish(RecognizerEvent(kind, text=text))

    def _listen_loop(self, stop: threading.Event, done: threading.Event) -> None:
        import speech_recognition as sr

        try:
            recognizer = self._make_recognizer(sr)
            try:
                microphone = self._make_microphone(sr)
                source = microphone.__enter__()
            except (OSError, AttributeError) as e:
                # AttributeError: PyAudio missing; OSError: no usable input device
                logger.error("fallback_microphone_unavailable", extra={"error": str(e)})
                self._publish(RecognizerEvent(EventKind.ERROR, text=str(e), code=ERR_NOT_ALLOWED))
                return
            try:
                recognizer.adjust_for_ambient_noise(source, duration=0.5)
                while not stop.is_set():
                    try:
                        audio = recognizer.listen(
                            source,
                            timeout=1.0,
                            phrase_time_limit=self.phrase_time_limit,
                        )
                    except sr.WaitTimeoutError:
                        continue
                    if stop.is_set():
                        break
                    self.recognize_phrase(recognizer, audio)
            finally:
                microphone.__exit__(None, None, None)
        except Exception as e:
            logger.exception("fallback_recognizer_crashed", extra={"error": str(e)})
            self._publish(RecognizerEvent(EventKind.ERROR, code=ERR_ABORTED))
        finally:
            done.set()
            if not stop.is_set():
                self._publish(RecognizerEvent(EventKind.END))
