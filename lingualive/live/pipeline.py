from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol

from lingualive.app.history import HistoryEntry, HistoryStore
from lingualive.app.state import SessionManager
from lingualive.asr.switch import BackendSwitch
from lingualive.contracts import AudioSegment, BackendKind, Transcript, TranslationOutcome
from lingualive.errors import BackendUnavailable, SegmentDecodeError
from lingualive.live.bus import DisplayBus, DisplayLine, LineKind
from lingualive.nlp.translator.resolver import TranslationResolver
from lingualive.nlp.validator import TranscriptValidator


class SpeechSink(Protocol):
    def speak(self, text: str, language: str) -> None:
        ...


def _always_current() -> bool:
    return True


class LiveTranslatePipeline:
    """
    Everything downstream of capture: transcribe -> validate -> translate,
    then history, display and speech. Per-segment failures end here.
    """

    def __init__(
        self,
        *,
        session: SessionManager,
        backend: BackendSwitch,
        validator: TranscriptValidator,
        resolver: TranslationResolver,
        history: Optional[HistoryStore] = None,
        speech: Optional[SpeechSink] = None,
        display: Optional[DisplayBus] = None,
        auto_speak: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.session = session
        self.backend = backend
        self.validator = validator
        self.resolver = resolver
        self.history = history
        self.speech = speech
        self.display = display
        self.auto_speak = auto_speak
        self.logger = logger or logging.getLogger(__name__)

    def _show(self, kind: LineKind, text: str, **kw) -> None:
        if self.display is not None:
            self.display.push(DisplayLine(kind=kind, text=text, **kw))

    def process_segment(
        self,
        segment: AudioSegment,
        is_current: Callable[[], bool] = _always_current,
    ) -> Optional[TranslationOutcome]:
        reason = self.validator.signal_reject_reason(segment)
        if reason is not None:
            self.logger.debug(
                "segment_rejected",
                extra={"reason": reason.value, "t0": round(segment.start_time, 2)},
            )
            return None

        local = self.backend.local
        if self.backend.kind != BackendKind.LOCAL or local is None:
            # closed just before a demotion; the fallback recognizer owns input now
            return None

        language = self.session.snapshot().source_language
        try:
            transcript = local.transcribe(segment, language)
        except BackendUnavailable as e:
            if self.backend.demote(str(e)):
                self._show(LineKind.STATUS, "Local model unavailable - switched to fallback recognizer")
            return None
        except SegmentDecodeError as e:
            self.logger.warning(
                "segment_decode_failed",
                extra={"error": str(e), "t0": round(segment.start_time, 2)},
            )
            return None

        if not is_current():
            self.logger.info("segment_result_discarded", extra={"t0": round(segment.start_time, 2)})
            return None
        return self.process_transcript(transcript)

    def process_transcript(self, transcript: Transcript) -> Optional[TranslationOutcome]:
        text = (transcript.text or "").strip()
        if not transcript.is_final:
            if text:
                self._show(LineKind.INTERIM, text)
            return None

        reason = self.validator.reject_reason(text)
        if reason is not None:
            self.logger.debug("transcript_rejected", extra={"reason": reason, "chars": len(text)})
            return None

        if transcript.detected_language:
            self.session.set_detected_language(transcript.detected_language)
        snap = self.session.snapshot()
        self._show(LineKind.ORIGINAL, text, language=snap.effective_source)

        outcome = self.resolver.translate(
            text,
            snap.source_language,
            snap.target_language,
            detected_language=snap.detected_language,
        )
        self.logger.info(
            "translate_done",
            extra={
                "provider": outcome.provider_used,
                "source": outcome.source_language,
                "target": outcome.target_language,
                "backend": transcript.backend.value,
                "chars": len(text),
            },
        )

        if self.history is not None:
            try:
                self.history.append(HistoryEntry.from_outcome(text, outcome))
            except (OSError, ValueError) as e:
                self.logger.warning("history_write_failed", extra={"error": str(e)})

        self._show(
            LineKind.TRANSLATION,
            outcome.text,
            language=outcome.target_language,
            provider=outcome.provider_used,
        )
        if self.auto_speak and self.speech is not None and not outcome.is_passthrough:
            self.speech.speak(outcome.text, outcome.target_language)
        return outcome
