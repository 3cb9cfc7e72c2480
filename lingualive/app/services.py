from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from lingualive.app.config import app_paths, load_credential
from lingualive.app.history import HistoryStore
from lingualive.app.state import SessionManager
from lingualive.asr.fallback_recognizer import StreamingFallbackRecognizer
from lingualive.asr.faster_whisper_local import LocalWhisperBackend
from lingualive.asr.switch import BackendSwitch
from lingualive.audio.mic import SoundDeviceMicSource
from lingualive.errors import CaptureUnavailable
from lingualive.live.bus import DisplayBus
from lingualive.live.pipeline import LiveTranslatePipeline
from lingualive.live.scheduler import CaptureScheduler
from lingualive.nlp.translator.factory import build_provider_chain
from lingualive.nlp.translator.resolver import TranslationResolver
from lingualive.nlp.validator import TranscriptValidator, ValidatorConfig
from lingualive.tts.edge_sink import EdgeSpeechSink


@dataclass(frozen=True)
class LiveServices:
    session: SessionManager
    mic: SoundDeviceMicSource
    backend: BackendSwitch
    validator: TranscriptValidator
    resolver: TranslationResolver
    history: HistoryStore
    speech: EdgeSpeechSink
    display: DisplayBus
    pipeline: LiveTranslatePipeline
    scheduler: CaptureScheduler


def validator_config_from_args(args: Any) -> ValidatorConfig:
    return ValidatorConfig(
        min_chars=int(args.min_chars),
        max_char_run=int(args.max_char_run),
        max_word_run=int(args.max_word_run),
        max_token_len=int(args.max_token_len),
        max_char_ratio=float(args.max_char_ratio),
        min_segment_sec=float(args.min_segment_sec),
        silence_rms=float(args.silence_rms),
        saturation_rms=float(args.saturation_rms),
        min_energy_variation=float(args.min_energy_variation),
    )


def provider_settings_from_args(args: Any) -> dict[str, Any]:
    return {
        "provider_timeout": float(args.provider_timeout),
        "libretranslate_url": args.libretranslate_url,
        "libretranslate_api_key": getattr(args, "libretranslate_api_key", None),
        "mymemory_email": getattr(args, "mymemory_email", None),
        "offline_translator": bool(args.offline_translator),
        "argos_auto_install": bool(getattr(args, "argos_auto_install", True)),
    }


def build_live_services(
    args: Any,
    *,
    logger: Optional[logging.Logger] = None,
    on_fatal: Optional[Callable[[CaptureUnavailable], None]] = None,
) -> LiveServices:
    session = SessionManager(
        source_language=str(args.source_language),
        target_language=str(args.target_language),
    )
    mic = SoundDeviceMicSource(
        sample_rate=int(args.sr),
        channels=int(args.channels),
        device=args.device,
    )
    backend = BackendSwitch(
        local=LocalWhisperBackend(model_size=str(args.model)),
        fallback=StreamingFallbackRecognizer(language=session.snapshot().source_language, device=args.device),
        logger=logger,
    )
    validator = TranscriptValidator(validator_config_from_args(args))
    resolver = TranslationResolver(
        build_provider_chain(provider_settings_from_args(args), api_key=load_credential()),
        default_source=str(args.default_source),
        logger=logger,
    )
    history = HistoryStore(app_paths().history_path, limit=int(getattr(args, "history_limit", None) or 50))
    speech = EdgeSpeechSink()
    display = DisplayBus(maxsize=max(1, int(args.queue_maxsize)))
    pipeline = LiveTranslatePipeline(
        session=session,
        backend=backend,
        validator=validator,
        resolver=resolver,
        history=history,
        speech=speech,
        display=display,
        auto_speak=bool(args.auto_speak),
        logger=logger,
    )
    scheduler = CaptureScheduler(
        source=mic,
        session=session,
        backend=backend,
        pipeline=pipeline,
        segment_sec=min(8.0, max(4.0, float(args.segment_sec))),
        max_pending_transcripts=max(1, int(args.max_pending_transcripts)),
        on_fatal=on_fatal,
        logger=logger,
    )
    return LiveServices(
        session=session,
        mic=mic,
        backend=backend,
        validator=validator,
        resolver=resolver,
        history=history,
        speech=speech,
        display=display,
        pipeline=pipeline,
        scheduler=scheduler,
    )
