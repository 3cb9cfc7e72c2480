from __future__ import annotations

import logging
import threading
from functools import partial
from typing import Any, Callable, Optional, Sequence, Tuple

import numpy as np

from lingualive.asr.base import SegmentTranscriber
from lingualive.audio.signal import WHISPER_SAMPLE_RATE, resample, to_mono
from lingualive.contracts import AUTO, AudioSegment, BackendKind, Transcript
from lingualive.errors import BackendLoadFailure, BackendUnavailable, SegmentDecodeError
from lingualive.fallback import Attempt, first_accepted

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]

# Tried in order until one loads.
DEFAULT_TIERS: Tuple[Tuple[str, str], ...] = (
    ("cuda", "float16"),
    ("cpu", "int8"),
)


# Runtime errors that mean the device itself is gone, not just one bad segment.
DEVICE_FAILURE_MARKERS: Tuple[str, ...] = (
    "cuda",
    "cublas",
    "cudnn",
    "out of memory",
    "device-side",
)


def is_device_failure(error: BaseException) -> bool:
    text = str(error).lower()
    return any(marker in text for marker in DEVICE_FAILURE_MARKERS)


def default_load_timeout(model_size: str) -> float:
    size = str(model_size).lower()
    if "medium" in size or "large" in size:
        return 45.0
    return 30.0


def _no_progress(_percent: int, _message: str) -> None:
    return None


class LocalWhisperBackend(SegmentTranscriber):
    def __init__(
        self,
        *,
        model_size: str = "base",
        tiers: Sequence[Tuple[str, str]] = DEFAULT_TIERS,
        max_seconds: float = 30.0,
        beam_size: int = 1,
        max_consecutive_failures: int = 3,
        model_factory: Optional[Callable[[str, str, str], Any]] = None,
    ) -> None:
        if not tiers:
            raise ValueError("at least one acceleration tier is required")
        if max_seconds <= 0:
            raise ValueError("max_seconds must be > 0")
        if max_consecutive_failures < 1:
            raise ValueError("max_consecutive_failures must be >= 1")
        self.model_size = model_size
        self.tiers = tuple(tiers)
        self.max_seconds = float(max_seconds)
        self.beam_size = int(beam_size)
        self.max_consecutive_failures = int(max_consecutive_failures)
        self.consecutive_failures = 0
        self.device: Optional[str] = None
        self.compute_type: Optional[str] = None
        self._model_factory = model_factory
        self._model = None

    @property
    def kind(self) -> BackendKind:
        return BackendKind.LOCAL

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    def _create_model(self, device: str, compute_type: str):
        if self._model_factory is not None:
            return self._model_factory(self.model_size, device, compute_type)
        from faster_whisper import WhisperModel

        return WhisperModel(self.model_size, device=device, compute_type=compute_type)

    def _load_tiers(self, progress: ProgressCallback):
        attempts = [
            Attempt(f"{device}/{compute_type}", partial(self._create_model, device, compute_type))
            for device, compute_type in self.tiers
        ]
        errors: list[str] = []

        def _tier_failed(tier: str, e: Exception) -> None:
            errors.append(f"{tier}: {e}")
            logger.warning("model_tier_failed", extra={"tier": tier, "error": str(e)})

        progress(15, f"Loading Whisper model '{self.model_size}'...")
        picked = first_accepted(attempts, on_failure=_tier_failed)
        if picked is None:
            raise BackendLoadFailure("no acceleration tier could load the model (" + "; ".join(errors) + ")")
        tier, model = picked
        progress(90, f"Model loaded on {tier}")
        device, compute_type = tier.split("/", 1)
        return model, device, compute_type

    def load(self, progress: Optional[ProgressCallback] = None, timeout: Optional[float] = None) -> None:
        """
        One-time load on a helper thread. Raises BackendLoadFailure on any load
        error or when the hard timeout expires; a late-finishing load is discarded.
        """
        if self._model is not None:
            return
        report = progress or _no_progress
        limit = default_load_timeout(self.model_size) if timeout is None else float(timeout)
        outcome: dict[str, Any] = {}
        done = threading.Event()

        def _worker() -> None:
            try:
                outcome["value"] = self._load_tiers(report)
            except Exception as e:
                outcome["error"] = e
            finally:
                done.set()

        report(0, "Initializing local speech model...")
        threading.Thread(target=_worker, name="lingualive-model-load", daemon=True).start()

        if not done.wait(limit):
            raise BackendLoadFailure(f"model load timed out after {limit:.0f}s")
        if "error" in outcome:
            err = outcome["error"]
            if isinstance(err, BackendLoadFailure):
                raise err
            raise BackendLoadFailure(f"model load failed: {err}") from err

        self._model, self.device, self.compute_type = outcome["value"]
        report(100, "Model ready")

    def transcribe(self, segment: AudioSegment, language: Optional[str]) -> Transcript:
        if self._model is None:
            raise BackendUnavailable("local model is not loaded")

        samples = to_mono(np.asarray(segment.samples, dtype=np.float32))
        if samples.size == 0 or not bool(np.all(np.isfinite(samples))):
            raise SegmentDecodeError("segment has no decodable samples")

        lang = None if language in (None, AUTO) else language
        try:
            audio = resample(samples, segment.sample_rate)
            # model pads anything shorter than its 30s window
            audio = audio[: int(self.max_seconds * WHISPER_SAMPLE_RATE)]
            segments, info = self._model.transcribe(
                audio,
                language=lang,
                task="transcribe",
                beam_size=self.beam_size,
                best_of=1,
                temperature=0.0,
                condition_on_previous_text=False,
                vad_filter=False,
                without_timestamps=True,
            )
            text = " ".join((s.text or "").strip() for s in segments).strip()
        except Exception as e:
            self._record_failure(e)
            raise SegmentDecodeError(f"transcription failed: {e}") from e

        self.consecutive_failures = 0
        detected = getattr(info, "language", None) if lang is None else None
        return Transcript(text=text, detected_language=detected, backend=BackendKind.LOCAL)

    def _record_failure(self, error: Exception) -> None:
        """Escalate to BackendUnavailable when the model, not the segment, is broken."""
        self.consecutive_failures += 1
        device_lost = is_device_failure(error)
        if not device_lost and self.consecutive_failures < self.max_consecutive_failures:
            return
        reason = "device failure" if device_lost else f"{self.consecutive_failures} consecutive decode failures"
        logger.error(
            "local_model_unusable",
            extra={"reason": reason, "error": str(error), "device": self.device},
        )
        # release the model (and its GPU memory); later calls report unavailable
        self._model = None
        raise BackendUnavailable(f"local model unusable ({reason}): {error}") from error
