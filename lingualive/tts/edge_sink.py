from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import threading
from typing import Optional

from lingualive.errors import SynthesisFailure

logger = logging.getLogger(__name__)

EDGE_VOICES = {
    "en": "en-US-GuyNeural",
    "es": "es-ES-AlvaroNeural",
    "fr": "fr-FR-HenriNeural",
    "de": "de-DE-ConradNeural",
    "it": "it-IT-DiegoNeural",
    "pt": "pt-BR-AntonioNeural",
    "ru": "ru-RU-DmitryNeural",
    "ja": "ja-JP-KeitaNeural",
    "ko": "ko-KR-InJoonNeural",
    "zh": "zh-CN-YunxiNeural",
    "ar": "ar-SA-HamedNeural",
    "hi": "hi-IN-MadhurNeural",
    "ro": "ro-RO-AlinaNeural",
}


def voice_for(language: str) -> str:
    return EDGE_VOICES.get((language or "").split("-")[0].lower(), EDGE_VOICES["en"])


async def _edge_synthesize(text: str, voice: str, out_path: str, rate: str, volume: str) -> None:
    import edge_tts

    communicate = edge_tts.Communicate(text, voice, rate=rate, volume=volume)
    await communicate.save(out_path)


class EdgeSpeechSink:
    """
    Fire-and-forget speech output. A new speak() cancels whatever is playing.
    Failures are logged and never raised to the caller.
    """

    def __init__(self, *, rate_pct: int = -10, volume_pct: int = -20) -> None:
        self.rate = f"{int(rate_pct):+d}%"
        self.volume = f"{int(volume_pct):+d}%"
        self._generation = 0
        self._lock = threading.Lock()

    def speak(self, text: str, language: str) -> None:
        text = (text or "").strip()
        if not text:
            return
        with self._lock:
            self._generation += 1
            generation = self._generation
        self.cancel_playback()
        threading.Thread(
            target=self._run,
            args=(text, language, generation),
            name="lingualive-tts",
            daemon=True,
        ).start()

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1
        self.cancel_playback()

    def cancel_playback(self) -> None:
        try:
            import sounddevice as sd

            sd.stop()
        except Exception as e:
            logger.debug("tts_stop_failed", extra={"error": str(e)})

    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def _run(self, text: str, language: str, generation: int) -> None:
        try:
            self._synthesize_and_play(text, language, generation)
        except Exception as e:
            logger.warning("synthesis_failed", extra={"error": str(e), "language": language})

    def _synthesize_and_play(self, text: str, language: str, generation: int) -> None:
        fd, tmp_path = tempfile.mkstemp(suffix=".mp3", prefix="lingualive_tts_")
        os.close(fd)
        try:
            try:
                asyncio.run(_edge_synthesize(text, voice_for(language), tmp_path, self.rate, self.volume))
            except Exception as e:
                raise SynthesisFailure(f"edge-tts synthesis failed: {e}") from e
            if not self._is_current(generation):
                return

            import sounddevice as sd
            import soundfile as sf

            data, sr = sf.read(tmp_path, dtype="float32")
            if not self._is_current(generation):
                return
            sd.play(data, sr)
            sd.wait()
        finally:
            try:
                os.remove(tmp_path)
            except OSError:
                pass
