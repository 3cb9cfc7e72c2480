from __future__ import annotations

from typing import Optional

import numpy as np

from lingualive.errors import CaptureUnavailable


class SoundDeviceMicSource:
    """
    Live microphone source using the `sounddevice` package (PortAudio).
    Delivers mono float32 blocks; multi-channel input is averaged down.
    """

    def __init__(
        self,
        *,
        sample_rate: int = 16000,
        channels: int = 1,
        device: Optional[int] = None,
    ) -> None:
        if sample_rate <= 0:
            raise ValueError("sample_rate must be > 0")
        if channels not in (1, 2):
            raise ValueError("channels must be 1 or 2 (for now)")

        self.sample_rate = int(sample_rate)
        self.channels = int(channels)
        self.device = device
        self._stream = None

    @staticmethod
    def list_devices() -> str:
        try:
            import sounddevice as sd
        except ImportError as e:
            raise CaptureUnavailable(
                "sounddevice is not installed. Install with: python -m pip install sounddevice"
            ) from e
        return str(sd.query_devices())

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    def open(self) -> None:
        if self._stream is not None:
            return
        try:
            import sounddevice as sd
        except ImportError as e:
            raise CaptureUnavailable(
                "sounddevice is not installed. Install with: python -m pip install sounddevice"
            ) from e

        try:
            stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="float32",
                device=self.device,
                blocksize=0,  # let PortAudio choose
            )
            stream.start()
        except Exception as e:
            raise CaptureUnavailable(
                "Failed to open microphone stream. "
                "Try --list-devices and select a device id with --device."
            ) from e
        self._stream = stream

    def read(self, frames: int) -> np.ndarray:
        if self._stream is None:
            raise CaptureUnavailable("microphone stream is not open")
        try:
            data, _overflowed = self._stream.read(max(1, int(frames)))
        except Exception as e:
            raise CaptureUnavailable("microphone stream stopped delivering audio") from e
        # overflow only means PortAudio dropped frames; keep going
        block = np.asarray(data, dtype=np.float32)
        if block.ndim == 2:
            block = block.mean(axis=1) if block.shape[1] > 1 else block[:, 0]
        return block

    def close(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()
