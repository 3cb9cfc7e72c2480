from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Optional, Protocol, Tuple, Union

import numpy as np

from lingualive.app.state import SessionManager
from lingualive.asr.fallback_recognizer import ERR_NO_SPEECH, ERR_NOT_ALLOWED
from lingualive.asr.switch import BackendSwitch
from lingualive.contracts import AudioSegment, BackendKind, EventKind, RecognizerEvent, Transcript
from lingualive.errors import CaptureUnavailable
from lingualive.live.bus import put_drop_oldest
from lingualive.live.pipeline import LiveTranslatePipeline


class AudioSource(Protocol):
    sample_rate: int

    def open(self) -> None:
        ...

    def read(self, frames: int) -> np.ndarray:
        ...

    def close(self) -> None:
        ...


WorkItem = Tuple[int, Union[AudioSegment, Transcript]]


class CaptureScheduler:
    """
    Turns the live input into a stream of work for one pipeline worker.

    LOCAL mode: read fixed-length segments from the audio source; each closed
    segment is handed off without waiting and the next window opens at once.
    Only the newest unprocessed segment is kept.
    FALLBACK mode: run the streaming recognizer and consume its event channel.
    Final transcripts wait in a bounded queue; when it is full the oldest one
    is dropped so the console stays close to live speech.

    Capture never waits on the worker. stop() halts input synchronously and
    invalidates anything still in flight.
    """

    def __init__(
        self,
        *,
        source: AudioSource,
        session: SessionManager,
        backend: BackendSwitch,
        pipeline: LiveTranslatePipeline,
        segment_sec: float = 5.0,
        block_sec: float = 0.1,
        restart_delay: float = 0.1,
        max_pending_transcripts: int = 20,
        on_fatal: Optional[Callable[[CaptureUnavailable], None]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if segment_sec <= 0:
            raise ValueError("segment_sec must be > 0")
        if block_sec <= 0:
            raise ValueError("block_sec must be > 0")
        if max_pending_transcripts < 1:
            raise ValueError("max_pending_transcripts must be >= 1")
        self.source = source
        self.session = session
        self.backend = backend
        self.pipeline = pipeline
        self.segment_sec = float(segment_sec)
        self.block_sec = float(block_sec)
        self.restart_delay = float(restart_delay)
        self.on_fatal = on_fatal
        self.logger = logger or logging.getLogger(__name__)

        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._stop.set()
        self._closed = threading.Event()
        self._generation = 0
        self._frames_seen = 0
        self._segments: "queue.Queue[WorkItem]" = queue.Queue(maxsize=1)
        self._transcripts: "queue.Queue[WorkItem]" = queue.Queue(maxsize=max_pending_transcripts)
        self._capture_thread: Optional[threading.Thread] = None
        self._worker_thread: Optional[threading.Thread] = None
        self.segments_closed = 0
        self.segments_dropped = 0
        self.transcripts_dropped = 0

    # ---- control -------------------------------------------------------

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def capturing(self) -> bool:
        thread = self._capture_thread
        return thread is not None and thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.capturing:
                return
            self._closed.clear()
            self._stop.clear()
            self._generation += 1
            self._frames_seen = 0

        self.session.set_starting()
        if self.backend.kind == BackendKind.LOCAL:
            try:
                self.source.open()
            except CaptureUnavailable as e:
                self._stop.set()
                self.session.set_error(str(e))
                raise
        self.session.set_running()

        self._ensure_worker()
        self._capture_thread = threading.Thread(
            target=self._run_capture,
            name="lingualive-capture",
            daemon=True,
        )
        self._capture_thread.start()
        self.logger.info(
            "capture_started",
            extra={"backend": self.backend.kind.value, "segment_sec": self.segment_sec},
        )

    def stop(self) -> None:
        with self._lock:
            self._stop.set()
            self._generation += 1
        self.session.set_listening(False)
        self.backend.fallback.stop()

        thread = self._capture_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.block_sec * 10 + 1.0)
        self._capture_thread = None
        self.source.close()
        self._drain(self._segments)
        self._drain(self._transcripts)
        self.session.set_stopped()
        self.logger.info(
            "capture_stopped",
            extra={"segments_closed": self.segments_closed, "segments_dropped": self.segments_dropped},
        )

    def close(self) -> None:
        self.stop()
        self._closed.set()
        worker = self._worker_thread
        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout=1.0)

    @staticmethod
    def _drain(q: "queue.Queue[WorkItem]") -> None:
        while True:
            try:
                q.get_nowait()
            except queue.Empty:
                return

    # ---- capture thread ------------------------------------------------

    def _run_capture(self) -> None:
        try:
            while not self._stop.is_set():
                if self.backend.kind == BackendKind.LOCAL:
                    self._capture_segments()
                else:
                    self._pump_recognizer()
        except CaptureUnavailable as e:
            self._fatal(e)
        except Exception as e:
            self.logger.exception("capture_loop_crashed", extra={"error": str(e)})
            self._fatal(CaptureUnavailable(f"capture loop crashed: {e}"))
        finally:
            # loop is gone: never report listening without a loop behind it
            self.session.set_listening(False)

    def _fatal(self, error: CaptureUnavailable) -> None:
        self.logger.error("capture_unavailable", extra={"error": str(error)})
        with self._lock:
            self._stop.set()
            self._generation += 1
        self.backend.fallback.stop()
        self.source.close()
        self.session.set_error(str(error))
        if self.on_fatal is not None:
            self.on_fatal(error)

    def _capture_segments(self) -> None:
        self.source.open()
        sr = int(self.source.sample_rate)
        frames_per_block = max(1, int(round(self.block_sec * sr)))
        frames_per_segment = max(frames_per_block, int(round(self.segment_sec * sr)))

        while not self._stop.is_set():
            start_time = self._frames_seen / float(sr)
            blocks = []
            got = 0
            while (
                got < frames_per_segment
                and not self._stop.is_set()
                and self.backend.kind == BackendKind.LOCAL
            ):
                block = self.source.read(min(frames_per_block, frames_per_segment - got))
                blocks.append(block)
                got += int(block.size)
            self._frames_seen += got

            if self._stop.is_set():
                # stopped mid-window: the partial segment is discarded
                return
            if self.backend.kind != BackendKind.LOCAL:
                self.logger.info("capture_switching_to_fallback")
                self.source.close()
                return

            samples = np.concatenate(blocks).astype(np.float32, copy=False)
            samples.setflags(write=False)
            segment = AudioSegment(
                samples=samples,
                sample_rate=sr,
                duration_seconds=samples.size / float(sr),
                start_time=start_time,
            )
            self._hand_off(segment)

    def _hand_off(self, segment: AudioSegment) -> None:
        self.segments_closed += 1
        dropped = put_drop_oldest(self._segments, (self.generation, segment))
        if dropped:
            self.segments_dropped += 1
            self.logger.info(
                "segment_dropped_for_newer",
                extra={"t0": round(segment.start_time, 2), "dropped_total": self.segments_dropped},
            )

    def _pump_recognizer(self) -> None:
        recognizer = self.backend.fallback
        language = self.session.snapshot().source_language
        recognizer.set_language(language)
        recognizer.start()
        try:
            while not self._stop.is_set():
                current = self.session.snapshot().source_language
                if current != language:
                    language = current
                    recognizer.set_language(language)
                try:
                    event = recognizer.events.get(timeout=0.2)
                except queue.Empty:
                    continue
                self._handle_event(event)
        finally:
            recognizer.stop()

    def _handle_event(self, event: RecognizerEvent) -> None:
        if event.kind == EventKind.FINAL:
            transcript = Transcript(
                text=event.text,
                detected_language=None,
                backend=BackendKind.FALLBACK,
                is_final=True,
            )
            if put_drop_oldest(self._transcripts, (self.generation, transcript)):
                self.transcripts_dropped += 1
                self.logger.warning(
                    "transcript_dropped_for_newer",
                    extra={"dropped_total": self.transcripts_dropped},
                )
            return
        if event.kind == EventKind.INTERIM:
            self.pipeline.process_transcript(
                Transcript(text=event.text, detected_language=None, backend=BackendKind.FALLBACK, is_final=False)
            )
            return
        if event.kind == EventKind.END:
            if self._stop.is_set() or not self.session.snapshot().listening:
                return
            self.logger.info("fallback_restart", extra={"delay": self.restart_delay})
            if not self._stop.wait(self.restart_delay):
                self.backend.fallback.start()
            return
        if event.code == ERR_NO_SPEECH:
            return
        if event.code == ERR_NOT_ALLOWED:
            detail = f": {event.text}" if event.text else ""
            raise CaptureUnavailable(f"microphone unavailable (not-allowed){detail}")
        self.logger.warning("fallback_error", extra={"code": event.code})

    # ---- worker thread -------------------------------------------------

    def _ensure_worker(self) -> None:
        worker = self._worker_thread
        if worker is not None and worker.is_alive():
            return
        self._worker_thread = threading.Thread(
            target=self._run_worker,
            name="lingualive-segment-worker",
            daemon=True,
        )
        self._worker_thread.start()

    def _next_work(self) -> Optional[WorkItem]:
        try:
            return self._transcripts.get_nowait()
        except queue.Empty:
            pass
        try:
            return self._segments.get(timeout=0.1)
        except queue.Empty:
            return None

    def _is_current(self, generation: int) -> bool:
        return generation == self.generation and not self._stop.is_set()

    def _run_worker(self) -> None:
        while not self._closed.is_set():
            item = self._next_work()
            if item is None:
                continue
            generation, payload = item
            if not self._is_current(generation):
                continue
            self.session.set_segment_in_flight(True)
            try:
                if isinstance(payload, AudioSegment):
                    self.pipeline.process_segment(payload, is_current=lambda g=generation: self._is_current(g))
                else:
                    self.pipeline.process_transcript(payload)
            except Exception as e:
                # one bad segment must not end the session
                self.logger.exception("segment_processing_failed", extra={"error": str(e)})
            finally:
                self.session.set_segment_in_flight(False)
