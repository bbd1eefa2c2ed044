"""
Local media devices: webcam via OpenCV, microphone via sounddevice.

Streams are blocking, thread-safe handles. Opening one is slow, so callers
run `open` in a worker thread (see LocalMediaDevices). A stream that stops on
its own (camera unplugged, audio stream aborted) fires its ended callbacks;
an explicit `stop()` never does.
"""
from __future__ import annotations
import asyncio
import logging
import threading
from typing import Callable, List, Optional, Protocol, Union

import cv2
import numpy as np

from core.config import Settings
from core.models import AudioConstraints, DeviceKind, VideoConstraints
from core.spectrum import SpectrumAnalyser

logger = logging.getLogger(__name__)

EndedCallback = Callable[[], None]
Constraints = Union[VideoConstraints, AudioConstraints]


class MediaStream(Protocol):
    kind: DeviceKind

    @property
    def ended(self) -> bool: ...

    def stop(self) -> None: ...

    def add_ended_callback(self, callback: EndedCallback) -> None: ...


class MediaDevices(Protocol):
    async def get_user_media(self, kind: DeviceKind, constraints: Constraints) -> MediaStream: ...


class _StreamBase:
    kind: DeviceKind

    def __init__(self):
        self._stopped = False
        self._ended = False
        self._callbacks: List[EndedCallback] = []
        self._state_lock = threading.Lock()

    @property
    def ended(self) -> bool:
        return self._ended or self._stopped

    def add_ended_callback(self, callback: EndedCallback) -> None:
        self._callbacks.append(callback)

    def _mark_ended(self) -> None:
        with self._state_lock:
            if self._stopped or self._ended:
                return
            self._ended = True
        logger.warning(f"[devices] {self.kind} track ended unexpectedly")
        for cb in list(self._callbacks):
            cb()


class CameraStream(_StreamBase):
    kind: DeviceKind = "video"

    def __init__(self, cap: "cv2.VideoCapture", constraints: VideoConstraints):
        super().__init__()
        self._cap = cap
        self.constraints = constraints

    @classmethod
    def open(cls, index: int, constraints: VideoConstraints) -> "CameraStream":
        cap = cv2.VideoCapture(index)
        if not cap.isOpened():
            cap.release()
            raise RuntimeError(f"Could not open camera index {index}")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.height)
        logger.debug(f"[devices] camera {index} opened target={constraints.width}x{constraints.height}")
        return cls(cap, constraints)

    def read_frame(self) -> np.ndarray:
        """Grab the current BGR frame."""
        if self.ended:
            raise RuntimeError("Camera stream is not running")
        ok, frame = self._cap.read()
        if not ok or frame is None:
            self._mark_ended()
            raise RuntimeError("Camera returned no frame")
        return frame

    def stop(self) -> None:
        with self._state_lock:
            if self._stopped:
                return
            self._stopped = True
        self._cap.release()
        logger.debug("[devices] camera released")


class MicrophoneStream(_StreamBase):
    """Default microphone; buffers every chunk and feeds a SpectrumAnalyser."""
    kind: DeviceKind = "audio"

    def __init__(self, constraints: AudioConstraints, analyser: SpectrumAnalyser):
        super().__init__()
        self.constraints = constraints
        self.analyser = analyser
        self.sample_rate = constraints.sample_rate
        self._chunks: List[np.ndarray] = []
        self._chunk_lock = threading.Lock()
        self._stream = None

    @classmethod
    def open(cls, constraints: AudioConstraints, analyser: SpectrumAnalyser) -> "MicrophoneStream":
        # lazy import: PortAudio is only needed once a microphone is actually opened
        import sounddevice as sd

        mic = cls(constraints, analyser)
        mic._stream = sd.InputStream(
            samplerate=constraints.sample_rate,
            blocksize=constraints.block_size,
            device=constraints.device,
            channels=1,
            dtype="float32",
            callback=mic._callback,
            finished_callback=mic._mark_ended,
        )
        try:
            mic._stream.start()
        except Exception:
            mic._stream.close()
            raise
        logger.debug(f"[devices] microphone opened sr={constraints.sample_rate} device={constraints.device}")
        return mic

    def _callback(self, indata, frames, time_info, status):
        if status:
            logger.debug(f"[devices] input status={status}")
        chunk = indata.copy().astype(np.float32).reshape(-1)
        with self._chunk_lock:
            self._chunks.append(chunk)
        self.analyser.push(chunk)

    def drain(self) -> tuple[np.ndarray, int]:
        """Return (concatenated samples, chunk count) and clear the buffer."""
        with self._chunk_lock:
            chunks, self._chunks = self._chunks, []
        if not chunks:
            return np.zeros(0, dtype=np.float32), 0
        return np.concatenate(chunks, axis=0), len(chunks)

    def stop(self) -> None:
        with self._state_lock:
            if self._stopped:
                return
            self._stopped = True
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
        logger.debug("[devices] microphone released")


class LocalMediaDevices:
    """Opens the machine's camera/microphone under the requested constraints."""

    def __init__(self, settings: Settings):
        self.s = settings

    async def get_user_media(self, kind: DeviceKind, constraints: Constraints) -> MediaStream:
        if kind == "video":
            return await asyncio.to_thread(CameraStream.open, self.s.CAMERA_INDEX, constraints)
        analyser = SpectrumAnalyser(
            fft_size=self.s.FFT_SIZE,
            smoothing=self.s.SMOOTHING_TIME_CONSTANT,
        )
        return await asyncio.to_thread(MicrophoneStream.open, constraints, analyser)


def constraints_for(kind: DeviceKind, settings: Settings) -> Constraints:
    if kind == "video":
        return VideoConstraints(
            facing_mode=settings.VIDEO_FACING_MODE,
            width=settings.VIDEO_WIDTH,
            height=settings.VIDEO_HEIGHT,
        )
    return AudioConstraints(
        device=settings.AUDIO_DEVICE,
        sample_rate=settings.AUDIO_SAMPLE_RATE,
        block_size=settings.AUDIO_BLOCK_SIZE,
    )
