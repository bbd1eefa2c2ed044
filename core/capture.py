"""
Capture triggers: turn a live session (or an uploaded still) into a payload.

Face: snapshot -> detect once -> draw boxes -> payload -> release camera.
Voice: stop monitor -> flush buffered chunks -> release microphone -> payload.
"""
from __future__ import annotations
import asyncio
import io
import logging
from typing import Callable, Optional

import numpy as np
import soundfile as sf

from core.config import Settings
from core.detector import FaceDetector
from core.errors import AnalysisFailed, DeviceUnavailable, NoFaceDetected
from core.models import FacePayload, VoiceLiveSample, VoicePayload
from core.monitor import AudioLevelMonitor
from core.session import DeviceSessionManager, OnEnded
from core.visual import decode_image, draw_regions, fit_to_buffer

logger = logging.getLogger(__name__)

CAMERA_NO_FACE = "No face detected. Please ensure your face is clearly visible."
UPLOAD_NO_FACE = "No face detected in the image. Please upload a clear face photo."


class FaceCapture:
    def __init__(self, detector: FaceDetector, settings: Settings):
        self.detector = detector
        self.s = settings

    async def capture(self, manager: DeviceSessionManager) -> FacePayload:
        """
        Snapshot the live camera and detect faces.

        On NoFaceDetected the camera stays live so the user can retry; on
        success the camera session is released before returning.
        """
        session = manager.get("video")
        if session is None or session.handle is None:
            raise DeviceUnavailable("Camera is not active. Please start the camera.")

        try:
            frame = await asyncio.to_thread(session.handle.read_frame)
        except Exception as e:
            logger.exception("[capture] camera frame read failed")
            raise DeviceUnavailable("Could not read from camera. Please restart the camera.",
                                    log_message=str(e)) from e

        buffer = fit_to_buffer(frame, self.s.VIDEO_WIDTH, self.s.VIDEO_HEIGHT)
        logger.debug(f"[capture] snapshot {buffer.shape[1]}x{buffer.shape[0]}")
        payload = await self._detect_and_build(buffer, "camera", CAMERA_NO_FACE)
        manager.stop("video")
        return payload

    async def from_upload(self, data: bytes) -> FacePayload:
        """Upload variant: no session involved."""
        try:
            image = decode_image(data)
        except ValueError as e:
            logger.exception("[capture] upload decode failed")
            raise AnalysisFailed(log_message=str(e)) from e
        logger.debug(f"[capture] upload decoded {image.shape[1]}x{image.shape[0]}")
        return await self._detect_and_build(image, "upload", UPLOAD_NO_FACE)

    async def _detect_and_build(self, image: np.ndarray, source: str, no_face_message: str) -> FacePayload:
        try:
            regions = await self.detector.estimate_faces(image)
        except Exception as e:
            logger.exception("[capture] detector failed")
            raise AnalysisFailed(log_message=f"detector error: {e}") from e

        if not regions:
            logger.debug(f"[capture] no face in {source} image")
            raise NoFaceDetected(no_face_message)

        annotated = draw_regions(image, regions)
        return FacePayload(image=image, regions=list(regions), source=source, annotated=annotated)


def encode_wav(samples: np.ndarray, sample_rate: int) -> bytes:
    buf = io.BytesIO()
    sf.write(buf, samples, sample_rate, format="WAV", subtype="PCM_16")
    return buf.getvalue()


class VoiceRecorder:
    """One microphone recording: session + live monitor; `stop()` is the capture trigger."""

    def __init__(self,
                 manager: DeviceSessionManager,
                 settings: Settings,
                 on_sample: Optional[Callable[[VoiceLiveSample], None]] = None):
        self.manager = manager
        self.s = settings
        self.on_sample = on_sample
        self.monitor: Optional[AudioLevelMonitor] = None
        self._stream = None

    @property
    def recording(self) -> bool:
        return self._stream is not None

    async def start(self, on_ended: Optional[OnEnded] = None) -> None:
        if self.recording:
            return
        session = await self.manager.start("audio", on_ended=on_ended)
        stream = session.handle
        stream.drain()  # start from an empty buffer
        self._stream = stream
        self.monitor = AudioLevelMonitor(stream.analyser, self.s, on_sample=self.on_sample)
        self.monitor.start()
        logger.debug("[capture] recording started")

    async def stop(self) -> Optional[VoicePayload]:
        """Finalize buffered audio into a payload; None if nothing was recording."""
        if not self.recording:
            return None
        stream, self._stream = self._stream, None
        sample = await self.monitor.stop() if self.monitor is not None else VoiceLiveSample()
        samples, chunk_count = stream.drain()
        self.manager.stop("audio")

        sample_rate = getattr(stream, "sample_rate", self.s.AUDIO_SAMPLE_RATE)
        blob = encode_wav(samples, sample_rate) if samples.size else b""
        logger.debug(f"[capture] recording finalized duration={sample.elapsed_seconds}s "
                     f"chunks={chunk_count} samples={samples.size}")
        return VoicePayload(
            samples=samples,
            sample_rate=sample_rate,
            duration_seconds=sample.elapsed_seconds,
            chunk_count=chunk_count,
            blob=blob,
        )

    def reset_live(self) -> None:
        """Restart the live level/elapsed counters of the running recording."""
        if self.recording and self.monitor is not None:
            self.monitor.reset()

    async def abort(self) -> None:
        """Teardown without producing a payload."""
        if self.monitor is not None:
            await self.monitor.stop()
        if self._stream is not None:
            self._stream = None
            self.manager.stop("audio")
