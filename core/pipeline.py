# core/pipeline.py
"""
Face-scan and voice-analysis pipelines.

Each pipeline owns its observable state (result, single error slot, transient
capture artifacts) and translates CaptureError into ErrorState. A reset bumps
the generation counter so an analysis still in flight cannot publish into the
cleared state.
"""
from __future__ import annotations
import abc
import asyncio
import logging
from typing import Optional

import numpy as np

from core.analysis import Analyzer
from core.capture import FaceCapture, VoiceRecorder
from core.config import Settings
from core.detector import FaceDetector
from core.errors import AnalysisFailed, CaptureError
from core.models import (AnalysisResult, ErrorState, FacePayload, FaceScanState,
                         VoiceLiveSample, VoiceState)
from core.session import DeviceSessionManager

logger = logging.getLogger(__name__)

MODEL_LOAD_FAILED = "Failed to load AI model. Please try again."


class _PipelineBase(abc.ABC):
    tag = "pipeline"

    def __init__(self, manager: DeviceSessionManager, analyzer: Analyzer, settings: Settings):
        self.manager = manager
        self.analyzer = analyzer
        self.s = settings
        self._result: Optional[AnalysisResult] = None
        self._error: Optional[ErrorState] = None
        self._analyzing = False
        self._generation = 0

    @property
    def result(self) -> Optional[AnalysisResult]:
        return self._result

    @property
    def error(self) -> Optional[ErrorState]:
        return self._error

    def _fail(self, exc: CaptureError) -> None:
        logger.info(f"[{self.tag}] {exc.code}: {exc}")
        self._error = ErrorState(code=exc.code, message=exc.user_message)

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    @abc.abstractmethod
    async def aclose(self) -> None:
        """Release every device and pending task owned by this pipeline."""


class FaceScanPipeline(_PipelineBase):
    tag = "face"

    def __init__(self,
                 manager: DeviceSessionManager,
                 detector: FaceDetector,
                 analyzer: Analyzer,
                 settings: Settings):
        super().__init__(manager, analyzer, settings)
        self.detector = detector
        self.capture = FaceCapture(detector, settings)
        self._snapshot: Optional[np.ndarray] = None
        self._model_loading = False
        self._model_ready = False
        self._load_task: Optional[asyncio.Task] = None

    def state(self) -> FaceScanState:
        return FaceScanState(
            model_loading=self._model_loading,
            model_ready=self._model_ready,
            camera_active=self.manager.is_active("video"),
            analyzing=self._analyzing,
            has_snapshot=self._snapshot is not None,
            result=self._result,
            error=self._error,
        )

    @property
    def snapshot(self) -> Optional[np.ndarray]:
        """Annotated still of the last capture (boxes drawn); cleared by reset."""
        return self._snapshot

    # ---- detector model ----
    async def load_model(self) -> FaceScanState:
        """Load the detector once; concurrent callers share the same load."""
        if self._model_ready:
            return self.state()
        if self._load_task is None or self._load_task.done():
            self._load_task = asyncio.create_task(self._load(), name="face-model-load")
        await self._load_task
        return self.state()

    async def _load(self) -> None:
        self._model_loading = True
        try:
            await self.detector.load()
            self._model_ready = True
            logger.debug("[face] detector model ready")
        except Exception as e:
            logger.exception("[face] detector model load failed")
            self._fail(AnalysisFailed(MODEL_LOAD_FAILED, log_message=str(e)))
        finally:
            self._model_loading = False

    # ---- camera ----
    async def start_camera(self) -> FaceScanState:
        self._error = None
        try:
            await self.manager.start("video")
        except CaptureError as e:
            self._fail(e)
        return self.state()

    def stop_camera(self) -> FaceScanState:
        self.manager.stop("video")
        return self.state()

    # ---- capture + analysis ----
    async def capture_and_analyze(self) -> FaceScanState:
        if self._analyzing:
            logger.debug("[face] capture ignored; analysis in progress")
            return self.state()
        return await self._capture_then_analyze(self.capture.capture(self.manager))

    async def analyze_upload(self, data: bytes) -> FaceScanState:
        if self._analyzing:
            logger.debug("[face] upload ignored; analysis in progress")
            return self.state()
        return await self._capture_then_analyze(self.capture.from_upload(data))

    async def _capture_then_analyze(self, capture_coro) -> FaceScanState:
        self._analyzing = True
        self._error = None
        generation = self._generation
        try:
            await self.load_model()
            if not self._model_ready:
                capture_coro.close()
                return self.state()
            payload: FacePayload = await capture_coro
            if self._is_current(generation):
                self._snapshot = payload.annotated
            result = await self.analyzer.analyze_face(payload)
            if self._is_current(generation):
                self._result = result
            else:
                logger.debug("[face] discarding result of analysis started before reset")
        except CaptureError as e:
            if self._is_current(generation):
                self._fail(e)
        finally:
            self._analyzing = False
        return self.state()

    def reset(self) -> FaceScanState:
        self._generation += 1
        self._result = None
        self._error = None
        self._snapshot = None
        return self.state()

    async def aclose(self) -> None:
        self.manager.stop("video")
        if self._load_task is not None and not self._load_task.done():
            self._load_task.cancel()
            try:
                await self._load_task
            except asyncio.CancelledError:
                pass


class VoiceAnalysisPipeline(_PipelineBase):
    tag = "voice"

    def __init__(self, manager: DeviceSessionManager, analyzer: Analyzer, settings: Settings):
        super().__init__(manager, analyzer, settings)
        self.recorder = VoiceRecorder(manager, settings, on_sample=self._on_sample)
        self._live = VoiceLiveSample()

    def state(self) -> VoiceState:
        return VoiceState(
            recording=self.recorder.recording,
            analyzing=self._analyzing,
            recording_time=self._live.elapsed_seconds,
            audio_level=round(self._live.level, 2),
            result=self._result,
            error=self._error,
        )

    @property
    def live_sample(self) -> VoiceLiveSample:
        return self._live

    def _on_sample(self, sample: VoiceLiveSample) -> None:
        self._live = sample

    async def start_recording(self) -> VoiceState:
        if self.recorder.recording or self._analyzing:
            logger.debug("[voice] start ignored; recording or analysis in progress")
            return self.state()
        self._error = None
        self._live = VoiceLiveSample()
        try:
            await self.recorder.start(on_ended=self._on_device_lost)
        except CaptureError as e:
            self._fail(e)
        return self.state()

    async def stop_recording(self) -> VoiceState:
        """Stop & analyze. No-op when not recording."""
        if not self.recorder.recording:
            return self.state()
        generation = self._generation
        # marked busy before the first await; start_recording stays refused until this resolves
        self._analyzing = True
        self._error = None
        try:
            payload = await self.recorder.stop()
            if self._is_current(generation):
                self._live = VoiceLiveSample(level=0.0, elapsed_seconds=payload.duration_seconds)
            result = await self.analyzer.analyze_voice(payload)
            if self._is_current(generation):
                self._result = result
            else:
                logger.debug("[voice] discarding result of analysis started before reset")
        except CaptureError as e:
            if self._is_current(generation):
                self._fail(e)
        finally:
            self._analyzing = False
            if self._is_current(generation):
                self._live = VoiceLiveSample()
        return self.state()

    async def _on_device_lost(self) -> None:
        logger.warning("[voice] microphone lost mid-recording; stopping")
        await self.stop_recording()

    def reset(self) -> VoiceState:
        self._generation += 1
        self._result = None
        self._error = None
        self._live = VoiceLiveSample()
        self.recorder.reset_live()
        return self.state()

    async def aclose(self) -> None:
        await self.recorder.abort()
