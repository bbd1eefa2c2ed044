"""
Analysis stage: simulated processing delay, signal proxies, classification.
"""
from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, Callable, Optional

import numpy as np

from core.classifier import RandomSource, classify, round_half_up
from core.config import Settings
from core.errors import AnalysisFailed, CaptureError, RecordingTooShort
from core.models import AnalysisResult, FaceMetrics, FacePayload, VoiceMetrics, VoicePayload

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[object]]


class Analyzer:
    """
    Turns a captured payload into an AnalysisResult.

    Not re-entrant: callers must not submit a second payload while `busy`.
    `rng` is any object with `random()`; production uses numpy's default_rng.
    """

    def __init__(self, settings: Settings, rng: Optional[RandomSource] = None, sleep: Sleep = asyncio.sleep):
        self.s = settings
        self.rng = rng if rng is not None else np.random.default_rng()
        self._sleep = sleep
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    async def analyze_face(self, payload: FacePayload) -> AnalysisResult:
        return await self._run("face", self._face_result, payload)

    async def analyze_voice(self, payload: VoicePayload) -> AnalysisResult:
        return await self._run("voice", self._voice_result, payload)

    async def _run(self, mode: str, build, payload) -> AnalysisResult:
        if self._busy:
            raise RuntimeError("analysis already in progress")
        self._busy = True
        try:
            logger.debug(f"[analysis] {mode} start delay={self.s.ANALYSIS_DELAY_SECONDS}s")
            await self._sleep(self.s.ANALYSIS_DELAY_SECONDS)
            result = build(payload)
            logger.debug(f"[analysis] {mode} done status={result.status} confidence={result.confidence}")
            return result
        except CaptureError:
            raise
        except Exception as e:
            logger.exception(f"[analysis] {mode} analysis failed")
            raise AnalysisFailed(log_message=str(e)) from e
        finally:
            self._busy = False

    def _face_result(self, payload: FacePayload) -> AnalysisResult:
        first = payload.regions[0].probability if payload.regions else None
        detector_confidence = float(first or self.s.DEFAULT_FACE_CONFIDENCE)
        cls = classify("face", self.rng)
        return AnalysisResult(
            mode="face",
            **cls.model_dump(),
            face_metrics=FaceMetrics(face_count=len(payload.regions),
                                     detector_confidence=detector_confidence),
        )

    def _voice_result(self, payload: VoicePayload) -> AnalysisResult:
        if payload.duration_seconds < self.s.MIN_RECORDING_SECONDS:
            logger.debug(f"[analysis] recording too short duration={payload.duration_seconds}s")
            raise RecordingTooShort(
                f"Recording too short. Please speak for at least {self.s.MIN_RECORDING_SECONDS} seconds."
            )

        # proxies drawn before the status so the draw order is fixed
        pitch = round_half_up(100 + self.rng.random() * 100)     # Hz
        volume = round_half_up(50 + self.rng.random() * 40)      # dB
        clarity = round_half_up(70 + self.rng.random() * 25)     # %
        cls = classify("voice", self.rng)
        return AnalysisResult(
            mode="voice",
            **cls.model_dump(),
            metrics=VoiceMetrics(pitch=pitch, volume=volume,
                                 duration=payload.duration_seconds, clarity=clarity),
        )
