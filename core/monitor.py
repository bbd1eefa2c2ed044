"""
Live monitoring while a voice recording is running.

Two cooperative tasks bound to one recording:
- level loop: frame-paced read of the analyser spectrum -> mean -> [0, 100]
- tick loop: +1 elapsed second per RECORDING_TICK_SECONDS

Both check the stop token at loop head and are cancelled together by stop().
"""
from __future__ import annotations
import asyncio
import logging
from typing import Callable, Optional, Protocol

import numpy as np

from core.config import Settings
from core.models import VoiceLiveSample

logger = logging.getLogger(__name__)


class FrequencySource(Protocol):
    def get_byte_frequency_data(self) -> np.ndarray: ...


def level_from_bins(bins: np.ndarray) -> float:
    """Mean byte magnitude mapped linearly onto [0, 100]."""
    if len(bins) == 0:
        return 0.0
    average = float(np.mean(bins))
    return min(100.0, (average / 255.0) * 100.0)


class AudioLevelMonitor:
    def __init__(self,
                 analyser: FrequencySource,
                 settings: Settings,
                 on_sample: Optional[Callable[[VoiceLiveSample], None]] = None):
        self.analyser = analyser
        self.s = settings
        self.on_sample = on_sample
        self.sample = VoiceLiveSample()
        self._stop_event = asyncio.Event()
        self._level_task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._level_task is not None or self._tick_task is not None

    @property
    def elapsed_seconds(self) -> int:
        return self.sample.elapsed_seconds

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._publish(VoiceLiveSample())
        self._level_task = asyncio.create_task(self._level_loop(), name="voice-level-monitor")
        self._tick_task = asyncio.create_task(self._tick_loop(), name="voice-duration-counter")
        logger.debug("[monitor] started")

    def reset(self) -> None:
        """Zero level and elapsed time; running loops continue counting from zero."""
        self._publish(VoiceLiveSample())

    async def stop(self) -> VoiceLiveSample:
        """Cancel both loops; returns the last published sample."""
        self._stop_event.set()
        tasks = [t for t in (self._level_task, self._tick_task) if t is not None]
        self._level_task = None
        self._tick_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        if tasks:
            logger.debug(f"[monitor] stopped elapsed={self.sample.elapsed_seconds}s")
        return self.sample

    # ---- loops ----
    async def _level_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                bins = self.analyser.get_byte_frequency_data()
            except Exception:
                logger.exception("[monitor] spectrum read failed; level loop ends")
                return
            self._publish(VoiceLiveSample(level=level_from_bins(bins),
                                          elapsed_seconds=self.sample.elapsed_seconds))
            await asyncio.sleep(self.s.monitor_interval)

    async def _tick_loop(self) -> None:
        while not self._stop_event.is_set():
            await asyncio.sleep(self.s.RECORDING_TICK_SECONDS)
            if self._stop_event.is_set():
                break
            self._publish(VoiceLiveSample(level=self.sample.level,
                                          elapsed_seconds=self.sample.elapsed_seconds + 1))

    def _publish(self, sample: VoiceLiveSample) -> None:
        self.sample = sample
        if self.on_sample is not None:
            self.on_sample(sample)
