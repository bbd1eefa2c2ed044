"""
Frequency-domain analyser attached to a live audio source.

Mirrors the Web Audio AnalyserNode byte read: Blackman window, FFT over the
latest `fft_size` samples, exponential smoothing between reads, magnitudes in
dB mapped linearly from [min_db, max_db] onto [0, 255].
"""
from __future__ import annotations
import threading

import librosa
import numpy as np


class SpectrumAnalyser:
    def __init__(self,
                 fft_size: int = 256,
                 smoothing: float = 0.8,
                 min_db: float = -100.0,
                 max_db: float = -30.0):
        self.fft_size = int(fft_size)
        self.smoothing = float(smoothing)
        self.min_db = float(min_db)
        self.max_db = float(max_db)
        self._window = np.blackman(self.fft_size).astype(np.float32)
        self._buffer = np.zeros(self.fft_size, dtype=np.float32)
        self._smoothed = np.zeros(self.frequency_bin_count, dtype=np.float64)
        self._lock = threading.Lock()

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    def push(self, samples: np.ndarray) -> None:
        """Append mono samples (called from the audio callback thread)."""
        block = np.asarray(samples, dtype=np.float32).reshape(-1)
        if block.size == 0:
            return
        with self._lock:
            if block.size >= self.fft_size:
                self._buffer[:] = block[-self.fft_size:]
            else:
                self._buffer = np.roll(self._buffer, -block.size)
                self._buffer[-block.size:] = block

    def get_byte_frequency_data(self) -> np.ndarray:
        """Return the current magnitude spectrum as `frequency_bin_count` uint8 values."""
        with self._lock:
            block = self._buffer.copy()

        spectrum = np.abs(np.fft.rfft(block * self._window))[: self.frequency_bin_count]
        spectrum = spectrum / float(self.fft_size)
        self._smoothed = self.smoothing * self._smoothed + (1.0 - self.smoothing) * spectrum

        db = librosa.amplitude_to_db(self._smoothed, ref=1.0, amin=1e-10, top_db=None)
        scaled = (db - self.min_db) * (255.0 / (self.max_db - self.min_db))
        return np.clip(scaled, 0, 255).astype(np.uint8)

    def reset(self) -> None:
        with self._lock:
            self._buffer[:] = 0.0
        self._smoothed[:] = 0.0
