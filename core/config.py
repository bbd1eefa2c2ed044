"""
Configuration for the capture and analysis pipelines.
"""
from pydantic import BaseModel
import os

class Settings(BaseModel):
    """
    Runtime settings with environment-variable overrides.
    """
    # Camera (front-facing, fixed resolution target)
    CAMERA_INDEX: int = int(os.getenv("CAMERA_INDEX", "0"))
    VIDEO_WIDTH: int = int(os.getenv("VIDEO_WIDTH", "640"))
    VIDEO_HEIGHT: int = int(os.getenv("VIDEO_HEIGHT", "480"))
    VIDEO_FACING_MODE: str = os.getenv("VIDEO_FACING_MODE", "user")

    # Microphone + live level monitor
    AUDIO_SAMPLE_RATE: int = int(os.getenv("AUDIO_SAMPLE_RATE", "16000"))
    AUDIO_BLOCK_SIZE: int = int(os.getenv("AUDIO_BLOCK_SIZE", "1024"))
    AUDIO_DEVICE: str | None = os.getenv("AUDIO_DEVICE") or None
    FFT_SIZE: int = int(os.getenv("FFT_SIZE", "256"))
    SMOOTHING_TIME_CONSTANT: float = float(os.getenv("SMOOTHING_TIME_CONSTANT", "0.8"))
    MONITOR_FPS: float = float(os.getenv("MONITOR_FPS", "60"))
    RECORDING_TICK_SECONDS: float = float(os.getenv("RECORDING_TICK_SECONDS", "1.0"))

    # Analysis
    ANALYSIS_DELAY_SECONDS: float = float(os.getenv("ANALYSIS_DELAY_SECONDS", "2.0"))
    MIN_RECORDING_SECONDS: int = int(os.getenv("MIN_RECORDING_SECONDS", "3"))
    DEFAULT_FACE_CONFIDENCE: float = float(os.getenv("DEFAULT_FACE_CONFIDENCE", "0.95"))

    # Face detector
    DETECTOR_BACKEND: str = os.getenv("DETECTOR_BACKEND", "opencv")
    MIN_FACE_CONFIDENCE: float = float(os.getenv("MIN_FACE_CONFIDENCE", "0.5"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "DEBUG")

    def __init__(self, **data):
        super().__init__(**data)
        # FFT size must be a power of two in [32, 32768] (Web Audio analyser range)
        fft = int(self.FFT_SIZE)
        if fft < 32 or fft > 32768 or (fft & (fft - 1)) != 0:
            fft = 256
        object.__setattr__(self, "FFT_SIZE", fft)

        smoothing = min(1.0, max(0.0, float(self.SMOOTHING_TIME_CONSTANT)))
        object.__setattr__(self, "SMOOTHING_TIME_CONSTANT", smoothing)

        words = (self.VIDEO_FACING_MODE or "").split()
        facing = words[0].lower() if words else "user"
        if facing not in ("user", "environment"):
            facing = "user"
        object.__setattr__(self, "VIDEO_FACING_MODE", facing)

        level = (self.LOG_LEVEL or "DEBUG").strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            level = "DEBUG"
        object.__setattr__(self, "LOG_LEVEL", level)

    @property
    def monitor_interval(self) -> float:
        """Seconds between two live-level frames."""
        return 1.0 / max(1.0, self.MONITOR_FPS)
