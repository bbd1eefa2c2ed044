"""
Data models for the capture pipelines and the API.

Results and observable state are pydantic models (they go over the API);
captured payloads hold raw numpy buffers and are plain dataclasses.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from pydantic import BaseModel, Field
from typing import List, Optional, Literal, Tuple

import numpy as np

HealthStatus = Literal["healthy", "needs-consultation", "high-risk"]
Mode = Literal["face", "voice"]
DeviceKind = Literal["video", "audio"]
ErrorCode = Literal[
    "PermissionDenied",
    "DeviceUnavailable",
    "NoFaceDetected",
    "RecordingTooShort",
    "AnalysisFailed",
]


class Region(BaseModel):
    """One detected face: corner coordinates in pixels plus detector score."""
    top_left: Tuple[float, float]
    bottom_right: Tuple[float, float]
    probability: Optional[float] = None

    @property
    def width(self) -> float:
        return self.bottom_right[0] - self.top_left[0]

    @property
    def height(self) -> float:
        return self.bottom_right[1] - self.top_left[1]


class VideoConstraints(BaseModel):
    facing_mode: Literal["user", "environment"] = "user"
    width: int = 640
    height: int = 480


class AudioConstraints(BaseModel):
    device: Optional[str] = None
    sample_rate: int = 16000
    block_size: int = 1024


# live samples

class VoiceLiveSample(BaseModel):
    level: float = 0.0
    elapsed_seconds: int = 0


# captured payloads

@dataclass
class FacePayload:
    image: np.ndarray
    regions: List[Region]
    source: Literal["camera", "upload"] = "camera"
    annotated: Optional[np.ndarray] = None


@dataclass
class VoicePayload:
    samples: np.ndarray
    sample_rate: int
    duration_seconds: int
    chunk_count: int = 0
    blob: bytes = field(default=b"", repr=False)


# results

class VoiceMetrics(BaseModel):
    pitch: int
    volume: int
    duration: int
    clarity: int


class FaceMetrics(BaseModel):
    face_count: int
    detector_confidence: float


class Classification(BaseModel):
    status: HealthStatus
    confidence: int
    details: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class AnalysisResult(Classification):
    mode: Mode
    metrics: Optional[VoiceMetrics] = None
    face_metrics: Optional[FaceMetrics] = None


class ErrorState(BaseModel):
    code: ErrorCode
    message: str


# observable pipeline state

class FaceScanState(BaseModel):
    model_loading: bool = False
    model_ready: bool = False
    camera_active: bool = False
    analyzing: bool = False
    has_snapshot: bool = False
    result: Optional[AnalysisResult] = None
    error: Optional[ErrorState] = None


class VoiceState(BaseModel):
    recording: bool = False
    analyzing: bool = False
    recording_time: int = 0
    audio_level: float = 0.0
    result: Optional[AnalysisResult] = None
    error: Optional[ErrorState] = None
