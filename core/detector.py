"""
Face detection capability.

DeepFace is imported lazily (heavy TF stack; tests monkeypatch
sys.modules['deepface']). Detection runs in a worker thread.
"""
from __future__ import annotations
import asyncio
import logging
import threading
from typing import List, Protocol

import numpy as np

from core.config import Settings
from core.models import Region

logger = logging.getLogger(__name__)


class FaceDetector(Protocol):
    async def load(self) -> None: ...

    async def estimate_faces(self, image: np.ndarray) -> List[Region]: ...


class DeepFaceDetector:
    """FaceDetector backed by DeepFace.extract_faces (OpenCV backend by default)."""

    def __init__(self, settings: Settings):
        self.s = settings
        self._deepface = None
        self._load_lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._deepface is not None

    async def load(self) -> None:
        await asyncio.to_thread(self._ensure_model)

    def _ensure_model(self):
        with self._load_lock:
            if self._deepface is None:
                from deepface import DeepFace
                self._deepface = DeepFace
                logger.debug(f"[detector] deepface ready backend={self.s.DETECTOR_BACKEND}")
        return self._deepface

    async def estimate_faces(self, image: np.ndarray) -> List[Region]:
        return await asyncio.to_thread(self._detect, image)

    def _detect(self, image: np.ndarray) -> List[Region]:
        DeepFace = self._ensure_model()
        dets = DeepFace.extract_faces(
            img_path=image,
            detector_backend=self.s.DETECTOR_BACKEND,
            enforce_detection=False,
            align=False,
        )
        h, w = image.shape[:2]
        regions: List[Region] = []
        for d in dets or []:
            fa = d.get("facial_area") or {}
            x, y = float(fa.get("x", 0)), float(fa.get("y", 0))
            fw, fh = float(fa.get("w", 0)), float(fa.get("h", 0))
            conf = d.get("confidence")
            try:
                conf = float(conf) if conf is not None else None
            except (TypeError, ValueError):
                conf = None
            # enforce_detection=False yields a whole-frame box with confidence 0 when nothing is found
            if fw <= 0 or fh <= 0 or (fw >= w and fh >= h):
                continue
            if conf is not None and conf < self.s.MIN_FACE_CONFIDENCE:
                continue
            regions.append(Region(top_left=(x, y), bottom_right=(x + fw, y + fh), probability=conf))
        logger.debug(f"[detector] faces_detected={len(regions)}")
        return regions
