
"""Drawing helpers for captured stills.

- draw_regions: stroke a box per detected face (green, 3 px)
- decode_image / encode_jpeg: bytes <-> BGR buffers
- fit_to_buffer: scale a frame into the fixed capture buffer
"""
from __future__ import annotations
import cv2
import numpy as np
from typing import List, Tuple

from core.models import Region

# '#10b981' in BGR
BOX_COLOR: Tuple[int, int, int] = (129, 185, 16)
BOX_THICKNESS = 3


def draw_regions(image: np.ndarray,
                 regions: List[Region],
                 color: Tuple[int, int, int] = BOX_COLOR,
                 thickness: int = BOX_THICKNESS) -> np.ndarray:
    """Draw one rectangle per region on a copy of `image`.

    Args:
        image: BGR image
        regions: detections with top_left/bottom_right corners
        color: BGR stroke color
        thickness: stroke width in px

    Returns:
        Annotated copy
    """
    out = image.copy()
    h, w = out.shape[:2]
    for reg in regions:
        x0, y0 = int(round(reg.top_left[0])), int(round(reg.top_left[1]))
        x1, y1 = int(round(reg.bottom_right[0])), int(round(reg.bottom_right[1]))
        # clamp to image bounds
        x0 = max(0, min(x0, w - 1)); y0 = max(0, min(y0, h - 1))
        x1 = max(0, min(x1, w - 1)); y1 = max(0, min(y1, h - 1))
        cv2.rectangle(out, (x0, y0), (x1, y1), color, thickness)
    return out


def fit_to_buffer(frame: np.ndarray, width: int, height: int) -> np.ndarray:
    if frame.shape[1] == width and frame.shape[0] == height:
        return frame.copy()
    return cv2.resize(frame, (width, height), interpolation=cv2.INTER_AREA)


def decode_image(data: bytes) -> np.ndarray:
    """Decode encoded image bytes (jpeg/png/...) into a BGR array."""
    if not data:
        raise ValueError("Empty image data")
    img = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
    if img is None:
        raise ValueError("Could not decode image data")
    return img


def encode_jpeg(image: np.ndarray, quality: int = 90) -> bytes:
    ok, buf = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise RuntimeError("JPEG encoding failed")
    return buf.tobytes()
