import asyncio
import numpy as np, sys, types

from core.config import Settings
from core.detector import DeepFaceDetector


class DummyDeepFace:
    calls = []
    result = []

    @staticmethod
    def extract_faces(img_path, detector_backend, enforce_detection, align):
        DummyDeepFace.calls.append((img_path.shape, detector_backend, enforce_detection, align))
        return DummyDeepFace.result


def _install(monkeypatch, result):
    DummyDeepFace.calls = []
    DummyDeepFace.result = result
    monkeypatch.setitem(sys.modules, "deepface", types.SimpleNamespace(DeepFace=DummyDeepFace))


def test_estimate_faces_maps_facial_area(monkeypatch):
    _install(monkeypatch, [
        {"facial_area": {"x": 100, "y": 80, "w": 200, "h": 240}, "confidence": 0.97},
        {"facial_area": {"x": 10, "y": 10, "w": 30, "h": 30}, "confidence": None},
    ])
    det = DeepFaceDetector(Settings())
    regions = asyncio.run(det.estimate_faces(np.zeros((480, 640, 3), dtype=np.uint8)))
    assert [r.top_left for r in regions] == [(100.0, 80.0), (10.0, 10.0)]
    assert regions[0].bottom_right == (300.0, 320.0)
    assert regions[0].probability == 0.97
    assert regions[1].probability is None
    assert DummyDeepFace.calls == [((480, 640, 3), "opencv", False, False)]


def test_whole_frame_placeholder_and_weak_hits_are_dropped(monkeypatch):
    _install(monkeypatch, [
        {"facial_area": {"x": 0, "y": 0, "w": 640, "h": 480}, "confidence": 0},
        {"facial_area": {"x": 5, "y": 5, "w": 50, "h": 50}, "confidence": 0.2},
        {"facial_area": {"x": 5, "y": 5, "w": 0, "h": 50}, "confidence": 0.9},
    ])
    det = DeepFaceDetector(Settings())
    regions = asyncio.run(det.estimate_faces(np.zeros((480, 640, 3), dtype=np.uint8)))
    assert regions == []


def test_load_imports_once(monkeypatch):
    _install(monkeypatch, [])
    det = DeepFaceDetector(Settings(DETECTOR_BACKEND="ssd"))
    assert not det.loaded
    asyncio.run(det.load())
    asyncio.run(det.load())
    assert det.loaded
    asyncio.run(det.estimate_faces(np.zeros((10, 10, 3), dtype=np.uint8)))
    assert DummyDeepFace.calls[0][1] == "ssd"
