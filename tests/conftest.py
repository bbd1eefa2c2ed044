import asyncio
import pytest
import numpy as np

from core.config import Settings
from core.models import Region
from core.session import DeviceSessionManager


class StubRng:
    """Returns the queued values in order, then `fallback` forever."""
    def __init__(self, *values, fallback=0.0):
        self.values = list(values)
        self.fallback = fallback
        self.calls = 0
    def random(self):
        self.calls += 1
        return self.values.pop(0) if self.values else self.fallback


class FakeAnalyser:
    def __init__(self, value=128):
        self.value = value
        self.reads = 0
    def get_byte_frequency_data(self):
        self.reads += 1
        return np.full(128, self.value, dtype=np.uint8)


class _FakeStream:
    kind = None
    def __init__(self):
        self.stopped = False
        self.stop_calls = 0
        self._callbacks = []
    @property
    def ended(self):
        return self.stopped
    def add_ended_callback(self, cb):
        self._callbacks.append(cb)
    def stop(self):
        self.stop_calls += 1
        self.stopped = True
    def lose(self):
        """Simulate the device going away on its own."""
        for cb in self._callbacks:
            cb()


class FakeCameraStream(_FakeStream):
    kind = "video"
    def __init__(self, frame=None):
        super().__init__()
        self.frame = frame if frame is not None else np.full((480, 640, 3), 90, dtype=np.uint8)
        self.reads = 0
    def read_frame(self):
        self.reads += 1
        if self.stopped:
            raise RuntimeError("camera released")
        return self.frame.copy()


class FakeMicStream(_FakeStream):
    kind = "audio"
    def __init__(self, sample_rate=16000):
        super().__init__()
        self.sample_rate = sample_rate
        self.analyser = FakeAnalyser()
        self.chunks = []
    def drain(self):
        chunks, self.chunks = self.chunks, []
        if not chunks:
            return np.zeros(0, dtype=np.float32), 0
        return np.concatenate(chunks), len(chunks)


class FakeDevices:
    def __init__(self):
        self.requests = []
        self.opened = []
        self.fail = {}
    async def get_user_media(self, kind, constraints):
        self.requests.append((kind, constraints))
        await asyncio.sleep(0)
        if kind in self.fail:
            raise self.fail[kind]
        stream = FakeCameraStream() if kind == "video" else FakeMicStream()
        self.opened.append(stream)
        return stream
    def last(self, kind):
        return [s for s in self.opened if s.kind == kind][-1]


class FakeDetector:
    def __init__(self, regions=None, error=None, load_error=None):
        self.regions = regions if regions is not None else []
        self.error = error
        self.load_error = load_error
        self.calls = 0
        self.loads = 0
        self.seen_shapes = []
    async def load(self):
        self.loads += 1
        await asyncio.sleep(0)
        if self.load_error is not None:
            raise self.load_error
    async def estimate_faces(self, image):
        self.calls += 1
        self.seen_shapes.append(image.shape)
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return list(self.regions)


def face(prob=0.98):
    return Region(top_left=(100.0, 80.0), bottom_right=(300.0, 320.0), probability=prob)


@pytest.fixture
def settings():
    return Settings(ANALYSIS_DELAY_SECONDS=0.0, RECORDING_TICK_SECONDS=0.01, MONITOR_FPS=500)


@pytest.fixture
def devices():
    return FakeDevices()


@pytest.fixture
def make_manager(devices, settings):
    # managers hold asyncio primitives; build them inside the running loop
    def _make():
        return DeviceSessionManager(devices, settings)
    return _make
