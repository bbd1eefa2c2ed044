
import asyncio
import pytest

from core.errors import DeviceUnavailable, PermissionDenied
from core.models import AudioConstraints, VideoConstraints


def test_start_requests_mode_constraints(make_manager, devices):
    async def run():
        m = make_manager()
        v = await m.start("video")
        a = await m.start("audio")
        return m, v, a

    m, v, a = asyncio.run(run())
    assert v.active and a.active
    (k1, c1), (k2, c2) = devices.requests
    assert k1 == "video" and isinstance(c1, VideoConstraints)
    assert (c1.facing_mode, c1.width, c1.height) == ("user", 640, 480)
    assert k2 == "audio" and isinstance(c2, AudioConstraints)
    assert c2.device is None


def test_start_while_active_is_noop(make_manager, devices):
    async def run():
        m = make_manager()
        s1 = await m.start("video")
        s2 = await m.start("video")
        return s1, s2

    s1, s2 = asyncio.run(run())
    assert s1 is s2
    assert len(devices.opened) == 1


def test_stop_releases_tracks_and_is_idempotent(make_manager, devices):
    async def run():
        m = make_manager()
        s = await m.start("video")
        assert m.stop("video") is True
        assert m.stop("video") is False
        assert m.stop("audio") is False
        return m, s

    m, s = asyncio.run(run())
    stream = devices.last("video")
    assert stream.stop_calls == 1
    assert s.active is False and s.handle is None
    assert not m.is_active("video")


def test_permission_denied_leaves_session_inactive(make_manager, devices):
    devices.fail["video"] = PermissionError("denied by user")

    async def run():
        m = make_manager()
        with pytest.raises(PermissionDenied) as ei:
            await m.start("video")
        return m, ei.value

    m, err = asyncio.run(run())
    assert not m.is_active("video")
    assert err.user_message == "Could not access camera. Please check permissions."
    assert err.code == "PermissionDenied"


def test_missing_device_is_unavailable(make_manager, devices):
    devices.fail["audio"] = RuntimeError("no input device")

    async def run():
        m = make_manager()
        with pytest.raises(DeviceUnavailable):
            await m.start("audio")
        return m

    m = asyncio.run(run())
    assert m.get("audio") is None


def test_teardown_releases_everything(make_manager, devices):
    async def run():
        async with make_manager() as m:
            await m.start("video")
            await m.start("audio")
        return m

    m = asyncio.run(run())
    assert all(s.stopped for s in devices.opened)
    assert not m.is_active("video") and not m.is_active("audio")


def test_device_lost_without_handler_is_implicit_stop(make_manager, devices):
    async def run():
        m = make_manager()
        await m.start("video")
        devices.last("video").lose()
        await asyncio.sleep(0)
        return m

    m = asyncio.run(run())
    assert not m.is_active("video")
    assert devices.last("video").stop_calls == 1


def test_device_lost_runs_owner_handler(make_manager, devices):
    calls = []

    async def run():
        m = make_manager()

        async def on_ended():
            calls.append(m.is_active("audio"))

        await m.start("audio", on_ended=on_ended)
        devices.last("audio").lose()
        for _ in range(5):
            await asyncio.sleep(0)
        return m

    m = asyncio.run(run())
    # handler ran while the session was still live, manager released it afterwards
    assert calls == [True]
    assert not m.is_active("audio")


def test_lost_event_after_stop_is_ignored(make_manager, devices):
    calls = []

    async def run():
        m = make_manager()

        async def on_ended():
            calls.append(1)

        await m.start("audio", on_ended=on_ended)
        stream = devices.last("audio")
        m.stop("audio")
        stream.lose()
        await asyncio.sleep(0)
        await asyncio.sleep(0)

    asyncio.run(run())
    assert calls == []
