"""
Device Session Manager.

Owns at most one live stream per device kind. Every exit path (explicit stop,
post-capture release, teardown, device lost) goes through `stop(kind)`, which
is idempotent.
"""
from __future__ import annotations
import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Set

from core.config import Settings
from core.devices import MediaDevices, MediaStream, constraints_for
from core.errors import DeviceUnavailable, PermissionDenied
from core.models import DeviceKind

logger = logging.getLogger(__name__)

OnEnded = Callable[[], Awaitable[object]]

_DEVICE_LABEL: Dict[DeviceKind, str] = {"video": "camera", "audio": "microphone"}


@dataclass
class Session:
    kind: DeviceKind
    handle: Optional[MediaStream]
    active: bool = True


class DeviceSessionManager:
    """Acquire/release camera and microphone streams; use as `async with` for teardown."""

    def __init__(self, devices: MediaDevices, settings: Settings):
        self.devices = devices
        self.s = settings
        self._sessions: Dict[DeviceKind, Session] = {}
        self._locks: Dict[DeviceKind, asyncio.Lock] = {"video": asyncio.Lock(), "audio": asyncio.Lock()}
        self._background_tasks: Set[asyncio.Task] = set()

    # ---- queries ----
    def get(self, kind: DeviceKind) -> Optional[Session]:
        session = self._sessions.get(kind)
        return session if session is not None and session.active else None

    def is_active(self, kind: DeviceKind) -> bool:
        return self.get(kind) is not None

    # ---- lifecycle ----
    async def start(self, kind: DeviceKind, on_ended: Optional[OnEnded] = None) -> Session:
        """
        Acquire the device for `kind`. No-op (returns the live session) if one is active.

        Raises:
            PermissionDenied: the user/OS refused access.
            DeviceUnavailable: no such device or it failed to open.
        """
        async with self._locks[kind]:
            current = self.get(kind)
            if current is not None:
                logger.debug(f"[session] start({kind}) ignored; session already active")
                return current

            label = _DEVICE_LABEL[kind]
            constraints = constraints_for(kind, self.s)
            logger.debug(f"[session] requesting {label} constraints={constraints.model_dump()}")
            try:
                stream = await self.devices.get_user_media(kind, constraints)
            except PermissionError as e:
                logger.exception(f"[session] {label} permission denied")
                raise PermissionDenied(
                    f"Could not access {label}. Please check permissions.", log_message=str(e)
                ) from e
            except Exception as e:
                logger.exception(f"[session] {label} unavailable")
                raise DeviceUnavailable(
                    f"Could not access {label}. Please check that it is connected.", log_message=str(e)
                ) from e

            session = Session(kind=kind, handle=stream)
            loop = asyncio.get_running_loop()
            stream.add_ended_callback(
                lambda: loop.call_soon_threadsafe(self._on_track_ended, session, on_ended)
            )
            self._sessions[kind] = session
            logger.debug(f"[session] {label} session active")
            return session

    def stop(self, kind: DeviceKind) -> bool:
        """Stop every track of the `kind` session and drop the handle. Returns False if nothing was live."""
        session = self._sessions.pop(kind, None)
        if session is None or not session.active:
            return False
        session.active = False
        handle, session.handle = session.handle, None
        if handle is not None:
            try:
                handle.stop()
            except Exception:
                logger.exception(f"[session] error while releasing {kind} handle")
        logger.debug(f"[session] {_DEVICE_LABEL[kind]} session stopped")
        return True

    async def close(self) -> None:
        """Teardown: release every device and cancel pending ended-handlers."""
        for kind in list(self._sessions):
            self.stop(kind)
        tasks = list(self._background_tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("[session] ended-handler failed during close")
        self._background_tasks.clear()

    async def __aenter__(self) -> "DeviceSessionManager":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    # ---- device lost ----
    def _on_track_ended(self, session: Session, on_ended: Optional[OnEnded]) -> None:
        if not session.active or self._sessions.get(session.kind) is not session:
            return
        logger.warning(f"[session] {session.kind} device lost; treating as stop")
        if on_ended is None:
            self.stop(session.kind)
            return
        task = asyncio.create_task(on_ended(), name=f"{session.kind}-ended")
        self._background_tasks.add(task)
        task.add_done_callback(functools.partial(self._ended_task_done, session))

    def _ended_task_done(self, session: Session, task: asyncio.Task) -> None:
        self._background_tasks.discard(task)
        # owner normally releases the device itself; make sure it happened
        if session.active and self._sessions.get(session.kind) is session:
            self.stop(session.kind)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"[session] ended-handler raised {exc!r}")
