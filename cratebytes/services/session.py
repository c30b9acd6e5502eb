"""Session lifecycle and heartbeat supervision.

The supervisor owns the only piece of client-side session state. It moves
between ``INACTIVE`` and ``ACTIVE``:

* ``start()`` succeeding activates it and stores the returned ``SessionData``.
* ``heartbeat()`` succeeding refreshes the stored data; failing deactivates it.
* ``stop()`` deactivates it whatever the server answers.
* ``force_stop()`` deactivates it locally without a network call.

Heartbeats are scheduled only when the host arms them (``arm_heartbeat``),
never as a side effect of ``start()``. Deactivation always disarms.

All operations are expected to run on one event loop and to be issued
serially: do not start a second session operation while one is outstanding.
"""
from __future__ import annotations

import asyncio
import inspect
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from cratebytes.config import HEARTBEAT_INTERVAL, SESSION_TIMEOUT
from cratebytes.dispatch import RequestDispatcher
from cratebytes.envelope import ErrorKind, ResponseEnvelope, failure
from cratebytes.logger import SdkLogger
from cratebytes.models import SessionData

FailureCallback = Callable[[ResponseEnvelope[SessionData]], Union[None, Awaitable[None]]]

NO_ACTIVE_SESSION = "No active session"


class SessionState(Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class HeartbeatHandle:
    """Disarm handle returned by ``SessionSupervisor.arm_heartbeat``."""

    def __init__(self, interval: float) -> None:
        self.interval = interval
        self._task: Optional[asyncio.Task] = None
        self._cancelled = False

    @property
    def armed(self) -> bool:
        return not self._cancelled and self._task is not None and not self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        task = self._task
        # The loop may disarm itself from inside a failed tick; it exits on its own.
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

    async def wait(self) -> None:
        """Wait until the repeating action has stopped."""
        if self._task is None:
            return
        # asyncio.wait leaves the task running if the waiter itself is cancelled.
        await asyncio.wait({self._task})


class SessionSupervisor:
    def __init__(
        self,
        dispatcher: RequestDispatcher,
        heartbeat_interval: float = HEARTBEAT_INTERVAL,
        session_timeout: float = SESSION_TIMEOUT,
        logger: Optional[SdkLogger] = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.heartbeat_interval = heartbeat_interval
        self.session_timeout = session_timeout
        self.logger = logger or dispatcher.logger
        self._state = SessionState.INACTIVE
        self._current: Optional[SessionData] = None
        self._heartbeat: Optional[HeartbeatHandle] = None
        # Bumped on every activation/deactivation; a response that settles in a
        # different epoch than it was issued in must not touch the state.
        self._epoch = 0

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is SessionState.ACTIVE

    @property
    def current_session(self) -> Optional[SessionData]:
        return self._current

    @property
    def heartbeat_armed(self) -> bool:
        return self._heartbeat is not None and self._heartbeat.armed

    def is_stale(self, now: Optional[datetime] = None) -> bool:
        """True when the last heartbeat is older than the session timeout."""
        if not self.is_active or self._current is None:
            return False
        last = self._current.last_heartbeat or self._current.start_time
        if last is None:
            return False
        now = now or datetime.now(timezone.utc)
        if last.tzinfo is None:
            last = last.replace(tzinfo=timezone.utc)
        return (now - last).total_seconds() > self.session_timeout

    # ------------------------------------------------------------------
    # Session lifecycle calls
    # ------------------------------------------------------------------
    async def start(self) -> ResponseEnvelope[SessionData]:
        if self.is_active:
            self.logger.warn("start() called while a session is already active; replacing session data")
        response = await self.dispatcher.post("/session/start", {}, SessionData.from_wire)
        response = response.require_data()
        if response.ok:
            self._activate(response.data)
            self.logger.log(f"Session started: {response.data.id}")
        return response

    async def heartbeat(self) -> ResponseEnvelope[SessionData]:
        if not self.is_active:
            return failure(0, NO_ACTIVE_SESSION, ErrorKind.APPLICATION)
        epoch = self._epoch
        response = await self.dispatcher.post("/session/heartbeat", {}, SessionData.from_wire)
        response = response.require_data()
        if epoch != self._epoch or not self.is_active:
            self.logger.warn("Discarding heartbeat response for a session that is no longer active")
            return response
        if response.ok:
            self._current = response.data
        else:
            self.logger.warn(f"Heartbeat failed: {response.error_message}")
            self._deactivate()
        return response

    async def stop(self) -> ResponseEnvelope[SessionData]:
        if not self.is_active:
            return failure(0, NO_ACTIVE_SESSION, ErrorKind.APPLICATION)
        self.disarm_heartbeat()
        epoch = self._epoch
        response = await self.dispatcher.post("/session/stop", {}, SessionData.from_wire)
        if not response.success:
            self.logger.warn(f"Stop session failed: {response.error_message}; ending session locally")
        if epoch == self._epoch:
            self._deactivate()
        return response

    def force_stop(self) -> None:
        """End the session locally only; no network call."""
        if self.is_active:
            self.logger.log("Session force-stopped locally")
        self._deactivate()

    # ------------------------------------------------------------------
    # Heartbeat scheduling
    # ------------------------------------------------------------------
    def arm_heartbeat(
        self,
        interval: Optional[float] = None,
        on_failure: Optional[FailureCallback] = None,
    ) -> HeartbeatHandle:
        """Schedule the repeating heartbeat on the running event loop.

        Replaces any handle armed before. ``on_failure`` is called once, after
        the session has already been deactivated, if a heartbeat fails.
        """
        self.disarm_heartbeat()
        handle = HeartbeatHandle(self.heartbeat_interval if interval is None else interval)
        if not self.is_active:
            self.logger.warn("Heartbeat armed with no active session; nothing to keep alive")
        loop = asyncio.get_running_loop()
        handle._task = loop.create_task(self._heartbeat_loop(handle, on_failure))
        self._heartbeat = handle
        return handle

    def disarm_heartbeat(self) -> None:
        handle, self._heartbeat = self._heartbeat, None
        if handle is not None:
            handle.cancel()

    async def _heartbeat_loop(self, handle: HeartbeatHandle, on_failure: Optional[FailureCallback]) -> None:
        while self.is_active and not handle.cancelled:
            await asyncio.sleep(handle.interval)
            if handle.cancelled or not self.is_active:
                break

            try:
                if self.dispatcher.tokens.is_authenticated():
                    response = await self.heartbeat()
                else:
                    self.logger.warn("Heartbeat skipped: no auth token; ending session locally")
                    response = failure(0, "Not authenticated", ErrorKind.APPLICATION)
                    self._deactivate()
            except Exception as exc:
                self.logger.error(f"Heartbeat tick failed: {exc}")
                response = failure(0, f"Heartbeat failed: {exc}", ErrorKind.APPLICATION)
                self._deactivate()

            # A failed tick has already deactivated the session and disarmed this
            # handle; a stale failure from a replaced session leaves it running.
            if not response.success and not self.is_active:
                await self._notify(on_failure, response)
                break

        if self._heartbeat is handle:
            self._heartbeat = None

    async def _notify(self, callback: Optional[FailureCallback], response: ResponseEnvelope[Any]) -> None:
        if callback is None:
            return
        try:
            result = callback(response)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            self.logger.error(f"Heartbeat failure callback raised: {exc}")

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------
    def _activate(self, session: SessionData) -> None:
        self._epoch += 1
        self._current = session
        self._state = SessionState.ACTIVE

    def _deactivate(self) -> None:
        if self._state is SessionState.ACTIVE:
            self._epoch += 1
        self._state = SessionState.INACTIVE
        self._current = None
        self.disarm_heartbeat()
