"""Session supervisor state machine and heartbeat scheduling."""
from __future__ import annotations

import asyncio
import unittest
from datetime import datetime, timedelta, timezone
from unittest import mock

from cratebytes.errors import NotAuthenticatedError
from cratebytes.sdk import CrateBytesSDK
from cratebytes.services.session import NO_ACTIVE_SESSION, SessionState
from cratebytes.storage import InMemoryStore

from .fakes import CONNECTION_DOWN, FakeTransport, GatedTransport, authenticated_store, make_settings, reply, session_payload

INTERVAL = 0.01


async def wait_for_calls(transport: FakeTransport, count: int, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while len(transport.calls) < count:
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError(f"expected {count} calls, saw {len(transport.calls)}")
        await asyncio.sleep(INTERVAL / 2)


class SessionTestCase(unittest.IsolatedAsyncioTestCase):
    transport_class = FakeTransport

    def setUp(self) -> None:
        self.transport = self.transport_class()
        self.sdk = CrateBytesSDK(
            settings=make_settings(heartbeat_interval=INTERVAL),
            store=authenticated_store(),
            transport=self.transport,
        )
        self.session = self.sdk.session

    def tearDown(self) -> None:
        self.sdk.close()

    async def start_session(self, session_id: str = "s1") -> None:
        self.transport.queue(reply(200, data=session_payload(session_id)))
        response = await self.session.start()
        self.assertTrue(response.ok)


class LifecycleTest(SessionTestCase):
    async def test_initial_state(self) -> None:
        self.assertIs(self.session.state, SessionState.INACTIVE)
        self.assertIsNone(self.session.current_session)
        self.assertFalse(self.session.heartbeat_armed)

    async def test_start_activates(self) -> None:
        await self.start_session()

        self.assertIs(self.session.state, SessionState.ACTIVE)
        self.assertEqual(self.session.current_session.id, "s1")
        self.assertEqual(self.transport.paths, ["/session/start"])
        self.assertEqual(self.transport.calls[0].headers["Authorization"], "Bearer tok123")
        # Arming is a separate step.
        self.assertFalse(self.session.heartbeat_armed)

    async def test_start_failure_stays_inactive(self) -> None:
        self.transport.queue(reply(403, error="banned"))

        response = await self.session.start()

        self.assertFalse(response.success)
        self.assertEqual(response.error_message, "banned")
        self.assertIs(self.session.state, SessionState.INACTIVE)

    async def test_start_with_out_of_range_timestamp_stays_inactive(self) -> None:
        self.transport.queue(reply(200, data=session_payload(ts=1e20)))

        response = await self.session.start()

        self.assertFalse(response.success)
        self.assertTrue(response.error_message.startswith("Failed to parse response: "))
        self.assertIs(self.session.state, SessionState.INACTIVE)

    async def test_start_success_without_data_is_failure(self) -> None:
        self.transport.queue(reply(200))

        response = await self.session.start()

        self.assertFalse(response.success)
        self.assertEqual(response.error_message, "Failed to get a valid response from the API")
        self.assertFalse(self.session.is_active)

    async def test_start_without_token_raises(self) -> None:
        sdk = CrateBytesSDK(settings=make_settings(), store=InMemoryStore(), transport=self.transport)

        with self.assertRaises(NotAuthenticatedError):
            await sdk.session.start()
        self.assertEqual(self.transport.calls, [])

    async def test_start_while_active_replaces_session(self) -> None:
        await self.start_session("s1")
        await self.start_session("s2")

        self.assertTrue(self.session.is_active)
        self.assertEqual(self.session.current_session.id, "s2")

    async def test_heartbeat_success_refreshes(self) -> None:
        await self.start_session()
        refreshed = session_payload(ts="2024-05-01T10:00:00Z")
        refreshed["lastHeartbeat"] = "2024-05-01T10:01:00Z"
        self.transport.queue(reply(200, data=refreshed))

        response = await self.session.heartbeat()

        self.assertTrue(response.ok)
        self.assertTrue(self.session.is_active)
        self.assertEqual(self.session.current_session.last_heartbeat.minute, 1)

    async def test_heartbeat_failure_ends_session(self) -> None:
        await self.start_session()
        self.transport.queue(reply(401, error="expired"))

        response = await self.session.heartbeat()

        self.assertFalse(response.success)
        self.assertEqual(response.error_message, "expired")
        self.assertIs(self.session.state, SessionState.INACTIVE)
        self.assertIsNone(self.session.current_session)

    async def test_heartbeat_when_inactive_makes_no_call(self) -> None:
        response = await self.session.heartbeat()

        self.assertFalse(response.success)
        self.assertEqual(response.error_message, NO_ACTIVE_SESSION)
        self.assertEqual(self.transport.calls, [])

    async def test_stop_deactivates(self) -> None:
        await self.start_session()
        self.transport.queue(reply(200, data=dict(session_payload(), endTime="2024-05-01T11:00:00Z")))

        response = await self.session.stop()

        self.assertTrue(response.success)
        self.assertIs(self.session.state, SessionState.INACTIVE)
        self.assertEqual(self.transport.paths, ["/session/start", "/session/stop"])

    async def test_stop_failure_still_deactivates(self) -> None:
        await self.start_session()
        self.transport.queue(CONNECTION_DOWN)

        response = await self.session.stop()

        self.assertFalse(response.success)
        self.assertIs(self.session.state, SessionState.INACTIVE)

    async def test_stop_when_inactive_makes_no_call(self) -> None:
        response = await self.session.stop()

        self.assertFalse(response.success)
        self.assertEqual(self.transport.calls, [])

    async def test_force_stop_is_idempotent(self) -> None:
        self.session.force_stop()
        self.session.force_stop()

        self.assertIs(self.session.state, SessionState.INACTIVE)
        self.assertEqual(self.transport.calls, [])

    async def test_force_stop_is_local(self) -> None:
        await self.start_session()

        self.session.force_stop()

        self.assertIs(self.session.state, SessionState.INACTIVE)
        self.assertEqual(self.transport.paths, ["/session/start"])

    async def test_is_stale(self) -> None:
        await self.start_session()
        last = self.session.current_session.last_heartbeat

        self.assertFalse(self.session.is_stale(now=last + timedelta(seconds=10)))
        self.assertTrue(self.session.is_stale(now=last + timedelta(seconds=301)))

        self.session.force_stop()
        self.assertFalse(self.session.is_stale(now=datetime.now(timezone.utc)))


class HeartbeatSchedulingTest(SessionTestCase):
    async def test_failed_heartbeat_disarms_and_reports_once(self) -> None:
        await self.start_session()
        self.transport.queue(reply(200, data=session_payload()), reply(401, error="expired"))
        failures = []

        def on_failure(response):
            # The session is already gone when the callback runs.
            failures.append((response.error_message, self.session.state))

        handle = self.session.arm_heartbeat(on_failure=on_failure)
        await asyncio.wait_for(handle.wait(), timeout=2)

        self.assertEqual(failures, [("expired", SessionState.INACTIVE)])
        self.assertFalse(handle.armed)
        self.assertFalse(self.session.heartbeat_armed)
        self.assertEqual(self.transport.paths, ["/session/start", "/session/heartbeat", "/session/heartbeat"])

        await asyncio.sleep(INTERVAL * 5)
        self.assertEqual(len(self.transport.calls), 3)

    async def test_async_failure_callback_is_awaited(self) -> None:
        await self.start_session()
        self.transport.queue(CONNECTION_DOWN)
        seen = asyncio.Event()

        async def on_failure(response):
            seen.set()

        handle = self.session.arm_heartbeat(on_failure=on_failure)
        await asyncio.wait_for(handle.wait(), timeout=2)

        self.assertTrue(seen.is_set())
        self.assertFalse(self.session.is_active)

    async def test_raising_tick_ends_session_and_reports_once(self) -> None:
        await self.start_session()
        failures = []

        with mock.patch.object(self.session, "heartbeat", mock.AsyncMock(side_effect=RuntimeError("boom"))):
            handle = self.session.arm_heartbeat(on_failure=failures.append)
            await asyncio.wait_for(handle.wait(), timeout=2)

        self.assertTrue(handle._task.done())
        self.assertIsNone(handle._task.exception())
        self.assertEqual(len(failures), 1)
        self.assertEqual(failures[0].error_message, "Heartbeat failed: boom")
        self.assertFalse(handle.armed)
        self.assertFalse(self.session.is_active)

    async def test_raising_failure_callback_does_not_escape(self) -> None:
        await self.start_session()
        self.transport.queue(CONNECTION_DOWN)

        def on_failure(response):
            raise RuntimeError("callback broke")

        handle = self.session.arm_heartbeat(on_failure=on_failure)
        await asyncio.wait_for(handle.wait(), timeout=2)

        self.assertIsNone(handle._task.exception())
        self.assertFalse(handle.armed)
        self.assertFalse(self.session.is_active)

    async def test_disarm_stops_ticks(self) -> None:
        await self.start_session()
        self.transport.queue(*[reply(200, data=session_payload()) for _ in range(50)])

        handle = self.session.arm_heartbeat()
        await wait_for_calls(self.transport, 3)
        self.session.disarm_heartbeat()
        await asyncio.sleep(0)
        count = len(self.transport.calls)
        await asyncio.sleep(INTERVAL * 5)

        self.assertFalse(handle.armed)
        self.assertEqual(len(self.transport.calls), count)
        self.assertTrue(self.session.is_active)

    async def test_rearming_replaces_previous_handle(self) -> None:
        await self.start_session()
        self.transport.queue(*[reply(200, data=session_payload()) for _ in range(50)])

        first = self.session.arm_heartbeat(interval=10)
        second = self.session.arm_heartbeat()
        await asyncio.sleep(0)

        self.assertFalse(first.armed)
        self.assertTrue(second.armed)

    async def test_stop_disarms(self) -> None:
        await self.start_session()
        handle = self.session.arm_heartbeat(interval=10)
        self.transport.queue(reply(200, data=session_payload()))

        await self.session.stop()
        await asyncio.sleep(0)

        self.assertFalse(handle.armed)
        self.assertFalse(self.session.is_active)

    async def test_arming_without_session_does_nothing(self) -> None:
        handle = self.session.arm_heartbeat()
        await asyncio.wait_for(handle.wait(), timeout=2)

        self.assertEqual(self.transport.calls, [])

    async def test_logout_mid_session_ends_it_on_next_tick(self) -> None:
        await self.start_session()
        failures = []
        handle = self.session.arm_heartbeat(on_failure=failures.append)

        self.sdk.auth.logout()
        await asyncio.wait_for(handle.wait(), timeout=2)

        self.assertEqual(len(failures), 1)
        self.assertFalse(self.session.is_active)
        self.assertEqual(self.transport.paths, ["/session/start"])

    async def test_closing_sdk_disarms(self) -> None:
        await self.start_session()
        handle = self.sdk.start_heartbeat()

        self.sdk.close()
        await asyncio.sleep(INTERVAL * 5)

        self.assertFalse(handle.armed)
        self.assertEqual(self.transport.paths, ["/session/start"])
        with self.assertRaises(RuntimeError):
            self.sdk.start_heartbeat()


class InFlightTest(SessionTestCase):
    transport_class = GatedTransport

    async def start_session(self, session_id: str = "s1") -> None:
        self.transport.release()
        await super().start_session(session_id)
        self.transport.gate.clear()
        self.transport.entered.clear()

    async def test_late_heartbeat_does_not_resurrect_session(self) -> None:
        await self.start_session()
        self.transport.queue(reply(200, data=session_payload()))

        pending = asyncio.ensure_future(self.session.heartbeat())
        await self.transport.entered.wait()
        self.session.force_stop()
        self.transport.release()
        response = await pending

        self.assertTrue(response.success)
        self.assertIs(self.session.state, SessionState.INACTIVE)
        self.assertIsNone(self.session.current_session)

    async def test_late_failure_does_not_end_replacement_session(self) -> None:
        await self.start_session("s1")
        self.transport.queue(reply(401, error="expired"))

        pending = asyncio.ensure_future(self.session.heartbeat())
        await self.transport.entered.wait()
        self.session.force_stop()
        # Start a replacement session while the old heartbeat is still out.
        self.transport.results.insert(0, reply(200, data=session_payload("s2")))
        self.transport.release()
        started = await self.session.start()
        await pending

        self.assertTrue(started.ok)
        self.assertTrue(self.session.is_active)
        self.assertEqual(self.session.current_session.id, "s2")

    async def test_disarm_abandons_in_flight_tick(self) -> None:
        await self.start_session()
        before = self.session.current_session
        self.transport.queue(reply(401, error="expired"))
        failures = []

        handle = self.session.arm_heartbeat(on_failure=failures.append)
        await asyncio.wait_for(self.transport.entered.wait(), timeout=2)
        self.session.disarm_heartbeat()
        self.transport.release()
        await handle.wait()
        await asyncio.sleep(INTERVAL * 3)

        self.assertEqual(failures, [])
        self.assertTrue(self.session.is_active)
        self.assertIs(self.session.current_session, before)


if __name__ == "__main__":
    unittest.main()
