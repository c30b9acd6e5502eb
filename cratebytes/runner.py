"""Session runner exercising the SDK end to end against the configured backend."""
from __future__ import annotations

import asyncio
import os
from typing import Optional

from cratebytes.config import SdkSettings, load_settings
from cratebytes.envelope import ResponseEnvelope
from cratebytes.sdk import CrateBytesSDK


class SessionRunner:
    """Logs in, keeps a session alive for ``duration`` seconds, then stops it."""

    def __init__(self, sdk: Optional[CrateBytesSDK] = None, settings: Optional[SdkSettings] = None) -> None:
        self.sdk = sdk or CrateBytesSDK(settings or load_settings())
        self.heartbeat_failure: Optional[ResponseEnvelope] = None

    def _on_heartbeat_failure(self, response: ResponseEnvelope) -> None:
        self.heartbeat_failure = response
        self.sdk.logger.error(f"Session lost: {response.error_message}")

    async def run(self, duration: float) -> bool:
        try:
            return await self._run(duration)
        finally:
            self.sdk.close()

    async def _run(self, duration: float) -> bool:
        if not self.sdk.is_authenticated():
            login = await self.sdk.auth.guest_login()
            if not login.ok:
                self.sdk.logger.error(f"Login failed: {login.error_message}")
                return False

        started = await self.sdk.session.start()
        if not started.ok:
            self.sdk.logger.error(f"Failed to start session: {started.error_message}")
            return False

        handle = self.sdk.start_heartbeat(on_failure=self._on_heartbeat_failure)
        try:
            await asyncio.wait_for(handle.wait(), timeout=duration)
        except asyncio.TimeoutError:
            pass
        finally:
            if self.sdk.session.is_active:
                await self.sdk.session.stop()
        return self.heartbeat_failure is None


def run() -> None:
    duration = float(os.getenv("CRATEBYTES_RUN_SECONDS", "180"))
    runner = SessionRunner()
    ok = asyncio.run(runner.run(duration))
    print("=== SESSION END ===")
    if not ok:
        print("ERROR: session ended abnormally")


if __name__ == "__main__":
    run()
