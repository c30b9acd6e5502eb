"""SDK context object wiring configuration, token, transport and services."""
from __future__ import annotations

import dataclasses
from typing import Optional

from cratebytes.auth_token import AuthTokenHolder
from cratebytes.config import DEFAULT_STORE_PATH, SdkSettings, load_settings
from cratebytes.dispatch import RequestDispatcher
from cratebytes.logger import SdkLogger
from cratebytes.services import AuthService, HeartbeatHandle, LeaderboardService, MetadataService, SessionSupervisor
from cratebytes.services.session import FailureCallback
from cratebytes.storage import JsonFileStore, KeyValueStore
from cratebytes.transport import RequestsTransport, Transport


class CrateBytesSDK:
    """
    One instance per host application, passed by reference to whoever needs it.

    Construction restores the saved token (no server round trip). ``close()``
    disarms the heartbeat and releases the HTTP connection pool.
    """

    def __init__(
        self,
        settings: Optional[SdkSettings] = None,
        store: Optional[KeyValueStore] = None,
        transport: Optional[Transport] = None,
        logger: Optional[SdkLogger] = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.logger = logger or SdkLogger(self.settings.enable_logging)
        self.store = store if store is not None else JsonFileStore(self.settings.store_path or DEFAULT_STORE_PATH)
        self._owns_transport = transport is None
        self.transport = transport or RequestsTransport(timeout=self.settings.request_timeout)
        self._closed = False

        self.tokens = AuthTokenHolder(self.store, self.logger)
        self.dispatcher = RequestDispatcher(self.settings, self.transport, self.tokens, self.logger)
        self.auth = AuthService(self.dispatcher, self.tokens)
        self.session = SessionSupervisor(
            self.dispatcher,
            heartbeat_interval=self.settings.heartbeat_interval,
            session_timeout=self.settings.session_timeout,
            logger=self.logger,
        )
        self.leaderboard = LeaderboardService(self.dispatcher)
        self.metadata = MetadataService(self.dispatcher)

        if self.auth.try_auto_login():
            self.logger.log("Auto-login attempted with saved credentials")

    def initialize(self, base_url: str, public_key: str) -> None:
        self.settings = dataclasses.replace(self.settings, base_url=base_url, public_key=public_key)
        self.dispatcher.settings = self.settings

    def is_configured(self) -> bool:
        return self.settings.is_configured()

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------
    def set_auth_token(self, token: str, player_id: str, sequential_id: int = 0) -> None:
        self.tokens.set_token(token, player_id, sequential_id)

    def clear_auth_token(self) -> None:
        self.tokens.clear_token()

    def get_auth_token(self) -> Optional[str]:
        return self.tokens.get_token()

    def is_authenticated(self) -> bool:
        return self.tokens.is_authenticated()

    # ------------------------------------------------------------------
    # Heartbeat arming
    # ------------------------------------------------------------------
    def start_heartbeat(self, on_failure: Optional[FailureCallback] = None) -> HeartbeatHandle:
        if self._closed:
            raise RuntimeError("CrateBytesSDK is closed")
        return self.session.arm_heartbeat(on_failure=on_failure)

    def stop_heartbeat(self) -> None:
        self.session.disarm_heartbeat()

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------
    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.session.disarm_heartbeat()
        if self._owns_transport and isinstance(self.transport, RequestsTransport):
            self.transport.close()

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> "CrateBytesSDK":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()
