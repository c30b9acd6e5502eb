"""Shared request helper every service holds a reference to."""
from __future__ import annotations

from typing import Any, Callable, Optional, TypeVar

from cratebytes.auth_token import AuthTokenHolder
from cratebytes.config import SdkSettings
from cratebytes.envelope import ResponseEnvelope, decode_response
from cratebytes.errors import NotAuthenticatedError
from cratebytes.logger import SdkLogger
from cratebytes.transport import Transport, TransportErr

T = TypeVar("T")


class RequestDispatcher:
    """
    Hides URL and header building and response decoding.

    Keeps no business logic; state decisions stay in the services.
    """

    def __init__(
        self,
        settings: SdkSettings,
        transport: Transport,
        tokens: AuthTokenHolder,
        logger: Optional[SdkLogger] = None,
    ) -> None:
        self.settings = settings
        self.transport = transport
        self.tokens = tokens
        self.logger = logger or SdkLogger()

    def url_for(self, endpoint: str) -> str:
        base = self.settings.base_url.rstrip("/")
        if not endpoint.startswith("/"):
            endpoint = f"/{endpoint}"
        return f"{base}{endpoint}"

    async def get(
        self,
        endpoint: str,
        parse: Optional[Callable[[Any], T]] = None,
        authenticated: bool = True,
    ) -> ResponseEnvelope[T]:
        return await self.request("GET", endpoint, None, parse, authenticated)

    async def post(
        self,
        endpoint: str,
        body: Any = None,
        parse: Optional[Callable[[Any], T]] = None,
        authenticated: bool = True,
    ) -> ResponseEnvelope[T]:
        return await self.request("POST", endpoint, {} if body is None else body, parse, authenticated)

    async def delete(
        self,
        endpoint: str,
        parse: Optional[Callable[[Any], T]] = None,
        authenticated: bool = True,
    ) -> ResponseEnvelope[T]:
        return await self.request("DELETE", endpoint, None, parse, authenticated)

    async def request(
        self,
        method: str,
        endpoint: str,
        body: Any,
        parse: Optional[Callable[[Any], T]],
        authenticated: bool,
    ) -> ResponseEnvelope[T]:
        if authenticated and not self.tokens.is_authenticated():
            raise NotAuthenticatedError(endpoint)

        headers = {"Accept": "application/json"}
        if body is not None:
            headers["Content-Type"] = "application/json"
        # Read at send time so a rotated token applies to this call.
        headers.update(self.tokens.authorization_header())

        result = await self.transport.send(method, self.url_for(endpoint), body, headers)
        envelope = decode_response(result, parse)

        if isinstance(result, TransportErr):
            self.logger.error(f"{method} {endpoint} failed: {envelope.error_message}")
        elif envelope.success:
            self.logger.log(f"[{method}] {endpoint} -> {envelope.status_code}")
        else:
            self.logger.warn(f"[{method}] {endpoint} -> {envelope.status_code}: {envelope.error_message}")
        return envelope
