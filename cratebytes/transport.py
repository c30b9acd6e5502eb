"""HTTP transport: one request in, one normalized result out."""
from __future__ import annotations

import asyncio
import functools
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Union

import requests

from cratebytes.config import REQUEST_TIMEOUT


class TransportErrorKind(Enum):
    CONNECTION_ERROR = "ConnectionError"
    PROTOCOL_ERROR = "ProtocolError"


@dataclass(frozen=True)
class TransportOk:
    """A response was obtained, whatever its status code."""

    status_code: int
    body: str
    reason: str = ""


@dataclass(frozen=True)
class TransportErr:
    """No response was obtained."""

    kind: TransportErrorKind
    detail: str = ""


TransportResult = Union[TransportOk, TransportErr]


class Transport(Protocol):
    async def send(
        self,
        method: str,
        url: str,
        json_body: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> TransportResult:
        ...


class RequestsTransport:
    """
    Transport backed by a pooled ``requests.Session``.

    ``requests`` is blocking, so each call runs in the loop's default executor
    and the awaiting coroutine resumes on the loop once the call settles.
    No retries: a timeout is reported as a connection error.
    """

    def __init__(self, timeout: float = REQUEST_TIMEOUT, session: Optional[requests.Session] = None) -> None:
        self.timeout = timeout
        self.session = session or requests.Session()

    async def send(
        self,
        method: str,
        url: str,
        json_body: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> TransportResult:
        loop = asyncio.get_running_loop()
        call = functools.partial(self._send_blocking, method, url, json_body, headers)
        return await loop.run_in_executor(None, call)

    def _send_blocking(
        self,
        method: str,
        url: str,
        json_body: Optional[Any],
        headers: Optional[Dict[str, str]],
    ) -> TransportResult:
        try:
            response = self.session.request(
                method,
                url,
                json=json_body,
                headers=headers,
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            return TransportErr(TransportErrorKind.CONNECTION_ERROR, str(exc))
        except requests.RequestException as exc:
            return TransportErr(TransportErrorKind.PROTOCOL_ERROR, str(exc))
        return TransportOk(status_code=response.status_code, body=response.text, reason=response.reason or "")

    def close(self) -> None:
        self.session.close()
