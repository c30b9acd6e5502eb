"""Per-player metadata: an opaque string, usually itself JSON."""
from __future__ import annotations

import json
from typing import Any, Callable, Optional, TypeVar

from cratebytes.dispatch import RequestDispatcher
from cratebytes.envelope import ErrorKind, ResponseEnvelope, failure
from cratebytes.models import metadata_from_wire

T = TypeVar("T")


class MetadataService:
    def __init__(self, dispatcher: RequestDispatcher) -> None:
        self.dispatcher = dispatcher

    async def get_player_data(self) -> ResponseEnvelope[str]:
        response = await self.dispatcher.get("/metadata", metadata_from_wire)
        return response.require_data()

    async def get_player_data_by_sequential_id(self, sequential_id: int) -> ResponseEnvelope[str]:
        response = await self.dispatcher.get(f"/metadata/{int(sequential_id)}", metadata_from_wire)
        return response.require_data()

    async def get_player_data_as(self, parse: Optional[Callable[[Any], T]] = None) -> ResponseEnvelope[T]:
        """Fetch the metadata string and decode the JSON it carries.

        ``parse`` is applied to the decoded value when given.
        """
        response = await self.get_player_data()
        if not response.ok:
            return ResponseEnvelope(success=False, status_code=response.status_code, error=response.error)
        self.dispatcher.logger.log(f"Raw metadata string: {response.data}")
        try:
            value = json.loads(response.data)
            if parse is not None:
                value = parse(value)
        except (KeyError, TypeError, ValueError, OverflowError) as exc:
            self.dispatcher.logger.error(f"Deserialization error: {exc}")
            return failure(response.status_code, f"Failed to deserialize data: {exc}", ErrorKind.DECODE)
        return ResponseEnvelope(success=True, status_code=response.status_code, data=value)

    async def set_player_data(self, data: str) -> ResponseEnvelope[str]:
        response = await self.dispatcher.post("/metadata", {"data": data}, metadata_from_wire)
        return response.require_data()

    async def set_player_data_object(self, value: Any) -> ResponseEnvelope[str]:
        return await self.set_player_data(json.dumps(value))

    async def delete_player_data(self) -> ResponseEnvelope[Optional[str]]:
        # The backend may answer with 204 and no payload.
        response = await self.dispatcher.delete("/metadata")
        if response.ok:
            try:
                return response.map(metadata_from_wire)
            except (KeyError, TypeError, ValueError):
                return ResponseEnvelope(success=True, status_code=response.status_code)
        return response
