"""Exceptions raised for programmer misuse. Runtime failures are returned as envelopes."""
from __future__ import annotations


class CrateBytesError(Exception):
    pass


class NotAuthenticatedError(CrateBytesError):
    """An authenticated operation was invoked with no token present."""

    def __init__(self, endpoint: str) -> None:
        super().__init__(f"{endpoint} requires authentication; log in before calling it")
        self.endpoint = endpoint
