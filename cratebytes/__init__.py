"""Python client SDK for the CrateBytes game backend."""

from .config import SdkSettings, load_settings
from .envelope import ApiError, ErrorKind, ResponseEnvelope
from .errors import CrateBytesError, NotAuthenticatedError
from .sdk import CrateBytesSDK
from .services import SessionState
from .storage import InMemoryStore, JsonFileStore

__all__ = [
    "SdkSettings",
    "load_settings",
    "ApiError",
    "ErrorKind",
    "ResponseEnvelope",
    "CrateBytesError",
    "NotAuthenticatedError",
    "CrateBytesSDK",
    "SessionState",
    "InMemoryStore",
    "JsonFileStore",
]
