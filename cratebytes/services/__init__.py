"""Backend services sharing one request dispatcher."""

from .auth import AuthService
from .leaderboard import LeaderboardService
from .metadata import MetadataService
from .session import HeartbeatHandle, SessionState, SessionSupervisor

__all__ = [
    "AuthService",
    "LeaderboardService",
    "MetadataService",
    "HeartbeatHandle",
    "SessionState",
    "SessionSupervisor",
]
