"""Wire payloads exchanged with the CrateBytes backend.

Each class knows its own JSON translation (``from_wire`` / ``to_wire``) so
callers never deal with the backend's camelCase keys. ``from_wire`` raises
``KeyError``/``TypeError``/``ValueError`` on a payload of the wrong shape;
the envelope decoder turns those into decode failures.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def _safe_int(value, default: int = 0) -> int:
    try:
        if value is None:
            return default
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return default


def parse_timestamp(value) -> Optional[datetime]:
    """Accept ISO-8601 strings (with a trailing ``Z``) or epoch seconds."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError) as exc:
            raise ValueError(f"timestamp out of range: {value!r}") from exc
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


def _require_mapping(payload: Any, name: str) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise TypeError(f"{name} payload must be an object, got {type(payload).__name__}")
    return payload


@dataclass
class AuthResponse:
    token: str
    player_id: str
    sequential_id: int = 0
    steam_id: Optional[str] = None

    @staticmethod
    def from_wire(payload: Any) -> "AuthResponse":
        payload = _require_mapping(payload, "auth")
        token = payload["token"]
        player_id = payload["playerId"]
        if not token or not player_id:
            raise ValueError("auth payload is missing token or playerId")
        return AuthResponse(
            token=str(token),
            player_id=str(player_id),
            sequential_id=_safe_int(payload.get("sequentialId"), 0),
            steam_id=payload.get("steamId"),
        )


@dataclass
class SessionData:
    id: str
    player_id: str
    start_time: Optional[datetime] = None
    last_heartbeat: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @staticmethod
    def from_wire(payload: Any) -> "SessionData":
        payload = _require_mapping(payload, "session")
        session_id = payload["id"]
        if not session_id:
            raise ValueError("session payload is missing id")
        return SessionData(
            id=str(session_id),
            player_id=str(payload.get("playerId") or ""),
            start_time=parse_timestamp(payload.get("startTime")),
            last_heartbeat=parse_timestamp(payload.get("lastHeartbeat")),
            end_time=parse_timestamp(payload.get("endTime")),
        )

    def to_wire(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "playerId": self.player_id,
            "startTime": format_timestamp(self.start_time),
            "lastHeartbeat": format_timestamp(self.last_heartbeat),
            "endTime": format_timestamp(self.end_time),
        }


@dataclass
class LeaderboardInfo:
    id: str = ""
    name: str = ""
    description: str = ""

    @staticmethod
    def from_wire(payload: Optional[Dict[str, Any]]) -> "LeaderboardInfo":
        if payload is None:
            return LeaderboardInfo()
        payload = _require_mapping(payload, "leaderboard")
        return LeaderboardInfo(
            id=str(payload.get("id") or ""),
            name=str(payload.get("name") or ""),
            description=str(payload.get("description") or ""),
        )


@dataclass
class PlayerInfo:
    player_id: str
    guest: bool = False
    entry_data: Optional[str] = None

    @staticmethod
    def from_wire(payload: Optional[Dict[str, Any]]) -> "PlayerInfo":
        payload = _require_mapping(payload, "player")
        entry_data = payload.get("entryData")
        # Older backends send the entry data bare, newer ones wrap it in {"data": ...}.
        if isinstance(entry_data, dict):
            entry_data = entry_data.get("data")
        return PlayerInfo(
            player_id=str(payload.get("playerId") or ""),
            guest=bool(payload.get("guest", False)),
            entry_data=entry_data,
        )


@dataclass
class LeaderboardEntry:
    player: PlayerInfo
    score: str

    @staticmethod
    def from_wire(payload: Dict[str, Any]) -> "LeaderboardEntry":
        payload = _require_mapping(payload, "entry")
        return LeaderboardEntry(
            player=PlayerInfo.from_wire(payload["player"]),
            score=str(payload.get("score", "")),
        )


@dataclass
class LeaderboardResponse:
    leaderboard: LeaderboardInfo
    entries: List[LeaderboardEntry] = field(default_factory=list)
    total_entries: int = 0
    pages: int = 0

    @staticmethod
    def from_wire(payload: Any) -> "LeaderboardResponse":
        payload = _require_mapping(payload, "leaderboard response")
        return LeaderboardResponse(
            leaderboard=LeaderboardInfo.from_wire(payload.get("leaderboard")),
            entries=[LeaderboardEntry.from_wire(entry) for entry in payload.get("entries") or []],
            total_entries=_safe_int(payload.get("totalEntries"), 0),
            pages=_safe_int(payload.get("pages"), 0),
        )


@dataclass
class ScoreSubmissionResponse:
    message: str = ""

    @staticmethod
    def from_wire(payload: Any) -> "ScoreSubmissionResponse":
        if isinstance(payload, str):
            return ScoreSubmissionResponse(message=payload)
        payload = _require_mapping(payload, "score submission")
        return ScoreSubmissionResponse(message=str(payload.get("message") or ""))


def metadata_from_wire(payload: Any) -> str:
    """Metadata arrives either as the bare string or as ``{"data": string}``."""
    if isinstance(payload, str):
        return payload
    payload = _require_mapping(payload, "metadata")
    value = payload["data"]
    if value is None:
        raise ValueError("metadata payload has no data")
    if not isinstance(value, str):
        raise TypeError(f"metadata data must be a string, got {type(value).__name__}")
    return value
