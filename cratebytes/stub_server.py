"""In-memory Flask stand-in for the CrateBytes backend.

Implements the public wire contract (auth, session, leaderboard, metadata)
closely enough for offline development and contract tests. Nothing is
persisted across restarts.
"""
from __future__ import annotations

import itertools
import os
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from flask import Flask, jsonify, request

PAGE_SIZE = 10


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def ok(data=None, status: int = 200):
    payload = {"statusCode": status}
    if data is not None:
        payload["data"] = data
    return jsonify(payload), status


def error(message: str, status: int):
    return jsonify({"statusCode": status, "error": {"message": message}}), status


@dataclass
class StubPlayer:
    player_id: str
    sequential_id: int
    guest: bool = True
    steam_id: Optional[str] = None
    metadata: Optional[str] = None


@dataclass
class StubBackend:
    public_key: Optional[str] = None
    players: Dict[str, StubPlayer] = field(default_factory=dict)
    tokens: Dict[str, str] = field(default_factory=dict)
    sessions: Dict[str, Dict] = field(default_factory=dict)
    scores: Dict[str, Dict[str, str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self._sequence = itertools.count(1)

    def register(self, player_id: Optional[str], steam_id: Optional[str] = None) -> StubPlayer:
        if player_id and player_id in self.players:
            return self.players[player_id]
        player = StubPlayer(
            player_id=player_id or str(uuid.uuid4()),
            sequential_id=next(self._sequence),
            guest=steam_id is None,
            steam_id=steam_id,
        )
        self.players[player.player_id] = player
        return player

    def issue_token(self, player: StubPlayer) -> str:
        token = secrets.token_hex(16)
        self.tokens[token] = player.player_id
        return token

    def revoke(self, token: str) -> None:
        self.tokens.pop(token, None)

    def player_for(self, authorization: Optional[str]) -> Optional[StubPlayer]:
        if not authorization or not authorization.startswith("Bearer "):
            return None
        player_id = self.tokens.get(authorization[len("Bearer "):])
        return self.players.get(player_id) if player_id else None

    def auth_payload(self, player: StubPlayer, token: str) -> Dict:
        return {
            "token": token,
            "playerId": player.player_id,
            "sequentialId": player.sequential_id,
            "steamId": player.steam_id,
        }


def create_app(public_key: Optional[str] = None) -> Flask:
    app = Flask(__name__)
    backend = StubBackend(public_key=public_key)
    app.config["BACKEND"] = backend

    def key_ok(body: Dict) -> bool:
        return backend.public_key is None or body.get("publicKey") == backend.public_key

    def current_player() -> Optional[StubPlayer]:
        return backend.player_for(request.headers.get("Authorization"))

    @app.post("/auth/guest")
    def guest_login():
        body = request.get_json(silent=True) or {}
        if not key_ok(body):
            return error("Invalid public key", 401)
        player = backend.register(body.get("playerId"))
        return ok(backend.auth_payload(player, backend.issue_token(player)))

    @app.post("/auth/steam")
    def steam_login():
        body = request.get_json(silent=True) or {}
        if not key_ok(body):
            return error("Invalid public key", 401)
        ticket = body.get("steamAuthTicket")
        if not ticket:
            return error("Missing steamAuthTicket", 400)
        steam_id = f"steam-{ticket}"
        existing = next((p for p in backend.players.values() if p.steam_id == steam_id), None)
        player = existing or backend.register(None, steam_id=steam_id)
        return ok(backend.auth_payload(player, backend.issue_token(player)))

    @app.post("/session/start")
    def session_start():
        player = current_player()
        if player is None:
            return error("Unauthorized", 401)
        now = _now()
        session = {
            "id": str(uuid.uuid4()),
            "playerId": player.player_id,
            "startTime": now,
            "lastHeartbeat": now,
            "endTime": None,
        }
        backend.sessions[player.player_id] = session
        return ok(session)

    @app.post("/session/heartbeat")
    def session_heartbeat():
        player = current_player()
        if player is None:
            return error("Unauthorized", 401)
        session = backend.sessions.get(player.player_id)
        if session is None:
            return error("No active session", 404)
        session["lastHeartbeat"] = _now()
        return ok(session)

    @app.post("/session/stop")
    def session_stop():
        player = current_player()
        if player is None:
            return error("Unauthorized", 401)
        session = backend.sessions.pop(player.player_id, None)
        if session is None:
            return error("No active session", 404)
        session["endTime"] = _now()
        return ok(session)

    @app.get("/leaderboard/<leaderboard_id>")
    def leaderboard(leaderboard_id: str):
        if current_player() is None:
            return error("Unauthorized", 401)
        page = max(1, request.args.get("page", default=1, type=int))
        board = backend.scores.get(leaderboard_id, {})
        ranked: List = sorted(board.items(), key=lambda item: float(item[1]), reverse=True)
        chunk = ranked[(page - 1) * PAGE_SIZE : page * PAGE_SIZE]
        entries = []
        for player_id, score in chunk:
            player = backend.players[player_id]
            entries.append(
                {
                    "player": {"playerId": player_id, "guest": player.guest, "entryData": {"data": player.metadata}},
                    "score": score,
                }
            )
        return ok(
            {
                "leaderboard": {"id": leaderboard_id, "name": leaderboard_id, "description": ""},
                "entries": entries,
                "totalEntries": len(ranked),
                "pages": max(1, -(-len(ranked) // PAGE_SIZE)),
            }
        )

    @app.post("/leaderboard/<leaderboard_id>")
    def submit_score(leaderboard_id: str):
        player = current_player()
        if player is None:
            return error("Unauthorized", 401)
        body = request.get_json(silent=True) or {}
        score = body.get("score")
        try:
            float(score)
        except (TypeError, ValueError):
            return error("Score must be numeric", 400)
        board = backend.scores.setdefault(leaderboard_id, {})
        previous = board.get(player.player_id)
        if previous is None or float(score) > float(previous):
            board[player.player_id] = str(score)
        return ok({"message": "Score submitted"})

    @app.get("/metadata")
    def get_metadata():
        player = current_player()
        if player is None:
            return error("Unauthorized", 401)
        return ok({"data": player.metadata if player.metadata is not None else "{}"})

    @app.get("/metadata/<int:sequential_id>")
    def get_metadata_by_sequential_id(sequential_id: int):
        if current_player() is None:
            return error("Unauthorized", 401)
        player = next((p for p in backend.players.values() if p.sequential_id == sequential_id), None)
        if player is None:
            return error("Player not found", 404)
        return ok({"data": player.metadata if player.metadata is not None else "{}"})

    @app.post("/metadata")
    def set_metadata():
        player = current_player()
        if player is None:
            return error("Unauthorized", 401)
        body = request.get_json(silent=True) or {}
        data = body.get("data")
        if not isinstance(data, str):
            return error("data must be a string", 400)
        player.metadata = data
        return ok({"data": data})

    @app.delete("/metadata")
    def delete_metadata():
        player = current_player()
        if player is None:
            return error("Unauthorized", 401)
        player.metadata = None
        return ok({"data": "{}"})

    return app


if __name__ == "__main__":
    stub = create_app(os.getenv("CRATEBYTES_PUBLIC_KEY") or None)
    stub.run(host="127.0.0.1", port=int(os.getenv("CRATEBYTES_STUB_PORT", "5000")), debug=True)
