"""Leaderboard reads and score submission."""
from __future__ import annotations

from typing import Union
from urllib.parse import quote

from cratebytes.dispatch import RequestDispatcher
from cratebytes.envelope import ResponseEnvelope
from cratebytes.models import LeaderboardResponse, ScoreSubmissionResponse


class LeaderboardService:
    def __init__(self, dispatcher: RequestDispatcher) -> None:
        self.dispatcher = dispatcher

    async def get_leaderboard(self, leaderboard_id: str, page: int = 1) -> ResponseEnvelope[LeaderboardResponse]:
        endpoint = f"/leaderboard/{quote(str(leaderboard_id), safe='')}?page={int(page)}"
        response = await self.dispatcher.get(endpoint, LeaderboardResponse.from_wire)
        return response.require_data()

    async def get_player_leaderboard(self, leaderboard_id: str, page: int = 1) -> ResponseEnvelope[LeaderboardResponse]:
        return await self.get_leaderboard(leaderboard_id, page)

    async def submit_score(
        self, leaderboard_id: str, score: Union[int, str]
    ) -> ResponseEnvelope[ScoreSubmissionResponse]:
        # Scores travel as strings so large or formatted values survive untouched.
        endpoint = f"/leaderboard/{quote(str(leaderboard_id), safe='')}"
        response = await self.dispatcher.post(endpoint, {"score": str(score)}, ScoreSubmissionResponse.from_wire)
        return response.require_data()
