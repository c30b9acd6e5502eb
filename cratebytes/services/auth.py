"""Guest and Steam authentication."""
from __future__ import annotations

from typing import Dict, Optional

from cratebytes.auth_token import AuthTokenHolder
from cratebytes.dispatch import RequestDispatcher
from cratebytes.envelope import ResponseEnvelope
from cratebytes.models import AuthResponse


class AuthService:
    def __init__(self, dispatcher: RequestDispatcher, tokens: AuthTokenHolder) -> None:
        self.dispatcher = dispatcher
        self.tokens = tokens

    @property
    def logger(self):
        return self.dispatcher.logger

    async def guest_login(self, player_id: Optional[str] = None) -> ResponseEnvelope[AuthResponse]:
        """Log in as a guest, reusing the saved player id when none is given."""
        if not player_id:
            player_id = self.tokens.saved_player_id() or None

        body: Dict[str, str] = {"publicKey": self.dispatcher.settings.public_key}
        if player_id:
            body["playerId"] = player_id

        response = await self.dispatcher.post("/auth/guest", body, AuthResponse.from_wire, authenticated=False)
        return self._apply(response.require_data())

    async def steam_login(self, steam_auth_ticket: str) -> ResponseEnvelope[AuthResponse]:
        body = {
            "publicKey": self.dispatcher.settings.public_key,
            "steamAuthTicket": steam_auth_ticket,
        }
        response = await self.dispatcher.post("/auth/steam", body, AuthResponse.from_wire, authenticated=False)
        return self._apply(response.require_data())

    def _apply(self, response: ResponseEnvelope[AuthResponse]) -> ResponseEnvelope[AuthResponse]:
        if response.ok:
            auth = response.data
            self.tokens.set_token(auth.token, auth.player_id, auth.sequential_id)
        return response

    def try_auto_login(self) -> bool:
        """Restore the saved token, if any. The server is not contacted."""
        if not self.tokens.has_saved_auth_data():
            return False
        self.tokens.load_persisted()
        return self.tokens.is_authenticated()

    def logout(self) -> None:
        self.tokens.clear_token()
        self.tokens.clear_persisted()

    def is_authenticated(self) -> bool:
        return self.tokens.is_authenticated()

    def get_auth_token(self) -> Optional[str]:
        return self.tokens.get_token()

    def debug_auth_status(self) -> None:
        self.logger.log("Auth Status:")
        self.logger.log(f"- IsAuthenticated: {self.is_authenticated()}")
        self.logger.log(f"- HasSavedAuthData: {self.tokens.has_saved_auth_data()}")
        self.logger.log(f"- Current Token: {'valid' if self.tokens.get_token() else 'null'}")
        self.logger.log(f"- Saved Player ID: {self.tokens.saved_player_id()}")
