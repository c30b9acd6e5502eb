"""Current bearer token plus the persisted player identity."""
from __future__ import annotations

from typing import Dict, Optional

from cratebytes.logger import SdkLogger
from cratebytes.storage import KeyValueStore

PLAYER_ID_KEY = "CrateBytes_PlayerId"
AUTH_TOKEN_KEY = "CrateBytes_AuthToken"
SEQUENTIAL_ID_KEY = "CrateBytes_SequentialId"


class AuthTokenHolder:
    """
    Owns the token for one SDK instance.

    Only successful logins (``set_token``) and logout (``clear_token``) mutate
    it. The token is read fresh by the dispatcher on every request, so a
    rotation mid-session applies to the very next call.
    """

    def __init__(self, store: KeyValueStore, logger: Optional[SdkLogger] = None) -> None:
        self.store = store
        self.logger = logger or SdkLogger()
        self._token: Optional[str] = None
        self._player_id: Optional[str] = None
        self._sequential_id: int = 0

    @property
    def player_id(self) -> Optional[str]:
        return self._player_id

    @property
    def sequential_id(self) -> int:
        return self._sequential_id

    def set_token(self, token: str, player_id: str, sequential_id: int = 0) -> None:
        if token and not player_id:
            raise ValueError("A token must be associated with a player id")
        self._token = token or None
        self._player_id = player_id or None
        self._sequential_id = int(sequential_id or 0)
        self.logger.log(f"Auth token set: {'valid' if self._token else 'null'}")
        if self._token:
            self.persist()

    def clear_token(self) -> None:
        self._token = None
        self._player_id = None
        self._sequential_id = 0
        self.logger.log("Auth token cleared")

    def get_token(self) -> Optional[str]:
        return self._token

    def is_authenticated(self) -> bool:
        return bool(self._token)

    def authorization_header(self) -> Dict[str, str]:
        if not self._token:
            return {}
        return {"Authorization": f"Bearer {self._token}"}

    def persist(self) -> None:
        if not self._token or not self._player_id:
            return
        self.store.set(PLAYER_ID_KEY, self._player_id)
        self.store.set(AUTH_TOKEN_KEY, self._token)
        self.store.set(SEQUENTIAL_ID_KEY, self._sequential_id)
        self.store.save()
        self.logger.log(f"Saved auth data for player: {self._player_id}")

    def load_persisted(self) -> bool:
        """Restore the token without contacting the server.

        Optimistic: the server only confirms the token the next time it is used.
        """
        player_id = str(self.store.get(PLAYER_ID_KEY, "") or "")
        token = str(self.store.get(AUTH_TOKEN_KEY, "") or "")
        if not player_id or not token:
            return False
        self._token = token
        self._player_id = player_id
        self._sequential_id = self.saved_sequential_id()
        self.logger.log(f"Loaded saved auth data for player: {player_id}")
        return True

    def clear_persisted(self) -> None:
        self.store.delete(PLAYER_ID_KEY)
        self.store.delete(AUTH_TOKEN_KEY)
        self.store.delete(SEQUENTIAL_ID_KEY)
        self.store.save()
        self.logger.log("Cleared saved auth data")

    def saved_player_id(self) -> str:
        return str(self.store.get(PLAYER_ID_KEY, "") or "")

    def saved_sequential_id(self) -> int:
        try:
            return int(self.store.get(SEQUENTIAL_ID_KEY, 0) or 0)
        except (TypeError, ValueError):
            return 0

    def has_saved_auth_data(self) -> bool:
        return bool(self.saved_player_id()) and bool(self.store.get(AUTH_TOKEN_KEY, ""))
