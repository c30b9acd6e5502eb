"""Token holder and persistence."""
from __future__ import annotations

import json
import os
import tempfile
import unittest

from cratebytes.auth_token import AUTH_TOKEN_KEY, PLAYER_ID_KEY, SEQUENTIAL_ID_KEY, AuthTokenHolder
from cratebytes.storage import InMemoryStore, JsonFileStore

from .fakes import authenticated_store


class AuthTokenHolderTest(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryStore()
        self.tokens = AuthTokenHolder(self.store)

    def test_starts_unauthenticated(self) -> None:
        self.assertFalse(self.tokens.is_authenticated())
        self.assertIsNone(self.tokens.get_token())
        self.assertEqual(self.tokens.authorization_header(), {})

    def test_set_token_authenticates_and_persists(self) -> None:
        self.tokens.set_token("tok123", "p1", 7)

        self.assertTrue(self.tokens.is_authenticated())
        self.assertEqual(self.tokens.get_token(), "tok123")
        self.assertEqual(self.tokens.authorization_header(), {"Authorization": "Bearer tok123"})
        self.assertEqual(self.store.values[PLAYER_ID_KEY], "p1")
        self.assertEqual(self.store.values[AUTH_TOKEN_KEY], "tok123")
        self.assertEqual(self.store.values[SEQUENTIAL_ID_KEY], 7)

    def test_clear_token_reverts(self) -> None:
        self.tokens.set_token("tok123", "p1", 7)
        self.tokens.clear_token()

        self.assertFalse(self.tokens.is_authenticated())
        self.assertEqual(self.tokens.authorization_header(), {})
        # Clearing the in-memory token keeps the saved identity for the next guest login.
        self.assertEqual(self.tokens.saved_player_id(), "p1")

    def test_token_requires_player_id(self) -> None:
        with self.assertRaises(ValueError):
            self.tokens.set_token("tok123", "", 1)
        self.assertFalse(self.tokens.is_authenticated())
        self.assertEqual(self.store.values, {})

    def test_load_persisted_restores_without_server(self) -> None:
        tokens = AuthTokenHolder(authenticated_store())

        self.assertTrue(tokens.load_persisted())
        self.assertEqual(tokens.get_token(), "tok123")
        self.assertEqual(tokens.player_id, "p1")
        self.assertEqual(tokens.sequential_id, 7)

    def test_load_persisted_needs_both_player_and_token(self) -> None:
        tokens = AuthTokenHolder(InMemoryStore({PLAYER_ID_KEY: "p1"}))

        self.assertFalse(tokens.load_persisted())
        self.assertFalse(tokens.is_authenticated())
        self.assertFalse(tokens.has_saved_auth_data())

    def test_clear_persisted(self) -> None:
        self.tokens.set_token("tok123", "p1", 7)
        self.tokens.clear_persisted()

        self.assertEqual(self.store.values, {})
        self.assertFalse(self.tokens.has_saved_auth_data())
        self.assertEqual(self.tokens.saved_sequential_id(), 0)


class JsonFileStoreTest(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, "nested", "prefs.json")

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def test_survives_reopen(self) -> None:
        AuthTokenHolder(JsonFileStore(self.path)).set_token("tok123", "p1", 7)

        reopened = AuthTokenHolder(JsonFileStore(self.path))
        self.assertTrue(reopened.load_persisted())
        self.assertEqual(reopened.get_token(), "tok123")
        self.assertEqual(reopened.sequential_id, 7)

    def test_writes_are_buffered_until_save(self) -> None:
        store = JsonFileStore(self.path)
        store.set("key", "value")
        self.assertFalse(os.path.exists(self.path))

        store.save()
        with open(self.path, encoding="utf-8") as handle:
            self.assertEqual(json.load(handle), {"key": "value"})

    def test_corrupt_file_reads_as_empty(self) -> None:
        os.makedirs(os.path.dirname(self.path))
        with open(self.path, "w", encoding="utf-8") as handle:
            handle.write("{oops")

        self.assertEqual(JsonFileStore(self.path).get(PLAYER_ID_KEY, ""), "")


if __name__ == "__main__":
    unittest.main()
