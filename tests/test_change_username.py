"""Unit tests for change_username: validation order, credential migration, rename history."""

import json
import unittest
from unittest.mock import MagicMock

from empdash.core.kvstore import MemoryStore
from empdash.services import auth
from empdash.services.identity_store import IdentityStore


def _store(**initial: object) -> IdentityStore:
    return IdentityStore(MemoryStore({k: json.dumps(v) for k, v in initial.items()}))


def _settings() -> MagicMock:
    settings = MagicMock()
    settings.USERNAME_MIN_LENGTH = 3
    settings.PASSWORD_MIN_LENGTH = 6
    return settings


def _snapshot(store: IdentityStore) -> dict[str, str | None]:
    return {key: store.backend.get(key) for key in store.backend.keys()}


class TestRenameDefaultIdentity(unittest.TestCase):
    """Renaming a built-in account keeps its role and password under the new name only."""

    def setUp(self) -> None:
        self.store = _store()
        auth.login(self.store, "admin", "admin123")

    def test_rename_admin(self) -> None:
        result = auth.change_username(self.store, "admin123", "adminx", _settings())
        self.assertTrue(result.success)

        renamed = auth.authenticate(self.store, "adminx", "admin123")
        self.assertTrue(renamed.success)
        self.assertEqual(renamed.role, "admin")
        self.assertFalse(auth.authenticate(self.store, "admin", "admin123").success)

        self.assertEqual(self.store.get_username_changes(), {"admin": "adminx"})
        self.assertEqual(self.store.get_custom_credentials(), {"adminx": "admin123"})
        record = self.store.find_registered_user("adminx")
        self.assertIsNotNone(record)
        self.assertEqual(record.role, "admin")
        self.assertEqual(record.email, "adminx@example.com")

    def test_session_follows_rename(self) -> None:
        auth.change_username(self.store, "admin123", "adminx", _settings())
        self.assertEqual(self.store.get_session_username(), "adminx")
        self.assertEqual(self.store.get_session_role(), "admin")
        self.assertEqual(self.store.get_app_user()["username"], "adminx")

    def test_flag_consumed_once(self) -> None:
        auth.change_username(self.store, "admin123", "adminx", _settings())
        self.assertTrue(auth.consume_username_changed_flag(self.store))
        self.assertFalse(auth.consume_username_changed_flag(self.store))

    def test_chained_renames_keep_role(self) -> None:
        auth.change_username(self.store, "admin123", "adminx", _settings())
        result = auth.change_username(self.store, "admin123", "adminy", _settings())
        self.assertTrue(result.success)
        self.assertEqual(auth.authenticate(self.store, "adminy", "admin123").role, "admin")
        self.assertFalse(auth.authenticate(self.store, "adminx", "admin123").success)
        self.assertEqual(auth.previous_usernames(self.store, "adminy"), ["adminx", "admin"])
        self.assertIsNone(self.store.find_registered_user("adminx"))

    def test_rename_back_to_earlier_name(self) -> None:
        auth.change_username(self.store, "admin123", "adminx", _settings())
        auth.change_username(self.store, "admin123", "adminy", _settings())
        result = auth.change_username(self.store, "admin123", "adminx", _settings())
        self.assertTrue(result.success)
        self.assertEqual(
            self.store.get_username_changes(), {"admin": "adminy", "adminy": "adminx"}
        )
        self.assertEqual(auth.authenticate(self.store, "adminx", "admin123").role, "admin")

    def test_rename_back_to_default_name_rejected(self) -> None:
        auth.change_username(self.store, "admin123", "adminx", _settings())
        result = auth.change_username(self.store, "admin123", "admin", _settings())
        self.assertFalse(result.success)
        self.assertEqual(result.message, auth.MSG_USERNAME_TAKEN_DEFAULT)

    def test_previous_username_kept_for_profile(self) -> None:
        self.store.set_user_profile({"name": "Admin"})
        auth.change_username(self.store, "admin123", "adminx", _settings())
        self.assertEqual(self.store.backend.get("previous_username"), "admin")


class TestRenameRejections(unittest.TestCase):
    """Failed renames leave every key untouched."""

    def setUp(self) -> None:
        self.store = _store(
            registered_users=[{"username": "rina", "password": "rina-pass"}],
            deleted_users=["gone"],
        )
        auth.login(self.store, "admin", "admin123")
        self.before = _snapshot(self.store)

    def assert_unchanged(self) -> None:
        self.assertEqual(_snapshot(self.store), self.before)

    def test_wrong_password(self) -> None:
        result = auth.change_username(self.store, "wrongpass", "adminx", _settings())
        self.assertFalse(result.success)
        self.assertEqual(result.message, auth.MSG_PASSWORD_INVALID)
        self.assert_unchanged()

    def test_too_short(self) -> None:
        result = auth.change_username(self.store, "admin123", "ab", _settings())
        self.assertFalse(result.success)
        self.assertIn("at least 3", result.message)
        self.assert_unchanged()

    def test_taken_by_registered_user(self) -> None:
        result = auth.change_username(self.store, "admin123", "rina", _settings())
        self.assertEqual(result.message, auth.MSG_USERNAME_TAKEN)
        self.assert_unchanged()

    def test_taken_by_default_identity(self) -> None:
        result = auth.change_username(self.store, "admin123", "user", _settings())
        self.assertEqual(result.message, auth.MSG_USERNAME_TAKEN_DEFAULT)
        self.assert_unchanged()

    def test_deleted_username(self) -> None:
        result = auth.change_username(self.store, "admin123", "gone", _settings())
        self.assertEqual(result.message, auth.MSG_USERNAME_UNAVAILABLE)
        self.assert_unchanged()

    def test_same_name_is_noop(self) -> None:
        result = auth.change_username(self.store, "admin123", "admin", _settings())
        self.assertTrue(result.success)
        self.assert_unchanged()

    def test_no_session(self) -> None:
        store = _store()
        result = auth.change_username(store, "admin123", "adminx", _settings())
        self.assertEqual(result.message, auth.MSG_NO_SESSION)


class TestDetachUsername(unittest.TestCase):
    """Taking a freed name splices it out of older rename chains."""

    def test_middle_of_chain_relinked(self) -> None:
        changes = {"admin": "adminx", "adminx": "boss"}
        self.assertTrue(auth.detach_username(changes, "adminx"))
        self.assertEqual(changes, {"admin": "boss"})

    def test_end_of_chain_dropped(self) -> None:
        changes = {"rina": "rina2"}
        self.assertTrue(auth.detach_username(changes, "rina2"))
        self.assertEqual(changes, {})

    def test_unrelated_name_untouched(self) -> None:
        changes = {"admin": "adminx"}
        self.assertFalse(auth.detach_username(changes, "bob"))
        self.assertEqual(changes, {"admin": "adminx"})

    def test_rename_onto_name_freed_by_another_account(self) -> None:
        store = _store(registered_users=[{"username": "rina", "password": "rina-pass"}])
        auth.login(store, "admin", "admin123")
        auth.change_username(store, "admin123", "adminx", _settings())
        auth.change_username(store, "admin123", "boss", _settings())
        auth.logout(store)

        auth.login(store, "rina", "rina-pass")
        self.assertTrue(auth.change_username(store, "rina-pass", "adminx", _settings()).success)
        self.assertEqual(auth.authenticate(store, "adminx", "rina-pass").role, "user")
        self.assertEqual(auth.authenticate(store, "boss", "admin123").role, "admin")


class TestRenameRegisteredUser(unittest.TestCase):
    """Renaming a registered account moves its record, credential and role."""

    def test_record_and_role_move(self) -> None:
        store = _store(
            registered_users=[
                {"id": "5", "username": "rina", "password": "rina-pass", "role": "admin"}
            ]
        )
        auth.login(store, "rina", "rina-pass")
        result = auth.change_username(store, "rina-pass", "  rina2  ", _settings())
        self.assertTrue(result.success)

        record = store.find_registered_user("rina2")
        self.assertEqual(record.id, "5")
        self.assertEqual(record.role, "admin")
        self.assertIsNone(store.find_registered_user("rina"))
        self.assertEqual(store.get_custom_credentials(), {"rina2": "rina-pass"})
        self.assertEqual(auth.authenticate(store, "rina2", "rina-pass").role, "admin")
        self.assertFalse(auth.authenticate(store, "rina", "rina-pass").success)

    def test_old_name_leaves_deleted_list(self) -> None:
        store = _store(
            registered_users=[{"username": "rina", "password": "rina-pass"}],
            deleted_users=["rina", "other"],
        )
        store.set_session_username("rina")
        store.set_session_token("session-test")
        auth.change_username(store, "rina-pass", "rina2", _settings())
        self.assertEqual(store.get_deleted_usernames(), ["other"])


if __name__ == "__main__":
    unittest.main()
