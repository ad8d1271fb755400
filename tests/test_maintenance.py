"""Unit tests for credential cleanup, full reset and the maintenance CLI."""

import io
import json
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest.mock import MagicMock, patch

from empdash import maintenance
from empdash.core.kvstore import KeyValueStore, MemoryStore
from empdash.scripts import create_user
from empdash.services import auth
from empdash.services.identity_store import IdentityStore


def _store(**initial: object) -> IdentityStore:
    return IdentityStore(MemoryStore({k: json.dumps(v) for k, v in initial.items()}))


def _failing_store() -> IdentityStore:
    backend = MagicMock(spec=KeyValueStore)
    backend.get.side_effect = RuntimeError("backend down")
    backend.write_many.side_effect = RuntimeError("backend down")
    return IdentityStore(backend)


class TestCleanupInvalidCredentials(unittest.TestCase):
    """Credentials survive only for built-in or registered usernames."""

    def test_removes_orphans(self) -> None:
        store = _store(
            custom_credentials={"admin": "a-new-pass", "ghost": "x", "rina": "rina-pass"},
            registered_users=[{"username": "rina", "password": "rina-pass"}],
        )
        result = auth.cleanup_invalid_credentials(store)
        self.assertEqual(result.cleaned, 1)
        self.assertEqual(result.remaining, 2)
        self.assertEqual(
            store.get_custom_credentials(), {"admin": "a-new-pass", "rina": "rina-pass"}
        )

    def test_idempotent(self) -> None:
        store = _store(custom_credentials={"ghost": "x", "user": "user-pass"})
        auth.cleanup_invalid_credentials(store)
        second = auth.cleanup_invalid_credentials(store)
        self.assertEqual(second.cleaned, 0)
        self.assertEqual(second.remaining, 1)

    def test_renamed_builtin_credential_kept(self) -> None:
        store = _store()
        auth.login(store, "admin", "admin123")
        auth.change_username(store, "admin123", "adminx")
        result = auth.cleanup_invalid_credentials(store)
        self.assertEqual(result.cleaned, 0)
        self.assertTrue(auth.authenticate(store, "adminx", "admin123").success)

    def test_backend_error_reported_as_empty_result(self) -> None:
        with self.assertLogs("empdash.services.auth", level="ERROR"):
            result = auth.cleanup_invalid_credentials(_failing_store())
        self.assertEqual((result.cleaned, result.remaining), (0, 0))


class TestResetAllData(unittest.TestCase):
    """Reset restores built-in logins and keeps app settings and login history."""

    def test_builtin_logins_restored(self) -> None:
        store = _store()
        auth.login(store, "admin", "admin123")
        auth.change_username(store, "admin123", "adminx")
        store.set_deleted_usernames(["user"])

        result = auth.reset_all_data(store)
        self.assertTrue(result.success)
        self.assertTrue(auth.authenticate(store, "admin", "admin123").success)
        self.assertTrue(auth.authenticate(store, "user", "user123").success)
        self.assertFalse(auth.authenticate(store, "adminx", "admin123").success)
        self.assertIsNone(store.get_session_username())
        self.assertFalse(auth.is_authenticated(store))

    def test_settings_and_history_survive(self) -> None:
        store = _store()
        auth.login(store, "admin", "admin123")
        auth.reset_all_data(store)
        self.assertIsNotNone(store.get_app_settings())
        self.assertEqual(len(store.get_login_notifications()), 1)

    def test_backend_error_reported(self) -> None:
        with self.assertLogs("empdash.services.auth", level="ERROR"):
            result = auth.reset_all_data(_failing_store())
        self.assertFalse(result.success)


class TestCredentialsDebugInfo(unittest.TestCase):
    def test_counts_and_lists(self) -> None:
        store = _store(
            custom_credentials={"admin": "pw-one1"},
            registered_users=[{"username": "rina"}, {"username": "bob"}],
            deleted_users=["old"],
        )
        info = auth.get_credentials_debug_info(store)
        self.assertEqual(info.custom_credentials_count, 1)
        self.assertEqual(info.registered_users_list, ["rina", "bob"])
        self.assertEqual(info.deleted_users_count, 1)


class TestMaintenanceCli(unittest.TestCase):
    """python -m empdash.maintenance against an in-memory store."""

    def setUp(self) -> None:
        self.store = _store(custom_credentials={"ghost": "x"}, deleted_users=["user"])
        patcher = patch("empdash.maintenance.get_identity_store", return_value=self.store)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_cleanup(self) -> None:
        self.assertEqual(maintenance.main(["cleanup"]), 0)
        self.assertEqual(self.store.get_custom_credentials(), {})

    def test_debug_prints_json(self) -> None:
        out = io.StringIO()
        with redirect_stdout(out):
            self.assertEqual(maintenance.main(["debug"]), 0)
        payload = json.loads(out.getvalue())
        self.assertEqual(payload["custom_credentials_list"], ["ghost"])
        self.assertEqual(payload["deleted_users_list"], ["user"])

    def test_reset_requires_confirmation(self) -> None:
        with redirect_stderr(io.StringIO()):
            self.assertEqual(maintenance.main(["reset"]), 1)
        self.assertEqual(self.store.get_deleted_usernames(), ["user"])

    def test_reset(self) -> None:
        with redirect_stdout(io.StringIO()):
            self.assertEqual(maintenance.main(["reset", "--yes"]), 0)
        self.assertEqual(self.store.get_deleted_usernames(), [])


class TestCreateUserScript(unittest.TestCase):
    """python -m empdash.scripts.create_user against an in-memory store."""

    def setUp(self) -> None:
        self.store = _store()
        patcher = patch(
            "empdash.scripts.create_user.get_identity_store", return_value=self.store
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_creates_admin(self) -> None:
        with redirect_stdout(io.StringIO()):
            code = create_user.main(["budi", "secret-pass", "admin", "--name", "Budi"])
        self.assertEqual(code, 0)
        record = self.store.find_registered_user("budi")
        self.assertEqual(record.role, "admin")
        self.assertEqual(record.name, "Budi")
        self.assertEqual(record.email, "budi@example.com")
        self.assertEqual(auth.authenticate(self.store, "budi", "secret-pass").role, "admin")

    def test_rejects_builtin_name(self) -> None:
        with redirect_stderr(io.StringIO()):
            self.assertEqual(create_user.main(["admin", "secret-pass"]), 1)

    def test_rejects_short_password(self) -> None:
        with redirect_stderr(io.StringIO()):
            self.assertEqual(create_user.main(["budi", "abc"]), 1)
        self.assertIsNone(self.store.find_registered_user("budi"))


if __name__ == "__main__":
    unittest.main()
