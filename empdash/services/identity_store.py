"""
Typed repository over the key-value store for all identity bookkeeping.

Every collection is stored as JSON under a fixed key. Reads are defensive:
unparsable JSON, a payload of the wrong shape, or a record that fails
validation is logged and treated as empty rather than raised to the caller.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, get_args

from pydantic import ValidationError

from empdash.core.config import get_settings
from empdash.core.kvstore import DatabaseStore, KeyValueStore, MemoryStore
from empdash.schemas.auth import Role
from empdash.schemas.users import RegisteredUser

logger = logging.getLogger(__name__)

# Identity collections
CUSTOM_CREDENTIALS_KEY = "custom_credentials"
REGISTERED_USERS_KEY = "registered_users"
DELETED_USERS_KEY = "deleted_users"
USERNAME_CHANGES_KEY = "username_changes"

# Session markers
SESSION_USERNAME_KEY = "username"
SESSION_ROLE_KEY = "userRole"
APP_USER_KEY = "app_user"
SESSION_TOKEN_KEY = "asnToken"
AUTH_TOKEN_KEY = "auth_token"
USERNAME_CHANGED_KEY = "username_changed"
DEMO_PASSWORD_KEY = "demoPassword"
USER_PASSWORD_KEY = "userPassword"
PREVIOUS_USERNAME_KEY = "previous_username"

# Related account state
APP_SETTINGS_KEY = "app_settings"
USER_PROFILE_KEY = "user_profile"
LOGIN_NOTIFICATIONS_KEY = "asn_login_notifications"

# Keys wiped by reset_all_data(); app_settings and login history survive a reset.
RESETTABLE_KEYS = (
    CUSTOM_CREDENTIALS_KEY,
    REGISTERED_USERS_KEY,
    DELETED_USERS_KEY,
    USERNAME_CHANGES_KEY,
    APP_USER_KEY,
    SESSION_USERNAME_KEY,
    SESSION_ROLE_KEY,
    SESSION_TOKEN_KEY,
    AUTH_TOKEN_KEY,
    USERNAME_CHANGED_KEY,
    DEMO_PASSWORD_KEY,
    USER_PASSWORD_KEY,
    PREVIOUS_USERNAME_KEY,
    USER_PROFILE_KEY,
)

SESSION_KEYS = (
    SESSION_USERNAME_KEY,
    SESSION_ROLE_KEY,
    SESSION_TOKEN_KEY,
    AUTH_TOKEN_KEY,
    APP_USER_KEY,
)

_ROLES: tuple[str, ...] = get_args(Role)

# One lock per process: operations on the same backing store must not interleave
# their read-modify-write cycles.
_STORE_LOCK = threading.RLock()


class IdentityStore:
    """Typed get/put access to identity state kept in a KeyValueStore."""

    def __init__(self, backend: KeyValueStore) -> None:
        self.backend = backend
        self._local = threading.local()

    @contextmanager
    def transaction(self) -> Iterator[IdentityStore]:
        """
        Serialise a multi-key update against other operations in this process.

        Writes inside the block are buffered (and visible to reads in the same
        block), then handed to the backend in one write_many call when the
        outermost block exits. If the block raises, nothing is written.
        Nested blocks join the outer one.
        """
        with _STORE_LOCK:
            if self._pending() is not None:
                yield self
                return
            self._local.pending = {}
            try:
                yield self
                writes = self._local.pending
            finally:
                self._local.pending = None
            if writes:
                self.backend.write_many(writes)

    def _pending(self) -> dict[str, str | None] | None:
        return getattr(self._local, "pending", None)

    # -- raw helpers ------------------------------------------------------

    def get(self, key: str) -> str | None:
        pending = self._pending()
        if pending is not None and key in pending:
            return pending[key]
        return self.backend.get(key)

    def set(self, key: str, value: str) -> None:
        pending = self._pending()
        if pending is not None:
            pending[key] = value
        else:
            self.backend.set(key, value)

    def remove(self, *keys: str) -> None:
        pending = self._pending()
        for key in keys:
            if pending is not None:
                pending[key] = None
            else:
                self.backend.remove(key)

    def _read_json(self, key: str, expected: type, default: Any) -> Any:
        raw = self.get(key)
        if raw is None or raw == "":
            return default
        try:
            value = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning("Unparsable JSON under key %s, treating as empty: %s", key, e)
            return default
        if not isinstance(value, expected):
            logger.warning(
                "Unexpected JSON type under key %s (%s), treating as empty",
                key,
                type(value).__name__,
            )
            return default
        return value

    def _write_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value))

    # -- custom credentials -----------------------------------------------

    def get_custom_credentials(self) -> dict[str, str]:
        data = self._read_json(CUSTOM_CREDENTIALS_KEY, dict, {})
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def set_custom_credentials(self, credentials: dict[str, str]) -> None:
        self._write_json(CUSTOM_CREDENTIALS_KEY, credentials)

    def save_custom_credential(self, username: str, password: str) -> None:
        credentials = self.get_custom_credentials()
        credentials[username] = password
        self.set_custom_credentials(credentials)
        logger.info("Custom credential saved: %s", username)

    # -- registered users -------------------------------------------------

    def get_registered_users(self) -> list[RegisteredUser]:
        users: list[RegisteredUser] = []
        for item in self._read_json(REGISTERED_USERS_KEY, list, []):
            if not isinstance(item, dict):
                logger.warning("Skipping non-object registered user entry")
                continue
            try:
                users.append(RegisteredUser.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping invalid registered user entry: %s", e.errors())
        return users

    def set_registered_users(self, users: list[RegisteredUser]) -> None:
        self._write_json(
            REGISTERED_USERS_KEY, [u.model_dump(by_alias=True) for u in users]
        )

    def find_registered_user(self, username: str) -> RegisteredUser | None:
        for user in self.get_registered_users():
            if user.username == username:
                return user
        return None

    # -- deleted usernames and rename history -----------------------------

    def get_deleted_usernames(self) -> list[str]:
        return [u for u in self._read_json(DELETED_USERS_KEY, list, []) if isinstance(u, str)]

    def set_deleted_usernames(self, usernames: list[str]) -> None:
        self._write_json(DELETED_USERS_KEY, usernames)

    def get_username_changes(self) -> dict[str, str]:
        data = self._read_json(USERNAME_CHANGES_KEY, dict, {})
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def set_username_changes(self, changes: dict[str, str]) -> None:
        self._write_json(USERNAME_CHANGES_KEY, changes)

    # -- session markers --------------------------------------------------

    def get_session_username(self) -> str | None:
        return self.get(SESSION_USERNAME_KEY) or None

    def get_session_role(self) -> Role | None:
        role = self.get(SESSION_ROLE_KEY)
        return role if role in _ROLES else None

    def set_session_username(self, username: str) -> None:
        self.set(SESSION_USERNAME_KEY, username)

    def set_session_role(self, role: Role) -> None:
        self.set(SESSION_ROLE_KEY, role)

    def set_session_token(self, token: str) -> None:
        self.set(SESSION_TOKEN_KEY, token)
        self.set(AUTH_TOKEN_KEY, token)

    def get_session_token(self) -> str | None:
        return self.get(SESSION_TOKEN_KEY) or None

    def get_app_user(self) -> dict[str, Any]:
        return self._read_json(APP_USER_KEY, dict, {})

    def set_app_user(self, app_user: dict[str, Any]) -> None:
        self._write_json(APP_USER_KEY, app_user)

    def clear_session(self) -> None:
        self.remove(*SESSION_KEYS)

    def set_username_changed_flag(self) -> None:
        self.set(USERNAME_CHANGED_KEY, "true")

    def pop_username_changed_flag(self) -> bool:
        flagged = self.get(USERNAME_CHANGED_KEY) == "true"
        self.remove(USERNAME_CHANGED_KEY)
        return flagged

    def set_previous_username(self, username: str) -> None:
        self.set(PREVIOUS_USERNAME_KEY, username)

    # -- settings, profile, login history ---------------------------------

    def get_app_settings(self) -> dict[str, Any] | None:
        return self._read_json(APP_SETTINGS_KEY, dict, None)

    def set_app_settings(self, app_settings: dict[str, Any]) -> None:
        self._write_json(APP_SETTINGS_KEY, app_settings)

    def get_user_profile(self) -> dict[str, Any] | None:
        return self._read_json(USER_PROFILE_KEY, dict, None)

    def set_user_profile(self, profile: dict[str, Any]) -> None:
        self._write_json(USER_PROFILE_KEY, profile)

    def get_login_notifications(self) -> list[dict[str, Any]]:
        return [
            n for n in self._read_json(LOGIN_NOTIFICATIONS_KEY, list, []) if isinstance(n, dict)
        ]

    def set_login_notifications(self, notifications: list[dict[str, Any]]) -> None:
        self._write_json(LOGIN_NOTIFICATIONS_KEY, notifications)


@lru_cache
def get_identity_store() -> IdentityStore:
    """Process-wide identity store for the configured backend (safe to call from dependencies)."""
    settings = get_settings()
    if settings.STORE_BACKEND == "memory":
        logger.info("Using in-memory identity store; state is lost on restart")
        return IdentityStore(MemoryStore())
    from empdash.core.database import SessionLocal

    return IdentityStore(DatabaseStore(SessionLocal))
