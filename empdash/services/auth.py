"""
Identity operations: authenticate, session markers, password and username changes,
credential cleanup and full reset.

All expected failures (wrong password, taken username, no session, too-short
input) come back as result objects with success=False and a user-facing message;
nothing here raises for them.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from empdash.core.config import get_settings
from empdash.schemas.auth import (
    AuthResult,
    CleanupResult,
    CredentialsDebugInfo,
    CurrentUser,
    OperationResult,
    Role,
)
from empdash.schemas.users import RegisteredUser
from empdash.services import account
from empdash.services.credentials import (
    DEFAULT_CREDENTIALS,
    DEFAULT_ROLES,
    is_default_username,
    verify_current_password,
    verify_login_password,
)
from empdash.services.identity_store import RESETTABLE_KEYS, IdentityStore

if TYPE_CHECKING:
    from empdash.core.config import Settings

logger = logging.getLogger(__name__)

MSG_ACCOUNT_INVALID = "This account has been deleted or is no longer valid"
MSG_INCORRECT_PASSWORD = "Incorrect password"
MSG_INVALID_LOGIN = "Invalid username or password"
MSG_NO_SESSION = "No user is logged in"
MSG_CURRENT_PASSWORD_INVALID = "Current password is invalid"
MSG_PASSWORD_INVALID = "Password is invalid"
MSG_USERNAME_TAKEN = "Username is already taken"
MSG_USERNAME_TAKEN_DEFAULT = "Username is already taken (built-in account)"
MSG_USERNAME_UNAVAILABLE = "Username belongs to a deleted account"


# -- rename chain and role resolution -------------------------------------


def _previous_usernames(changes: dict[str, str], username: str) -> list[str]:
    """Names this identity held before `username`, most recent first. Cycle-safe."""
    reverse = {new: old for old, new in changes.items()}
    chain: list[str] = []
    seen = {username}
    current = username
    while current in reverse:
        current = reverse[current]
        if current in seen:
            break
        seen.add(current)
        chain.append(current)
    return chain


def detach_username(changes: dict[str, str], username: str) -> bool:
    """
    Cut username out of every rename chain before a new account takes it.

    An entry old -> username is relinked past it (old -> the name username moved
    on to), so the earlier identity keeps its chain and the new holder inherits
    nothing. Returns True when changes was modified.
    """
    following = changes.pop(username, None)
    modified = following is not None
    for old in [o for o, new in changes.items() if new == username]:
        modified = True
        if following is not None and following != old:
            changes[old] = following
        else:
            del changes[old]
    return modified


def previous_usernames(store: IdentityStore, username: str) -> list[str]:
    return _previous_usernames(store.get_username_changes(), username)


def resolve_original_username(store: IdentityStore, username: str) -> str:
    """First name of the rename chain ending at username (username itself if never renamed)."""
    chain = previous_usernames(store, username)
    return chain[-1] if chain else username


def get_original_role(store: IdentityStore, username: str) -> Role:
    """
    Default names carry their own role. Otherwise a chain that starts at a default
    identity inherits its role; then the registered record's role; then "user".
    """
    if is_default_username(username):
        return DEFAULT_ROLES[username]
    for old in previous_usernames(store, username):
        if is_default_username(old):
            return DEFAULT_ROLES[old]
    user = store.find_registered_user(username)
    if user is not None:
        return user.role
    return "user"


def is_deleted(store: IdentityStore, username: str) -> bool:
    return username in store.get_deleted_usernames()


# -- authentication and session -------------------------------------------


def authenticate(store: IdentityStore, username: str, password: str) -> AuthResult:
    """
    Check a username/password pair without touching the session.

    Deleted usernames never authenticate. A custom credential, when present, is
    the only password accepted for that username.
    """
    logger.info("Login attempt: username=%s", username)
    original = resolve_original_username(store, username)
    if original != username:
        logger.debug("Username %s was renamed from %s", username, original)

    if is_deleted(store, username):
        logger.info("Login rejected, username is deleted: %s", username)
        return AuthResult(success=False, message=MSG_ACCOUNT_INVALID)

    accepted, source = verify_login_password(store, username, password)
    if source == "custom" and not accepted:
        return AuthResult(success=False, message=MSG_INCORRECT_PASSWORD)
    if not accepted:
        return AuthResult(success=False, message=MSG_INVALID_LOGIN)

    role = get_original_role(store, username)
    logger.info("Login accepted: username=%s role=%s via=%s", username, role, source)
    return AuthResult(success=True, role=role)


def login(
    store: IdentityStore,
    username: str,
    password: str,
    ip: str | None = None,
    user_agent: str | None = None,
    settings: Settings | None = None,
) -> AuthResult:
    """Authenticate, record the attempt, and on success write the session markers."""
    with store.transaction():
        result = authenticate(store, username, password)
        account.add_login_notification(
            store, username, result.success, ip=ip, user_agent=user_agent, settings=settings
        )
        if not result.success or result.role is None:
            return result
        store.set_session_token(f"session-{secrets.token_urlsafe(16)}")
        store.set_session_username(username)
        store.set_session_role(result.role)
        store.set_app_user(
            {
                "username": username,
                "role": result.role,
                "loginTime": datetime.now(UTC).isoformat(),
            }
        )
        account.ensure_app_settings(store)
    return result


def logout(store: IdentityStore) -> None:
    with store.transaction():
        username = store.get_session_username()
        store.clear_session()
    logger.info("Logged out: %s", username)


def is_authenticated(store: IdentityStore) -> bool:
    return store.get_session_token() is not None and store.get_session_username() is not None


def is_valid_session_token(store: IdentityStore, token: str | None) -> bool:
    """True when token is the marker minted by the current login."""
    expected = store.get_session_token()
    if not token or expected is None or store.get_session_username() is None:
        return False
    return secrets.compare_digest(token.encode(), expected.encode())


def get_current_user(store: IdentityStore) -> CurrentUser | None:
    """Principal from the session markers, enriched from the registered record if any."""
    username = store.get_session_username()
    if not username:
        return None
    role = store.get_session_role() or "user"
    user = store.find_registered_user(username)
    if user is not None:
        return CurrentUser(
            id=user.id or "1",
            username=user.username,
            email=user.email,
            name=user.name or username,
            role=role,
        )
    return CurrentUser(
        id="1",
        username=username,
        email=f"{username}@example.com",
        name=username[:1].upper() + username[1:],
        role=role,
    )


def has_role(store: IdentityStore, role: str | Iterable[str]) -> bool:
    current = store.get_session_role()
    if current is None:
        return False
    if isinstance(role, str):
        return current == role
    return current in set(role)


def is_admin(store: IdentityStore) -> bool:
    return has_role(store, ("admin", "superadmin"))


def is_superadmin(store: IdentityStore) -> bool:
    return has_role(store, "superadmin")


# -- password and username changes ----------------------------------------


def change_password(
    store: IdentityStore,
    current_password: str,
    new_password: str,
    settings: Settings | None = None,
) -> OperationResult:
    """Change the logged-in user's password after re-verifying the current one."""
    settings = settings or get_settings()
    with store.transaction():
        username = store.get_session_username()
        if not username:
            return OperationResult(success=False, message=MSG_NO_SESSION)

        logger.info("Change password attempt for: %s", username)
        if not verify_current_password(store, username, current_password):
            return OperationResult(success=False, message=MSG_CURRENT_PASSWORD_INVALID)

        if not new_password or len(new_password) < settings.PASSWORD_MIN_LENGTH:
            return OperationResult(
                success=False,
                message=f"New password must be at least {settings.PASSWORD_MIN_LENGTH} characters",
            )

        store.save_custom_credential(username, new_password)

        users = store.get_registered_users()
        for user in users:
            if user.username == username:
                user.password = new_password
                store.set_registered_users(users)
                logger.info("Updated password in registered users: %s", username)
                break

        account.record_password_change(store)

    logger.info("Password changed successfully for: %s", username)
    return OperationResult(success=True, message="Password changed successfully")


def _username_conflict(store: IdentityStore, current: str, new_username: str) -> str | None:
    """Message explaining why new_username cannot be taken, or None if it is free."""
    if new_username == current:
        return None
    if any(u.username == new_username for u in store.get_registered_users()):
        return MSG_USERNAME_TAKEN
    if is_default_username(new_username):
        return MSG_USERNAME_TAKEN_DEFAULT
    if is_deleted(store, new_username):
        return MSG_USERNAME_UNAVAILABLE
    return None


def change_username(
    store: IdentityStore,
    password: str,
    new_username: str,
    settings: Settings | None = None,
) -> OperationResult:
    """
    Rename the logged-in account, keeping its password and role.

    Built-in accounts have no registered record, so renaming one synthesises a
    custom credential and a registered record under the new name. The one-shot
    username_changed flag is set so the UI can force a fresh login.
    """
    settings = settings or get_settings()
    with store.transaction():
        current = store.get_session_username()
        if not current:
            return OperationResult(success=False, message=MSG_NO_SESSION)

        logger.info("Change username attempt: %s -> %s", current, new_username)
        new_username = (new_username or "").strip()
        if len(new_username) < settings.USERNAME_MIN_LENGTH:
            return OperationResult(
                success=False,
                message=f"New username must be at least {settings.USERNAME_MIN_LENGTH} characters",
            )

        conflict = _username_conflict(store, current, new_username)
        if conflict:
            return OperationResult(success=False, message=conflict)

        if not verify_current_password(store, current, password):
            return OperationResult(success=False, message=MSG_PASSWORD_INVALID)

        if new_username == current:
            return OperationResult(success=True, message="Username unchanged")

        role = get_original_role(store, current)
        credentials = store.get_custom_credentials()
        users = store.get_registered_users()
        record = next((u for u in users if u.username == current), None)

        if current in credentials:
            user_password = credentials.pop(current)
        elif record is not None:
            user_password = record.password
        else:
            # verify_current_password only accepts a bare name when it is built-in
            user_password = DEFAULT_CREDENTIALS[current]
        credentials[new_username] = user_password
        store.set_custom_credentials(credentials)

        if record is not None:
            record.username = new_username
            record.role = role
        elif is_default_username(current):
            users.append(
                RegisteredUser(
                    id=str(int(time.time() * 1000)),
                    username=new_username,
                    password=user_password,
                    email=f"{new_username}@example.com",
                    name=new_username[:1].upper() + new_username[1:],
                    role=role,
                    created_at=datetime.now(UTC).isoformat(),
                )
            )
        store.set_registered_users(users)

        changes = store.get_username_changes()
        detach_username(changes, new_username)
        changes[current] = new_username
        store.set_username_changes(changes)

        deleted = store.get_deleted_usernames()
        if current in deleted:
            store.set_deleted_usernames([u for u in deleted if u != current])
            logger.info("Removed old username from deleted users list: %s", current)

        store.set_session_username(new_username)
        store.set_session_role(role)
        app_user = store.get_app_user()
        app_user["username"] = new_username
        app_user["role"] = role
        store.set_app_user(app_user)
        if store.get_user_profile() is not None:
            store.set_previous_username(current)
        store.set_username_changed_flag()

    logger.info("Username changed successfully: %s -> %s", current, new_username)
    return OperationResult(success=True, message="Username changed successfully")


def consume_username_changed_flag(store: IdentityStore) -> bool:
    """True once after a successful rename; clears the flag."""
    with store.transaction():
        return store.pop_username_changed_flag()


# -- maintenance ----------------------------------------------------------


def valid_usernames(store: IdentityStore) -> set[str]:
    return set(DEFAULT_CREDENTIALS) | {u.username for u in store.get_registered_users()}


def cleanup_invalid_credentials(store: IdentityStore) -> CleanupResult:
    """Drop custom credentials whose username is neither built-in nor registered. Idempotent."""
    try:
        with store.transaction():
            credentials = store.get_custom_credentials()
            valid = valid_usernames(store)
            kept = {name: pw for name, pw in credentials.items() if name in valid}
            for name in credentials.keys() - kept.keys():
                logger.info("Removed invalid credential for: %s", name)
            store.set_custom_credentials(kept)
    except Exception as e:
        logger.exception("Cleaning up invalid credentials failed: %s", e)
        return CleanupResult(cleaned=0, remaining=0)
    cleaned = len(credentials) - len(kept)
    logger.info("Cleaned %s invalid credentials, %s remaining", cleaned, len(kept))
    return CleanupResult(cleaned=cleaned, remaining=len(kept))


def reset_all_data(store: IdentityStore) -> OperationResult:
    """Remove all identity, session and profile keys. Irreversible."""
    try:
        with store.transaction():
            store.remove(*RESETTABLE_KEYS)
    except Exception as e:
        logger.exception("Resetting data failed: %s", e)
        return OperationResult(success=False, message="An error occurred while resetting data")
    logger.warning("All user data has been reset")
    return OperationResult(
        success=True,
        message="All data has been reset. Reload the application and log in with the default credentials",
    )


def get_credentials_debug_info(store: IdentityStore) -> CredentialsDebugInfo:
    credentials = store.get_custom_credentials()
    registered = [u.username for u in store.get_registered_users()]
    deleted = store.get_deleted_usernames()
    return CredentialsDebugInfo(
        custom_credentials_count=len(credentials),
        custom_credentials_list=list(credentials),
        registered_users_count=len(registered),
        registered_users_list=registered,
        deleted_users_count=len(deleted),
        deleted_users_list=deleted,
    )
