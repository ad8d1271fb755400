"""User management over the identity store: registration, admin CRUD, soft deletion."""

from __future__ import annotations

import logging
import re
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from empdash.core.config import get_settings
from empdash.schemas.auth import OperationResult, Role
from empdash.schemas.users import RegisteredUser, UserListItem
from empdash.services.auth import (
    MSG_NO_SESSION,
    detach_username,
    get_original_role,
    is_deleted,
    previous_usernames,
)
from empdash.services.credentials import DEFAULT_ROLES, is_default_username
from empdash.services.identity_store import IdentityStore

if TYPE_CHECKING:
    from empdash.core.config import Settings

logger = logging.getLogger(__name__)

# Password given to admin-created users when none is supplied.
DEFAULT_NEW_USER_PASSWORD = "defaultpassword"

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_ADMIN_ROLES = frozenset(("admin", "superadmin"))

MSG_USER_NOT_FOUND = "User not found"
MSG_CANNOT_DELETE_SELF = "You cannot delete your own account"
MSG_CANNOT_DELETE_ADMIN = "Only a superadmin can delete administrators"
MSG_CANNOT_EDIT_BUILTIN = "Built-in accounts cannot be edited"
MSG_CANNOT_ASSIGN_ROLE = "Only a superadmin can manage administrator roles"

# Listing metadata for the built-in identities.
_DEFAULT_USER_DETAILS: dict[str, dict[str, str]] = {
    "admin": {
        "id": "1",
        "email": "admin@example.com",
        "name": "Administrator",
        "created_at": "2023-01-01T00:00:00Z",
    },
    "user": {
        "id": "2",
        "email": "user@example.com",
        "name": "Regular User",
        "created_at": "2023-01-15T00:00:00Z",
    },
    "superadmin": {
        "id": "3",
        "email": "superadmin@example.com",
        "name": "Super Administrator",
        "created_at": "2022-12-01T00:00:00Z",
    },
}


def _username_unavailable(store: IdentityStore, username: str) -> str | None:
    if is_default_username(username):
        return "Username is already taken (built-in account)"
    if store.find_registered_user(username) is not None:
        return "Username is already taken"
    if username in store.get_custom_credentials():
        return "Username is already taken"
    if is_deleted(store, username):
        return "Username belongs to a deleted account"
    return None


def add_registered_user(store: IdentityStore, user: RegisteredUser) -> OperationResult:
    """Store a new user record if its username is free; fills id and createdAt when blank."""
    with store.transaction():
        conflict = _username_unavailable(store, user.username)
        if conflict:
            return OperationResult(success=False, message=conflict)
        record = user.model_copy(
            update={
                "id": user.id or uuid.uuid4().hex[:8],
                "created_at": user.created_at or datetime.now(UTC).isoformat(),
            }
        )
        users = store.get_registered_users()
        users.append(record)
        store.set_registered_users(users)
        changes = store.get_username_changes()
        # A freed name still in history would hand the new account someone else's role.
        if detach_username(changes, record.username):
            store.set_username_changes(changes)
    return OperationResult(success=True, message="User added")


def register_user(
    store: IdentityStore,
    username: str,
    email: str,
    name: str,
    password: str,
    settings: Settings | None = None,
) -> OperationResult:
    """Self-registration; new accounts always get the "user" role."""
    settings = settings or get_settings()
    username = (username or "").strip()
    if len(username) < settings.USERNAME_MIN_LENGTH:
        return OperationResult(
            success=False,
            message=f"Username must be at least {settings.USERNAME_MIN_LENGTH} characters",
        )
    if not _EMAIL_RE.match((email or "").strip()):
        return OperationResult(success=False, message="Invalid email format")
    if not (name or "").strip():
        return OperationResult(success=False, message="Name is required")
    if not password or len(password) < settings.PASSWORD_MIN_LENGTH:
        return OperationResult(
            success=False,
            message=f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters",
        )
    result = add_registered_user(
        store,
        RegisteredUser(
            username=username,
            password=password,
            email=email.strip(),
            name=name.strip(),
            role="user",
        ),
    )
    if not result.success:
        return result
    logger.info("Registered user: %s", username)
    return OperationResult(success=True, message="Registration successful, you can log in now")


def create_user(
    store: IdentityStore,
    username: str,
    email: str = "",
    name: str = "",
    role: Role = "user",
    password: str | None = None,
    settings: Settings | None = None,
) -> OperationResult:
    """Admin-created account. Without a password the shared default is used."""
    settings = settings or get_settings()
    username = (username or "").strip()
    if len(username) < settings.USERNAME_MIN_LENGTH:
        return OperationResult(
            success=False,
            message=f"Username must be at least {settings.USERNAME_MIN_LENGTH} characters",
        )
    if role in _ADMIN_ROLES and not _actor_is_superadmin(store):
        return OperationResult(success=False, message=MSG_CANNOT_ASSIGN_ROLE)
    if password is not None and len(password) < settings.PASSWORD_MIN_LENGTH:
        return OperationResult(
            success=False,
            message=f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters",
        )
    result = add_registered_user(
        store,
        RegisteredUser(
            username=username,
            password=password or DEFAULT_NEW_USER_PASSWORD,
            email=email,
            name=name,
            role=role,
        ),
    )
    if result.success:
        logger.info("Created user: %s role=%s", username, role)
    return result


def _actor_is_superadmin(store: IdentityStore) -> bool:
    return store.get_session_role() == "superadmin"


def update_user(
    store: IdentityStore,
    username: str,
    email: str | None = None,
    name: str | None = None,
    role: Role | None = None,
) -> OperationResult:
    """Edit email, display name or role of a registered user."""
    with store.transaction():
        users = store.get_registered_users()
        record = next((u for u in users if u.username == username), None)
        if record is None:
            if is_default_username(username):
                return OperationResult(success=False, message=MSG_CANNOT_EDIT_BUILTIN)
            return OperationResult(success=False, message=MSG_USER_NOT_FOUND)

        if role is not None and role != record.role:
            if any(is_default_username(old) for old in previous_usernames(store, username)):
                # Role of a renamed built-in account follows the built-in identity.
                return OperationResult(success=False, message=MSG_CANNOT_EDIT_BUILTIN)
            if {role, record.role} & _ADMIN_ROLES and not _actor_is_superadmin(store):
                return OperationResult(success=False, message=MSG_CANNOT_ASSIGN_ROLE)
            record.role = role
        if email is not None:
            record.email = email
        if name is not None:
            record.name = name
        store.set_registered_users(users)
    logger.info("Updated user: %s", username)
    return OperationResult(success=True, message="User updated")


def _listed_default_usernames(store: IdentityStore, registered: list[RegisteredUser]) -> list[str]:
    """Built-in identities still shown: not renamed away, not deleted, not shadowed."""
    changes = store.get_username_changes()
    deleted = set(store.get_deleted_usernames())
    registered_names = {u.username for u in registered}
    registered_roles = {u.role for u in registered}
    listed = []
    for username, role in DEFAULT_ROLES.items():
        if username in changes or username in deleted or username in registered_names:
            continue
        # A registered admin/superadmin supersedes the built-in one in the list.
        if role in _ADMIN_ROLES and role in registered_roles:
            continue
        listed.append(username)
    return listed


def list_users(store: IdentityStore) -> list[UserListItem]:
    registered = store.get_registered_users()
    items = [
        UserListItem(
            id=u.id or uuid.uuid4().hex[:8],
            username=u.username,
            email=u.email,
            name=u.name,
            role=u.role,
            created_at=u.created_at,
            renamed_default=any(
                is_default_username(old) for old in previous_usernames(store, u.username)
            ),
        )
        for u in registered
    ]
    for username in _listed_default_usernames(store, registered):
        details = _DEFAULT_USER_DETAILS[username]
        items.append(
            UserListItem(
                username=username,
                role=DEFAULT_ROLES[username],
                is_default=True,
                **details,
            )
        )
    return items


def remove_custom_credential(store: IdentityStore, username: str) -> bool:
    """Delete the custom credential for username; False when there was none."""
    with store.transaction():
        credentials = store.get_custom_credentials()
        if username not in credentials:
            logger.info("No custom credentials found for: %s", username)
            return False
        del credentials[username]
        store.set_custom_credentials(credentials)
    logger.info("Custom credential removed for: %s", username)
    return True


def delete_user(store: IdentityStore, username: str) -> OperationResult:
    """
    Soft-delete an account: drop its record and credential, and block its current
    and every previous username from logging in again.
    """
    with store.transaction():
        actor = store.get_session_username()
        if not actor:
            return OperationResult(success=False, message=MSG_NO_SESSION)
        if actor == username:
            return OperationResult(success=False, message=MSG_CANNOT_DELETE_SELF)

        registered = store.get_registered_users()
        record = next((u for u in registered if u.username == username), None)
        if record is None and username not in _listed_default_usernames(store, registered):
            return OperationResult(success=False, message=MSG_USER_NOT_FOUND)

        role = get_original_role(store, username)
        if role in _ADMIN_ROLES and not _actor_is_superadmin(store):
            return OperationResult(success=False, message=MSG_CANNOT_DELETE_ADMIN)

        if record is not None:
            store.set_registered_users([u for u in registered if u.username != username])

        prior = previous_usernames(store, username)
        deleted = store.get_deleted_usernames()
        for name in [username, *prior]:
            if name not in deleted:
                deleted.append(name)
                logger.info("Added to deleted users list: %s", name)
        store.set_deleted_usernames(deleted)

        if prior:
            changes = store.get_username_changes()
            for name in prior:
                changes.pop(name, None)
            store.set_username_changes(changes)

        remove_custom_credential(store, username)

    logger.info("Deleted user: %s", username)
    return OperationResult(success=True, message="User deleted")
