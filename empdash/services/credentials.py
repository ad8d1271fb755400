"""Credential resolvers: custom override, built-in defaults, registered users."""

from __future__ import annotations

from typing import TYPE_CHECKING

from empdash.schemas.auth import Role

if TYPE_CHECKING:
    from empdash.services.identity_store import IdentityStore

# Built-in demo identities; each default username is also its role.
DEFAULT_CREDENTIALS: dict[str, str] = {
    "admin": "admin123",
    "user": "user123",
    "superadmin": "super123",
}
DEFAULT_ROLES: dict[str, Role] = {
    "admin": "admin",
    "user": "user",
    "superadmin": "superadmin",
}


def is_default_username(username: str) -> bool:
    return username in DEFAULT_CREDENTIALS


class CredentialResolver:
    """One source of truth for a password; applies() says whether it owns the username."""

    name = "base"

    def __init__(self, store: IdentityStore) -> None:
        self.store = store

    def applies(self, username: str) -> bool:
        raise NotImplementedError

    def verify(self, username: str, password: str) -> bool:
        raise NotImplementedError


class CustomCredentialResolver(CredentialResolver):
    """Password overrides written by password or username changes."""

    name = "custom"

    def applies(self, username: str) -> bool:
        return username in self.store.get_custom_credentials()

    def verify(self, username: str, password: str) -> bool:
        return self.store.get_custom_credentials().get(username) == password


class DefaultCredentialResolver(CredentialResolver):
    """
    Built-in passwords. A default name that was renamed away is retired:
    its password no longer opens anything.
    """

    name = "default"

    def applies(self, username: str) -> bool:
        return is_default_username(username) and username not in self.store.get_username_changes()

    def verify(self, username: str, password: str) -> bool:
        return self.applies(username) and DEFAULT_CREDENTIALS[username] == password


class RegisteredUserResolver(CredentialResolver):
    """Passwords stored on registered user records."""

    name = "registered"

    def applies(self, username: str) -> bool:
        return self.store.find_registered_user(username) is not None

    def verify(self, username: str, password: str) -> bool:
        return any(
            u.username == username and u.password == password
            for u in self.store.get_registered_users()
        )


def build_resolvers(store: IdentityStore) -> tuple[CredentialResolver, ...]:
    """Resolvers in priority order."""
    return (
        CustomCredentialResolver(store),
        DefaultCredentialResolver(store),
        RegisteredUserResolver(store),
    )


def verify_login_password(store: IdentityStore, username: str, password: str) -> tuple[bool, str | None]:
    """
    Login check. A custom credential is authoritative when present; otherwise the
    default table or a matching registered user may accept.

    Returns (accepted, name of the resolver that decided).
    """
    custom, default, registered = build_resolvers(store)
    if custom.applies(username):
        return custom.verify(username, password), custom.name
    if default.verify(username, password):
        return True, default.name
    if registered.verify(username, password):
        return True, registered.name
    return False, None


def verify_current_password(store: IdentityStore, username: str, password: str) -> bool:
    """
    Re-authentication for the logged-in user: custom credential if present, else
    the default password, then the registered record as a last chance.
    """
    custom = CustomCredentialResolver(store)
    if custom.applies(username):
        valid = custom.verify(username, password)
    elif is_default_username(username):
        valid = DEFAULT_CREDENTIALS[username] == password
    else:
        valid = False
    if not valid:
        user = store.find_registered_user(username)
        if user is not None:
            valid = user.password == password
    return valid
