"""Account-side state tied to the logged-in user: app settings, profile, login history."""

from __future__ import annotations

import copy
import logging
import time
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from empdash.core.config import get_settings
from empdash.schemas.account import LoginNotification

if TYPE_CHECKING:
    from empdash.core.config import Settings
    from empdash.services.identity_store import IdentityStore

logger = logging.getLogger(__name__)

DEFAULT_APP_SETTINGS: dict[str, Any] = {
    "notifications": {
        "email": True,
        "browser": True,
        "mobile": False,
        "updates": True,
        "newsletter": False,
    },
    "appearance": {"theme": "light", "fontSize": "sedang", "language": "id"},
    "privacy": {
        "activityLogging": True,
        "dataSharingConsent": False,
        "useBiometrics": False,
        "showLoginHistory": True,
        "saveLoginInfo": True,
    },
    "account": {
        "twoFactorEnabled": False,
        "lastPasswordChange": "2023-04-15",
        "loginNotifications": True,
        "recoveryEmail": "backup@example.com",
        "sessionTimeout": 30,
    },
    "storage": {
        "cacheEnabled": True,
        "offlineMode": False,
        "autoBackup": True,
        "storageQuota": 100,
        "dataRetention": 90,
    },
}


def ensure_app_settings(store: IdentityStore) -> dict[str, Any]:
    """Return stored settings, writing the defaults first if none exist."""
    current = store.get_app_settings()
    if current is None:
        current = copy.deepcopy(DEFAULT_APP_SETTINGS)
        store.set_app_settings(current)
    return current


def record_password_change(store: IdentityStore, today: str | None = None) -> None:
    """Stamp account.lastPasswordChange (YYYY-MM-DD) when an account section exists."""
    app_settings = store.get_app_settings()
    if not app_settings or not isinstance(app_settings.get("account"), dict):
        return
    stamp = today or datetime.now(UTC).date().isoformat()
    app_settings["account"]["lastPasswordChange"] = stamp
    store.set_app_settings(app_settings)
    logger.info("Updated last password change date: %s", stamp)


def login_notifications_enabled(store: IdentityStore) -> bool:
    app_settings = store.get_app_settings() or {}
    account = app_settings.get("account")
    if not isinstance(account, dict):
        return True
    return bool(account.get("loginNotifications", True))


def add_login_notification(
    store: IdentityStore,
    username: str,
    success: bool,
    ip: str | None = None,
    user_agent: str | None = None,
    location: str | None = None,
    settings: Settings | None = None,
) -> LoginNotification | None:
    """Prepend a login attempt to the history, keeping at most LOGIN_HISTORY_LIMIT entries."""
    if not login_notifications_enabled(store):
        return None
    settings = settings or get_settings()
    notification = LoginNotification(
        id=uuid.uuid4().hex[:12],
        timestamp=int(time.time() * 1000),
        username=username,
        success=success,
        ip=ip,
        user_agent=user_agent,
        location=location,
    )
    history = store.get_login_notifications()
    history.insert(0, notification.model_dump())
    store.set_login_notifications(history[: settings.LOGIN_HISTORY_LIMIT])
    return notification


def get_login_notifications(store: IdentityStore) -> list[LoginNotification]:
    notifications: list[LoginNotification] = []
    for item in store.get_login_notifications():
        try:
            notifications.append(LoginNotification.model_validate(item))
        except ValidationError as e:
            logger.warning("Skipping invalid login notification: %s", e)
    return notifications


def clear_login_notifications(store: IdentityStore) -> None:
    store.set_login_notifications([])


def get_user_profile(store: IdentityStore) -> dict[str, Any] | None:
    """
    Stored profile, or a default one for the logged-in user (persisted on first read).
    None when nobody is logged in and no profile exists.
    """
    profile = store.get_user_profile()
    if profile is not None:
        return profile
    username = store.get_session_username()
    if not username:
        return None
    profile = {
        "name": username,
        "role": store.get_session_role() or "user",
        "email": f"{username}@employee-management.gov.id",
        "joinDate": datetime.now(UTC).date().isoformat(),
    }
    store.set_user_profile(profile)
    logger.info("Created default profile for user: %s", username)
    return profile


def update_user_profile(store: IdentityStore, data: dict[str, Any]) -> dict[str, Any]:
    """Merge data into the stored profile. The display name is independent of the username."""
    with store.transaction():
        profile = store.get_user_profile() or {}
        profile.update(data)
        store.set_user_profile(profile)
    return profile
