"""Pydantic request/response schemas."""

from empdash.schemas.account import LoginHistoryResponse, LoginNotification, UserProfile
from empdash.schemas.auth import (
    AuthResult,
    CleanupResult,
    CredentialsDebugInfo,
    CurrentUser,
    OperationResult,
    Role,
)
from empdash.schemas.health import HealthResponse
from empdash.schemas.users import RegisteredUser, UserListItem, UsersListResponse

__all__ = [
    "AuthResult",
    "CleanupResult",
    "CredentialsDebugInfo",
    "CurrentUser",
    "HealthResponse",
    "LoginHistoryResponse",
    "LoginNotification",
    "OperationResult",
    "RegisteredUser",
    "Role",
    "UserListItem",
    "UserProfile",
    "UsersListResponse",
]
