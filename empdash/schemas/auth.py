"""Request/response schemas for authentication and credential bookkeeping."""

from typing import Literal

from pydantic import BaseModel, Field

Role = Literal["superadmin", "admin", "user"]


class AuthResult(BaseModel):
    """Outcome of authenticate(); role is set only on success."""

    success: bool
    role: Role | None = None
    message: str | None = None


class OperationResult(BaseModel):
    """Outcome of a state-changing identity operation."""

    success: bool
    message: str


class CleanupResult(BaseModel):
    """Custom credentials removed and kept by cleanup_invalid_credentials()."""

    cleaned: int
    remaining: int


class CredentialsDebugInfo(BaseModel):
    """Snapshot of stored identity collections (names only, no passwords)."""

    custom_credentials_count: int = 0
    custom_credentials_list: list[str] = Field(default_factory=list)
    registered_users_count: int = 0
    registered_users_list: list[str] = Field(default_factory=list)
    deleted_users_count: int = 0
    deleted_users_list: list[str] = Field(default_factory=list)


class LoginRequest(BaseModel):
    """Credentials for login."""

    username: str = Field(..., min_length=1, max_length=255, description="Username")
    password: str = Field(..., min_length=1, max_length=128, description="Password")


class LoginResponse(BaseModel):
    """
    Principal written into the session markers after a successful login.
    Send access_token as: Authorization: Bearer <access_token>
    """

    username: str
    role: Role
    login_time: str
    access_token: str = Field(..., description="Opaque session token")
    token_type: str = Field(default="bearer", description="Token type")


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., max_length=128)
    new_password: str = Field(..., max_length=128)


class ChangeUsernameRequest(BaseModel):
    password: str = Field(..., max_length=128)
    new_username: str = Field(..., max_length=255)


class UsernameChangedResponse(BaseModel):
    """Whether a rename happened since the flag was last consumed."""

    username_changed: bool


class CurrentUser(BaseModel):
    """Logged-in principal derived from the session markers."""

    id: str
    username: str
    email: str
    name: str
    role: Role
