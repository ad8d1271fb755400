"""Schemas for registered users and the user-management endpoints."""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from empdash.schemas.auth import Role


class RegisteredUser(BaseModel):
    """
    Stored user record (self-registered, admin-created, or synthesised by a rename).

    Serialised with createdAt; older records written as "created" are accepted.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = ""
    username: str
    password: str = ""
    email: str = ""
    name: str = ""
    role: Role = "user"
    created_at: str = Field(
        default="",
        validation_alias=AliasChoices("createdAt", "created", "created_at"),
        serialization_alias="createdAt",
    )


class RegisterRequest(BaseModel):
    """Self-registration form."""

    username: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., max_length=255)
    name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., max_length=128)


class CreateUserRequest(BaseModel):
    """Admin-created user; password falls back to the shared default."""

    username: str = Field(..., min_length=1, max_length=255)
    email: str = Field(default="", max_length=255)
    name: str = Field(default="", max_length=255)
    role: Role = "user"
    password: str | None = Field(default=None, max_length=128)


class UpdateUserRequest(BaseModel):
    """Profile/role edit; omitted fields are left unchanged."""

    email: str | None = Field(default=None, max_length=255)
    name: str | None = Field(default=None, max_length=255)
    role: Role | None = None


class UserListItem(BaseModel):
    """User entry for admin list (no password)."""

    id: str
    username: str
    email: str
    name: str
    role: Role
    created_at: str
    is_default: bool = False
    renamed_default: bool = False


class UsersListResponse(BaseModel):
    """Response for GET /users (admin only)."""

    users: list[UserListItem]
