"""Schemas for profile data and login notifications."""

from pydantic import BaseModel, ConfigDict


class LoginNotification(BaseModel):
    """One recorded login attempt, newest first in storage."""

    id: str
    timestamp: int
    username: str
    success: bool
    ip: str | None = None
    user_agent: str | None = None
    location: str | None = None


class LoginHistoryResponse(BaseModel):
    notifications: list[LoginNotification]


class UserProfile(BaseModel):
    """Free-form profile; known fields are typed, anything else is kept."""

    model_config = ConfigDict(extra="allow")

    name: str | None = None
    email: str | None = None
    role: str | None = None
    avatar: str | None = None
