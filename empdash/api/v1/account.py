"""Profile and login-history endpoints for the logged-in user."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, status

from empdash.api.v1.auth import StoreDep, get_current_user
from empdash.schemas.account import LoginHistoryResponse, UserProfile
from empdash.schemas.auth import CurrentUser
from empdash.services import account as account_service

router = APIRouter()


@router.get("/profile", response_model=UserProfile)
def get_profile(
    _user: Annotated[CurrentUser, Depends(get_current_user)],
    store: StoreDep,
) -> dict[str, Any]:
    return account_service.get_user_profile(store) or {}


@router.patch("/profile", response_model=UserProfile)
def update_profile(
    body: UserProfile,
    _user: Annotated[CurrentUser, Depends(get_current_user)],
    store: StoreDep,
) -> dict[str, Any]:
    """Merge the supplied fields into the stored profile; omitted fields are kept."""
    return account_service.update_user_profile(store, body.model_dump(exclude_unset=True))


@router.get("/login-history", response_model=LoginHistoryResponse)
def get_login_history(
    _user: Annotated[CurrentUser, Depends(get_current_user)],
    store: StoreDep,
) -> LoginHistoryResponse:
    return LoginHistoryResponse(notifications=account_service.get_login_notifications(store))


@router.delete("/login-history", status_code=status.HTTP_204_NO_CONTENT)
def clear_login_history(
    _user: Annotated[CurrentUser, Depends(get_current_user)],
    store: StoreDep,
) -> None:
    account_service.clear_login_notifications(store)
