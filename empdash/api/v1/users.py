"""User management endpoints: self-registration and admin CRUD."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from empdash.api.v1.auth import StoreDep, require_admin
from empdash.schemas.auth import CurrentUser, OperationResult
from empdash.schemas.users import (
    CreateUserRequest,
    RegisterRequest,
    UpdateUserRequest,
    UsersListResponse,
)
from empdash.services import users as users_service

router = APIRouter()

# Failures that are not plain validation errors.
_STATUS_BY_MESSAGE = {
    users_service.MSG_USER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    users_service.MSG_CANNOT_DELETE_SELF: status.HTTP_403_FORBIDDEN,
    users_service.MSG_CANNOT_DELETE_ADMIN: status.HTTP_403_FORBIDDEN,
    users_service.MSG_CANNOT_ASSIGN_ROLE: status.HTTP_403_FORBIDDEN,
    users_service.MSG_CANNOT_EDIT_BUILTIN: status.HTTP_409_CONFLICT,
}


def _raise_for_result(result: OperationResult) -> OperationResult:
    if result.success:
        return result
    raise HTTPException(
        status_code=_STATUS_BY_MESSAGE.get(result.message, status.HTTP_400_BAD_REQUEST),
        detail=result.message,
    )


@router.post("/register", response_model=OperationResult, status_code=status.HTTP_201_CREATED)
def register(body: RegisterRequest, store: StoreDep) -> OperationResult:
    """Self-registration (no session required). New accounts get the 'user' role."""
    return _raise_for_result(
        users_service.register_user(store, body.username, body.email, body.name, body.password)
    )


@router.get("", response_model=UsersListResponse)
def list_users(
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    store: StoreDep,
) -> UsersListResponse:
    """List registered users plus the built-in accounts still in use (admin only)."""
    return UsersListResponse(users=users_service.list_users(store))


@router.post("", response_model=OperationResult, status_code=status.HTTP_201_CREATED)
def create_user(
    body: CreateUserRequest,
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    store: StoreDep,
) -> OperationResult:
    return _raise_for_result(
        users_service.create_user(
            store,
            body.username,
            email=body.email,
            name=body.name,
            role=body.role,
            password=body.password,
        )
    )


@router.patch("/{username}", response_model=OperationResult)
def update_user(
    username: str,
    body: UpdateUserRequest,
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    store: StoreDep,
) -> OperationResult:
    return _raise_for_result(
        users_service.update_user(
            store, username, email=body.email, name=body.name, role=body.role
        )
    )


@router.delete("/{username}", response_model=OperationResult)
def delete_user(
    username: str,
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    store: StoreDep,
) -> OperationResult:
    """
    Soft-delete a user: the username and every name it previously held can no
    longer log in. Admins may only delete regular users.
    """
    return _raise_for_result(users_service.delete_user(store, username))
