"""Login/logout, credential changes and the session dependencies (get_current_user, require_admin)."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from empdash.schemas.auth import (
    ChangePasswordRequest,
    ChangeUsernameRequest,
    CurrentUser,
    LoginRequest,
    LoginResponse,
    OperationResult,
    UsernameChangedResponse,
)
from empdash.services import auth as auth_service
from empdash.services.identity_store import IdentityStore, get_identity_store

router = APIRouter()
security = HTTPBearer(auto_error=False)

StoreDep = Annotated[IdentityStore, Depends(get_identity_store)]


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    store: StoreDep,
) -> CurrentUser:
    """Dependency: require the Bearer token of the active session and return its user. Raises 401 otherwise."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not auth_service.is_valid_session_token(store, credentials.credentials):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user = auth_service.get_current_user(store)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_admin(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """Dependency: require role 'admin' or 'superadmin'. Raises 403 otherwise."""
    if current_user.role not in ("admin", "superadmin"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


def require_superadmin(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """Dependency: require role 'superadmin'. Raises 403 otherwise."""
    if current_user.role != "superadmin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Superadmin access required",
        )
    return current_user


def _raise_for_result(result: OperationResult) -> OperationResult:
    if result.success:
        return result
    if result.message == auth_service.MSG_NO_SESSION:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=result.message)
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.message)


@router.post("/login", response_model=LoginResponse)
def login(body: LoginRequest, request: Request, store: StoreDep) -> LoginResponse:
    """
    Authenticate with username and password and open the session.
    Deleted accounts and wrong passwords get 401 with the reason in detail.
    Include the returned token in the Authorization header as: Bearer <access_token>
    """
    result = auth_service.login(
        store,
        body.username,
        body.password,
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    token = store.get_session_token()
    if not result.success or result.role is None or token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=result.message or auth_service.MSG_INVALID_LOGIN,
        )
    app_user = store.get_app_user()
    return LoginResponse(
        username=body.username,
        role=result.role,
        login_time=app_user.get("loginTime", ""),
        access_token=token,
    )


@router.post("/logout", response_model=OperationResult)
def logout(
    _user: Annotated[CurrentUser, Depends(get_current_user)],
    store: StoreDep,
) -> OperationResult:
    auth_service.logout(store)
    return OperationResult(success=True, message="Logged out")


@router.get("/me", response_model=CurrentUser)
def me(current_user: Annotated[CurrentUser, Depends(get_current_user)]) -> CurrentUser:
    return current_user


@router.post("/password", response_model=OperationResult)
def change_password(
    body: ChangePasswordRequest,
    _user: Annotated[CurrentUser, Depends(get_current_user)],
    store: StoreDep,
) -> OperationResult:
    """Change the logged-in user's password; the current password must be supplied."""
    return _raise_for_result(
        auth_service.change_password(store, body.current_password, body.new_password)
    )


@router.post("/username", response_model=OperationResult)
def change_username(
    body: ChangeUsernameRequest,
    _user: Annotated[CurrentUser, Depends(get_current_user)],
    store: StoreDep,
) -> OperationResult:
    """
    Rename the logged-in account. Role, password and session token carry over;
    clients should check /username-changed/consume and ask the user to log in again.
    """
    return _raise_for_result(
        auth_service.change_username(store, body.password, body.new_username)
    )


@router.post("/username-changed/consume", response_model=UsernameChangedResponse)
def consume_username_changed(
    _user: Annotated[CurrentUser, Depends(get_current_user)],
    store: StoreDep,
) -> UsernameChangedResponse:
    return UsernameChangedResponse(
        username_changed=auth_service.consume_username_changed_flag(store)
    )
