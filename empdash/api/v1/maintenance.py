"""Recovery endpoints for the identity store (superadmin only)."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from empdash.api.v1.auth import StoreDep, require_superadmin
from empdash.schemas.auth import CleanupResult, CredentialsDebugInfo, CurrentUser, OperationResult
from empdash.services import auth as auth_service

router = APIRouter()


@router.post("/cleanup-credentials", response_model=CleanupResult)
def cleanup_credentials(
    _superadmin: Annotated[CurrentUser, Depends(require_superadmin)],
    store: StoreDep,
) -> CleanupResult:
    """Remove custom credentials for usernames that are neither built-in nor registered."""
    return auth_service.cleanup_invalid_credentials(store)


@router.post("/reset", response_model=OperationResult)
def reset(
    _superadmin: Annotated[CurrentUser, Depends(require_superadmin)],
    store: StoreDep,
) -> OperationResult:
    """Wipe all identity, session and profile state. Ends the caller's session too."""
    result = auth_service.reset_all_data(store)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=result.message)
    return result


@router.get("/debug", response_model=CredentialsDebugInfo)
def debug_info(
    _superadmin: Annotated[CurrentUser, Depends(require_superadmin)],
    store: StoreDep,
) -> CredentialsDebugInfo:
    return auth_service.get_credentials_debug_info(store)
