"""Health check endpoint with key-value store connectivity check."""

from typing import Annotated

from fastapi import APIRouter, Depends

from empdash.core.config import settings
from empdash.schemas.health import HealthResponse
from empdash.services.identity_store import IdentityStore, get_identity_store

router = APIRouter()


@router.get("/", response_model=HealthResponse)
def get_health(store: Annotated[IdentityStore, Depends(get_identity_store)]) -> HealthResponse:
    """
    Return service health status and store connectivity.
    Used by load balancers and monitoring.
    """
    store_status = "connected" if store.backend.ping() else "disconnected"

    return HealthResponse(
        status="ok",
        environment=settings.APP_ENV,
        store=store_status,
        store_backend=settings.STORE_BACKEND,
    )
