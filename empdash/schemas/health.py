"""Pydantic schemas for health check responses."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response body for the health check endpoint."""

    status: Literal["ok"] = Field(default="ok", description="Service status")
    environment: str = Field(description="Current app environment (e.g. dev, prod)")
    store: Literal["connected", "disconnected"] = Field(
        description="Key-value store connectivity status"
    )
    store_backend: str = Field(description="Configured store backend (database or memory)")
