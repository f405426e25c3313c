"""Pydantic schemas for action catalog endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ActionCreateRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    description: str | None = None
    parameters: dict[str, Any] | None = None


class ActionUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=50)
    description: str | None = None
    parameters: dict[str, Any] | None = None


class ActionResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    parameters: dict[str, Any] | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
