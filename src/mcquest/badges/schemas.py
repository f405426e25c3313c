"""Pydantic schemas for badge endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class BadgeCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    criteria: dict[str, Any] = {}


class BadgeUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None
    criteria: dict[str, Any] | None = None


class BadgeResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    criteria: dict[str, Any] | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class UserBadgeResponse(BaseModel):
    badge: BadgeResponse
    earned_at: datetime

    model_config = {"from_attributes": True}


class BadgeAwardResponse(BaseModel):
    user_id: int
    badge_id: int
    awarded: bool


class BadgeRevokeResponse(BaseModel):
    user_id: int
    badge_id: int
    revoked: bool
