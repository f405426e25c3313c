"""Pydantic schemas for user endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, EmailStr, Field, field_validator


class RewardEntryResponse(BaseModel):
    id: int
    challenge_id: int | None = None
    xp: int
    points: int
    description: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class UserUpdateRequest(BaseModel):
    """Admin edit of a player's profile; omitted keys are left unchanged."""

    username: str | None = Field(None, min_length=1, max_length=64)
    email: EmailStr | None = None
    role: Literal["player", "admin", "system"] | None = None

    @field_validator("username", "role", mode="before")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("may be omitted but not null")
        return value
