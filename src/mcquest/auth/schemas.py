"""Request/response schemas for authentication endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field


class LinkCodeResponse(BaseModel):
    code: str
    expires_in: int
    instruction: str


class LinkCodeStatusResponse(BaseModel):
    valid: bool
    expires_in: int | None = None


class CompleteLinkRequest(BaseModel):
    """Sent by the server plugin when a player runs ``/link <code>``."""

    code: str = Field(..., min_length=4, max_length=16)
    uuid_mc: str = Field(..., min_length=1, max_length=36, validation_alias=AliasChoices("uuid_mc", "uuidMc"))
    username: str = Field(..., min_length=1, max_length=64)


class UserResponse(BaseModel):
    id: int
    uuid_mc: str | None = None
    username: str
    role: str
    total_xp: int
    total_points: int
    total_challenges_completed: int
    created_at: datetime | None = None
    last_login: datetime | None = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
