"""Pydantic schemas for challenge, task and membership endpoints.

Request bodies accept both snake_case and the camelCase keys sent by the
server plugin and web dashboard.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator

ChallengeType = Literal["periodic", "per-player", "special"]


# --- Challenges ---


class ChallengeCreateRequest(BaseModel):
    title: str = Field(..., min_length=3, max_length=100)
    description: str | None = None
    type: ChallengeType
    expires_at: datetime | None = Field(None, validation_alias=AliasChoices("expires_at", "expiresAt"))
    reward_xp: int = Field(0, ge=0, validation_alias=AliasChoices("reward_xp", "rewardXp"))
    reward_points: int = Field(0, ge=0, validation_alias=AliasChoices("reward_points", "rewardPoints"))
    reward_item: Any | None = Field(None, validation_alias=AliasChoices("reward_item", "rewardItem"))
    announce: bool = False


class ChallengeUpdateRequest(BaseModel):
    title: str | None = Field(None, min_length=3, max_length=100)
    description: str | None = None
    type: ChallengeType | None = None
    expires_at: datetime | None = Field(None, validation_alias=AliasChoices("expires_at", "expiresAt"))
    reward_xp: int | None = Field(None, ge=0, validation_alias=AliasChoices("reward_xp", "rewardXp"))
    reward_points: int | None = Field(None, ge=0, validation_alias=AliasChoices("reward_points", "rewardPoints"))
    reward_item: Any | None = Field(None, validation_alias=AliasChoices("reward_item", "rewardItem"))

    @field_validator("title", "type", "reward_xp", "reward_points", mode="before")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        # Omit the key to keep the current value; these columns are NOT NULL
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class ActionSummary(BaseModel):
    id: int
    name: str
    description: str | None = None

    model_config = {"from_attributes": True}


class TaskResponse(BaseModel):
    id: int
    challenge_id: int
    action_id: int
    quantity: int
    parameters: dict[str, Any] | None = None
    action: ActionSummary | None = None

    model_config = {"from_attributes": True}


class ChallengeResponse(BaseModel):
    id: int
    title: str
    description: str | None = None
    type: str
    expires_at: datetime | None = None
    reward_xp: int
    reward_points: int
    reward_item: Any | None = None
    creator_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    is_active: bool = True

    model_config = {"from_attributes": True}


class ChallengeWithTasksResponse(ChallengeResponse):
    tasks: list[TaskResponse] = []


class ChallengeStatsResponse(BaseModel):
    challenge_id: int
    participants: int
    completed: int
    in_progress: int
    completion_rate: float
    task_count: int


# --- Membership ---


class MembershipResponse(BaseModel):
    id: int
    user_id: int
    challenge_id: int
    status: str
    joined_at: datetime
    completed_at: datetime | None = None

    model_config = {"from_attributes": True}


class JoinChallengeResponse(BaseModel):
    joinedChallenge: MembershipResponse  # noqa: N815


class LeaveChallengeResponse(BaseModel):
    left: bool


class UserChallengeResponse(BaseModel):
    challenge: ChallengeResponse
    status: str
    joined_at: datetime
    completed_at: datetime | None = None


class UserChallengeStatsResponse(BaseModel):
    joined: int
    completed: int
    in_progress: int
    total_xp: int
    total_points: int
    total_challenges_completed: int


# --- Tasks ---


class TaskCreateRequest(BaseModel):
    action_id: int = Field(..., gt=0, validation_alias=AliasChoices("action_id", "actionId"))
    quantity: int = Field(1, ge=1)
    parameters: dict[str, Any] | None = None


class TaskUpdateRequest(BaseModel):
    action_id: int | None = Field(None, gt=0, validation_alias=AliasChoices("action_id", "actionId"))
    quantity: int | None = Field(None, ge=1)
    parameters: dict[str, Any] | None = None
