"""Pydantic schemas for progress endpoints.

The server plugin posts camelCase bodies (``userId``, ``taskId``,
``actionName``); snake_case is accepted too.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, Field


class IncrementProgressRequest(BaseModel):
    user_id: int = Field(..., gt=0, validation_alias=AliasChoices("user_id", "userId"))
    task_id: int = Field(..., gt=0, validation_alias=AliasChoices("task_id", "taskId"))
    amount: int = Field(1, ge=1, validation_alias=AliasChoices("amount", "quantity"))


class ActionEventRequest(BaseModel):
    """A raw in-game event reported by the server plugin."""

    user_id: int = Field(..., gt=0, validation_alias=AliasChoices("user_id", "userId"))
    action_name: str = Field(
        ..., min_length=1, max_length=64, validation_alias=AliasChoices("action_name", "actionName", "action")
    )
    quantity: int = Field(1, ge=1, validation_alias=AliasChoices("quantity", "amount"))
    parameters: dict[str, Any] | None = None


class SetProgressRequest(BaseModel):
    progress: int = Field(..., ge=0)


class ProgressResponse(BaseModel):
    id: int
    user_id: int
    task_id: int
    challenge_id: int
    progress: int
    target: int
    completed: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProgressUpdateResponse(ProgressResponse):
    challengeCompleted: bool  # noqa: N815


class UserChallengeProgressResponse(BaseModel):
    user_id: int
    challenge_id: int
    progress: list[ProgressResponse]
    challengeCompleted: bool  # noqa: N815


class TaskOutcomeResponse(BaseModel):
    task_id: int
    challenge_id: int
    progress: int | None = None
    task_completed: bool
    challenge_completed: bool
    error: str | None = None


class ActionEventResponse(BaseModel):
    results: list[TaskOutcomeResponse]
