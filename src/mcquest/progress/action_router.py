"""Action router: turns a raw in-game event into task progress.

Given (player, action name, quantity, parameters) the router finds every task
keyed on that action inside challenges the player has an ``accepted``
membership for, filters them through the configured parameter matcher, and
increments each one. Every task runs in its own SAVEPOINT: a failure rolls
back that task alone and is reported in its outcome while the rest of the
batch proceeds.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mcquest.config import get_settings
from mcquest.db.models import MEMBERSHIP_ACCEPTED, Action, ChallengeMembership, ChallengeTask
from mcquest.progress import evaluator, tracker
from mcquest.progress.matchers import ParameterMatcher, get_matcher

logger = structlog.get_logger()


@dataclass
class TaskOutcome:
    """Result of applying one action event to one task."""

    task_id: int
    challenge_id: int
    progress: int | None = None
    task_completed: bool = False
    challenge_completed: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


async def find_matching_tasks(db: AsyncSession, user_id: int, action_name: str) -> list[ChallengeTask]:
    """Tasks on ``action_name`` in challenges the player has accepted (not yet completed)."""
    result = await db.execute(
        select(ChallengeTask)
        .join(Action, Action.id == ChallengeTask.action_id)
        .join(ChallengeMembership, ChallengeMembership.challenge_id == ChallengeTask.challenge_id)
        .where(
            Action.name == action_name,
            ChallengeMembership.user_id == user_id,
            ChallengeMembership.status == MEMBERSHIP_ACCEPTED,
        )
        .order_by(ChallengeTask.challenge_id, ChallengeTask.id)
    )
    return list(result.unique().scalars().all())


async def _apply(
    db: AsyncSession,
    user_id: int,
    task_id: int,
    challenge_id: int,
    quantity: int,
    redis: Any | None,
) -> TaskOutcome:
    outcome = TaskOutcome(task_id=task_id, challenge_id=challenge_id)
    row = await tracker.increment(db, user_id, task_id, quantity)
    if row is None:
        outcome.error = "Task not found"
        return outcome
    outcome.progress = row.progress
    outcome.task_completed = row.completed
    if row.completed:
        outcome.challenge_completed = await evaluator.check_completion(db, user_id, challenge_id, redis=redis)
    return outcome


async def route_action(
    db: AsyncSession,
    user_id: int,
    action_name: str,
    quantity: int = 1,
    parameters: Mapping[str, Any] | None = None,
    redis: Any | None = None,
    matcher: ParameterMatcher | None = None,
) -> list[TaskOutcome]:
    """Fan an action event out to every matching task of the player.

    Returns one outcome per task considered, in (challenge_id, task_id) order.
    Tasks whose parameter filter rejects the event are skipped silently.

    Raises:
        ValueError: If quantity < 1.
    """
    if quantity < 1:
        raise ValueError("quantity must be >= 1")
    matcher = matcher or get_matcher(get_settings().task_parameter_match)

    # Plain values only: a rolled-back savepoint expires ORM state
    candidates = [(t.id, t.challenge_id, t.parameters) for t in await find_matching_tasks(db, user_id, action_name)]
    outcomes: list[TaskOutcome] = []

    for task_id, challenge_id, task_parameters in candidates:
        if not matcher(task_parameters, parameters):
            logger.debug("action_parameters_mismatch", user_id=user_id, task_id=task_id)
            continue
        try:
            async with db.begin_nested():
                outcome = await _apply(db, user_id, task_id, challenge_id, quantity, redis)
        except Exception as e:
            logger.error(
                "action_task_failed",
                user_id=user_id,
                action=action_name,
                task_id=task_id,
                error=str(e),
                exc_info=True,
            )
            outcome = TaskOutcome(task_id=task_id, challenge_id=challenge_id, error=str(e) or type(e).__name__)
        outcomes.append(outcome)

    logger.info(
        "action_routed",
        user_id=user_id,
        action=action_name,
        quantity=quantity,
        tasks=len(outcomes),
        failed=sum(1 for o in outcomes if o.error),
    )
    return outcomes
