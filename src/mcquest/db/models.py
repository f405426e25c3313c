"""ORM models for players, challenges, tasks, progress and rewards.

Foreign keys carry explicit ON DELETE policies:
- deleting a user cascades to everything that references them;
- deleting a challenge cascades to tasks, memberships and (through tasks) progress;
- an action referenced by a task cannot be deleted (RESTRICT).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    false,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mcquest.db.base import Base, BigIntPK, JSONType, utcnow

ROLE_PLAYER = "player"
ROLE_ADMIN = "admin"
ROLE_SYSTEM = "system"
ROLES = (ROLE_PLAYER, ROLE_ADMIN, ROLE_SYSTEM)

CHALLENGE_TYPES = ("periodic", "per-player", "special")

MEMBERSHIP_ACCEPTED = "accepted"
MEMBERSHIP_COMPLETED = "completed"


# ---------------------------------------------------------------------------
# Players
# ---------------------------------------------------------------------------


class User(Base):
    """A player (or admin / game-server system account)."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    uuid_mc: Mapped[str | None] = mapped_column(String(36), unique=True, nullable=True)
    username: Mapped[str] = mapped_column(String(64), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), unique=True, nullable=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=ROLE_PLAYER, server_default=ROLE_PLAYER)
    total_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    total_points: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    total_challenges_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Catalog: actions, challenges, tasks
# ---------------------------------------------------------------------------


class Action(Base):
    """In-game event type reported by the server plugin (e.g. MINE_BLOCK)."""

    __tablename__ = "actions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    parameters: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())


class Challenge(Base):
    """An objective players can join; composed of one or more tasks."""

    __tablename__ = "challenges"
    __table_args__ = (
        CheckConstraint("reward_xp >= 0", name="challenges_reward_xp_non_negative"),
        CheckConstraint("reward_points >= 0", name="challenges_reward_points_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reward_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    reward_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    reward_item: Mapped[Any | None] = mapped_column(JSONType, nullable=True)
    creator_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    tasks: Mapped[list[ChallengeTask]] = relationship(
        "ChallengeTask",
        back_populates="challenge",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ChallengeTask.id",
    )
    memberships: Mapped[list[ChallengeMembership]] = relationship(
        "ChallengeMembership",
        back_populates="challenge",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ChallengeTask(Base):
    """One measurable sub-goal of a challenge: reach ``quantity`` of an action."""

    __tablename__ = "challenge_tasks"
    __table_args__ = (CheckConstraint("quantity >= 1", name="challenge_tasks_quantity_positive"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    challenge_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False, index=True
    )
    action_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("actions.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    parameters: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    challenge: Mapped[Challenge] = relationship("Challenge", back_populates="tasks")
    action: Mapped[Action] = relationship("Action", lazy="joined")


# ---------------------------------------------------------------------------
# Participation and progress
# ---------------------------------------------------------------------------


class ChallengeMembership(Base):
    """A player having joined a challenge: UNIQUE(user_id, challenge_id)."""

    __tablename__ = "challenge_memberships"
    __table_args__ = (
        UniqueConstraint("user_id", "challenge_id", name="challenge_memberships_user_challenge_key"),
        # ids feed reward idempotency keys and must never be reused
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    challenge_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=MEMBERSHIP_ACCEPTED, server_default=MEMBERSHIP_ACCEPTED
    )
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    challenge: Mapped[Challenge] = relationship("Challenge", back_populates="memberships")


class TaskProgress(Base):
    """Accumulated quantity of one player toward one task: UNIQUE(user_id, task_id).

    ``completed`` is written together with ``progress`` in every update and
    always equals ``progress >= task.quantity``.
    """

    __tablename__ = "task_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "task_id", name="task_progress_user_task_key"),
        CheckConstraint("progress >= 0", name="task_progress_non_negative"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    task_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("challenge_tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    task: Mapped[ChallengeTask] = relationship("ChallengeTask", lazy="joined")


# ---------------------------------------------------------------------------
# Rewards
# ---------------------------------------------------------------------------


class RewardLedger(Base):
    """Append-only record of challenge reward grants with idempotency key."""

    __tablename__ = "reward_ledger"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    challenge_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("challenges.id", ondelete="SET NULL"), nullable=True
    )
    membership_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("challenge_memberships.id", ondelete="SET NULL"), nullable=True
    )
    xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str | None] = mapped_column(String(256), nullable=True)
    idempotency_key: Mapped[str] = mapped_column(String(256), unique=True, nullable=False)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class Notification(Base):
    """Persisted player notifications. Content is write-once; only ``read`` changes."""

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    notification_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, default=dict)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())


# ---------------------------------------------------------------------------
# Badges
# ---------------------------------------------------------------------------


class Badge(Base):
    """Badge catalog entry."""

    __tablename__ = "badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    criteria: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())


class UserBadge(Base):
    """Badges held by players: UNIQUE(user_id, badge_id) makes award/revoke set operations."""

    __tablename__ = "user_badges"
    __table_args__ = (UniqueConstraint("user_id", "badge_id", name="user_badges_user_id_badge_id_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    badge_id: Mapped[int] = mapped_column(Integer, ForeignKey("badges.id", ondelete="CASCADE"), nullable=False)
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

    badge: Mapped[Badge] = relationship("Badge", lazy="joined")
