"""Domain error hierarchy.

Services raise these for expected conditions; the global exception handler
maps ``status_code`` to the HTTP response so routers stay declarative.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for expected, client-facing failures."""

    status_code: int = 400
    default_message: str = "Request could not be processed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailedError(DomainError):
    status_code = 400
    default_message = "Invalid request"


# --- 404 ---


class NotFoundError(DomainError):
    status_code = 404
    default_message = "Resource not found"


class UserNotFoundError(NotFoundError):
    default_message = "User not found"


class ChallengeNotFoundError(NotFoundError):
    default_message = "Challenge not found"


class TaskNotFoundError(NotFoundError):
    default_message = "Task not found"


class ActionNotFoundError(NotFoundError):
    default_message = "Action not found"


class ProgressNotFoundError(NotFoundError):
    default_message = "Progress not found"


class NotificationNotFoundError(NotFoundError):
    default_message = "Notification not found"


class BadgeNotFoundError(NotFoundError):
    default_message = "Badge not found"


class LinkCodeNotFoundError(NotFoundError):
    default_message = "Invalid or expired link code"


# --- 409 ---


class ConflictError(DomainError):
    status_code = 409
    default_message = "Resource already exists"


class AlreadyJoinedError(ConflictError):
    default_message = "You have already joined this challenge"


class DuplicateNameError(ConflictError):
    default_message = "Name already in use"


# --- 410 ---


class ChallengeExpiredError(DomainError):
    status_code = 410
    default_message = "Challenge has expired"
