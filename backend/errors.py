"""
errors.py — Storage error taxonomy
Every failure raised by the data layer derives from StorageError.
Absent records are returned as None, never raised.
"""

from sqlalchemy.exc import IntegrityError


class StorageError(Exception):
    """Base class for data layer failures."""


class StorageUnavailable(StorageError):
    """The embedded database could not be opened."""


class StorageClosed(StorageError):
    """An operation was attempted after the store was closed."""


class SchemaVersionError(StorageError):
    """The stored schema is newer than this code understands."""


class ConstraintViolation(StorageError):
    """A unique or foreign-key constraint rejected the write."""


class RecomputeFailure(StorageError):
    """Goal progress could not be recomputed after a successful task mutation.

    Non-fatal: the triggering mutation stays committed.
    """

    def __init__(self, goal_id: str, cause: Exception):
        super().__init__(f"Failed to recompute progress for goal {goal_id}: {cause}")
        self.goal_id = goal_id
        self.cause = cause


class CascadeDeleteFailure(StorageError):
    """A goal cascade delete failed and was rolled back as a whole."""

    def __init__(self, goal_id: str, cause: Exception):
        super().__init__(f"Failed to delete goal {goal_id} with its sub-goals: {cause}")
        self.goal_id = goal_id
        self.cause = cause


class GoalCycleError(StorageError):
    """A parent assignment would make a goal its own ancestor."""


def constraint_violation_from(exc: IntegrityError) -> ConstraintViolation:
    """Translate a driver IntegrityError into a domain message."""
    message = str(getattr(exc, "orig", exc))
    if "users.username" in message:
        return ConstraintViolation("username already exists")
    if "streaks.user_id" in message:
        return ConstraintViolation("streak already exists for user")
    if "FOREIGN KEY" in message.upper():
        return ConstraintViolation("referenced record does not exist")
    return ConstraintViolation(message)
