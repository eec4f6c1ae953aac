# Import all models so they register with SQLAlchemy Base.metadata
# This ensures Base.metadata.create_all() creates all tables

from models.user import User
from models.goal import Goal
from models.task import Task
from models.streak import Streak
from models.metadata import SchemaMetadata
from models.enums import GoalStatus, TaskStatus, Priority

__all__ = [
    "User",
    "Goal",
    "Task",
    "Streak",
    "SchemaMetadata",
    "GoalStatus",
    "TaskStatus",
    "Priority",
]
