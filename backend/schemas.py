"""
schemas.py — Typed create / patch payloads
Patches distinguish "absent" (not set, left untouched) from an explicit None
(written as NULL); services read them with model_dump(exclude_unset=True).
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models.enums import GoalStatus, TaskStatus, Priority


class Payload(BaseModel):
    model_config = ConfigDict(use_enum_values=True, extra="forbid")


# --- Users ---
class UserCreate(Payload):
    username: str = Field(min_length=1, max_length=50)
    pin_hash: str


class UserUpdate(Payload):
    pin_hash: Optional[str] = None


# --- Goals ---
class GoalCreate(Payload):
    specific: str
    measurable: str
    achievable: str
    relevant: str
    time_bound: date
    title: Optional[str] = None
    description: Optional[str] = None
    status: GoalStatus = GoalStatus.NOT_STARTED
    progress: float = Field(default=0.0, ge=0, le=100)
    parent_goal_id: Optional[str] = None


class GoalUpdate(Payload):
    specific: Optional[str] = None
    measurable: Optional[str] = None
    achievable: Optional[str] = None
    relevant: Optional[str] = None
    time_bound: Optional[date] = None
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[GoalStatus] = None
    progress: Optional[float] = None  # clamped by GoalService
    parent_goal_id: Optional[str] = None


# --- Tasks ---
class TaskCreate(Payload):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    priority: Optional[Priority] = None
    status: TaskStatus = TaskStatus.PENDING
    parent_task_id: Optional[str] = None
    goal_id: Optional[str] = None


class TaskUpdate(Payload):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    priority: Optional[Priority] = None
    status: Optional[TaskStatus] = None
    parent_task_id: Optional[str] = None
    goal_id: Optional[str] = None


# --- Streaks ---
class StreakUpdate(Payload):
    current_streak: Optional[int] = Field(default=None, ge=0)
    longest_streak: Optional[int] = Field(default=None, ge=0)
    last_completed_date: Optional[date] = None
