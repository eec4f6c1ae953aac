"""
goal_service.py — Goal records
SMART goals with clamped progress, sub-goal traversal and deadline / status filters.
"""

import logging
from datetime import date, datetime

from sqlalchemy import select, func, case

from models.goal import Goal
from models.task import Task
from models.enums import GoalStatus, TaskStatus, enum_value
from services.base_service import BaseService

logger = logging.getLogger(__name__)


def clamp_progress(value) -> float:
    return min(100.0, max(0.0, float(value)))


def compute_progress(completed: int, total: int) -> int:
    """round(100 * completed / total) with halves rounded up, clamped to [0, 100]."""
    if total <= 0:
        return 0
    # floor(100c/t + 1/2) in integer arithmetic
    value = (200 * completed + total) // (2 * total)
    return min(100, max(0, value))


def _as_date(value) -> date:
    return value.date() if isinstance(value, datetime) else value


class GoalService(BaseService):
    model = Goal
    immutable_columns = ("id", "user_id", "created_at")

    def _prepare_create(self, fields: dict) -> dict:
        if "progress" in fields:
            fields["progress"] = clamp_progress(fields["progress"])
        return fields

    def _prepare_update(self, fields: dict) -> dict:
        if fields.get("progress") is not None:
            fields["progress"] = clamp_progress(fields["progress"])
        return fields

    # ------------------------------------------------------------------
    def create_goal(self, owner_id: str, data) -> Goal:
        fields = self._fields(data)
        fields["user_id"] = owner_id
        return self.create(fields)

    def find_by_status(self, owner_id: str, status: GoalStatus | str) -> list[Goal]:
        return self.find_where((Goal.user_id == owner_id) & (Goal.status == enum_value(status)))

    def find_sub_goals(self, parent_goal_id: str) -> list[Goal]:
        """Direct children only."""
        return self.find_where(Goal.parent_goal_id == parent_goal_id)

    def find_by_deadline_range(self, owner_id: str, start, end) -> list[Goal]:
        """Goals whose deadline falls in [start, end], earliest deadline first."""
        stmt = self._select(
            Goal.user_id == owner_id,
            Goal.time_bound >= _as_date(start),
            Goal.time_bound <= _as_date(end),
            order_by=(Goal.time_bound.asc(), Goal.created_at.desc()),
        )
        return self.store.scalars(stmt)

    def update_progress(self, goal_id: str, progress: float) -> bool:
        """Clamps to [0, 100] before writing."""
        return self.update(goal_id, {"progress": clamp_progress(progress)})

    def update_status(self, goal_id: str, status: GoalStatus | str) -> bool:
        return self.update(goal_id, {"status": enum_value(status)})

    # ------------------------------------------------------------------
    def find_with_task_stats(self, owner_id: str) -> list[dict]:
        """Every goal with its linked task totals and completion percentage."""
        completed = func.sum(case((Task.status == TaskStatus.COMPLETED.value, 1), else_=0))
        stmt = (
            select(Goal, func.count(Task.id).label("total_tasks"), completed.label("completed_tasks"))
            .outerjoin(Task, Task.goal_id == Goal.id)
            .where(Goal.user_id == owner_id)
            .group_by(Goal.id)
            .order_by(Goal.created_at.desc())
            .execution_options(populate_existing=True)
        )
        result = []
        for goal, total, done in self.store.rows(stmt).all():
            done = done or 0
            result.append({
                "goal": goal,
                "total_tasks": total,
                "completed_tasks": done,
                "completion_percentage": compute_progress(done, total),
            })
        return result

    def ancestor_ids(self, goal_id: str) -> list[str]:
        """Parent chain from the direct parent upwards. Stops at a repeated id."""
        ancestors = []
        seen = {goal_id}
        current = self.find_by_id(goal_id)
        while current is not None and current.parent_goal_id is not None:
            parent_id = current.parent_goal_id
            if parent_id in seen:
                logger.warning(f"Goal hierarchy cycle detected at goal {parent_id}")
                break
            ancestors.append(parent_id)
            seen.add(parent_id)
            current = self.find_by_id(parent_id)
        return ancestors
