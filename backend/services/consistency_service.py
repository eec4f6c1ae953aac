"""
consistency_service.py — Derived state upkeep
Keeps goal progress in line with linked task completion, cascades goal
deletes through the sub-goal tree and maintains the daily streak.

Calendar decisions use the `today` / `completion_date` supplied by the
caller, never the wall clock.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError

from config import MAX_GOAL_DEPTH
from database import RecordStore
from errors import StorageError, RecomputeFailure, CascadeDeleteFailure, GoalCycleError
from models.enums import TaskStatus
from models.goal import Goal
from models.streak import Streak
from models.task import Task
from services.goal_service import GoalService, compute_progress
from services.streak_service import StreakService, is_active
from services.task_service import TaskService

logger = logging.getLogger(__name__)


@dataclass
class TaskMutationResult:
    task_id: str
    applied: bool
    task: Task | None = None
    goal: Goal | None = None
    streak: Streak | None = None
    warning: RecomputeFailure | None = None
    # goals other than the task's own, touched through cascaded sub-tasks
    related_goals: list[Goal] = field(default_factory=list)
    failures: list[RecomputeFailure] = field(default_factory=list)


def _as_date(value) -> date:
    return value.date() if isinstance(value, datetime) else value


class ConsistencyService:
    def __init__(self, store: RecordStore, goals: GoalService | None = None,
                 tasks: TaskService | None = None, streaks: StreakService | None = None,
                 max_depth: int = MAX_GOAL_DEPTH):
        self.store = store
        self.goals = goals or GoalService(store)
        self.tasks = tasks or TaskService(store)
        self.streaks = streaks or StreakService(store)
        self.max_depth = max_depth

    compute_progress = staticmethod(compute_progress)

    # --- Goal progress ---
    def recompute_goal_progress(self, goal_id: str) -> Goal | None:
        """Set progress from linked task completion. A goal with no linked
        tasks keeps its current progress."""
        goal = self.goals.find_by_id(goal_id)
        if goal is None:
            return None
        total, completed = self.tasks.goal_completion_counts(goal_id)
        if total == 0:
            return goal
        self.goals.update_progress(goal_id, compute_progress(completed, total))
        return self.goals.find_by_id(goal_id)

    def _refresh_goal(self, goal_id: str | None, reset_when_empty: bool = False):
        """Recompute after a task mutation. Returns (goal, warning); failures are
        reported, never raised, since the mutation itself already succeeded."""
        if goal_id is None:
            return None, None
        try:
            if reset_when_empty and self.tasks.goal_completion_counts(goal_id)[0] == 0:
                self.goals.update_progress(goal_id, 0)
                return self.goals.find_by_id(goal_id), None
            return self.recompute_goal_progress(goal_id), None
        except Exception as e:
            failure = RecomputeFailure(goal_id, e)
            logger.warning(str(failure))
            return None, failure

    def update_task_status(self, task_id: str, status: TaskStatus | str) -> TaskMutationResult:
        if not self.tasks.update_status(task_id, status):
            return TaskMutationResult(task_id=task_id, applied=False)
        task = self.tasks.find_by_id(task_id)
        goal, warning = self._refresh_goal(task.goal_id)
        return TaskMutationResult(task_id=task_id, applied=True, task=task, goal=goal, warning=warning)

    def _sub_task_goal_ids(self, task: Task) -> list[str]:
        """Distinct goal ids linked anywhere in a task's sub-task tree, the task's own goal first."""
        goal_ids = []
        visited = {task.id}
        frontier = [task]
        while frontier:
            next_level = []
            for current in frontier:
                if current.goal_id is not None and current.goal_id not in goal_ids:
                    goal_ids.append(current.goal_id)
                for child in self.tasks.find_sub_tasks(current.id):
                    if child.id not in visited:
                        visited.add(child.id)
                        next_level.append(child)
            frontier = next_level
        return goal_ids

    def delete_task_with_goal_progress(self, task_id: str) -> TaskMutationResult:
        """Delete a task (its sub-tasks go with it), then recompute every goal that
        lost a linked task. Progress drops to 0 when a goal's last linked task is gone."""
        task = self.tasks.find_by_id(task_id)
        if task is None:
            return TaskMutationResult(task_id=task_id, applied=False)
        own_goal_id = task.goal_id
        goal_ids = self._sub_task_goal_ids(task)
        if not self.tasks.delete(task_id):
            return TaskMutationResult(task_id=task_id, applied=False)

        result = TaskMutationResult(task_id=task_id, applied=True)
        for goal_id in goal_ids:
            goal, warning = self._refresh_goal(goal_id, reset_when_empty=True)
            if warning is not None:
                result.failures.append(warning)
            elif goal_id == own_goal_id:
                result.goal = goal
            elif goal is not None:
                result.related_goals.append(goal)
        if result.failures:
            result.warning = result.failures[0]
        return result

    def recalculate_all_goal_progress(self, owner_id: str) -> list[Goal]:
        """Repair every goal of an owner in one transaction. Goals without linked
        tasks are left alone; only differing values are written."""
        counts = self.tasks.goal_completion_counts_by_owner(owner_id)
        changed = 0
        with self.store.transaction():
            for goal in self.goals.find_all_by_owner(owner_id):
                if goal.id not in counts:
                    continue
                total, completed = counts[goal.id]
                progress = compute_progress(completed, total)
                if goal.progress != progress:
                    self.goals.update_progress(goal.id, progress)
                    changed += 1
        logger.info(f"Recalculated goal progress for user {owner_id}: {changed} goal(s) updated")
        return self.goals.find_all_by_owner(owner_id)

    # --- Goal hierarchy ---
    def _collect_sub_goal_levels(self, goal_id: str) -> list[list[str]]:
        """Descendant ids grouped by depth, nearest level first."""
        levels = []
        visited = {goal_id}
        frontier = [goal_id]
        while frontier:
            next_level = []
            for parent_id in frontier:
                for child in self.goals.find_sub_goals(parent_id):
                    if child.id in visited:
                        logger.warning(f"Goal hierarchy cycle detected at goal {child.id}")
                        continue
                    visited.add(child.id)
                    next_level.append(child.id)
            if next_level:
                if len(levels) >= self.max_depth:
                    raise ValueError(f"Goal hierarchy deeper than {self.max_depth} levels")
                levels.append(next_level)
            frontier = next_level
        return levels

    def delete_goal_with_sub_goals(self, goal_id: str) -> bool:
        """Delete a goal and its whole sub-goal tree, deepest first, all or nothing.
        Linked tasks survive with goal_id cleared."""
        if not self.goals.exists(goal_id):
            return False
        try:
            with self.store.transaction():
                levels = self._collect_sub_goal_levels(goal_id)
                for level in reversed(levels):
                    for sub_goal_id in level:
                        self.goals.delete(sub_goal_id)
                # may already be gone when a cycle cascaded back to it
                self.goals.delete(goal_id)
        except (SQLAlchemyError, StorageError, ValueError) as e:
            raise CascadeDeleteFailure(goal_id, e) from e

        removed = sum(len(level) for level in levels)
        logger.info(f"Deleted goal {goal_id} with {removed} sub-goal(s)")
        return True

    def reparent_goal(self, goal_id: str, parent_id: str | None) -> bool:
        """Move a goal under a new parent (None detaches it)."""
        if parent_id is not None:
            if parent_id == goal_id or goal_id in self.goals.ancestor_ids(parent_id):
                raise GoalCycleError(f"Goal {parent_id} cannot become the parent of goal {goal_id}")
        return self.goals.update(goal_id, {"parent_goal_id": parent_id})

    # --- Streaks ---
    @staticmethod
    def is_streak_active(streak: Streak, today) -> bool:
        return is_active(streak.last_completed_date, today)

    def check_streak_continuity(self, streak_id: str, today) -> Streak | None:
        """Reset the current streak when the last completion is older than yesterday."""
        streak = self.streaks.find_by_id(streak_id)
        if streak is None:
            return None
        if streak.last_completed_date is None or is_active(streak.last_completed_date, today):
            return streak
        if streak.current_streak != 0:
            self.streaks.reset_streak(streak_id)
            logger.info(f"Streak {streak_id} broken; last completion {streak.last_completed_date}")
            streak = self.streaks.find_by_id(streak_id)
        return streak

    def advance_streak(self, streak_id: str, completion_date) -> Streak | None:
        """Record a completion day. A day already counted is not counted twice."""
        completion_date = _as_date(completion_date)
        streak = self.check_streak_continuity(streak_id, completion_date)
        if streak is None:
            return None
        if streak.last_completed_date is not None and streak.last_completed_date >= completion_date:
            return streak
        self.streaks.increment_streak(streak_id, completion_date)
        return self.streaks.find_by_id(streak_id)

    def complete_task(self, task_id: str, today) -> TaskMutationResult:
        """Mark a task completed, update its goal and advance the owner's streak."""
        result = self.update_task_status(task_id, TaskStatus.COMPLETED)
        if not result.applied:
            return result
        streak = self.streaks.find_by_owner(result.task.user_id)
        if streak is None:
            streak = self.streaks.create_for_owner(result.task.user_id)
        result.streak = self.advance_streak(streak.id, today)
        return result
