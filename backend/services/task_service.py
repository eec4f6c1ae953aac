"""
task_service.py — Task records
Status / priority / goal / due-date filters, sub-task traversal and the
per-goal completion counts that drive goal progress.
"""

from datetime import date, datetime, time

from sqlalchemy import select, func, case

from models.task import Task
from models.goal import Goal
from models.enums import TaskStatus, Priority, enum_value
from services.base_service import BaseService


def _as_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    return value


_completed = func.sum(case((Task.status == TaskStatus.COMPLETED.value, 1), else_=0))


class TaskService(BaseService):
    model = Task
    immutable_columns = ("id", "user_id", "created_at")

    def create_task(self, owner_id: str, data) -> Task:
        fields = self._fields(data)
        fields["user_id"] = owner_id
        return self.create(fields)

    def find_by_status(self, owner_id: str, status: TaskStatus | str) -> list[Task]:
        return self.find_where((Task.user_id == owner_id) & (Task.status == enum_value(status)))

    def find_by_priority(self, owner_id: str, priority: Priority | str) -> list[Task]:
        return self.find_where((Task.user_id == owner_id) & (Task.priority == enum_value(priority)))

    def find_by_goal_id(self, goal_id: str) -> list[Task]:
        return self.find_where(Task.goal_id == goal_id)

    def find_sub_tasks(self, parent_task_id: str) -> list[Task]:
        return self.find_where(Task.parent_task_id == parent_task_id)

    def find_by_due_date_range(self, owner_id: str, start, end) -> list[Task]:
        stmt = self._select(
            Task.user_id == owner_id,
            Task.due_date >= _as_datetime(start),
            Task.due_date <= _as_datetime(end),
            order_by=(Task.due_date.asc(), Task.created_at.desc()),
        )
        return self.store.scalars(stmt)

    def find_overdue(self, owner_id: str, as_of) -> list[Task]:
        """Due strictly before as_of and not completed. Tasks without a due date never qualify."""
        return self.find_where(
            (Task.user_id == owner_id)
            & (Task.due_date < _as_datetime(as_of))
            & (Task.status != TaskStatus.COMPLETED.value)
        )

    def update_status(self, task_id: str, status: TaskStatus | str) -> bool:
        return self.update(task_id, {"status": enum_value(status)})

    # ------------------------------------------------------------------
    def find_with_goals(self, owner_id: str) -> list[dict]:
        """Tasks with the title and status of their linked goal (None when unlinked)."""
        stmt = (
            select(Task, Goal.title.label("goal_title"), Goal.status.label("goal_status"))
            .outerjoin(Goal, Task.goal_id == Goal.id)
            .where(Task.user_id == owner_id)
            .order_by(Task.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return [
            {"task": task, "goal_title": goal_title, "goal_status": goal_status}
            for task, goal_title, goal_status in self.store.rows(stmt).all()
        ]

    def goal_completion_counts(self, goal_id: str) -> tuple[int, int]:
        """(total, completed) linked tasks for a goal."""
        stmt = select(func.count(Task.id), _completed).where(Task.goal_id == goal_id)
        total, completed = self.store.rows(stmt).one()
        return total, completed or 0

    def goal_completion_counts_by_owner(self, owner_id: str) -> dict[str, tuple[int, int]]:
        """{goal_id: (total, completed)} for every goal of the owner with linked tasks."""
        stmt = (
            select(Task.goal_id, func.count(Task.id), _completed)
            .join(Goal, Task.goal_id == Goal.id)
            .where(Goal.user_id == owner_id)
            .group_by(Task.goal_id)
        )
        return {
            goal_id: (total, completed or 0)
            for goal_id, total, completed in self.store.rows(stmt).all()
        }
