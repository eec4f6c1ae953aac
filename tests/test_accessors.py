"""
Tests for the entity accessors: users, goals, tasks and streaks.
"""

from datetime import date, datetime

import pytest

from errors import ConstraintViolation
from models.enums import GoalStatus, TaskStatus, Priority
from schemas import GoalCreate


class TestUserService:

    def test_find_by_username(self, users, user):
        assert users.find_by_username("alice").id == user.id
        assert users.find_by_username("nobody") is None

    def test_username_exists(self, users, user):
        assert users.username_exists("alice")
        assert not users.username_exists("bob")

    def test_duplicate_username_is_rejected(self, users, user):
        with pytest.raises(ConstraintViolation, match="username already exists"):
            users.create_user("alice", "other-hash")

    def test_update_pin_hash(self, users, user):
        assert users.update_pin_hash(user.id, "new-hash")
        assert users.find_by_id(user.id).pin_hash == "new-hash"

    def test_update_last_login_touches_only_timestamp(self, users, user):
        before = users.find_by_id(user.id)
        pin_hash, stamp = before.pin_hash, before.updated_at
        assert users.update_last_login(user.id)
        after = users.find_by_id(user.id)
        assert after.pin_hash == pin_hash
        assert after.updated_at >= stamp

    def test_username_is_immutable(self, users, user):
        with pytest.raises(ValueError):
            users.update(user.id, {"username": "mallory"})

    def test_owner_of_a_user_is_itself(self, users, user):
        assert [u.id for u in users.find_all_by_owner(user.id)] == [user.id]


class TestGoalService:

    def test_create_goal_defaults(self, make_goal, user):
        goal = make_goal()
        assert goal.user_id == user.id
        assert goal.status == "not_started"
        assert goal.progress == 0
        assert goal.time_bound == date(2030, 6, 1)

    def test_create_for_missing_owner_is_rejected(self, goals):
        data = GoalCreate(specific="s", measurable="m", achievable="a", relevant="r", time_bound=date(2030, 1, 1))
        with pytest.raises(ConstraintViolation, match="referenced record does not exist"):
            goals.create_goal("no-such-user", data)

    def test_find_by_status(self, goals, make_goal, user):
        make_goal(title="A", status=GoalStatus.IN_PROGRESS)
        make_goal(title="B")
        found = goals.find_by_status(user.id, GoalStatus.IN_PROGRESS)
        assert [g.title for g in found] == ["A"]
        assert goals.find_by_status(user.id, "achieved") == []

    def test_find_sub_goals_returns_direct_children(self, goals, make_goal):
        parent = make_goal(title="parent")
        child = make_goal(title="child", parent_goal_id=parent.id)
        make_goal(title="grandchild", parent_goal_id=child.id)
        assert [g.title for g in goals.find_sub_goals(parent.id)] == ["child"]

    def test_find_by_deadline_range_inclusive_and_ordered(self, goals, make_goal, user):
        make_goal(title="late", time_bound=date(2030, 3, 31))
        make_goal(title="early", time_bound=date(2030, 3, 1))
        make_goal(title="outside", time_bound=date(2030, 4, 1))
        found = goals.find_by_deadline_range(user.id, date(2030, 3, 1), date(2030, 3, 31))
        assert [g.title for g in found] == ["early", "late"]

    @pytest.mark.parametrize("value,expected", [(150, 100), (-20, 0), (42.5, 42.5)])
    def test_update_progress_clamps(self, goals, make_goal, value, expected):
        goal = make_goal()
        assert goals.update_progress(goal.id, value)
        assert goals.find_by_id(goal.id).progress == expected

    def test_generic_update_clamps_progress(self, goals, make_goal):
        goal = make_goal()
        goals.update(goal.id, {"progress": 250})
        assert goals.find_by_id(goal.id).progress == 100

    def test_update_status(self, goals, make_goal):
        goal = make_goal()
        assert goals.update_status(goal.id, GoalStatus.ACHIEVED)
        assert goals.find_by_id(goal.id).status == "achieved"

    def test_find_with_task_stats(self, goals, make_goal, make_task, user):
        tracked = make_goal(title="tracked")
        make_goal(title="empty")
        make_task("a", goal_id=tracked.id, status=TaskStatus.COMPLETED)
        make_task("b", goal_id=tracked.id)
        make_task("c", goal_id=tracked.id)

        stats = {row["goal"].title: row for row in goals.find_with_task_stats(user.id)}
        assert stats["tracked"]["total_tasks"] == 3
        assert stats["tracked"]["completed_tasks"] == 1
        assert stats["tracked"]["completion_percentage"] == 33
        assert stats["empty"]["total_tasks"] == 0
        assert stats["empty"]["completion_percentage"] == 0

    def test_ancestor_ids(self, goals, make_goal):
        root = make_goal(title="root")
        middle = make_goal(title="middle", parent_goal_id=root.id)
        leaf = make_goal(title="leaf", parent_goal_id=middle.id)
        assert goals.ancestor_ids(leaf.id) == [middle.id, root.id]
        assert goals.ancestor_ids(root.id) == []


class TestTaskService:

    def test_find_by_status_and_priority(self, tasks, make_task, user):
        make_task("a", status=TaskStatus.COMPLETED, priority=Priority.HIGH)
        make_task("b", priority=Priority.LOW)
        assert [t.title for t in tasks.find_by_status(user.id, TaskStatus.COMPLETED)] == ["a"]
        assert [t.title for t in tasks.find_by_priority(user.id, "low")] == ["b"]

    def test_find_by_goal_id(self, tasks, make_goal, make_task):
        goal = make_goal()
        make_task("linked", goal_id=goal.id)
        make_task("loose")
        assert [t.title for t in tasks.find_by_goal_id(goal.id)] == ["linked"]

    def test_find_sub_tasks(self, tasks, make_task):
        parent = make_task("parent")
        make_task("child", parent_task_id=parent.id)
        assert [t.title for t in tasks.find_sub_tasks(parent.id)] == ["child"]

    def test_deleting_parent_task_removes_sub_tasks(self, tasks, make_task):
        parent = make_task("parent")
        child = make_task("child", parent_task_id=parent.id)
        tasks.delete(parent.id)
        assert tasks.find_by_id(child.id) is None

    def test_find_overdue(self, tasks, make_task, user):
        as_of = datetime(2024, 5, 10, 9, 0)
        make_task("late", due_date=datetime(2024, 5, 9, 18, 0))
        make_task("late but done", due_date=datetime(2024, 5, 1), status=TaskStatus.COMPLETED)
        make_task("due exactly now", due_date=as_of)
        make_task("future", due_date=datetime(2024, 6, 1))
        make_task("undated")
        assert [t.title for t in tasks.find_overdue(user.id, as_of)] == ["late"]

    def test_find_overdue_accepts_date(self, tasks, make_task, user):
        make_task("yesterday", due_date=datetime(2024, 5, 9, 23, 0))
        assert [t.title for t in tasks.find_overdue(user.id, date(2024, 5, 10))] == ["yesterday"]

    def test_find_by_due_date_range(self, tasks, make_task, user):
        make_task("second", due_date=datetime(2024, 5, 20))
        make_task("first", due_date=datetime(2024, 5, 2))
        make_task("outside", due_date=datetime(2024, 7, 1))
        found = tasks.find_by_due_date_range(user.id, date(2024, 5, 1), date(2024, 5, 31))
        assert [t.title for t in found] == ["first", "second"]

    def test_find_with_goals(self, tasks, make_goal, make_task, user):
        goal = make_goal(title="Fitness")
        make_task("run", goal_id=goal.id)
        make_task("read")
        rows = {row["task"].title: row for row in tasks.find_with_goals(user.id)}
        assert rows["run"]["goal_title"] == "Fitness"
        assert rows["run"]["goal_status"] == "not_started"
        assert rows["read"]["goal_title"] is None

    def test_goal_completion_counts(self, tasks, make_goal, make_task, user):
        goal = make_goal()
        other = make_goal()
        make_task("a", goal_id=goal.id, status=TaskStatus.COMPLETED)
        make_task("b", goal_id=goal.id)
        make_task("c", goal_id=other.id)
        assert tasks.goal_completion_counts(goal.id) == (2, 1)
        assert tasks.goal_completion_counts("no-goal") == (0, 0)
        assert tasks.goal_completion_counts_by_owner(user.id) == {goal.id: (2, 1), other.id: (1, 0)}

    def test_deleting_goal_unlinks_tasks(self, tasks, goals, make_goal, make_task):
        goal = make_goal()
        task = make_task("linked", goal_id=goal.id)
        goals.delete(goal.id)
        survivor = tasks.find_by_id(task.id)
        assert survivor is not None
        assert survivor.goal_id is None


class TestStreakService:

    def test_registered_user_has_one_zeroed_streak(self, streaks, user):
        streak = streaks.find_by_owner(user.id)
        assert (streak.current_streak, streak.longest_streak) == (0, 0)
        assert streak.last_completed_date is None

    def test_second_streak_for_owner_is_rejected(self, streaks, user):
        with pytest.raises(ConstraintViolation):
            streaks.create_for_owner(user.id)

    def test_increment_raises_longest(self, streaks, user):
        streak = streaks.find_by_owner(user.id)
        assert streaks.increment_streak(streak.id, date(2024, 5, 1))
        assert streaks.increment_streak(streak.id, date(2024, 5, 2))
        updated = streaks.find_by_id(streak.id)
        assert (updated.current_streak, updated.longest_streak) == (2, 2)
        assert updated.last_completed_date == date(2024, 5, 2)

    def test_increment_keeps_higher_longest(self, streaks, user):
        streak = streaks.find_by_owner(user.id)
        streaks.update_streak(streak.id, 1, 10, date(2024, 5, 1))
        streaks.increment_streak(streak.id, date(2024, 5, 2))
        updated = streaks.find_by_id(streak.id)
        assert (updated.current_streak, updated.longest_streak) == (2, 10)

    def test_reset_zeroes_current_only(self, streaks, user):
        streak = streaks.find_by_owner(user.id)
        streaks.update_streak(streak.id, 4, 7, date(2024, 5, 1))
        assert streaks.reset_streak(streak.id)
        updated = streaks.find_by_id(streak.id)
        assert (updated.current_streak, updated.longest_streak) == (0, 7)
        assert updated.last_completed_date == date(2024, 5, 1)

    def test_update_streak_raises_longest_to_current(self, streaks, user):
        streak = streaks.find_by_owner(user.id)
        streaks.update_streak(streak.id, 5, 3)
        updated = streaks.find_by_id(streak.id)
        assert (updated.current_streak, updated.longest_streak) == (5, 5)

    def test_generic_update_of_current_lifts_longest(self, streaks, user):
        streak = streaks.find_by_owner(user.id)
        streaks.update(streak.id, {"current_streak": 6})
        updated = streaks.find_by_id(streak.id)
        assert (updated.current_streak, updated.longest_streak) == (6, 6)

    def test_streak_stats(self, streaks, user):
        streak = streaks.find_by_owner(user.id)
        streaks.update_streak(streak.id, 3, 8, date(2024, 5, 9))
        stats = streaks.streak_stats(user.id, date(2024, 5, 10))
        assert stats == {
            "current_streak": 3,
            "longest_streak": 8,
            "last_completed_date": date(2024, 5, 9),
            "is_active": True,
        }
        assert streaks.streak_stats(user.id, date(2024, 5, 12))["is_active"] is False
        assert streaks.streak_stats("nobody", date(2024, 5, 12)) is None
