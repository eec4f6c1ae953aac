"""
Pytest configuration and shared fixtures for the data layer tests.
"""

from datetime import date

import pytest

from database import RecordStore
from schemas import GoalCreate, TaskCreate
from services.account_service import AccountService
from services.consistency_service import ConsistencyService
from services.goal_service import GoalService
from services.streak_service import StreakService
from services.task_service import TaskService
from services.user_service import UserService


@pytest.fixture
def store():
    """A fresh in-memory store, closed after the test."""
    store = RecordStore("sqlite://")
    store.initialize()
    yield store
    store.close()


@pytest.fixture
def engine(store):
    """The SQLAlchemy engine behind the store, for raw inspection."""
    return store.engine


@pytest.fixture
def users(store):
    return UserService(store)


@pytest.fixture
def goals(store):
    return GoalService(store)


@pytest.fixture
def tasks(store):
    return TaskService(store)


@pytest.fixture
def streaks(store):
    return StreakService(store)


@pytest.fixture
def accounts(store):
    return AccountService(store)


@pytest.fixture
def consistency(store, goals, tasks, streaks):
    return ConsistencyService(store, goals=goals, tasks=tasks, streaks=streaks)


@pytest.fixture
def user(accounts):
    """A registered user (with its streak)."""
    return accounts.register("alice", "hashed-pin")


@pytest.fixture
def make_goal(goals, user):
    """Factory for goals owned by the seeded user."""
    def _make(**overrides):
        data = {
            "specific": "Run a half marathon",
            "measurable": "21.1 km",
            "achievable": "Train 4x a week",
            "relevant": "Health",
            "time_bound": date(2030, 6, 1),
        }
        data.update(overrides)
        owner_id = data.pop("owner_id", user.id)
        return goals.create_goal(owner_id, GoalCreate(**data))
    return _make


@pytest.fixture
def make_task(tasks, user):
    """Factory for tasks owned by the seeded user."""
    def _make(title="Task", **overrides):
        owner_id = overrides.pop("owner_id", user.id)
        return tasks.create_task(owner_id, TaskCreate(title=title, **overrides))
    return _make
