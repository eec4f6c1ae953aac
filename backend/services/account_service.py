"""
account_service.py — Account registration
A user and its streak are created together or not at all.
"""

import logging

from database import RecordStore
from errors import ConstraintViolation
from models.user import User
from services.user_service import UserService
from services.streak_service import StreakService

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, store: RecordStore):
        self.store = store
        self.users = UserService(store)
        self.streaks = StreakService(store)

    def register(self, username: str, pin_hash: str) -> User:
        if self.users.username_exists(username):
            raise ConstraintViolation("username already exists")
        with self.store.transaction():
            user = self.users.create_user(username, pin_hash)
            self.streaks.create_for_owner(user.id)
        logger.info(f"Registered user {username}")
        return user

    def delete_account(self, user_id: str) -> bool:
        """Owned goals, tasks and the streak go with the user."""
        deleted = self.users.delete(user_id)
        if deleted:
            logger.info(f"Deleted account {user_id}")
        return deleted
