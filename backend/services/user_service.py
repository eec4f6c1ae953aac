"""
user_service.py — User records
Lookup by username and the two permitted mutations: PIN hash and last login.
"""

from sqlalchemy import select, func

from database import utc_now
from models.user import User
from schemas import UserCreate, UserUpdate
from services.base_service import BaseService


class UserService(BaseService):
    model = User
    owner_column = "id"  # a user owns itself
    immutable_columns = ("id", "username", "created_at")

    def create_user(self, username: str, pin_hash: str) -> User:
        return self.create(UserCreate(username=username, pin_hash=pin_hash))

    def find_by_username(self, username: str) -> User | None:
        return self.find_one_where(User.username == username)

    def username_exists(self, username: str) -> bool:
        stmt = select(func.count()).select_from(User).where(User.username == username)
        return self.store.scalar(stmt) > 0

    def update_pin_hash(self, user_id: str, pin_hash: str) -> bool:
        return self.update(user_id, UserUpdate(pin_hash=pin_hash))

    def update_last_login(self, user_id: str) -> bool:
        """Touches only updated_at."""
        return self.update(user_id, {"updated_at": utc_now()})
