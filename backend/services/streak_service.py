"""
streak_service.py — Daily completion streaks
One streak row per user. Increments happen in a single UPDATE so the longest
streak never falls behind the current one.
"""

from datetime import date, datetime, timedelta

from sqlalchemy import update, case

from database import utc_now
from models.streak import Streak
from schemas import StreakUpdate
from services.base_service import BaseService


def _as_date(value) -> date | None:
    return value.date() if isinstance(value, datetime) else value


def is_active(last_completed_date, today) -> bool:
    """Completed today or yesterday. 1-day grace: the streak survives until
    a full day is missed."""
    if last_completed_date is None:
        return False
    return _as_date(today) - _as_date(last_completed_date) <= timedelta(days=1)


class StreakService(BaseService):
    model = Streak
    immutable_columns = ("id", "user_id", "created_at")

    def _prepare_update(self, fields: dict) -> dict:
        if "last_completed_date" in fields:
            fields["last_completed_date"] = _as_date(fields["last_completed_date"])

        current = fields.get("current_streak")
        if current is None:
            return fields
        longest = fields.get("longest_streak")
        if longest is not None:
            fields["longest_streak"] = max(longest, current)
        else:
            # raise the stored longest when the new current overtakes it
            fields["longest_streak"] = case(
                (Streak.longest_streak < current, current), else_=Streak.longest_streak
            )
        return fields

    # ------------------------------------------------------------------
    def find_by_owner(self, owner_id: str) -> Streak | None:
        return self.find_one_where(Streak.user_id == owner_id)

    def create_for_owner(self, owner_id: str) -> Streak:
        return self.create({"user_id": owner_id, "current_streak": 0, "longest_streak": 0})

    def increment_streak(self, streak_id: str, completion_date) -> bool:
        """current += 1, longest = max(longest, current), last_completed_date = completion_date."""
        next_value = Streak.current_streak + 1
        stmt = (
            update(Streak)
            .where(Streak.id == streak_id)
            .values(
                current_streak=next_value,
                longest_streak=case((next_value > Streak.longest_streak, next_value), else_=Streak.longest_streak),
                last_completed_date=_as_date(completion_date),
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        return self.store.execute(stmt) > 0

    def reset_streak(self, streak_id: str) -> bool:
        """Zero the current streak. Longest and last completion are kept."""
        return self.update(streak_id, {"current_streak": 0})

    def update_streak(self, streak_id: str, current: int, longest: int, last_completed_date=None) -> bool:
        return self.update(streak_id, StreakUpdate(
            current_streak=current,
            longest_streak=max(longest, current),
            last_completed_date=_as_date(last_completed_date),
        ))

    def streak_stats(self, owner_id: str, today) -> dict | None:
        streak = self.find_by_owner(owner_id)
        if streak is None:
            return None
        return {
            "current_streak": streak.current_streak,
            "longest_streak": streak.longest_streak,
            "last_completed_date": streak.last_completed_date,
            "is_active": is_active(streak.last_completed_date, today),
        }
