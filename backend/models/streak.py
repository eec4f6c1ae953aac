from sqlalchemy import Column, String, Integer, Date, DateTime, ForeignKey, CheckConstraint
from database import Base, generate_id, utc_now


class Streak(Base):
    __tablename__ = "streaks"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True)
    current_streak = Column(Integer, nullable=False, default=0)
    longest_streak = Column(Integer, nullable=False, default=0)
    last_completed_date = Column(Date, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint("longest_streak >= current_streak", name="ck_streak_longest_gte_current"),
    )
