from sqlalchemy import Column, String, Text, Date, DateTime, Float, ForeignKey
from database import Base, generate_id, utc_now


class Goal(Base):
    __tablename__ = "goals"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # SMART fields
    specific = Column(Text, nullable=False)
    measurable = Column(Text, nullable=False)
    achievable = Column(Text, nullable=False)
    relevant = Column(Text, nullable=False)
    time_bound = Column(Date, nullable=False)  # deadline
    title = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="not_started", index=True)  # not_started/in_progress/achieved/failed
    progress = Column(Float, nullable=False, default=0.0)  # 0-100
    parent_goal_id = Column(String(36), ForeignKey("goals.id", ondelete="CASCADE"), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now)
