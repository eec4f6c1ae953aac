from sqlalchemy import Column, String, DateTime
from database import Base, generate_id, utc_now


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    username = Column(String(50), unique=True, nullable=False, index=True)
    pin_hash = Column(String(255), nullable=False)  # hashed by the auth layer, never the raw PIN
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now)  # doubles as last login
