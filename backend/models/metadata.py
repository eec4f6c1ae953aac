from sqlalchemy import Column, String
from database import Base


class SchemaMetadata(Base):
    __tablename__ = "metadata"

    key = Column(String(50), primary_key=True)
    value = Column(String(255), nullable=True)
