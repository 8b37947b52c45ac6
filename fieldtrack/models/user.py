from sqlalchemy import Column, Integer, String, Text, DateTime
from datetime import datetime
from fieldtrack.db.base import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False)
    hashed_password = Column(String, nullable=False)

    business_type = Column(String, nullable=False)
    # Stored as JSON: {"days": [...], "startTime": "HH:MM", "endTime": "HH:MM"}
    business_hours = Column(Text, nullable=False)
    timezone = Column(String, nullable=False, default="UTC")

    created_at = Column(DateTime, default=datetime.utcnow)
