from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship
from datetime import datetime
from fieldtrack.db.base import Base

class Visit(Base):
    __tablename__ = "visits"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    client_id = Column(
        Integer, ForeignKey("clients.id", ondelete="SET NULL"), nullable=True
    )

    # Snapshot taken at check-in, independent of the client's current address
    address = Column(String, nullable=True)

    date = Column(DateTime, default=datetime.utcnow)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=True)
    duration = Column(Integer, nullable=True)  # minutes

    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    is_known_location = Column(Boolean, nullable=False, default=False)

    has_invoice = Column(Boolean, nullable=False, default=False)

    service_type = Column(String, nullable=True)
    service_details = Column(Text, nullable=True)
    billable_amount = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)

    client = relationship("Client")

    __table_args__ = (
        # 🔒 At most one open visit per user
        Index(
            "uq_visits_one_open_per_user",
            "user_id",
            unique=True,
            sqlite_where=text("end_time IS NULL"),
            postgresql_where=text("end_time IS NULL"),
        ),
    )
