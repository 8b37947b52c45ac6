from sqlalchemy import Column, Integer, ForeignKey, Float, String, DateTime, Boolean, Text
from sqlalchemy.orm import relationship
from datetime import datetime
from fieldtrack.db.base import Base

class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    client_id = Column(
        Integer, ForeignKey("clients.id", ondelete="SET NULL"), nullable=True
    )
    # One invoice per visit at most
    visit_id = Column(Integer, ForeignKey("visits.id"), nullable=True, unique=True)

    invoice_number = Column(String, nullable=False, index=True)
    amount = Column(Float, nullable=False)

    date = Column(DateTime, default=datetime.utcnow)
    is_paid = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)

    client = relationship("Client")
    visit = relationship("Visit")
