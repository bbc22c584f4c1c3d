"""Participant model"""
import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from splitbill.database import Base


class Participant(Base):
    """Someone taking part in a bill, identified only by a display name"""

    __tablename__ = "participants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    bill_id = Column(Uuid, ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    is_creator = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    bill = relationship("Bill", back_populates="participants")
    claims = relationship("ItemClaim", back_populates="participant", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Participant(id={self.id}, bill_id={self.bill_id}, name={self.name})>"
