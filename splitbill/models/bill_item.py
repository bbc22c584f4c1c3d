"""Bill item model"""
import uuid
from datetime import datetime

from sqlalchemy import (CheckConstraint, Column, DateTime, ForeignKey, Integer,
                        Numeric, String, Uuid)
from sqlalchemy.orm import relationship

from splitbill.database import Base
from splitbill.utils.decimal_utils import MONEY_PLACES


class BillItem(Base):
    """A receipt line; ``price`` is the unit price of ``quantity`` identical units"""

    __tablename__ = "bill_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    bill_id = Column(Uuid, ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(12, MONEY_PLACES), nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Constraints
    __table_args__ = (
        CheckConstraint('price >= 0', name='check_price_non_negative'),
        CheckConstraint('quantity > 0', name='check_quantity_positive'),
    )

    # Relationships
    bill = relationship("Bill", back_populates="items")
    claims = relationship("ItemClaim", back_populates="item", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<BillItem(id={self.id}, name={self.name}, price={self.price}, quantity={self.quantity})>"
