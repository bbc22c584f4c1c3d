"""Bill model"""
import enum
import uuid
from datetime import datetime

from sqlalchemy import (CheckConstraint, Column, DateTime, Enum, Numeric,
                        String, Uuid)
from sqlalchemy.orm import relationship

from splitbill.database import Base
from splitbill.utils.decimal_utils import (MONEY_PLACES, PERCENT_PLACES,
                                          TIP_AMOUNT_PLACES)


class BillStatus(str, enum.Enum):
    """Lifecycle states of a bill"""
    DRAFT = "draft"
    ACTIVE = "active"
    SETTLED = "settled"


# Allowed status changes; a same-status update is always a no-op
STATUS_TRANSITIONS = {
    BillStatus.DRAFT: {BillStatus.ACTIVE},
    BillStatus.ACTIVE: {BillStatus.SETTLED},
    BillStatus.SETTLED: {BillStatus.ACTIVE},
}


class Bill(Base):
    """A shared bill that participants claim items from"""

    __tablename__ = "bills"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    short_code = Column(String(6), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    subtotal = Column(Numeric(12, MONEY_PLACES), default=0, nullable=False)
    tax = Column(Numeric(12, MONEY_PLACES), default=0, nullable=False)
    tip_percent = Column(Numeric(5, PERCENT_PLACES), default=0, nullable=False)
    tip_amount = Column(Numeric(16, TIP_AMOUNT_PLACES), default=0, nullable=False)
    status = Column(
        Enum(BillStatus, values_callable=lambda e: [m.value for m in e]),
        default=BillStatus.ACTIVE,
        nullable=False,
    )
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Constraints
    __table_args__ = (
        CheckConstraint('subtotal >= 0', name='check_subtotal_non_negative'),
        CheckConstraint('tax >= 0', name='check_tax_non_negative'),
        CheckConstraint('tip_percent >= 0', name='check_tip_percent_non_negative'),
    )

    # Relationships
    items = relationship(
        "BillItem", back_populates="bill", cascade="all, delete-orphan",
        order_by="BillItem.created_at",
    )
    participants = relationship(
        "Participant", back_populates="bill", cascade="all, delete-orphan",
        order_by="Participant.created_at",
    )

    def can_transition_to(self, status: BillStatus) -> bool:
        """Whether moving from the current status to ``status`` is allowed"""
        current = BillStatus(self.status)
        return status == current or status in STATUS_TRANSITIONS[current]

    def __repr__(self) -> str:
        return f"<Bill(id={self.id}, short_code={self.short_code}, subtotal={self.subtotal})>"
