"""Item claim model"""
import uuid
from datetime import datetime

from sqlalchemy import (CheckConstraint, Column, DateTime, ForeignKey, Numeric,
                        UniqueConstraint, Uuid)
from sqlalchemy.orm import relationship

from splitbill.database import Base
from splitbill.utils.decimal_utils import SHARE_PLACES


class ItemClaim(Base):
    """
    A participant's stake in an item, measured in units of the item's quantity.

    At most one row exists per (participant, item); shares are only meaningful
    relative to the other claims on the same item.
    """

    __tablename__ = "item_claims"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    participant_id = Column(Uuid, ForeignKey("participants.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(Uuid, ForeignKey("bill_items.id", ondelete="CASCADE"), nullable=False, index=True)
    share = Column(Numeric(10, SHARE_PLACES), default=1, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Constraints
    __table_args__ = (
        UniqueConstraint('participant_id', 'item_id', name='uq_claim_participant_item'),
        CheckConstraint('share > 0', name='check_share_positive'),
    )

    # Relationships
    participant = relationship("Participant", back_populates="claims")
    item = relationship("BillItem", back_populates="claims")

    def __repr__(self) -> str:
        return f"<ItemClaim(participant_id={self.participant_id}, item_id={self.item_id}, share={self.share})>"
