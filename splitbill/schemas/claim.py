"""Claim schemas"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from splitbill.utils.decimal_utils import SHARE_PLACES, to_decimal


class ClaimCreate(BaseModel):
    """Schema for claiming (part of) an item"""

    participant_id: UUID
    item_id: UUID
    share: Decimal = Field(
        default=Decimal("1"),
        gt=0,
        max_digits=10,
        decimal_places=SHARE_PLACES,
        description="Units of the item's quantity claimed by this participant",
    )

    @field_validator("share", mode="before")
    @classmethod
    def convert_share(cls, v):
        """Convert share to Decimal"""
        if v is None:
            return Decimal("1")
        return to_decimal(v)


class ClaimResponse(BaseModel):
    """Response schema for a claim"""

    id: UUID
    participant_id: UUID
    item_id: UUID
    share: Decimal
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UnclaimResponse(BaseModel):
    """Unclaim always reports success"""

    success: bool = True
