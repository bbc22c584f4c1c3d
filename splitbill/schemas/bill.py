"""Bill schemas"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from splitbill.models.bill import BillStatus
from splitbill.schemas.claim import ClaimResponse
from splitbill.schemas.participant import ParticipantResponse
from splitbill.utils.decimal_utils import (MONEY_PLACES, PERCENT_PLACES,
                                          to_decimal)


class BillItemInput(BaseModel):
    """Input schema for a bill line item"""

    name: str = Field(..., min_length=1, max_length=255)
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=MONEY_PLACES)
    quantity: int = Field(default=1, gt=0)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        """Reject names that are only whitespace"""
        v = v.strip()
        if not v:
            raise ValueError("Item name must not be blank")
        return v

    @field_validator("price", mode="before")
    @classmethod
    def convert_price(cls, v):
        """Convert price to Decimal"""
        return to_decimal(v)


class BillCreate(BaseModel):
    """Schema for creating a bill"""

    name: str = Field(..., min_length=1, max_length=255)
    items: List[BillItemInput] = Field(..., min_length=1)
    tax: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=MONEY_PLACES)
    tip_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100, decimal_places=PERCENT_PLACES)
    creator_name: str = Field(..., min_length=1, max_length=100)

    @field_validator("name", "creator_name")
    @classmethod
    def strip_text(cls, v: str) -> str:
        """Trim and reject blank text fields"""
        v = v.strip()
        if not v:
            raise ValueError("Value must not be blank")
        return v

    @field_validator("tax", "tip_percent", mode="before")
    @classmethod
    def convert_to_decimal(cls, v):
        """Convert numeric values to Decimal"""
        if v is None:
            return Decimal("0")
        return to_decimal(v)


class BillCreatedResponse(BaseModel):
    """Identifiers returned after creating a bill"""

    id: UUID
    short_code: str
    creator_participant_id: UUID


class BillUpdate(BaseModel):
    """Schema for updating a bill's status and/or tip"""

    status: Optional[BillStatus] = None
    tip_percent: Optional[Decimal] = Field(default=None, ge=0, le=100, decimal_places=PERCENT_PLACES)

    @field_validator("tip_percent", mode="before")
    @classmethod
    def convert_tip_percent(cls, v):
        """Convert tip_percent to Decimal"""
        return None if v is None else to_decimal(v)

    @model_validator(mode="after")
    def require_a_change(self):
        """At least one field must be supplied"""
        if self.status is None and self.tip_percent is None:
            raise ValueError("Provide status and/or tip_percent")
        return self


class BillItemResponse(BaseModel):
    """Response schema for a bill item"""

    id: UUID
    bill_id: UUID
    name: str
    price: Decimal
    quantity: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BillResponse(BaseModel):
    """Bill fields without related rows"""

    id: UUID
    short_code: str
    name: str
    subtotal: Decimal
    tax: Decimal
    tip_percent: Decimal
    tip_amount: Decimal
    status: BillStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BillSnapshotResponse(BillResponse):
    """Full bill snapshot; consumers run the split engine over it"""

    items: List[BillItemResponse]
    participants: List[ParticipantResponse]
    claims: List[ClaimResponse]
