"""Split result schemas"""
from decimal import Decimal
from typing import List
from uuid import UUID

from pydantic import BaseModel


class SplitItemDetail(BaseModel):
    """One item's contribution to a participant's items total"""
    item_id: UUID
    item_name: str
    share: Decimal  # effective fraction of the item, 0..1
    amount: Decimal


class ParticipantSplit(BaseModel):
    """A participant's computed share of the bill"""
    participant_id: UUID
    participant_name: str
    items_total: Decimal
    tax_share: Decimal
    tip_share: Decimal
    total: Decimal
    items: List[SplitItemDetail] = []


class ItemAllocation(BaseModel):
    """How much of an item's quantity has been claimed"""
    item_id: UUID
    quantity: int
    claimed: Decimal
    remaining: Decimal
    over_claimed: bool


class BillSplitsResponse(BaseModel):
    """Server-side split computation for a bill"""
    bill_id: UUID
    bill_total: Decimal
    allocated_total: Decimal
    splits: List[ParticipantSplit]
    items: List[ItemAllocation]
