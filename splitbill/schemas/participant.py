"""Participant schemas"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ParticipantJoin(BaseModel):
    """Schema for joining a bill"""

    bill_id: UUID
    name: str = Field(..., min_length=1, max_length=100)


class ParticipantResponse(BaseModel):
    """Response schema for a participant"""

    id: UUID
    bill_id: UUID
    name: str
    is_creator: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
