"""Participant data access"""
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from splitbill.models.participant import Participant


class ParticipantRepository:
    """Repository for Participant database operations"""

    @staticmethod
    async def create(db: AsyncSession, participant: Participant) -> Participant:
        """
        Create a new participant.

        Args:
            db: Database session
            participant: Participant object to create

        Returns:
            Created participant
        """
        db.add(participant)
        await db.flush()
        await db.refresh(participant)
        return participant

    @staticmethod
    async def get_by_id(db: AsyncSession, participant_id: UUID) -> Optional[Participant]:
        """Get participant by ID"""
        result = await db.execute(select(Participant).where(Participant.id == participant_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_bill(db: AsyncSession, bill_id: UUID) -> List[Participant]:
        """
        Get all participants of a bill in join order.

        Args:
            db: Database session
            bill_id: Bill UUID

        Returns:
            List of participants
        """
        result = await db.execute(
            select(Participant)
            .where(Participant.bill_id == bill_id)
            .order_by(Participant.created_at.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_names(db: AsyncSession, bill_id: UUID) -> List[str]:
        """Display names already used on a bill"""
        result = await db.execute(
            select(Participant.name).where(Participant.bill_id == bill_id)
        )
        return list(result.scalars().all())
