"""Participant join logic"""
import logging
import re
from typing import Iterable
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from splitbill.core.exceptions import NotFoundError, PersistenceError, ValidationError
from splitbill.models.participant import Participant
from splitbill.repositories.bill_repository import BillRepository
from splitbill.repositories.participant_repository import ParticipantRepository
from splitbill.services.change_feed import ChangeEvent, ChangeFeed

logger = logging.getLogger(__name__)

_SUFFIX_RE = re.compile(r"^(?P<base>.*?)\s\(\d+\)$")


def base_name(name: str) -> str:
    """Strip a trailing " (N)" disambiguation suffix"""
    match = _SUFFIX_RE.match(name.strip())
    return match.group("base") if match else name.strip()


def disambiguate_name(name: str, existing_names: Iterable[str]) -> str:
    """
    Pick the display name for a new participant.

    Counts existing names equal to ``name`` or derived from it by an
    earlier disambiguation, ignoring case. With N such names the result
    is "name (N+1)"; with none it is the trimmed name itself.

    Args:
        name: Requested display name
        existing_names: Names already on the bill

    Returns:
        Name to store
    """
    trimmed = name.strip()
    wanted = trimmed.casefold()
    taken = sum(
        1
        for existing in existing_names
        if existing.strip().casefold() == wanted or base_name(existing).casefold() == wanted
    )
    if taken == 0:
        return trimmed
    return f"{trimmed} ({taken + 1})"


class ParticipantService:
    """Service for participant operations"""

    @staticmethod
    async def join_bill(bill_id: UUID, name: str, db: AsyncSession) -> Participant:
        """
        Add a participant to a bill.

        Args:
            bill_id: Bill to join
            name: Requested display name
            db: Database session

        Returns:
            The created participant

        Raises:
            ValidationError: If the name is blank
            NotFoundError: If the bill does not exist
            PersistenceError: If the insert fails
        """
        if not name or not name.strip():
            raise ValidationError("name is required")

        bill = await BillRepository.get_by_id(db, bill_id)
        if not bill:
            raise NotFoundError("Bill not found")

        existing = await ParticipantRepository.get_names(db, bill_id)
        final_name = disambiguate_name(name, existing)

        try:
            participant = await ParticipantRepository.create(
                db, Participant(bill_id=bill_id, name=final_name, is_creator=False)
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Error joining bill %s: %s", bill_id, e)
            raise PersistenceError("Failed to join bill")

        logger.info("Participant %s joined bill %s as %r", participant.id, bill_id, final_name)
        await ChangeFeed.publish(
            ChangeEvent(bill_id=bill_id, table="participants", action="insert", record_id=participant.id)
        )
        return participant
