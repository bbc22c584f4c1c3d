"""Claim ledger business logic"""
import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from splitbill.core.exceptions import NotFoundError, PersistenceError, ValidationError
from splitbill.models.item_claim import ItemClaim
from splitbill.repositories.bill_repository import BillRepository
from splitbill.repositories.claim_repository import ClaimRepository
from splitbill.repositories.participant_repository import ParticipantRepository
from splitbill.services.change_feed import ChangeEvent, ChangeFeed
from splitbill.utils.decimal_utils import SHARE_PLACES, fits_places

logger = logging.getLogger(__name__)


class ClaimService:
    """
    Service for claiming and unclaiming items.

    Each call is one independent write keyed on (participant, item). Claims
    are not checked against the item's remaining quantity, so concurrent
    claimants can jointly exceed it; the split engine normalizes whatever
    the ledger holds.
    """

    @staticmethod
    async def upsert_claim(
        participant_id: UUID,
        item_id: UUID,
        share: Decimal,
        db: AsyncSession
    ) -> ItemClaim:
        """
        Create the claim or overwrite its share.

        Args:
            participant_id: Claiming participant
            item_id: Claimed item
            share: Units of the item's quantity, must be positive
            db: Database session

        Returns:
            The claim after the write

        Raises:
            ValidationError: If share is not positive or finer than the
                ledger stores
            NotFoundError: If participant or item is missing, or they belong
                to different bills
            PersistenceError: If the write fails
        """
        if share is None or share <= 0:
            raise ValidationError("share must be greater than 0")
        if not fits_places(share, SHARE_PLACES):
            raise ValidationError(f"share allows at most {SHARE_PLACES} decimal places")

        participant = await ParticipantRepository.get_by_id(db, participant_id)
        if not participant:
            raise NotFoundError("Participant not found")

        item = await BillRepository.get_item(db, item_id)
        if not item or item.bill_id != participant.bill_id:
            raise NotFoundError("Item not found on this bill")

        try:
            claim = await ClaimRepository.upsert(db, participant_id, item_id, share)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Error claiming item %s for %s: %s", item_id, participant_id, e)
            raise PersistenceError("Failed to claim item")

        logger.debug("Claim %s/%s set to %s", participant_id, item_id, share)
        await ChangeFeed.publish(
            ChangeEvent(bill_id=item.bill_id, table="item_claims", action="upsert", record_id=claim.id)
        )
        return claim

    @staticmethod
    async def delete_claim(participant_id: UUID, item_id: UUID, db: AsyncSession) -> bool:
        """
        Remove a claim if it exists.

        Deleting a claim that is not there is a successful no-op.

        Returns:
            True if a row was removed

        Raises:
            PersistenceError: If the delete fails
        """
        try:
            deleted = await ClaimRepository.delete(db, participant_id, item_id)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Error unclaiming item %s for %s: %s", item_id, participant_id, e)
            raise PersistenceError("Failed to remove claim")

        if deleted:
            item = await BillRepository.get_item(db, item_id)
            if item is not None:
                await ChangeFeed.publish(
                    ChangeEvent(bill_id=item.bill_id, table="item_claims", action="delete")
                )
        return deleted
