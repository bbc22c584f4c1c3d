"""Bill business logic"""
import logging
from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from splitbill.core.exceptions import (ConflictExhaustedError, NotFoundError,
                                       PersistenceError, ValidationError)
from splitbill.models.bill import Bill, BillStatus
from splitbill.models.bill_item import BillItem
from splitbill.models.item_claim import ItemClaim
from splitbill.models.participant import Participant
from splitbill.repositories.bill_repository import BillRepository
from splitbill.repositories.claim_repository import ClaimRepository
from splitbill.repositories.participant_repository import ParticipantRepository
from splitbill.schemas.bill import BillCreate, BillUpdate
from splitbill.schemas.split import BillSplitsResponse
from splitbill.services.change_feed import ChangeEvent, ChangeFeed
from splitbill.services.split_engine import compute_splits, summarize_items
from splitbill.utils.decimal_utils import (MONEY_PLACES, PERCENT_PLACES,
                                          compute_tip_amount, fits_places,
                                          sum_decimals)
from splitbill.utils.short_code import (generate_short_code,
                                        looks_like_short_code,
                                        normalize_short_code)

logger = logging.getLogger(__name__)

SHORT_CODE_MAX_ATTEMPTS = 10


@dataclass
class BillSnapshot:
    """A bill with every row the split engine needs"""
    bill: Bill
    items: List[BillItem]
    participants: List[Participant]
    claims: List[ItemClaim]


@dataclass
class CreatedBill:
    bill: Bill
    creator: Participant


def _parse_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(value)
    except (ValueError, AttributeError, TypeError):
        return None


class BillService:
    """Service for bill operations"""

    @staticmethod
    async def generate_unique_short_code(db: AsyncSession) -> str:
        """
        Find a short code not used by any bill.

        Raises:
            ConflictExhaustedError: If every attempt collided
        """
        for attempt in range(1, SHORT_CODE_MAX_ATTEMPTS + 1):
            code = generate_short_code()
            if not await BillRepository.short_code_exists(db, code):
                return code
            logger.info("Short code collision on attempt %d", attempt)

        raise ConflictExhaustedError(
            f"Could not generate a unique short code after {SHORT_CODE_MAX_ATTEMPTS} attempts"
        )

    @staticmethod
    def check_precision(bill_data: BillCreate) -> None:
        """
        Reject amounts finer than the columns store.

        Subtotal and tip are derived before the write, so a value the
        database would round makes the stored totals disagree with the
        stored items.

        Raises:
            ValidationError: If a price, the tax or the tip percent has too
                many decimal places
        """
        amounts = [("tax", bill_data.tax, MONEY_PLACES), ("tip_percent", bill_data.tip_percent, PERCENT_PLACES)]
        amounts += [(f"price of {item.name}", item.price, MONEY_PLACES) for item in bill_data.items]
        for label, value, places in amounts:
            if not fits_places(value, places):
                raise ValidationError(f"{label} allows at most {places} decimal places")

    @staticmethod
    async def create_bill(bill_data: BillCreate, db: AsyncSession) -> CreatedBill:
        """
        Create a bill, its items and the creator participant.

        The bill row is committed first. If inserting the items then fails,
        the bill is deleted again so no item-less bill is left behind.

        Args:
            bill_data: Validated bill creation payload
            db: Database session

        Returns:
            The created bill and its creator participant

        Raises:
            ValidationError: If an amount has more decimal places than stored
            ConflictExhaustedError: If no unique short code could be found
            PersistenceError: If a write fails
        """
        BillService.check_precision(bill_data)
        subtotal = sum_decimals([item.price * item.quantity for item in bill_data.items])
        tip_amount = compute_tip_amount(subtotal, bill_data.tax, bill_data.tip_percent)
        short_code = await BillService.generate_unique_short_code(db)

        try:
            bill = await BillRepository.create(
                db,
                Bill(
                    name=bill_data.name,
                    short_code=short_code,
                    subtotal=subtotal,
                    tax=bill_data.tax,
                    tip_percent=bill_data.tip_percent,
                    tip_amount=tip_amount,
                    status=BillStatus.ACTIVE,
                ),
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Error creating bill: %s", e)
            raise PersistenceError("Failed to create bill")

        bill_id = bill.id
        try:
            await BillRepository.create_items(
                db,
                [
                    BillItem(bill_id=bill_id, name=item.name, price=item.price, quantity=item.quantity)
                    for item in bill_data.items
                ],
            )
            creator = await ParticipantRepository.create(
                db,
                Participant(bill_id=bill_id, name=bill_data.creator_name, is_creator=True),
            )
            await db.commit()
        except SQLAlchemyError as e:
            logger.error("Error creating items for bill %s, removing bill: %s", bill_id, e)
            await db.rollback()
            await BillService._compensate_bill(db, bill_id)
            raise PersistenceError("Failed to create bill items")

        logger.info("Created bill %s (%s) with %d items", bill_id, short_code, len(bill_data.items))
        return CreatedBill(bill=bill, creator=creator)

    @staticmethod
    async def _compensate_bill(db: AsyncSession, bill_id: UUID) -> None:
        try:
            await BillRepository.delete(db, bill_id)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Compensating delete of bill %s failed: %s", bill_id, e)

    @staticmethod
    async def find_bill(identifier: str, db: AsyncSession) -> Bill:
        """
        Look a bill up by UUID or by short code (case-insensitive).

        Raises:
            NotFoundError: If no bill matches
        """
        bill = None
        bill_id = _parse_uuid(identifier)
        if bill_id is not None:
            bill = await BillRepository.get_by_id(db, bill_id)
        elif looks_like_short_code(identifier):
            bill = await BillRepository.get_by_short_code(db, normalize_short_code(identifier))

        if bill is None:
            raise NotFoundError("Bill not found")
        return bill

    @staticmethod
    async def get_bill_snapshot(identifier: str, db: AsyncSession) -> BillSnapshot:
        """
        Fetch a bill with its items, participants and the flat claim list.

        Args:
            identifier: Bill UUID or short code
            db: Database session

        Returns:
            BillSnapshot

        Raises:
            NotFoundError: If the bill does not exist
        """
        bill = await BillService.find_bill(identifier, db)
        items = await BillRepository.get_items(db, bill.id)
        participants = await ParticipantRepository.get_by_bill(db, bill.id)
        claims = await ClaimRepository.get_by_bill(db, bill.id)
        return BillSnapshot(bill=bill, items=items, participants=participants, claims=claims)

    @staticmethod
    def compute_bill_splits(snapshot: BillSnapshot) -> BillSplitsResponse:
        """Run the split engine over a snapshot"""
        bill = snapshot.bill
        splits = compute_splits(bill, snapshot.items, snapshot.participants, snapshot.claims)
        return BillSplitsResponse(
            bill_id=bill.id,
            bill_total=bill.subtotal + bill.tax + bill.tip_amount,
            allocated_total=sum_decimals([split.total for split in splits]),
            splits=splits,
            items=summarize_items(snapshot.items, snapshot.claims),
        )

    @staticmethod
    async def update_bill(bill_id: UUID, update: BillUpdate, db: AsyncSession) -> Bill:
        """
        Change a bill's status and/or tip percentage.

        A tip change recomputes ``tip_amount`` from the stored subtotal and tax.

        Raises:
            NotFoundError: If the bill does not exist
            ValidationError: If the status transition is not allowed
            PersistenceError: If the write fails
        """
        bill = await BillRepository.get_by_id(db, bill_id)
        if not bill:
            raise NotFoundError("Bill not found")

        if update.status is not None:
            if not bill.can_transition_to(update.status):
                raise ValidationError(
                    f"Cannot change bill status from {BillStatus(bill.status).value} to {update.status.value}"
                )
            bill.status = update.status

        if update.tip_percent is not None:
            bill.tip_percent = update.tip_percent
            bill.tip_amount = compute_tip_amount(bill.subtotal, bill.tax, update.tip_percent)

        try:
            await db.flush()
            await db.commit()
            await db.refresh(bill)
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Error updating bill %s: %s", bill_id, e)
            raise PersistenceError("Failed to update bill")

        await ChangeFeed.publish(ChangeEvent(bill_id=bill.id, table="bills", action="update", record_id=bill.id))
        return bill
