"""Bill data access"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete as sql_delete
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from splitbill.models.bill import Bill
from splitbill.models.bill_item import BillItem


class BillRepository:
    """Repository for Bill and BillItem database operations"""

    @staticmethod
    async def create(db: AsyncSession, bill: Bill) -> Bill:
        """
        Create a new bill.

        Args:
            db: Database session
            bill: Bill object to create

        Returns:
            Created bill
        """
        db.add(bill)
        await db.flush()
        await db.refresh(bill)
        return bill

    @staticmethod
    async def create_items(db: AsyncSession, items: List[BillItem]) -> List[BillItem]:
        """
        Create bill items in a batch.

        Args:
            db: Database session
            items: BillItem objects to create

        Returns:
            Created items
        """
        db.add_all(items)
        await db.flush()
        return items

    @staticmethod
    async def get_by_id(db: AsyncSession, bill_id: UUID) -> Optional[Bill]:
        """
        Get bill by ID.

        Args:
            db: Database session
            bill_id: Bill UUID

        Returns:
            Bill if found, None otherwise
        """
        result = await db.execute(select(Bill).where(Bill.id == bill_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_short_code(db: AsyncSession, short_code: str) -> Optional[Bill]:
        """
        Get bill by its (already upper-cased) short code.

        Args:
            db: Database session
            short_code: Six character code

        Returns:
            Bill if found, None otherwise
        """
        result = await db.execute(select(Bill).where(Bill.short_code == short_code))
        return result.scalar_one_or_none()

    @staticmethod
    async def short_code_exists(db: AsyncSession, short_code: str) -> bool:
        """Check whether a short code is already taken"""
        result = await db.execute(select(Bill.id).where(Bill.short_code == short_code))
        return result.first() is not None

    @staticmethod
    async def get_items(db: AsyncSession, bill_id: UUID) -> List[BillItem]:
        """
        Get all items of a bill in creation order.

        Args:
            db: Database session
            bill_id: Bill UUID

        Returns:
            List of items
        """
        result = await db.execute(
            select(BillItem)
            .where(BillItem.bill_id == bill_id)
            .order_by(BillItem.created_at.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_item(db: AsyncSession, item_id: UUID) -> Optional[BillItem]:
        """Get a single bill item by ID"""
        result = await db.execute(select(BillItem).where(BillItem.id == item_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def delete(db: AsyncSession, bill_id: UUID) -> bool:
        """
        Delete a bill by ID.

        Issued as a plain DELETE so it also works for compensation after a
        failed flush, when the ORM object may be unusable.

        Args:
            db: Database session
            bill_id: Bill UUID

        Returns:
            True if a row was deleted
        """
        result = await db.execute(sql_delete(Bill).where(Bill.id == bill_id))
        await db.flush()
        return result.rowcount > 0
