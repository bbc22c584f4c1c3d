"""Claim ledger data access"""
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy import delete as sql_delete
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from splitbill.models.bill_item import BillItem
from splitbill.models.item_claim import ItemClaim

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class ClaimRepository:
    """Repository for ItemClaim database operations"""

    @staticmethod
    async def get(
        db: AsyncSession, participant_id: UUID, item_id: UUID
    ) -> Optional[ItemClaim]:
        """
        Get the claim for a (participant, item) key.

        Args:
            db: Database session
            participant_id: Participant UUID
            item_id: Item UUID

        Returns:
            Claim if present, None otherwise
        """
        result = await db.execute(
            select(ItemClaim)
            .where(
                and_(
                    ItemClaim.participant_id == participant_id,
                    ItemClaim.item_id == item_id,
                )
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def upsert(
        db: AsyncSession, participant_id: UUID, item_id: UUID, share: Decimal
    ) -> ItemClaim:
        """
        Insert a claim or overwrite the share of the existing one.

        A single INSERT ... ON CONFLICT statement keyed on
        (participant_id, item_id); concurrent writers to the same key end up
        with the last write.

        Args:
            db: Database session
            participant_id: Participant UUID
            item_id: Item UUID
            share: Units claimed

        Returns:
            The claim row after the write
        """
        dialect = db.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise NotImplementedError(f"Claim upsert is not supported on {dialect}")

        stmt = insert(ItemClaim).values(
            participant_id=participant_id, item_id=item_id, share=share
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[ItemClaim.participant_id, ItemClaim.item_id],
            set_={"share": stmt.excluded.share, "updated_at": stmt.excluded.updated_at},
        )
        await db.execute(stmt)
        await db.flush()
        return await ClaimRepository.get(db, participant_id, item_id)

    @staticmethod
    async def delete(db: AsyncSession, participant_id: UUID, item_id: UUID) -> bool:
        """
        Delete the claim for a (participant, item) key.

        Args:
            db: Database session
            participant_id: Participant UUID
            item_id: Item UUID

        Returns:
            True if a row was deleted, False if there was nothing to delete
        """
        result = await db.execute(
            sql_delete(ItemClaim).where(
                and_(
                    ItemClaim.participant_id == participant_id,
                    ItemClaim.item_id == item_id,
                )
            )
        )
        await db.flush()
        return result.rowcount > 0

    @staticmethod
    async def get_by_bill(db: AsyncSession, bill_id: UUID) -> List[ItemClaim]:
        """
        Get every claim on every item of a bill.

        Args:
            db: Database session
            bill_id: Bill UUID

        Returns:
            Flat list of claims
        """
        result = await db.execute(
            select(ItemClaim)
            .join(BillItem, ItemClaim.item_id == BillItem.id)
            .where(BillItem.bill_id == bill_id)
            .order_by(ItemClaim.created_at.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())
