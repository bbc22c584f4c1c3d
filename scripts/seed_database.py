"""Database seeding script (demo bill with claims)"""
import asyncio
import sys
from decimal import Decimal
from pathlib import Path

# Add parent directory to path to import splitbill modules
sys.path.append(str(Path(__file__).parent.parent))

from splitbill.database import AsyncSessionLocal, create_tables
from splitbill.schemas.bill import BillCreate, BillItemInput
from splitbill.services.bill_service import BillService
from splitbill.services.claim_service import ClaimService
from splitbill.services.participant_service import ParticipantService
from splitbill.services.split_engine import compute_splits

DEMO_BILL = BillCreate(
    name="Friday dinner",
    items=[
        BillItemInput(name="Burger", price=Decimal("10.00"), quantity=1),
        BillItemInput(name="Fries", price=Decimal("5.00"), quantity=2),
    ],
    tax=Decimal("2.00"),
    tip_percent=Decimal("20"),
    creator_name="Alex",
)


async def seed_demo_bill():
    """Create the demo bill, a second participant and their claims"""

    await create_tables()

    async with AsyncSessionLocal() as session:
        created = await BillService.create_bill(DEMO_BILL, session)
        bill_id = created.bill.id
        print(f"  Created bill '{DEMO_BILL.name}' with code {created.bill.short_code}")

        jordan = await ParticipantService.join_bill(bill_id, "Jordan", session)
        print(f"  Jordan joined as '{jordan.name}'")

        snapshot = await BillService.get_bill_snapshot(str(bill_id), session)
        items = {item.name: item for item in snapshot.items}
        burger, fries = items["Burger"], items["Fries"]
        await ClaimService.upsert_claim(created.creator.id, burger.id, Decimal("1"), session)
        await ClaimService.upsert_claim(created.creator.id, fries.id, Decimal("1"), session)
        await ClaimService.upsert_claim(jordan.id, fries.id, Decimal("1"), session)

        snapshot = await BillService.get_bill_snapshot(str(bill_id), session)
        print("\nSplits:")
        for split in compute_splits(snapshot.bill, snapshot.items, snapshot.participants, snapshot.claims):
            print(f"  {split.participant_name}: {split.total:.2f}")


async def main():
    """Main function to run seeding"""
    print("Seeding database with a demo bill...\n")

    try:
        await seed_demo_bill()
        print("\nDatabase seeding completed successfully!")
    except Exception as e:
        print(f"\nError seeding database: {str(e)}")
        raise


if __name__ == "__main__":
    asyncio.run(main())
