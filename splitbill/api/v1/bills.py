"""Bill endpoints"""
import asyncio
import logging
from typing import Optional
from uuid import UUID

from fastapi import (APIRouter, Depends, Header, HTTPException, WebSocket,
                     WebSocketDisconnect, status)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from splitbill.api.deps import get_session_factory
from splitbill.core.exceptions import (ConflictExhaustedError, NotFoundError,
                                       PersistenceError, ValidationError)
from splitbill.database import get_db
from splitbill.schemas.bill import (BillCreate, BillCreatedResponse,
                                    BillResponse, BillSnapshotResponse,
                                    BillUpdate)
from splitbill.schemas.split import BillSplitsResponse
from splitbill.services.bill_service import BillService, BillSnapshot
from splitbill.services.change_feed import ChangeFeed, for_bill
from splitbill.services.redis_store import PENDING_MARKER, RedisStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bills", tags=["Bills"])


def snapshot_response(snapshot: BillSnapshot) -> BillSnapshotResponse:
    """Flatten a snapshot into the bill fields plus items, participants and claims"""
    bill_fields = BillResponse.model_validate(snapshot.bill).model_dump()
    return BillSnapshotResponse.model_validate(
        {
            **bill_fields,
            "items": snapshot.items,
            "participants": snapshot.participants,
            "claims": snapshot.claims,
        },
        from_attributes=True,
    )


async def replay_or_reserve(idempotency_key: str) -> Optional[BillCreatedResponse]:
    """
    Return the stored response for a repeated key, or reserve the key.

    Returns:
        The earlier response, or None when this request now holds the key

    Raises:
        HTTPException 409: If another request with the key is in progress
    """
    cached = await RedisStore.recall_response("bill", idempotency_key)
    if cached is None:
        if await RedisStore.reserve("bill", idempotency_key):
            return None
        # Lost the race; the winner may already have finished
        cached = await RedisStore.recall_response("bill", idempotency_key)

    if cached is None or cached == PENDING_MARKER:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A request with this Idempotency-Key is already in progress"
        )
    return BillCreatedResponse.model_validate_json(cached)


@router.post("", response_model=BillCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_bill(
    bill_data: BillCreate,
    db: AsyncSession = Depends(get_db),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key")
):
    """
    Create a bill with its items and the creator as first participant.

    Supports idempotency via the `Idempotency-Key` header: repeating a
    request with the same key within 24 hours returns the original response
    instead of creating a second bill. The key is reserved before the bill
    is written, so a repeat that arrives while the first request is still
    running gets 409 rather than a second bill. A failed creation releases
    the key; if the worker dies instead, the reservation lapses after a
    minute. With Redis down, requests proceed without this protection.

    Args:
        bill_data: Name, items, tax, tip_percent and creator_name
        db: Database session
        idempotency_key: Optional idempotency key

    Returns:
        Bill id, short code and the creator's participant id

    Raises:
        400: If an amount has more decimal places than stored
        409: If no unique short code could be allocated, or the same
            Idempotency-Key is still being processed
        500: If the bill could not be stored
    """
    if idempotency_key:
        replayed = await replay_or_reserve(idempotency_key)
        if replayed is not None:
            return replayed

    try:
        created = await BillService.create_bill(bill_data, db)
    except (ValidationError, ConflictExhaustedError, PersistenceError) as e:
        if idempotency_key:
            await RedisStore.release("bill", idempotency_key)
        raise HTTPException(
            status_code=e.status_code,
            detail=e.message
        )

    response = BillCreatedResponse(
        id=created.bill.id,
        short_code=created.bill.short_code,
        creator_participant_id=created.creator.id,
    )
    if idempotency_key:
        await RedisStore.remember_response("bill", idempotency_key, response.model_dump_json())
    return response


@router.get("/{bill_ref}", response_model=BillSnapshotResponse)
async def get_bill(
    bill_ref: str,
    db: AsyncSession = Depends(get_db)
):
    """
    Get a bill by UUID or short code (case-insensitive).

    Returns the bill fields plus flat, unfiltered `items`, `participants`
    and `claims` lists; clients run the split computation over them.

    Raises:
        404: If the bill does not exist
    """
    try:
        snapshot = await BillService.get_bill_snapshot(bill_ref, db)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.message
        )
    return snapshot_response(snapshot)


@router.get("/{bill_ref}/splits", response_model=BillSplitsResponse)
async def get_bill_splits(
    bill_ref: str,
    db: AsyncSession = Depends(get_db)
):
    """
    Compute every participant's share of a bill server-side.

    Also reports claimed and remaining units per item, flagging items whose
    claims add up to more than their quantity.

    Raises:
        404: If the bill does not exist
    """
    try:
        snapshot = await BillService.get_bill_snapshot(bill_ref, db)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.message
        )
    return BillService.compute_bill_splits(snapshot)


@router.patch("/{bill_id}", response_model=BillResponse)
async def update_bill(
    bill_id: UUID,
    update: BillUpdate,
    db: AsyncSession = Depends(get_db)
):
    """
    Change a bill's status and/or tip percentage.

    Changing `tip_percent` recomputes `tip_amount` from the stored subtotal
    and tax. Allowed status moves: draft -> active, active <-> settled.

    Raises:
        400: If the status transition is not allowed
        404: If the bill does not exist
    """
    try:
        bill = await BillService.update_bill(bill_id, update, db)
        return BillResponse.model_validate(bill)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message
        )
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.message
        )


@router.websocket("/{bill_id}/events")
async def bill_events(
    websocket: WebSocket,
    bill_id: UUID,
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    """
    Push a fresh snapshot and split to the client whenever the bill changes.

    Each notification triggers a full re-fetch; notifications themselves
    carry no row data. The socket is read alongside the feed so a client
    leaving an idle bill ends the subscription at once. If the feed is lost
    the socket closes with 1011; an unknown bill closes it with 4404.
    """
    await websocket.accept()
    pending: asyncio.Queue = asyncio.Queue()
    try:
        subscription = await ChangeFeed.on_change(for_bill(bill_id), pending.put)
    except Exception as e:
        logger.warning("Change feed unavailable for bill %s: %s", bill_id, e)
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR, reason="Change feed unavailable")
        return

    receiving = asyncio.create_task(websocket.receive())
    waiting = asyncio.create_task(pending.get())
    feed_closed = asyncio.create_task(subscription.wait())
    try:
        while True:
            done, _ = await asyncio.wait(
                {receiving, waiting, feed_closed}, return_when=asyncio.FIRST_COMPLETED
            )

            if receiving in done:
                if receiving.result()["type"] == "websocket.disconnect":
                    logger.debug("Event listener for bill %s disconnected", bill_id)
                    return
                # Clients have nothing to say on this socket
                receiving = asyncio.create_task(websocket.receive())

            if waiting in done:
                event = waiting.result()
                waiting = asyncio.create_task(pending.get())
                async with session_factory() as db:
                    try:
                        snapshot = await BillService.get_bill_snapshot(str(bill_id), db)
                    except NotFoundError:
                        await websocket.close(code=4404, reason="Bill not found")
                        return
                    payload = {
                        "event": event.model_dump(mode="json"),
                        "bill": snapshot_response(snapshot).model_dump(mode="json"),
                        "splits": BillService.compute_bill_splits(snapshot).model_dump(mode="json"),
                    }
                await websocket.send_json(payload)

            if feed_closed in done:
                await websocket.close(code=status.WS_1011_INTERNAL_ERROR, reason="Change feed unavailable")
                return
    except WebSocketDisconnect:
        logger.debug("Event listener for bill %s disconnected", bill_id)
    finally:
        tasks = (receiving, waiting, feed_closed)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await subscription.cancel()
