"""Claim endpoints"""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from splitbill.core.exceptions import NotFoundError, ValidationError
from splitbill.database import get_db
from splitbill.schemas.claim import ClaimCreate, ClaimResponse, UnclaimResponse
from splitbill.services.claim_service import ClaimService

router = APIRouter(prefix="/claims", tags=["Claims"])


@router.post("", response_model=ClaimResponse)
async def claim_item(
    claim_data: ClaimCreate,
    db: AsyncSession = Depends(get_db)
):
    """
    Claim units of an item.

    Upserts on (participant_id, item_id): claiming again replaces the share.
    The share is not checked against what others have already claimed.

    Args:
        claim_data: participant_id, item_id and share (default 1)
        db: Database session

    Returns:
        The resulting claim

    Raises:
        400: If share is not positive
        404: If participant or item is missing or on different bills
    """
    try:
        claim = await ClaimService.upsert_claim(
            claim_data.participant_id,
            claim_data.item_id,
            claim_data.share,
            db
        )
        return ClaimResponse.model_validate(claim)
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


@router.delete("", response_model=UnclaimResponse)
async def unclaim_item(
    participant_id: UUID = Query(..., description="Participant giving up the item"),
    item_id: UUID = Query(..., description="Item being unclaimed"),
    db: AsyncSession = Depends(get_db)
):
    """
    Remove a claim.

    Succeeds whether or not the claim existed.
    """
    await ClaimService.delete_claim(participant_id, item_id, db)
    return UnclaimResponse()
