"""Participant endpoints"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from splitbill.core.exceptions import NotFoundError, ValidationError
from splitbill.database import get_db
from splitbill.schemas.participant import ParticipantJoin, ParticipantResponse
from splitbill.services.participant_service import ParticipantService

router = APIRouter(prefix="/participants", tags=["Participants"])


@router.post("", response_model=ParticipantResponse, status_code=status.HTTP_201_CREATED)
async def join_bill(
    join_data: ParticipantJoin,
    db: AsyncSession = Depends(get_db)
):
    """
    Join a bill under a display name.

    The name is trimmed; if other participants already use it (ignoring
    case) a " (N)" suffix is appended. The returned participant id is the
    caller's only handle on its identity.

    Raises:
        400: If the name is blank
        404: If the bill does not exist
    """
    try:
        participant = await ParticipantService.join_bill(join_data.bill_id, join_data.name, db)
        return ParticipantResponse.model_validate(participant)
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
