from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_availability_repository
from app.api.schemas.appointment import AvailabilityPayload, AvailabilityPublic
from app.models.availability import Availability
from app.repositories.availability_repository import AvailabilityRepository
from app.services.availability_service import get_availability, update_availability

router = APIRouter(prefix="/availability", tags=["availability"])


def _to_public(a: Availability) -> AvailabilityPublic:
    return AvailabilityPublic(
        weekly_slots=list(a.weekly_slots),
        exceptions=list(a.exceptions),
        updated_at=a.updated_at,
    )


@router.get("", response_model=AvailabilityPublic)
async def read_availability(
    availability: AvailabilityRepository = Depends(get_availability_repository),
) -> AvailabilityPublic:
    return _to_public(await get_availability(availability))


@router.put("", response_model=AvailabilityPublic)
async def replace_availability(
    body: AvailabilityPayload,
    availability: AvailabilityRepository = Depends(get_availability_repository),
) -> AvailabilityPublic:
    try:
        updated = await update_availability(availability, body.weekly_slots, body.exceptions)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    return _to_public(updated)
