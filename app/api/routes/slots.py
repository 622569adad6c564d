from collections.abc import Callable
from datetime import date, datetime

from fastapi import APIRouter, Depends, Query

from app.api.deps import (
    get_activity_repository,
    get_appointment_repository,
    get_availability_repository,
    get_clock,
)
from app.api.schemas.appointment import AvailableSlotsResponse, SlotInfo
from app.repositories.activity_repository import ActivityRepository
from app.repositories.appointment_repository import AppointmentRepository
from app.repositories.availability_repository import AvailabilityRepository
from app.services.slot_service import get_available_slots

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/available", response_model=AvailableSlotsResponse)
async def available_slots(
    activity_id: int = Query(...),
    date_param: date = Query(..., alias="date"),
    appointments: AppointmentRepository = Depends(get_appointment_repository),
    activities: ActivityRepository = Depends(get_activity_repository),
    availability: AvailabilityRepository = Depends(get_availability_repository),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> AvailableSlotsResponse:
    """Bookable slots for an activity on a date in the business timezone. Times are UTC."""
    slots = await get_available_slots(appointments, activities, availability, activity_id, date_param, now=clock())
    return AvailableSlotsResponse(
        date=date_param.isoformat(),
        activity_id=activity_id,
        slots=[SlotInfo(start_utc=s, end_utc=e) for s, e in slots],
    )
