from fastapi import APIRouter, Depends, status

from app.api.deps import get_activity_repository, get_appointment_repository
from app.models.activity import Activity, ActivityCreate
from app.repositories.activity_repository import ActivityRepository
from app.repositories.appointment_repository import AppointmentRepository
from app.services.activity_service import create_activity, delete_activity, get_activity, update_activity

router = APIRouter(prefix="/activities", tags=["activities"])


@router.get("", response_model=list[Activity])
async def list_activities(activities: ActivityRepository = Depends(get_activity_repository)) -> list[Activity]:
    return await activities.find_all()


@router.post("", response_model=Activity, status_code=status.HTTP_201_CREATED)
async def create_activity_route(
    body: ActivityCreate,
    activities: ActivityRepository = Depends(get_activity_repository),
) -> Activity:
    return await create_activity(activities, body)


@router.get("/{activity_id}", response_model=Activity)
async def get_activity_route(
    activity_id: int,
    activities: ActivityRepository = Depends(get_activity_repository),
) -> Activity:
    return await get_activity(activities, activity_id)


@router.put("/{activity_id}", response_model=Activity)
async def update_activity_route(
    activity_id: int,
    body: ActivityCreate,
    activities: ActivityRepository = Depends(get_activity_repository),
) -> Activity:
    return await update_activity(activities, activity_id, body)


@router.delete("/{activity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_activity_route(
    activity_id: int,
    activities: ActivityRepository = Depends(get_activity_repository),
    appointments: AppointmentRepository = Depends(get_appointment_repository),
) -> None:
    await delete_activity(activities, appointments, activity_id)
