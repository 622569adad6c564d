from app.core.errors import ActivityInUse, NotFound
from app.models.activity import Activity, ActivityCreate
from app.repositories.activity_repository import ActivityRepository
from app.repositories.appointment_repository import AppointmentRepository


async def create_activity(activities: ActivityRepository, data: ActivityCreate) -> Activity:
    return await activities.save(Activity(**data.model_dump()))


async def get_activity(activities: ActivityRepository, activity_id: int) -> Activity:
    activity = await activities.find_by_id(activity_id)
    if not activity:
        raise NotFound("Activity", activity_id)
    return activity


async def update_activity(activities: ActivityRepository, activity_id: int, data: ActivityCreate) -> Activity:
    """Existing appointments keep their denormalized name and duration."""
    activity = await get_activity(activities, activity_id)
    return await activities.update(activity.update(data))


async def delete_activity(
    activities: ActivityRepository, appointments: AppointmentRepository, activity_id: int
) -> None:
    await get_activity(activities, activity_id)
    if await appointments.find_by_activity_id(activity_id):
        raise ActivityInUse(activity_id)
    await activities.delete(activity_id)
