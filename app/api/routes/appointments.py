import logging
from collections.abc import Callable
from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api.deps import (
    get_activity_repository,
    get_appointment_repository,
    get_availability_repository,
    get_clock,
    get_email_service_factory,
    get_session,
    get_session_factory,
)
from app.api.schemas.appointment import AppointmentPublic, BookAppointmentRequest
from app.models.appointment import AppointmentCreate
from app.models.email import EmailTemplateType
from app.repositories.activity_repository import ActivityRepository
from app.repositories.appointment_repository import AppointmentRepository
from app.repositories.availability_repository import AvailabilityRepository
from app.services.appointment_service import (
    CalendarEvent,
    cancel_appointment,
    confirm_appointment,
    create_appointment,
    delete_appointment,
    get_appointment,
    get_appointments_by_date_range,
    get_calendar_events,
    list_appointments,
)
from app.services.notification_service import send_appointment_emails

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.post("", response_model=AppointmentPublic, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    body: BookAppointmentRequest,
    background_tasks: BackgroundTasks,
    appointments: AppointmentRepository = Depends(get_appointment_repository),
    activities: ActivityRepository = Depends(get_activity_repository),
    availability: AvailabilityRepository = Depends(get_availability_repository),
    clock: Callable[[], datetime] = Depends(get_clock),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    email_service_factory=Depends(get_email_service_factory),
    session: AsyncSession = Depends(get_session),
) -> AppointmentPublic:
    data = AppointmentCreate(activity_id=body.activity_id, date_time=body.date_time, client_info=body.client_info)
    appointment = await create_appointment(appointments, activities, availability, data, now=clock())
    # Commit before the response so the background emails can read the row
    await session.commit()
    background_tasks.add_task(
        send_appointment_emails,
        session_factory,
        email_service_factory,
        appointment.id,
        EmailTemplateType.APPOINTMENT_BOOKING,
        EmailTemplateType.APPOINTMENT_ADMIN_NEW,
    )
    return AppointmentPublic.from_domain(appointment)


@router.get("", response_model=list[AppointmentPublic])
async def list_appointments_route(
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
    appointments: AppointmentRepository = Depends(get_appointment_repository),
) -> list[AppointmentPublic]:
    if start is not None and end is not None:
        rows = await get_appointments_by_date_range(appointments, start, end)
    else:
        rows = await list_appointments(appointments)
    return [AppointmentPublic.from_domain(a) for a in rows]


@router.get("/calendar", response_model=list[CalendarEvent])
async def calendar_events(
    start: datetime = Query(...),
    end: datetime = Query(...),
    appointments: AppointmentRepository = Depends(get_appointment_repository),
    activities: ActivityRepository = Depends(get_activity_repository),
) -> list[CalendarEvent]:
    return await get_calendar_events(appointments, activities, start, end)


@router.get("/{appointment_id}", response_model=AppointmentPublic)
async def get_appointment_route(
    appointment_id: int,
    appointments: AppointmentRepository = Depends(get_appointment_repository),
) -> AppointmentPublic:
    return AppointmentPublic.from_domain(await get_appointment(appointments, appointment_id))


@router.post("/{appointment_id}/confirm", response_model=AppointmentPublic)
async def confirm_appointment_route(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    appointments: AppointmentRepository = Depends(get_appointment_repository),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    email_service_factory=Depends(get_email_service_factory),
    session: AsyncSession = Depends(get_session),
) -> AppointmentPublic:
    appointment = await confirm_appointment(appointments, appointment_id)
    await session.commit()
    background_tasks.add_task(
        send_appointment_emails,
        session_factory,
        email_service_factory,
        appointment.id,
        EmailTemplateType.APPOINTMENT_ADMIN_CONFIRMATION,
    )
    return AppointmentPublic.from_domain(appointment)


@router.post("/{appointment_id}/cancel", response_model=AppointmentPublic)
async def cancel_appointment_route(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    appointments: AppointmentRepository = Depends(get_appointment_repository),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    email_service_factory=Depends(get_email_service_factory),
    session: AsyncSession = Depends(get_session),
) -> AppointmentPublic:
    appointment = await cancel_appointment(appointments, appointment_id)
    await session.commit()
    background_tasks.add_task(
        send_appointment_emails,
        session_factory,
        email_service_factory,
        appointment.id,
        EmailTemplateType.APPOINTMENT_CANCELLATION,
    )
    return AppointmentPublic.from_domain(appointment)


@router.delete("/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_appointment_route(
    appointment_id: int,
    appointments: AppointmentRepository = Depends(get_appointment_repository),
) -> None:
    await delete_appointment(appointments, appointment_id)
