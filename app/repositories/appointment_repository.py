import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConcurrencyConflict, NotFound, SlotUnavailable
from app.core.timeutils import utc_now
from app.models.appointment import Appointment, AppointmentRecord, AppointmentStatus, ClientInfo

logger = logging.getLogger(__name__)


class AppointmentRepository(ABC):
    @abstractmethod
    async def find_by_id(self, appointment_id: int) -> Appointment | None: ...

    @abstractmethod
    async def find_all(self) -> list[Appointment]: ...

    @abstractmethod
    async def find_by_date_range(self, start: datetime, end: datetime) -> list[Appointment]: ...

    @abstractmethod
    async def find_by_activity_id(self, activity_id: int) -> list[Appointment]: ...

    @abstractmethod
    async def has_overlapping_appointment(
        self, start: datetime, duration_minutes: int, exclude_id: int | None = None
    ) -> bool: ...

    @abstractmethod
    async def save(self, appointment: Appointment) -> Appointment: ...

    @abstractmethod
    async def update(self, appointment: Appointment) -> Appointment:
        """Administrative overwrite. Not version-checked; never used by the reminder scheduler."""

    @abstractmethod
    async def update_with_optimistic_lock(self, appointment: Appointment) -> Appointment:
        """Write `appointment` only if the stored version still equals appointment.version.

        Raises ConcurrencyConflict when nothing matched; the stored row is left untouched.
        """

    @abstractmethod
    async def delete(self, appointment_id: int) -> None: ...


def _to_domain(row: AppointmentRecord) -> Appointment:
    return Appointment(
        id=row.id,
        activity_id=row.activity_id,
        activity_name=row.activity_name,
        activity_duration_minutes=row.activity_duration_minutes,
        client_info=ClientInfo(
            name=row.client_name,
            email=row.client_email,
            phone=row.client_phone,
            address=row.client_address,
            custom_field=row.client_custom_field,
        ),
        date_time=row.date_time,
        status=AppointmentStatus(row.status),
        version=row.version,
        reminder_sent=row.reminder_sent,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _mutable_values(appointment: Appointment) -> dict:
    client = appointment.client_info
    return {
        "activity_id": appointment.activity_id,
        "activity_name": appointment.activity_name,
        "activity_duration_minutes": appointment.activity_duration_minutes,
        "client_name": client.name,
        "client_email": str(client.email),
        "client_phone": client.phone,
        "client_address": client.address,
        "client_custom_field": client.custom_field,
        "date_time": appointment.date_time,
        "end_date_time": appointment.end_date_time,
        "status": appointment.status.value,
        "reminder_sent": appointment.reminder_sent,
        "updated_at": utc_now(),
    }


class SqlAppointmentRepository(AppointmentRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _select(self, *criteria, order_by=None) -> list[Appointment]:
        q = select(AppointmentRecord).where(*criteria).execution_options(populate_existing=True)
        if order_by is not None:
            q = q.order_by(order_by)
        result = await self.session.execute(q)
        return [_to_domain(row) for row in result.scalars().all()]

    async def find_by_id(self, appointment_id: int) -> Appointment | None:
        rows = await self._select(AppointmentRecord.id == appointment_id)
        return rows[0] if rows else None

    async def find_all(self) -> list[Appointment]:
        return await self._select(order_by=AppointmentRecord.date_time.desc())

    async def find_by_date_range(self, start: datetime, end: datetime) -> list[Appointment]:
        return await self._select(
            AppointmentRecord.date_time >= start,
            AppointmentRecord.date_time <= end,
            order_by=AppointmentRecord.date_time,
        )

    async def find_by_activity_id(self, activity_id: int) -> list[Appointment]:
        return await self._select(
            AppointmentRecord.activity_id == activity_id,
            order_by=AppointmentRecord.date_time.desc(),
        )

    async def has_overlapping_appointment(
        self, start: datetime, duration_minutes: int, exclude_id: int | None = None
    ) -> bool:
        end = start + timedelta(minutes=duration_minutes)
        q = select(AppointmentRecord.id).where(
            AppointmentRecord.status != AppointmentStatus.CANCELLED.value,
            AppointmentRecord.date_time < end,
            AppointmentRecord.end_date_time > start,
        )
        if exclude_id is not None:
            q = q.where(AppointmentRecord.id != exclude_id)
        result = await self.session.execute(q.limit(1))
        return result.first() is not None

    async def save(self, appointment: Appointment) -> Appointment:
        # Re-checked in the same transaction as the insert; the partial unique
        # index on date_time backs this up for identical start instants.
        if await self.has_overlapping_appointment(appointment.date_time, appointment.activity_duration_minutes):
            raise SlotUnavailable()
        values = _mutable_values(appointment)
        row = AppointmentRecord(**values, version=appointment.version, created_at=appointment.created_at)
        self.session.add(row)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            logger.info("Appointment insert rejected by unique index: %s", e.orig)
            raise SlotUnavailable() from e
        await self.session.refresh(row)
        return _to_domain(row)

    async def update(self, appointment: Appointment) -> Appointment:
        if appointment.id is None:
            raise ValueError("Appointment must have an id to be updated")
        result = await self.session.execute(
            update(AppointmentRecord)
            .where(AppointmentRecord.id == appointment.id)
            .values(**_mutable_values(appointment), version=AppointmentRecord.version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFound("Appointment", appointment.id)
        return await self.find_by_id(appointment.id)

    async def update_with_optimistic_lock(self, appointment: Appointment) -> Appointment:
        if appointment.id is None:
            raise ValueError("Appointment must have an id to be updated")
        # Single conditional UPDATE: compare version, write, increment.
        result = await self.session.execute(
            update(AppointmentRecord)
            .where(
                AppointmentRecord.id == appointment.id,
                AppointmentRecord.version == appointment.version,
            )
            .values(**_mutable_values(appointment), version=AppointmentRecord.version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConcurrencyConflict(appointment.id, appointment.version)
        return await self.find_by_id(appointment.id)

    async def delete(self, appointment_id: int) -> None:
        await self.session.execute(delete(AppointmentRecord).where(AppointmentRecord.id == appointment_id))
        await self.session.flush()
