from abc import ABC, abstractmethod

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFound
from app.models.activity import Activity, ActivityRecord, ReminderSettings, RequiredFieldsConfig


class ActivityRepository(ABC):
    @abstractmethod
    async def find_by_id(self, activity_id: int) -> Activity | None: ...

    @abstractmethod
    async def find_all(self) -> list[Activity]: ...

    @abstractmethod
    async def save(self, activity: Activity) -> Activity: ...

    @abstractmethod
    async def update(self, activity: Activity) -> Activity: ...

    @abstractmethod
    async def delete(self, activity_id: int) -> None: ...


def _to_domain(row: ActivityRecord) -> Activity:
    return Activity(
        id=row.id,
        name=row.name,
        description=row.description,
        duration_minutes=row.duration_minutes,
        color=row.color,
        price=row.price,
        required_fields=RequiredFieldsConfig(
            phone=row.require_phone,
            address=row.require_address,
            custom_field=row.require_custom_field,
            custom_field_label=row.custom_field_label,
        ),
        reminder_settings=ReminderSettings(
            enabled=row.reminder_enabled,
            hours_before=row.reminder_hours_before,
        ),
        minimum_booking_notice_hours=row.minimum_booking_notice_hours,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _apply(row: ActivityRecord, activity: Activity) -> None:
    row.name = activity.name
    row.description = activity.description
    row.duration_minutes = activity.duration_minutes
    row.color = activity.color
    row.price = activity.price
    row.require_phone = activity.required_fields.phone
    row.require_address = activity.required_fields.address
    row.require_custom_field = activity.required_fields.custom_field
    row.custom_field_label = activity.required_fields.custom_field_label
    row.reminder_enabled = activity.reminder_settings.enabled
    row.reminder_hours_before = activity.reminder_settings.hours_before
    row.minimum_booking_notice_hours = activity.minimum_booking_notice_hours
    row.updated_at = activity.updated_at


class SqlActivityRepository(ActivityRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_by_id(self, activity_id: int) -> Activity | None:
        row = await self.session.get(ActivityRecord, activity_id)
        return _to_domain(row) if row else None

    async def find_all(self) -> list[Activity]:
        result = await self.session.execute(select(ActivityRecord).order_by(ActivityRecord.name))
        return [_to_domain(row) for row in result.scalars().all()]

    async def save(self, activity: Activity) -> Activity:
        row = ActivityRecord(
            name=activity.name,
            duration_minutes=activity.duration_minutes,
            created_at=activity.created_at,
        )
        _apply(row, activity)
        self.session.add(row)
        await self.session.flush()
        await self.session.refresh(row)
        return _to_domain(row)

    async def update(self, activity: Activity) -> Activity:
        row = await self.session.get(ActivityRecord, activity.id) if activity.id is not None else None
        if not row:
            raise NotFound("Activity", activity.id)
        _apply(row, activity)
        self.session.add(row)
        await self.session.flush()
        return _to_domain(row)

    async def delete(self, activity_id: int) -> None:
        row = await self.session.get(ActivityRecord, activity_id)
        if row:
            await self.session.delete(row)
            await self.session.flush()
