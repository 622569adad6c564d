from abc import ABC, abstractmethod

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.availability import Availability, AvailabilityException, AvailabilityRecord, WeeklySlot


class AvailabilityRepository(ABC):
    @abstractmethod
    async def find(self) -> Availability | None: ...

    @abstractmethod
    async def update(self, availability: Availability) -> Availability:
        """Replace the singleton wholesale (created on first write)."""


class SqlAvailabilityRepository(AvailabilityRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _row(self) -> AvailabilityRecord | None:
        result = await self.session.execute(select(AvailabilityRecord).order_by(AvailabilityRecord.id).limit(1))
        return result.scalar_one_or_none()

    async def find(self) -> Availability | None:
        row = await self._row()
        if not row:
            return None
        return Availability(
            id=row.id,
            weekly_slots=tuple(WeeklySlot.model_validate(s) for s in row.weekly_slots or []),
            exceptions=tuple(AvailabilityException.model_validate(e) for e in row.exceptions or []),
            updated_at=row.updated_at,
        )

    async def update(self, availability: Availability) -> Availability:
        row = await self._row() or AvailabilityRecord()
        # Reassign whole lists so the JSON columns are flagged dirty
        row.weekly_slots = [s.model_dump(mode="json") for s in availability.weekly_slots]
        row.exceptions = [e.model_dump(mode="json") for e in availability.exceptions]
        row.updated_at = availability.updated_at
        self.session.add(row)
        await self.session.flush()
        await self.session.refresh(row)
        return availability.model_copy(update={"id": row.id})
