import logging

from app.models.availability import Availability, AvailabilityException, WeeklySlot
from app.repositories.availability_repository import AvailabilityRepository

logger = logging.getLogger(__name__)


async def get_availability(availability: AvailabilityRepository) -> Availability:
    return await availability.find() or Availability.empty()


async def update_availability(
    availability: AvailabilityRepository,
    weekly_slots: list[WeeklySlot],
    exceptions: list[AvailabilityException],
) -> Availability:
    """Replace weekly slots and exceptions wholesale. Same-day slot overlap is rejected here."""
    current = await get_availability(availability)
    updated = await availability.update(current.replace(weekly_slots=weekly_slots, exceptions=exceptions))
    logger.info(
        "Availability updated: %d weekly slot(s), %d exception(s)",
        len(updated.weekly_slots),
        len(updated.exceptions),
    )
    return updated
