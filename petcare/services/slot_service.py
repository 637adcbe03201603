"""Slot generation and availability filtering."""

import re
from collections.abc import Iterable
from datetime import UTC, date, datetime, time, timedelta
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from petcare.core.exceptions import ValidationException
from petcare.core.redis_client import CacheManager
from petcare.models.appointments import appointments
from petcare.schemas.appointments import LIVE_STATUSES

# Fixed business window, same for every vet, in UTC
BUSINESS_DAY_START = time(9, 0)
BUSINESS_DAY_END = time(18, 0)
SLOT_INTERVAL = timedelta(minutes=30)

# Outlives any cached slot list, so an expired counter never revives a stale one
SLOT_GENERATION_TTL = 86400

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_slot_date(value: str | date) -> date:
    """
    Parse a ``YYYY-MM-DD`` calendar date.

    Raises:
        ValidationException: If the value is not a real calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _DATE_PATTERN.match(value):
        raise ValidationException(f"Invalid date '{value}', expected YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationException(f"Invalid date '{value}', expected YYYY-MM-DD") from None


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Return the [start, end) instants of a UTC calendar day."""
    start = datetime.combine(day, time.min, tzinfo=UTC)
    return start, start + timedelta(days=1)


def generate_slots(day: date) -> tuple[datetime, ...]:
    """Every candidate slot start on ``day``, in order, ignoring bookings."""
    current = datetime.combine(day, BUSINESS_DAY_START, tzinfo=UTC)
    end = datetime.combine(day, BUSINESS_DAY_END, tzinfo=UTC)
    slots = []
    while current < end:
        slots.append(current)
        current += SLOT_INTERVAL
    return tuple(slots)


def filter_available(
    candidates: Iterable[datetime],
    occupied: Iterable[datetime],
) -> list[datetime]:
    """Drop candidates whose instant exactly matches an occupied one."""
    taken = {instant.astimezone(UTC) for instant in occupied}
    return [slot for slot in candidates if slot not in taken]


def slots_generation_key(vet_id: UUID, day: date) -> str:
    """Counter bumped by every write that can change a vet's free slots on one day."""
    return f"slots:gen:{vet_id}:{day.isoformat()}"


def slots_cache_key(vet_id: UUID, day: date, generation: int = 0) -> str:
    """Cache key for a vet's free slots on one day, as of one generation."""
    return f"slots:{vet_id}:{day.isoformat()}:{generation}"


def bump_slot_generation(cache: CacheManager, vet_id: UUID, day: date) -> None:
    """
    Retire every cached slot list for ``(vet_id, day)``.

    A read that raced with the write may still store its list, but under the
    old generation, where no later read looks.
    """
    cache.incr(slots_generation_key(vet_id, day), ttl=SLOT_GENERATION_TTL)


class SlotService:
    """Answers which slots currently look free for a vet."""

    def __init__(
        self,
        db: AsyncSession,
        cache: CacheManager | None = None,
        cache_ttl: int = 60,
    ):
        """Initialize service with database session and optional cache."""
        self.db = db
        self.cache = cache
        self.cache_ttl = cache_ttl

    async def occupied_instants(self, vet_id: UUID, day: date) -> list[datetime]:
        """Instants held by the vet's pending or confirmed appointments on ``day``."""
        start, end = day_bounds(day)
        stmt = select(appointments.c.appointment_time).where(
            and_(
                appointments.c.vet_id == vet_id,
                appointments.c.status.in_([s.value for s in LIVE_STATUSES]),
                appointments.c.appointment_time >= start,
                appointments.c.appointment_time < end,
            )
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_available_slots(self, vet_id: UUID, day: str | date) -> list[datetime]:
        """
        List the free slots for a vet on a calendar day.

        The answer is advisory: a slot shown free may be taken before the
        booking request arrives, and the booking write is what decides.

        Args:
            vet_id: Vet profile ID
            day: Calendar date, ``YYYY-MM-DD`` or a ``date``

        Returns:
            Ordered slot start instants in UTC

        Raises:
            ValidationException: If the date cannot be parsed
        """
        parsed = parse_slot_date(day)

        cache_key = None
        if self.cache:
            # Read the generation before the database so a concurrent write
            # always lands in a newer one
            generation = self.cache.get_json(slots_generation_key(vet_id, parsed))
            if not isinstance(generation, int):
                generation = 0
            cache_key = slots_cache_key(vet_id, parsed, generation)
            cached = self.cache.get_json(cache_key)
            if cached is not None:
                return [datetime.fromisoformat(value) for value in cached]

        occupied = await self.occupied_instants(vet_id, parsed)
        available = filter_available(generate_slots(parsed), occupied)

        if self.cache and cache_key:
            self.cache.set_json(
                cache_key,
                [slot.isoformat() for slot in available],
                ttl=self.cache_ttl,
            )

        return available
