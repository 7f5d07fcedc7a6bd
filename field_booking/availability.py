"""Free-slot grid per pitch for a given day.

Every booking lasts one hour and starts on the hour grid, so a slot counts as
taken when an active reservation starts at that time. Supporting other
durations would require subtracting whole intervals from the grid instead.
"""

import datetime
import logging
from collections import defaultdict
from typing import Optional

from sqlmodel import Session, select

from .clock import local_now
from .errors import InvalidDate
from .models import (
    Pitch,
    PitchAvailability,
    PitchCategory,
    Reservation,
    ReservationStatus,
)

logger = logging.getLogger(__name__)

OPENING_HOUR = 8
LAST_START_HOUR = 23

SLOT_GRID = [datetime.time(hour) for hour in range(OPENING_HOUR, LAST_START_HOUR + 1)]


def sort_pitches(pitches):
    return sorted(pitches, key=lambda p: (PitchCategory.parse(p.category).rank, p.name))


def get_availability(
    session: Session,
    booking_date: datetime.date,
    category: Optional[PitchCategory] = None,
    today: Optional[datetime.date] = None,
) -> list[PitchAvailability]:
    today = today or local_now().date()
    if booking_date < today:
        raise InvalidDate("Cannot query availability for a past date")

    query = select(Pitch).where(Pitch.active == True)  # noqa: E712
    if category is not None:
        query = query.where(Pitch.category == category)
    pitches = sort_pitches(session.exec(query).all())
    if not pitches:
        return []

    occupied: dict[int, set[datetime.time]] = defaultdict(set)
    reservations = session.exec(
        select(Reservation)
        .where(Reservation.booking_date == booking_date)
        .where(Reservation.status == ReservationStatus.ACTIVE)
        .where(Reservation.pitch_id.in_([p.id for p in pitches]))
    ).all()
    for reservation in reservations:
        occupied[reservation.pitch_id].add(reservation.start_time)

    logger.debug(
        "Availability for %s: %d pitches, %d active reservations",
        booking_date,
        len(pitches),
        len(reservations),
    )
    return [
        PitchAvailability(
            id=pitch.id,
            name=pitch.name,
            category=pitch.category,
            capacity=pitch.capacity,
            free_slots=[slot for slot in SLOT_GRID if slot not in occupied[pitch.id]],
        )
        for pitch in pitches
    ]
