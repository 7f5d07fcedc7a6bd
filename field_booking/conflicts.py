"""Overlap detection between reservations on the same pitch and day."""

import datetime
from typing import Optional

from sqlmodel import Session, select

from .clock import slot_bounds
from .models import Reservation, ReservationStatus


def intervals_overlap(s1: int, e1: int, s2: int, e2: int) -> bool:
    """Half-open test: [s1, e1) and [s2, e2) share at least one minute.

    Intervals that only touch at a boundary do not overlap.
    """
    return s1 < e2 and s2 < e1


def active_reservations(
    session: Session, pitch_id: int, booking_date: datetime.date
) -> list[Reservation]:
    statement = (
        select(Reservation)
        .where(Reservation.pitch_id == pitch_id)
        .where(Reservation.booking_date == booking_date)
        .where(Reservation.status == ReservationStatus.ACTIVE)
    )
    return list(session.exec(statement).all())


def has_conflict(
    session: Session,
    pitch_id: int,
    booking_date: datetime.date,
    start: datetime.time,
    end: datetime.time,
    exclude_id: Optional[int] = None,
) -> bool:
    s1, e1 = slot_bounds(start, end)
    for reservation in active_reservations(session, pitch_id, booking_date):
        if exclude_id is not None and reservation.id == exclude_id:
            continue
        s2, e2 = slot_bounds(reservation.start_time, reservation.end_time)
        if intervals_overlap(s1, e1, s2, e2):
            return True
    return False
