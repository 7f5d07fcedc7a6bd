"""Create, cancel and reschedule reservations.

Each mutation runs its checks and its write inside one `atomic` block. The
pitch row being booked is locked first, which serializes writers per pitch on
PostgreSQL. The partial unique indexes on `Reservation` catch anything that
slips past the application-level checks.
"""

import datetime
import logging
import re
from typing import Optional

from sqlmodel import Session, select

from .availability import SLOT_GRID
from .clock import add_duration, local_now, whole_hours_until
from .conflicts import has_conflict
from .errors import (
    DuplicateBooking,
    InvalidDate,
    NotFound,
    PolicyViolation,
    SlotUnavailable,
    ValidationError,
)
from .models import (
    Pitch,
    Reservation,
    ReservationCreate,
    ReservationRead,
    ReservationStatus,
    RescheduleRequest,
)
from .transactions import atomic

logger = logging.getLogger(__name__)

BOOKING_DURATION = datetime.timedelta(hours=1)
POLICY_WINDOW_HOURS = 24

NATIONAL_ID_PATTERN = re.compile(r"[0-9]{7,8}")
EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")

REQUIRED_FIELDS = ("national_id", "full_name", "phone", "email")


def validate_reservation(request: ReservationCreate) -> None:
    missing = [
        name for name in REQUIRED_FIELDS if not (getattr(request, name) or "").strip()
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    if not NATIONAL_ID_PATTERN.fullmatch(request.national_id):
        raise ValidationError("National ID must have 7 or 8 digits")
    if not EMAIL_PATTERN.fullmatch(request.email):
        raise ValidationError("Invalid email address")


def lock_pitch(session: Session, pitch_id: int) -> Optional[Pitch]:
    return session.exec(
        select(Pitch).where(Pitch.id == pitch_id).with_for_update()
    ).first()


def bookable_pitch(session: Session, pitch_id: int) -> Pitch:
    pitch = lock_pitch(session, pitch_id)
    if pitch is None or not pitch.active:
        raise ValidationError(f"Pitch {pitch_id} does not exist or is not active")
    return pitch


def find_active(
    session: Session,
    national_id: str,
    booking_date: datetime.date,
    start_time: datetime.time,
) -> Optional[Reservation]:
    return session.exec(
        select(Reservation)
        .where(Reservation.national_id == national_id)
        .where(Reservation.booking_date == booking_date)
        .where(Reservation.start_time == _on_the_minute(start_time))
        .where(Reservation.status == ReservationStatus.ACTIVE)
        .with_for_update()
    ).first()


def holds_booking_on(
    session: Session,
    national_id: str,
    booking_date: datetime.date,
    exclude_id: Optional[int] = None,
) -> bool:
    query = (
        select(Reservation.id)
        .where(Reservation.national_id == national_id)
        .where(Reservation.booking_date == booking_date)
        .where(Reservation.status == ReservationStatus.ACTIVE)
    )
    if exclude_id is not None:
        query = query.where(Reservation.id != exclude_id)
    return session.exec(query).first() is not None


def to_read(reservation: Reservation, pitch: Pitch) -> ReservationRead:
    return ReservationRead.model_validate(
        reservation,
        update={"pitch_name": pitch.name, "pitch_category": pitch.category},
    )


def _on_the_minute(value: datetime.time) -> datetime.time:
    return value.replace(second=0, microsecond=0, tzinfo=None)


def _slot_start(value: datetime.time) -> datetime.time:
    start = _on_the_minute(value)
    if start not in SLOT_GRID:
        raise ValidationError(
            f"Start time must be on the hour between {SLOT_GRID[0]:%H:%M} "
            f"and {SLOT_GRID[-1]:%H:%M}"
        )
    return start


def _check_policy_window(
    reservation: Reservation, now: datetime.datetime, action: str
) -> None:
    remaining = whole_hours_until(reservation.booking_date, reservation.start_time, now)
    if remaining <= POLICY_WINDOW_HOURS:
        raise PolicyViolation(
            f"Reservations can only be {action} more than "
            f"{POLICY_WINDOW_HOURS} hours in advance"
        )


def create_reservation(
    session: Session,
    request: ReservationCreate,
    now: Optional[datetime.datetime] = None,
) -> ReservationRead:
    now = now or local_now()
    validate_reservation(request)
    if request.booking_date < now.date():
        raise InvalidDate("Cannot book a past date")

    start = _slot_start(request.start_time)
    end = add_duration(start, BOOKING_DURATION)

    with atomic(session):
        pitch = bookable_pitch(session, request.pitch_id)
        if holds_booking_on(session, request.national_id, request.booking_date):
            raise DuplicateBooking("You already have a reservation on this date")
        if has_conflict(session, pitch.id, request.booking_date, start, end):
            raise SlotUnavailable("The selected time slot is not available")

        reservation = Reservation(
            national_id=request.national_id,
            full_name=request.full_name.strip(),
            phone=request.phone.strip(),
            email=request.email,
            pitch_id=pitch.id,
            booking_date=request.booking_date,
            start_time=start,
            end_time=end,
        )
        session.add(reservation)

    session.refresh(reservation)
    session.refresh(pitch)
    logger.info(
        "Reservation %s created: pitch %s on %s at %s",
        reservation.id,
        pitch.id,
        reservation.booking_date,
        reservation.start_time,
    )
    return to_read(reservation, pitch)


def cancel_reservation(
    session: Session,
    national_id: str,
    booking_date: datetime.date,
    start_time: datetime.time,
    now: Optional[datetime.datetime] = None,
) -> None:
    now = now or local_now()
    with atomic(session):
        reservation = find_active(session, national_id, booking_date, start_time)
        if reservation is None:
            raise NotFound("Reservation not found")
        _check_policy_window(reservation, now, "cancelled")
        reservation.status = ReservationStatus.CANCELLED
        session.add(reservation)

    logger.info("Reservation %s cancelled by requester", reservation.id)


def reschedule_reservation(
    session: Session,
    request: RescheduleRequest,
    now: Optional[datetime.datetime] = None,
) -> ReservationRead:
    # The window is measured against the slot being vacated, not the new one.
    now = now or local_now()
    new_start = _slot_start(request.new_start_time)
    new_end = add_duration(new_start, BOOKING_DURATION)

    with atomic(session):
        reservation = find_active(
            session,
            request.national_id,
            request.current_date,
            request.current_start_time,
        )
        if reservation is None:
            raise NotFound("Current reservation not found")
        _check_policy_window(reservation, now, "rescheduled")
        if request.new_date < now.date():
            raise InvalidDate("Cannot move a reservation to a past date")
        if holds_booking_on(
            session, request.national_id, request.new_date, exclude_id=reservation.id
        ):
            raise DuplicateBooking("You already have a reservation on the new date")

        pitch = bookable_pitch(session, request.new_pitch_id or reservation.pitch_id)
        if has_conflict(
            session,
            pitch.id,
            request.new_date,
            new_start,
            new_end,
            exclude_id=reservation.id,
        ):
            raise SlotUnavailable("The new time slot is not available")

        reservation.pitch_id = pitch.id
        reservation.booking_date = request.new_date
        reservation.start_time = new_start
        reservation.end_time = new_end
        session.add(reservation)

    session.refresh(reservation)
    session.refresh(pitch)
    logger.info(
        "Reservation %s rescheduled to pitch %s on %s at %s",
        reservation.id,
        pitch.id,
        reservation.booking_date,
        reservation.start_time,
    )
    return to_read(reservation, pitch)
