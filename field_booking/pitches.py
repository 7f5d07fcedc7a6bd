"""Pitch catalog administration.

Pitches are never deleted. Deactivating one hides it from availability and
from new bookings while existing reservations keep pointing at it.
"""

import logging
from typing import Optional

from sqlmodel import Session, select

from .availability import sort_pitches
from .clock import local_now
from .errors import DuplicatePitch, NotFound, PitchInUse, ValidationError
from .models import (
    Pitch,
    PitchCategory,
    PitchCreate,
    Reservation,
    ReservationRead,
    ReservationStatus,
)
from .reservations import to_read
from .transactions import atomic

logger = logging.getLogger(__name__)

DEFAULT_PITCHES = [
    ("Main Pitch F11", PitchCategory.LARGE, 22),
    ("North Pitch F7", PitchCategory.MEDIUM, 14),
    ("South Pitch F7", PitchCategory.MEDIUM, 14),
    ("East Pitch F5", PitchCategory.SMALL, 10),
    ("West Pitch F5", PitchCategory.SMALL, 10),
]


def _get_pitch(session: Session, pitch_id: int) -> Pitch:
    pitch = session.get(Pitch, pitch_id)
    if not pitch:
        raise NotFound("Pitch not found")
    return pitch


def _ensure_unique_active(
    session: Session,
    name: str,
    category: PitchCategory,
    exclude_id: Optional[int] = None,
) -> None:
    query = (
        select(Pitch.id)
        .where(Pitch.name == name)
        .where(Pitch.category == category)
        .where(Pitch.active == True)  # noqa: E712
    )
    if exclude_id is not None:
        query = query.where(Pitch.id != exclude_id)
    if session.exec(query).first() is not None:
        raise DuplicatePitch("An active pitch with that name and category already exists")


def _validate(data: PitchCreate) -> None:
    if not data.name.strip():
        raise ValidationError("Pitch name is required")
    if data.capacity <= 0:
        raise ValidationError("Capacity must be a positive number")


def list_pitches(session: Session) -> list[Pitch]:
    return sort_pitches(session.exec(select(Pitch)).all())


def create_pitch(session: Session, data: PitchCreate) -> Pitch:
    _validate(data)
    with atomic(session):
        _ensure_unique_active(session, data.name.strip(), data.category)
        pitch = Pitch(
            name=data.name.strip(), category=data.category, capacity=data.capacity
        )
        session.add(pitch)
    session.refresh(pitch)
    logger.info("Pitch %s created: %s (%s)", pitch.id, pitch.name, pitch.category.value)
    return pitch


def update_pitch(session: Session, pitch_id: int, data: PitchCreate) -> Pitch:
    _validate(data)
    today = local_now().date()
    with atomic(session):
        pitch = _get_pitch(session, pitch_id)
        upcoming = session.exec(
            select(Reservation.id)
            .where(Reservation.pitch_id == pitch_id)
            .where(Reservation.booking_date >= today)
            .where(Reservation.status == ReservationStatus.ACTIVE)
        ).first()
        if upcoming is not None:
            raise PitchInUse("Cannot modify a pitch with upcoming reservations")
        if pitch.active:
            _ensure_unique_active(
                session, data.name.strip(), data.category, exclude_id=pitch.id
            )
        pitch.name = data.name.strip()
        pitch.category = data.category
        pitch.capacity = data.capacity
        session.add(pitch)
    session.refresh(pitch)
    logger.info("Pitch %s updated", pitch.id)
    return pitch


def deactivate_pitch(session: Session, pitch_id: int) -> Pitch:
    with atomic(session):
        pitch = _get_pitch(session, pitch_id)
        pitch.active = False
        session.add(pitch)
    session.refresh(pitch)
    logger.info("Pitch %s deactivated", pitch.id)
    return pitch


def reactivate_pitch(session: Session, pitch_id: int) -> Pitch:
    with atomic(session):
        pitch = _get_pitch(session, pitch_id)
        if not pitch.active:
            _ensure_unique_active(session, pitch.name, pitch.category)
            pitch.active = True
            session.add(pitch)
    session.refresh(pitch)
    logger.info("Pitch %s reactivated", pitch.id)
    return pitch


def seed_default_pitches(session: Session) -> int:
    """Insert the demo pitches into an empty catalog. Returns how many were added."""
    with atomic(session):
        if session.exec(select(Pitch.id)).first() is not None:
            return 0
        session.add_all(
            Pitch(name=name, category=category, capacity=capacity)
            for name, category, capacity in DEFAULT_PITCHES
        )
    logger.info("Seeded %d default pitches", len(DEFAULT_PITCHES))
    return len(DEFAULT_PITCHES)


def list_reservations(session: Session) -> list[ReservationRead]:
    rows = session.exec(
        select(Reservation, Pitch)
        .join(Pitch, Reservation.pitch_id == Pitch.id)
        .order_by(Reservation.booking_date.desc(), Reservation.start_time.desc())
    ).all()
    return [to_read(reservation, pitch) for reservation, pitch in rows]


def admin_cancel_reservation(session: Session, reservation_id: int) -> ReservationRead:
    with atomic(session):
        reservation = session.get(Reservation, reservation_id)
        if not reservation:
            raise NotFound("Reservation not found")
        reservation.status = ReservationStatus.CANCELLED
        session.add(reservation)
    session.refresh(reservation)
    logger.info("Reservation %s cancelled by admin", reservation.id)
    return to_read(reservation, session.get(Pitch, reservation.pitch_id))
