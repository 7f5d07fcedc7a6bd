import datetime
import os

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("SEED_PITCHES", "false")

from .models import (  # noqa: E402
    Pitch,
    PitchCategory,
    Reservation,
    ReservationCreate,
    ReservationStatus,
)

# Wednesday noon, local time. 2025-03-10 10:00 is 118 hours away.
NOW = datetime.datetime(2025, 3, 5, 12, 0)
BOOKING_DAY = datetime.date(2025, 3, 10)


@pytest.fixture
def session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def pitches(session):
    catalog = {
        "small_a": Pitch(name="Small-A", category=PitchCategory.SMALL, capacity=10),
        "small_b": Pitch(name="Small-B", category=PitchCategory.SMALL, capacity=10),
        "medium": Pitch(name="Medium-A", category=PitchCategory.MEDIUM, capacity=14),
        "large": Pitch(name="Large-A", category=PitchCategory.LARGE, capacity=22),
        "retired": Pitch(
            name="Old Small", category=PitchCategory.SMALL, capacity=10, active=False
        ),
    }
    session.add_all(catalog.values())
    session.commit()
    for pitch in catalog.values():
        session.refresh(pitch)
    return catalog


@pytest.fixture
def booking_request():
    def make(pitch_id, **overrides):
        fields = {
            "national_id": "12345678",
            "full_name": "Lionel Andres",
            "phone": "+54 11 5555-0000",
            "email": "lionel@example.com",
            "pitch_id": pitch_id,
            "booking_date": BOOKING_DAY,
            "start_time": datetime.time(10),
        }
        fields.update(overrides)
        return ReservationCreate(**fields)

    return make


@pytest.fixture
def add_reservation(session):
    """Insert a reservation row directly, bypassing the booking rules."""

    def add(
        pitch,
        start,
        national_id,
        booking_date=BOOKING_DAY,
        status=ReservationStatus.ACTIVE,
    ):
        end = (datetime.datetime.combine(booking_date, start) + datetime.timedelta(hours=1)).time()
        reservation = Reservation(
            national_id=national_id,
            full_name="Someone",
            phone="555",
            email="someone@example.com",
            pitch_id=pitch.id,
            booking_date=booking_date,
            start_time=start,
            end_time=end,
            status=status,
        )
        session.add(reservation)
        session.commit()
        session.refresh(reservation)
        return reservation

    return add
