import datetime

import pytest
from sqlmodel import select

from .availability import get_availability
from .conftest import BOOKING_DAY, NOW
from .errors import DuplicatePitch, NotFound, PitchInUse, ValidationError
from .models import Pitch, PitchCategory, PitchCreate, Reservation, ReservationStatus
from .pitches import (
    DEFAULT_PITCHES,
    admin_cancel_reservation,
    create_pitch,
    deactivate_pitch,
    list_pitches,
    list_reservations,
    reactivate_pitch,
    seed_default_pitches,
    update_pitch,
)

FAR_FUTURE = datetime.date(2099, 1, 1)


def test_size_codes_map_to_categories():
    assert PitchCreate(name="X", category="F5", capacity=10).category == PitchCategory.SMALL
    assert PitchCreate(name="X", category="f7", capacity=14).category == PitchCategory.MEDIUM
    assert PitchCreate(name="X", category="F11", capacity=22).category == PitchCategory.LARGE
    assert PitchCategory.parse("large") == PitchCategory.LARGE
    with pytest.raises(ValueError):
        PitchCategory.parse("F9")


def test_list_pitches_sorted_by_category_then_name(pitches, session):
    names = [p.name for p in list_pitches(session)]
    assert names == ["Old Small", "Small-A", "Small-B", "Medium-A", "Large-A"]


def test_create_pitch(pitches, session):
    pitch = create_pitch(
        session, PitchCreate(name="Small-C", category=PitchCategory.SMALL, capacity=10)
    )
    assert pitch.id is not None
    assert pitch.active


def test_create_duplicate_active_pitch(pitches, session):
    with pytest.raises(DuplicatePitch):
        create_pitch(
            session,
            PitchCreate(name="Small-A", category=PitchCategory.SMALL, capacity=12),
        )


def test_same_name_in_other_category_or_inactive_is_allowed(pitches, session):
    create_pitch(
        session, PitchCreate(name="Small-A", category=PitchCategory.LARGE, capacity=22)
    )
    create_pitch(
        session, PitchCreate(name="Old Small", category=PitchCategory.SMALL, capacity=10)
    )


def test_capacity_must_be_positive(pitches, session):
    with pytest.raises(ValidationError):
        create_pitch(
            session, PitchCreate(name="Tiny", category=PitchCategory.SMALL, capacity=0)
        )


def test_deactivate_keeps_pitch_and_reservations(pitches, add_reservation, session):
    reservation = add_reservation(pitches["small_a"], datetime.time(10), "11111111")

    pitch = deactivate_pitch(session, pitches["small_a"].id)

    assert not pitch.active
    assert session.get(Pitch, pitch.id) is not None
    assert session.get(Reservation, reservation.id).pitch_id == pitch.id
    listed = get_availability(session, BOOKING_DAY, today=NOW.date())
    assert pitch.id not in [p.id for p in listed]


def test_reactivate_checks_active_duplicates(pitches, session):
    create_pitch(
        session, PitchCreate(name="Old Small", category=PitchCategory.SMALL, capacity=10)
    )
    with pytest.raises(DuplicatePitch):
        reactivate_pitch(session, pitches["retired"].id)


def test_reactivate(pitches, session):
    pitch = reactivate_pitch(session, pitches["retired"].id)
    assert pitch.active


def test_update_refused_with_upcoming_reservations(pitches, add_reservation, session):
    add_reservation(pitches["small_a"], datetime.time(10), "11111111", booking_date=FAR_FUTURE)

    with pytest.raises(PitchInUse):
        update_pitch(
            session,
            pitches["small_a"].id,
            PitchCreate(name="Renamed", category=PitchCategory.SMALL, capacity=10),
        )


def test_update_ignores_cancelled_and_past_reservations(
    pitches, add_reservation, session
):
    add_reservation(
        pitches["small_a"],
        datetime.time(10),
        "11111111",
        booking_date=FAR_FUTURE,
        status=ReservationStatus.CANCELLED,
    )
    add_reservation(
        pitches["small_a"], datetime.time(10), "22222222", booking_date=datetime.date(2000, 1, 1)
    )

    pitch = update_pitch(
        session,
        pitches["small_a"].id,
        PitchCreate(name="Renamed", category="F7", capacity=14),
    )
    assert pitch.name == "Renamed"
    assert pitch.category == PitchCategory.MEDIUM


def test_update_unknown_pitch(pitches, session):
    with pytest.raises(NotFound):
        update_pitch(
            session, 9999, PitchCreate(name="X", category=PitchCategory.SMALL, capacity=1)
        )


def test_seed_only_fills_an_empty_catalog(session):
    assert seed_default_pitches(session) == len(DEFAULT_PITCHES)
    assert seed_default_pitches(session) == 0
    assert len(session.exec(select(Pitch)).all()) == len(DEFAULT_PITCHES)


def test_list_reservations_newest_first(pitches, add_reservation, session):
    add_reservation(pitches["small_a"], datetime.time(10), "11111111")
    add_reservation(pitches["small_b"], datetime.time(15), "22222222")
    add_reservation(
        pitches["large"],
        datetime.time(9),
        "33333333",
        booking_date=BOOKING_DAY + datetime.timedelta(days=1),
    )

    listed = list_reservations(session)

    assert [r.national_id for r in listed] == ["33333333", "22222222", "11111111"]
    assert listed[0].pitch_name == "Large-A"


def test_admin_cancel_ignores_window(pitches, add_reservation, session):
    reservation = add_reservation(
        pitches["small_a"], datetime.time(10), "11111111", booking_date=datetime.date.today()
    )

    cancelled = admin_cancel_reservation(session, reservation.id)

    assert cancelled.status == ReservationStatus.CANCELLED
    with pytest.raises(NotFound):
        admin_cancel_reservation(session, 9999)
