import datetime
import enum
from typing import Optional

from pydantic import field_validator
from sqlalchemy import Enum, Index, text
from sqlmodel import SQLModel, Field


class PitchCategory(str, enum.Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"

    @classmethod
    def parse(cls, value: "str | PitchCategory") -> "PitchCategory":
        """Accept a category value ("small") or a legacy size code ("F5")."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        if key in SIZE_CODES:
            return SIZE_CODES[key]
        return cls(key)

    @property
    def rank(self) -> int:
        return list(PitchCategory).index(self)


SIZE_CODES = {
    "f5": PitchCategory.SMALL,
    "f7": PitchCategory.MEDIUM,
    "f11": PitchCategory.LARGE,
}


class ReservationStatus(str, enum.Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


############
# USER MODEL
############


class UserBase(SQLModel):
    username: str = Field(index=True)
    email: str = Field(index=True)


class User(UserBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    hashed_password: str
    is_admin: bool = False


class UserRead(UserBase):
    id: int
    is_admin: bool


#############
# PITCH MODEL
#############


class PitchBase(SQLModel):
    name: str
    category: PitchCategory
    capacity: int


class Pitch(PitchBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    active: bool = Field(default=True, index=True)
    created_at: datetime.datetime = Field(default_factory=_now)


class PitchCreate(PitchBase):
    @field_validator("category", mode="before")
    @classmethod
    def parse_category(cls, value):
        return PitchCategory.parse(value)


class PitchRead(PitchBase):
    id: int
    active: bool


class PitchAvailability(PitchBase):
    id: int
    free_slots: list[datetime.time]


###################
# RESERVATION MODEL
###################


def _id_as_text(value):
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class RequesterBase(SQLModel):
    national_id: str = Field(index=True)
    full_name: str
    phone: str
    email: str

    @field_validator("national_id", mode="before")
    @classmethod
    def national_id_as_text(cls, value):
        return _id_as_text(value)


class ReservationBase(RequesterBase):
    pitch_id: int = Field(foreign_key="pitch.id", index=True)
    booking_date: datetime.date = Field(index=True)
    start_time: datetime.time


ACTIVE_ONLY = text("status = 'active'")


class Reservation(ReservationBase, table=True):
    __table_args__ = (
        Index(
            "uq_reservation_active_slot",
            "pitch_id",
            "booking_date",
            "start_time",
            unique=True,
            sqlite_where=ACTIVE_ONLY,
            postgresql_where=ACTIVE_ONLY,
        ),
        Index(
            "uq_reservation_active_person_day",
            "national_id",
            "booking_date",
            unique=True,
            sqlite_where=ACTIVE_ONLY,
            postgresql_where=ACTIVE_ONLY,
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    end_time: datetime.time
    status: ReservationStatus = Field(
        default=ReservationStatus.ACTIVE,
        sa_type=Enum(
            ReservationStatus,
            native_enum=False,
            length=16,
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        index=True,
    )
    created_at: datetime.datetime = Field(default_factory=_now)


class ReservationCreate(ReservationBase):
    pass


class ReservationRead(ReservationBase):
    id: int
    end_time: datetime.time
    status: ReservationStatus
    created_at: datetime.datetime
    pitch_name: str
    pitch_category: PitchCategory


class CancelRequest(SQLModel):
    national_id: str
    booking_date: datetime.date
    start_time: datetime.time

    @field_validator("national_id", mode="before")
    @classmethod
    def national_id_as_text(cls, value):
        return _id_as_text(value)


class RescheduleRequest(SQLModel):
    national_id: str
    current_date: datetime.date
    current_start_time: datetime.time
    new_date: datetime.date
    new_start_time: datetime.time
    new_pitch_id: Optional[int] = None

    @field_validator("national_id", mode="before")
    @classmethod
    def national_id_as_text(cls, value):
        return _id_as_text(value)
