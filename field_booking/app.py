import datetime
import logging
from contextlib import asynccontextmanager
from datetime import timedelta, timezone
from typing import Annotated, Optional

import jwt
from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jwt.exceptions import InvalidTokenError
from pwdlib import PasswordHash
from pydantic import BaseModel
from sqlmodel import Session, select

from . import config
from .availability import get_availability
from .database import engine, get_session, init_db
from .errors import BookingError, StorageError, ValidationError
from .models import (
    CancelRequest,
    PitchAvailability,
    PitchCategory,
    PitchCreate,
    PitchRead,
    ReservationCreate,
    ReservationRead,
    RescheduleRequest,
    User,
)
from .pitches import (
    admin_cancel_reservation,
    create_pitch,
    deactivate_pitch,
    list_pitches,
    list_reservations,
    reactivate_pitch,
    seed_default_pitches,
    update_pitch,
)
from .reservations import (
    cancel_reservation,
    create_reservation,
    reschedule_reservation,
)

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", level=logging.INFO
)
logger = logging.getLogger(__name__)


class Token(BaseModel):
    access_token: str
    token_type: str


class TokenData(BaseModel):
    username: str | None = None


password_hash = PasswordHash.recommended()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")


def ensure_admin_user(session: Session) -> None:
    if not config.ADMIN_USERNAME or not config.ADMIN_PASSWORD:
        return
    if get_user_by_username(session, config.ADMIN_USERNAME):
        return
    session.add(
        User(
            username=config.ADMIN_USERNAME,
            email=config.ADMIN_EMAIL,
            hashed_password=get_password_hash(config.ADMIN_PASSWORD),
            is_admin=True,
        )
    )
    session.commit()
    logger.info("Admin user %s created", config.ADMIN_USERNAME)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    with Session(engine) as session:
        if config.SEED_PITCHES:
            seed_default_pitches(session)
        ensure_admin_user(session)
    yield


app = FastAPI(
    lifespan=lifespan,
    title="Football pitch reservations API",
    description="Hourly reservations for a club's football pitches, with availability, cancellation and rescheduling.",
    version="1.0.0",
)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if isinstance(exc, StorageError):
        logger.error("%s %s failed: storage error", request.method, request.url.path)
    else:
        logger.info(
            "%s %s rejected: %s (%s)",
            request.method,
            request.url.path,
            exc.message,
            type(exc).__name__,
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    missing, invalid = [], []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"] if part != "body") or "body"
        (missing if error["type"] == "missing" else invalid).append(field)
    parts = []
    if missing:
        parts.append(f"Missing required fields: {', '.join(missing)}")
    if invalid:
        parts.append(f"Invalid fields: {', '.join(invalid)}")
    error = ValidationError("; ".join(parts) or "Invalid request")
    return await booking_error_handler(request, error)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return password_hash.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return password_hash.hash(password)


def create_access_token(data: dict, expires_delta: timedelta | None = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.datetime.now(timezone.utc) + timedelta(minutes=15)
    to_encode.update({"exp": expire})
    if not config.SECRET_KEY or config.SECRET_KEY == "":
        raise ValueError("SECRET_KEY is missing")
    encoded_jwt = jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)
    return encoded_jwt


def get_user_by_username(session: Session, username: str):
    statement = select(User).where(User.username == username)
    return session.exec(statement).first()


def authenticate_user(session: Session, username: str, password: str):
    user = get_user_by_username(session, username)
    if not user:
        return False
    if not verify_password(password, user.hashed_password):
        return False
    return user


def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    session: Session = Depends(get_session),
):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
        username = payload.get("sub")
        if username is None:
            raise credentials_exception
        token_data = TokenData(username=username)
    except InvalidTokenError:
        raise credentials_exception
    user = get_user_by_username(session, username=token_data.username)
    if user is None:
        raise credentials_exception
    return user


def require_admin(current_user: Annotated[User, Depends(get_current_user)]):
    if not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin only")
    return current_user


@app.post(
    "/token", summary="Log in", response_description="Bearer token", tags=["Users"]
)
def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    session: Session = Depends(get_session),
) -> Token:
    """Obtain token for login"""
    user = authenticate_user(session, form_data.username, form_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token_expires = timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": user.username}, expires_delta=access_token_expires
    )
    return Token(access_token=access_token, token_type="bearer")


# --- Availability ---
@app.get(
    "/availability",
    response_model=list[PitchAvailability],
    summary="List free slots per pitch",
    response_description="Active pitches with their free start times",
    tags=["Reservations"],
)
def read_availability(
    date: datetime.date = Query(..., description="Day to check (YYYY-MM-DD)"),
    category: Optional[str] = Query(
        None,
        description="Filter by pitch category (small, medium, large or F5, F7, F11)",
        example="F5",
    ),
    session: Session = Depends(get_session),
):
    """
    List every active pitch with the hourly start times still free on a day.

    - **date**: Day to check. Past days are rejected.
    - **category**: Optional pitch category filter.
    """
    category_filter = None
    if category:
        try:
            category_filter = PitchCategory.parse(category)
        except ValueError:
            raise ValidationError(f"Unknown pitch category: {category}")
    return get_availability(session, date, category_filter)


# --- Reservation Routes ---
@app.post(
    "/reservations",
    response_model=ReservationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create new reservation",
    response_description="Reservation data",
    tags=["Reservations"],
)
def create_reservation_route(
    reservation: ReservationCreate, session: Session = Depends(get_session)
):
    """Book a one hour slot on a pitch.
    - **national_id**: 7 or 8 digit ID of the person booking
    - **pitch_id**: Pitch requested
    - **booking_date**: Day of the booking
    - **start_time**: Start of the slot, the booking ends one hour later
    """
    return create_reservation(session, reservation)


@app.delete(
    "/reservations",
    summary="Cancel reservation",
    tags=["Reservations"],
)
def cancel_reservation_route(
    cancellation: CancelRequest, session: Session = Depends(get_session)
):
    """
    Cancel an active reservation. Only allowed more than 24 hours before it starts.
    """
    cancel_reservation(
        session,
        cancellation.national_id,
        cancellation.booking_date,
        cancellation.start_time,
    )
    return {"ok": True}


@app.put(
    "/reservations/reschedule",
    response_model=ReservationRead,
    summary="Reschedule reservation",
    response_description="Updated reservation data",
    tags=["Reservations"],
)
def reschedule_reservation_route(
    reschedule: RescheduleRequest, session: Session = Depends(get_session)
):
    """
    Move an active reservation to another slot, optionally on another pitch.
    Only allowed more than 24 hours before the current slot starts.
    """
    return reschedule_reservation(session, reschedule)


# --- Admin: Pitch Management ---
@app.get(
    "/admin/pitches",
    response_model=list[PitchRead],
    dependencies=[Depends(require_admin)],
    summary="List pitches",
    response_description="List of pitches",
    tags=["Admin"],
)
def list_pitches_route(session: Session = Depends(get_session)):
    """List all pitches, including deactivated ones."""
    return list_pitches(session)


@app.post(
    "/admin/pitches",
    response_model=PitchRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
    summary="Add new pitch",
    response_description="Pitch data",
    tags=["Admin"],
)
def create_pitch_route(pitch: PitchCreate, session: Session = Depends(get_session)):
    """Add a pitch. Name and category must not clash with another active pitch."""
    return create_pitch(session, pitch)


@app.put(
    "/admin/pitches/{id}",
    response_model=PitchRead,
    dependencies=[Depends(require_admin)],
    summary="Update pitch",
    response_description="Updated pitch data",
    tags=["Admin"],
)
def update_pitch_route(
    id: int, updated_pitch: PitchCreate, session: Session = Depends(get_session)
):
    """
    Update a pitch. Refused while it has upcoming active reservations.
    - **id**: Pitch ID
    """
    return update_pitch(session, id, updated_pitch)


@app.delete(
    "/admin/pitches/{id}",
    response_model=PitchRead,
    dependencies=[Depends(require_admin)],
    summary="Deactivate pitch",
    tags=["Admin"],
)
def delete_pitch_route(id: int, session: Session = Depends(get_session)):
    """
    Deactivate a pitch. The record and its reservations are kept.
    - **id**: Pitch ID
    """
    return deactivate_pitch(session, id)


@app.post(
    "/admin/pitches/{id}/reactivate",
    response_model=PitchRead,
    dependencies=[Depends(require_admin)],
    summary="Reactivate pitch",
    tags=["Admin"],
)
def reactivate_pitch_route(id: int, session: Session = Depends(get_session)):
    """Make a deactivated pitch bookable again."""
    return reactivate_pitch(session, id)


# --- Admin: Reservations ---
@app.get(
    "/admin/reservations",
    response_model=list[ReservationRead],
    dependencies=[Depends(require_admin)],
    summary="List all reservations",
    response_description="List of reservations",
    tags=["Admin"],
)
def list_reservations_route(session: Session = Depends(get_session)):
    """List every reservation, newest first."""
    return list_reservations(session)


@app.put(
    "/admin/reservations/{id}/cancel",
    response_model=ReservationRead,
    dependencies=[Depends(require_admin)],
    summary="Cancel any reservation",
    tags=["Admin"],
)
def admin_cancel_route(id: int, session: Session = Depends(get_session)):
    """Cancel a reservation by ID. The 24 hour window does not apply to admins."""
    return admin_cancel_reservation(session, id)
