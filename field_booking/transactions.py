import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from .errors import BookingError, StorageError

logger = logging.getLogger(__name__)


@contextmanager
def atomic(session: Session) -> Iterator[Session]:
    """Run a read-check-write sequence as one transaction.

    Commits when the block exits cleanly and rolls back on any exception.
    Storage failures, including unique index violations, surface as
    `StorageError`. Business-rule rejections pass through unchanged.

    Usage:
        with atomic(session):
            pitch = lock_pitch(session, pitch_id)
            ...
            session.add(reservation)
    """
    try:
        yield session
        session.flush()
        session.commit()
    except BookingError:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Transaction rolled back after storage failure")
        raise StorageError() from exc
    except Exception:
        session.rollback()
        raise
