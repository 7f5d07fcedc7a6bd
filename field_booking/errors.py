"""Booking error taxonomy.

Every rejection the scheduling core can produce is a `BookingError`. All of
them except `StorageError` are business-rule outcomes. The caller can fix
them by changing the input, and retrying the same input will fail again.
`StorageError` wraps failures of the store itself. Its message is opaque to
clients.
"""

from fastapi import status


class BookingError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """Malformed or missing input fields."""


class InvalidDate(BookingError):
    """The requested date is already in the past."""


class DuplicateBooking(BookingError):
    status_code = status.HTTP_409_CONFLICT


class SlotUnavailable(BookingError):
    status_code = status.HTTP_409_CONFLICT


class PolicyViolation(BookingError):
    """The 24 hour cancel/reschedule window has closed."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND


class DuplicatePitch(BookingError):
    status_code = status.HTTP_409_CONFLICT


class PitchInUse(BookingError):
    status_code = status.HTTP_409_CONFLICT


class StorageError(BookingError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Internal storage error"):
        super().__init__(message)
