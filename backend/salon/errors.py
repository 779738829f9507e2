# backend/salon/errors.py
"""
Domain errors raised by the reservation core.

Only structural problems are errors. "Nothing available" is a normal result
and coupon disqualification is silent, so neither appears here.

Every error carries an HTTP status and a stable machine code; the API layer
renders them as {"error": code, "detail": message, ...extra}. Messages are not
localized here.
"""


class BookingError(Exception):
    status_code = 400
    code = "booking_error"

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message, **self.extra}


class NotFound(BookingError):
    status_code = 404
    code = "not_found"


class Forbidden(BookingError):
    status_code = 403
    code = "forbidden"


class InvalidState(BookingError):
    status_code = 409
    code = "invalid_state"


class AlreadyCancelled(InvalidState):
    code = "already_cancelled"


class DeadlinePassed(BookingError):
    status_code = 400
    code = "deadline_passed"


class SlotUnavailable(BookingError):
    status_code = 409
    code = "slot_unavailable"
