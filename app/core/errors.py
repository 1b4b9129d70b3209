"""Domain errors raised by the booking core.

Every error carries a stable machine ``code`` and belongs to one category:
VALIDATION, NOT_FOUND, CONFLICT, STATE_VIOLATION or EXTERNAL. The HTTP layer
renders them through the handlers registered in ``app.main``.
"""


class DomainError(Exception):
    category = "VALIDATION"
    status_code = 400

    def __init__(self, code: str, message: str, **details):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"code": self.code, "category": self.category, "detail": self.message, **self.details}


class ValidationFailed(DomainError):
    category = "VALIDATION"
    status_code = 400


class NotFound(DomainError):
    category = "NOT_FOUND"
    status_code = 404


class Conflict(DomainError):
    category = "CONFLICT"
    status_code = 409


class StateViolation(DomainError):
    category = "STATE_VIOLATION"
    status_code = 409


class ExternalError(DomainError):
    category = "EXTERNAL"
    status_code = 502


class SeatUnavailable(Conflict):
    def __init__(self, seat_ids: list[str], seat_numbers: list[str]):
        super().__init__(
            "SEAT_UNAVAILABLE",
            f"Seat(s) {', '.join(seat_numbers)} are already booked on this trip. Please select different seats.",
            seatIds=seat_ids,
            seatNumbers=seat_numbers,
        )


class SignatureMismatch(ExternalError):
    status_code = 401

    def __init__(self, message: str = "Invalid gateway signature"):
        super().__init__("SIGNATURE_MISMATCH", message)
