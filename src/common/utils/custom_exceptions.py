class NotFoundException(Exception):
    def __init__(self, resource: str, identifier: str, status_code: int = 404):
        self.resource = resource
        self.identifier = identifier
        self.status_code = status_code

    def __str__(self):
        return f"{self.resource} '{self.identifier}' not found"


class PolicyError(Exception):
    status_code = 400


class AlreadyCancelled(PolicyError):
    status_code = 400

    def __init__(self, booking_id: str):
        super().__init__(f"booking '{booking_id}' is already cancelled")
        self.booking_id = booking_id


class NotCancellable(PolicyError):
    status_code = 400

    def __init__(self, booking_id: str, status: str):
        super().__init__(f"booking '{booking_id}' is {status} and cannot be cancelled")
        self.booking_id = booking_id


class Unauthorized(PolicyError):
    status_code = 403


class InvalidBookingState(Exception):
    status_code = 409


class InternalError(Exception):
    status_code = 500

    def __init__(self, message: str, details: str = ""):
        super().__init__(message)
        self.details = details


class BookingConflict(Exception):
    """The booking changed between load and commit."""


class PaymentProviderError(Exception):
    pass


class InvalidDates(Exception):
    pass
