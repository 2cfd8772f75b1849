from enum import Enum


class ErrorKind(str, Enum):
    INVALID_REQUEST = "INVALID_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    INVALID_STATE = "INVALID_STATE"
    SIGNATURE_INVALID = "SIGNATURE_INVALID"
    GATEWAY_UNAVAILABLE = "GATEWAY_UNAVAILABLE"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    CONFIGURATION = "CONFIGURATION"


class SpotnereError(Exception):
    """
    Base exception for all domain-level errors
    inside the Spotnere payments backend.
    """

    kind: ErrorKind = ErrorKind.INVALID_REQUEST


class InvalidRequestError(SpotnereError):
    """Raised when caller input is missing or malformed."""

    kind = ErrorKind.INVALID_REQUEST


class BookingNotFoundError(SpotnereError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, booking_id: str):
        self.booking_id = booking_id
        super().__init__("Booking not found")


class InvalidStateTransitionError(SpotnereError):
    """
    Raised when an illegal booking state transition is attempted.
    """

    kind = ErrorKind.INVALID_STATE

    def __init__(self, from_state: str, to_state: str, message: str | None = None):
        self.from_state = from_state
        self.to_state = to_state

        if message is None:
            message = (
                f"Illegal state transition attempted: "
                f"{from_state} -> {to_state}"
            )
        super().__init__(message)


class SignatureInvalidError(SpotnereError):
    """Raised when a payment claim fails HMAC verification."""

    kind = ErrorKind.SIGNATURE_INVALID


class GatewayUnavailableError(SpotnereError):
    """
    Raised on transport or auth failures talking to the payment gateway.
    Never interpreted as a payment failure.
    """

    kind = ErrorKind.GATEWAY_UNAVAILABLE


class StoreUnavailableError(SpotnereError):
    kind = ErrorKind.STORE_UNAVAILABLE


class ConfigurationError(SpotnereError):
    """Raised when a required secret or setting is missing."""

    kind = ErrorKind.CONFIGURATION
