# src/spotnere/domain/state_machine.py

from enum import Enum
from typing import Dict, Optional, Set

from spotnere.domain.exceptions import InvalidStateTransitionError


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class BookingStateMachine:
    """
    Central lifecycle controller for booking payment status.
    A booking starts PENDING and leaves it at most once; SUCCESS and
    FAILED are sticky. Cancellation (row deletion) is only legal from
    PENDING and is not modelled as a status.
    """

    _ALLOWED_TRANSITIONS: Dict[PaymentStatus, Set[PaymentStatus]] = {
        PaymentStatus.PENDING: {
            PaymentStatus.SUCCESS,
            PaymentStatus.FAILED,
        },
        PaymentStatus.SUCCESS: set(),
        PaymentStatus.FAILED: set(),
    }

    # Gateway vocabulary -> our taxonomy. Unknown values stay PENDING.
    _GATEWAY_STATUS_MAP: Dict[str, PaymentStatus] = {
        "captured": PaymentStatus.SUCCESS,
        "failed": PaymentStatus.FAILED,
    }

    @classmethod
    def can_transition(
        cls,
        from_status: PaymentStatus,
        to_status: PaymentStatus,
    ) -> bool:
        """
        Returns True if transition is allowed.
        """
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)

        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(
        cls,
        from_status: PaymentStatus,
        to_status: PaymentStatus,
    ) -> None:
        """
        Raises InvalidStateTransitionError if transition is illegal.
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
            )

    @classmethod
    def is_terminal(cls, status: PaymentStatus) -> bool:
        """
        Returns True if the state is terminal (no further transitions allowed).
        """
        cls._ensure_valid_status(status)
        return len(cls._ALLOWED_TRANSITIONS.get(status, set())) == 0

    @classmethod
    def can_cancel(cls, status: PaymentStatus) -> bool:
        cls._ensure_valid_status(status)
        return status == PaymentStatus.PENDING

    @classmethod
    def validate_cancel(cls, status: PaymentStatus) -> None:
        if not cls.can_cancel(status):
            raise InvalidStateTransitionError(
                from_state=status.value,
                to_state="DELETED",
                message="Can only cancel PENDING bookings",
            )

    @classmethod
    def map_gateway_status(cls, gateway_status: Optional[str]) -> PaymentStatus:
        """
        Maps a gateway payment status ("captured", "failed", "authorized", ...)
        onto PENDING / SUCCESS / FAILED.
        """
        if not gateway_status:
            return PaymentStatus.PENDING
        return cls._GATEWAY_STATUS_MAP.get(gateway_status, PaymentStatus.PENDING)

    @staticmethod
    def _ensure_valid_status(status: PaymentStatus) -> None:
        if not isinstance(status, PaymentStatus):
            raise TypeError(
                f"Expected PaymentStatus, got {type(status)}"
            )
