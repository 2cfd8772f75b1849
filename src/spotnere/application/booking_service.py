from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
import json
import logging
from typing import Any, Optional

from spotnere.application.notification_dispatcher import NotificationDispatcher
from spotnere.domain.exceptions import (
    BookingNotFoundError,
    ConfigurationError,
    InvalidRequestError,
    InvalidStateTransitionError,
    SignatureInvalidError,
)
from spotnere.domain.money import from_minor_units, to_minor_units
from spotnere.domain.references import build_receipt, generate_booking_ref_number
from spotnere.domain.results import returns_result
from spotnere.domain.signatures import verify_checkout_signature, verify_webhook_signature
from spotnere.domain.state_machine import BookingStateMachine, PaymentStatus
from spotnere.infrastructure.db.models import Booking
from spotnere.infrastructure.gateway.razorpay_gateway import (
    GatewayPayment,
    PaymentGateway,
    payment_from_entity,
)
from spotnere.infrastructure.repositories.booking_repository import BookingRepository

logger = logging.getLogger(__name__)

SIGNATURE_MISMATCH = "Signature mismatch"
DEFAULT_CURRENCY = "INR"


@dataclass(frozen=True)
class CheckoutOrder:
    key_id: str
    order_id: str
    amount: int
    currency: str
    booking_id: str


@dataclass(frozen=True)
class VerificationOutcome:
    status: PaymentStatus
    booking_id: str
    payment_id: str
    order_id: str
    method: Optional[str] = None
    gateway_status: Optional[str] = None
    signature_valid: bool = True
    reason: Optional[str] = None
    # True only when this call moved the booking out of PENDING.
    transitioned: bool = False


@dataclass(frozen=True)
class WebhookAck:
    received: bool = True
    ignored: bool = False
    booking_id: Optional[str] = None
    status: Optional[PaymentStatus] = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_amount(amount: Any) -> Decimal:
    if amount is None or isinstance(amount, bool):
        raise InvalidRequestError("amountInr must be > 0")
    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise InvalidRequestError("amountInr must be > 0") from exc
    if not value.is_finite() or value <= 0:
        raise InvalidRequestError("amountInr must be > 0")
    return value


def _entity(payload: Any, name: str) -> dict:
    if not isinstance(payload, dict):
        return {}
    section = payload.get(name)
    if not isinstance(section, dict):
        return {}
    entity = section.get("entity")
    return entity if isinstance(entity, dict) else {}


class BookingService:
    """
    Drives a booking through PENDING -> SUCCESS | FAILED.

    Three independent triggers may race for the same booking (client
    verify, gateway webhook, user cancel). Every status write is guarded
    on the row still being PENDING, and the vendor notification fires
    only for the call whose guarded write moved the row to SUCCESS.
    """

    def __init__(
        self,
        bookings: BookingRepository,
        gateway: PaymentGateway,
        dispatcher: NotificationDispatcher | None,
        gateway_key_id: str,
        checkout_secret: str | None,
        webhook_secret: str | None = None,
    ):
        self.bookings = bookings
        self.gateway = gateway
        self.dispatcher = dispatcher
        self.gateway_key_id = gateway_key_id
        self.checkout_secret = checkout_secret
        self.webhook_secret = webhook_secret

    # -----------------------------
    # Create
    # -----------------------------
    @returns_result
    def create_booking_and_order(
        self,
        user_id: str,
        place_id: str,
        booking_date_time: str,
        amount_paid: Any,
        currency: str | None = None,
        number_of_guests: int | None = None,
    ) -> CheckoutOrder:
        if not user_id or not place_id or not booking_date_time:
            raise InvalidRequestError("userId, placeId, and bookingDateTime are required")
        amount = _parse_amount(amount_paid)
        if number_of_guests is not None and number_of_guests < 0:
            raise InvalidRequestError("number_of_guests must be >= 0")
        pay_currency = (currency or DEFAULT_CURRENCY).upper()

        booking = self.bookings.insert(
            Booking(
                user_id=user_id,
                place_id=place_id,
                booking_date_time=booking_date_time,
                booking_ref_number=generate_booking_ref_number(),
                amount_paid=amount,
                currency_paid=pay_currency,
                number_of_guests=number_of_guests,
                payment_status=PaymentStatus.PENDING,
            )
        )
        logger.info("Created booking %s (%s)", booking.id, booking.booking_ref_number)

        # A gateway failure here leaves the PENDING row behind; cancel reclaims it.
        order = self.gateway.create_order(
            to_minor_units(amount),
            pay_currency,
            receipt=booking.booking_ref_number,
            notes={"bookingId": booking.id},
        )
        self.bookings.update_by_id(booking.id, {"gateway_order_id": order.order_id})
        logger.info("Created gateway order %s for booking %s", order.order_id, booking.id)

        return CheckoutOrder(
            key_id=self.gateway_key_id,
            order_id=order.order_id,
            amount=order.amount,
            currency=order.currency,
            booking_id=booking.id,
        )

    @returns_result
    def create_order_for_booking(
        self,
        booking_id: str,
        amount_paid: Any,
        currency: str | None = None,
    ) -> CheckoutOrder:
        if not booking_id:
            raise InvalidRequestError("bookingId is required")
        amount = _parse_amount(amount_paid)
        pay_currency = (currency or DEFAULT_CURRENCY).upper()

        booking = self._require_booking(booking_id)
        self._ensure_pending(booking, "Can only create orders for PENDING bookings")

        order = self.gateway.create_order(
            to_minor_units(amount),
            pay_currency,
            receipt=build_receipt(booking.id),
            notes={"bookingId": booking.id},
        )
        updated = self.bookings.update_if_pending(
            booking.id,
            {
                "gateway_order_id": order.order_id,
                "amount_paid": amount,
                "currency_paid": pay_currency,
                "payment_error": None,
            },
        )
        if not updated:
            # Settled between the read above and this write.
            raise InvalidStateTransitionError(
                from_state="TERMINAL",
                to_state=PaymentStatus.PENDING.value,
                message="Can only create orders for PENDING bookings",
            )
        logger.info("Re-issued gateway order %s for booking %s", order.order_id, booking.id)

        return CheckoutOrder(
            key_id=self.gateway_key_id,
            order_id=order.order_id,
            amount=order.amount,
            currency=order.currency,
            booking_id=booking.id,
        )

    # -----------------------------
    # Verify (client-driven)
    # -----------------------------
    @returns_result
    def verify_payment(
        self,
        booking_id: str,
        order_id: str,
        payment_id: str,
        signature: str,
    ) -> VerificationOutcome:
        if not booking_id:
            raise InvalidRequestError("bookingId is required")
        if not order_id or not payment_id or not signature:
            raise InvalidRequestError("Missing gateway fields")

        booking = self._require_booking(booking_id)
        if booking.gateway_order_id and booking.gateway_order_id != order_id:
            raise InvalidRequestError("Order id does not match this booking")

        if not verify_checkout_signature(order_id, payment_id, signature, self.checkout_secret):
            BookingStateMachine.validate_transition(PaymentStatus.PENDING, PaymentStatus.FAILED)
            changed = self.bookings.update_if_pending(
                booking.id,
                {
                    "payment_status": PaymentStatus.FAILED,
                    "gateway_payment_id": payment_id,
                    "gateway_signature": signature,
                    "transaction_id": payment_id,
                    "payment_error": SIGNATURE_MISMATCH,
                },
            )
            logger.warning(
                "Signature mismatch on verify for booking %s (recorded=%s)",
                booking.id,
                changed,
            )
            # A settled booking keeps its status; report what is stored.
            stored = (
                PaymentStatus.FAILED if changed else self._require_booking(booking.id).payment_status
            )
            return VerificationOutcome(
                status=stored,
                booking_id=booking.id,
                payment_id=payment_id,
                order_id=order_id,
                signature_valid=False,
                reason=SIGNATURE_MISMATCH,
                transitioned=changed,
            )

        if BookingStateMachine.is_terminal(booking.payment_status):
            logger.info(
                "Booking %s already %s; verify is a no-op",
                booking.id,
                booking.payment_status.value,
            )
            return VerificationOutcome(
                status=booking.payment_status,
                booking_id=booking.id,
                payment_id=booking.gateway_payment_id or payment_id,
                order_id=order_id,
                method=booking.payment_method,
            )

        payment = self.gateway.fetch_payment(payment_id)
        status = BookingStateMachine.map_gateway_status(payment.status)

        patch = self._payment_patch(booking, status, payment, fallback_payment_id=payment_id)
        patch["gateway_order_id"] = order_id
        patch["gateway_signature"] = signature

        current, transitioned = self._apply(booking.id, status, patch)
        logger.info(
            "Verify for booking %s: gateway=%s mapped=%s stored=%s",
            booking.id,
            payment.status,
            status.value,
            current.payment_status.value,
        )

        return VerificationOutcome(
            status=current.payment_status,
            booking_id=current.id,
            payment_id=payment_id,
            order_id=order_id,
            method=payment.method,
            gateway_status=payment.status,
            transitioned=transitioned,
        )

    # -----------------------------
    # Webhook (gateway-driven)
    # -----------------------------
    @returns_result
    def handle_webhook(self, raw_body: bytes, signature: str | None) -> WebhookAck:
        if not self.webhook_secret:
            raise ConfigurationError("Webhook secret not configured")
        if not verify_webhook_signature(raw_body, signature, self.webhook_secret):
            raise SignatureInvalidError("Invalid signature")

        try:
            event = json.loads(raw_body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise InvalidRequestError("Malformed webhook payload") from exc
        if not isinstance(event, dict):
            raise InvalidRequestError("Malformed webhook payload")

        payload = event.get("payload")
        payment_entity = _entity(payload, "payment")
        order_entity = _entity(payload, "order")
        order_id = payment_entity.get("order_id") or order_entity.get("id")

        if not order_id:
            logger.info("Webhook %s carries no order id; ignoring", event.get("event"))
            return WebhookAck(ignored=True)

        booking = self.bookings.find_by_gateway_order_id(order_id)
        if booking is None:
            logger.info("Webhook for unknown order %s; ignoring", order_id)
            return WebhookAck(ignored=True)

        if BookingStateMachine.is_terminal(booking.payment_status):
            logger.info(
                "Webhook for booking %s already %s; nothing to do",
                booking.id,
                booking.payment_status.value,
            )
            return WebhookAck(booking_id=booking.id, status=booking.payment_status)

        payment = payment_from_entity(payment_entity) if payment_entity else None
        status = BookingStateMachine.map_gateway_status(payment.status if payment else None)
        patch = self._payment_patch(booking, status, payment)

        current, _ = self._apply(booking.id, status, patch)
        logger.info(
            "Webhook %s applied to booking %s: stored=%s",
            event.get("event"),
            booking.id,
            current.payment_status.value,
        )
        return WebhookAck(booking_id=current.id, status=current.payment_status)

    # -----------------------------
    # Cancel / read
    # -----------------------------
    @returns_result
    def cancel_booking(self, booking_id: str) -> bool:
        if not booking_id:
            raise InvalidRequestError("bookingId is required")
        booking = self._require_booking(booking_id)
        BookingStateMachine.validate_cancel(booking.payment_status)

        if not self.bookings.delete_by_id(booking.id, only_if_pending=True):
            current = self._require_booking(booking.id)
            BookingStateMachine.validate_cancel(current.payment_status)
        logger.info("Cancelled booking %s", booking.id)
        return True

    @returns_result
    def get_payment_status(self, booking_id: str) -> Booking:
        if not booking_id:
            raise InvalidRequestError("bookingId is required")
        return self._require_booking(booking_id)

    @returns_result
    def list_user_bookings(self, user_id: str) -> list[Booking]:
        if not user_id:
            raise InvalidRequestError("userId is required")
        return self.bookings.list_for_user(user_id)

    # -----------------------------
    # Internals
    # -----------------------------
    def _require_booking(self, booking_id: str) -> Booking:
        booking = self.bookings.get_by_id(booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        return booking

    @staticmethod
    def _ensure_pending(booking: Booking, message: str) -> None:
        if booking.payment_status != PaymentStatus.PENDING:
            raise InvalidStateTransitionError(
                from_state=booking.payment_status.value,
                to_state=PaymentStatus.PENDING.value,
                message=message,
            )

    def _payment_patch(
        self,
        booking: Booking,
        status: PaymentStatus,
        payment: GatewayPayment | None,
        fallback_payment_id: str | None = None,
    ) -> dict:
        patch: dict = {"payment_status": status}

        payment_id = (payment.payment_id if payment else None) or fallback_payment_id
        if payment_id:
            patch["gateway_payment_id"] = payment_id
            patch["transaction_id"] = payment_id
        if payment and payment.method:
            patch["payment_method"] = payment.method

        if status == PaymentStatus.SUCCESS:
            amount_minor = payment.amount if payment and payment.amount else None
            if amount_minor is None:
                amount_minor = to_minor_units(booking.amount_paid)
            patch["paid_at"] = _utc_now()
            patch["amount_received_by_vendor"] = from_minor_units(amount_minor)
            patch["payment_error"] = None
        elif status == PaymentStatus.FAILED:
            patch["payment_error"] = (
                payment.error_description if payment and payment.error_description else None
            ) or "Payment failed"
        else:
            patch["payment_error"] = None
        return patch

    def _apply(
        self,
        booking_id: str,
        status: PaymentStatus,
        patch: dict,
    ) -> tuple[Booking, bool]:
        """
        Guarded write, then dispatch if this call caused PENDING -> SUCCESS.
        Returns the stored booking and whether a terminal transition happened.
        """
        if BookingStateMachine.is_terminal(status):
            BookingStateMachine.validate_transition(PaymentStatus.PENDING, status)

        changed = self.bookings.update_if_pending(booking_id, patch)
        current = self._require_booking(booking_id)
        transitioned = changed and status != PaymentStatus.PENDING

        if not changed:
            logger.info(
                "Booking %s settled concurrently as %s; skipping update",
                booking_id,
                current.payment_status.value,
            )
        elif transitioned and status == PaymentStatus.SUCCESS:
            self._dispatch(current)
        return current, transitioned

    def _dispatch(self, booking: Booking) -> None:
        if self.dispatcher is None:
            return
        report = self.dispatcher.dispatch_new_booking(booking)
        logger.info(
            "Vendor notification for booking %s: created=%s push_sent=%s",
            booking.id,
            report.notification_created,
            report.push_sent,
        )
