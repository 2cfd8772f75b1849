# src/spotnere/infrastructure/gateway/razorpay_gateway.py

from dataclasses import dataclass
import logging
from typing import Any, Mapping, Optional, Protocol

import razorpay
import requests

from spotnere.domain.exceptions import ConfigurationError, GatewayUnavailableError
from spotnere.infrastructure.config import Settings

logger = logging.getLogger(__name__)

_SDK_ERRORS = (
    razorpay.errors.BadRequestError,
    razorpay.errors.GatewayError,
    razorpay.errors.ServerError,
    requests.RequestException,
    ValueError,
)


@dataclass(frozen=True)
class GatewayOrder:
    order_id: str
    amount: int
    currency: str


@dataclass(frozen=True)
class GatewayPayment:
    payment_id: str
    status: Optional[str]
    method: Optional[str]
    amount: Optional[int]
    order_id: Optional[str] = None
    error_description: Optional[str] = None


class PaymentGateway(Protocol):
    def create_order(
        self,
        amount_minor_units: int,
        currency: str,
        receipt: str,
        notes: Mapping[str, Any] | None = None,
    ) -> GatewayOrder: ...

    def fetch_payment(self, payment_id: str) -> GatewayPayment: ...


class RazorpayGateway:
    """Order creation and payment lookup against Razorpay."""

    def __init__(self, client: razorpay.Client):
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "RazorpayGateway":
        if not settings.razorpay_key_id or not settings.razorpay_key_secret:
            raise ConfigurationError(
                "Razorpay keys not configured. Set RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET."
            )
        return cls(
            razorpay.Client(auth=(settings.razorpay_key_id, settings.razorpay_key_secret))
        )

    def create_order(
        self,
        amount_minor_units: int,
        currency: str,
        receipt: str,
        notes: Mapping[str, Any] | None = None,
    ) -> GatewayOrder:
        payload = {
            "amount": amount_minor_units,
            "currency": currency,
            "receipt": receipt,
            "notes": dict(notes or {}),
        }
        try:
            order = self.client.order.create(payload)
        except _SDK_ERRORS as exc:
            logger.exception("Razorpay order creation failed for receipt %s", receipt)
            raise GatewayUnavailableError("Failed to create gateway order") from exc

        return GatewayOrder(
            order_id=order["id"],
            amount=int(order.get("amount", amount_minor_units)),
            currency=order.get("currency", currency),
        )

    def fetch_payment(self, payment_id: str) -> GatewayPayment:
        try:
            payment = self.client.payment.fetch(payment_id)
        except _SDK_ERRORS as exc:
            logger.exception("Razorpay payment fetch failed for %s", payment_id)
            raise GatewayUnavailableError("Failed to fetch payment from gateway") from exc

        return payment_from_entity(payment)


def payment_from_entity(entity: Mapping[str, Any]) -> GatewayPayment:
    """Builds a GatewayPayment from a Razorpay payment entity (API or webhook)."""
    amount = entity.get("amount")
    return GatewayPayment(
        payment_id=entity.get("id"),
        status=entity.get("status"),
        method=entity.get("method"),
        amount=int(amount) if amount is not None else None,
        order_id=entity.get("order_id"),
        error_description=entity.get("error_description") or entity.get("error_reason"),
    )
