import pytest
import razorpay
import requests

from spotnere.domain.exceptions import ConfigurationError, GatewayUnavailableError
from spotnere.infrastructure.config import Settings
from spotnere.infrastructure.gateway.razorpay_gateway import (
    RazorpayGateway,
    payment_from_entity,
)


class _Resource:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def _respond(self, *args):
        self.calls.append(args)
        if self.error is not None:
            raise self.error
        return self.result

    create = _respond
    fetch = _respond


class StubRazorpayClient:
    def __init__(self, order=None, payment=None):
        self.order = order or _Resource()
        self.payment = payment or _Resource()


def test_create_order_sends_minor_units_and_receipt():
    order = _Resource(result={"id": "order_1", "amount": 50000, "currency": "INR"})
    gateway = RazorpayGateway(StubRazorpayClient(order=order))

    result = gateway.create_order(50000, "INR", "SPT-1-abc", {"bookingId": "b1"})

    assert result.order_id == "order_1"
    assert result.amount == 50000
    assert result.currency == "INR"
    assert order.calls == [
        (
            {
                "amount": 50000,
                "currency": "INR",
                "receipt": "SPT-1-abc",
                "notes": {"bookingId": "b1"},
            },
        )
    ]


@pytest.mark.parametrize(
    "error",
    [
        razorpay.errors.BadRequestError("Authentication failed"),
        razorpay.errors.ServerError("upstream down"),
        requests.ConnectionError("timeout"),
    ],
)
def test_create_order_errors_become_gateway_unavailable(error):
    gateway = RazorpayGateway(StubRazorpayClient(order=_Resource(error=error)))

    with pytest.raises(GatewayUnavailableError):
        gateway.create_order(100, "INR", "r")


def test_fetch_payment_maps_entity():
    payment = _Resource(
        result={
            "id": "pay_1",
            "status": "captured",
            "method": "upi",
            "amount": 50000,
            "order_id": "order_1",
            "error_description": None,
        }
    )
    gateway = RazorpayGateway(StubRazorpayClient(payment=payment))

    result = gateway.fetch_payment("pay_1")

    assert result.status == "captured"
    assert result.method == "upi"
    assert result.amount == 50000
    assert payment.calls == [("pay_1",)]


def test_fetch_payment_errors_become_gateway_unavailable():
    gateway = RazorpayGateway(
        StubRazorpayClient(payment=_Resource(error=razorpay.errors.GatewayError("boom")))
    )

    with pytest.raises(GatewayUnavailableError):
        gateway.fetch_payment("pay_1")


def test_payment_entity_error_reason_fallback():
    payment = payment_from_entity({"id": "pay_2", "status": "failed", "error_reason": "card_declined"})

    assert payment.error_description == "card_declined"
    assert payment.amount is None


def test_from_settings_requires_keys():
    with pytest.raises(ConfigurationError):
        RazorpayGateway.from_settings(Settings(database_url="sqlite://"))
