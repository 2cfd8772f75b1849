import hashlib
import hmac
import json

import pytest
from fastapi.testclient import TestClient

from spotnere.application.booking_service import BookingService
from spotnere.application.notification_dispatcher import NotificationDispatcher
from spotnere.domain.exceptions import GatewayUnavailableError
from spotnere.infrastructure.config import Settings
from spotnere.infrastructure.db.models import Base, Vendor
from spotnere.infrastructure.db.session import build_session_factory, create_db_engine
from spotnere.infrastructure.gateway.razorpay_gateway import GatewayOrder, GatewayPayment
from spotnere.infrastructure.push.expo_push import PushResult
from spotnere.infrastructure.repositories.booking_repository import BookingRepository
from spotnere.infrastructure.repositories.vendor_repository import VendorRepository
from spotnere.main import create_app

KEY_ID = "rzp_test_key"
KEY_SECRET = "test_key_secret"
WEBHOOK_SECRET = "test_webhook_secret"
PLACE_ID = "place_1"
PUSH_TOKEN = "ExponentPushToken[vendor-1]"


class FakeGateway:
    """In-memory stand-in for the Razorpay adapter."""

    def __init__(self):
        self.orders = []
        self.payments = {}
        self.fetch_calls = []
        self.fail_create = False
        self.fail_fetch = False
        self.on_fetch = None

    def create_order(self, amount_minor_units, currency, receipt, notes=None):
        if self.fail_create:
            raise GatewayUnavailableError("Failed to create gateway order")
        order_id = f"order_{len(self.orders) + 1}"
        self.orders.append(
            {
                "order_id": order_id,
                "amount": amount_minor_units,
                "currency": currency,
                "receipt": receipt,
                "notes": dict(notes or {}),
            }
        )
        return GatewayOrder(order_id=order_id, amount=amount_minor_units, currency=currency)

    def fetch_payment(self, payment_id):
        self.fetch_calls.append(payment_id)
        if self.fail_fetch:
            raise GatewayUnavailableError("Failed to fetch payment from gateway")
        if self.on_fetch is not None:
            self.on_fetch(payment_id)
        return self.payments[payment_id]

    def add_payment(self, payment_id, status, amount, method="card", order_id=None, error=None):
        self.payments[payment_id] = GatewayPayment(
            payment_id=payment_id,
            status=status,
            method=method,
            amount=amount,
            order_id=order_id,
            error_description=error,
        )


class FakePushClient:
    def __init__(self):
        self.sent = []
        self.result = PushResult(success=True)

    def send(self, push_token, title, body, data=None):
        self.sent.append({"to": push_token, "title": title, "body": body, "data": data})
        return self.result


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        razorpay_key_id=KEY_ID,
        razorpay_key_secret=KEY_SECRET,
        razorpay_webhook_secret=WEBHOOK_SECRET,
    )


@pytest.fixture
def engine(settings):
    engine = create_db_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def push_client():
    return FakePushClient()


@pytest.fixture
def vendor(db_session):
    vendor = Vendor(place_id=PLACE_ID, name="Lakeside Cafe", push_token=PUSH_TOKEN)
    db_session.add(vendor)
    db_session.commit()
    db_session.refresh(vendor)
    return vendor


@pytest.fixture
def build_service(gateway, push_client):
    def _build(session, webhook_secret=WEBHOOK_SECRET):
        return BookingService(
            bookings=BookingRepository(session),
            gateway=gateway,
            dispatcher=NotificationDispatcher(VendorRepository(session), push_client),
            gateway_key_id=KEY_ID,
            checkout_secret=KEY_SECRET,
            webhook_secret=webhook_secret,
        )

    return _build


@pytest.fixture
def service(build_service, db_session):
    return build_service(db_session)


@pytest.fixture
def client(settings, gateway, push_client, session_factory):
    app = create_app(
        settings,
        gateway=gateway,
        push_client=push_client,
        session_factory=session_factory,
    )
    return TestClient(app)


@pytest.fixture
def sign_checkout():
    def _sign(order_id, payment_id, secret=KEY_SECRET):
        message = f"{order_id}|{payment_id}".encode("utf-8")
        return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()

    return _sign


@pytest.fixture
def webhook_event():
    """Raw webhook bytes shaped like Razorpay's payment.* events."""

    def _event(order_id, payment_id="pay_1", status="captured", amount=50000, method="card", **extra):
        entity = {
            "id": payment_id,
            "entity": "payment",
            "order_id": order_id,
            "status": status,
            "amount": amount,
            "currency": "INR",
            "method": method,
            **extra,
        }
        event_name = "payment.captured" if status == "captured" else f"payment.{status}"
        return json.dumps(
            {"entity": "event", "event": event_name, "payload": {"payment": {"entity": entity}}},
            separators=(",", ":"),
        ).encode("utf-8")

    return _event


@pytest.fixture
def sign_webhook():
    def _sign(raw_body, secret=WEBHOOK_SECRET):
        return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()

    return _sign
