from datetime import datetime
from decimal import Decimal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateBookingAndOrderRequest(CamelModel):
    user_id: str = Field(min_length=1)
    place_id: str = Field(min_length=1)
    booking_date_time: str = Field(min_length=1)
    amount_inr: Decimal = Field(gt=0)
    currency: str | None = None
    number_of_guests: int | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("number_of_guests", "numberOfGuests"),
    )


class CreateOrderRequest(CamelModel):
    booking_id: str = Field(min_length=1)
    amount_inr: Decimal = Field(gt=0)
    currency: str | None = None


class CheckoutOrderResponse(CamelModel):
    key_id: str
    order_id: str
    amount: int
    currency: str
    booking_id: str


class VerifyPaymentRequest(CamelModel):
    booking_id: str = Field(min_length=1)
    order_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("orderId", "order_id", "razorpay_order_id"),
    )
    payment_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("paymentId", "payment_id", "razorpay_payment_id"),
    )
    signature: str = Field(
        min_length=1,
        validation_alias=AliasChoices("signature", "razorpay_signature"),
    )


class VerifyPaymentResponse(CamelModel):
    status: str
    booking_id: str
    payment_id: str
    order_id: str
    method: str | None = None
    gateway_status: str | None = None


class VerifyFailedResponse(CamelModel):
    status: str
    reason: str
    booking_id: str


class PaymentStatusResponse(CamelModel):
    booking_id: str
    payment_status: str
    order_id: str | None = None
    payment_id: str | None = None
    paid_at: datetime | None = None
    payment_error: str | None = None


class CancelBookingResponse(CamelModel):
    cancelled: bool


class WebhookAckResponse(BaseModel):
    received: bool
    ignored: bool | None = None


class BookingSummaryResponse(CamelModel):
    id: str
    place_id: str
    booking_ref_number: str
    booking_date_time: str
    amount_paid: float
    currency_paid: str
    payment_status: str
    number_of_guests: int | None = None
    payment_method: str | None = None
    paid_at: datetime | None = None
    transaction_id: str | None = None
