import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from spotnere.api.schemas.schemas import (
    BookingSummaryResponse,
    CancelBookingResponse,
    CheckoutOrderResponse,
    CreateBookingAndOrderRequest,
    CreateOrderRequest,
    PaymentStatusResponse,
    VerifyFailedResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
    WebhookAckResponse,
)
from spotnere.application.booking_service import BookingService, CheckoutOrder
from spotnere.application.notification_dispatcher import NotificationDispatcher
from spotnere.domain.exceptions import ErrorKind
from spotnere.domain.results import Result
from spotnere.infrastructure.repositories.booking_repository import BookingRepository
from spotnere.infrastructure.repositories.vendor_repository import VendorRepository


router = APIRouter()
logger = logging.getLogger(__name__)

WEBHOOK_SIGNATURE_HEADERS = ("x-gateway-signature", "x-razorpay-signature")

_HTTP_STATUS_BY_KIND = {
    ErrorKind.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_STATE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.SIGNATURE_INVALID: status.HTTP_400_BAD_REQUEST,
    ErrorKind.GATEWAY_UNAVAILABLE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.STORE_UNAVAILABLE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.CONFIGURATION: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_booking_service(
    request: Request,
    db: Session = Depends(get_db),
) -> BookingService:
    state = request.app.state
    settings = state.settings
    return BookingService(
        bookings=BookingRepository(db),
        gateway=state.gateway,
        dispatcher=NotificationDispatcher(VendorRepository(db), state.push_client),
        gateway_key_id=settings.razorpay_key_id or "",
        checkout_secret=settings.razorpay_key_secret,
        webhook_secret=settings.razorpay_webhook_secret,
    )


def _raise_for_failure(result: Result) -> None:
    if result.ok:
        return
    failure = result.failure
    raise HTTPException(
        status_code=_HTTP_STATUS_BY_KIND[failure.kind],
        detail=failure.message,
    )


def _checkout_response(order: CheckoutOrder) -> CheckoutOrderResponse:
    return CheckoutOrderResponse(
        key_id=order.key_id,
        order_id=order.order_id,
        amount=order.amount,
        currency=order.currency,
        booking_id=order.booking_id,
    )


@router.get("/health")
def health():
    return {"ok": True}


@router.post("/bookings/create-and-order", response_model=CheckoutOrderResponse)
def create_booking_and_order(
    request: CreateBookingAndOrderRequest,
    service: BookingService = Depends(get_booking_service),
):
    result = service.create_booking_and_order(
        user_id=request.user_id,
        place_id=request.place_id,
        booking_date_time=request.booking_date_time,
        amount_paid=request.amount_inr,
        currency=request.currency,
        number_of_guests=request.number_of_guests,
    )
    _raise_for_failure(result)
    return _checkout_response(result.value)


@router.delete("/bookings/{booking_id}/cancel", response_model=CancelBookingResponse)
def cancel_booking(
    booking_id: str,
    service: BookingService = Depends(get_booking_service),
):
    result = service.cancel_booking(booking_id)
    _raise_for_failure(result)
    return CancelBookingResponse(cancelled=True)


@router.get("/bookings", response_model=list[BookingSummaryResponse])
def list_bookings(
    user_id: str | None = Query(default=None, alias="userId"),
    service: BookingService = Depends(get_booking_service),
):
    result = service.list_user_bookings(user_id or "")
    _raise_for_failure(result)
    return [
        BookingSummaryResponse(
            id=booking.id,
            place_id=booking.place_id,
            booking_ref_number=booking.booking_ref_number,
            booking_date_time=booking.booking_date_time,
            amount_paid=float(booking.amount_paid),
            currency_paid=booking.currency_paid,
            payment_status=booking.payment_status.value,
            number_of_guests=booking.number_of_guests,
            payment_method=booking.payment_method,
            paid_at=booking.paid_at,
            transaction_id=booking.transaction_id,
        )
        for booking in result.value
    ]


@router.post("/payments/gateway/create-order", response_model=CheckoutOrderResponse)
def create_order(
    request: CreateOrderRequest,
    service: BookingService = Depends(get_booking_service),
):
    result = service.create_order_for_booking(
        booking_id=request.booking_id,
        amount_paid=request.amount_inr,
        currency=request.currency,
    )
    _raise_for_failure(result)
    return _checkout_response(result.value)


@router.post("/payments/gateway/verify", response_model=VerifyPaymentResponse)
def verify_payment(
    request: VerifyPaymentRequest,
    service: BookingService = Depends(get_booking_service),
):
    result = service.verify_payment(
        booking_id=request.booking_id,
        order_id=request.order_id,
        payment_id=request.payment_id,
        signature=request.signature,
    )
    _raise_for_failure(result)
    outcome = result.value

    if not outcome.signature_valid:
        body = VerifyFailedResponse(
            status=outcome.status.value,
            reason=outcome.reason,
            booking_id=outcome.booking_id,
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=body.model_dump(by_alias=True),
        )

    return VerifyPaymentResponse(
        status=outcome.status.value,
        booking_id=outcome.booking_id,
        payment_id=outcome.payment_id,
        order_id=outcome.order_id,
        method=outcome.method,
        gateway_status=outcome.gateway_status,
    )


@router.get("/payments/gateway/status", response_model=PaymentStatusResponse)
def payment_status(
    booking_id: str | None = Query(default=None, alias="bookingId"),
    service: BookingService = Depends(get_booking_service),
):
    if not booking_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="bookingId is required",
        )
    result = service.get_payment_status(booking_id)
    _raise_for_failure(result)
    booking = result.value
    return PaymentStatusResponse(
        booking_id=booking.id,
        payment_status=booking.payment_status.value,
        order_id=booking.gateway_order_id,
        payment_id=booking.gateway_payment_id,
        paid_at=booking.paid_at,
        payment_error=booking.payment_error,
    )


@router.post(
    "/webhooks/gateway",
    response_model=WebhookAckResponse,
    response_model_exclude_none=True,
)
async def gateway_webhook(
    request: Request,
    service: BookingService = Depends(get_booking_service),
):
    # Signature covers the exact bytes on the wire; read them before anything parses JSON.
    raw_body = await request.body()
    signature = next(
        (request.headers[name] for name in WEBHOOK_SIGNATURE_HEADERS if name in request.headers),
        None,
    )

    try:
        result = await run_in_threadpool(service.handle_webhook, raw_body, signature)
    except Exception as exc:
        logger.exception("Webhook handler error")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook handler error",
        ) from exc

    _raise_for_failure(result)
    ack = result.value
    return WebhookAckResponse(received=ack.received, ignored=True if ack.ignored else None)
