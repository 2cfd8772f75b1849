from dataclasses import dataclass
import logging
from typing import Protocol

from spotnere.application.formatting import render_new_booking_notification
from spotnere.domain.exceptions import StoreUnavailableError
from spotnere.infrastructure.db.models import Booking
from spotnere.infrastructure.push.expo_push import PushResult
from spotnere.infrastructure.repositories.vendor_repository import VendorRepository

logger = logging.getLogger(__name__)

NEW_BOOKING = "NEW_BOOKING"


class PushClient(Protocol):
    def send(self, push_token, title, body, data=None) -> PushResult: ...


@dataclass(frozen=True)
class DispatchReport:
    notification_created: bool = False
    push_attempted: bool = False
    push_sent: bool = False


class NotificationDispatcher:
    """
    Tells the vendor owning a place about a newly paid booking.

    Runs after the SUCCESS status is committed and never raises for a
    missing vendor, a store failure on the notification row, or a push
    failure; the caller's payment result does not depend on it.
    """

    def __init__(self, vendors: VendorRepository, push_client: PushClient | None = None):
        self.vendors = vendors
        self.push_client = push_client

    def dispatch_new_booking(self, booking: Booking) -> DispatchReport:
        if not booking.place_id or not booking.id:
            return DispatchReport()

        try:
            vendor = self.vendors.find_by_place_id(booking.place_id)
        except StoreUnavailableError:
            logger.warning("Vendor lookup failed for place_id %s", booking.place_id)
            return DispatchReport()

        if vendor is None:
            logger.warning("Could not find vendor for place_id: %s", booking.place_id)
            return DispatchReport()

        title, body = render_new_booking_notification(
            booking.booking_date_time,
            booking.amount_paid,
            booking.currency_paid,
        )

        notification_created = True
        try:
            self.vendors.add_notification(
                vendor_id=vendor.id,
                place_id=booking.place_id,
                booking_id=booking.id,
                type=NEW_BOOKING,
                title=title,
                body=body,
            )
        except StoreUnavailableError:
            notification_created = False
            logger.error("Failed to insert vendor notification for booking %s", booking.id)

        if not vendor.push_token or self.push_client is None:
            return DispatchReport(notification_created=notification_created)

        result = self.push_client.send(
            vendor.push_token,
            title,
            body,
            {"type": NEW_BOOKING, "bookingId": booking.id, "placeId": booking.place_id},
        )
        if not result.success:
            logger.warning("Push notification failed: %s", result.error)

        return DispatchReport(
            notification_created=notification_created,
            push_attempted=True,
            push_sent=result.success,
        )
