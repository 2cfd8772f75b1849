# src/spotnere/infrastructure/repositories/vendor_repository.py

from sqlalchemy import select
from sqlalchemy.orm import Session

from spotnere.infrastructure.db.models import Vendor, VendorNotification
from spotnere.infrastructure.repositories.booking_repository import store_errors


class VendorRepository:

    def __init__(self, db: Session):
        self.db = db

    def find_by_place_id(self, place_id: str) -> Vendor | None:
        stmt = select(Vendor).where(Vendor.place_id == place_id)
        with store_errors(self.db, "look up vendor"):
            return self.db.execute(stmt).scalar_one_or_none()

    def add_notification(
        self,
        vendor_id: str,
        place_id: str,
        booking_id: str,
        type: str,
        title: str,
        body: str,
    ) -> VendorNotification:
        notification = VendorNotification(
            vendor_id=vendor_id,
            place_id=place_id,
            booking_id=booking_id,
            type=type,
            title=title,
            body=body,
        )
        with store_errors(self.db, "insert vendor notification"):
            self.db.add(notification)
            self.db.commit()
            self.db.refresh(notification)
        return notification

    def list_for_booking(self, booking_id: str) -> list[VendorNotification]:
        stmt = (
            select(VendorNotification)
            .where(VendorNotification.booking_id == booking_id)
            .order_by(VendorNotification.created_at)
        )
        with store_errors(self.db, "list vendor notifications"):
            return list(self.db.execute(stmt).scalars().all())
