# src/spotnere/infrastructure/repositories/booking_repository.py

from contextlib import contextmanager
from datetime import datetime, timezone
import logging
from typing import Any, Mapping

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from spotnere.domain.exceptions import BookingNotFoundError, StoreUnavailableError
from spotnere.domain.state_machine import PaymentStatus
from spotnere.infrastructure.db.models import Booking

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@contextmanager
def store_errors(db: Session, action: str):
    """Rolls back and re-raises driver/ORM failures as StoreUnavailableError."""
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Store failure while trying to %s", action)
        raise StoreUnavailableError(f"Failed to {action}") from exc


class BookingRepository:
    """
    CRUD over the bookings table. Every write commits straight away so a
    terminal status is durable before any side effect runs.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(
        self,
        booking_id: str,
    ) -> Booking | None:
        stmt = (
            select(Booking)
            .where(Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        with store_errors(self.db, "load booking"):
            return self.db.execute(stmt).scalar_one_or_none()

    def find_by_gateway_order_id(
        self,
        order_id: str,
    ) -> Booking | None:
        stmt = (
            select(Booking)
            .where(Booking.gateway_order_id == order_id)
            .execution_options(populate_existing=True)
        )
        with store_errors(self.db, "look up booking by order id"):
            return self.db.execute(stmt).scalars().first()

    def list_for_user(self, user_id: str) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.user_id == user_id)
            .order_by(Booking.booking_date_time.desc())
        )
        with store_errors(self.db, "list bookings"):
            return list(self.db.execute(stmt).scalars().all())

    def insert(self, booking: Booking) -> Booking:
        with store_errors(self.db, "create booking"):
            self.db.add(booking)
            self.db.commit()
            self.db.refresh(booking)
        return booking

    def update_by_id(
        self,
        booking_id: str,
        patch: Mapping[str, Any],
    ) -> Booking:
        """Merge-patch; raises BookingNotFoundError when no row matches."""
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id)
            .values(**patch, updated_at=_utc_now())
        )
        with store_errors(self.db, "update booking"):
            result = self.db.execute(stmt)
            if result.rowcount == 0:
                self.db.rollback()
                raise BookingNotFoundError(booking_id)
            self.db.commit()
        return self.get_by_id(booking_id)

    def update_if_pending(
        self,
        booking_id: str,
        patch: Mapping[str, Any],
    ) -> bool:
        """
        UPDATE ... WHERE id = :id AND payment_status = 'PENDING'.
        Returns True only if this call changed the row.
        """
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id)
            .where(Booking.payment_status == PaymentStatus.PENDING)
            .values(**patch, updated_at=_utc_now())
        )
        with store_errors(self.db, "update booking status"):
            result = self.db.execute(stmt)
            self.db.commit()
        return result.rowcount == 1

    def delete_by_id(self, booking_id: str, only_if_pending: bool = False) -> bool:
        stmt = delete(Booking).where(Booking.id == booking_id)
        if only_if_pending:
            stmt = stmt.where(Booking.payment_status == PaymentStatus.PENDING)
        with store_errors(self.db, "delete booking"):
            result = self.db.execute(stmt)
            self.db.commit()
        return result.rowcount == 1
