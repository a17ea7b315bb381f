# backend/homeservice/repositories/booking_repository.py
"""
Booking Repository for HomeService

Implements all data access operations for booking management. Status
changes go through a conditional UPDATE so a transition checked against
one status is never written over a different one.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import IntegrityConstraintException, RepositoryException
from ..models.booking import Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def list_bookings(
        self,
        *,
        customer_id: Optional[str] = None,
        provider_id: Optional[str] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Booking]:
        """List bookings filtered by party and status, newest first."""
        query = self.db.query(Booking)
        if customer_id is not None:
            query = query.filter(Booking.customer_id == customer_id)
        if provider_id is not None:
            query = query.filter(Booking.provider_id == provider_id)
        if status is not None:
            query = query.filter(Booking.status == status)
        query = query.order_by(Booking.created_at.desc(), Booking.id.desc()).offset(skip).limit(limit)
        return self._execute_query(query)

    def apply_update_if_status(
        self,
        booking_id: str,
        expected_status: Optional[str],
        values: Dict[str, Any],
        *,
        expected_payment_status: Optional[str] = None,
    ) -> bool:
        """
        Apply ``values`` only if the booking still has ``expected_status``
        (and ``expected_payment_status``). A ``None`` guard is not checked.

        Returns True when exactly one row was updated.
        """
        if not values:
            return True
        stmt = update(Booking).where(Booking.id == booking_id)
        if expected_status is not None:
            stmt = stmt.where(Booking.status == expected_status)
        if expected_payment_status is not None:
            stmt = stmt.where(Booking.payment_status == expected_payment_status)
        try:
            result = self.db.execute(
                stmt.values(**values).execution_options(synchronize_session=False)
            )
            self.db.flush()
            return bool(result.rowcount == 1)
        except IntegrityError as exc:
            self.logger.warning("Booking %s update violated a constraint: %s", booking_id, exc)
            self.db.rollback()
            raise IntegrityConstraintException(f"Integrity constraint violated: {exc}") from exc
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating booking {booking_id}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to update booking: {str(e)}")

    def reload(self, booking: Booking) -> Booking:
        """Refresh a booking instance after a bulk UPDATE."""
        self.db.refresh(booking)
        return booking
