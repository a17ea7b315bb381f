# backend/homeservice/services/booking_service.py
"""
Booking Service for HomeService

Handles booking creation against provider capabilities, the status state
machine with role-scoped field rights, and deletion policy.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.actor import Actor
from ..core.enums import ActorKind, BookingRole, BookingStatus
from ..core.exceptions import (
    CapabilityMismatchException,
    IntegrityConstraintException,
    InvalidTransitionException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)
from ..models.booking import Booking
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.booking_repository import BookingRepository
from ..repositories.provider_repository import ProviderRepository
from ..schemas.booking import BookingCreate
from .base import BaseService
from .booking_state_machine import check_transition, filter_update, transition_timestamps
from .capability_matcher import find_matching_service
from .rating_aggregator import RatingAggregator

logger = logging.getLogger(__name__)

MIN_HOURS = Decimal("1")
CENTS = Decimal("0.01")

# Customers may remove a booking only before work is agreed or once it is void.
CUSTOMER_DELETABLE_STATUSES = frozenset({BookingStatus.PENDING.value, BookingStatus.CANCELLED.value})


def _finite_decimal(value: Any, field: str) -> Decimal:
    """Coerce an amount to Decimal, rejecting NaN, infinities and garbage."""
    try:
        amount = Decimal(value) if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationException(f"{field} must be a number", details={"field": field}) from exc
    if not amount.is_finite():
        raise ValidationException(f"{field} must be a finite number", details={"field": field})
    return amount


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Every mutation resolves the actor's role against the booking itself;
    callers never pass a role.
    """

    def __init__(
        self,
        db: Session,
        rating_aggregator: Optional[RatingAggregator] = None,
    ):
        super().__init__(db)
        self.repository = BookingRepository(db)
        self.provider_repository = ProviderRepository(db)
        self.rating_aggregator = rating_aggregator or RatingAggregator(db)

    # ------------------------------------------------------------------ create

    @BaseService.measure_operation("create_booking")
    def create_booking(self, actor: Actor, provider_id: str, booking_data: BookingCreate) -> Booking:
        """
        Create a pending booking after checking the provider offers the
        requested category/subcategory.

        Raises:
            ValidationException: missing category, bad hours or price
            UnauthorizedException: actor may not book for this party
            NotFoundException: provider does not exist
            CapabilityMismatchException: provider does not offer the selector
        """
        customer_id = self._resolve_customer_id(actor, provider_id, booking_data)

        if not booking_data.category_id:
            raise ValidationException("Category is required", details={"field": "category_id"})

        duration, estimated = self._resolve_hours(booking_data.duration_hours, booking_data.estimated_hours)

        provider = self.provider_repository.get_by_id(provider_id)
        if provider is None:
            raise NotFoundException("Provider not found", details={"provider_id": provider_id})

        # Always evaluated against the provider as loaded for this request.
        service = find_matching_service(
            provider.services or [], booking_data.category_id, booking_data.subcategory_id
        )
        if service is None:
            self.logger.info(
                "Booking rejected: capability mismatch",
                extra={
                    "provider_id": provider_id,
                    "category_id": booking_data.category_id,
                    "subcategory_id": booking_data.subcategory_id,
                },
            )
            raise CapabilityMismatchException(
                provider_id, booking_data.category_id, booking_data.subcategory_id
            )

        total_price = booking_data.total_price
        if total_price is None:
            total_price = (Decimal(service.hourly_rate) * estimated).quantize(CENTS, rounding=ROUND_HALF_UP)
        elif _finite_decimal(total_price, "total_price") < 0:
            raise ValidationException("Total price cannot be negative", details={"field": "total_price"})

        details = booking_data.user_details
        with self.transaction():
            booking = self.repository.create(
                customer_id=customer_id,
                provider_id=provider.id,
                category_id=booking_data.category_id,
                subcategory_id=booking_data.subcategory_id,
                booking_date=booking_data.booking_date,
                start_time=booking_data.start_time,
                duration_hours=duration,
                estimated_hours=estimated,
                total_price=_finite_decimal(total_price, "total_price"),
                status=BookingStatus.PENDING.value,
                notes=booking_data.notes,
                customer_full_name=details.full_name,
                customer_phone=details.phone_number,
                customer_location=details.location,
            )

        self.logger.info(
            "Booking created",
            extra={
                "booking_id": booking.id,
                "provider_id": booking.provider_id,
                "customer_id": booking.customer_id,
                "actor": str(actor),
            },
        )
        return booking

    def _resolve_customer_id(self, actor: Actor, provider_id: str, booking_data: BookingCreate) -> str:
        if actor.kind is ActorKind.CUSTOMER:
            if booking_data.customer_id and booking_data.customer_id != actor.id:
                raise UnauthorizedException("Customers can only book for themselves")
            return actor.id
        if actor.kind is ActorKind.PROVIDER:
            if provider_id != actor.id:
                raise UnauthorizedException("Providers can only create bookings for themselves")
            if not booking_data.customer_id:
                raise ValidationException(
                    "customer_id is required when a provider creates a booking",
                    details={"field": "customer_id"},
                )
            return booking_data.customer_id
        if actor.kind is ActorKind.ADMIN:
            if not booking_data.customer_id:
                raise ValidationException(
                    "customer_id is required when an admin creates a booking",
                    details={"field": "customer_id"},
                )
            return booking_data.customer_id
        raise UnauthorizedException("Unknown actor")

    @staticmethod
    def _resolve_hours(
        duration: Optional[Decimal], estimated: Optional[Decimal]
    ) -> Tuple[Decimal, Decimal]:
        """Derive duration and estimated hours from each other."""
        if duration is None and estimated is None:
            raise ValidationException(
                "Either duration_hours or estimated_hours is required",
                details={"field": "duration_hours"},
            )
        if duration is None:
            duration = estimated
        elif estimated is None:
            estimated = duration
        elif _finite_decimal(duration, "duration_hours") != _finite_decimal(
            estimated, "estimated_hours"
        ):
            raise ValidationException(
                "duration_hours and estimated_hours must match",
                details={"duration_hours": str(duration), "estimated_hours": str(estimated)},
            )
        value = _finite_decimal(duration, "duration_hours")
        if value < MIN_HOURS:
            raise ValidationException(
                "Booking must be at least 1 hour", details={"field": "duration_hours"}
            )
        return value, value

    # ------------------------------------------------------------------- reads

    @BaseService.measure_operation("get_booking")
    def get_booking(self, actor: Actor, booking_id: str) -> Booking:
        booking = self._get_or_404(booking_id)
        if actor.role_for(booking) is BookingRole.STRANGER:
            raise UnauthorizedException("You do not have access to this booking")
        return booking

    @BaseService.measure_operation("list_bookings")
    def list_bookings(
        self,
        actor: Actor,
        *,
        customer_id: Optional[str] = None,
        provider_id: Optional[str] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Booking]:
        """List bookings visible to the actor. Non-admins only ever see their own."""
        if actor.kind is ActorKind.CUSTOMER:
            if customer_id and customer_id != actor.id:
                raise UnauthorizedException("Customers can only list their own bookings")
            customer_id = actor.id
        elif actor.kind is ActorKind.PROVIDER:
            if provider_id and provider_id != actor.id:
                raise UnauthorizedException("Providers can only list their own bookings")
            provider_id = actor.id

        return self.repository.list_bookings(
            customer_id=customer_id,
            provider_id=provider_id,
            status=status,
            skip=skip,
            limit=limit,
        )

    # ----------------------------------------------------------------- updates

    @BaseService.measure_operation("update_booking_status")
    def update_booking_status(
        self, actor: Actor, booking_id: str, requested_fields: Mapping[str, Any]
    ) -> Booking:
        """
        Apply the subset of ``requested_fields`` the actor may change.

        Disallowed fields (including unreachable status values) are dropped,
        not rejected. An actor with no relationship to the booking is
        rejected outright with nothing applied.
        """
        booking = self._get_or_404(booking_id)
        role = actor.role_for(booking)
        decision = filter_update(role, booking, requested_fields)

        for field_name in decision.dropped:
            prometheus_metrics.record_booking_field_dropped(role.value, field_name)
        if decision.dropped:
            self.logger.debug(
                "Dropped booking fields outside role rights",
                extra={
                    "booking_id": booking.id,
                    "role": role.value,
                    "dropped": sorted(decision.dropped),
                },
            )

        if not decision.values:
            return booking

        values = dict(decision.values)
        if role is BookingRole.ADMIN:
            self._validate_admin_values(values)
        return self._apply(booking, values)

    @staticmethod
    def _validate_admin_values(values: Dict[str, Any]) -> None:
        """Admins may rewrite schedule and price; keep them within the booking's constraints."""
        if "total_price" in values:
            price = _finite_decimal(values["total_price"], "total_price")
            if price < 0:
                raise ValidationException("Total price cannot be negative", details={"field": "total_price"})
            values["total_price"] = price

        duration = values.get("duration_hours")
        estimated = values.get("estimated_hours")
        if duration is None and estimated is None:
            return
        if "duration_hours" in values and "estimated_hours" in values and duration != estimated:
            raise ValidationException("duration_hours and estimated_hours must match")
        hours = _finite_decimal(duration if duration is not None else estimated, "duration_hours")
        if hours < MIN_HOURS:
            raise ValidationException("Booking must be at least 1 hour")
        values["duration_hours"] = hours
        values["estimated_hours"] = hours

    @BaseService.measure_operation("confirm_booking")
    def confirm_booking(self, actor: Actor, booking_id: str) -> Booking:
        return self._transition(actor, booking_id, BookingStatus.CONFIRMED.value)

    @BaseService.measure_operation("complete_booking")
    def complete_booking(self, actor: Actor, booking_id: str) -> Booking:
        return self._transition(actor, booking_id, BookingStatus.COMPLETED.value)

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(self, actor: Actor, booking_id: str, reason: Optional[str] = None) -> Booking:
        extra = {"cancellation_reason": reason} if reason else {}
        return self._transition(actor, booking_id, BookingStatus.CANCELLED.value, extra)

    def _transition(
        self,
        actor: Actor,
        booking_id: str,
        target_status: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Booking:
        booking = self._get_or_404(booking_id)
        check_transition(actor.role_for(booking), booking.status, target_status)
        values: Dict[str, Any] = {"status": target_status, **(extra or {})}
        return self._apply(booking, values)

    def _apply(self, booking: Booking, values: Dict[str, Any]) -> Booking:
        """
        Write ``values``, guarded by the states they were checked against.

        A status or payment change only lands if that field still holds the
        value the decision was made on; other fields are written as-is.
        """
        previous_status = booking.status
        new_status = values.get("status")
        expected_status = previous_status if "status" in values else None
        expected_payment_status = booking.payment_status if "payment_status" in values else None
        now = datetime.now(timezone.utc)
        if new_status and new_status != previous_status:
            values.update(transition_timestamps(new_status, now))
        values["updated_at"] = now

        with self.transaction():
            try:
                applied = self.repository.apply_update_if_status(
                    booking.id,
                    expected_status,
                    values,
                    expected_payment_status=expected_payment_status,
                )
            except IntegrityConstraintException as exc:
                raise ValidationException(
                    "Booking update violates a booking constraint",
                    details={"fields": sorted(values)},
                ) from exc
            if not applied:
                if self.repository.get_by_id(booking.id) is None:
                    raise NotFoundException("Booking not found", details={"booking_id": booking.id})
                current = self.repository.reload(booking)
                raise InvalidTransitionException(
                    current.status,
                    new_status or current.status,
                    message="Booking status changed while the update was in flight",
                )

        self.repository.reload(booking)
        if new_status and new_status != previous_status:
            self.logger.info(
                "Booking status changed",
                extra={"booking_id": booking.id, "from": previous_status, "to": new_status},
            )
        return booking

    # ------------------------------------------------------------------ delete

    @BaseService.measure_operation("delete_booking")
    def delete_booking(self, actor: Actor, booking_id: str) -> None:
        """
        Delete a booking.

        Owning customers may delete pending or cancelled bookings. Admins may
        delete any booking; a review attached to it goes with it and the
        provider's rating is recomputed.
        """
        booking = self._get_or_404(booking_id)
        role = actor.role_for(booking)

        if role is BookingRole.OWNING_CUSTOMER:
            if booking.status not in CUSTOMER_DELETABLE_STATUSES:
                raise InvalidTransitionException(
                    booking.status,
                    "deleted",
                    message=f"Cannot delete a {booking.status} booking",
                )
        elif role is not BookingRole.ADMIN:
            raise UnauthorizedException("You are not allowed to delete this booking")

        provider_id = booking.provider_id
        had_review = booking.review is not None

        with self.transaction():
            if had_review:
                self.rating_aggregator.enqueue_recompute(
                    provider_id, "booking_deleted", booking_id=booking.id
                )
            self.repository.delete(booking.id)

        self.logger.info(
            "Booking deleted",
            extra={"booking_id": booking_id, "actor": str(actor), "had_review": had_review},
        )
        if had_review:
            self.rating_aggregator.recompute_provider_rating(provider_id)

    # ----------------------------------------------------------------- helpers

    def _get_or_404(self, booking_id: str) -> Booking:
        booking = self.repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking
