# backend/homeservice/services/booking_state_machine.py
"""
Booking status graph and role-scoped field mutation rights.

Two entry points:
- ``filter_update`` narrows a free-form update request to the fields the
  actor's role may change, silently dropping the rest (PATCH semantics).
- ``check_transition`` validates a single explicit action and raises instead
  of dropping (confirm/complete/cancel endpoints).

Neither touches the database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from ..core.enums import BookingRole, BookingStatus, PaymentStatus
from ..core.exceptions import InvalidTransitionException, UnauthorizedException

STATUS_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    BookingStatus.PENDING.value: frozenset(
        {BookingStatus.CONFIRMED.value, BookingStatus.CANCELLED.value}
    ),
    BookingStatus.CONFIRMED.value: frozenset(
        {BookingStatus.COMPLETED.value, BookingStatus.CANCELLED.value}
    ),
    BookingStatus.COMPLETED.value: frozenset(),
    BookingStatus.CANCELLED.value: frozenset(),
}

PAYMENT_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    PaymentStatus.PENDING.value: frozenset({PaymentStatus.PAID.value}),
    PaymentStatus.PAID.value: frozenset({PaymentStatus.REFUNDED.value}),
    PaymentStatus.REFUNDED.value: frozenset(),
}

# Fields that identify the booking; nobody rewrites them, admins included.
IMMUTABLE_FIELDS: FrozenSet[str] = frozenset({"id", "customer_id", "provider_id", "created_at"})

ADMIN_FIELDS: FrozenSet[str] = frozenset(
    {
        "category_id",
        "subcategory_id",
        "booking_date",
        "start_time",
        "duration_hours",
        "estimated_hours",
        "total_price",
        "status",
        "payment_status",
        "notes",
        "customer_full_name",
        "customer_phone",
        "customer_location",
        "cancellation_reason",
    }
)

ROLE_FIELDS: Dict[BookingRole, FrozenSet[str]] = {
    BookingRole.OWNING_CUSTOMER: frozenset({"notes", "status"}),
    BookingRole.FULFILLING_PROVIDER: frozenset({"status", "payment_status"}),
    BookingRole.ADMIN: ADMIN_FIELDS,
    BookingRole.STRANGER: frozenset(),
}

CUSTOMER_STATUS_TARGETS: FrozenSet[str] = frozenset({BookingStatus.CANCELLED.value})

STATUS_TIMESTAMP_FIELDS: Dict[str, str] = {
    BookingStatus.CONFIRMED.value: "confirmed_at",
    BookingStatus.COMPLETED.value: "completed_at",
    BookingStatus.CANCELLED.value: "cancelled_at",
}


@dataclass
class UpdateDecision:
    """Result of narrowing an update request to what a role may apply."""

    values: Dict[str, Any] = field(default_factory=dict)
    dropped: List[str] = field(default_factory=list)

    @property
    def status_change(self) -> Optional[str]:
        return self.values.get("status")


def _value(v: Any) -> Any:
    return getattr(v, "value", v)


def allowed_status_targets(role: BookingRole, current_status: str) -> FrozenSet[str]:
    """Statuses ``role`` may move a booking to from ``current_status``."""
    if role is BookingRole.ADMIN:
        return frozenset(s.value for s in BookingStatus) - {current_status}
    reachable = STATUS_TRANSITIONS.get(current_status, frozenset())
    if role is BookingRole.FULFILLING_PROVIDER:
        return reachable
    if role is BookingRole.OWNING_CUSTOMER:
        return reachable & CUSTOMER_STATUS_TARGETS
    return frozenset()


def allowed_payment_targets(role: BookingRole, current_payment_status: str) -> FrozenSet[str]:
    if role is BookingRole.ADMIN:
        return frozenset(s.value for s in PaymentStatus) - {current_payment_status}
    if role is BookingRole.FULFILLING_PROVIDER:
        return PAYMENT_TRANSITIONS.get(current_payment_status, frozenset())
    return frozenset()


def filter_update(role: BookingRole, booking: Any, requested: Mapping[str, Any]) -> UpdateDecision:
    """
    Narrow ``requested`` to the subset ``role`` may apply to ``booking``.

    Raises:
        UnauthorizedException: the actor has no relationship to the booking
    """
    if role is BookingRole.STRANGER:
        raise UnauthorizedException(
            "You are not allowed to modify this booking",
            details={"booking_id": getattr(booking, "id", None)},
        )

    decision = UpdateDecision()
    permitted = ROLE_FIELDS[role]

    for name, raw in requested.items():
        value = _value(raw)
        if name not in permitted:
            decision.dropped.append(name)
            continue

        if name == "status":
            if value == booking.status:
                continue
            if value not in allowed_status_targets(role, booking.status):
                decision.dropped.append(name)
                continue
        elif name == "payment_status":
            if value == booking.payment_status:
                continue
            if value not in allowed_payment_targets(role, booking.payment_status):
                decision.dropped.append(name)
                continue

        decision.values[name] = value

    return decision


def check_transition(role: BookingRole, current_status: str, target_status: str) -> None:
    """
    Strict check for an explicit status action.

    Raises:
        UnauthorizedException: the actor has no relationship to the booking
        InvalidTransitionException: the target is not reachable for this role
    """
    if role is BookingRole.STRANGER:
        raise UnauthorizedException("You are not allowed to modify this booking")
    if target_status not in allowed_status_targets(role, current_status):
        raise InvalidTransitionException(current_status, target_status)


def transition_timestamps(target_status: str, now: Optional[datetime] = None) -> Dict[str, datetime]:
    """Entry timestamp column(s) to stamp when a booking enters ``target_status``."""
    column = STATUS_TIMESTAMP_FIELDS.get(target_status)
    if column is None:
        return {}
    return {column: now or datetime.now(timezone.utc)}
