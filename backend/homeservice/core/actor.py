"""Actor abstraction for callers of the booking core."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .enums import ActorKind, BookingRole


@dataclass(frozen=True)
class Actor:
    """The authenticated party making a request, tagged by role."""

    kind: ActorKind
    id: str

    def __post_init__(self) -> None:
        if not isinstance(self.kind, ActorKind):
            object.__setattr__(self, "kind", ActorKind(self.kind))
        if not self.id:
            raise ValueError("Actor id must not be empty")

    @classmethod
    def customer(cls, actor_id: str) -> "Actor":
        return cls(ActorKind.CUSTOMER, actor_id)

    @classmethod
    def provider(cls, actor_id: str) -> "Actor":
        return cls(ActorKind.PROVIDER, actor_id)

    @classmethod
    def admin(cls, actor_id: str) -> "Actor":
        return cls(ActorKind.ADMIN, actor_id)

    def role_for(self, booking: Any) -> BookingRole:
        """
        Resolve this actor's role relative to a booking (or review).

        Works with any object exposing ``customer_id`` and ``provider_id``.
        Identity only counts when the actor kind matches the reference, so a
        customer id that happens to equal a provider id grants nothing.
        """
        if self.kind is ActorKind.ADMIN:
            return BookingRole.ADMIN
        if self.kind is ActorKind.CUSTOMER:
            if booking.customer_id == self.id:
                return BookingRole.OWNING_CUSTOMER
            return BookingRole.STRANGER
        if self.kind is ActorKind.PROVIDER:
            if booking.provider_id == self.id:
                return BookingRole.FULFILLING_PROVIDER
            return BookingRole.STRANGER
        raise ValueError(f"Unknown actor kind: {self.kind!r}")

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"
