# backend/homeservice/routes/bookings.py
"""
Booking routes - HomeService

Endpoints:
    POST   /providers/{provider_id}/bookings   Create a booking with a provider
    GET    /bookings                           List bookings visible to the caller
    GET    /bookings/{booking_id}              Get booking details
    PATCH  /bookings/{booking_id}              Role-filtered partial update
    POST   /bookings/{booking_id}/confirm      Provider confirms
    POST   /bookings/{booking_id}/complete     Provider completes
    POST   /bookings/{booking_id}/cancel       Customer/provider cancels
    DELETE /bookings/{booking_id}              Delete (customer/admin)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Response, status

from ..api.dependencies import get_booking_service, get_current_actor
from ..core.actor import Actor
from ..core.enums import BookingStatus
from ..core.exceptions import DomainException, handle_domain_exception
from ..schemas.booking import (
    BookingCancel,
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingUpdate,
)
from ..services.booking_service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bookings"])


@router.post(
    "/providers/{provider_id}/bookings",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_booking(
    provider_id: str,
    booking_data: BookingCreate = Body(...),
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Create a booking after checking the provider offers the requested service."""
    try:
        booking = booking_service.create_booking(actor, provider_id, booking_data)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/bookings", response_model=BookingListResponse)
def list_bookings(
    customer_id: Optional[str] = Query(None),
    provider_id: Optional[str] = Query(None),
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingListResponse:
    try:
        bookings = booking_service.list_bookings(
            actor,
            customer_id=customer_id,
            provider_id=provider_id,
            status=status_filter.value if status_filter else None,
            skip=skip,
            limit=limit,
        )
        items = [BookingResponse.model_validate(b) for b in bookings]
        return BookingListResponse(bookings=items, count=len(items))
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: str,
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        return BookingResponse.model_validate(booking_service.get_booking(actor, booking_id))
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/bookings/{booking_id}", response_model=BookingResponse)
def update_booking(
    booking_id: str,
    update_data: BookingUpdate = Body(...),
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """
    Update a booking.

    Fields the caller's role may not change are ignored; the response shows
    the booking as stored.
    """
    try:
        booking = booking_service.update_booking_status(
            actor, booking_id, update_data.requested_fields()
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/bookings/{booking_id}/confirm", response_model=BookingResponse)
def confirm_booking(
    booking_id: str,
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        return BookingResponse.model_validate(booking_service.confirm_booking(actor, booking_id))
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/bookings/{booking_id}/complete", response_model=BookingResponse)
def complete_booking(
    booking_id: str,
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        return BookingResponse.model_validate(booking_service.complete_booking(actor, booking_id))
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: str,
    cancel_data: Optional[BookingCancel] = Body(None),
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = booking_service.cancel_booking(
            actor, booking_id, reason=cancel_data.reason if cancel_data else None
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("/bookings/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_booking(
    booking_id: str,
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> Response:
    try:
        booking_service.delete_booking(actor, booking_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except DomainException as e:
        handle_domain_exception(e)
