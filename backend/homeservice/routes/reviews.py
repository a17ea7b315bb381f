# backend/homeservice/routes/reviews.py
from fastapi import APIRouter, Body, Depends, Response, status

from ..api.dependencies import get_current_actor, get_review_service
from ..core.actor import Actor
from ..core.exceptions import DomainException, handle_domain_exception
from ..schemas.review import ReviewCreate, ReviewResponse, ReviewUpdate
from ..services.review_service import ReviewService

router = APIRouter(tags=["reviews"])


@router.post(
    "/bookings/{booking_id}/reviews",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_review(
    booking_id: str,
    payload: ReviewCreate = Body(...),
    actor: Actor = Depends(get_current_actor),
    service: ReviewService = Depends(get_review_service),
) -> ReviewResponse:
    try:
        review = service.create_review(
            actor,
            booking_id,
            rating=payload.rating,
            comment=payload.comment,
            provider_id=payload.provider_id,
        )
        return ReviewResponse.model_validate(review)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/reviews/{review_id}", response_model=ReviewResponse)
def get_review(
    review_id: str,
    service: ReviewService = Depends(get_review_service),
) -> ReviewResponse:
    try:
        return ReviewResponse.model_validate(service.get_review(review_id))
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/reviews/{review_id}", response_model=ReviewResponse)
def update_review(
    review_id: str,
    payload: ReviewUpdate = Body(...),
    actor: Actor = Depends(get_current_actor),
    service: ReviewService = Depends(get_review_service),
) -> ReviewResponse:
    try:
        review = service.update_review(
            actor, review_id, rating=payload.rating, comment=payload.comment
        )
        return ReviewResponse.model_validate(review)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("/reviews/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_review(
    review_id: str,
    actor: Actor = Depends(get_current_actor),
    service: ReviewService = Depends(get_review_service),
) -> Response:
    try:
        service.delete_review(actor, review_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except DomainException as e:
        handle_domain_exception(e)
