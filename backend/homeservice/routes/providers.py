# backend/homeservice/routes/providers.py
"""Public provider read endpoints: reviews and the stored rating aggregate."""

from fastapi import APIRouter, Depends, Query

from ..api.dependencies import get_review_service
from ..core.exceptions import DomainException, handle_domain_exception
from ..schemas.provider import ProviderRatingResponse
from ..schemas.review import ReviewListResponse, ReviewResponse
from ..services.review_service import ReviewService

router = APIRouter(prefix="/providers", tags=["providers"])


@router.get("/{provider_id}/reviews", response_model=ReviewListResponse)
def list_provider_reviews(
    provider_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    service: ReviewService = Depends(get_review_service),
) -> ReviewListResponse:
    try:
        reviews = service.list_provider_reviews(provider_id, skip=skip, limit=limit)
        items = [ReviewResponse.model_validate(r) for r in reviews]
        return ReviewListResponse(reviews=items, count=len(items))
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{provider_id}/rating", response_model=ProviderRatingResponse)
def get_provider_rating(
    provider_id: str,
    service: ReviewService = Depends(get_review_service),
) -> ProviderRatingResponse:
    try:
        snapshot = service.get_provider_rating(provider_id)
        return ProviderRatingResponse(
            provider_id=snapshot.provider_id,
            average_rating=snapshot.average_rating,
            total_reviews=snapshot.total_reviews,
            rating_updated_at=snapshot.updated_at,
            rating_pending=snapshot.pending_recompute,
        )
    except DomainException as e:
        handle_domain_exception(e)
