"""
HTTP-level tests for reviews, provider ratings, health and metrics.
"""

from homeservice.auth import create_actor_token
from homeservice.core.actor import Actor
from homeservice.core.enums import BookingStatus


def _auth(actor: Actor) -> dict:
    return {"Authorization": f"Bearer {create_actor_token(actor)}"}


class TestReviewRoutes:
    def test_submit_review_and_read_rating(self, client, completed_booking, provider, customer):
        response = client.post(
            f"/bookings/{completed_booking.id}/reviews",
            json={"rating": 4, "comment": "Quick and clean"},
            headers=_auth(customer),
        )

        assert response.status_code == 201
        review = response.json()
        assert review["provider_id"] == provider.id
        assert review["rating"] == 4

        rating = client.get(f"/providers/{provider.id}/rating")
        assert rating.status_code == 200
        assert rating.json()["average_rating"] == 4.0
        assert rating.json()["total_reviews"] == 1
        assert rating.json()["rating_pending"] is False

        listing = client.get(f"/providers/{provider.id}/reviews").json()
        assert listing["count"] == 1
        assert client.get(f"/reviews/{review['id']}").status_code == 200

    def test_duplicate_review_is_409(self, client, completed_booking, customer):
        body = {"rating": 5, "comment": "Great"}
        client.post(f"/bookings/{completed_booking.id}/reviews", json=body, headers=_auth(customer))

        response = client.post(
            f"/bookings/{completed_booking.id}/reviews", json=body, headers=_auth(customer)
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "DUPLICATE_REVIEW"

    def test_review_before_completion_is_422(self, client, make_booking, provider, customer):
        booking = make_booking(provider, status=BookingStatus.CONFIRMED)

        response = client.post(
            f"/bookings/{booking.id}/reviews",
            json={"rating": 5, "comment": "Early"},
            headers=_auth(customer),
        )

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "NOT_COMPLETED"

    def test_review_by_someone_else_is_403(self, client, completed_booking, other_customer):
        response = client.post(
            f"/bookings/{completed_booking.id}/reviews",
            json={"rating": 5, "comment": "Not mine"},
            headers=_auth(other_customer),
        )
        assert response.status_code == 403

    def test_out_of_range_rating_is_422(self, client, completed_booking, customer):
        response = client.post(
            f"/bookings/{completed_booking.id}/reviews",
            json={"rating": 6, "comment": "Off the scale"},
            headers=_auth(customer),
        )
        assert response.status_code == 422

    def test_update_and_delete(self, client, completed_booking, provider, customer):
        created = client.post(
            f"/bookings/{completed_booking.id}/reviews",
            json={"rating": 2, "comment": "Late"},
            headers=_auth(customer),
        ).json()

        updated = client.patch(f"/reviews/{created['id']}", json={"rating": 4}, headers=_auth(customer))
        assert updated.status_code == 200
        assert client.get(f"/providers/{provider.id}/rating").json()["average_rating"] == 4.0

        deleted = client.delete(f"/reviews/{created['id']}", headers=_auth(customer))
        assert deleted.status_code == 204
        rating = client.get(f"/providers/{provider.id}/rating").json()
        assert rating["average_rating"] == 0.0
        assert rating["total_reviews"] == 0

    def test_unknown_review_and_provider(self, client):
        assert client.get("/reviews/missing").status_code == 404
        assert client.get("/providers/missing/rating").status_code == 404
        assert client.get("/providers/missing/reviews").status_code == 404


class TestHealthAndMetrics:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["checks"] == {"database": True}

    def test_metrics_exposes_prometheus_text(self, client, provider, customer, completed_booking):
        client.post(
            f"/bookings/{completed_booking.id}/reviews",
            json={"rating": 5, "comment": "Great"},
            headers=_auth(customer),
        )

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
        assert "homeservice_service_operation_duration_seconds" in response.text
        assert "homeservice_rating_recompute_total" in response.text
