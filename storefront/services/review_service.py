"""
Product review service
"""

import logging
from typing import List, Optional

from storefront.models import Review, parse_payload
from storefront.services.api_client import ApiClient
from storefront.services.query_cache import QueryCache
from storefront.services.session import Session, require_authenticated
from storefront.utils.constants import CacheSettings
from storefront.utils.error_handler import ApiError

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def _check_rating(rating: int) -> None:
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ApiError.invalid(f"Rating must be between {MIN_RATING} and {MAX_RATING}", rating=rating)


class ReviewService:
    """Reviews are public to read and require login to write"""

    def __init__(self, api: ApiClient, cache: QueryCache):
        self.api = api
        self.cache = cache

    async def list_reviews(self, product_id: str) -> List[Review]:
        async def fetch() -> List[Review]:
            response = await self.api.get(f"/products/{product_id}/reviews")
            return parse_payload(lambda data: [Review.from_dict(item) for item in data or []], response.data)

        return await self.cache.get_or_fetch(CacheSettings.PUBLIC_SCOPE, f"reviews:{product_id}", fetch)

    async def create_review(self, session: Session, product_id: str, rating: int, comment: str = "") -> Review:
        require_authenticated(session)
        _check_rating(rating)
        response = await self.api.post(
            "/reviews",
            session=session,
            json={"productId": product_id, "rating": rating, "comment": comment.strip()},
        )
        self.cache.invalidate_for("review.create", session.cache_scope)
        logger.info("User %s reviewed product %s (%s stars)", session.user.id, product_id, rating)
        return parse_payload(Review.from_dict, response.data)

    async def update_review(
        self, session: Session, review_id: str, rating: Optional[int] = None, comment: Optional[str] = None
    ) -> Review:
        require_authenticated(session)
        payload = {}
        if rating is not None:
            _check_rating(rating)
            payload["rating"] = rating
        if comment is not None:
            payload["comment"] = comment.strip()
        response = await self.api.patch(f"/reviews/{review_id}", session=session, json=payload)
        self.cache.invalidate_for("review.update", session.cache_scope)
        return parse_payload(Review.from_dict, response.data)

    async def delete_review(self, session: Session, review_id: str) -> None:
        require_authenticated(session)
        await self.api.delete(f"/reviews/{review_id}", session=session)
        self.cache.invalidate_for("review.delete", session.cache_scope)
