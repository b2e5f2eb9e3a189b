from typing import Any, Dict, List, Optional

from marketplace_client.api.client import ApiClient
from marketplace_client.api.envelope import unwrap, unwrap_list
from marketplace_client.models.schemas import Identifier, Review


class ReviewService:
    def __init__(self, api: ApiClient):
        self.api = api

    async def create_review(self, project_id: Identifier, data: Dict[str, Any]) -> Review:
        body = await self.api.post(f"/projects/{project_id}/reviews", json=data)
        return Review.model_validate(unwrap(body))

    async def user_reviews(self, user_id: Identifier) -> List[Review]:
        body = await self.api.get(f"/freelancers/{user_id}/reviews")
        return [Review.model_validate(raw) for raw in unwrap_list(body) if isinstance(raw, dict)]

    async def project_review(self, project_id: Identifier) -> Optional[Review]:
        payload = unwrap(await self.api.get(f"/projects/{project_id}/review"))
        if isinstance(payload, dict) and payload.get("id") is not None:
            return Review.model_validate(payload)
        return None

    async def can_review(self, project_id: Identifier) -> bool:
        payload = unwrap(await self.api.get(f"/projects/{project_id}/can-review"))
        if isinstance(payload, dict):
            return bool(payload.get("can_review", False))
        return bool(payload)

    async def update_review(self, review_id: Identifier, data: Dict[str, Any]) -> Any:
        return unwrap(await self.api.put(f"/reviews/{review_id}", json=data))

    async def delete_review(self, review_id: Identifier) -> Any:
        return unwrap(await self.api.delete(f"/reviews/{review_id}"))
