from typing import Any, Dict, List

from marketplace_client.api.client import ApiClient
from marketplace_client.api.envelope import unwrap, unwrap_list
from marketplace_client.models.schemas import Identifier, Offer


class OfferService:
    def __init__(self, api: ApiClient):
        self.api = api

    async def project_offers(self, project_id: Identifier) -> List[Offer]:
        body = await self.api.get(f"/projects/{project_id}/offers")
        return [Offer.model_validate(raw) for raw in unwrap_list(body) if isinstance(raw, dict)]

    async def submit_offer(self, project_id: Identifier, data: Dict[str, Any]) -> Offer:
        body = await self.api.post(f"/projects/{project_id}/offers", json=data)
        return Offer.model_validate(unwrap(body))

    async def my_offers(self) -> List[Offer]:
        body = await self.api.get("/freelancer/offers")
        return [Offer.model_validate(raw) for raw in unwrap_list(body) if isinstance(raw, dict)]

    async def accept_offer(self, project_id: Identifier, offer_id: Identifier) -> Any:
        return unwrap(await self.api.post(f"/projects/{project_id}/offers/{offer_id}/accept"))

    async def reject_offer(self, offer_id: Identifier) -> Any:
        return unwrap(await self.api.put(f"/offers/{offer_id}/reject"))

    async def update_offer(self, offer_id: Identifier, data: Dict[str, Any]) -> Any:
        return unwrap(await self.api.put(f"/offers/{offer_id}", json=data))

    async def delete_offer(self, offer_id: Identifier) -> Any:
        return unwrap(await self.api.delete(f"/offers/{offer_id}"))
