from typing import List

from marketplace_client.api.client import ApiClient
from marketplace_client.api.envelope import unwrap, unwrap_list
from marketplace_client.models.schemas import Category, Identifier


class CategoryService:
    def __init__(self, api: ApiClient):
        self.api = api

    async def categories(self) -> List[Category]:
        body = await self.api.get("/categories")
        return [Category.model_validate(raw) for raw in unwrap_list(body) if isinstance(raw, dict)]

    async def category(self, category_id: Identifier) -> Category:
        return Category.model_validate(unwrap(await self.api.get(f"/categories/{category_id}")))
