from typing import Any, Dict, List, Optional

from marketplace_client.api.client import ApiClient
from marketplace_client.api.envelope import unwrap, unwrap_list
from marketplace_client.models.schemas import Identifier, Notification


class NotificationService:
    def __init__(self, api: ApiClient):
        self.api = api

    async def notifications(self, params: Optional[Dict[str, Any]] = None) -> List[Notification]:
        body = await self.api.get("/notifications", params=params)
        return [Notification.model_validate(raw) for raw in unwrap_list(body) if isinstance(raw, dict)]

    async def unread_count(self) -> int:
        payload = unwrap(await self.api.get("/notifications/unread-count"))
        if isinstance(payload, dict):
            payload = payload.get("count", 0)
        try:
            return int(payload or 0)
        except (TypeError, ValueError):
            return 0

    async def mark_as_read(self, notification_id: Identifier) -> Any:
        return unwrap(await self.api.put(f"/notifications/{notification_id}/read"))

    async def mark_all_as_read(self) -> Any:
        return unwrap(await self.api.put("/notifications/read-all"))

    async def delete(self, notification_id: Identifier) -> Any:
        return unwrap(await self.api.delete(f"/notifications/{notification_id}"))
