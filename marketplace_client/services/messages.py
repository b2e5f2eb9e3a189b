import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from marketplace_client.api.client import ApiClient
from marketplace_client.api.envelope import decode_envelope, unwrap, unwrap_list
from marketplace_client.models.schemas import Attachment, ConversationSummary, Identifier, Message

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _map_rows(rows: List[Any], mapper: Callable[[Dict[str, Any]], T], what: str) -> List[T]:
    """Map backend rows, skipping (and logging) the ones that do not fit the model."""
    mapped: List[T] = []
    for raw in rows:
        if not isinstance(raw, dict):
            logger.warning("Skipping non-object %s row: %r", what, raw)
            continue
        try:
            mapped.append(mapper(raw))
        except (ValueError, TypeError, KeyError) as e:
            logger.warning("Skipping unreadable %s row %r: %s", what, raw.get("id"), e)
    return mapped


class MessageService:
    def __init__(self, api: ApiClient):
        self.api = api

    async def conversations(self) -> List[ConversationSummary]:
        body = await self.api.get("/messages/conversations")
        return _map_rows(unwrap_list(body), ConversationSummary.from_api, "conversation")

    async def project_messages(self, project_id: Identifier) -> List[Message]:
        body = await self.api.get(f"/projects/{project_id}/messages")
        return _map_rows(unwrap_list(body), lambda raw: Message.from_api(raw, project_id), "message")

    async def conversation_messages(self, conversation_id: Identifier) -> List[Message]:
        body = await self.api.get(f"/messages/conversations/{conversation_id}")
        return _map_rows(unwrap_list(body), lambda raw: Message.from_api(raw, conversation_id), "message")

    async def send_message(
        self,
        project_id: Identifier,
        content: str,
        attachments: Optional[Sequence[Attachment]] = None,
    ) -> Dict[str, Any]:
        """
        Post a message and return the raw acknowledged message.

        The acknowledgement may arrive as {"message": ..., "data": {...}} or
        as the bare message. An empty dict means the body carried nothing
        usable and the caller should fall back to a local echo.
        """
        data: Dict[str, Any] = {"content": content}
        if attachments:
            data["attachments"] = [a.model_dump(exclude_none=True) for a in attachments]
        body = await self.api.post(f"/projects/{project_id}/messages", json=data)
        payload = unwrap(body)
        return payload if isinstance(payload, dict) else {}

    async def mark_as_read(self, message_id: Identifier) -> Any:
        return unwrap(await self.api.put(f"/messages/{message_id}/read"))

    async def mark_all_as_read(self, project_id: Identifier) -> Any:
        return unwrap(await self.api.put(f"/projects/{project_id}/messages/read-all"))

    async def mark_conversation_as_read(self, conversation_id: Identifier) -> Any:
        return unwrap(await self.api.put(f"/messages/conversations/{conversation_id}/read-all"))

    async def unread_count(self) -> int:
        """Accepts {"count": n}, {"data": {"count": n}} or a bare number."""
        payload = decode_envelope(await self.api.get("/messages/unread-count")).payload
        if isinstance(payload, dict):
            payload = payload.get("count", 0)
        try:
            return int(payload or 0)
        except (TypeError, ValueError):
            return 0

    async def start_conversation(self, data: Dict[str, Any]) -> Any:
        return unwrap(await self.api.post("/messages/conversations", json=data))
