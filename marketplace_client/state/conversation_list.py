import asyncio
import logging
from typing import Callable, List, Optional

from marketplace_client.core.errors import ApiError
from marketplace_client.models.schemas import ConversationSummary
from marketplace_client.services.messages import MessageService

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 30.0 # seconds


class ConversationListState:
    """
    The inbox: conversation rows plus the unread badge, refreshed on a timer.

    Use it as an async context manager (or call start()/stop()) so the
    polling task is cancelled when the screen goes away.
    """

    def __init__(
        self,
        message_service: MessageService,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.message_service = message_service
        self.poll_interval = poll_interval
        self._on_change = on_change
        self.conversations: List[ConversationSummary] = []
        self.unread_count = 0
        self.loading = False
        self._task: Optional[asyncio.Task] = None

    @property
    def polling(self) -> bool:
        return self._task is not None and not self._task.done()

    async def load_conversations(self) -> None:
        self.loading = True
        try:
            self.conversations = await self.message_service.conversations()
        except ApiError as e:
            logger.error("Error loading conversations: %r", e)
            self.conversations = []
        finally:
            self.loading = False

    async def load_unread_count(self) -> None:
        try:
            self.unread_count = await self.message_service.unread_count()
        except ApiError as e:
            logger.error("Error loading unread count, summing conversations instead: %r", e)
            self.unread_count = sum(conv.unread_count for conv in self.conversations)

    async def refresh(self) -> None:
        await self.load_conversations()
        await self.load_unread_count()
        if self._on_change:
            self._on_change()

    async def _poll(self) -> None:
        while True:
            try:
                await self.refresh()
            except Exception:
                # One bad refresh must not end the polling task
                logger.exception("Conversation list refresh failed")
            await asyncio.sleep(self.poll_interval)

    def start(self) -> asyncio.Task:
        """Refresh now and then every poll_interval seconds. Needs a running loop."""
        if not self.polling:
            self._task = asyncio.get_running_loop().create_task(self._poll())
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def __aenter__(self) -> "ConversationListState":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    def search(self, query: str) -> List[ConversationSummary]:
        needle = query.strip().lower()
        if not needle:
            return list(self.conversations)
        return [
            conv for conv in self.conversations
            if needle in conv.project_title.lower()
            or needle in conv.other_user.name.lower()
            or needle in conv.last_message.text.lower()
        ]
