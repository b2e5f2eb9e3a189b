"""
View-state for one open project conversation.

Lifecycle:  IDLE -> LOADING -> READY <-> SENDING

* load() always ends in READY, with an empty list when the fetch fails.
* send() appends a message only after the backend acknowledged it; a
  failed send alerts and leaves the list as it was.
* Auto-scroll on list updates is gated by ScrollFollowState, which is
  recomputed from every scroll event.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, tzinfo
from enum import Enum
from typing import Callable, Iterator, List, Optional, Sequence

from marketplace_client.core.errors import ApiError, describe
from marketplace_client.core.locales import translate
from marketplace_client.models.schemas import (
    Attachment, Conversation, Identifier, Message, ReadState,
)
from marketplace_client.services.messages import MessageService
from marketplace_client.state.formatting import DateGroup, format_relative_time, group_by_date

logger = logging.getLogger(__name__)

NEAR_BOTTOM_THRESHOLD = 100 # pixels


class ConversationPhase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    SENDING = "sending"


@dataclass
class ScrollFollowState:
    is_near_bottom: bool = True


def is_near_bottom(scroll_height: float, scroll_top: float, client_height: float,
                   threshold: float = NEAR_BOTTOM_THRESHOLD) -> bool:
    return scroll_height - scroll_top - client_height < threshold


def _noop(*args) -> None:
    return None


class ConversationViewState:
    def __init__(
        self,
        message_service: MessageService,
        current_user_id: Optional[Identifier] = None,
        scroll_to_bottom: Optional[Callable[[], None]] = None,
        alert: Optional[Callable[[str], None]] = None,
        on_message_sent: Optional[Callable[[Message], None]] = None,
        on_change: Optional[Callable[[], None]] = None,
        language: str = "en",
    ):
        self.message_service = message_service
        self.current_user_id = current_user_id
        self.language = language
        self._scroll_to_bottom = scroll_to_bottom or _noop
        self._alert = alert or _noop
        self._on_message_sent = on_message_sent or _noop
        self._on_change = on_change or _noop

        self.phase = ConversationPhase.IDLE
        self.conversation: Optional[Conversation] = None
        self.scroll = ScrollFollowState()
        self.sending = False
        self.draft = ""
        self.attachments: List[Attachment] = []

    # --- derived state ---

    @property
    def project_id(self) -> Optional[Identifier]:
        return self.conversation.project_id if self.conversation else None

    @property
    def messages(self) -> List[Message]:
        return self.conversation.messages if self.conversation else []

    @property
    def loading(self) -> bool:
        return self.phase == ConversationPhase.LOADING

    def _set_messages(self, messages: List[Message]) -> None:
        participants: List[Identifier] = []
        for candidate in [self.current_user_id] + [m.sender_id for m in messages] + [m.receiver_id for m in messages]:
            if candidate is not None and candidate not in participants:
                participants.append(candidate)
        self.conversation.messages = messages
        self.conversation.participant_ids = participants
        self.conversation.unread_count = sum(
            1 for m in messages if m.read_state == ReadState.UNREAD and m.sender_id != self.current_user_id
        )

    def _changed(self) -> None:
        self._on_change()

    # --- operations ---

    async def load(self, project_id: Optional[Identifier]) -> None:
        """Replace the list with the project's history. Never raises."""
        if not project_id:
            self.conversation = None
            self.phase = ConversationPhase.READY
            self._changed()
            return

        self.conversation = Conversation(id=project_id, project_id=project_id)
        self.phase = ConversationPhase.LOADING
        self._changed()

        try:
            fetched = await self.message_service.project_messages(project_id)
        except (ApiError, ValueError, TypeError) as e:
            # ValueError covers pydantic decoding failures
            if self.project_id != project_id:
                return
            logger.error("Error loading messages for project %s: %r", project_id, e)
            fetched = []

        if self.project_id != project_id:
            # The view moved to another conversation while this request was in flight
            logger.debug("Dropping stale messages for project %s", project_id)
            return

        # sorted() is stable, so equal timestamps keep the backend order
        self._set_messages(sorted(fetched, key=lambda msg: msg.created_at))
        self.phase = ConversationPhase.SENDING if self.sending else ConversationPhase.READY
        self.scroll.is_near_bottom = True
        self._changed()
        if self.messages:
            self._scroll_to_bottom()

    async def refresh(self) -> None:
        """Re-fetch the active conversation in place; scrolls only when following."""
        project_id = self.project_id
        if not project_id:
            return
        try:
            fetched = await self.message_service.project_messages(project_id)
        except (ApiError, ValueError, TypeError) as e:
            logger.error("Error refreshing messages for project %s: %r", project_id, e)
            return
        if self.project_id != project_id:
            return
        self._set_messages(sorted(fetched, key=lambda msg: msg.created_at))
        self._changed()
        if self.scroll.is_near_bottom and self.messages:
            self._scroll_to_bottom()

    async def send(self, text: Optional[str] = None, attachments: Sequence[Attachment] = ()) -> Optional[Message]:
        """
        Send text (or the current draft) to the active project.

        Returns the appended message, or None when nothing was sent.
        Attachments go out with the text; a send with only attachments
        is allowed.
        """
        content = (self.draft if text is None else text).strip()
        pending_attachments = list(attachments) or list(self.attachments)
        if not content and not pending_attachments:
            return None

        project_id = self.project_id
        if not project_id:
            self._alert(translate("send_without_project", self.language))
            return None

        self.sending = True
        self.phase = ConversationPhase.SENDING
        self._changed()
        try:
            acknowledged = await self.message_service.send_message(
                project_id, content, attachments=pending_attachments,
            )
            sent = self._message_from_ack(acknowledged, content, project_id)

            if self.project_id == project_id:
                self._set_messages(self.messages + [sent])
                self.draft = ""
                self.attachments = []
                self.scroll.is_near_bottom = True
                self._scroll_to_bottom()
            self._on_message_sent(sent)
            return sent
        except ApiError as e:
            logger.error("Error sending message to project %s: %r", project_id, e)
            self._alert(translate("send_failed", self.language, detail=describe(e, self.language)))
            return None
        finally:
            self.sending = False
            if self.phase == ConversationPhase.SENDING:
                self.phase = ConversationPhase.READY
            self._changed()

    def _message_from_ack(self, acknowledged, content: str, project_id: Identifier) -> Message:
        if acknowledged:
            try:
                sent = Message.from_api(acknowledged, project_id)
            except (ValueError, TypeError) as e:
                # The backend accepted the message; only its echo is unreadable
                logger.warning("Unreadable send acknowledgement for project %s: %r", project_id, e)
            else:
                if not sent.text:
                    sent = sent.model_copy(update={"text": content})
                if sent.sender_id is None:
                    sent = sent.model_copy(update={"sender_id": self.current_user_id})
                return sent
        return Message.local_echo(content, self.current_user_id, project_id)

    async def mark_read(self) -> None:
        """Mark incoming messages read locally, then tell the backend."""
        project_id = self.project_id
        if not project_id:
            return
        for message in self.messages:
            if message.sender_id != self.current_user_id:
                message.read_state = ReadState.READ
        self.conversation.unread_count = 0
        self._changed()
        try:
            await self.message_service.mark_all_as_read(project_id)
        except ApiError as e:
            logger.error("Error marking messages read for project %s: %r", project_id, e)

    def on_scroll(self, scroll_height: float, scroll_top: float, client_height: float) -> bool:
        self.scroll.is_near_bottom = is_near_bottom(scroll_height, scroll_top, client_height)
        return self.scroll.is_near_bottom

    def group_by_date(self, now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> Iterator[DateGroup]:
        return group_by_date(self.messages, now=now, language=self.language, tz=tz)

    def format_relative_time(self, timestamp: datetime, now: Optional[datetime] = None,
                             tz: Optional[tzinfo] = None) -> str:
        return format_relative_time(timestamp, now=now, language=self.language, tz=tz)

    def is_own(self, message: Message) -> bool:
        return message.sender_id is not None and message.sender_id == self.current_user_id
