from enum import Enum
from typing import Optional, List, Dict, Any, Union
from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator

Identifier = Union[int, str]


def _as_utc(value: datetime) -> datetime:
    # Backend timestamps without an offset are UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, (int, float)):
        # Epoch milliseconds, as a JS client would send them
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    try:
        text = str(value).replace("Z", "+00:00")
        return _as_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def _first(raw: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return default


def _as_count(value: Any) -> int:
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError):
        return 0


class UserRole(str, Enum):
    CLIENT = "client"
    FREELANCER = "freelancer"
    ADMIN = "admin"


class User(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Identifier
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    role: Optional[str] = None # 'client', 'freelancer', 'admin'
    avatar: Optional[str] = None
    profile_completed: bool = False

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "User":
        data = dict(raw)
        data["profile_completed"] = bool(_first(raw, "profile_completed", "profileCompleted", default=False))
        data.pop("profileCompleted", None)
        return cls.model_validate(data)


class Session(BaseModel):
    user: User
    token: str


class Credentials(BaseModel):
    email: str
    password: str


class ReadState(str, Enum):
    READ = "read"
    UNREAD = "unread"


class Attachment(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    url: Optional[str] = None
    size: Optional[int] = None


class Message(BaseModel):
    """A chat message. Only read_state changes after creation."""
    id: Identifier
    conversation_id: Optional[Identifier] = None # project id; conversations are per project
    sender_id: Optional[Identifier] = None
    receiver_id: Optional[Identifier] = None
    text: str = ""
    created_at: datetime
    attachments: List[Attachment] = []
    read_state: ReadState = ReadState.UNREAD

    @field_validator("created_at", mode="before")
    @classmethod
    def _normalize_created_at(cls, value: Any) -> Any:
        parsed = _parse_timestamp(value)
        return parsed if parsed is not None else value

    @property
    def is_read(self) -> bool:
        return self.read_state == ReadState.READ

    @classmethod
    def from_api(cls, raw: Dict[str, Any], conversation_id: Optional[Identifier] = None) -> "Message":
        """Map a backend message (snake_case or camelCase) into the canonical shape."""
        created_at = _parse_timestamp(_first(raw, "created_at", "timestamp", "createdAt"))
        is_read = bool(_first(raw, "is_read", "isRead", default=False)) or raw.get("read_at") is not None
        return cls(
            id=_first(raw, "id", default=f"local-{uuid4().hex}"),
            conversation_id=_first(raw, "project_id", "conversation_id", "projectId", default=conversation_id),
            sender_id=_first(raw, "sender_id", "senderId"),
            receiver_id=_first(raw, "receiver_id", "receiverId"),
            text=_first(raw, "content", "text", default=""),
            created_at=created_at or datetime.now(timezone.utc),
            attachments=[Attachment.model_validate(a) for a in raw.get("attachments") or [] if isinstance(a, dict)],
            read_state=ReadState.READ if is_read else ReadState.UNREAD,
        )

    @classmethod
    def local_echo(cls, text: str, sender_id: Optional[Identifier], conversation_id: Optional[Identifier]) -> "Message":
        """Stand-in for a sent message whose acknowledgement had no usable body."""
        return cls(
            id=f"local-{uuid4().hex}",
            conversation_id=conversation_id,
            sender_id=sender_id,
            text=text,
            created_at=datetime.now(timezone.utc),
        )


class Conversation(BaseModel):
    id: Identifier
    project_id: Identifier
    participant_ids: List[Identifier] = []
    messages: List[Message] = []
    unread_count: int = 0

    @property
    def last_message(self) -> Optional[Message]:
        if not self.messages:
            return None
        return max(self.messages, key=lambda msg: msg.created_at)


class ParticipantPreview(BaseModel):
    id: Optional[Identifier] = None
    name: str = ""
    avatar: Optional[str] = None
    is_online: bool = False


class LastMessagePreview(BaseModel):
    text: str = ""
    timestamp: Optional[datetime] = None
    sender_id: Optional[Identifier] = None
    is_read: bool = False


class ConversationSummary(BaseModel):
    """One row of the conversation list."""
    id: Identifier
    project_id: Optional[Identifier] = None
    project_title: str = ""
    other_user: ParticipantPreview = ParticipantPreview()
    last_message: LastMessagePreview = LastMessagePreview()
    unread_count: int = 0
    updated_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "ConversationSummary":
        """Raises ValueError when the row names neither a conversation nor a project."""
        other = raw.get("other_user") or raw.get("freelancer") or raw.get("user") or {}
        last = raw.get("last_message") or {}
        project = raw.get("project") or {}
        if not isinstance(other, dict):
            other = {}
        if not isinstance(last, dict):
            last = {"text": str(last)}
        if not isinstance(project, dict):
            project = {}
        # Conversations are per project, so the project id stands in for a missing id
        conversation_id = _first(raw, "id", "project_id", "projectId", "conversation_id")
        if conversation_id is None:
            raise ValueError("conversation row without id or project_id")
        return cls(
            id=conversation_id,
            project_id=_first(raw, "project_id", "projectId"),
            project_title=_first(project, "title") or raw.get("project_title") or "",
            other_user=ParticipantPreview(
                id=_first(other, "id", default=raw.get("user_id")),
                name=_first(other, "name", default=""),
                avatar=other.get("avatar"),
                is_online=bool(other.get("is_online", False)),
            ),
            last_message=LastMessagePreview(
                text=_first(last, "text", "content") or raw.get("last_message_text") or "",
                timestamp=_parse_timestamp(
                    _first(last, "created_at", "timestamp") or raw.get("last_message_at") or raw.get("updated_at")
                ),
                sender_id=_first(last, "sender_id", default=raw.get("last_message_sender_id")),
                is_read=bool(last.get("is_read") or raw.get("is_read") or False),
            ),
            unread_count=_as_count(raw.get("unread_count")),
            updated_at=_parse_timestamp(raw.get("updated_at") or raw.get("created_at")),
        )


class Project(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Identifier
    title: str = ""
    description: Optional[str] = None
    budget: Optional[float] = None
    status: Optional[str] = None # 'open', 'in_progress', 'delivered', 'completed', 'cancelled'
    client_id: Optional[Identifier] = None
    accepted_offer_id: Optional[Identifier] = None
    category_id: Optional[Identifier] = None


class Offer(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Identifier
    project_id: Optional[Identifier] = None
    freelancer_id: Optional[Identifier] = None
    amount: Optional[float] = None
    delivery_days: Optional[int] = None
    message: Optional[str] = None
    status: str = "pending" # 'pending', 'accepted', 'rejected'


class Review(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Identifier
    project_id: Optional[Identifier] = None
    reviewer_id: Optional[Identifier] = None
    reviewee_id: Optional[Identifier] = None
    rating: int # 1-5
    comment: Optional[str] = None


class Notification(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Identifier
    type: Optional[str] = None
    title: Optional[str] = None
    message: str = ""
    related_type: Optional[str] = None
    related_id: Optional[Identifier] = None
    is_read: bool = False


class Wallet(BaseModel):
    model_config = ConfigDict(extra="allow")

    balance: float = 0.0
    currency: str = "USD"


class Transaction(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Identifier
    amount: float
    type: Optional[str] = None # 'deposit', 'withdraw', 'payment', 'payout', 'refund'
    status: Optional[str] = None


class Category(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Identifier
    name: str
    slug: Optional[str] = None
    icon: Optional[str] = None
