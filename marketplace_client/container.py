from typing import Callable, Optional

import httpx

from marketplace_client.api.client import ApiClient
from marketplace_client.core.config import Settings, get_settings
from marketplace_client.db.firebase_ops import FirestoreStorage
from marketplace_client.db.storage import ClientStorage, JsonFileStorage, TOKEN_KEY
from marketplace_client.models.schemas import Identifier
from marketplace_client.services.auth import AuthService
from marketplace_client.services.categories import CategoryService
from marketplace_client.services.messages import MessageService
from marketplace_client.services.notifications import NotificationService
from marketplace_client.services.offers import OfferService
from marketplace_client.services.projects import ProjectService
from marketplace_client.services.reviews import ReviewService
from marketplace_client.services.wallet import WalletService
from marketplace_client.state.conversation import ConversationViewState
from marketplace_client.state.conversation_list import ConversationListState
from marketplace_client.state.session import SessionStore


def default_storage(settings: Settings) -> ClientStorage:
    """Firestore when service account credentials are configured, else a local JSON file."""
    if settings.firebase_credentials:
        return FirestoreStorage(
            settings.resolved_device_id(),
            credentials_path=settings.firebase_credentials,
        )
    return JsonFileStorage(settings.resolved_storage_path())


class MarketplaceClient:
    """
    Wires the HTTP client, the domain services and the session store.

    The bearer token comes from durable storage on every request, and any
    401 wipes the session through SessionStore.handle_unauthorized.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        storage: Optional[ClientStorage] = None,
        navigate: Optional[Callable[[str], None]] = None,
        notify: Optional[Callable[[str], None]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.storage = storage if storage is not None else default_storage(self.settings)

        self.api = ApiClient(
            base_url=self.settings.api_base_url,
            timeout=self.settings.request_timeout,
            token_provider=lambda: self.storage.get_item(TOKEN_KEY),
            transport=transport,
            language=self.settings.language,
        )
        self.auth = AuthService(self.api)
        self.messages = MessageService(self.api)
        self.projects = ProjectService(self.api)
        self.offers = OfferService(self.api)
        self.reviews = ReviewService(self.api)
        self.notifications = NotificationService(self.api)
        self.wallet = WalletService(self.api)
        self.categories = CategoryService(self.api)

        self.session = SessionStore(
            self.auth,
            self.storage,
            navigate=navigate,
            notify=notify,
            language=self.settings.language,
            base_url=self.settings.api_base_url,
        )
        self.api.add_unauthorized_hook(self.session.handle_unauthorized)

    def conversation(self, **hooks) -> ConversationViewState:
        current_user_id: Optional[Identifier] = self.session.user.id if self.session.user else None
        return ConversationViewState(
            self.messages,
            current_user_id=current_user_id,
            language=self.settings.language,
            **hooks,
        )

    def conversation_list(self, **kwargs) -> ConversationListState:
        kwargs.setdefault("poll_interval", self.settings.poll_interval)
        return ConversationListState(self.messages, **kwargs)

    async def aclose(self) -> None:
        await self.api.aclose()

    async def __aenter__(self) -> "MarketplaceClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
