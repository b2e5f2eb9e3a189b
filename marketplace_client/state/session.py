"""
Auth/session store.

One explicit object owns "who is logged in". It is created with its
collaborators (auth service, durable storage, navigator), rehydrated with
init_from_storage(), and observed through subscribe().
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from marketplace_client.core.errors import (
    ApiError, ConflictError, NetworkError, ServerError, ValidationError,
)
from marketplace_client.core.locales import translate
from marketplace_client.db.storage import ClientStorage, TOKEN_KEY, USER_KEY, profile_completed_key
from marketplace_client.models.schemas import User, UserRole
from marketplace_client.services.auth import AuthService

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"

Listener = Callable[[], None]


@dataclass
class AuthResult:
    success: bool
    error: Optional[str] = None
    field_errors: Dict[str, str] = field(default_factory=dict)


def _noop_navigate(path: str) -> None:
    return None


class SessionStore:
    def __init__(
        self,
        auth_service: AuthService,
        storage: ClientStorage,
        navigate: Optional[Callable[[str], None]] = None,
        notify: Optional[Callable[[str], None]] = None,
        language: str = "en",
        base_url: Optional[str] = None,
    ):
        self.auth_service = auth_service
        self.storage = storage
        self.language = language
        self.base_url = base_url
        self._navigate = navigate or _noop_navigate
        self._notify = notify
        self._listeners: List[Listener] = []

        self.user: Optional[User] = None
        self.token: Optional[str] = None
        self.loading = True

    # --- derived flags, recomputed on every access ---

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and bool(self.token)

    @property
    def is_client(self) -> bool:
        return self.user is not None and self.user.role == UserRole.CLIENT.value

    @property
    def is_freelancer(self) -> bool:
        return self.user is not None and self.user.role == UserRole.FREELANCER.value

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.role == UserRole.ADMIN.value

    # --- subscriptions ---

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self) -> None:
        for listener in list(self._listeners):
            listener()

    def _toast(self, message: str) -> None:
        if self._notify:
            self._notify(message)

    # --- storage ---

    def init_from_storage(self) -> None:
        stored_token = self.storage.get_item(TOKEN_KEY)
        stored_user = self.storage.get_item(USER_KEY)
        if stored_token and stored_user:
            try:
                self.user = User.from_api(json.loads(stored_user))
                self.token = stored_token
            except (ValueError, TypeError, PydanticValidationError) as e:
                logger.error("Discarding unreadable stored session: %s", e)
                self.user = None
                self.token = None
        self.loading = False
        self._emit()

    def _persist(self, user: User, token: str) -> None:
        self.user = user
        self.token = token
        self.storage.set_item(TOKEN_KEY, token)
        self.storage.set_item(USER_KEY, user.model_dump_json())

    def _clear(self) -> None:
        self.user = None
        self.token = None
        self.storage.remove_item(TOKEN_KEY)
        self.storage.remove_item(USER_KEY)

    # --- redirects ---

    def profile_completed(self, user: User) -> bool:
        return bool(user.profile_completed or self.storage.get_item(profile_completed_key(user.id)))

    def redirect_path_for(self, user: User) -> str:
        if user.role == UserRole.ADMIN.value:
            return "/admin/dashboard"
        if user.role == UserRole.FREELANCER.value:
            if not self.profile_completed(user):
                return "/seller/onboarding"
            return "/freelancer/dashboard"
        if user.role == UserRole.CLIENT.value:
            return "/client/dashboard"
        return "/dashboard"

    # --- operations ---

    async def login(self, credentials: Dict[str, Any]) -> AuthResult:
        try:
            user, token = await self.auth_service.login(credentials)
        except ApiError as e:
            message = e.message or translate("login_failed", self.language)
            self._toast(message)
            return AuthResult(success=False, error=message)

        self._persist(user, token)
        self._emit()
        self._navigate(self.redirect_path_for(user))
        return AuthResult(success=True)

    def _register_error(self, error: ApiError) -> AuthResult:
        field_errors: Dict[str, str] = {}
        body_message = error.payload.get("message") if isinstance(error.payload, dict) else None
        if isinstance(error, NetworkError):
            message = translate("network_error_at", self.language, base_url=self.base_url or "")
        elif isinstance(error, ValidationError) and error.errors:
            field_errors = dict(error.errors)
            message = next(iter(field_errors.values()))
        elif body_message:
            message = body_message
        elif isinstance(error, ValidationError):
            message = translate("invalid_input", self.language)
        elif isinstance(error, ConflictError):
            message = translate("duplicate_account", self.language)
        elif isinstance(error, ServerError):
            message = error.message
        else:
            message = translate("register_failed", self.language)
        return AuthResult(success=False, error=message, field_errors=field_errors)

    async def register(self, user_data: Dict[str, Any]) -> AuthResult:
        try:
            user, token = await self.auth_service.register(user_data)
        except ApiError as e:
            logger.error("Registration error: %r", e)
            result = self._register_error(e)
            self._toast(result.error)
            return result

        self._persist(user, token)
        self._emit()
        self._navigate(self.redirect_path_for(user))
        return AuthResult(success=True)

    async def logout(self) -> None:
        # Local state goes first so nothing can observe a half-logged-out session
        token = self.token
        self._clear()
        self._emit()
        try:
            await self.auth_service.logout(token=token)
        except Exception as e:
            # Closed clients raise RuntimeError rather than ApiError
            logger.info("Logout API call failed (session already cleared): %r", e)
        self._navigate(LOGIN_PATH)

    def update_profile(self, user: User) -> None:
        self.user = user
        self.storage.set_item(USER_KEY, user.model_dump_json())
        self._emit()

    def handle_unauthorized(self) -> None:
        """401 from any authenticated call: the stored session is no longer valid."""
        self._clear()
        self._emit()
        self._navigate(LOGIN_PATH)
