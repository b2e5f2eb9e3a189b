from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from marketplace_client.api.client import ApiClient
from marketplace_client.api.envelope import unwrap
from marketplace_client.core.errors import ApiError
from marketplace_client.models.schemas import Identifier, User


class AuthService:
    """Calls to the /login, /register and profile endpoints."""

    def __init__(self, api: ApiClient):
        self.api = api

    @staticmethod
    def _session_from_body(body: Any) -> Tuple[User, str]:
        payload = unwrap(body)
        # Login/register answer with the user next to the token, sometimes nested in data
        if isinstance(payload, dict) and "user" not in payload and isinstance(body, dict):
            payload = body
        if not isinstance(payload, dict) or not isinstance(payload.get("user"), dict):
            raise ApiError("Malformed authentication response", status=0, payload=body)
        token = payload.get("access_token") or payload.get("token")
        if not token:
            raise ApiError("Authentication response carried no token", status=0, payload=body)
        try:
            user = User.from_api(payload["user"])
        except PydanticValidationError as e:
            raise ApiError("Malformed user in authentication response", status=0, payload=body) from e
        return user, token

    async def login(self, credentials: Dict[str, Any]) -> Tuple[User, str]:
        # A 401 here means wrong credentials, not an expired session
        body = await self.api.post("/login", json=credentials, handle_unauthorized=False)
        return self._session_from_body(body)

    async def register(self, user_data: Dict[str, Any]) -> Tuple[User, str]:
        body = await self.api.post("/register", json=user_data, handle_unauthorized=False)
        return self._session_from_body(body)

    async def logout(self, token: Optional[str] = None) -> None:
        await self.api.post("/logout", handle_unauthorized=False, token=token)

    async def current_user(self) -> Optional[User]:
        payload = unwrap(await self.api.get("/user"))
        if isinstance(payload, dict):
            return User.from_api(payload)
        return None

    async def update_profile(self, user_id: Identifier, data: Dict[str, Any]) -> Any:
        return unwrap(await self.api.put(f"/users/{user_id}", json=data))

    async def change_password(self, data: Dict[str, Any]) -> Any:
        return unwrap(await self.api.post("/change-password", json=data))
