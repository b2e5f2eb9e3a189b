import inspect
import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from marketplace_client.core.errors import ApiError, AuthError, NetworkError, error_from_response
from marketplace_client.core.locales import translate

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Optional[str]]
UnauthorizedHook = Callable[[], Any]

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


class ApiClient:
    """
    Authenticated JSON client for the marketplace REST backend.

    The bearer token is read from token_provider on every request, so a
    login or logout takes effect immediately without rebuilding the client.
    Failed calls raise an ApiError subclass. A 401 runs the unauthorized
    hooks (session wipe + redirect) before AuthError is raised.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        token_provider: Optional[TokenProvider] = None,
        on_unauthorized: Optional[UnauthorizedHook] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        language: str = "en",
    ):
        self.base_url = base_url.rstrip("/")
        self.language = language
        self._token_provider = token_provider
        self._unauthorized_hooks: List[UnauthorizedHook] = []
        if on_unauthorized:
            self._unauthorized_hooks.append(on_unauthorized)
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers=DEFAULT_HEADERS,
            transport=transport,
        )

    def set_token_provider(self, token_provider: TokenProvider) -> None:
        self._token_provider = token_provider

    def add_unauthorized_hook(self, hook: UnauthorizedHook) -> None:
        self._unauthorized_hooks.append(hook)

    def _auth_headers(self, token: Optional[str] = None) -> Dict[str, str]:
        if token is None and self._token_provider:
            token = self._token_provider()
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        handle_unauthorized: bool = True,
        token: Optional[str] = None,
    ) -> Any:
        """`token` overrides the provider for this one call."""
        url = path if path.startswith("/") else f"/{path}"
        if params:
            params = {key: value for key, value in params.items() if value is not None}
        try:
            response = await self._http.request(
                method,
                url,
                json=json,
                params=params or None,
                headers=self._auth_headers(token),
            )
        except httpx.HTTPError as e:
            # No response received: timeouts, refused connections, DNS failures
            logger.error("Network error on %s %s: %s", method, url, e)
            raise NetworkError(translate("network_error", self.language), status=0) from e

        body = self._decode_body(response)

        if response.is_success:
            return body

        error = error_from_response(response.status_code, body, self.language)
        if isinstance(error, AuthError) and handle_unauthorized:
            for hook in self._unauthorized_hooks:
                result = hook()
                if inspect.isawaitable(result):
                    await result
        logger.debug("%s %s failed: %r", method, url, error)
        raise error

    @staticmethod
    def _decode_body(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None, **kwargs) -> Any:
        return await self.request("GET", path, params=params, **kwargs)

    async def post(self, path: str, json: Any = None, **kwargs) -> Any:
        return await self.request("POST", path, json=json, **kwargs)

    async def put(self, path: str, json: Any = None, **kwargs) -> Any:
        return await self.request("PUT", path, json=json, **kwargs)

    async def delete(self, path: str, **kwargs) -> Any:
        return await self.request("DELETE", path, **kwargs)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


__all__ = ["ApiClient", "ApiError"]
