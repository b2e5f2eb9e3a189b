from typing import Any, Dict, List, Optional

from marketplace_client.api.client import ApiClient
from marketplace_client.api.envelope import unwrap, unwrap_list
from marketplace_client.models.schemas import Transaction, Wallet


class WalletService:
    def __init__(self, api: ApiClient):
        self.api = api

    async def wallet(self) -> Wallet:
        payload = unwrap(await self.api.get("/wallet"))
        return Wallet.model_validate(payload if isinstance(payload, dict) else {})

    async def deposit(self, amount: float, **extra: Any) -> Any:
        return unwrap(await self.api.post("/wallet/deposit", json={"amount": amount, **extra}))

    async def withdraw(self, amount: float, **extra: Any) -> Any:
        return unwrap(await self.api.post("/wallet/withdraw", json={"amount": amount, **extra}))

    async def transactions(self, params: Optional[Dict[str, Any]] = None) -> List[Transaction]:
        body = await self.api.get("/wallet/transactions", params=params)
        return [Transaction.model_validate(raw) for raw in unwrap_list(body) if isinstance(raw, dict)]
