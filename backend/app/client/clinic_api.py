import asyncio
from typing import Any, Dict, List, Optional

import httpx

from .auth import AuthClient
from .config import ClientSettings, settings as default_settings
from .pipeline import ResilientClient, Sleep
from .storage import JsonFileStorage, KeyValueStorage, MemoryStorage
from .token_store import TokenStore


class ClinicApiClient:
    """Typed-ish wrapper over the clinic endpoints; responses are decoded JSON."""

    def __init__(self, token_store: TokenStore, auth: AuthClient, http: ResilientClient):
        self.token_store = token_store
        self.auth = auth
        self.http = http

    @classmethod
    def from_settings(
        cls,
        config: Optional[ClientSettings] = None,
        storage: Optional[KeyValueStorage] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[Sleep] = None,
    ) -> "ClinicApiClient":
        config = config or default_settings
        if storage is None:
            storage = JsonFileStorage(config.AUTH_STORAGE_PATH) if config.AUTH_STORAGE_PATH else MemoryStorage()

        auth = AuthClient(base_url=config.API_BASE_URL, timeout=config.TIMEOUT_SECONDS, transport=transport)
        token_store = TokenStore(storage, key=config.AUTH_STORAGE_KEY, refresher=auth.refresh)
        http = ResilientClient(
            token_store,
            base_url=config.API_BASE_URL,
            max_retries=config.MAX_RETRIES,
            backoff_base=config.BACKOFF_BASE_SECONDS,
            timeout=config.TIMEOUT_SECONDS,
            transport=transport,
            sleep=sleep or asyncio.sleep,
        )
        return cls(token_store, auth, http)

    async def __aenter__(self) -> "ClinicApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.http.aclose()
        await self.auth.aclose()

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        payload = await self.auth.login(email, password)
        tokens = payload["tokens"]
        self.token_store.set_session(tokens["access_token"], tokens.get("refresh_token"), payload.get("user"))
        return payload["user"]

    async def logout(self) -> None:
        refresh_token = self.token_store.refresh_token
        try:
            if refresh_token:
                await self.auth.logout(refresh_token)
        finally:
            self.token_store.clear()

    async def profile(self, cancel_event: Optional[asyncio.Event] = None) -> Dict[str, Any]:
        """Re-read the signed-in user and refresh the persisted copy."""
        r = await self.http.get("/auth/profile", cancel_event=cancel_event)
        user = r.json()
        store = self.token_store
        if store.access_token is not None:
            store.set_session(store.access_token, store.refresh_token, user)
        return user

    async def dashboard_stats(self, cancel_event: Optional[asyncio.Event] = None) -> Dict[str, Any]:
        r = await self.http.get("/dashboard/stats", cancel_event=cancel_event)
        return r.json()

    async def due_today(self, limit: Optional[int] = None, cancel_event: Optional[asyncio.Event] = None) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {}
        if limit is not None:
            params["limit"] = limit
        r = await self.http.get("/visits/due-today", params=params, cancel_event=cancel_event)
        return list(r.json())

    async def upcoming_visits(
        self,
        days_ahead: int = 30,
        visit_type: Optional[str] = None,
        reminder_enabled: Optional[bool] = None,
        limit: int = 10,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"days_ahead": days_ahead, "limit": limit}
        if visit_type:
            params["visit_type"] = visit_type
        if reminder_enabled is not None:
            params["reminder_enabled"] = "true" if reminder_enabled else "false"
        r = await self.http.get("/visits/upcoming", params=params, cancel_event=cancel_event)
        return list(r.json())

    async def reminder_eligibility(self, visit_id: int, cancel_event: Optional[asyncio.Event] = None) -> Dict[str, Any]:
        r = await self.http.get(f"/visits/{visit_id}/reminder-eligibility", cancel_event=cancel_event)
        return r.json()
