import logging
from typing import Any, Dict, Optional

import httpx

from .config import settings
from .exceptions import AuthExpired, NetworkError, TransientServerError

logger = logging.getLogger(__name__)


class AuthClient:
    """Talks to ``/auth/*`` directly, outside the retrying pipeline."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout if timeout is not None else settings.TIMEOUT_SECONDS,
            transport=transport,
        )

    async def _post(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
        try:
            response = await self._client.post(path, json=payload)
        except httpx.TransportError as e:
            raise NetworkError(f"POST {path} failed: {e}") from e
        if response.status_code >= 500:
            raise TransientServerError(response)
        return response

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """Return the login payload: ``{"tokens": {...}, "user": {...}}``."""
        response = await self._post("/auth/login", {"email": email, "password": password})
        if response.status_code == 401:
            raise AuthExpired("Invalid email or password", response=response)
        response.raise_for_status()
        return response.json()

    async def refresh(self, refresh_token: str) -> Optional[str]:
        response = await self._post("/auth/refresh", {"refresh_token": refresh_token})
        if response.status_code in (400, 401, 403):
            logger.info("Refresh token rejected with %s", response.status_code)
            return None
        response.raise_for_status()
        return response.json().get("access_token")

    async def logout(self, refresh_token: Optional[str]) -> None:
        response = await self._post("/auth/logout", {"refresh_token": refresh_token})
        if response.status_code >= 400:
            # The local session is dropped regardless
            logger.warning("Logout returned %s", response.status_code)

    async def aclose(self) -> None:
        await self._client.aclose()
