"""
Request pipeline used by every authenticated call to the clinic API.

Each call attaches the current bearer token. A 401 triggers one refresh
(shared with any concurrent callers) followed by a single replay. 5xx
responses and transport failures are retried with exponential backoff
(``base * 2**n``). Other 4xx responses raise ``httpx.HTTPStatusError``
immediately.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

import httpx

from .config import settings
from .exceptions import ClientError, NetworkError, RequestCancelled, SessionTerminated, TransientServerError
from .token_store import TokenStore

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


@dataclass
class AttemptContext:
    """Per-call bookkeeping; never shared between calls."""
    method: str
    path: str
    attempt: int = 0
    refreshed: bool = False
    delays: List[float] = field(default_factory=list)

    @property
    def retries(self) -> int:
        return len(self.delays)


class ResilientClient:
    def __init__(
        self,
        token_store: TokenStore,
        base_url: Optional[str] = None,
        *,
        max_retries: Optional[int] = None,
        backoff_base: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.token_store = token_store
        self.max_retries = settings.MAX_RETRIES if max_retries is None else max_retries
        self.backoff_base = settings.BACKOFF_BASE_SECONDS if backoff_base is None else backoff_base
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout if timeout is not None else settings.TIMEOUT_SECONDS,
            transport=transport,
        )

    async def __aenter__(self) -> "ResilientClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def backoff_delay(self, retry: int) -> float:
        return self.backoff_base * (2 ** retry)

    async def request(
        self,
        method: str,
        path: str,
        *,
        cancel_event: Optional[asyncio.Event] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        ctx = AttemptContext(method=method.upper(), path=path)

        while True:
            self._check_cancelled(ctx, cancel_event)
            ctx.attempt += 1
            token = self.token_store.access_token

            failure: ClientError
            try:
                response = await self._send(ctx, token, kwargs)
            except httpx.TransportError as e:
                failure = NetworkError(f"{ctx.method} {ctx.path} failed: {e}")
                failure.__cause__ = e
            else:
                if response.status_code == 401:
                    await self._recover_from_unauthorized(ctx, response, token)
                    # Replay does not consume a retry
                    continue
                if response.status_code >= 500:
                    failure = TransientServerError(response)
                else:
                    if response.status_code >= 400:
                        response.raise_for_status()
                    return response

            if ctx.retries >= self.max_retries:
                logger.warning(
                    "%s %s giving up after %d attempts: %s", ctx.method, ctx.path, ctx.attempt, failure
                )
                raise failure

            delay = self.backoff_delay(ctx.retries)
            ctx.delays.append(delay)
            logger.info(
                "%s %s attempt %d failed (%s); retrying in %.1fs",
                ctx.method, ctx.path, ctx.attempt, failure, delay,
            )
            await self._wait(ctx, delay, cancel_event)

    async def _send(self, ctx: AttemptContext, token: Optional[str], kwargs: dict) -> httpx.Response:
        # kwargs stay untouched so a replay starts from the caller's arguments
        headers = dict(kwargs.get("headers") or {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return await self._client.request(ctx.method, ctx.path, **{**kwargs, "headers": headers})

    async def _recover_from_unauthorized(
        self, ctx: AttemptContext, response: httpx.Response, token: Optional[str]
    ) -> None:
        if ctx.refreshed:
            logger.warning("%s %s still unauthorized after refresh; ending session", ctx.method, ctx.path)
            self.token_store.clear()
            raise SessionTerminated("Request rejected after token refresh", response=response)

        ctx.refreshed = True
        new_token = await self.token_store.refresh(token)
        if not new_token:
            raise SessionTerminated("Session expired and could not be refreshed", response=response)

    def _check_cancelled(self, ctx: AttemptContext, cancel_event: Optional[asyncio.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise RequestCancelled(f"{ctx.method} {ctx.path} cancelled after {ctx.attempt} attempts")

    async def _wait(self, ctx: AttemptContext, delay: float, cancel_event: Optional[asyncio.Event]) -> None:
        if cancel_event is None:
            await self._sleep(delay)
            return

        sleeper = asyncio.ensure_future(self._sleep(delay))
        cancelled = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({sleeper, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, cancelled):
                if not task.done():
                    task.cancel()
        self._check_cancelled(ctx, cancel_event)

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", path, **kwargs)
