import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from .config import settings
from .storage import KeyValueStorage, MemoryStorage

logger = logging.getLogger(__name__)

# Exchanges a refresh token for a new access token, or None when refused
Refresher = Callable[[str], Awaitable[Optional[str]]]


@dataclass
class AuthSession:
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    user: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AuthSession":
        if not data:
            return cls()
        return cls(
            access_token=data.get("access_token"),
            refresh_token=data.get("refresh_token"),
            user=data.get("user"),
        )


class TokenStore:
    """
    Current credentials, persisted under a single storage key.

    Requests read a snapshot of ``access_token``. Writes happen only through
    ``set_session`` (login), ``clear`` (logout or terminated session) and the
    refresh path. Concurrent ``refresh`` calls share one in-flight exchange.
    """

    def __init__(
        self,
        storage: Optional[KeyValueStorage] = None,
        key: Optional[str] = None,
        refresher: Optional[Refresher] = None,
    ):
        self.storage = storage or MemoryStorage()
        self.key = key or settings.AUTH_STORAGE_KEY
        self.refresher = refresher
        self._session = AuthSession.from_dict(self.storage.get(self.key))
        self._pending: Optional[asyncio.Task] = None

    @property
    def access_token(self) -> Optional[str]:
        return self._session.access_token

    @property
    def refresh_token(self) -> Optional[str]:
        return self._session.refresh_token

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self._session.user

    @property
    def is_authenticated(self) -> bool:
        return self._session.access_token is not None

    def set_session(self, access_token: str, refresh_token: Optional[str], user: Optional[Dict[str, Any]] = None) -> None:
        self._session = AuthSession(access_token=access_token, refresh_token=refresh_token, user=user)
        self._persist()

    def clear(self) -> None:
        self._session = AuthSession()
        self.storage.remove(self.key)

    def _persist(self) -> None:
        self.storage.set(self.key, asdict(self._session))

    async def refresh(self, failed_token: Optional[str]) -> Optional[str]:
        """Return a usable access token after ``failed_token`` was rejected.

        If the token has already been replaced since the caller read it, the
        replacement is returned without another exchange. Otherwise every
        caller awaits the same exchange. ``None`` means the session is over
        and has been cleared.
        """
        current = self._session.access_token
        if current is not None and current != failed_token:
            return current

        task = self._pending
        if task is None:
            task = asyncio.ensure_future(self._run_refresh())
            self._pending = task

            def _done(finished: asyncio.Task) -> None:
                if self._pending is finished:
                    self._pending = None

            task.add_done_callback(_done)
        # One waiter being cancelled must not cancel the shared exchange
        return await asyncio.shield(task)

    async def _run_refresh(self) -> Optional[str]:
        refresh_token = self._session.refresh_token
        token = None
        if refresh_token and self.refresher is not None:
            token = await self.refresher(refresh_token)

        if not token:
            logger.info("Token refresh yielded no access token; clearing session")
            self.clear()
            return None

        self._session = AuthSession(
            access_token=token,
            refresh_token=self._session.refresh_token,
            user=self._session.user,
        )
        self._persist()
        logger.debug("Access token refreshed")
        return token
