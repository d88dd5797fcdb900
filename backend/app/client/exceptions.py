from typing import Optional

import httpx


class ClientError(Exception):
    """Base class for failures surfaced by the clinic API client."""


class AuthExpired(ClientError):
    """The server rejected the credentials (HTTP 401)."""

    def __init__(self, message: str, response: Optional[httpx.Response] = None):
        super().__init__(message)
        self.response = response


class SessionTerminated(AuthExpired):
    """Refreshing did not restore access; the stored session has been cleared."""


class TransientServerError(ClientError):
    def __init__(self, response: httpx.Response):
        super().__init__(
            f"Server error {response.status_code} for {response.request.method} {response.request.url}"
        )
        self.response = response
        self.status_code = response.status_code


class NetworkError(ClientError):
    """No response was received (connection, timeout or protocol failure)."""


class RequestCancelled(ClientError):
    pass
