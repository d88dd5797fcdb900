"""Retry, refresh-and-replay and cancellation behaviour of the client pipeline."""
import asyncio
import json

import httpx
import pytest

from app.client.clinic_api import ClinicApiClient
from app.client.config import ClientSettings
from app.client.exceptions import (
    AuthExpired,
    NetworkError,
    RequestCancelled,
    SessionTerminated,
    TransientServerError,
)
from app.client.pipeline import ResilientClient
from app.client.storage import MemoryStorage
from app.client.token_store import TokenStore

BASE_URL = "http://clinic.test/api/v1"


class Recorder:
    """Sleep stand-in that records requested delays without waiting."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def make_client(handler, store=None, sleep=None, **kwargs):
    store = store or TokenStore(MemoryStorage())
    client = ResilientClient(
        store,
        BASE_URL,
        transport=httpx.MockTransport(handler),
        sleep=sleep or Recorder(),
        **kwargs,
    )
    return client, store


def run(coro_fn):
    return asyncio.run(coro_fn())


def test_success_sends_bearer_token() -> None:
    seen = []

    def handler(request):
        seen.append(request.headers.get("Authorization"))
        return httpx.Response(200, json={"ok": True})

    store = TokenStore(MemoryStorage())
    store.set_session("access-1", "refresh-1")
    client, _ = make_client(handler, store)

    async def call():
        async with client:
            return await client.get("/dashboard/stats", headers={"X-Trace": "1"})

    response = run(call)
    assert response.json() == {"ok": True}
    assert seen == ["Bearer access-1"]


def test_server_errors_back_off_then_raise_last_failure() -> None:
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(503)

    sleep = Recorder()
    client, _ = make_client(handler, sleep=sleep)

    async def call():
        async with client:
            await client.get("/visits/upcoming")

    with pytest.raises(TransientServerError) as exc_info:
        run(call)
    assert exc_info.value.status_code == 503
    assert sleep.delays == [1.0, 2.0, 4.0]
    assert len(calls) == 4


def test_recovers_when_server_comes_back() -> None:
    statuses = iter([500, 502, 200])

    def handler(request):
        return httpx.Response(next(statuses), json={})

    sleep = Recorder()
    client, _ = make_client(handler, sleep=sleep)

    async def call():
        async with client:
            return await client.get("/visits/due-today")

    assert run(call).status_code == 200
    assert sleep.delays == [1.0, 2.0]


def test_success_on_last_allowed_attempt_after_three_server_errors() -> None:
    statuses = iter([503, 503, 503, 200])
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(next(statuses), json={"ok": True})

    sleep = Recorder()
    client, _ = make_client(handler, sleep=sleep)

    async def call():
        async with client:
            return await client.get("/dashboard/stats")

    response = run(call)
    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert sleep.delays == [1.0, 2.0, 4.0]
    assert len(calls) == 4


def test_transport_failures_are_retried_as_network_errors() -> None:
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    sleep = Recorder()
    client, _ = make_client(handler, sleep=sleep, max_retries=2, backoff_base=0.5)

    async def call():
        async with client:
            await client.get("/visits/due-today")

    with pytest.raises(NetworkError) as exc_info:
        run(call)
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
    assert sleep.delays == [0.5, 1.0]


def test_client_errors_are_not_retried() -> None:
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(404, json={"message": "Visit not found"})

    sleep = Recorder()
    client, _ = make_client(handler, sleep=sleep)

    async def call():
        async with client:
            await client.get("/visits/99/reminder-eligibility")

    with pytest.raises(httpx.HTTPStatusError):
        run(call)
    assert calls == [1]
    assert sleep.delays == []


def test_unauthorized_refreshes_once_and_replays() -> None:
    seen = []
    refreshes = []

    def handler(request):
        seen.append(request.headers.get("Authorization"))
        if request.headers.get("Authorization") == "Bearer access-2":
            return httpx.Response(200, json={"ok": True})
        return httpx.Response(401)

    async def refresher(refresh_token):
        refreshes.append(refresh_token)
        return "access-2"

    store = TokenStore(MemoryStorage(), refresher=refresher)
    store.set_session("access-1", "refresh-1")
    client, _ = make_client(handler, store)

    async def call():
        async with client:
            return await client.post("/visits", json={"pet_id": 1})

    assert run(call).status_code == 200
    assert seen == ["Bearer access-1", "Bearer access-2"]
    assert refreshes == ["refresh-1"]
    assert store.access_token == "access-2"


def test_failed_refresh_terminates_session() -> None:
    def handler(request):
        return httpx.Response(401)

    async def refresher(refresh_token):
        return None

    storage = MemoryStorage()
    store = TokenStore(storage, refresher=refresher)
    store.set_session("access-1", "refresh-1")
    client, _ = make_client(handler, store)

    async def call():
        async with client:
            await client.get("/dashboard/stats")

    with pytest.raises(SessionTerminated) as exc_info:
        run(call)
    assert isinstance(exc_info.value, AuthExpired)
    assert exc_info.value.response.status_code == 401
    assert store.access_token is None
    assert storage.get("vet-auth-storage") is None


def test_second_unauthorized_after_replay_terminates_session() -> None:
    calls = []
    refreshes = []

    def handler(request):
        calls.append(request.headers.get("Authorization"))
        return httpx.Response(401)

    async def refresher(refresh_token):
        refreshes.append(refresh_token)
        return "access-2"

    store = TokenStore(MemoryStorage(), refresher=refresher)
    store.set_session("access-1", "refresh-1")
    client, _ = make_client(handler, store)

    async def call():
        async with client:
            await client.get("/dashboard/stats")

    with pytest.raises(SessionTerminated):
        run(call)
    assert calls == ["Bearer access-1", "Bearer access-2"]
    assert refreshes == ["refresh-1"]
    assert not store.is_authenticated


def test_concurrent_unauthorized_calls_share_one_refresh() -> None:
    refreshes = []

    def handler(request):
        if request.headers.get("Authorization") == "Bearer access-2":
            return httpx.Response(200, json={"path": request.url.path})
        return httpx.Response(401)

    async def refresher(refresh_token):
        refreshes.append(refresh_token)
        await asyncio.sleep(0.01)
        return "access-2"

    store = TokenStore(MemoryStorage(), refresher=refresher)
    store.set_session("access-1", "refresh-1")
    client, _ = make_client(handler, store)

    async def call():
        async with client:
            return await asyncio.gather(
                client.get("/dashboard/stats"),
                client.get("/visits/due-today"),
                client.get("/visits/upcoming"),
            )

    responses = run(call)
    assert [r.status_code for r in responses] == [200, 200, 200]
    assert refreshes == ["refresh-1"]


def test_cancel_event_aborts_backoff_wait() -> None:
    cancel = asyncio.Event()
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(503)

    async def slow_sleep(delay):
        cancel.set()
        await asyncio.sleep(3600)

    client, _ = make_client(handler, sleep=slow_sleep)

    async def call():
        async with client:
            await client.get("/dashboard/stats", cancel_event=cancel)

    with pytest.raises(RequestCancelled):
        run(call)
    assert calls == [1]


def test_cancelled_before_start_sends_nothing() -> None:
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(200)

    client, _ = make_client(handler)

    async def call():
        cancel = asyncio.Event()
        cancel.set()
        async with client:
            await client.get("/dashboard/stats", cancel_event=cancel)

    with pytest.raises(RequestCancelled):
        run(call)
    assert calls == []


def test_negative_retry_budget_is_rejected() -> None:
    with pytest.raises(ValueError):
        ResilientClient(TokenStore(MemoryStorage()), BASE_URL, max_retries=-1)


def test_clinic_api_client_login_query_and_logout() -> None:
    requests = []

    def handler(request):
        requests.append(request)
        path = request.url.path
        if path == "/api/v1/auth/login":
            return httpx.Response(200, json={
                "tokens": {"access_token": "access-1", "refresh_token": "refresh-1", "token_type": "bearer", "expires_in": 900},
                "user": {"id": 5, "email": "staff@happypaws.vet", "role": "STAFF", "clinic_id": 2},
            })
        if path == "/api/v1/visits/upcoming":
            return httpx.Response(200, json=[{"id": 11}])
        if path == "/api/v1/auth/logout":
            return httpx.Response(204)
        return httpx.Response(404)

    storage = MemoryStorage()
    config = ClientSettings(API_BASE_URL=BASE_URL)
    api = ClinicApiClient.from_settings(config, storage=storage, transport=httpx.MockTransport(handler), sleep=Recorder())

    async def session():
        async with api:
            user = await api.login("staff@happypaws.vet", "pw")
            visits = await api.upcoming_visits(days_ahead=7, visit_type="vaccination", reminder_enabled=True)
            await api.logout()
            return user, visits

    user, visits = run(session)
    assert user["id"] == 5
    assert visits == [{"id": 11}]
    assert storage.get("vet-auth-storage") is None

    upcoming = requests[1]
    assert upcoming.headers["Authorization"] == "Bearer access-1"
    assert dict(upcoming.url.params) == {
        "days_ahead": "7", "limit": "10", "visit_type": "vaccination", "reminder_enabled": "true",
    }
    assert json.loads(requests[2].content) == {"refresh_token": "refresh-1"}


def test_clinic_api_client_rejected_login() -> None:
    def handler(request):
        return httpx.Response(401, json={"message": "Invalid email or password"})

    api = ClinicApiClient.from_settings(
        ClientSettings(API_BASE_URL=BASE_URL), storage=MemoryStorage(), transport=httpx.MockTransport(handler)
    )

    async def session():
        async with api:
            await api.login("staff@happypaws.vet", "wrong")

    with pytest.raises(AuthExpired):
        run(session)
    assert not api.token_store.is_authenticated


def test_clinic_api_client_profile_refreshes_stored_user() -> None:
    def handler(request):
        assert request.url.path == "/api/v1/auth/profile"
        assert request.headers["Authorization"] == "Bearer access-1"
        return httpx.Response(200, json={"id": 5, "email": "staff@happypaws.vet", "role": "ADMIN", "clinic_id": None})

    storage = MemoryStorage()
    api = ClinicApiClient.from_settings(
        ClientSettings(API_BASE_URL=BASE_URL), storage=storage, transport=httpx.MockTransport(handler)
    )
    api.token_store.set_session("access-1", "refresh-1", {"id": 5, "role": "STAFF"})

    async def session():
        async with api:
            return await api.profile()

    assert run(session)["role"] == "ADMIN"
    stored = storage.get("vet-auth-storage")
    assert stored["user"]["role"] == "ADMIN"
    assert stored["access_token"] == "access-1"
    assert stored["refresh_token"] == "refresh-1"
