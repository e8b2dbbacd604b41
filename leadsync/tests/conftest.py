"""Async test fixtures: in-memory SQLite and a fake Graph API."""

from __future__ import annotations

import random
from typing import Any, Callable

import httpx
from httpx import ASGITransport, AsyncClient
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from leadsync.database import get_db
from leadsync.meta.client import GraphClient, RetryPolicy
from leadsync.models.campaign import Campaign, CampaignCaller
from leadsync.models.base import Base

GRAPH_BASE = "https://graph.test/v19.0"
ACCESS_TOKEN = "test-token"


class FakeGraph:
    """Serves canned Graph pages keyed by path, following ``after`` cursors.

    ``pages[path]`` is a list of pages (each a list of rows). ``failures[path]``
    is a list of responses returned, in order, before the pages are served.
    """

    def __init__(self) -> None:
        self.pages: dict[str, list[list[dict]]] = {}
        self.failures: dict[str, list[httpx.Response]] = {}
        self.requests: list[httpx.Request] = []
        self.sleeps: list[float] = []
        self.on_request: Callable[[httpx.Request], Any] | None = None

    def add_pages(self, path: str, pages: list[list[dict]]) -> None:
        self.pages[path] = pages

    def fail(self, path: str, *responses: httpx.Response) -> None:
        self.failures.setdefault(path, []).extend(responses)

    def requests_for(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if self._key(r) == path]

    @staticmethod
    def _key(request: httpx.Request) -> str:
        path = request.url.path
        prefix = "/v19.0/"
        return path[len(prefix):] if path.startswith(prefix) else path.lstrip("/")

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.on_request:
            self.on_request(request)
        key = self._key(request)

        pending = self.failures.get(key)
        if pending:
            return pending.pop(0)

        if key not in self.pages:
            return graph_error(400, "Unsupported get request", code=100)

        pages = self.pages[key]
        index = int(request.url.params.get("after", "0"))
        body: dict[str, Any] = {"data": pages[index] if index < len(pages) else []}
        if index + 1 < len(pages):
            # Like the real API, the next URL repeats the original query with a new cursor.
            next_url = request.url.copy_set_param("after", str(index + 1))
            body["paging"] = {"cursors": {"after": str(index + 1)}, "next": str(next_url)}
        return httpx.Response(200, json=body)


def graph_error(
    status: int,
    message: str = "error",
    *,
    code: int | None = None,
    subcode: int | None = None,
    headers: dict[str, str] | None = None,
) -> httpx.Response:
    error: dict[str, Any] = {"message": message, "type": "OAuthException"}
    if code is not None:
        error["code"] = code
    if subcode is not None:
        error["error_subcode"] = subcode
    return httpx.Response(status, json={"error": error}, headers=headers or {})


def make_lead_row(lead_id: str, **overrides) -> dict:
    row = {
        "id": lead_id,
        "created_time": "2026-02-16T10:00:00+0000",
        "form_id": "F1",
        "field_data": [
            {"name": "Full_Name", "values": ["Asha Rao"]},
            {"name": "City", "values": ["bangalore"]},
        ],
    }
    row.update(overrides)
    return row


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_graph() -> FakeGraph:
    return FakeGraph()


@pytest_asyncio.fixture
async def graph(fake_graph: FakeGraph):
    """GraphClient wired to FakeGraph; sleeps are recorded, never awaited."""

    async def _sleep(seconds: float) -> None:
        fake_graph.sleeps.append(seconds)

    client = GraphClient(
        ACCESS_TOKEN,
        base_url=GRAPH_BASE,
        policy=RetryPolicy(max_attempts=6),
        sleep=_sleep,
        rng=random.Random(7),
        transport=httpx.MockTransport(fake_graph.handler),
    )
    yield client
    await client.close()


@pytest_asyncio.fixture
async def campaign(db: AsyncSession) -> Campaign:
    """Platform campaign C1 with a 70/30 operator roster."""
    camp = Campaign(
        name="Spring Promo",
        provider="meta",
        external_id="C1",
        ad_account_id="act_1",
        assigned_callers=[
            CampaignCaller(operator_id="op-a", percentage=70, position=0),
            CampaignCaller(operator_id="op-b", percentage=30, position=1),
        ],
    )
    db.add(camp)
    await db.commit()
    return camp


@pytest_asyncio.fixture
async def client(engine):
    """HTTPX async test client against the lead sync app."""
    from leadsync.app import app

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
