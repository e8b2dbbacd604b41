"""Graph client retry, backoff and paging."""

from __future__ import annotations

import random

import httpx
import pytest

from leadsync.meta.client import (
    GraphClient,
    RetryPolicy,
    UpstreamError,
    account_path,
    error_from_response,
    parse_retry_after,
)
from leadsync.tests.conftest import ACCESS_TOKEN, GRAPH_BASE, FakeGraph, graph_error


# -- policy --------------------------------------------------------------


def test_backoff_doubles_and_caps():
    policy = RetryPolicy()
    assert [policy.backoff_ms(n) for n in range(1, 8)] == [
        500, 1000, 2000, 4000, 8000, 16000, 30000,
    ]
    assert policy.backoff_ms(20) == 30000


def test_backoff_jitter_stays_in_bounds():
    policy = RetryPolicy()
    rng = random.Random(1)
    for attempt in range(1, 10):
        floor = min(30000, 500 * 2 ** (attempt - 1)) / 1000
        for _ in range(200):
            delay = policy.delay_seconds(attempt, rng=rng)
            assert floor <= delay < floor + 0.25


def test_retry_after_wins_when_longer():
    policy = RetryPolicy()
    assert policy.backoff_ms(1, retry_after_seconds=5) == 5000
    # Shorter Retry-After than the computed backoff is ignored.
    assert policy.backoff_ms(4, retry_after_seconds=1, jitter_ms=100) == 4100


@pytest.mark.parametrize(
    "error",
    [
        UpstreamError("rate", status=429),
        UpstreamError("oops", status=500),
        UpstreamError("oops", status=503),
        UpstreamError("throttled", status=400, code=17),
        UpstreamError("app limit", status=400, code=4),
        UpstreamError("page limit", status=400, code=32),
        UpstreamError("busy", status=400, code=613),
        UpstreamError("subcode", status=400, code=100, subcode=99),
        UpstreamError("reset"),
    ],
)
def test_transient_errors_are_retryable(error):
    assert RetryPolicy().is_retryable(error)


@pytest.mark.parametrize(
    "error",
    [
        UpstreamError("bad token", status=400, code=190),
        UpstreamError("forbidden", status=403, code=200),
        UpstreamError("unauthorized", status=401),
        UpstreamError("not found", status=404, code=803),
    ],
)
def test_fatal_errors_are_not_retryable(error):
    assert not RetryPolicy().is_retryable(error)


def test_parse_retry_after():
    assert parse_retry_after("5") == 5.0
    assert parse_retry_after(" 2.5 ") == 2.5
    assert parse_retry_after(None) == 0.0
    assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") == 0.0
    assert parse_retry_after("-3") == 0.0


def test_error_from_response_reads_graph_error_body():
    err = error_from_response(graph_error(400, "Invalid OAuth access token", code=190, subcode=463))
    assert err.status == 400
    assert err.code == 190
    assert err.subcode == 463
    assert "Invalid OAuth" in err.message


def test_error_from_response_without_json_body():
    err = error_from_response(httpx.Response(502, text="Bad gateway", headers={"Retry-After": "3"}))
    assert err.message == "HTTP 502"
    assert err.code is None
    assert err.retry_after == 3.0


def test_account_path_adds_prefix_once():
    assert account_path("123") == "act_123"
    assert account_path("act_123") == "act_123"
    assert account_path(" 42 ") == "act_42"


# -- client --------------------------------------------------------------


@pytest.mark.asyncio
async def test_get_sends_access_token(graph: GraphClient, fake_graph: FakeGraph):
    fake_graph.add_pages("act_1/ads", [[{"id": "a1"}]])
    body = await graph.get("act_1/ads", {"fields": "id"})

    assert body["data"] == [{"id": "a1"}]
    request = fake_graph.requests[0]
    assert request.url.params["access_token"] == ACCESS_TOKEN
    assert request.url.params["fields"] == "id"


@pytest.mark.asyncio
async def test_retries_429_and_5xx_then_succeeds(graph: GraphClient, fake_graph: FakeGraph):
    fake_graph.fail("act_1/ads", graph_error(429, "slow down"), graph_error(500, "oops"))
    fake_graph.add_pages("act_1/ads", [[{"id": "a1"}]])

    body = await graph.get("act_1/ads")

    assert body["data"] == [{"id": "a1"}]
    assert len(fake_graph.requests) == 3
    assert len(fake_graph.sleeps) == 2
    assert 0.5 <= fake_graph.sleeps[0] < 0.75
    assert 1.0 <= fake_graph.sleeps[1] < 1.25


@pytest.mark.asyncio
async def test_retries_throttling_code_on_400(graph: GraphClient, fake_graph: FakeGraph):
    fake_graph.fail("act_1/ads", graph_error(400, "User request limit reached", code=17))
    fake_graph.add_pages("act_1/ads", [[]])

    await graph.get("act_1/ads")

    assert len(fake_graph.requests) == 2


@pytest.mark.asyncio
async def test_honors_retry_after_header(graph: GraphClient, fake_graph: FakeGraph):
    fake_graph.fail("act_1/ads", graph_error(429, headers={"Retry-After": "5"}))
    fake_graph.add_pages("act_1/ads", [[]])

    await graph.get("act_1/ads")

    assert fake_graph.sleeps[0] >= 5.0


@pytest.mark.asyncio
async def test_fatal_error_raises_without_retry(graph: GraphClient, fake_graph: FakeGraph):
    fake_graph.fail("act_1/ads", graph_error(400, "Invalid OAuth access token", code=190))

    with pytest.raises(UpstreamError) as exc_info:
        await graph.get("act_1/ads")

    assert exc_info.value.code == 190
    assert exc_info.value.status == 400
    assert len(fake_graph.requests) == 1
    assert fake_graph.sleeps == []


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts(graph: GraphClient, fake_graph: FakeGraph):
    fake_graph.fail("act_1/ads", *[graph_error(503, f"down {n}") for n in range(6)])
    fake_graph.add_pages("act_1/ads", [[{"id": "never"}]])

    with pytest.raises(UpstreamError) as exc_info:
        await graph.get("act_1/ads")

    assert exc_info.value.status == 503
    assert exc_info.value.message == "down 5"
    assert len(fake_graph.requests) == 6
    assert len(fake_graph.sleeps) == 5


@pytest.mark.asyncio
async def test_transport_errors_are_retried(graph: GraphClient, fake_graph: FakeGraph):
    fake_graph.add_pages("act_1/ads", [[{"id": "a1"}]])
    calls = {"n": 0}

    def flaky(request: httpx.Request):
        calls["n"] += 1
        if calls["n"] == 1:
            raise httpx.ConnectError("connection reset", request=request)

    fake_graph.on_request = flaky

    body = await graph.get("act_1/ads")

    assert body["data"] == [{"id": "a1"}]
    assert len(fake_graph.sleeps) == 1


@pytest.mark.asyncio
async def test_iter_pages_follows_next_url(graph: GraphClient, fake_graph: FakeGraph):
    fake_graph.add_pages("F1/leads", [[{"id": "1"}, {"id": "2"}], [{"id": "3"}], [{"id": "4"}]])

    pages = [rows async for rows in graph.iter_pages("F1/leads", {"limit": 2})]

    assert [[row["id"] for row in rows] for rows in pages] == [["1", "2"], ["3"], ["4"]]
    assert len(fake_graph.requests) == 3
    followed = fake_graph.requests[1]
    assert followed.url.params["after"] == "1"
    assert followed.url.params["limit"] == "2"
    assert followed.url.params.get_list("access_token") == [ACCESS_TOKEN]
    assert fake_graph.requests[2].url.params["after"] == "2"


@pytest.mark.asyncio
async def test_get_full_url_keeps_its_query(graph: GraphClient, fake_graph: FakeGraph):
    fake_graph.add_pages("F1/leads", [[{"id": "1"}], [{"id": "2"}]])

    body = await graph.get(f"{GRAPH_BASE}/F1/leads?after=1&limit=5", {"fields": "id"})

    assert body["data"] == [{"id": "2"}]
    params = fake_graph.requests[0].url.params
    assert params["after"] == "1"
    assert params["limit"] == "5"
    assert params["fields"] == "id"
    assert params.get_list("access_token") == [ACCESS_TOKEN]


@pytest.mark.asyncio
async def test_iter_pages_is_lazy(graph: GraphClient, fake_graph: FakeGraph):
    fake_graph.add_pages("F1/leads", [[{"id": "1"}], [{"id": "2"}]])

    pages = graph.iter_pages("F1/leads")
    first = await pages.__anext__()

    assert first == [{"id": "1"}]
    assert len(fake_graph.requests) == 1
    await pages.aclose()


@pytest.mark.asyncio
async def test_context_manager_closes_client():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"data": []}))
    async with GraphClient("tok", base_url="https://graph.test/v19.0", transport=transport) as client:
        assert (await client.get("me"))["data"] == []
    assert client._client.is_closed
