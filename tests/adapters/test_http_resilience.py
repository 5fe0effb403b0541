from __future__ import annotations

import asyncio

import httpx

from cnat.adapters.http_resilience import (
    RateLimit,
    ResilienceConfig,
    ResilientClient,
    RetryPolicy,
    build_retry,
)


def test_build_retry_copies_the_policy() -> None:
    policy = RetryPolicy(total=5, backoff_factor=0.1, status_forcelist=frozenset({503}))

    retry = build_retry(policy)

    assert retry.total == 5
    assert retry.backoff_factor == 0.1
    assert 503 in retry.status_forcelist
    assert 500 not in retry.status_forcelist


def test_retries_transient_statuses() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(503)
        return httpx.Response(200, json={"ok": True})

    config = ResilienceConfig(
        name="test",
        base_url="http://api.test",
        retry=RetryPolicy(total=3, backoff_factor=0.0, backoff_jitter=0.0),
    )

    async def fetch() -> httpx.Response:
        async with ResilientClient(config, transport=httpx.MockTransport(handler)) as client:
            return await client.get("/healthz")

    response = asyncio.run(fetch())

    assert response.status_code == 200
    assert len(calls) == 3


def test_default_headers_and_rate_limit() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={})

    config = ResilienceConfig(
        name="test",
        base_url="http://api.test",
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        default_headers={"Authorization": "Bearer token"},
    )

    async def create() -> list[int]:
        async with ResilientClient(config, transport=httpx.MockTransport(handler)) as client:
            first = await client.post("/items", json={"a": 1})
            second = await client.put("/items/1", json={"a": 2})
            return [first.status_code, second.status_code]

    assert asyncio.run(create()) == [201, 201]
    assert [request.method for request in seen] == ["POST", "PUT"]
    assert all(request.headers["Authorization"] == "Bearer token" for request in seen)
