"""Shared fixtures for API server adapter tests."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

import httpx
import pytest

from cnat.adapters.apiserver import ApiServerResourceClient
from cnat.adapters.http_resilience import ResilientClient, RetryPolicy
from cnat.config.apiserver import ApiServerConfig
from tests.helpers.apiserver import FakeApiServer

if TYPE_CHECKING:
    from collections.abc import Iterator

    from cnat.config.http_resilience import ResilienceConfig


@pytest.fixture
def api_server() -> FakeApiServer:
    return FakeApiServer()


@pytest.fixture
def api_config() -> ApiServerConfig:
    return ApiServerConfig(server="https://cluster.example:6443/", token="secret", namespace="team-a")


@pytest.fixture
def api_client(
    api_server: FakeApiServer, api_config: ApiServerConfig
) -> Iterator[ApiServerResourceClient]:
    def factory(resilience: ResilienceConfig) -> ResilientClient:
        return ResilientClient(
            replace(resilience, retry=RetryPolicy(total=0)),
            transport=httpx.MockTransport(api_server.handler),
        )

    with ApiServerResourceClient(api_config, client_factory=factory) as client:
        yield client
