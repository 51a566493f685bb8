"""Shared fixtures: a Help Scout client backed by httpx.MockTransport."""
from typing import Callable

import httpx
import pytest

from helpscout_mcp.client import HelpScoutClient
from helpscout_mcp.config import Settings

BASE_URL = "https://api.helpscout.test/v2"


class RecordingTransport:
    """Routes requests to a handler and remembers every request sent."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def client(self) -> HelpScoutClient:
        http = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(self))
        return HelpScoutClient(http)


def conversations_page(conversations: list[dict], total: int | None = None) -> dict:
    return {
        "_embedded": {"conversations": conversations},
        "page": {
            "size": 25,
            "totalElements": len(conversations) if total is None else total,
            "totalPages": 1,
            "number": 1,
        },
    }


@pytest.fixture
def settings() -> Settings:
    return Settings(base_url=BASE_URL, access_token="test-token", allow_pii=False)


@pytest.fixture
def pii_settings() -> Settings:
    return Settings(base_url=BASE_URL, access_token="test-token", allow_pii=True)
