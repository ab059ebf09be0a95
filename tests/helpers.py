"""Scripted doubles shared across the test modules."""

import asyncio
import json

RELAY_URL = "http://relay.test"
HEALTH_URL = f"{RELAY_URL}/health"
PROXY_URL = f"{RELAY_URL}/mpesa-proxy"
FIXED_MILLIS = 1700000000000


class MockResponse:
    def __init__(self, status_code: int = 200, json_data=None, text: str = None, headers: dict = None):
        self.status_code = status_code
        self._json_data = json_data
        if text is None:
            text = json.dumps(json_data) if json_data is not None else ""
        self.text = text
        if headers is None:
            headers = {"content-type": "application/json"} if json_data is not None else {"content-type": "text/plain"}
        self.headers = headers

    def json(self):
        if self._json_data is not None:
            return self._json_data
        return json.loads(self.text)


class Delayed:
    """Route item that waits before answering, for timeout tests."""

    def __init__(self, seconds: float, response: MockResponse = None):
        self.seconds = seconds
        self.response = response or MockResponse(200, {"status": "ok"})


class MockHttpClient:
    """Scripted HTTP client: each URL answers with its queued items in order.

    The last item for a URL is repeated once the queue runs down to it.
    Exceptions in the queue are raised instead of returned.
    """

    def __init__(self, routes: dict = None):
        self.routes = {url: list(items) for url, items in (routes or {}).items()}
        self.calls = []

    def calls_to(self, url: str) -> list:
        return [call for call in self.calls if call["url"] == url]

    async def request(self, method, url, *, headers=None, json=None, params=None, timeout=None):
        self.calls.append(
            {"method": method, "url": url, "headers": headers, "json": json, "timeout": timeout}
        )
        items = self.routes.get(url)
        if not items:
            raise AssertionError(f"Unexpected request to {url}")
        item = items.pop(0) if len(items) > 1 else items[0]
        if isinstance(item, Delayed):
            await asyncio.sleep(item.seconds)
            return item.response
        if isinstance(item, Exception):
            raise item
        return item


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def healthy() -> MockResponse:
    return MockResponse(200, {"status": "ok", "message": "Proxy server is running"})


def upstream(json_data: dict, status_code: int = 200) -> MockResponse:
    return MockResponse(status_code, json_data)

