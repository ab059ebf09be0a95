import logging
from typing import Any, Mapping, Optional

import httpx

logger = logging.getLogger(__name__)


class HttpxHttpClient:
    """HTTP client adapter for httpx.

    A fresh connection is opened per request; the relay and its callers
    are stateless, so nothing is pooled across calls.
    """

    def __init__(self, timeout: float = 60.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self.client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            limits=httpx.Limits(max_keepalive_connections=0),
        )

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        json: Any = None,
        params: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """Make an HTTP request with an explicit per-call timeout."""
        try:
            logger.debug(f"Making {method} request to {url}")
            response = await self.client.request(
                method,
                url,
                headers=headers,
                json=json,
                params=params,
                timeout=timeout if timeout is not None else self.timeout,
            )
            logger.debug(f"{method} request to {url} completed with status {response.status_code}")
            return response
        except httpx.TimeoutException as e:
            logger.error(f"Timeout for {method} request to {url}: {e}")
            raise
        except httpx.RequestError as e:
            logger.error(f"Request error for {method} request to {url}: {e}")
            raise

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
