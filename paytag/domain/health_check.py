import asyncio
import logging
from datetime import datetime, timezone

from paytag.domain.errors import RelayUnavailableError
from paytag.domain.models import HealthStatus
from paytag.domain.protocols import HttpClient, Sleeper

logger = logging.getLogger(__name__)


class RelayHealthCheck:
    """Probes the relay's liveness endpoint before each dispatch.

    The relay may be cold-starting, so each attempt gets a long timeout and
    attempts are spaced with a linearly growing wait (15s, 30s, 45s, ...).
    Nothing is cached; every call to ``probe`` hits the network.
    """

    def __init__(
        self,
        health_url: str,
        http_client: HttpClient,
        retries: int = 5,
        timeout_seconds: float = 45.0,
        backoff_seconds: float = 15.0,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.health_url = health_url
        self.http_client = http_client
        self.retries = retries
        self.timeout_seconds = timeout_seconds
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep

    async def _check_once(self) -> None:
        response = await asyncio.wait_for(
            self.http_client.request(
                "GET",
                self.health_url,
                headers={"Accept": "application/json"},
                timeout=self.timeout_seconds,
            ),
            timeout=self.timeout_seconds,
        )
        if not 200 <= response.status_code < 300:
            raise RelayUnavailableError(f"HTTP {response.status_code}")
        data = response.json()
        logger.info(f"Relay is healthy: {data}")

    async def probe(self) -> HealthStatus:
        detail = None
        for attempt in range(1, self.retries + 1):
            logger.info(f"Checking relay health (attempt {attempt}/{self.retries}): {self.health_url}")
            try:
                await self._check_once()
                return HealthStatus(
                    healthy=True,
                    checked_at=datetime.now(timezone.utc),
                    attempts=attempt,
                )
            except asyncio.TimeoutError:
                detail = f"timed out after {self.timeout_seconds}s"
                logger.error(f"Relay health check timeout (attempt {attempt}) - relay may be starting up")
            except Exception as exc:
                detail = str(exc) or exc.__class__.__name__
                logger.error(f"Relay health check failed (attempt {attempt}): {detail}")

            if attempt < self.retries:
                wait_time = self.backoff_seconds * attempt
                logger.info(f"Waiting {wait_time}s before next relay health check")
                await self.sleep(wait_time)

        logger.error(f"Relay health check failed after {self.retries} attempts")
        return HealthStatus(
            healthy=False,
            checked_at=datetime.now(timezone.utc),
            attempts=self.retries,
            detail=detail,
        )

    async def ensure_healthy(self) -> HealthStatus:
        """Probe the relay and raise RelayUnavailableError unless it is healthy."""
        status = await self.probe()
        if not status.healthy:
            raise RelayUnavailableError(status.detail or "relay did not respond")
        return status
