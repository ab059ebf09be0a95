import asyncio
import logging
from typing import Union

from paytag.domain.classifier import classify_response
from paytag.domain.errors import RelayUnavailableError
from paytag.domain.health_check import RelayHealthCheck
from paytag.domain.messages import RELAY_COLD_START_MESSAGE, failure_message
from paytag.domain.models import (
    Failure,
    OperationType,
    Outcome,
    OutcomeKind,
    RelayEnvelope,
)
from paytag.domain.protocols import HttpClient, HttpResponse, Sleeper

logger = logging.getLogger(__name__)

SERVICE_UNAVAILABLE = 503


class RelayClient:
    """Delivers envelopes to the relay server and classifies what comes back.

    Each call health-gates the relay, then dispatches with exponential
    backoff (2s, 4s, 8s). Only HTTP 503 and transport errors are retried;
    every other response goes straight to classification.
    """

    def __init__(
        self,
        proxy_url: str,
        relay_base_url: str,
        http_client: HttpClient,
        health_check: RelayHealthCheck,
        retries: int = 3,
        backoff_seconds: float = 2.0,
        timeout_seconds: float = 60.0,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.proxy_url = proxy_url
        self.relay_base_url = relay_base_url
        self.http_client = http_client
        self.health_check = health_check
        self.retries = retries
        self.backoff_seconds = backoff_seconds
        self.timeout_seconds = timeout_seconds
        self.sleep = sleep

    def _backoff(self, attempt: int) -> float:
        return self.backoff_seconds * (2 ** attempt)

    async def _post(self, envelope: RelayEnvelope) -> HttpResponse:
        return await asyncio.wait_for(
            self.http_client.request(
                "POST",
                self.proxy_url,
                headers={"Content-Type": "application/json", "Accept": "application/json"},
                json=envelope.to_proxy_payload(),
                timeout=self.timeout_seconds,
            ),
            timeout=self.timeout_seconds,
        )

    async def dispatch(self, envelope: RelayEnvelope) -> Union[HttpResponse, Failure]:
        """POST the envelope, retrying on 503 and transport errors.

        Returns the final response, or a NetworkError failure once every
        attempt raised.
        """
        last_error = ""
        for attempt in range(self.retries + 1):
            logger.info(
                f"Dispatch attempt {attempt + 1}/{self.retries + 1} to {self.proxy_url} "
                f"for {envelope.target_url}"
            )
            is_last = attempt == self.retries
            try:
                response = await self._post(envelope)
            except Exception as exc:
                last_error = str(exc) or exc.__class__.__name__
                logger.error(f"Relay dispatch error on attempt {attempt + 1}: {last_error}")
                if not is_last:
                    wait_time = self._backoff(attempt)
                    logger.info(f"Retrying relay dispatch after error in {wait_time}s")
                    await self.sleep(wait_time)
                continue

            logger.info(f"Relay responded with HTTP {response.status_code} on attempt {attempt + 1}")
            if response.status_code == SERVICE_UNAVAILABLE and not is_last:
                wait_time = self._backoff(attempt)
                logger.warning(f"503 Service Unavailable - retrying in {wait_time}s")
                await self.sleep(wait_time)
                continue
            return response

        logger.error("All relay dispatch attempts exhausted")
        return Failure(
            kind=OutcomeKind.NETWORK_ERROR,
            message=failure_message(OutcomeKind.NETWORK_ERROR),
            description=last_error,
        )

    async def send(self, envelope: RelayEnvelope, operation: OperationType) -> Outcome:
        try:
            await self.health_check.ensure_healthy()
        except RelayUnavailableError as exc:
            logger.error(f"Relay unavailable, not dispatching {operation.value}: {exc}")
            return Failure(
                kind=OutcomeKind.SERVICE_UNAVAILABLE,
                message=RELAY_COLD_START_MESSAGE.format(relay_url=self.relay_base_url),
                description=str(exc),
            )

        result = await self.dispatch(envelope)
        if isinstance(result, Failure):
            return result

        outcome = classify_response(result.text, result.status_code, operation)
        if outcome.success:
            logger.info(f"{operation.value} classified as success")
        else:
            logger.info(f"{operation.value} classified as {outcome.kind.value}")
        return outcome
