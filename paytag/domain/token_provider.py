import asyncio
import logging
from typing import Optional

from paytag.domain.errors import AuthenticationError
from paytag.domain.protocols import HttpClient

logger = logging.getLogger(__name__)

SESSION_TOKEN_FIELDS = ("output_SessionID", "output_Accesstoken", "access_token")


def mask_token(token: str) -> str:
    return token[:10] + "..." if len(token) > 10 else "***"


class ApiKeyTokenProvider:
    """Uses the configured API key itself as the bearer token.

    No session exchange takes place. Whether the upstream accepts a raw key
    depends on how the account was provisioned; use SessionTokenProvider
    when it does not.
    """

    def __init__(self, api_key: Optional[str]):
        self.api_key = api_key

    async def get_token(self) -> str:
        if not self.api_key or not self.api_key.strip():
            raise AuthenticationError("No API key configured")
        logger.info(f"Using API key as bearer token ({mask_token(self.api_key)})")
        return self.api_key


class SessionTokenProvider:
    """Fetches a session token through the relay's /getSession passthrough."""

    def __init__(self, session_url: str, http_client: HttpClient, timeout_seconds: float = 30.0):
        self.session_url = session_url
        self.http_client = http_client
        self.timeout_seconds = timeout_seconds

    async def get_token(self) -> str:
        try:
            response = await asyncio.wait_for(
                self.http_client.request("POST", self.session_url, timeout=self.timeout_seconds),
                timeout=self.timeout_seconds,
            )
            data = response.json()
        except Exception as exc:
            logger.error(f"Session token request failed: {exc}")
            raise AuthenticationError(f"Session token request failed: {exc}") from exc

        if response.status_code >= 400 or not isinstance(data, dict):
            raise AuthenticationError(f"Session token request rejected (HTTP {response.status_code})")

        for field in SESSION_TOKEN_FIELDS:
            token = data.get(field)
            if token:
                logger.info(f"Session token acquired ({mask_token(token)})")
                return token

        raise AuthenticationError(
            f"Session response carried no token: {data.get('output_ResponseDesc', data)}"
        )
