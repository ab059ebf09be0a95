from typing import Optional

from paytag.adapters.http import HttpxHttpClient
from paytag.config.settings import Settings
from paytag.domain.health_check import RelayHealthCheck
from paytag.domain.protocols import HttpClient, TokenProvider
from paytag.domain.proxy import MpesaPassthrough, ProxyForwarder
from paytag.domain.relay_client import RelayClient
from paytag.domain.request_builder import RequestBuilder
from paytag.domain.services import MpesaService
from paytag.domain.token_provider import ApiKeyTokenProvider, SessionTokenProvider


def create_token_provider(settings: Settings, http_client: HttpClient) -> TokenProvider:
    """Pick the bearer-token strategy named by TOKEN_PROVIDER."""
    if settings.token_provider == "session":
        return SessionTokenProvider(
            session_url=settings.relay_session_url,
            http_client=http_client,
            timeout_seconds=settings.dispatch_timeout_seconds,
        )
    return ApiKeyTokenProvider(settings.consumer_key)


def create_relay_client(settings: Settings, http_client: HttpClient) -> RelayClient:
    health_check = RelayHealthCheck(
        health_url=settings.relay_health_url,
        http_client=http_client,
        retries=settings.health_retries,
        timeout_seconds=settings.health_timeout_seconds,
        backoff_seconds=settings.health_backoff_seconds,
    )
    return RelayClient(
        proxy_url=settings.relay_proxy_url,
        relay_base_url=settings.relay_url,
        http_client=http_client,
        health_check=health_check,
        retries=settings.dispatch_retries,
        backoff_seconds=settings.dispatch_backoff_seconds,
        timeout_seconds=settings.dispatch_timeout_seconds,
    )


def create_mpesa_service(settings: Settings, http_client: Optional[HttpClient] = None) -> MpesaService:
    """Create the client-side MpesaService with real implementations."""
    http_client = http_client or HttpxHttpClient(timeout=settings.dispatch_timeout_seconds)
    return MpesaService(
        builder=RequestBuilder(settings),
        relay_client=create_relay_client(settings, http_client),
        token_provider=create_token_provider(settings, http_client),
        origin=settings.mpesa_origin,
    )


def create_forwarder(settings: Settings, http_client: HttpClient) -> ProxyForwarder:
    return ProxyForwarder(
        http_client=http_client,
        origin=settings.mpesa_origin,
        timeout_seconds=settings.upstream_timeout_seconds,
    )


def create_passthrough(settings: Settings, http_client: HttpClient) -> MpesaPassthrough:
    return MpesaPassthrough(
        http_client=http_client,
        consumer_key=settings.consumer_key,
        consumer_secret=settings.consumer_secret,
        business_shortcode=settings.business_shortcode,
        session_url=settings.session_url,
        c2b_url=settings.c2b_payment_url,
        b2b_url=settings.b2b_passthrough_url,
        country=settings.country,
        currency=settings.currency,
        timeout_seconds=settings.upstream_timeout_seconds,
    )
