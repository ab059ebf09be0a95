import pytest
from fastapi.testclient import TestClient

from paytag.api import create_app
from paytag.config.settings import Settings
from paytag.domain.health_check import RelayHealthCheck
from paytag.domain.proxy import MpesaPassthrough, ProxyForwarder
from paytag.domain.relay_client import RelayClient
from paytag.domain.request_builder import RequestBuilder
from paytag.domain.services import MpesaService
from paytag.domain.token_provider import ApiKeyTokenProvider
from tests.helpers import FIXED_MILLIS, RELAY_URL, RecordingSleep


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        consumer_key="test-api-key-123456",
        consumer_secret="test-secret",
        relay_url=RELAY_URL,
        node_env="development",
    )


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def relay_client_factory(settings, recording_sleep):
    """Build a RelayClient over a scripted HTTP client with recorded backoff sleeps."""

    def factory(http_client, **overrides) -> RelayClient:
        health_check = RelayHealthCheck(
            health_url=settings.relay_health_url,
            http_client=http_client,
            retries=overrides.pop("health_retries", settings.health_retries),
            timeout_seconds=overrides.pop("health_timeout_seconds", settings.health_timeout_seconds),
            backoff_seconds=settings.health_backoff_seconds,
            sleep=recording_sleep,
        )
        options = {
            "retries": settings.dispatch_retries,
            "backoff_seconds": settings.dispatch_backoff_seconds,
            "timeout_seconds": settings.dispatch_timeout_seconds,
        }
        options.update(overrides)
        return RelayClient(
            proxy_url=settings.relay_proxy_url,
            relay_base_url=settings.relay_url,
            http_client=http_client,
            health_check=health_check,
            sleep=recording_sleep,
            **options,
        )

    return factory


@pytest.fixture
def request_builder(settings):
    return RequestBuilder(settings, clock=lambda: FIXED_MILLIS)


@pytest.fixture
def mpesa_service_factory(settings, request_builder, relay_client_factory):
    def factory(http_client, token_provider=None) -> MpesaService:
        return MpesaService(
            builder=request_builder,
            relay_client=relay_client_factory(http_client),
            token_provider=token_provider or ApiKeyTokenProvider(settings.consumer_key),
            origin=settings.mpesa_origin,
        )

    return factory


@pytest.fixture
def relay_app_factory(settings):
    """Create the relay FastAPI app over a scripted upstream client"""

    def factory(upstream_client, app_settings: Settings = None) -> TestClient:
        app_settings = app_settings or settings
        forwarder = ProxyForwarder(upstream_client, origin=app_settings.mpesa_origin)
        passthrough = MpesaPassthrough(
            http_client=upstream_client,
            consumer_key=app_settings.consumer_key,
            consumer_secret=app_settings.consumer_secret,
            business_shortcode=app_settings.business_shortcode,
            session_url=app_settings.session_url,
            c2b_url=app_settings.c2b_payment_url,
            b2b_url=app_settings.b2b_passthrough_url,
        )
        app = create_app(app_settings, forwarder=forwarder, passthrough=passthrough)
        return TestClient(app)

    return factory
