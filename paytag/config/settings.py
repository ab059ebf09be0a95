"""Environment-driven runtime settings.

Loaded once at process start and passed explicitly to every component that
needs it. The model is frozen, so a constructed ``Settings`` never changes.
"""

from decimal import Decimal
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed view of the relay and client configuration."""

    # Upstream credentials
    consumer_key: Optional[str] = None
    consumer_secret: Optional[str] = None
    business_shortcode: str = "115954"
    service_provider_code: str = "600123"

    # Process
    port: int = 5000
    node_env: str = "development"
    log_level: str = "INFO"
    enable_profiling: bool = False

    # Upstream API
    mpesa_origin: str = "https://paytag.co.ls"
    mpesa_base_url: str = "https://openapi.m-pesa.com/openapi/ipg/v2/vodacomLES"
    country: str = "LES"
    currency: str = "LSL"
    service_fee: Decimal = Decimal("19.00")

    # Relay server
    cors_origins: List[str] = [
        "https://preview--c1ztszfll2cb.trickle.host",
        "https://c1ztszfll2cb.trickle.host",
        "https://trickle.so",
        "https://paytag.co.ls",
        "https://paytag-proxy-server-production-0ef3.up.railway.app",
    ]
    upstream_timeout_seconds: float = 60.0

    # Relay client
    relay_url: str = "https://paytag-proxy-server-production-0ef3.up.railway.app"
    token_provider: Literal["api_key", "session"] = "api_key"
    health_retries: int = 5
    health_timeout_seconds: float = 45.0
    health_backoff_seconds: float = 15.0
    dispatch_retries: int = 3
    dispatch_backoff_seconds: float = 2.0
    dispatch_timeout_seconds: float = 60.0

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", frozen=True)

    @property
    def is_development(self) -> bool:
        return self.node_env.lower() == "development"

    @property
    def session_url(self) -> str:
        return f"{self.mpesa_base_url}/getSession/"

    @property
    def c2b_payment_url(self) -> str:
        return f"{self.mpesa_base_url}/c2bPayment/singleStage/"

    @property
    def b2b_payment_url(self) -> str:
        return f"{self.mpesa_base_url}/b2bPayment/singleStage/"

    @property
    def b2b_passthrough_url(self) -> str:
        """B2B endpoint used by the relay's convenience passthrough."""
        return f"{self.mpesa_base_url}/b2bPayment/"

    @property
    def b2c_payment_url(self) -> str:
        return f"{self.mpesa_base_url}/b2cPayment/"

    @property
    def balance_check_url(self) -> str:
        return f"{self.mpesa_base_url}/getAccountBalance/"

    @property
    def transaction_status_url(self) -> str:
        return f"{self.mpesa_base_url}/queryTransactionStatus/"

    @property
    def relay_proxy_url(self) -> str:
        return f"{self.relay_url.rstrip('/')}/mpesa-proxy"

    @property
    def relay_health_url(self) -> str:
        return f"{self.relay_url.rstrip('/')}/health"

    @property
    def relay_session_url(self) -> str:
        return f"{self.relay_url.rstrip('/')}/getSession"
