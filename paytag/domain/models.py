from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class OperationType(str, Enum):
    BALANCE = "Balance"
    C2B = "C2B"
    B2B = "B2B"
    B2C_REFUND = "B2C-Refund"
    STATUS_QUERY = "StatusQuery"


class OutcomeKind(str, Enum):
    INSUFFICIENT_BALANCE = "InsufficientBalance"
    INVALID_PIN = "InvalidPin"
    ACCOUNT_NOT_FOUND = "AccountNotFound"
    SERVICE_UNAVAILABLE = "ServiceUnavailable"
    MALFORMED_RESPONSE = "MalformedResponse"
    ORIGIN_REJECTED = "OriginRejected"
    NETWORK_ERROR = "NetworkError"
    AUTH_ERROR = "AuthError"
    UNKNOWN = "Unknown"


class PaymentRequest(BaseModel):
    """A fully built upstream request - what the client hands to the relay"""
    model_config = ConfigDict(frozen=True)

    operation: OperationType
    amount: Optional[Decimal] = Field(default=None, ge=Decimal("0.00"))
    phone_or_party_code: str
    reference_id: str
    service_provider_code: str
    target_url: str
    body: Dict[str, Any]


class RelayEnvelope(BaseModel):
    """Transport wrapper posted to the relay's /mpesa-proxy endpoint"""
    model_config = ConfigDict(frozen=True)

    target_url: str
    method: str = "POST"
    headers: Dict[str, str]
    body: Optional[Dict[str, Any]] = None

    def to_proxy_payload(self) -> dict:
        return {
            "url": self.target_url,
            "method": self.method,
            "headers": dict(self.headers),
            "body": self.body,
        }


class Success(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: Literal[True] = True
    transaction_id: Optional[str] = None
    conversation_id: Optional[str] = None
    payment_type: OperationType
    details: Dict[str, Any] = Field(default_factory=dict)


class Failure(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: Literal[False] = False
    kind: OutcomeKind
    message: str
    error_code: Optional[str] = None
    description: Optional[str] = None
    status_code: Optional[int] = None
    html_error: bool = False
    maintenance_page: bool = False
    matched_kinds: Tuple[OutcomeKind, ...] = ()
    raw_upstream_payload: Optional[Any] = None


Outcome = Union[Success, Failure]


class HealthStatus(BaseModel):
    healthy: bool
    checked_at: datetime
    attempts: int
    detail: Optional[str] = None


class ProxyRequest(BaseModel):
    """Body accepted by POST /mpesa-proxy"""
    url: Optional[str] = None
    method: str = "POST"
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[Any] = None


class C2BPassthroughRequest(BaseModel):
    amount: Any
    msisdn: str
    reference: str


class B2BPassthroughRequest(BaseModel):
    amount: Any
    receiverShortcode: str
    reference: str
