"""Upstream forwarding used by the relay server.

The relay owns no resilience of its own: one inbound request produces one
outbound request, and failures surface as ProxyRequestError for the HTTP
layer to turn into a 500.
"""

import base64
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from paytag.domain.errors import ProxyRequestError
from paytag.domain.protocols import HttpClient, HttpResponse
from paytag.domain.request_builder import now_millis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ForwardedResponse:
    status_code: int
    payload: Any


def build_forward_headers(origin: str, headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """Merge caller headers over the defaults and force the allow-listed Origin."""
    merged = {"Content-Type": "application/json"}
    for key, value in (headers or {}).items():
        if key.lower() == "origin":
            continue
        if key.lower() == "content-type":
            merged.pop("Content-Type", None)
        merged[key] = value
    merged["Origin"] = origin
    return merged


def decode_upstream_body(response: HttpResponse) -> Any:
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        return response.json()

    text = response.text
    logger.info(f"Upstream response (text, first 1000 chars): {text[:1000]}")
    stripped = text.strip()
    if stripped.startswith("{") or stripped.startswith("["):
        try:
            return json.loads(stripped)
        except ValueError as exc:
            logger.info(f"Response looks like JSON but failed to parse: {exc}")
    return {"response": text}


class ProxyForwarder:
    def __init__(self, http_client: HttpClient, origin: str, timeout_seconds: float = 60.0):
        self.http_client = http_client
        self.origin = origin
        self.timeout_seconds = timeout_seconds

    async def forward(
        self,
        url: str,
        method: str = "POST",
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
    ) -> ForwardedResponse:
        outbound_headers = build_forward_headers(self.origin, headers)
        method = method.upper()
        logger.info(f"Forwarding {method} {url} with Origin {self.origin}")
        logger.debug(f"Forward headers: {list(outbound_headers)} body: {body}")

        try:
            response = await self.http_client.request(
                method,
                url,
                headers=outbound_headers,
                json=body,
                timeout=self.timeout_seconds,
            )
            payload = decode_upstream_body(response)
        except Exception as exc:
            logger.error(f"Proxy error for {method} {url}: {exc}")
            raise ProxyRequestError(str(exc) or exc.__class__.__name__) from exc

        logger.info(f"Upstream responded with HTTP {response.status_code}")
        return ForwardedResponse(status_code=response.status_code, payload=payload)


def basic_auth_header(consumer_key: Optional[str], consumer_secret: Optional[str]) -> str:
    raw = f"{consumer_key}:{consumer_secret}".encode()
    return "Basic " + base64.b64encode(raw).decode()


class MpesaPassthrough:
    """Fixed-endpoint helpers backing /getSession, /c2bPayment and /b2bPayment."""

    def __init__(
        self,
        http_client: HttpClient,
        consumer_key: Optional[str],
        consumer_secret: Optional[str],
        business_shortcode: str,
        session_url: str,
        c2b_url: str,
        b2b_url: str,
        country: str = "LES",
        currency: str = "LSL",
        timeout_seconds: float = 60.0,
    ):
        self.http_client = http_client
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.business_shortcode = business_shortcode
        self.session_url = session_url
        self.c2b_url = c2b_url
        self.b2b_url = b2b_url
        self.country = country
        self.currency = currency
        self.timeout_seconds = timeout_seconds

    async def get_session(self) -> Any:
        response = await self.http_client.request(
            "GET",
            self.session_url,
            headers={"Authorization": basic_auth_header(self.consumer_key, self.consumer_secret)},
            timeout=self.timeout_seconds,
        )
        return response.json()

    async def _access_token(self) -> Optional[str]:
        data = await self.get_session()
        return data.get("output_Accesstoken") or data.get("access_token")

    async def _post_payment(self, url: str, body: Dict[str, Any]) -> Any:
        token = await self._access_token()
        response = await self.http_client.request(
            "POST",
            url,
            headers={"Content-Type": "application/json", "Authorization": f"Bearer {token}"},
            json=body,
            timeout=self.timeout_seconds,
        )
        return response.json()

    async def c2b_payment(self, amount: Any, msisdn: str, reference: str) -> Any:
        return await self._post_payment(
            self.c2b_url,
            {
                "input_Amount": amount,
                "input_Country": self.country,
                "input_Currency": self.currency,
                "input_CustomerMSISDN": msisdn,
                "input_ServiceProviderCode": self.business_shortcode,
                "input_ThirdPartyReference": reference,
                "input_TransactionReference": f"TXN{now_millis()}",
            },
        )

    async def b2b_payment(self, amount: Any, receiver_shortcode: str, reference: str) -> Any:
        return await self._post_payment(
            self.b2b_url,
            {
                "input_Amount": amount,
                "input_Country": self.country,
                "input_Currency": self.currency,
                "input_PrimaryPartyCode": self.business_shortcode,
                "input_ReceiverPartyCode": receiver_shortcode,
                "input_ThirdPartyReference": reference,
                "input_TransactionReference": f"B2B{now_millis()}",
            },
        )
