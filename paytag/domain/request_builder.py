"""Upstream request construction.

Normalizes human-entered inputs (phone numbers, amounts) and assembles the
``input_*`` payloads the M-Pesa OpenAPI expects. Amounts travel as strings
with two decimal places; the upstream rejects numeric JSON values.
"""

import re
import time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Callable, Optional, Union

from paytag.config.settings import Settings
from paytag.domain.models import OperationType, PaymentRequest

COUNTRY_PREFIX = "266"
LOCAL_NUMBER_LENGTH = 8
DEFAULT_SERVICE_FEE = Decimal("19.00")

_SEPARATORS = re.compile(r"[\s\-()+]")
_CENTS = Decimal("0.01")

AmountLike = Union[Decimal, str, int, float]


def normalize_msisdn(phone: str) -> str:
    """Strip separators and prepend the Lesotho prefix to 8-digit local numbers.

    Numbers of any other length are returned unchanged after stripping.
    """
    digits = _SEPARATORS.sub("", phone)
    if len(digits) == LOCAL_NUMBER_LENGTH and not digits.startswith(COUNTRY_PREFIX):
        return COUNTRY_PREFIX + digits
    return digits


def to_decimal(amount: AmountLike) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Invalid amount: {amount!r}") from exc
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    if value < 0:
        raise ValueError(f"Amount must not be negative: {amount!r}")
    return value


def format_amount(amount: AmountLike) -> str:
    return str(to_decimal(amount).quantize(_CENTS, rounding=ROUND_HALF_UP))


def c2b_total(amount: AmountLike, service_fee: AmountLike = DEFAULT_SERVICE_FEE) -> str:
    """Requested amount plus the fixed service fee, as a two-place string."""
    return format_amount(to_decimal(amount) + to_decimal(service_fee))


def now_millis() -> int:
    return int(time.time() * 1000)


def generate_reference(prefix: str, code: str = "", now_ms: Optional[int] = None) -> str:
    if now_ms is None:
        now_ms = now_millis()
    return f"{prefix}{now_ms}{code}"


class RequestBuilder:
    def __init__(
        self,
        settings: Settings,
        clock: Callable[[], int] = now_millis,
    ):
        self.settings = settings
        self.clock = clock

    def _reference(self, prefix: str, code: str = "") -> str:
        return generate_reference(prefix, code, self.clock())

    def build_balance(self, phone: str, pin: str) -> PaymentRequest:
        msisdn = normalize_msisdn(phone)
        return PaymentRequest(
            operation=OperationType.BALANCE,
            phone_or_party_code=msisdn,
            reference_id=self._reference("BAL"),
            service_provider_code=self.settings.business_shortcode,
            target_url=self.settings.balance_check_url,
            body={
                "input_CustomerMSISDN": msisdn,
                "input_PIN": pin,
                "input_ServiceProviderCode": self.settings.business_shortcode,
                "input_Country": self.settings.country,
            },
        )

    def build_c2b(self, amount: AmountLike, phone: str, user_code: str) -> PaymentRequest:
        msisdn = normalize_msisdn(phone)
        total = c2b_total(amount, self.settings.service_fee)
        reference = self._reference("PAY", user_code)
        return PaymentRequest(
            operation=OperationType.C2B,
            amount=Decimal(total),
            phone_or_party_code=msisdn,
            reference_id=reference,
            service_provider_code=self.settings.service_provider_code,
            target_url=self.settings.c2b_payment_url,
            body={
                "input_Amount": total,
                "input_Country": self.settings.country,
                "input_Currency": self.settings.currency,
                "input_CustomerMSISDN": msisdn,
                "input_ServiceProviderCode": self.settings.service_provider_code,
                "input_ThirdPartyReference": reference,
                "input_TransactionReference": reference,
            },
        )

    def build_b2b(
        self,
        amount: AmountLike,
        receiver_party_code: str,
        user_code: str,
        description: Optional[str] = None,
    ) -> PaymentRequest:
        formatted = format_amount(amount)
        reference = self._reference("B2B", user_code)
        return PaymentRequest(
            operation=OperationType.B2B,
            amount=Decimal(formatted),
            phone_or_party_code=receiver_party_code,
            reference_id=reference,
            service_provider_code=self.settings.business_shortcode,
            target_url=self.settings.b2b_payment_url,
            body={
                "input_Amount": formatted,
                "input_ReceiverPartyCode": receiver_party_code,
                "input_Country": self.settings.country,
                "input_Currency": self.settings.currency,
                "input_PrimaryPartyCode": self.settings.business_shortcode,
                "input_TransactionReference": reference,
                "input_PurchasedItemsDesc": description or f"B2B transfer LSL {amount}",
            },
        )

    def build_refund(
        self,
        amount: AmountLike,
        phone: str,
        transaction_id: str,
        reason: Optional[str] = None,
    ) -> PaymentRequest:
        msisdn = normalize_msisdn(phone)
        formatted = format_amount(amount)
        reference = self._reference("REFUND")
        return PaymentRequest(
            operation=OperationType.B2C_REFUND,
            amount=Decimal(formatted),
            phone_or_party_code=msisdn,
            reference_id=reference,
            service_provider_code=self.settings.business_shortcode,
            target_url=self.settings.b2c_payment_url,
            body={
                "input_Amount": formatted,
                "input_CustomerMSISDN": msisdn,
                "input_Country": self.settings.country,
                "input_Currency": self.settings.currency,
                "input_ServiceProviderCode": self.settings.business_shortcode,
                "input_TransactionReference": reference,
                "input_PaymentItemDesc": reason or f"Refund for transaction {transaction_id}",
            },
        )

    def build_status_query(
        self, query_reference: str, service_provider_code: Optional[str] = None
    ) -> PaymentRequest:
        provider_code = service_provider_code or self.settings.service_provider_code
        return PaymentRequest(
            operation=OperationType.STATUS_QUERY,
            phone_or_party_code=provider_code,
            reference_id=query_reference,
            service_provider_code=provider_code,
            target_url=self.settings.transaction_status_url,
            body={
                "input_QueryReference": query_reference,
                "input_ServiceProviderCode": provider_code,
                "input_Country": self.settings.country,
            },
        )
