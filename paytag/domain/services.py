import logging
from decimal import Decimal
from typing import Optional

from paytag.domain.errors import AuthenticationError
from paytag.domain.messages import failure_message
from paytag.domain.models import (
    Failure,
    OperationType,
    Outcome,
    OutcomeKind,
    PaymentRequest,
    RelayEnvelope,
    Success,
)
from paytag.domain.protocols import TokenProvider
from paytag.domain.relay_client import RelayClient
from paytag.domain.request_builder import AmountLike, RequestBuilder

logger = logging.getLogger(__name__)


class MpesaService:
    """Payment operations exposed to the UI.

    Every method returns exactly one Outcome; transport, parse and business
    failures come back as Failure values instead of exceptions.
    """

    def __init__(
        self,
        builder: RequestBuilder,
        relay_client: RelayClient,
        token_provider: TokenProvider,
        origin: str,
    ):
        self.builder = builder
        self.relay_client = relay_client
        self.token_provider = token_provider
        self.origin = origin

    def _envelope(self, request: PaymentRequest, token: str) -> RelayEnvelope:
        return RelayEnvelope(
            target_url=request.target_url,
            method="POST",
            headers={
                "Content-Type": "application/json",
                "Origin": self.origin,
                "Authorization": f"Bearer {token}",
            },
            body=request.body,
        )

    async def _token(self) -> Optional[str]:
        try:
            return await self.token_provider.get_token()
        except AuthenticationError as exc:
            logger.error(f"Bearer token acquisition failed: {exc}")
            return None

    async def _execute(self, request: PaymentRequest, token: str) -> Outcome:
        logger.info(
            f"Sending {request.operation.value} {request.reference_id} "
            f"for {request.phone_or_party_code} to {request.target_url}"
        )
        outcome = await self.relay_client.send(self._envelope(request, token), request.operation)
        if isinstance(outcome, Success) and request.operation == OperationType.STATUS_QUERY:
            return outcome.model_copy(
                update={"details": {**outcome.details, "query_reference": request.reference_id}}
            )
        return outcome

    def _auth_failure(self) -> Failure:
        return Failure(
            kind=OutcomeKind.AUTH_ERROR,
            message=failure_message(OutcomeKind.AUTH_ERROR),
        )

    async def check_account_balance(self, phone: str, pin: Optional[str] = None) -> Outcome:
        if not pin:
            logger.info("Skipping balance check - PIN will be entered via the M-Pesa USSD prompt")
            return Success(
                payment_type=OperationType.BALANCE,
                details={"balance": Decimal("0"), "skip_check": True},
            )

        token = await self._token()
        if token is None:
            return self._auth_failure()
        return await self._execute(self.builder.build_balance(phone, pin), token)

    async def complete_payment(self, amount: AmountLike, phone: str, user_code: str) -> Outcome:
        """C2B payment; M-Pesa sends a USSD push so the customer confirms with their PIN."""
        token = await self._token()
        if token is None:
            return self._auth_failure()
        return await self._execute(self.builder.build_c2b(amount, phone, user_code), token)

    async def process_b2b_payment(
        self,
        amount: AmountLike,
        receiver_party_code: str,
        user_code: str,
        description: Optional[str] = None,
    ) -> Outcome:
        token = await self._token()
        if token is None:
            return self._auth_failure()
        request = self.builder.build_b2b(amount, receiver_party_code, user_code, description)
        return await self._execute(request, token)

    async def process_refund(
        self,
        amount: AmountLike,
        phone: str,
        transaction_id: str,
        reason: Optional[str] = None,
    ) -> Outcome:
        token = await self._token()
        if token is None:
            return self._auth_failure()
        request = self.builder.build_refund(amount, phone, transaction_id, reason)
        return await self._execute(request, token)

    async def query_transaction_status(
        self, query_reference: str, service_provider_code: Optional[str] = None
    ) -> Outcome:
        token = await self._token()
        if token is None:
            return self._auth_failure()
        request = self.builder.build_status_query(query_reference, service_provider_code)
        return await self._execute(request, token)
