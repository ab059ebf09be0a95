"""Map a relay response onto a typed outcome.

Classification runs in a fixed order: transport-level emptiness, HTML error
pages, Origin rejection, JSON parsing (unwrapping the relay's ``{"response": text}``
envelope around non-JSON upstream bodies), and finally the upstream response
code. Known codes are looked up in ``RESPONSE_CODE_KINDS``; anything else
falls back to keyword matching on ``output_ResponseDesc``. Every function
here is pure, so classifying the same body twice yields the same outcome.
"""

import json
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Sequence, Tuple

from paytag.domain.messages import MAINTENANCE_MESSAGE, failure_message
from paytag.domain.models import (
    Failure,
    OperationType,
    Outcome,
    OutcomeKind,
    Success,
)

logger = logging.getLogger(__name__)

SUCCESS_CODE = "INS-0"

RESPONSE_CODE_KINDS: Dict[str, OutcomeKind] = {
    "INS-1": OutcomeKind.INSUFFICIENT_BALANCE,
    "INS-2001": OutcomeKind.INVALID_PIN,
    "INS-2002": OutcomeKind.ACCOUNT_NOT_FOUND,
    "INS-2006": OutcomeKind.INSUFFICIENT_BALANCE,
}

# Checked in order; the first matching set decides the kind, all matches are kept.
DESCRIPTION_KEYWORDS: Tuple[Tuple[OutcomeKind, Sequence[str]], ...] = (
    (OutcomeKind.INSUFFICIENT_BALANCE, ("insufficient", "balance", "not enough")),
    (OutcomeKind.INVALID_PIN, ("pin", "invalid pin", "wrong pin")),
    (OutcomeKind.ACCOUNT_NOT_FOUND, ("account", "not found")),
)

_MISSING_ORIGIN = re.compile(
    r"origin header (is )?(missing|required)|missing origin", re.IGNORECASE
)

SUFFICIENT_BALANCE_THRESHOLD = Decimal("50.00")


def match_description(description: str) -> Tuple[OutcomeKind, ...]:
    """Return every keyword set the description matches, in precedence order."""
    lowered = description.lower()
    return tuple(
        kind
        for kind, terms in DESCRIPTION_KEYWORDS
        if any(term in lowered for term in terms)
    )


def kind_for_code(code: Optional[str], description: str) -> Optional[OutcomeKind]:
    if code in RESPONSE_CODE_KINDS:
        return RESPONSE_CODE_KINDS[code]
    matches = match_description(description)
    return matches[0] if matches else None


def is_maintenance_page(text: str) -> bool:
    return "503 Service Unavailable" in text or "<h1>503" in text


def relay_wrapped_text(data: Any) -> Optional[str]:
    """Return the upstream text the relay wrapped as ``{"response": text}``."""
    if isinstance(data, dict) and list(data) == ["response"] and isinstance(data["response"], str):
        return data["response"]
    return None


def is_html(text: str) -> bool:
    stripped = text.lstrip()
    return (
        stripped.startswith("<!DOCTYPE")
        or stripped.lower().startswith("<html")
        or "<html" in text
    )


def mentions_missing_origin(text: str) -> bool:
    return bool(_MISSING_ORIGIN.search(text))


def _parse_balance(value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")


def success_details(operation: OperationType, data: Dict[str, Any]) -> Dict[str, Any]:
    if operation == OperationType.BALANCE:
        balance = _parse_balance(data.get("output_AccountBalance", "0"))
        return {
            "balance": balance,
            "currency": "LSL",
            "has_sufficient_balance": balance >= SUFFICIENT_BALANCE_THRESHOLD,
        }
    if operation == OperationType.C2B:
        return {
            "third_party_conversation_id": data.get("output_ThirdPartyConversationID"),
            "async_flow": True,
        }
    if operation == OperationType.STATUS_QUERY:
        return {
            "transaction_status": data.get("output_ResponseTransactionStatus"),
            "original_transaction_id": data.get("output_OriginalConversationID"),
            "reversed": str(data.get("output_ResponseReversed", "")).lower() == "true",
        }
    return {}


def classify_payload(
    data: Dict[str, Any],
    operation: OperationType,
    status_code: Optional[int] = None,
) -> Outcome:
    """Classify an already-parsed upstream JSON object."""
    code = data.get("output_ResponseCode")

    if code == SUCCESS_CODE:
        conversation_id = data.get("output_ConversationID")
        if operation == OperationType.C2B:
            # C2B is asynchronous; the conversation id is the payment reference
            transaction_id = conversation_id or data.get("output_TransactionID")
        else:
            transaction_id = data.get("output_TransactionID") or conversation_id
        logger.info(
            f"{operation.value} accepted by M-Pesa: transaction={transaction_id} "
            f"conversation={conversation_id}"
        )
        return Success(
            transaction_id=transaction_id,
            conversation_id=conversation_id,
            payment_type=operation,
            details=success_details(operation, data),
        )

    description = (
        data.get("output_ResponseDesc")
        or data.get("message")
        or data.get("error")
        or ""
    )
    description = str(description)
    kind = kind_for_code(code, description)
    matched_kinds = match_description(description)

    if kind is None and status_code == 503:
        kind = OutcomeKind.SERVICE_UNAVAILABLE

    if kind is None:
        logger.error(f"Unclassified M-Pesa failure for {operation.value}: {code} - {description}")
        return Failure(
            kind=OutcomeKind.UNKNOWN,
            message=description or failure_message(OutcomeKind.UNKNOWN),
            error_code=code,
            description=description or None,
            status_code=status_code,
            raw_upstream_payload=data,
        )

    logger.warning(f"M-Pesa {operation.value} failed with {kind.value}: {code} - {description}")
    return Failure(
        kind=kind,
        message=failure_message(kind),
        error_code=code,
        description=description or None,
        status_code=status_code,
        matched_kinds=matched_kinds,
        raw_upstream_payload=data,
    )


def classify_response(
    body: Optional[str],
    status_code: Optional[int] = None,
    operation: OperationType = OperationType.C2B,
) -> Outcome:
    """Classify the raw text returned by the relay."""
    if body is None or not body.strip():
        logger.error(f"Empty response body for {operation.value} (HTTP {status_code})")
        return Failure(
            kind=OutcomeKind.NETWORK_ERROR,
            message=failure_message(OutcomeKind.NETWORK_ERROR),
            status_code=status_code,
        )

    if is_html(body) or is_maintenance_page(body):
        maintenance = is_maintenance_page(body) or "503" in body
        logger.error(
            f"HTML error page instead of JSON for {operation.value} "
            f"(HTTP {status_code}, maintenance={maintenance}): {body[:500]}"
        )
        return Failure(
            kind=OutcomeKind.SERVICE_UNAVAILABLE,
            message=MAINTENANCE_MESSAGE if maintenance else failure_message(OutcomeKind.SERVICE_UNAVAILABLE),
            status_code=status_code,
            html_error=True,
            maintenance_page=maintenance,
            raw_upstream_payload=body[:500],
        )

    if mentions_missing_origin(body):
        logger.error(f"Origin header validation failed for {operation.value}: {body[:500]}")
        return Failure(
            kind=OutcomeKind.ORIGIN_REJECTED,
            message=failure_message(OutcomeKind.ORIGIN_REJECTED),
            status_code=status_code,
            raw_upstream_payload=body,
        )

    try:
        data = json.loads(body)
    except ValueError:
        data = None

    wrapped = relay_wrapped_text(data)
    if wrapped is not None:
        logger.info(f"Unwrapping relay text response for {operation.value}")
        return classify_response(wrapped, status_code, operation)

    if not isinstance(data, dict):
        kind = (
            OutcomeKind.SERVICE_UNAVAILABLE
            if status_code == 503
            else OutcomeKind.MALFORMED_RESPONSE
        )
        logger.error(f"Unparseable M-Pesa response for {operation.value} (HTTP {status_code}): {body[:500]}")
        return Failure(
            kind=kind,
            message=failure_message(kind),
            description=body[:500],
            status_code=status_code,
            raw_upstream_payload=body,
        )

    return classify_payload(data, operation, status_code)
