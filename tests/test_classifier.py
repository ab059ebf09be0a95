import json
from decimal import Decimal

import pytest

from paytag.domain.classifier import classify_response, match_description
from paytag.domain.messages import MAINTENANCE_MESSAGE
from paytag.domain.models import Failure, OperationType, OutcomeKind, Success


def body(**fields) -> str:
    return json.dumps(fields)


def test_success_code_uses_conversation_id_as_transaction_id():
    outcome = classify_response(body(output_ResponseCode="INS-0", output_ConversationID="abc"), 200)

    assert isinstance(outcome, Success)
    assert outcome.transaction_id == "abc"
    assert outcome.conversation_id == "abc"
    assert outcome.payment_type == OperationType.C2B


def test_success_prefers_transaction_id_when_present():
    outcome = classify_response(
        body(output_ResponseCode="INS-0", output_TransactionID="tx-1", output_ConversationID="conv-1"),
        200,
        OperationType.B2B,
    )

    assert outcome.transaction_id == "tx-1"
    assert outcome.conversation_id == "conv-1"
    assert outcome.payment_type == OperationType.B2B


def test_invalid_pin_code():
    outcome = classify_response(body(output_ResponseCode="INS-2001", output_ResponseDesc="Invalid PIN"), 200)

    assert isinstance(outcome, Failure)
    assert outcome.kind == OutcomeKind.INVALID_PIN
    assert outcome.error_code == "INS-2001"
    assert outcome.description == "Invalid PIN"


def test_response_code_wins_over_description_text():
    outcome = classify_response(
        body(output_ResponseCode="INS-2001", output_ResponseDesc="Balance too low"), 200
    )

    assert outcome.kind == OutcomeKind.INVALID_PIN


@pytest.mark.parametrize("code", ["INS-1", "INS-2006"])
def test_balance_codes_are_insufficient_balance_regardless_of_text(code):
    outcome = classify_response(body(output_ResponseCode=code, output_ResponseDesc="Something odd"), 200)

    assert outcome.kind == OutcomeKind.INSUFFICIENT_BALANCE


def test_account_code_is_account_not_found():
    outcome = classify_response(body(output_ResponseCode="INS-2002", output_ResponseDesc="Invalid"), 200)

    assert outcome.kind == OutcomeKind.ACCOUNT_NOT_FOUND


@pytest.mark.parametrize(
    "description, kind",
    [
        ("Insufficient funds", OutcomeKind.INSUFFICIENT_BALANCE),
        ("Customer does not have enough money: not enough", OutcomeKind.INSUFFICIENT_BALANCE),
        ("Wrong PIN entered", OutcomeKind.INVALID_PIN),
        ("Account is locked", OutcomeKind.ACCOUNT_NOT_FOUND),
        ("Customer not found", OutcomeKind.ACCOUNT_NOT_FOUND),
    ],
)
def test_unknown_codes_fall_back_to_description_keywords(description, kind):
    outcome = classify_response(body(output_ResponseCode="INS-99", output_ResponseDesc=description), 200)

    assert outcome.kind == kind


def test_unmatched_failure_is_unknown_with_description_verbatim():
    outcome = classify_response(
        body(output_ResponseCode="INS-10", output_ResponseDesc="Duplicate Transaction"), 200
    )

    assert outcome.kind == OutcomeKind.UNKNOWN
    assert outcome.message == "Duplicate Transaction"
    assert outcome.raw_upstream_payload == {
        "output_ResponseCode": "INS-10",
        "output_ResponseDesc": "Duplicate Transaction",
    }


def test_match_description_reports_every_matching_set_in_order():
    assert match_description("Insufficient balance, wrong PIN") == (
        OutcomeKind.INSUFFICIENT_BALANCE,
        OutcomeKind.INVALID_PIN,
    )
    assert match_description("Request timed out") == ()


def test_html_maintenance_page_is_service_unavailable():
    page = "<!DOCTYPE html><html><body><h1>503 Service Unavailable</h1></body></html>"

    outcome = classify_response(page, 200)

    assert outcome.kind == OutcomeKind.SERVICE_UNAVAILABLE
    assert outcome.html_error is True
    assert outcome.maintenance_page is True
    assert outcome.message == MAINTENANCE_MESSAGE


def test_other_html_pages_are_not_flagged_as_maintenance():
    outcome = classify_response("  <html><body>Bad gateway</body></html>", 502)

    assert outcome.kind == OutcomeKind.SERVICE_UNAVAILABLE
    assert outcome.html_error is True
    assert outcome.maintenance_page is False


@pytest.mark.parametrize("text", ["", "   \n"])
def test_empty_body_is_network_error(text):
    outcome = classify_response(text, 200)

    assert outcome.kind == OutcomeKind.NETWORK_ERROR


def test_none_body_is_network_error():
    assert classify_response(None).kind == OutcomeKind.NETWORK_ERROR


def test_missing_origin_header_is_origin_rejected():
    outcome = classify_response('{"response": "Origin header is missing"}', 400)

    assert outcome.kind == OutcomeKind.ORIGIN_REJECTED


def test_unparseable_body_is_malformed_response():
    outcome = classify_response("Bad things happened", 502)

    assert outcome.kind == OutcomeKind.MALFORMED_RESPONSE
    assert outcome.raw_upstream_payload == "Bad things happened"


def test_non_object_json_is_malformed_response():
    assert classify_response("[1, 2, 3]", 200).kind == OutcomeKind.MALFORMED_RESPONSE


def test_unparseable_503_is_service_unavailable():
    outcome = classify_response("Service Unavailable", 503)

    assert outcome.kind == OutcomeKind.SERVICE_UNAVAILABLE
    assert outcome.status_code == 503


def test_relay_error_payload_surfaces_its_message():
    outcome = classify_response(
        body(error="Proxy request failed", message="Connection reset by peer"), 500
    )

    assert outcome.kind == OutcomeKind.UNKNOWN
    assert outcome.message == "Connection reset by peer"


def test_balance_success_extracts_balance():
    outcome = classify_response(
        body(output_ResponseCode="INS-0", output_AccountBalance="120.50", output_ConversationID="c1"),
        200,
        OperationType.BALANCE,
    )

    assert outcome.details["balance"] == Decimal("120.50")
    assert outcome.details["currency"] == "LSL"
    assert outcome.details["has_sufficient_balance"] is True


def test_low_balance_is_flagged_insufficient():
    outcome = classify_response(
        body(output_ResponseCode="INS-0", output_AccountBalance="10"),
        200,
        OperationType.BALANCE,
    )

    assert outcome.details["has_sufficient_balance"] is False


def test_status_query_success_extracts_status_fields():
    outcome = classify_response(
        body(
            output_ResponseCode="INS-0",
            output_ConversationID="c9",
            output_ResponseTransactionStatus="Completed",
            output_OriginalConversationID="orig-1",
            output_ResponseReversed="true",
        ),
        200,
        OperationType.STATUS_QUERY,
    )

    assert outcome.details == {
        "transaction_status": "Completed",
        "original_transaction_id": "orig-1",
        "reversed": True,
    }


def test_classification_is_idempotent():
    payloads = [
        body(output_ResponseCode="INS-0", output_ConversationID="abc"),
        body(output_ResponseCode="INS-2006", output_ResponseDesc="Insufficient balance"),
        "<!DOCTYPE html><h1>503</h1>",
        "garbage",
        "",
    ]

    for payload in payloads:
        assert classify_response(payload, 200) == classify_response(payload, 200)


def test_c2b_success_reports_conversation_id_even_with_transaction_id():
    outcome = classify_response(
        body(output_ResponseCode="INS-0", output_TransactionID="tx-1", output_ConversationID="conv-1"),
        200,
        OperationType.C2B,
    )

    assert outcome.transaction_id == "conv-1"
    assert outcome.conversation_id == "conv-1"


def test_failure_keeps_every_matching_keyword_set():
    outcome = classify_response(
        body(output_ResponseCode="INS-9", output_ResponseDesc="Balance enquiry rejected: wrong PIN"), 200
    )

    assert outcome.kind == OutcomeKind.INSUFFICIENT_BALANCE
    assert outcome.matched_kinds == (OutcomeKind.INSUFFICIENT_BALANCE, OutcomeKind.INVALID_PIN)


def test_code_table_failure_still_reports_description_matches():
    outcome = classify_response(
        body(output_ResponseCode="INS-2001", output_ResponseDesc="Invalid PIN for account"), 200
    )

    assert outcome.kind == OutcomeKind.INVALID_PIN
    assert outcome.matched_kinds == (OutcomeKind.INVALID_PIN, OutcomeKind.ACCOUNT_NOT_FOUND)


def test_relay_wrapped_text_is_malformed_with_text_as_description():
    outcome = classify_response(json.dumps({"response": "Internal error, try later"}), 200)

    assert outcome.kind == OutcomeKind.MALFORMED_RESPONSE
    assert outcome.description == "Internal error, try later"


def test_relay_wrapped_maintenance_page_is_flagged():
    outcome = classify_response(json.dumps({"response": "<h1>503 Service Unavailable</h1>"}), 200)

    assert outcome.kind == OutcomeKind.SERVICE_UNAVAILABLE
    assert outcome.html_error is True
    assert outcome.maintenance_page is True
    assert outcome.message == MAINTENANCE_MESSAGE


def test_relay_wrapped_empty_text_is_network_error():
    assert classify_response(json.dumps({"response": ""}), 200).kind == OutcomeKind.NETWORK_ERROR


def test_objects_with_more_than_a_response_key_are_not_unwrapped():
    outcome = classify_response(body(response="Duplicate Transaction", output_ResponseCode="INS-10"), 200)

    assert outcome.kind == OutcomeKind.UNKNOWN
    assert outcome.error_code == "INS-10"
