from paytag.domain.models import OutcomeKind

SUPPORT_EMAIL = "support@paytag.co.ls"
VODACOM_SUPPORT_LINE = "150"

MAINTENANCE_MESSAGE = (
    "M-Pesa services are temporarily unavailable for maintenance. Please wait 15-20 "
    "minutes and try again. If the issue persists beyond 30 minutes, contact Vodacom "
    f"customer service at {VODACOM_SUPPORT_LINE}."
)

RELAY_COLD_START_MESSAGE = (
    "Payment server is currently unavailable.\n\n"
    "The server at {relay_url} is not responding.\n\n"
    "Possible causes:\n"
    "- Server is starting up (a cold start can take 60-90 seconds)\n"
    "- Network connectivity issues\n"
    "- Server maintenance or downtime\n\n"
    "What to do:\n"
    "- Wait 2-3 minutes and try again\n"
    "- Check your internet connection\n"
    f"- If the problem persists beyond 5 minutes, contact {SUPPORT_EMAIL}"
)

FAILURE_MESSAGES = {
    OutcomeKind.INSUFFICIENT_BALANCE: (
        "Insufficient M-Pesa balance. Please top up your account and try again."
    ),
    OutcomeKind.INVALID_PIN: (
        "Invalid M-Pesa PIN. Please re-enter your correct 4-digit PIN."
    ),
    OutcomeKind.ACCOUNT_NOT_FOUND: (
        "The M-Pesa account could not be found. Please check the number and try again."
    ),
    OutcomeKind.SERVICE_UNAVAILABLE: (
        "M-Pesa services are currently unavailable. This is usually temporary. "
        "Please try again in a few minutes."
    ),
    OutcomeKind.MALFORMED_RESPONSE: "Invalid response from M-Pesa. Please try again.",
    OutcomeKind.ORIGIN_REJECTED: (
        f"Payment configuration error. Please contact support at {SUPPORT_EMAIL}"
    ),
    OutcomeKind.NETWORK_ERROR: (
        "Network error while communicating with M-Pesa. Please check your connection "
        f"and try again in 30 seconds. If the problem persists, contact {SUPPORT_EMAIL}"
    ),
    OutcomeKind.AUTH_ERROR: "Failed to generate bearer token. Please try again.",
    OutcomeKind.UNKNOWN: "M-Pesa request failed.",
}


def failure_message(kind: OutcomeKind) -> str:
    return FAILURE_MESSAGES[kind]
