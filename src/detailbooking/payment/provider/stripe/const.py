"""Constants for the Stripe provider."""

DEFAULT_BASE_URL = "https://api.stripe.com"
DEFAULT_API_URI = "/v1"

PAYMENT_INTENTS_ENDPOINT = "/payment_intents"
REFUNDS_ENDPOINT = "/refunds"

AUTH_HEADER = "Authorization"
AUTH_PREFIX = "Bearer "

# Expands the captured charge so the processing fee is returned with the intent.
CAPTURE_EXPAND = "latest_charge.balance_transaction"

INTENT_STATUS_MAP = {
    "succeeded": "completed",
    "canceled": "cancelled",
    "requires_payment_method": "pending",
    "requires_confirmation": "pending",
    "requires_action": "pending",
    "requires_capture": "pending",
    "processing": "pending",
}

REFUND_STATUS_MAP = {
    "succeeded": "completed",
    "pending": "pending",
    "requires_action": "pending",
    "failed": "failed",
    "canceled": "failed",
}

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "detailbooking-stripe",
}
