"""Constants for the PayPal provider."""

LIVE_BASE_URL = "https://api-m.paypal.com"
SANDBOX_BASE_URL = "https://api-m.sandbox.paypal.com"

TOKEN_ENDPOINT = "/v1/oauth2/token"
ORDERS_ENDPOINT = "/v2/checkout/orders"
CAPTURE_REFUND_ENDPOINT = "/v2/payments/captures/{capture_id}/refund"

AUTH_HEADER = "Authorization"
AUTH_PREFIX = "Bearer "
TOKEN_EXPIRY_MARGIN_SECONDS = 60

ORDER_STATUS_MAP = {
    "COMPLETED": "completed",
    "CANCELLED": "cancelled",
    "VOIDED": "cancelled",
    "CREATED": "pending",
    "SAVED": "pending",
    "APPROVED": "pending",
    "PAYER_ACTION_REQUIRED": "pending",
}

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "detailbooking-paypal",
}
