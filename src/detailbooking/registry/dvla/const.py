"""Constants for the DVLA Vehicle Enquiry Service."""

DEFAULT_BASE_URL = "https://driver-vehicle-licensing.api.gov.uk"
DEFAULT_API_URI = "/vehicle-enquiry/v1"
VEHICLES_ENDPOINT = "/vehicles"

API_KEY_HEADER = "x-api-key"

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
    "User-Agent": "detailbooking-dvla",
}
