"""Razorpay REST client.

Only the three calls the storefront needs: order creation, payment fetch
and refund. Amounts are passed in minor units (paise).
"""

from core.imports import requests
from core.logger import get_logger
from services.errors import GatewayError

logger = get_logger(__name__)


class RazorpayGateway:
    def __init__(self, key_id, key_secret, base_url="https://api.razorpay.com/v1", timeout=15, http=None):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = http or requests.Session()
        self.http.auth = (key_id or "", key_secret or "")

    @classmethod
    def from_config(cls, config):
        return cls(
            key_id=config.get("RAZORPAY_KEY_ID"),
            key_secret=config.get("RAZORPAY_KEY_SECRET"),
            base_url=config.get("RAZORPAY_BASE_URL", "https://api.razorpay.com/v1"),
            timeout=config.get("RAZORPAY_TIMEOUT", 15),
        )

    def _request(self, method, path, payload=None):
        url = f"{self.base_url}{path}"
        try:
            response = self.http.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("gateway_unreachable", method=method, path=path, error=str(e))
            raise GatewayError(f"Payment gateway unreachable: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400:
            description = body.get("error", {}).get("description") if isinstance(body, dict) else None
            logger.error("gateway_error", method=method, path=path, status=response.status_code, description=description)
            raise GatewayError(description or "Payment gateway request failed", response.status_code, body)

        return body

    def create_order(self, amount, currency="INR", receipt=None, notes=None):
        return self._request("POST", "/orders", {
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        })

    def fetch_payment(self, payment_id):
        return self._request("GET", f"/payments/{payment_id}")

    def refund_payment(self, payment_id, amount, notes=None):
        return self._request("POST", f"/payments/{payment_id}/refund", {
            "amount": amount,
            "notes": notes or {},
        })
