"""
Midtrans payment gateway client.

Snap creates hosted-checkout transactions; the Core API returns the
authoritative transaction status. Both authenticate with HTTP basic auth,
server key as username and an empty password.

Webhook notifications are signed with
``sha512(order_id + status_code + gross_amount + server_key)``.
"""

import hashlib
import hmac
import logging
from typing import Dict, Any

import requests

from services.errors import IntegrationError

logger = logging.getLogger(__name__)

SNAP_URLS = {
    False: 'https://app.sandbox.midtrans.com/snap/v1/transactions',
    True: 'https://app.midtrans.com/snap/v1/transactions',
}
CORE_API_URLS = {
    False: 'https://api.sandbox.midtrans.com/v2',
    True: 'https://api.midtrans.com/v2',
}


def compute_signature(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    payload = f"{order_id}{status_code}{gross_amount}{server_key}"
    return hashlib.sha512(payload.encode('utf-8')).hexdigest()


def verify_signature(notification: Dict[str, Any], server_key: str) -> bool:
    """
    Recompute the notification signature and compare in constant time.

    The fields are used exactly as received; Midtrans sends gross_amount as
    a string such as "150000.00".
    """
    signature = notification.get('signature_key')
    if not signature or not server_key:
        return False
    expected = compute_signature(
        str(notification.get('order_id', '')),
        str(notification.get('status_code', '')),
        str(notification.get('gross_amount', '')),
        server_key
    )
    return hmac.compare_digest(expected, str(signature))


class MidtransClient:
    """Snap + Core API calls used by the payment flow."""

    def __init__(self, server_key: str, is_production: bool = False, timeout: int = 30):
        self.server_key = server_key
        self.is_production = bool(is_production)
        self.timeout = timeout

    @property
    def snap_url(self) -> str:
        return SNAP_URLS[self.is_production]

    @property
    def core_api_url(self) -> str:
        return CORE_API_URLS[self.is_production]

    def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            response = requests.request(
                method, url,
                auth=(self.server_key, ''),
                headers={'Accept': 'application/json', 'Content-Type': 'application/json'},
                timeout=self.timeout,
                **kwargs
            )
        except requests.RequestException as e:
            logger.error(f"Midtrans request failed: {e}")
            raise IntegrationError("Payment gateway is unreachable")

        if response.status_code >= 400:
            logger.error(f"Midtrans error {response.status_code}: {response.text}")
            raise IntegrationError(
                "Payment gateway rejected the request",
                details=response.text[:500]
            )
        return response.json()

    def create_transaction(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create a Snap transaction; returns {'token', 'redirect_url'}."""
        result = self._request('POST', self.snap_url, json=payload)
        logger.info(f"Midtrans transaction created: {payload['transaction_details']['order_id']}")
        return result

    def get_status(self, order_id: str) -> Dict[str, Any]:
        """Fetch the current transaction status from the Core API."""
        return self._request('GET', f"{self.core_api_url}/{order_id}/status")
