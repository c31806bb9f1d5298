"""
Resend HTTP API client.
"""

import logging
from typing import Dict, List, Optional, Union

import requests

from services.errors import IntegrationError

logger = logging.getLogger(__name__)

RESEND_API_URL = 'https://api.resend.com/emails'


class ResendClient:
    """Thin wrapper over the Resend send endpoint."""

    def __init__(self, api_key: str, timeout: int = 15):
        self.api_key = api_key
        self.timeout = timeout

    def send(self, sender: str, to: Union[str, List[str]], subject: str, html: str,
             reply_to: Optional[str] = None) -> Dict:
        """
        Send one email.

        Returns:
            The API response body (contains the message ``id``)

        Raises:
            IntegrationError: on transport errors or non-2xx responses
        """
        payload = {
            'from': sender,
            'to': [to] if isinstance(to, str) else list(to),
            'subject': subject,
            'html': html,
        }
        if reply_to:
            payload['reply_to'] = reply_to

        try:
            response = requests.post(
                RESEND_API_URL,
                json=payload,
                headers={'Authorization': f'Bearer {self.api_key}'},
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"Resend request failed: {e}")
            raise IntegrationError(f"Email delivery failed: {e}")

        if response.status_code >= 400:
            logger.error(f"Resend rejected email to {payload['to']}: {response.status_code} {response.text}")
            raise IntegrationError(f"Email delivery failed ({response.status_code})")

        return response.json()
