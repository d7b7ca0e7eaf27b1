"""
Transactional email via the HTTP email gateway.

The gateway renders the templates. This client only names the message type,
the recipient and the link to embed, and signs each body with HMAC-SHA256
so the gateway can reject forged requests.
"""

import hashlib
import hmac
import json
import logging
from urllib.parse import urlencode

import requests

logger = logging.getLogger(__name__)


class EmailGatewayError(Exception):
    """The gateway was unreachable, answered garbage, or refused the message."""


class EmailGatewayClient:
    """Signed JSON POSTs to the email gateway."""

    def __init__(
        self,
        gateway_url: str,
        api_key: str,
        hmac_secret: str,
        link_base_url: str = "lightshare://",
        timeout: float = 10,
    ):
        """
        Args:
            gateway_url: Gateway send endpoint
            api_key: Sent as X-API-Key
            hmac_secret: Key for the X-Signature body signature
            link_base_url: Deep-link scheme or web origin that email links
                start with
            timeout: Per-request timeout in seconds

        Raises:
            ValueError: gateway_url, api_key or hmac_secret is empty
        """
        for name, value in (
            ("gateway_url", gateway_url),
            ("api_key", api_key),
            ("hmac_secret", hmac_secret),
        ):
            if not value:
                raise ValueError(f"{name} is required")

        self.gateway_url = gateway_url
        self.api_key = api_key
        self.hmac_secret = hmac_secret
        self.link_base_url = link_base_url if link_base_url.endswith("/") else link_base_url + "/"
        self.timeout = timeout

    def send_verification_email(self, email: str, token: str) -> None:
        """Signup confirmation link. Raises EmailGatewayError on any failure."""
        self._deliver("verification", email, "verify-email", token)

    def send_magic_link_email(self, email: str, token: str) -> None:
        """Passwordless sign-in link. Raises EmailGatewayError on any failure."""
        self._deliver("magic_link", email, "magic-link", token)

    def _deliver(self, message_type: str, email: str, link_path: str, token: str) -> None:
        link = f"{self.link_base_url}{link_path}?{urlencode({'token': token})}"
        body = json.dumps(
            {"type": message_type, "email": email, "link": link},
            separators=(",", ":"),
        ).encode("utf-8")
        signature = hmac.new(self.hmac_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()

        try:
            response = requests.post(
                self.gateway_url,
                data=body,
                headers={
                    "Content-Type": "application/json",
                    "X-API-Key": self.api_key,
                    "X-Signature": signature,
                },
                timeout=self.timeout,
            )
        except (requests.exceptions.RequestException, ConnectionError) as e:
            logger.error(f"Email gateway unreachable: {e}")
            raise EmailGatewayError(f"Email gateway unreachable: {e}") from e

        try:
            result = response.json()
        except ValueError as e:
            logger.error(f"Email gateway sent non-JSON reply (HTTP {response.status_code})")
            raise EmailGatewayError("Email gateway sent an unreadable reply") from e

        if not isinstance(result, dict):
            result = {}
        if response.status_code != 200 or not result.get("success"):
            reason = result.get("message", "no reason given")
            logger.error(f"Email gateway refused {message_type} message: {reason}")
            raise EmailGatewayError(f"Email gateway refused message: {reason}")

        logger.info(f"Sent {message_type} email to {email}")
