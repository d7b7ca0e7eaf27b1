"""
LIFX HTTP API client.

Only the read-only lights listing is used: a 200 proves the token works and
the lights carry enough to identify the account.
"""

import logging
from typing import Any

import requests

from providers.base import AccountInfo
from providers.exceptions import ProviderTokenRejectedError, ProviderUnavailableError

logger = logging.getLogger(__name__)

LIFX_API_URL = "https://api.lifx.com/v1"

DEFAULT_ACCOUNT_ID = "lifx-account"
DEFAULT_ACCOUNT_LABEL = "LIFX Account"


class LifxClient:
    """LIFX API client authenticated per call with the user's token."""

    def __init__(self, timeout: float = 10, base_url: str = LIFX_API_URL):
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")

    def validate_token(self, token: str) -> AccountInfo:
        """List the token's lights and derive the account from them.

        Raises:
            ProviderTokenRejectedError: LIFX returned 401.
            ProviderUnavailableError: Network failure or unexpected response.
        """
        return self._account_from_lights(self._list_lights(token))

    def get_account_info(self, token: str) -> AccountInfo:
        return self._account_from_lights(self._list_lights(token))

    def _list_lights(self, token: str) -> list[dict[str, Any]]:
        try:
            response = requests.get(
                f"{self.base_url}/lights/all",
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"LIFX request failed: {e}")
            raise ProviderUnavailableError(f"LIFX request failed: {e}") from e

        if response.status_code == 401:
            raise ProviderTokenRejectedError("LIFX rejected the token")

        if response.status_code != 200:
            logger.warning(f"LIFX returned {response.status_code}")
            raise ProviderUnavailableError(f"LIFX returned {response.status_code}")

        try:
            lights = response.json()
        except ValueError as e:
            raise ProviderUnavailableError("LIFX returned invalid JSON") from e

        if not isinstance(lights, list):
            raise ProviderUnavailableError("LIFX returned an unexpected response")

        return lights

    def _account_from_lights(self, lights: list[Any]) -> AccountInfo:
        # LIFX has no account endpoint; the first light's location stands in
        account_id = DEFAULT_ACCOUNT_ID
        label = DEFAULT_ACCOUNT_LABEL

        if lights:
            first = lights[0]
            if not isinstance(first, dict):
                raise ProviderUnavailableError("LIFX returned an unexpected light entry")
            location = first.get("location") or {}
            if not isinstance(location, dict):
                raise ProviderUnavailableError("LIFX returned an unexpected light location")
            if location.get("id"):
                account_id = str(location["id"])
                label = str(location.get("name") or DEFAULT_ACCOUNT_LABEL)

        return AccountInfo(
            provider_account_id=account_id,
            label=label,
            metadata={"lights_count": len(lights)},
        )
