"""
Tests for EmailGatewayClient.

Tests verify the client's contract with calling code.
Focus on observable behavior, not implementation details.
"""

import hashlib
import hmac
import json
from urllib.parse import parse_qs, urlparse

import pytest
import responses

from clients.email_client import EmailGatewayClient, EmailGatewayError

GATEWAY_URL = "https://gateway.example.com/send"


@pytest.fixture
def client():
    """Create client with test credentials."""
    return EmailGatewayClient(
        gateway_url=GATEWAY_URL,
        api_key="test-api-key",
        hmac_secret="test-hmac-secret",
    )


def _sent_payload() -> dict:
    return json.loads(responses.calls[0].request.body)


class TestEmailGatewayClientInit:
    """Test client initialization - fail-fast on invalid config."""

    def test_init_with_valid_credentials(self, client):
        """Client initializes with all required credentials."""
        assert client.link_base_url == "lightshare://"

    @pytest.mark.parametrize("field", ["gateway_url", "api_key", "hmac_secret"])
    def test_init_rejects_empty_credential(self, field):
        kwargs = {
            "gateway_url": GATEWAY_URL,
            "api_key": "test-api-key",
            "hmac_secret": "test-hmac-secret",
            field: "",
        }
        with pytest.raises(ValueError, match=field):
            EmailGatewayClient(**kwargs)

    def test_link_base_gets_trailing_slash(self):
        client = EmailGatewayClient(
            gateway_url=GATEWAY_URL,
            api_key="k",
            hmac_secret="s",
            link_base_url="https://app.example.com",
        )
        assert client.link_base_url == "https://app.example.com/"


class TestSendVerificationEmail:
    """Verification link emails."""

    @responses.activate
    def test_payload_and_link(self, client):
        responses.add(responses.POST, GATEWAY_URL, json={"success": True}, status=200)

        result = client.send_verification_email(email="user@example.com", token="abc123")

        assert result is None
        payload = _sent_payload()
        assert payload["type"] == "verification"
        assert payload["email"] == "user@example.com"
        assert payload["link"] == "lightshare://verify-email?token=abc123"

    @responses.activate
    def test_request_is_signed(self, client):
        """X-Signature is HMAC-SHA256 of the exact body."""
        responses.add(responses.POST, GATEWAY_URL, json={"success": True}, status=200)

        client.send_verification_email(email="user@example.com", token="abc123")

        request = responses.calls[0].request
        body = request.body if isinstance(request.body, bytes) else request.body.encode()
        expected = hmac.new(b"test-hmac-secret", body, hashlib.sha256).hexdigest()
        assert request.headers["X-Signature"] == expected
        assert request.headers["X-API-Key"] == "test-api-key"

    @responses.activate
    def test_token_is_url_encoded(self, client):
        responses.add(responses.POST, GATEWAY_URL, json={"success": True}, status=200)

        client.send_verification_email(email="user@example.com", token="a+b/c=")

        link = _sent_payload()["link"]
        assert parse_qs(urlparse(link).query)["token"] == ["a+b/c="]


class TestSendMagicLinkEmail:
    """Test send_magic_link_email - uses responses library for HTTP mocking."""

    @responses.activate
    def test_successful_send_returns_none(self, client):
        """Successful gateway response completes without exception."""
        responses.add(responses.POST, GATEWAY_URL, json={"success": True}, status=200)

        assert client.send_magic_link_email(email="user@example.com", token="abc123") is None
        payload = _sent_payload()
        assert payload["type"] == "magic_link"
        assert payload["link"] == "lightshare://magic-link?token=abc123"

    @responses.activate
    def test_gateway_500_raises_error(self, client):
        """Server error from gateway raises EmailGatewayError."""
        responses.add(
            responses.POST,
            GATEWAY_URL,
            json={"success": False, "message": "Internal error"},
            status=500,
        )

        with pytest.raises(EmailGatewayError):
            client.send_magic_link_email(email="user@example.com", token="abc123")

    @responses.activate
    def test_gateway_success_false_raises_error(self, client):
        """Gateway returns 200 but success=false raises EmailGatewayError."""
        responses.add(
            responses.POST,
            GATEWAY_URL,
            json={"success": False, "message": "Invalid email"},
            status=200,
        )

        with pytest.raises(EmailGatewayError):
            client.send_magic_link_email(email="invalid", token="abc123")

    @responses.activate
    def test_connection_failure_raises_error(self, client):
        """Network failure raises EmailGatewayError."""
        responses.add(
            responses.POST,
            GATEWAY_URL,
            body=ConnectionError("Network unreachable"),
        )

        with pytest.raises(EmailGatewayError):
            client.send_magic_link_email(email="user@example.com", token="abc123")

    @responses.activate
    def test_invalid_json_response_raises_error(self, client):
        """Non-JSON response raises EmailGatewayError."""
        responses.add(responses.POST, GATEWAY_URL, body="not json", status=200)

        with pytest.raises(EmailGatewayError):
            client.send_magic_link_email(email="user@example.com", token="abc123")
