"""Provider credential vault configuration."""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from connections.cipher import KEY_SIZE, parse_key


class VaultConfig(BaseModel):
    """Credential vault settings, built once at startup."""

    model_config = {"frozen": True}

    encryption_key: bytes = Field(
        ...,
        repr=False,
        description="AES-256 key; accepts 64 hex characters or 32 raw bytes",
    )
    provider_timeout_seconds: float = Field(
        default=10,
        gt=0,
        le=60,
        description="HTTP timeout for provider API calls",
    )

    @field_validator("encryption_key", mode="before")
    @classmethod
    def decode_hex_key(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_key(value)
        return value

    @field_validator("encryption_key")
    @classmethod
    def check_key_size(cls, value: bytes) -> bytes:
        if len(value) != KEY_SIZE:
            raise ValueError(f"encryption_key must be {KEY_SIZE} bytes")
        return value
