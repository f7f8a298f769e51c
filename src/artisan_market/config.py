"""Application configuration."""

import os
import re

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")
_ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    contract_address: str
    ledger_rpc_url: str = "http://127.0.0.1:8545"
    signer_rpc_url: str | None = None
    ipfs_api_url: str = "https://ipfs.infura.io:5001"
    ipfs_project_id: str
    ipfs_project_secret: str
    ipfs_gateway_url: str = "https://ipfs.io/ipfs/"
    placeholder_image_url: str = "https://via.placeholder.com/400?text=Artisan+NFT"
    receipt_poll_interval_seconds: float = 1.0
    signer_poll_interval_seconds: float = 2.0
    confirmation_timeout_seconds: float | None = None
    request_timeout_seconds: float = 15.0
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @field_validator("contract_address")
    @classmethod
    def _check_contract_address(cls, value: str) -> str:
        cleaned = value.strip()
        if not _ADDRESS_PATTERN.match(cleaned):
            raise ValueError("contract_address must be a 0x-prefixed 20-byte address")
        return cleaned

    @field_validator("ipfs_gateway_url")
    @classmethod
    def _ensure_trailing_slash(cls, value: str) -> str:
        return value if value.endswith("/") else f"{value}/"
