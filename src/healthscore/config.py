"""Client configuration using Pydantic Settings."""

import json
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Chain ids that wallets report for a local node but whose deployments are
# recorded under another id.
DEFAULT_CHAIN_ALIASES: dict[int, int] = {1337: 31337}

DEFAULT_AUTHORIZATION_DURATION_DAYS = 365


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ----- Application -----
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = False

    # ----- Chain -----
    chain_id: int | None = None
    # JSON object keyed by chain id, e.g. {"31337": "0xabc..."}
    contract_addresses: str = Field(default="{}")

    # ----- Decryption authorization -----
    authorization_duration_days: int = DEFAULT_AUTHORIZATION_DURATION_DAYS

    # ----- Decryption relayer -----
    relayer_url: str = ""
    relayer_api_key: str = ""
    relayer_timeout: float = 30.0
    relayer_max_attempts: int = 3

    @field_validator("authorization_duration_days", "relayer_max_attempts")
    @classmethod
    def _must_be_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @property
    def deployments(self) -> dict[int, str]:
        """Parse contract_addresses into a chain id -> address mapping."""
        raw = self.contract_addresses.strip()
        if not raw:
            return {}
        parsed = json.loads(raw)
        if not isinstance(parsed, dict):
            raise ValueError("CONTRACT_ADDRESSES must be a JSON object")
        deployments: dict[int, str] = {}
        for chain_id, entry in parsed.items():
            # Entries may be plain addresses or {"address": ..., "chainName": ...}
            address = entry.get("address") if isinstance(entry, dict) else entry
            if not isinstance(address, str):
                raise ValueError(f"Invalid address for chain {chain_id}")
            deployments[int(chain_id)] = address
        return deployments

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Ensure secure settings in production environment."""
        if self.is_production:
            if self.app_debug:
                raise ValueError("APP_DEBUG must be false in production!")
            if not self.relayer_url:
                raise ValueError("RELAYER_URL must be set in production!")
            if not self.relayer_url.startswith("https://"):
                raise ValueError("RELAYER_URL must use https in production!")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
