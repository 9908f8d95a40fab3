# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""Configuration management for certtrust."""

from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from CERTTRUST_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CERTTRUST_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Key material
    min_rsa_key_size: int = 2048
    default_key_algorithm: Literal["rsa", "ec", "ed25519"] = "ec"
    default_rsa_key_size: int = 2048
    default_ec_curve: str = "secp256r1"

    # Issuance
    default_validity_days: int = 365
    ca_validity_days: int = 3650

    # Trust policy defaults
    max_chain_depth: int = 10
    allow_expired: bool = False
    allow_self_signed_leaf: bool = False
    hostname_match_mode: Literal["strict", "wildcard"] = "strict"
    revocation_mode: Literal["none", "soft_fail", "hard_fail"] = "none"

    # Revocation lookups
    revocation_timeout_seconds: float = 5.0
    revocation_max_retries: int = 2
    revocation_backoff_seconds: float = 0.5

    # Persistence
    store_path: Optional[str] = None
    trust_anchors_path: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "text"


# Global settings instance
settings = Settings()
