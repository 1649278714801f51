"""
Configuration — typed, validated settings loaded from environment/.env.

Uses pydantic-settings to:
  - Load from environment variables prefixed with DCC_
  - Fall back to a .env file in the working directory
  - Validate types and ranges before any token is decoded

Only the two resource ceilings reach the decode pipeline (as a
DecodeLimits value); the remaining settings are for the command line
composition root.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dcc_decode.domain.models import DecodeLimits


class DecoderSettings(BaseSettings):
    """
    Decoder settings.

    Load order (highest priority first):
      1. Environment variables (DCC_MAX_INFLATED_SIZE, DCC_TRUST_LIST_PATH, ...)
      2. .env file
      3. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="DCC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_inflated_size: int = Field(
        default=256 * 1024,
        ge=1024,
        description="Ceiling on decompressed COSE bytes; larger streams are rejected as OutputTooLarge",
    )
    max_nesting_depth: int = Field(
        default=32,
        ge=1,
        le=256,
        description="Ceiling on CBOR nesting; deeper items are rejected as NestingTooDeep",
    )
    trust_list_path: Path | None = Field(default=None, description="Trust-list JSON file")
    valueset_dir: Path | None = Field(default=None, description="Directory of eHN value-set JSON files")
    log_level: str = Field(default="WARNING")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Reject names the logging module does not know."""
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value!r}")
        return level

    def limits(self) -> DecodeLimits:
        return DecodeLimits(
            max_inflated_size=self.max_inflated_size,
            max_nesting_depth=self.max_nesting_depth,
        )
