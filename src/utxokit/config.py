"""
Configuration management using pydantic-settings.

Every field can be supplied through the environment with the ``UTXOKIT_``
prefix (e.g. ``UTXOKIT_SPEND_KEY``) or a ``.env`` file.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from utxokit.constants import (
    AGGREGATE_PAUSE_SECONDS,
    DEFAULT_LIST_LIMIT,
    DEFAULT_OUTPUT_THRESHOLD,
    MAX_AGGREGATION_ROUNDS,
    MAX_UTXO_NUM,
)
from utxokit.transfer.retry import BackoffPolicy


class TransferConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="UTXOKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Identity of the client; consolidations are paid back to it
    client_id: str = Field(..., min_length=1)
    spend_key: str = Field(default="", repr=False)
    spend_public_key: str | None = None

    # Protocol limits
    max_inputs: int = Field(default=MAX_UTXO_NUM, ge=1, le=MAX_UTXO_NUM)
    list_limit: int = Field(default=DEFAULT_LIST_LIMIT, ge=1)
    output_threshold: int = Field(default=DEFAULT_OUTPUT_THRESHOLD, ge=1)

    # Confirmation reads after submission
    confirm_attempts: int = Field(default=3, ge=1)
    confirm_base_delay: float = Field(default=1.0, ge=0.0)
    confirm_multiplier: float = Field(default=1.0, ge=0.0)

    # Aggregation
    aggregate_pause: float = Field(default=AGGREGATE_PAUSE_SECONDS, ge=0.0)
    max_aggregation_rounds: int = Field(default=MAX_AGGREGATION_ROUNDS, ge=1)

    # Listing retries when no outputs are visible yet
    empty_list_retries: int = Field(default=3, ge=1)

    def confirm_policy(self) -> BackoffPolicy:
        """Backoff for confirmation reads."""
        return BackoffPolicy(
            max_attempts=self.confirm_attempts,
            base_delay=self.confirm_base_delay,
            multiplier=self.confirm_multiplier,
        )

    def listing_policy(self) -> BackoffPolicy:
        """Backoff for re-listing an empty UTXO set."""
        return BackoffPolicy(
            max_attempts=self.empty_list_retries,
            base_delay=self.confirm_base_delay * 2,
            multiplier=1.0,
        )
