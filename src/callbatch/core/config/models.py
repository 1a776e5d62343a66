"""
Pydantic configuration models for CallBatch.

These models provide type-safe configuration with validation for:
- Network and account settings
- The contract call sent to every target
- Pacing and ledger settings
- Logging
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from callbatch.core.abi import (
    function_selector,
    is_valid_signature,
    normalize_signature,
    takes_arguments,
)


ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")
CALL_DATA_PATTERN = re.compile(r"^0x(?:[0-9a-fA-F]{2})*$")


# =============================================================================
# Network Configuration
# =============================================================================


class NetworkConfig(BaseModel):
    """JSON-RPC endpoint and sending account."""

    name: str = Field(
        default="Monad Testnet",
        description="Human-readable network name",
    )
    rpc_url: str = Field(
        default="https://testnet-rpc.monad.xyz",
        description="JSON-RPC endpoint URL",
    )
    chain_id: int | None = Field(
        default=None,
        ge=1,
        description="Expected chain id (checked on connect when set)",
    )
    explorer_url: str | None = Field(
        default="https://testnet-explorer.monad.xyz",
        description="Block explorer base URL for transaction links",
    )
    from_address: str | None = Field(
        default=None,
        description="Sending account (default: first account exposed by the node)",
    )
    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="HTTP request timeout in seconds",
    )
    receipt_poll_interval_seconds: float = Field(
        default=1.0,
        gt=0.0,
        le=60.0,
        description="Delay between transaction receipt polls",
    )
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Extra HTTP headers (e.g. API keys)",
    )

    @field_validator("rpc_url")
    @classmethod
    def validate_rpc_url(cls, v: str) -> str:
        """RPC URL must be http(s)."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("rpc_url must start with http:// or https://")
        return v

    @field_validator("from_address")
    @classmethod
    def validate_from_address(cls, v: str | None) -> str | None:
        if v is not None and not ADDRESS_PATTERN.match(v):
            raise ValueError("from_address must be a 0x-prefixed 20-byte hex address")
        return v

    def tx_url(self, tx_hash: str) -> str | None:
        """Explorer link for a transaction hash."""
        if not self.explorer_url:
            return None
        return f"{self.explorer_url.rstrip('/')}/tx/{tx_hash}"


# =============================================================================
# Call Configuration
# =============================================================================


class CallConfig(BaseModel):
    """The contract call sent to every target."""

    method: str = Field(
        default="interact()",
        description="Function signature; its selector is sent when data is unset",
    )
    data: str | None = Field(
        default=None,
        description="ABI-encoded call data (4-byte selector plus arguments)",
    )
    gas: int | None = Field(
        default=None,
        ge=21000,
        description="Gas limit (default: estimated by the node)",
    )

    @field_validator("method")
    @classmethod
    def validate_method(cls, v: str) -> str:
        if not is_valid_signature(v):
            raise ValueError("method must be a function signature such as interact()")
        return normalize_signature(v)

    @field_validator("data")
    @classmethod
    def validate_data(cls, v: str | None) -> str | None:
        """Call data must be 0x-prefixed, even-length hex."""
        if v is not None and not CALL_DATA_PATTERN.match(v):
            raise ValueError("data must be 0x-prefixed hex with an even number of digits")
        return v

    @property
    def needs_data(self) -> bool:
        """Method takes arguments but no encoded data is configured."""
        return self.data is None and takes_arguments(self.method)

    def resolved_data(self) -> str:
        """Call data to send: data when set, else the method's selector.

        Raises:
            ValueError: If the method takes arguments and data is unset
        """
        if self.data is not None:
            return self.data
        if self.needs_data:
            raise ValueError(
                f"{self.method} takes arguments; set call.data to the encoded call"
            )
        return function_selector(self.method)


# =============================================================================
# Engine Configuration
# =============================================================================


class PacingConfig(BaseModel):
    """Delay between consecutive calls."""

    interval_ms: int = Field(
        default=1000,
        ge=0,
        le=600_000,
        description="Pause between items in milliseconds (0 disables pacing)",
    )


class LedgerConfig(BaseModel):
    """Recent-results ledger settings."""

    capacity: int = Field(
        default=20,
        ge=1,
        le=20,
        description="Number of most recent outcomes kept (at most 20)",
    )


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    file: Path | None = Field(
        default=Path("logs/callbatch.log"),
        description="Log file path",
    )
    json_format: bool = Field(
        default=True,
        description="Use JSON format for file logs",
    )
    rich_console: bool = Field(
        default=True,
        description="Use Rich for console output",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {', '.join(sorted(valid_levels))}")
        return upper


# =============================================================================
# Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """Root application configuration.

    This is the main configuration object loaded from app.yaml.
    """

    network: NetworkConfig = Field(default_factory=NetworkConfig)
    call: CallConfig = Field(default_factory=CallConfig)
    pacing: PacingConfig = Field(default_factory=PacingConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # Target catalog sources
    targets: list[str] = Field(
        default_factory=list,
        description="Ordered call targets",
    )
    targets_file: Path | None = Field(
        default=None,
        description="File with one target per line, appended after 'targets'",
    )

    @field_validator("targets", mode="before")
    @classmethod
    def strip_targets(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [str(item).strip() for item in v]
        return v

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        if self.logging.file:
            self.logging.file.parent.mkdir(parents=True, exist_ok=True)
