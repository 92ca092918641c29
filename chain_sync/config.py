"""
Chain Sync Configuration.

All settings come from environment variables (a local .env file is
loaded through python-dotenv).
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from core.exceptions import ConfigurationError


load_dotenv()


DEFAULT_KEY_BYTES_CHAIN_IDS = ("columbus-5",)


def _split_csv(value: Optional[str], default: Tuple[str, ...]) -> Tuple[str, ...]:
    if value is None:
        return default
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass
class SyncConfig:
    """Configuration for one chain's sync process."""

    chain_id: str = "columbus-5"
    """Chain identifier stored on every row."""

    lcd_uri: str = "http://localhost:1317"
    """Light-client REST endpoint."""

    rpc_uri: Optional[str] = "http://localhost:26657"
    """Tendermint RPC endpoint (block results)."""

    database_url: Optional[str] = None
    """SQLAlchemy URL; None falls back to the engine default."""

    native_denom: str = "uluna"
    """Denom that staking returns are expressed in."""

    initial_height: int = 1
    """First height of the chain (after the last hard fork)."""

    pruning_keep_every: int = 100
    """Node pruning strategy: every N-th height is kept."""

    legacy_lcd_api: bool = False
    """Node speaks the pre-stargate LCD dialect."""

    head_poll_interval_seconds: float = 1.0
    """Sleep between polls while the chain head is unavailable."""

    sync_interval_seconds: float = 1.0
    """Pause between passes in forever mode."""

    request_timeout_seconds: float = 30.0
    """Total timeout of one HTTP request."""

    key_bytes_pubkey_chain_ids: Tuple[str, ...] = field(
        default_factory=lambda: DEFAULT_KEY_BYTES_CHAIN_IDS
    )
    """Chains whose consensus keys are compared by raw key bytes only."""

    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None

    @classmethod
    def from_env(cls) -> "SyncConfig":
        """Load configuration from environment variables."""
        try:
            return cls(
                chain_id=os.getenv("CHAIN_ID", "columbus-5"),
                lcd_uri=os.getenv("LCD_URI", "http://localhost:1317"),
                rpc_uri=os.getenv("RPC_URI", "http://localhost:26657"),
                database_url=os.getenv("DATABASE_URL"),
                native_denom=os.getenv("NATIVE_DENOM", "uluna"),
                initial_height=int(os.getenv("INITIAL_HEIGHT", "1")),
                pruning_keep_every=int(os.getenv("PRUNING_KEEP_EVERY", "100")),
                legacy_lcd_api=os.getenv("LEGACY_LCD_API", "false").lower() == "true",
                head_poll_interval_seconds=float(os.getenv("HEAD_POLL_INTERVAL_SECONDS", "1.0")),
                sync_interval_seconds=float(os.getenv("SYNC_INTERVAL_SECONDS", "1.0")),
                request_timeout_seconds=float(os.getenv("REQUEST_TIMEOUT_SECONDS", "30")),
                key_bytes_pubkey_chain_ids=_split_csv(
                    os.getenv("KEY_BYTES_PUBKEY_CHAIN_IDS"), DEFAULT_KEY_BYTES_CHAIN_IDS
                ),
                telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN"),
                telegram_chat_id=os.getenv("TELEGRAM_CHAT_ID"),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e

    @property
    def pubkey_match_mode(self) -> str:
        """"key_bytes" for chains listed in key_bytes_pubkey_chain_ids, else "exact"."""
        if self.chain_id in self.key_bytes_pubkey_chain_ids:
            return "key_bytes"
        return "exact"

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if not self.chain_id:
            errors.append("chain_id is required")

        if not self.lcd_uri:
            errors.append("lcd_uri is required")

        if self.initial_height < 1:
            errors.append("initial_height must be at least 1")

        if self.pruning_keep_every < 1:
            errors.append("pruning_keep_every must be at least 1")

        if self.head_poll_interval_seconds < 0:
            errors.append("head_poll_interval_seconds must not be negative")

        return errors
