#!/usr/bin/env python3
"""
Chain Reward Indexer - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
- sync:    ingest blocks from the next unindexed height to the head
- returns: print the daily staking-return series

- Compatible with PM2 process management
- Can be stopped and restarted safely; every pass resumes from
  the last committed height

============================================================
USAGE
============================================================
Direct execution:
    python app.py sync               # one pass
    python app.py sync --forever     # pass after pass
    python app.py returns --days 30

Environment-based configuration (.env supported):
    CHAIN_ID=columbus-5 LCD_URI=https://lcd.example.org python app.py sync

============================================================
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.absolute()
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from chain_adapters.providers.lcd import LcdClient
from chain_sync.aggregators import (
    GeneralInfoAggregator,
    NetworkAggregator,
    PriceAggregator,
    RewardWindowAggregator,
)
from chain_sync.block_ingestor import BlockIngestor
from chain_sync.config import SyncConfig
from chain_sync.validator_resolver import ValidatorResolver
from core.exceptions import ChainSyncException, ConfigurationError
from database.engine import create_database_engine, create_session_factory, initialize_database
from database.persistence import ChainStore
from monitoring.telemetry import (
    CompositeErrorReporter,
    ErrorReporter,
    LoggingErrorReporter,
    TelegramErrorReporter,
)
from reporting.price_history import DatabasePriceHistory
from reporting.staking_return import StakingReturnCalculator


logger = logging.getLogger(__name__)


# ============================================================
# LOGGING
# ============================================================

def setup_logging(level: str = "INFO", log_format: str = "text") -> logging.Logger:
    """
    Set up structured logging.

    Args:
        level: Log level
        log_format: Output format (json or text)

    Returns:
        Configured logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logging.getLogger("chain_indexer")


# ============================================================
# CLI
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="chain-indexer",
        description="Chain block/reward indexer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s sync                 # Ingest up to the current head and exit
  %(prog)s sync --forever       # Keep following the chain
  %(prog)s returns --days 30    # Daily staking returns of the last 30 days
        """
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        default=os.getenv("LOG_FORMAT", "text"),
        help="Log output format (default: text)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Ingest blocks")
    sync_parser.add_argument(
        "--forever",
        action="store_true",
        help="Run passes back to back instead of a single pass",
    )

    returns_parser = subparsers.add_parser("returns", help="Daily staking returns")
    returns_parser.add_argument(
        "--days",
        type=int,
        default=None,
        metavar="N",
        help="Only the last N complete days (default: all history)",
    )

    return parser


# ============================================================
# WIRING
# ============================================================

def build_error_reporter(config: SyncConfig) -> ErrorReporter:
    """Logging reporter, plus Telegram when configured."""
    reporters: List[ErrorReporter] = [LoggingErrorReporter()]
    if config.telegram_bot_token and config.telegram_chat_id:
        reporters.append(TelegramErrorReporter(
            bot_token=config.telegram_bot_token,
            chat_id=config.telegram_chat_id,
            chain_id=config.chain_id,
        ))
    return CompositeErrorReporter(reporters)


def build_lcd_client(config: SyncConfig) -> LcdClient:
    return LcdClient(
        lcd_uri=config.lcd_uri,
        rpc_uri=config.rpc_uri,
        initial_height=config.initial_height,
        pruning_keep_every=config.pruning_keep_every,
        legacy_network=config.legacy_lcd_api,
        timeout=config.request_timeout_seconds,
    )


def build_ingestor(
    config: SyncConfig,
    lcd: LcdClient,
    store: ChainStore,
    error_reporter: ErrorReporter,
) -> BlockIngestor:
    """Wire the sync loop with its aggregators."""
    aggregators = [
        RewardWindowAggregator(config.chain_id),
        NetworkAggregator(lcd, config.chain_id),
        PriceAggregator(lcd, config.chain_id),
        GeneralInfoAggregator(lcd, config.chain_id, config.native_denom),
    ]

    return BlockIngestor(
        chain=lcd,
        store=store,
        resolver=ValidatorResolver(lcd, pubkey_match_mode=config.pubkey_match_mode),
        chain_id=config.chain_id,
        aggregators=aggregators,
        error_reporter=error_reporter,
        head_poll_interval_seconds=config.head_poll_interval_seconds,
    )


# ============================================================
# COMMANDS
# ============================================================

async def run_sync(config: SyncConfig, forever: bool = False) -> int:
    """
    Run one sync pass, or passes back to back.

    Returns:
        Exit code (non-zero when the last pass halted on an error)
    """
    engine = create_database_engine(config.database_url)
    initialize_database(engine)
    store = ChainStore(create_session_factory(engine))
    error_reporter = build_error_reporter(config)

    try:
        async with build_lcd_client(config) as lcd:
            ingestor = build_ingestor(config, lcd, store, error_reporter)

            while True:
                result = await ingestor.run_sync_pass()
                logger.info(f"Sync pass result: {result.to_dict()}")

                if not forever:
                    return 1 if result.error is not None else 0

                await asyncio.sleep(config.sync_interval_seconds)
    finally:
        await error_reporter.close()
        engine.dispose()


async def run_returns(config: SyncConfig, days: Optional[int] = None) -> int:
    """Print the daily staking-return series as JSON lines."""
    engine = create_database_engine(config.database_url)
    session_factory = create_session_factory(engine)

    try:
        async with build_lcd_client(config) as lcd:
            calculator = StakingReturnCalculator(
                session_factory=session_factory,
                chain_stats=lcd,
                price_history=DatabasePriceHistory(session_factory, config.chain_id),
                chain_id=config.chain_id,
                native_denom=config.native_denom,
            )
            returns = await calculator.compute_daily_returns(days)
    finally:
        engine.dispose()

    for day in sorted(returns):
        print(json.dumps(returns[day].to_dict()))
    return 0


# ============================================================
# MAIN FUNCTION
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level, args.log_format)

    try:
        config = SyncConfig.from_env()
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    errors = config.validate()
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    try:
        if args.command == "sync":
            return asyncio.run(run_sync(config, forever=args.forever))
        return asyncio.run(run_returns(config, days=args.days))
    except ChainSyncException as e:
        logger.error(f"Fatal: {e!r}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
