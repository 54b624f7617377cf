"""Command-line entry point for the scalp agent.

Usage::

    python agent.py            # run the loop until SIGINT/SIGTERM
    python agent.py --once     # run a single tick and exit
    python agent.py --liquidate  # close every broker position and exit

Configuration and state errors at startup are fatal and exit with status 1.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
from typing import Optional, Sequence

from alpaca import AlpacaBroker, AlpacaClient, AlpacaPriceFeed
from config import AgentSettings, ConfigError, load_settings
from enrichment import EnrichmentGatherer
from funding_rates import default_funding_resolver
from journal import JournalQueue
from llm_enrichment import LLMEnrichmentProvider
from log_utils import setup_logger
from news_feed import NewsFetcher
from scalp_book import ScalpBook
from scalp_loop import ScalpEngine
from state_store import JsonStateStore, StateStoreError

logger = setup_logger(__name__)


def handle_exception(exc_type, exc_value, exc_traceback):
    """Log uncaught exceptions with stack traces."""
    if issubclass(exc_type, KeyboardInterrupt):
        return
    logger.error("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))


sys.excepthook = handle_exception


def build_engine(settings: AgentSettings, client: AlpacaClient) -> tuple[ScalpEngine, JournalQueue]:
    runtime = settings.runtime
    store = JsonStateStore(runtime.state_file)
    book = ScalpBook(store.load())
    provider = LLMEnrichmentProvider(
        enabled=runtime.llm_enabled,
        journal_enabled=runtime.llm_journal_enabled,
        timeout=runtime.enrichment_timeout,
    )
    gatherer = EnrichmentGatherer(
        settings.scalp,
        provider=provider if runtime.llm_enabled else None,
        news_fetcher=NewsFetcher(client),
        funding_resolver=default_funding_resolver(),
        timeout=runtime.enrichment_timeout,
    )
    journal = JournalQueue(provider.generate_trade_journal, book.add_journal_entry)
    engine = ScalpEngine(
        settings,
        broker=AlpacaBroker(client),
        price_feed=AlpacaPriceFeed(client),
        store=store,
        book=book,
        gatherer=gatherer,
        journal=journal if runtime.llm_journal_enabled else None,
    )
    return engine, journal


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # add_signal_handler is unavailable on Windows event loops.
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop_event.set))


async def run(args: argparse.Namespace, settings: AgentSettings) -> int:
    async with AlpacaClient(settings.runtime) as client:
        if args.liquidate:
            await AlpacaBroker(client).liquidate_all()
            return 0

        engine, journal = build_engine(settings, client)
        logger.info(
            "Scalp agent starting in %s mode (%d symbols)",
            settings.runtime.bot_mode.upper(),
            len(settings.scalp.symbols),
        )
        try:
            if args.once:
                result = await engine.run_once()
                if result.skipped:
                    logger.error("Tick skipped: %s", result.error)
                    return 1
            else:
                stop_event = asyncio.Event()
                _install_signal_handlers(stop_event)
                await engine.run_forever(stop_event)
        finally:
            await journal.drain()
            engine.store.save(engine.book.state)
            logger.info("Final status: %s", json.dumps(engine.status()["metrics"]))
    return 0


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Crypto scalp trading agent")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--once", action="store_true", help="Run a single tick and exit.")
    group.add_argument(
        "--liquidate",
        action="store_true",
        help="Close every open broker position and exit.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    try:
        settings = load_settings()
        return asyncio.run(run(args, settings))
    except (ConfigError, StateStoreError) as exc:
        logger.error("Fatal startup error: %s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
