# reconcile_backlog.py
import asyncio
import json
import logging
from pathlib import Path

from tickerwisdom.chat import RestHistoryClient
from tickerwisdom.index import AnalysisIndex
from tickerwisdom.pipeline import (
    IndexerConfig,
    IndexerConfigFactory,
    create_reconciler,
    load_config_from_yaml,
)
import dotenv
dotenv.load_dotenv()

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler('reconciliation.log'),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)


def print_summary(index: AnalysisIndex):
    tickers = index.all_fresh_tickers()
    print(f"\n{'TICKER':<8} {'SCORE':>6}  {'POSTED':<20} URL")
    print('-' * 80)
    for ticker in tickers:
        rec = index.latest(ticker)
        print(f"{ticker:<8} {rec.relevance_score:>6.2f}  {rec.timestamp:%Y-%m-%d %H:%M}     {rec.canonical_url}")
    print(f"\n{len(tickers)} tickers with fresh analysis")


async def main():
    """Rebuild the analysis index from recent channel history."""
    import argparse

    parser = argparse.ArgumentParser(description='Reconcile recent analysis messages into the ticker index')
    parser.add_argument('--config', '-c', help='Path to configuration YAML file')
    parser.add_argument('--channels', nargs='*', help='Channel ids to scan (defaults to analysis channels)')
    parser.add_argument('--output', '-o', help='Write the reconciled records to this JSON file')
    args = parser.parse_args()

    base = load_config_from_yaml(args.config) if args.config else IndexerConfig()
    config = IndexerConfigFactory.from_environment(base=base, require_token=True)
    channels = args.channels or list(config.linker.analysis_channel_ids)
    if not channels:
        parser.error('No channels given and TICKERWISDOM_ANALYSIS_CHANNELS is empty')

    index = AnalysisIndex(config.index)
    async with RestHistoryClient(config.chat) as client:
        reconciler = create_reconciler(config, client)
        result = await reconciler.reconcile_into(index, channels)

    for channel in result.channels:
        status = f"FAILED ({channel.error})" if channel.failed else "ok"
        logger.info(f"Channel {channel.channel_id}: {channel.pages} pages, "
                    f"{channel.messages_scanned} messages, {channel.records_kept} tickers, {status}")

    print_summary(index)

    if args.output:
        output = {ticker: rec.to_dict() for ticker, rec in sorted(result.records.items())}
        Path(args.output).write_text(json.dumps(output, indent=2, ensure_ascii=False), encoding='utf-8')
        logger.info(f"Saved {len(output)} records to {args.output}")


if __name__ == "__main__":
    asyncio.run(main())
