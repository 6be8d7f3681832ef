# classify_message.py
import logging
import sys

from tickerwisdom.pipeline import IndexerConfig, create_linker, load_config_from_yaml

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    """Show extracted tickers and the relevance breakdown for one message."""
    import argparse

    parser = argparse.ArgumentParser(description='Classify a chat message without indexing it')
    parser.add_argument('text', nargs='?', help='Message text (read from stdin when omitted)')
    parser.add_argument('--config', '-c', help='Path to configuration YAML file')
    parser.add_argument('--reply', action='store_true', help='Treat the message as a reply')
    parser.add_argument('--top-picks', action='store_true', help='Parse the top picks block instead')
    args = parser.parse_args()

    text = args.text if args.text is not None else sys.stdin.read()
    config = load_config_from_yaml(args.config) if args.config else IndexerConfig()
    linker = create_linker(config)

    if args.top_picks:
        for candidate in linker.extractor.extract_top_picks(text):
            print(f"{candidate.priority.value:<10} {candidate.ticker}")
        return

    candidates, breakdown = linker.classify(text, is_reply=args.reply)
    print("Tickers:")
    for candidate in candidates:
        print(f"  {candidate.ticker:<6} confidence={candidate.confidence:.2f} offset={candidate.source_offset}")
    print(f"\nRelevance: {breakdown.score:.2f} "
          f"({'list' if breakdown.is_list else 'analysis'}, threshold {config.relevance.threshold:.2f})")
    for name, value in breakdown.components.items():
        print(f"  {name:<18} {value:+.2f}")
    if breakdown.keyword_hits:
        print(f"  keywords: {breakdown.keyword_hits}")


if __name__ == "__main__":
    main()
