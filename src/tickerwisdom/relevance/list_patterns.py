import logging
import re
from typing import Optional

from .state import ListPatternMatch, RelevanceConfig

logger = logging.getLogger(__name__)

TICKER_LIKE = r'(?<![A-Za-z0-9])[$#]?[A-Z]{1,5}(?![A-Za-z0-9])'
LIST_RUN = re.compile(rf'{TICKER_LIKE}(?:\s*[/,|]\s*{TICKER_LIKE})+')
LIST_SEPARATOR = re.compile(r'[/,|]')
BARE_TICKER_WORD = re.compile(r'[$#]?[A-Z]{1,5}')
WORD_EDGES = re.compile(r'^[^\w$#]+|[^\w]+$')
HAS_WORD_CHAR = re.compile(r'\w')


class ListPatternDetector:
    """
    Detects casual ticker lists such as ``AAPL / TSLA / NVDA`` or
    ``AAPL TSLA NVDA GOOGL AMZN META watching``.

    Two shapes count as a list:
      1. at least ``min_list_separators`` token/separator/token links whose
         runs cover more than ``min_list_coverage`` of the text;
      2. at least ``min_bare_tickers`` ticker-like words with fewer than
         ``max_words_per_bare_ticker`` other words per ticker.
    """

    def __init__(self, config: Optional[RelevanceConfig] = None):
        self.config = config or RelevanceConfig()

    def separator_runs(self, text: str):
        separators = 0
        covered = 0
        for run in LIST_RUN.finditer(text):
            separators += len(LIST_SEPARATOR.findall(run.group(0)))
            covered += run.end() - run.start()
        return separators, covered

    def word_profile(self, text: str):
        tickers = 0
        others = 0
        for word in text.split():
            core = WORD_EDGES.sub('', word)
            if BARE_TICKER_WORD.fullmatch(core):
                tickers += 1
            elif HAS_WORD_CHAR.search(core):
                others += 1
        return tickers, others

    def detect(self, text: str) -> ListPatternMatch:
        cfg = self.config
        if not text or not text.strip():
            return ListPatternMatch(is_list=False)

        separators, covered = self.separator_runs(text)
        coverage = covered / len(text)
        tickers, others = self.word_profile(text)
        words_per_ticker = others / tickers if tickers else float('inf')

        match = ListPatternMatch(
            is_list=False,
            separator_count=separators,
            coverage=coverage,
            bare_ticker_count=tickers,
            words_per_ticker=words_per_ticker,
        )
        if separators >= cfg.min_list_separators and coverage > cfg.min_list_coverage:
            match.is_list = True
            match.reason = f"{separators} separators covering {coverage:.0%} of text"
        elif tickers >= cfg.min_bare_tickers and words_per_ticker < cfg.max_words_per_bare_ticker:
            match.is_list = True
            match.reason = f"{tickers} bare tickers with {words_per_ticker:.2f} words each"

        if match.is_list:
            logger.debug(f"List pattern detected: {match.reason}")
        return match

    def is_list(self, text: str) -> bool:
        return self.detect(text).is_list
